"""Error taxonomy shared by services and the API layer."""


class PlannerError(Exception):
    """Base class for errors surfaced to callers."""

    status_code = 500

    def __init__(self, message: str, details: dict[str, object] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class NotFoundError(PlannerError):
    """A user, plan or log does not exist."""

    status_code = 404

    def __init__(self, resource: str, identifier: object):
        super().__init__(
            f"{resource} '{identifier}' not found",
            details={"resource": resource, "id": str(identifier)},
        )


class ConflictError(PlannerError):
    """The request would clash with existing state."""

    status_code = 409


class ValidationError(PlannerError):
    """Input failed a field-level check."""

    status_code = 400

    def __init__(self, message: str, field: str | None = None):
        super().__init__(message, details={"field": field} if field else None)
        self.field = field


class UpstreamFailure(PlannerError):
    """A recommendation or billing call failed or returned unusable content."""

    status_code = 502

    def __init__(self, operation: str, detail: str):
        super().__init__(
            f"{operation} failed: {detail}",
            details={"operation": operation},
        )
        self.operation = operation


class ProviderStateError(PlannerError):
    """A billing event lacks the metadata needed to apply it."""

    status_code = 400
