"""User profile business logic."""

from dataclasses import dataclass
from typing import Protocol
from uuid import UUID

from nutrition_planner.domain.errors import (
    ConflictError,
    NotFoundError,
    ValidationError,
)
from nutrition_planner.domain.models import (
    AGE_RANGE,
    HEIGHT_RANGE_IN,
    WEIGHT_RANGE_LBS,
    UserProfile,
)


class UserRepository(Protocol):
    """Persistence interface for user profiles."""

    def create_user(self, payload: dict[str, object]) -> UserProfile:
        """Create and return a new user profile."""

    def get_by_id(self, user_id: UUID) -> UserProfile | None:
        """Return the user with the given id, if present."""

    def get_by_email(self, email: str) -> UserProfile | None:
        """Return the user with the given email, if present."""

    def update_user(self, user_id: UUID, changes: dict[str, object]) -> UserProfile:
        """Apply changes to a user and return the updated profile."""


@dataclass
class UserService:
    """Application service for profile lifecycle actions."""

    repository: UserRepository

    def register(self, payload: dict[str, object]) -> UserProfile:
        """Create a profile, refusing duplicate emails."""
        email = str(payload.get("email", ""))
        if self.repository.get_by_email(email) is not None:
            raise ConflictError(
                f"A user with email '{email}' already exists",
                details={"field": "email"},
            )
        return self.repository.create_user(payload)

    def get_user(self, user_id: UUID) -> UserProfile:
        """Return a user or raise NotFoundError."""
        user = self.repository.get_by_id(user_id)
        if user is None:
            raise NotFoundError("User", user_id)
        return user

    def get_user_by_email(self, email: str) -> UserProfile:
        """Return a user by email or raise NotFoundError."""
        user = self.repository.get_by_email(email)
        if user is None:
            raise NotFoundError("User", email)
        return user

    def update_profile(self, user_id: UUID, changes: dict[str, object]) -> UserProfile:
        """Apply a partial profile update."""
        self.get_user(user_id)
        if not changes:
            raise ValidationError("No fields to update")
        return self.repository.update_user(user_id, changes)


def validate_profile(profile: UserProfile) -> None:
    """Raise ValidationError when physiological attributes are out of range."""
    checks: list[tuple[str, float, tuple[float, float]]] = [
        ("age", profile.age, AGE_RANGE),
        ("weight", profile.weight, WEIGHT_RANGE_LBS),
        ("height", profile.height, HEIGHT_RANGE_IN),
    ]
    for name, value, (low, high) in checks:
        if not low <= value <= high:
            raise ValidationError(
                f"{name} must be between {low:g} and {high:g}", field=name
            )
