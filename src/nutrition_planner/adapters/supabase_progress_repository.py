"""Supabase repository for daily progress logs."""

from dataclasses import dataclass
from datetime import UTC, date, datetime
from uuid import UUID

from supabase import Client

from nutrition_planner.domain.progress import ProgressLog
from nutrition_planner.services.progress import ProgressRepository

_LOG_COLUMNS = (
    "id, user_id, log_date, weight, food_consumed, adherence_score, notes, "
    "created_at, updated_at"
)


@dataclass
class SupabaseProgressRepository(ProgressRepository):
    """Supabase implementation for progress logs."""

    client: Client

    def get_log_by_date(self, user_id: UUID, log_date: date) -> ProgressLog | None:
        """Return the user's log for a day, if present."""
        response = (
            self.client.table("progress_logs")
            .select(_LOG_COLUMNS)
            .eq("user_id", str(user_id))
            .eq("log_date", log_date.isoformat())
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        return _parse_row(response.data[0])

    def get_log(self, log_id: UUID) -> ProgressLog | None:
        """Return a log by id, if present."""
        response = (
            self.client.table("progress_logs")
            .select(_LOG_COLUMNS)
            .eq("id", str(log_id))
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        return _parse_row(response.data[0])

    def upsert_log(
        self, user_id: UUID, log_date: date, fields: dict[str, object]
    ) -> ProgressLog:
        """Insert or merge the (user, day) row with ON CONFLICT."""
        payload = {
            **fields,
            "user_id": str(user_id),
            "log_date": log_date.isoformat(),
            "updated_at": datetime.now(tz=UTC).isoformat(),
        }
        response = (
            self.client.table("progress_logs")
            .upsert(payload, on_conflict="user_id,log_date")
            .execute()
        )
        if not response.data:
            raise RuntimeError("Failed to upsert progress log")
        return _parse_row(response.data[0])

    def update_log(self, log_id: UUID, fields: dict[str, object]) -> ProgressLog:
        """Partially update a log by id."""
        payload = {**fields, "updated_at": datetime.now(tz=UTC).isoformat()}
        response = (
            self.client.table("progress_logs")
            .update(payload)
            .eq("id", str(log_id))
            .execute()
        )
        if not response.data:
            raise RuntimeError("Failed to update progress log")
        return _parse_row(response.data[0])

    def list_logs_in_range(
        self, user_id: UUID, start: date, end: date
    ) -> list[ProgressLog]:
        """Return logs with start <= log_date <= end, oldest first."""
        response = (
            self.client.table("progress_logs")
            .select(_LOG_COLUMNS)
            .eq("user_id", str(user_id))
            .gte("log_date", start.isoformat())
            .lte("log_date", end.isoformat())
            .order("log_date", desc=False)
            .execute()
        )
        return [_parse_row(row) for row in response.data or []]


def _parse_timestamp(value: object) -> datetime | None:
    if isinstance(value, str) and value:
        return datetime.fromisoformat(value)
    return None


def _parse_row(row: dict[str, object]) -> ProgressLog:
    return ProgressLog(
        id=UUID(row["id"]),
        user_id=UUID(row["user_id"]),
        log_date=date.fromisoformat(str(row["log_date"])),
        weight=float(row.get("weight", 0.0)),
        food_consumed=list(row.get("food_consumed") or []),
        adherence_score=int(row.get("adherence_score", 0)),
        notes=row.get("notes") or None,
        created_at=_parse_timestamp(row.get("created_at")),
        updated_at=_parse_timestamp(row.get("updated_at")),
    )
