"""Supabase-backed user repository."""

from dataclasses import dataclass
from datetime import UTC, datetime
from uuid import UUID

from supabase import Client

from nutrition_planner.domain.models import ActivityLevel, SubscriptionTier, UserProfile
from nutrition_planner.services.users import UserRepository

_USER_COLUMNS = (
    "id, name, email, age, weight, height, activity_level, dietary_preferences, "
    "health_goals, subscription_tier, stripe_customer_id, created_at, updated_at"
)
_COLUMN_NAMES = {"billing_customer_id": "stripe_customer_id"}


@dataclass
class SupabaseUserRepository(UserRepository):
    """Supabase implementation for user persistence."""

    client: Client

    def create_user(self, payload: dict[str, object]) -> UserProfile:
        """Create a new user row and return it."""
        response = self.client.table("users").insert(_to_row(payload)).execute()
        if not response.data:
            raise RuntimeError("Failed to create user in Supabase")
        return _parse_row(response.data[0])

    def get_by_id(self, user_id: UUID) -> UserProfile | None:
        """Return the user with the given id, if present."""
        response = (
            self.client.table("users")
            .select(_USER_COLUMNS)
            .eq("id", str(user_id))
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        return _parse_row(response.data[0])

    def get_by_email(self, email: str) -> UserProfile | None:
        """Return the user with the given email, if present."""
        response = (
            self.client.table("users")
            .select(_USER_COLUMNS)
            .eq("email", email)
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        return _parse_row(response.data[0])

    def update_user(self, user_id: UUID, changes: dict[str, object]) -> UserProfile:
        """Apply changes to a user row and return the updated profile."""
        row = _to_row(changes)
        row["updated_at"] = datetime.now(tz=UTC).isoformat()
        response = (
            self.client.table("users").update(row).eq("id", str(user_id)).execute()
        )
        if not response.data:
            raise RuntimeError("Failed to update user in Supabase")
        return _parse_row(response.data[0])


def _to_row(payload: dict[str, object]) -> dict[str, object]:
    row: dict[str, object] = {}
    for key, value in payload.items():
        if isinstance(value, set | frozenset):
            value = sorted(value)
        row[_COLUMN_NAMES.get(key, key)] = value
    return row


def _parse_timestamp(value: object) -> datetime | None:
    if isinstance(value, str) and value:
        return datetime.fromisoformat(value)
    return None


def _parse_row(row: dict[str, object]) -> UserProfile:
    return UserProfile(
        id=UUID(row["id"]),
        name=str(row.get("name", "")),
        email=str(row.get("email", "")),
        age=int(row.get("age", 0)),
        weight=float(row.get("weight", 0.0)),
        height=float(row.get("height", 0.0)),
        activity_level=ActivityLevel(row.get("activity_level", "moderate")),
        dietary_preferences=frozenset(row.get("dietary_preferences") or []),
        health_goals=frozenset(row.get("health_goals") or []),
        subscription_tier=SubscriptionTier(row.get("subscription_tier") or "free"),
        billing_customer_id=row.get("stripe_customer_id") or None,
        created_at=_parse_timestamp(row.get("created_at")),
        updated_at=_parse_timestamp(row.get("updated_at")),
    )
