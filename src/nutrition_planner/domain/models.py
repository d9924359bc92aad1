"""Domain models for user profiles."""

from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum
from uuid import UUID


class ActivityLevel(StrEnum):
    """Self-reported activity tier, ordered from least to most active."""

    SEDENTARY = "sedentary"
    LIGHT = "light"
    MODERATE = "moderate"
    ACTIVE = "active"
    VERY_ACTIVE = "very_active"


class SubscriptionTier(StrEnum):
    """Internal subscription tiers."""

    FREE = "free"
    BASIC = "basic"
    PREMIUM = "premium"


AGE_RANGE = (13, 120)
WEIGHT_RANGE_LBS = (50.0, 1000.0)
HEIGHT_RANGE_IN = (36.0, 96.0)


@dataclass(frozen=True)
class UserProfile:
    """A user with the attributes used for plan generation."""

    id: UUID
    name: str
    email: str
    age: int
    weight: float
    height: float
    activity_level: ActivityLevel
    dietary_preferences: frozenset[str]
    health_goals: frozenset[str]
    subscription_tier: SubscriptionTier = SubscriptionTier.FREE
    billing_customer_id: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
