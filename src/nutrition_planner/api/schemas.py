"""Request models for the HTTP API."""

from datetime import date
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, Field

from nutrition_planner.domain.models import (
    AGE_RANGE,
    HEIGHT_RANGE_IN,
    WEIGHT_RANGE_LBS,
    ActivityLevel,
)
from nutrition_planner.domain.plans import MealSlot

_EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"


class CreateUserRequest(BaseModel):
    name: str = Field(min_length=1)
    email: str = Field(pattern=_EMAIL_PATTERN)
    age: int = Field(ge=AGE_RANGE[0], le=AGE_RANGE[1])
    weight: float = Field(ge=WEIGHT_RANGE_LBS[0], le=WEIGHT_RANGE_LBS[1])
    height: float = Field(ge=HEIGHT_RANGE_IN[0], le=HEIGHT_RANGE_IN[1])
    activity_level: ActivityLevel
    dietary_preferences: list[str] = Field(default_factory=list)
    health_goals: list[str] = Field(default_factory=list)


class UpdateUserRequest(BaseModel):
    name: str | None = Field(default=None, min_length=1)
    age: int | None = Field(default=None, ge=AGE_RANGE[0], le=AGE_RANGE[1])
    weight: float | None = Field(
        default=None, ge=WEIGHT_RANGE_LBS[0], le=WEIGHT_RANGE_LBS[1]
    )
    height: float | None = Field(
        default=None, ge=HEIGHT_RANGE_IN[0], le=HEIGHT_RANGE_IN[1]
    )
    activity_level: ActivityLevel | None = None
    dietary_preferences: list[str] | None = None
    health_goals: list[str] | None = None


class GeneratePlanRequest(BaseModel):
    user_id: UUID
    regenerate: bool = False


class ProgressFields(BaseModel):
    """Progress fields; omitted ones are left untouched."""

    weight: float | None = None
    food_consumed: list[str] | None = None
    adherence_score: int | None = None
    notes: str | None = None


class ProgressLogRequest(ProgressFields):
    user_id: UUID
    log_date: date | None = None


class CheckoutRequest(BaseModel):
    user_id: UUID
    plan_id: str
    success_url: str = Field(min_length=1)
    cancel_url: str = Field(min_length=1)


class ManageSubscriptionRequest(BaseModel):
    user_id: UUID
    action: Literal["cancel", "reactivate", "portal"]
    subscription_id: str | None = Field(default=None, min_length=1)
    return_url: str | None = Field(default=None, min_length=1)


class AddCatalogMealRequest(BaseModel):
    user_id: UUID
    external_id: str = Field(min_length=1)
    meal_type: MealSlot
