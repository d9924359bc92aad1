"""Recommendation engine with validated, tagged results."""

import asyncio
import logging
from collections.abc import Awaitable
from dataclasses import dataclass
from typing import Generic, Protocol, TypeVar

from pydantic import BaseModel

from nutrition_planner.domain.models import UserProfile
from nutrition_planner.domain.plans import SLOT_CALORIE_SHARES, DietPlan, MealSlot
from nutrition_planner.domain.progress import ProgressInsights, ProgressLog
from nutrition_planner.domain.recommendations import (
    MealSuggestion,
    MealSuggestions,
    ProgressAnalysis,
    TargetRecommendation,
)

_logger = logging.getLogger(__name__)

T = TypeVar("T")
M = TypeVar("M", bound=BaseModel)

RECENT_PROGRESS_DAYS = 7

_STRING_LIST = {"type": "array", "items": {"type": "string"}}
_MACROS_SCHEMA: dict[str, object] = {
    "type": "object",
    "properties": {
        "protein": {"type": "integer", "minimum": 0},
        "carbs": {"type": "integer", "minimum": 0},
        "fat": {"type": "integer", "minimum": 0},
    },
    "required": ["protein", "carbs", "fat"],
    "additionalProperties": False,
}

TARGETS_SCHEMA: dict[str, object] = {
    "type": "object",
    "properties": {
        "calorie_target": {"type": "integer", "minimum": 1},
        "macro_targets": _MACROS_SCHEMA,
        "explanation": {"type": "string"},
        "tips": _STRING_LIST,
        "warnings": _STRING_LIST,
    },
    "required": ["calorie_target", "macro_targets", "explanation", "tips", "warnings"],
    "additionalProperties": False,
}

MEALS_SCHEMA: dict[str, object] = {
    "type": "object",
    "properties": {
        "meal_type": {"type": "string"},
        "suggestions": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "name": {"type": "string"},
                    "description": {"type": "string"},
                    "estimated_calories": {"type": "integer", "minimum": 0},
                    "prep_time": {"type": "integer", "minimum": 0},
                    "difficulty": {"type": "string", "enum": ["easy", "medium", "hard"]},
                    "ingredients": _STRING_LIST,
                    "benefits": _STRING_LIST,
                    "macros": {"anyOf": [_MACROS_SCHEMA, {"type": "null"}]},
                },
                "required": [
                    "name",
                    "description",
                    "estimated_calories",
                    "prep_time",
                    "difficulty",
                    "ingredients",
                    "benefits",
                    "macros",
                ],
                "additionalProperties": False,
            },
        },
    },
    "required": ["meal_type", "suggestions"],
    "additionalProperties": False,
}

PROGRESS_SCHEMA: dict[str, object] = {
    "type": "object",
    "properties": {
        "insights": _STRING_LIST,
        "recommendations": _STRING_LIST,
        "motivation": {"type": "string"},
    },
    "required": ["insights", "recommendations", "motivation"],
    "additionalProperties": False,
}

_NUTRITIONIST = (
    "You are a certified nutritionist. Give safe, practical, evidence-based "
    "recommendations tailored to the user."
)
_COACH = (
    "You are a supportive nutrition coach. Be positive, specific and concise."
)


class RecommendationClient(Protocol):
    """Transport for the language model behind the engine."""

    async def generate_json(  # noqa: PLR0913
        self,
        *,
        model: str,
        reasoning_effort: str | None,
        store: bool,
        instructions: str,
        prompt: str,
        schema_name: str,
        schema: dict[str, object],
    ) -> dict[str, object]:
        """Return a decoded JSON object matching the schema."""

    async def generate_text(  # noqa: PLR0913
        self,
        *,
        model: str,
        reasoning_effort: str | None,
        store: bool,
        instructions: str,
        prompt: str,
    ) -> str:
        """Return free text."""


@dataclass(frozen=True)
class Ok(Generic[T]):
    """Successful engine call."""

    value: T


@dataclass(frozen=True)
class SchemaError:
    """The engine answered with content that failed validation."""

    operation: str
    detail: str


@dataclass(frozen=True)
class UpstreamError:
    """The engine call failed or timed out."""

    operation: str
    detail: str


EngineFailure = SchemaError | UpstreamError


@dataclass
class RecommendationEngine:
    """Typed facade over a non-deterministic recommendation source."""

    client: RecommendationClient
    model: str
    reasoning_effort: str | None
    store: bool
    timeout_seconds: float = 45.0

    async def recommend_targets(
        self, profile: UserProfile
    ) -> Ok[TargetRecommendation] | EngineFailure:
        """Return daily calorie and macro targets for a profile."""
        prompt = (
            "Create a daily nutrition plan for this user.\n"
            f"{_describe_profile(profile)}\n"
            "Return a calorie target, macro targets in grams, a short "
            "explanation, 3-5 practical tips and any warnings."
        )
        return await self._structured(
            "recommend_targets",
            self.client.generate_json(
                model=self.model,
                reasoning_effort=self.reasoning_effort,
                store=self.store,
                instructions=_NUTRITIONIST,
                prompt=prompt,
                schema_name="nutrition_targets",
                schema=TARGETS_SCHEMA,
            ),
            TargetRecommendation,
        )

    async def recommend_meals(
        self, profile: UserProfile, slot: MealSlot, calorie_target: int
    ) -> Ok[list[MealSuggestion]] | EngineFailure:
        """Return meal suggestions sized to the slot's calorie share."""
        slot_calories = round(calorie_target * SLOT_CALORIE_SHARES[slot])
        prompt = (
            f"Suggest 3-4 {slot.value} options for this user.\n"
            f"{_describe_profile(profile)}\n"
            f"Target calories for this {slot.value}: ~{slot_calories}."
        )
        result = await self._structured(
            "recommend_meals",
            self.client.generate_json(
                model=self.model,
                reasoning_effort=self.reasoning_effort,
                store=self.store,
                instructions=_NUTRITIONIST,
                prompt=prompt,
                schema_name="meal_suggestions",
                schema=MEALS_SCHEMA,
            ),
            MealSuggestions,
        )
        if isinstance(result, Ok):
            return Ok(result.value.suggestions)
        return result

    async def narrate_plan(
        self, profile: UserProfile, plan: DietPlan
    ) -> Ok[str] | EngineFailure:
        """Explain a plan in plain, encouraging language."""
        targets = plan.macro_targets
        prompt = (
            "Explain this nutrition plan to the user in under 200 words.\n"
            f"{_describe_profile(profile)}\n"
            f"Daily calories: {plan.calorie_target}; protein {targets.protein}g, "
            f"carbs {targets.carbs}g, fat {targets.fat}g."
        )
        try:
            text = await asyncio.wait_for(
                self.client.generate_text(
                    model=self.model,
                    reasoning_effort=self.reasoning_effort,
                    store=self.store,
                    instructions=_COACH,
                    prompt=prompt,
                ),
                timeout=self.timeout_seconds,
            )
        except Exception as exc:
            return _upstream("narrate_plan", exc)
        if not isinstance(text, str) or not text.strip():
            return SchemaError("narrate_plan", "empty narration")
        return Ok(text.strip())

    async def analyze_progress(
        self, profile: UserProfile, logs: list[ProgressLog]
    ) -> Ok[ProgressInsights] | EngineFailure:
        """Return coaching insights for the most recent logs."""
        recent = sorted(logs, key=lambda log: log.log_date)[-RECENT_PROGRESS_DAYS:]
        lines = [
            f"- {log.log_date.isoformat()}: weight {log.weight}lbs, "
            f"adherence {log.adherence_score}%"
            for log in recent
        ]
        goals = ", ".join(sorted(profile.health_goals)) or "General health"
        prompt = (
            f"User goals: {goals}\n"
            "Recent progress:\n" + "\n".join(lines) + "\n"
            "Give 2-3 insights, 2-3 recommendations and a motivating message."
        )
        result = await self._structured(
            "analyze_progress",
            self.client.generate_json(
                model=self.model,
                reasoning_effort=self.reasoning_effort,
                store=self.store,
                instructions=_COACH,
                prompt=prompt,
                schema_name="progress_insights",
                schema=PROGRESS_SCHEMA,
            ),
            ProgressAnalysis,
        )
        if isinstance(result, Ok):
            analysis = result.value
            return Ok(
                ProgressInsights(
                    insights=analysis.insights,
                    recommendations=analysis.recommendations,
                    motivation=analysis.motivation,
                )
            )
        return result

    async def _structured(
        self,
        operation: str,
        call: Awaitable[dict[str, object]],
        model_type: type[M],
    ) -> Ok[M] | EngineFailure:
        try:
            raw = await asyncio.wait_for(call, timeout=self.timeout_seconds)
        except ValueError as exc:
            _logger.warning("Engine %s returned undecodable content: %s", operation, exc)
            return SchemaError(operation, str(exc))
        except Exception as exc:
            return _upstream(operation, exc)
        try:
            return Ok(model_type.model_validate(raw))
        except ValueError as exc:
            _logger.warning("Engine %s failed schema validation: %s", operation, exc)
            return SchemaError(operation, str(exc))


def _upstream(operation: str, exc: Exception) -> UpstreamError:
    if isinstance(exc, TimeoutError):
        detail = "timed out"
    else:
        detail = f"{type(exc).__name__}: {exc}"
    _logger.warning("Engine %s failed: %s", operation, detail)
    return UpstreamError(operation, detail)


def _describe_profile(profile: UserProfile) -> str:
    preferences = ", ".join(sorted(profile.dietary_preferences)) or "None specified"
    goals = ", ".join(sorted(profile.health_goals)) or "General health"
    return (
        f"Age: {profile.age} years; weight: {profile.weight} lbs; "
        f"height: {profile.height} inches; activity: {profile.activity_level.value}; "
        f"dietary preferences: {preferences}; health goals: {goals}"
    )
