"""Plan generation orchestration."""

import asyncio
import logging
from dataclasses import dataclass
from typing import Protocol
from uuid import UUID

from nutrition_planner.domain.errors import (
    ConflictError,
    NotFoundError,
    UpstreamFailure,
)
from nutrition_planner.domain.models import UserProfile
from nutrition_planner.domain.plans import (
    PRIMARY_SLOTS,
    ActivePlanView,
    DietPlan,
    MacroTargets,
    Meal,
    MealSlot,
    PlanGeneration,
    SlotOutcome,
)
from nutrition_planner.domain.recommendations import MealSuggestion
from nutrition_planner.services.materializer import RecipeMaterializer, RecipeRepository
from nutrition_planner.services.recommendations import (
    EngineFailure,
    Ok,
    RecommendationEngine,
)
from nutrition_planner.services.users import UserRepository, validate_profile

_logger = logging.getLogger(__name__)

SUGGESTIONS_PER_SLOT = 2
FALLBACK_EXPLANATION = (
    "Your personalized nutrition plan is designed to help you achieve your "
    "health goals."
)


def active_plan_conflict(user_id: UUID) -> ConflictError:
    return ConflictError(
        "User already has an active diet plan. "
        "Set regenerate=true to create a new one.",
        details={"user_id": str(user_id)},
    )


class PlanRepository(RecipeRepository, Protocol):
    """Persistence interface for plans, recipes and meals."""

    def create_plan(
        self,
        user_id: UUID,
        calorie_target: int,
        macro_targets: MacroTargets,
        *,
        replace_active: bool,
    ) -> DietPlan:
        """Deactivate the user's active plans and insert a new active one.

        Implementations must perform both steps as one transaction, and raise
        `ConflictError` (see `active_plan_conflict`) inside it when
        `replace_active` is false and an active plan exists.
        """

    def get_active_plan(self, user_id: UUID) -> DietPlan | None:
        """Return the user's active plan, if any."""

    def list_plans(self, user_id: UUID) -> list[DietPlan]:
        """Return all plans for a user, newest first."""

    def list_meals_by_plan(self, plan_id: UUID) -> list[Meal]:
        """Return meals for a plan in creation order."""


@dataclass
class PlanOrchestrator:
    """Drives profile → targets → plan → per-slot meals."""

    users: UserRepository
    plans: PlanRepository
    engine: RecommendationEngine
    materializer: RecipeMaterializer

    async def generate_plan(
        self, user_id: UUID, regenerate: bool = False
    ) -> PlanGeneration:
        """Generate and persist a plan, tolerating per-slot failures."""
        profile = self._require_user(user_id)
        validate_profile(profile)
        if not regenerate and self.plans.get_active_plan(user_id) is not None:
            raise active_plan_conflict(user_id)

        targets = await self.engine.recommend_targets(profile)
        if not isinstance(targets, Ok):
            raise UpstreamFailure(targets.operation, targets.detail)
        recommendation = targets.value

        plan = self.plans.create_plan(
            user_id,
            recommendation.calorie_target,
            MacroTargets(
                protein=recommendation.macro_targets.protein,
                carbs=recommendation.macro_targets.carbs,
                fat=recommendation.macro_targets.fat,
            ),
            replace_active=regenerate,
        )
        _logger.info(
            "Created diet plan %s for user %s (%s kcal)",
            plan.id,
            user_id,
            plan.calorie_target,
        )

        suggestion_results = await asyncio.gather(
            *(
                self.engine.recommend_meals(profile, slot, plan.calorie_target)
                for slot in PRIMARY_SLOTS
            )
        )
        slots = [
            self._materialize_slot(plan, slot, result)
            for slot, result in zip(PRIMARY_SLOTS, suggestion_results, strict=True)
        ]
        return PlanGeneration(
            plan=plan,
            slots=slots,
            explanation=recommendation.explanation,
            tips=recommendation.tips,
            warnings=recommendation.warnings,
        )

    async def get_active_plan(self, user_id: UUID) -> ActivePlanView:
        """Return the active plan, its meals and a best-effort explanation."""
        plan = self.plans.get_active_plan(user_id)
        if plan is None:
            raise NotFoundError("Active diet plan", user_id)
        meals = self.plans.list_meals_by_plan(plan.id)
        explanation = FALLBACK_EXPLANATION
        profile = self.users.get_by_id(user_id)
        if profile is not None:
            narration = await self.engine.narrate_plan(profile, plan)
            if isinstance(narration, Ok):
                explanation = narration.value
            else:
                _logger.warning(
                    "Plan narration unavailable for user %s: %s",
                    user_id,
                    narration.detail,
                )
        return ActivePlanView(plan=plan, meals=meals, explanation=explanation)

    def list_plans(self, user_id: UUID) -> list[DietPlan]:
        """Return the plan history for a user."""
        self._require_user(user_id)
        return self.plans.list_plans(user_id)

    def _require_user(self, user_id: UUID) -> UserProfile:
        profile = self.users.get_by_id(user_id)
        if profile is None:
            raise NotFoundError("User", user_id)
        return profile

    def _materialize_slot(
        self,
        plan: DietPlan,
        slot: MealSlot,
        result: Ok[list[MealSuggestion]] | EngineFailure,
    ) -> SlotOutcome:
        if not isinstance(result, Ok):
            _logger.warning(
                "Skipping %s for plan %s: %s",
                slot.value,
                plan.id,
                result.detail,
                extra={"plan_id": str(plan.id), "slot": slot.value},
            )
            return SlotOutcome(slot=slot, error=result.detail)

        meals: list[Meal] = []
        for suggestion in result.value[:SUGGESTIONS_PER_SLOT]:
            try:
                materialized = self.materializer.materialize(plan.id, suggestion, slot)
            except Exception as exc:
                _logger.exception(
                    "Failed to materialize %s suggestion for plan %s",
                    slot.value,
                    plan.id,
                    extra={"plan_id": str(plan.id), "slot": slot.value},
                )
                return SlotOutcome(
                    slot=slot, meals=meals, error=f"{type(exc).__name__}: {exc}"
                )
            meals.append(materialized.meal)
        if not meals:
            return SlotOutcome(slot=slot, error="no suggestions returned")
        return SlotOutcome(slot=slot, meals=meals)
