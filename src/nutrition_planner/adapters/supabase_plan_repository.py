"""Supabase repository for diet plans, recipes and meals."""

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from postgrest.exceptions import APIError
from supabase import Client

from nutrition_planner.domain.plans import (
    DietPlan,
    MacroTargets,
    Meal,
    MealSlot,
    NutritionSnapshot,
    Recipe,
    RecipeSource,
)
from nutrition_planner.services.plans import PlanRepository, active_plan_conflict

UNIQUE_VIOLATION = "23505"

_PLAN_COLUMNS = "id, user_id, calorie_target, macro_targets, is_active, generated_at"
_RECIPE_COLUMNS = (
    "id, name, description, ingredients, instructions, prep_time, cook_time, "
    "nutritional_info, source, external_id"
)
_MEAL_COLUMNS = (
    "id, diet_plan_id, meal_type, recipe_id, name, calories, macros, preparation_time"
)


@dataclass
class SupabasePlanRepository(PlanRepository):
    """Supabase implementation for plan persistence."""

    client: Client

    def create_plan(
        self,
        user_id: UUID,
        calorie_target: int,
        macro_targets: MacroTargets,
        *,
        replace_active: bool,
    ) -> DietPlan:
        """Deactivate previous plans and insert the new one in one transaction."""
        try:
            response = self.client.rpc(
                "create_diet_plan",
                {
                    "p_user_id": str(user_id),
                    "p_calorie_target": calorie_target,
                    "p_macro_targets": {
                        "protein": macro_targets.protein,
                        "carbs": macro_targets.carbs,
                        "fat": macro_targets.fat,
                    },
                    "p_allow_replace": replace_active,
                },
            ).execute()
        except APIError as exc:
            if exc.code == UNIQUE_VIOLATION:
                raise active_plan_conflict(user_id) from exc
            raise
        if not response.data:
            raise RuntimeError("Failed to create diet plan")
        row = response.data[0] if isinstance(response.data, list) else response.data
        return _parse_plan(row)

    def get_active_plan(self, user_id: UUID) -> DietPlan | None:
        """Return the user's active plan, if any."""
        response = (
            self.client.table("diet_plans")
            .select(_PLAN_COLUMNS)
            .eq("user_id", str(user_id))
            .eq("is_active", True)
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        return _parse_plan(response.data[0])

    def list_plans(self, user_id: UUID) -> list[DietPlan]:
        """Return all plans for a user, newest first."""
        response = (
            self.client.table("diet_plans")
            .select(_PLAN_COLUMNS)
            .eq("user_id", str(user_id))
            .order("generated_at", desc=True)
            .execute()
        )
        return [_parse_plan(row) for row in response.data or []]

    def list_meals_by_plan(self, plan_id: UUID) -> list[Meal]:
        """Return meals for a plan in creation order."""
        response = (
            self.client.table("meals")
            .select(_MEAL_COLUMNS)
            .eq("diet_plan_id", str(plan_id))
            .order("created_at", desc=False)
            .execute()
        )
        return [_parse_meal(row) for row in response.data or []]

    def create_recipe(self, payload: dict[str, object]) -> Recipe:
        """Create a recipe row and return it."""
        response = self.client.table("recipes").insert(payload).execute()
        if not response.data:
            raise RuntimeError("Failed to create recipe")
        return _parse_recipe(response.data[0])

    def find_recipe_by_external_id(self, external_id: str) -> Recipe | None:
        """Return the recipe stored under an external id, if present."""
        response = (
            self.client.table("recipes")
            .select(_RECIPE_COLUMNS)
            .eq("external_id", external_id)
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        return _parse_recipe(response.data[0])

    def create_meal(self, payload: dict[str, object]) -> Meal:
        """Create a meal row and return it."""
        response = self.client.table("meals").insert(payload).execute()
        if not response.data:
            raise RuntimeError("Failed to create meal")
        return _parse_meal(response.data[0])


def _grams(value: object, key: str) -> int:
    if isinstance(value, dict):
        return int(value.get(key, 0))
    return 0


def _parse_plan(row: dict[str, object]) -> DietPlan:
    targets = row.get("macro_targets")
    generated_raw = row.get("generated_at")
    return DietPlan(
        id=UUID(row["id"]),
        user_id=UUID(row["user_id"]),
        calorie_target=int(row.get("calorie_target", 0)),
        macro_targets=MacroTargets(
            protein=_grams(targets, "protein"),
            carbs=_grams(targets, "carbs"),
            fat=_grams(targets, "fat"),
        ),
        is_active=bool(row.get("is_active", False)),
        generated_at=(
            datetime.fromisoformat(generated_raw)
            if isinstance(generated_raw, str) and generated_raw
            else None
        ),
    )


def _parse_recipe(row: dict[str, object]) -> Recipe:
    info = row.get("nutritional_info")
    return Recipe(
        id=UUID(row["id"]),
        name=str(row.get("name", "")),
        description=str(row.get("description") or ""),
        ingredients=list(row.get("ingredients") or []),
        instructions=list(row.get("instructions") or []),
        prep_time=int(row.get("prep_time", 0)),
        cook_time=int(row.get("cook_time", 0)),
        nutrition=NutritionSnapshot(
            calories=_grams(info, "calories"),
            protein=_grams(info, "protein"),
            carbs=_grams(info, "carbs"),
            fat=_grams(info, "fat"),
        ),
        source=RecipeSource(row.get("source") or RecipeSource.GENERATED.value),
        external_id=row.get("external_id") or None,
    )


def _parse_meal(row: dict[str, object]) -> Meal:
    macros = row.get("macros")
    calories = int(row.get("calories", 0))
    return Meal(
        id=UUID(row["id"]),
        plan_id=UUID(row["diet_plan_id"]),
        slot=MealSlot(row["meal_type"]),
        recipe_id=UUID(row["recipe_id"]),
        name=str(row.get("name", "")),
        calories=calories,
        macros=NutritionSnapshot(
            calories=calories,
            protein=_grams(macros, "protein"),
            carbs=_grams(macros, "carbs"),
            fat=_grams(macros, "fat"),
        ),
        preparation_time=int(row.get("preparation_time", 0)),
    )
