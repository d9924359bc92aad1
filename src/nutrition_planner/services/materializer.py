"""Turns meal suggestions and catalog recipes into persisted recipes and meals."""

from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from typing import Protocol
from uuid import UUID

from nutrition_planner.domain.plans import (
    ExternalRecipe,
    Meal,
    MealSlot,
    NutritionSnapshot,
    Recipe,
    RecipeSource,
)
from nutrition_planner.domain.recommendations import MealSuggestion

KCAL_PER_GRAM_PROTEIN = 4
KCAL_PER_GRAM_CARBS = 4
KCAL_PER_GRAM_FAT = 9

DISCLAIMER = "Follow standard cooking practices and adjust ingredients to taste."


class RecipeRepository(Protocol):
    """Persistence interface for recipes and meals."""

    def create_recipe(self, payload: dict[str, object]) -> Recipe:
        """Create a recipe and return it."""

    def find_recipe_by_external_id(self, external_id: str) -> Recipe | None:
        """Return the recipe stored under an external id, if present."""

    def create_meal(self, payload: dict[str, object]) -> Meal:
        """Create a meal row and return it."""


@dataclass(frozen=True)
class MacroSplitPolicy:
    """Fallback macro split and cook-time heuristics.

    These are placeholder product constants, not physiology: the split is
    applied only when a suggestion carries no macro breakdown, and cook time
    is estimated as prep time minus a fixed offset. Catalog recipes only
    report a total time, which is split into prep and a capped cook time.
    """

    protein_share: float = 0.15
    carbs_share: float = 0.50
    fat_share: float = 0.35
    cook_time_offset_minutes: int = 10
    external_cook_time_cap_minutes: int = 20
    external_default_total_minutes: int = 30

    def split(self, calories: int) -> NutritionSnapshot:
        """Derive gram macros from total calories."""
        return NutritionSnapshot(
            calories=calories,
            protein=round_half_up(calories * self.protein_share / KCAL_PER_GRAM_PROTEIN),
            carbs=round_half_up(calories * self.carbs_share / KCAL_PER_GRAM_CARBS),
            fat=round_half_up(calories * self.fat_share / KCAL_PER_GRAM_FAT),
        )

    def cook_time(self, prep_time: int) -> int:
        """Estimate cook time from prep time."""
        return max(0, prep_time - self.cook_time_offset_minutes)

    def split_total_time(self, total_time: int | None) -> tuple[int, int]:
        """Return (prep, cook) minutes for a catalog recipe's total time."""
        total = total_time or self.external_default_total_minutes
        cook = min(total, self.external_cook_time_cap_minutes)
        return max(0, total - self.external_cook_time_cap_minutes), cook


@dataclass(frozen=True)
class MaterializedMeal:
    """A recipe and the meal row that references it."""

    recipe: Recipe
    meal: Meal


@dataclass
class RecipeMaterializer:
    """Persists recipes plus meals linked to a plan."""

    repository: RecipeRepository
    policy: MacroSplitPolicy = field(default_factory=MacroSplitPolicy)

    def materialize(
        self, plan_id: UUID, suggestion: MealSuggestion, slot: MealSlot
    ) -> MaterializedMeal:
        """Create a generated recipe for the suggestion and schedule it."""
        nutrition = self.nutrition_for(suggestion)
        recipe = self.repository.create_recipe(
            {
                "name": suggestion.name,
                "description": suggestion.description,
                "ingredients": list(suggestion.ingredients),
                "instructions": build_instructions(suggestion, slot),
                "prep_time": suggestion.prep_time,
                "cook_time": self.policy.cook_time(suggestion.prep_time),
                "nutritional_info": _nutrition_payload(nutrition),
                "source": RecipeSource.GENERATED.value,
                "external_id": None,
            }
        )
        return self.schedule(plan_id, recipe, slot)

    def materialize_external(
        self, plan_id: UUID, external: ExternalRecipe, slot: MealSlot
    ) -> MaterializedMeal:
        """Reuse the stored copy of a catalog recipe, or store it, then schedule it."""
        recipe = self.repository.find_recipe_by_external_id(external.external_id)
        if recipe is None:
            prep_time, cook_time = self.policy.split_total_time(external.total_time)
            recipe = self.repository.create_recipe(
                {
                    "name": external.name,
                    "description": external.description,
                    "ingredients": list(external.ingredients),
                    "instructions": build_external_instructions(external),
                    "prep_time": prep_time,
                    "cook_time": cook_time,
                    "nutritional_info": _nutrition_payload(external.nutrition),
                    "source": RecipeSource.EXTERNAL.value,
                    "external_id": external.external_id,
                }
            )
        return self.schedule(plan_id, recipe, slot)

    def schedule(
        self, plan_id: UUID, recipe: Recipe, slot: MealSlot
    ) -> MaterializedMeal:
        """Create a meal row snapshotting the recipe's nutrition."""
        meal = self.repository.create_meal(
            {
                "diet_plan_id": str(plan_id),
                "meal_type": slot.value,
                "recipe_id": str(recipe.id),
                "name": recipe.name,
                "calories": recipe.nutrition.calories,
                "macros": {
                    "protein": recipe.nutrition.protein,
                    "carbs": recipe.nutrition.carbs,
                    "fat": recipe.nutrition.fat,
                },
                "preparation_time": recipe.prep_time + recipe.cook_time,
            }
        )
        return MaterializedMeal(recipe=recipe, meal=meal)

    def nutrition_for(self, suggestion: MealSuggestion) -> NutritionSnapshot:
        """Use explicit macros when supplied, else the policy split."""
        if suggestion.macros is not None:
            return NutritionSnapshot(
                calories=suggestion.estimated_calories,
                protein=suggestion.macros.protein,
                carbs=suggestion.macros.carbs,
                fat=suggestion.macros.fat,
            )
        return self.policy.split(suggestion.estimated_calories)


def build_instructions(suggestion: MealSuggestion, slot: MealSlot) -> list[str]:
    """Build the instruction list from suggestion metadata."""
    return [
        f"This is a generated recipe suggestion for {slot.value}.",
        f"Preparation time: {suggestion.prep_time} minutes",
        f"Difficulty: {suggestion.difficulty}",
        DISCLAIMER,
        *(f"• {benefit}" for benefit in suggestion.benefits),
    ]


def build_external_instructions(external: ExternalRecipe) -> list[str]:
    """Catalog recipes only link to their source's method."""
    instructions = ["This recipe is from an external source."]
    if external.url:
        instructions.append(f"Visit the original recipe at: {external.url}")
    instructions.append("Follow the instructions provided on the source website.")
    return instructions


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from zero."""
    return int(Decimal(str(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def _nutrition_payload(nutrition: NutritionSnapshot) -> dict[str, int]:
    return {
        "calories": nutrition.calories,
        "protein": nutrition.protein,
        "carbs": nutrition.carbs,
        "fat": nutrition.fat,
    }
