"""Domain models for diet plans, meals and recipes."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from uuid import UUID


class MealSlot(StrEnum):
    """Daily eating occasions a plan allocates calories to."""

    BREAKFAST = "breakfast"
    LUNCH = "lunch"
    DINNER = "dinner"
    SNACK = "snack"


PRIMARY_SLOTS: tuple[MealSlot, ...] = (
    MealSlot.BREAKFAST,
    MealSlot.LUNCH,
    MealSlot.DINNER,
)

SLOT_CALORIE_SHARES: dict[MealSlot, float] = {
    MealSlot.BREAKFAST: 0.25,
    MealSlot.LUNCH: 0.35,
    MealSlot.DINNER: 0.35,
    MealSlot.SNACK: 0.05,
}


class RecipeSource(StrEnum):
    """Provenance tag for recipes."""

    GENERATED = "generated"
    EXTERNAL = "external"


@dataclass(frozen=True)
class MacroTargets:
    """Daily macronutrient targets in grams."""

    protein: int
    carbs: int
    fat: int


@dataclass(frozen=True)
class NutritionSnapshot:
    """Calories and macros captured at creation time."""

    calories: int
    protein: int
    carbs: int
    fat: int


@dataclass(frozen=True)
class DietPlan:
    """A calorie and macro plan for one user."""

    id: UUID
    user_id: UUID
    calorie_target: int
    macro_targets: MacroTargets
    is_active: bool
    generated_at: datetime | None = None


@dataclass(frozen=True)
class Recipe:
    """Immutable recipe materialized from a suggestion."""

    id: UUID
    name: str
    description: str
    ingredients: list[str]
    instructions: list[str]
    prep_time: int
    cook_time: int
    nutrition: NutritionSnapshot
    source: RecipeSource
    external_id: str | None = None


@dataclass(frozen=True)
class Meal:
    """A recipe scheduled into a plan slot."""

    id: UUID
    plan_id: UUID
    slot: MealSlot
    recipe_id: UUID
    name: str
    calories: int
    macros: NutritionSnapshot
    preparation_time: int


@dataclass(frozen=True)
class SlotOutcome:
    """Result of generating meals for one slot."""

    slot: MealSlot
    meals: list[Meal] = field(default_factory=list)
    error: str | None = None

    @property
    def ok(self) -> bool:
        """Return True when the slot completed without error."""
        return self.error is None


@dataclass(frozen=True)
class PlanGeneration:
    """Outcome of a plan generation run."""

    plan: DietPlan
    slots: list[SlotOutcome]
    explanation: str
    tips: list[str]
    warnings: list[str]

    @property
    def meals(self) -> list[Meal]:
        """Meals in slot order, then suggestion order."""
        return [meal for outcome in self.slots for meal in outcome.meals]

    @property
    def failed_slots(self) -> list[MealSlot]:
        """Slots whose generation did not complete."""
        return [outcome.slot for outcome in self.slots if not outcome.ok]

    @property
    def is_degraded(self) -> bool:
        """Return True when any slot failed."""
        return bool(self.failed_slots)


@dataclass(frozen=True)
class ActivePlanView:
    """The active plan with its meals and a narrated explanation."""

    plan: DietPlan
    meals: list[Meal]
    explanation: str


@dataclass(frozen=True)
class ExternalRecipe:
    """A recipe from the external catalog, nutrition per serving."""

    external_id: str
    name: str
    description: str
    url: str | None
    ingredients: list[str]
    total_time: int | None
    nutrition: NutritionSnapshot
    servings: int = 1
