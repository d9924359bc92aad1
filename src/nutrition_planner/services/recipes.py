"""External recipe catalog search and scheduling into plans."""

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from uuid import UUID

import httpx

from nutrition_planner.adapters.edamam_client import EdamamClient
from nutrition_planner.domain.errors import (
    NotFoundError,
    UpstreamFailure,
    ValidationError,
)
from nutrition_planner.domain.plans import ExternalRecipe, MealSlot, NutritionSnapshot
from nutrition_planner.services.materializer import (
    MaterializedMeal,
    RecipeMaterializer,
    round_half_up,
)
from nutrition_planner.services.plans import PlanRepository

_logger = logging.getLogger(__name__)

RECIPE_URI_MARKER = "#recipe_"
MAX_SEARCH_RESULTS = 50
_NUTRIENT_CODES = {"protein": "PROCNT", "carbs": "CHOCDF", "fat": "FAT"}
_CATALOG_MEAL_TYPES = {
    MealSlot.BREAKFAST: "Breakfast",
    MealSlot.LUNCH: "Lunch",
    MealSlot.DINNER: "Dinner",
    MealSlot.SNACK: "Snack",
}


@dataclass
class RecipeCatalogService:
    """Searches the external catalog and adds its recipes to active plans."""

    client: EdamamClient
    plans: PlanRepository
    materializer: RecipeMaterializer

    async def search(  # noqa: PLR0913
        self,
        query: str,
        *,
        slot: MealSlot | None = None,
        diet_labels: Sequence[str] = (),
        health_labels: Sequence[str] = (),
        calories: tuple[int, int] | None = None,
        limit: int = 10,
    ) -> list[ExternalRecipe]:
        """Search catalog recipes, nutrition converted to one serving."""
        if not query.strip():
            raise ValidationError("query is required", field="query")
        if not 1 <= limit <= MAX_SEARCH_RESULTS:
            raise ValidationError(
                f"limit must be between 1 and {MAX_SEARCH_RESULTS}", field="limit"
            )
        if calories is not None and not 0 <= calories[0] <= calories[1]:
            raise ValidationError("invalid calorie range", field="calories")
        try:
            payload = await self.client.search_recipes(
                query.strip(),
                meal_types=[_CATALOG_MEAL_TYPES[slot]] if slot else (),
                diet_labels=diet_labels,
                health_labels=health_labels,
                calories=calories,
                limit=limit,
            )
            recipes = [convert_recipe(hit["recipe"]) for hit in payload.get("hits", [])]
        except Exception as exc:
            raise UpstreamFailure("search_recipes", str(exc)) from exc
        _logger.info("Recipe search: query=%s results=%s", query, len(recipes))
        return recipes

    async def get_recipe(self, external_id: str) -> ExternalRecipe:
        """Fetch one catalog recipe."""
        try:
            return convert_recipe(await self.client.get_recipe(external_id))
        except httpx.HTTPStatusError as exc:
            if exc.response.status_code == httpx.codes.NOT_FOUND:
                raise NotFoundError("Recipe", external_id) from exc
            raise UpstreamFailure("get_recipe", str(exc)) from exc
        except Exception as exc:
            raise UpstreamFailure("get_recipe", str(exc)) from exc

    async def add_to_active_plan(
        self, user_id: UUID, external_id: str, slot: MealSlot
    ) -> MaterializedMeal:
        """Schedule a catalog recipe into the user's active plan.

        A recipe already stored under the same external id is reused without
        contacting the catalog.
        """
        plan = self.plans.get_active_plan(user_id)
        if plan is None:
            raise NotFoundError("Active diet plan", user_id)
        stored = self.plans.find_recipe_by_external_id(external_id)
        if stored is not None:
            materialized = self.materializer.schedule(plan.id, stored, slot)
        else:
            external = await self.get_recipe(external_id)
            materialized = self.materializer.materialize_external(
                plan.id, external, slot
            )
        _logger.info(
            "Added catalog recipe %s to plan %s (%s)",
            external_id,
            plan.id,
            slot.value,
            extra={"plan_id": str(plan.id), "slot": slot.value},
        )
        return materialized


def convert_recipe(raw: Mapping[str, object]) -> ExternalRecipe:
    """Convert a raw catalog recipe into a per-serving `ExternalRecipe`."""
    uri = str(raw["uri"])
    _, marker, suffix = uri.partition(RECIPE_URI_MARKER)
    servings = _number(raw.get("yield")) or 1.0
    nutrients = raw.get("totalNutrients")
    if not isinstance(nutrients, dict):
        nutrients = {}
    macros = {
        name: round_half_up(_nutrient_quantity(nutrients, code) / servings)
        for name, code in _NUTRIENT_CODES.items()
    }
    total_time = _number(raw.get("totalTime"))
    source = raw.get("source") or "External"
    return ExternalRecipe(
        external_id=suffix if marker else uri,
        name=str(raw["label"]),
        description=f"{source} recipe with {servings:g} servings",
        url=str(raw["url"]) if raw.get("url") else None,
        ingredients=[str(line) for line in raw.get("ingredientLines") or []],
        total_time=int(total_time) if total_time else None,
        nutrition=NutritionSnapshot(
            calories=round_half_up(_number(raw.get("calories")) / servings),
            **macros,
        ),
        servings=max(1, round_half_up(servings)),
    )


def _nutrient_quantity(nutrients: Mapping[str, object], code: str) -> float:
    entry = nutrients.get(code)
    if not isinstance(entry, dict):
        return 0.0
    return _number(entry.get("quantity"))


def _number(value: object) -> float:
    if isinstance(value, bool) or not isinstance(value, int | float):
        return 0.0
    return float(value) if value > 0 else 0.0
