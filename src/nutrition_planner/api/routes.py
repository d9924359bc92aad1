"""Planner API endpoints: users, diet plans, recipes, progress and subscriptions."""

from __future__ import annotations

from dataclasses import asdict
from datetime import date  # noqa: TC003
from typing import TYPE_CHECKING
from uuid import UUID  # noqa: TC003

from fastapi import APIRouter, Query, Request, status

from nutrition_planner.api.schemas import (  # noqa: TC001
    AddCatalogMealRequest,
    CheckoutRequest,
    CreateUserRequest,
    GeneratePlanRequest,
    ManageSubscriptionRequest,
    ProgressFields,
    ProgressLogRequest,
    UpdateUserRequest,
)
from nutrition_planner.domain.errors import ValidationError
from nutrition_planner.domain.plans import MealSlot  # noqa: TC001

if TYPE_CHECKING:
    from nutrition_planner.containers import AppContainer
    from nutrition_planner.domain.billing import SubscriptionPlan
    from nutrition_planner.domain.models import UserProfile
    from nutrition_planner.domain.plans import DietPlan, ExternalRecipe, Meal, Recipe
    from nutrition_planner.domain.progress import ProgressLog

router = APIRouter()


def _container(request: Request) -> AppContainer:
    return request.app.state.container


@router.post("/users", status_code=status.HTTP_201_CREATED)
async def create_user(body: CreateUserRequest, request: Request) -> dict[str, object]:
    """Register a user profile."""
    user = _container(request).user_service.register(body.model_dump(mode="json"))
    return {"success": True, "data": _user_payload(user)}


@router.get("/users")
async def get_user(
    request: Request,
    user_id: UUID | None = Query(default=None, alias="userId"),
    email: str | None = None,
) -> dict[str, object]:
    """Return a user by id or email."""
    service = _container(request).user_service
    if user_id is not None:
        user = service.get_user(user_id)
    elif email:
        user = service.get_user_by_email(email)
    else:
        raise ValidationError("userId or email is required", field="userId")
    return {"success": True, "data": _user_payload(user)}


@router.patch("/users/{user_id}")
async def update_user(
    user_id: UUID, body: UpdateUserRequest, request: Request
) -> dict[str, object]:
    """Apply a partial profile update."""
    changes = body.model_dump(mode="json", exclude_none=True)
    user = _container(request).user_service.update_profile(user_id, changes)
    return {"success": True, "data": _user_payload(user)}


@router.post("/diet-plans", status_code=status.HTTP_201_CREATED)
async def generate_diet_plan(
    body: GeneratePlanRequest, request: Request
) -> dict[str, object]:
    """Generate a new diet plan for a user."""
    result = await _container(request).plan_orchestrator.generate_plan(
        body.user_id, regenerate=body.regenerate
    )
    return {
        "success": True,
        "data": {
            "plan": _plan_payload(result.plan),
            "meals": [_meal_payload(meal) for meal in result.meals],
            "slots": [
                {
                    "slot": outcome.slot.value,
                    "meal_count": len(outcome.meals),
                    "error": outcome.error,
                }
                for outcome in result.slots
            ],
            "failed_slots": [slot.value for slot in result.failed_slots],
            "explanation": result.explanation,
            "tips": result.tips,
            "warnings": result.warnings,
        },
    }


@router.get("/diet-plans")
async def get_active_diet_plan(
    request: Request, user_id: UUID = Query(alias="userId")
) -> dict[str, object]:
    """Return the user's active plan with its meals."""
    view = await _container(request).plan_orchestrator.get_active_plan(user_id)
    return {
        "success": True,
        "data": {
            "plan": _plan_payload(view.plan),
            "meals": [_meal_payload(meal) for meal in view.meals],
            "explanation": view.explanation,
        },
    }


@router.get("/diet-plans/history")
async def list_diet_plans(
    request: Request, user_id: UUID = Query(alias="userId")
) -> dict[str, object]:
    """Return every plan generated for a user."""
    plans = _container(request).plan_orchestrator.list_plans(user_id)
    return {"success": True, "data": [_plan_payload(plan) for plan in plans]}


@router.post("/diet-plans/meals", status_code=status.HTTP_201_CREATED)
async def add_catalog_meal(
    body: AddCatalogMealRequest, request: Request
) -> dict[str, object]:
    """Add a catalog recipe to the user's active plan."""
    materialized = await _container(request).recipe_catalog.add_to_active_plan(
        body.user_id, body.external_id, body.meal_type
    )
    return {
        "success": True,
        "data": {
            "meal": _meal_payload(materialized.meal),
            "recipe": _recipe_payload(materialized.recipe),
        },
    }


@router.get("/recipes/search")
async def search_recipes(  # noqa: PLR0913
    request: Request,
    query: str = Query(alias="q"),
    meal_type: MealSlot | None = Query(default=None, alias="mealType"),
    diet: list[str] = Query(default=[]),
    health: list[str] = Query(default=[]),
    min_calories: int | None = Query(default=None, alias="minCalories"),
    max_calories: int | None = Query(default=None, alias="maxCalories"),
    limit: int = 10,
) -> dict[str, object]:
    """Search the external recipe catalog."""
    if (min_calories is None) != (max_calories is None):
        raise ValidationError(
            "minCalories and maxCalories must be given together", field="calories"
        )
    calories = (
        (min_calories, max_calories)
        if min_calories is not None and max_calories is not None
        else None
    )
    recipes = await _container(request).recipe_catalog.search(
        query,
        slot=meal_type,
        diet_labels=diet,
        health_labels=health,
        calories=calories,
        limit=limit,
    )
    return {"success": True, "data": [_external_recipe_payload(r) for r in recipes]}


@router.post("/progress")
async def log_progress(body: ProgressLogRequest, request: Request) -> dict[str, object]:
    """Create or update the progress log for a day."""
    fields = body.model_dump(
        include={"weight", "food_consumed", "adherence_score", "notes"},
        exclude_none=True,
    )
    log = _container(request).progress_aggregator.upsert_log(
        body.user_id, fields, log_date=body.log_date
    )
    return {"success": True, "data": _log_payload(log)}


@router.get("/progress")
async def get_progress(
    request: Request,
    user_id: UUID = Query(alias="userId"),
    days: int = 30,
    start: date | None = Query(default=None, alias="startDate"),
    end: date | None = Query(default=None, alias="endDate"),
) -> dict[str, object]:
    """Return logs, stats and optional insights for a window."""
    report = await _container(request).progress_aggregator.get_progress(
        user_id, window_days=days, start=start, end=end
    )
    return {
        "success": True,
        "data": {
            "logs": [_log_payload(log) for log in report.logs],
            "stats": asdict(report.stats),
            "insights": asdict(report.insights) if report.insights else None,
        },
    }


@router.put("/progress/{log_id}")
async def update_progress(
    log_id: UUID, body: ProgressFields, request: Request
) -> dict[str, object]:
    """Partially update a progress log by id."""
    log = _container(request).progress_aggregator.update_log(
        log_id, body.model_dump(exclude_none=True)
    )
    return {"success": True, "data": _log_payload(log)}


@router.get("/subscriptions")
async def get_subscription(
    request: Request, user_id: UUID | None = Query(default=None, alias="userId")
) -> dict[str, object]:
    """Return the plan catalog, plus the user's current plan when given."""
    service = _container(request).billing_service
    if user_id is None:
        return {
            "success": True,
            "data": {"plans": [_subscription_payload(p) for p in service.list_plans()]},
        }
    current, plans = service.get_subscription(user_id)
    return {
        "success": True,
        "data": {
            "current_plan": _subscription_payload(current),
            "plans": [_subscription_payload(plan) for plan in plans],
        },
    }


@router.post("/subscriptions/checkout")
async def start_checkout(body: CheckoutRequest, request: Request) -> dict[str, object]:
    """Create a hosted checkout session for a paid plan."""
    session = await _container(request).billing_service.start_checkout(
        body.user_id, body.plan_id, body.success_url, body.cancel_url
    )
    return {"success": True, "data": {"session_id": session.id, "url": session.url}}


@router.put("/subscriptions")
async def manage_subscription(
    body: ManageSubscriptionRequest, request: Request
) -> dict[str, object]:
    """Cancel or reactivate a subscription, or open the billing portal."""
    container = _container(request)
    service = container.billing_service
    if body.action == "portal":
        return_url = body.return_url or container.settings.billing_portal_return_url
        if not return_url:
            raise ValidationError("return_url is required", field="return_url")
        portal = await service.create_portal_session(body.user_id, return_url)
        return {"success": True, "data": {"portal_url": portal.url}}

    if not body.subscription_id:
        raise ValidationError("subscription_id is required", field="subscription_id")
    if body.action == "cancel":
        subscription = await service.cancel_subscription(
            body.user_id, body.subscription_id
        )
    else:
        subscription = await service.reactivate_subscription(
            body.user_id, body.subscription_id
        )
    return {
        "success": True,
        "data": {
            "subscription": {
                "id": subscription.id,
                "status": subscription.status,
                "cancel_at_period_end": subscription.cancel_at_period_end,
                "current_period_end": subscription.current_period_end,
            }
        },
    }


def _user_payload(user: UserProfile) -> dict[str, object]:
    return {
        "id": str(user.id),
        "name": user.name,
        "email": user.email,
        "age": user.age,
        "weight": user.weight,
        "height": user.height,
        "activity_level": user.activity_level.value,
        "dietary_preferences": sorted(user.dietary_preferences),
        "health_goals": sorted(user.health_goals),
        "subscription_tier": user.subscription_tier.value,
        "created_at": user.created_at.isoformat() if user.created_at else None,
        "updated_at": user.updated_at.isoformat() if user.updated_at else None,
    }


def _plan_payload(plan: DietPlan) -> dict[str, object]:
    return {
        "id": str(plan.id),
        "user_id": str(plan.user_id),
        "calorie_target": plan.calorie_target,
        "macro_targets": asdict(plan.macro_targets),
        "is_active": plan.is_active,
        "generated_at": plan.generated_at.isoformat() if plan.generated_at else None,
    }


def _meal_payload(meal: Meal) -> dict[str, object]:
    return {
        "id": str(meal.id),
        "plan_id": str(meal.plan_id),
        "meal_type": meal.slot.value,
        "recipe_id": str(meal.recipe_id),
        "name": meal.name,
        "calories": meal.calories,
        "macros": {
            "protein": meal.macros.protein,
            "carbs": meal.macros.carbs,
            "fat": meal.macros.fat,
        },
        "preparation_time": meal.preparation_time,
    }


def _recipe_payload(recipe: Recipe) -> dict[str, object]:
    return {
        "id": str(recipe.id),
        "name": recipe.name,
        "description": recipe.description,
        "ingredients": recipe.ingredients,
        "instructions": recipe.instructions,
        "prep_time": recipe.prep_time,
        "cook_time": recipe.cook_time,
        "nutritional_info": asdict(recipe.nutrition),
        "source": recipe.source.value,
        "external_id": recipe.external_id,
    }


def _external_recipe_payload(recipe: ExternalRecipe) -> dict[str, object]:
    return {
        "external_id": recipe.external_id,
        "name": recipe.name,
        "description": recipe.description,
        "url": recipe.url,
        "ingredients": recipe.ingredients,
        "total_time": recipe.total_time,
        "servings": recipe.servings,
        "nutrition": asdict(recipe.nutrition),
    }


def _log_payload(log: ProgressLog) -> dict[str, object]:
    return {
        "id": str(log.id),
        "user_id": str(log.user_id),
        "log_date": log.log_date.isoformat(),
        "weight": log.weight,
        "food_consumed": log.food_consumed,
        "adherence_score": log.adherence_score,
        "notes": log.notes,
    }


def _subscription_payload(plan: SubscriptionPlan) -> dict[str, object]:
    return {
        "id": plan.tier.value,
        "name": plan.name,
        "description": plan.description,
        "price": plan.price,
        "interval": plan.interval,
        "features": plan.features,
    }
