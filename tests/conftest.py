"""Shared test fixtures."""

import asyncio
from collections.abc import Sequence
from dataclasses import dataclass, field, replace
from datetime import UTC, date, datetime
from uuid import UUID, uuid4

import httpx
import pytest

from nutrition_planner.adapters.edamam_client import EdamamClient
from nutrition_planner.config import Settings
from nutrition_planner.containers import AppContainer
from nutrition_planner.domain.billing import (
    CheckoutSession,
    PortalSession,
    ProviderSubscription,
)
from nutrition_planner.domain.models import ActivityLevel, SubscriptionTier, UserProfile
from nutrition_planner.domain.plans import (
    DietPlan,
    MacroTargets,
    Meal,
    MealSlot,
    NutritionSnapshot,
    Recipe,
    RecipeSource,
)
from nutrition_planner.domain.progress import ProgressLog
from nutrition_planner.services.billing import (
    BillingProvider,
    BillingService,
    SubscriptionReconciler,
    build_price_tiers,
)
from nutrition_planner.services.materializer import RecipeMaterializer
from nutrition_planner.services.plans import (
    PlanOrchestrator,
    PlanRepository,
    active_plan_conflict,
)
from nutrition_planner.services.progress import ProgressAggregator, ProgressRepository
from nutrition_planner.services.recipes import RecipeCatalogService
from nutrition_planner.services.recommendations import (
    RecommendationClient,
    RecommendationEngine,
)
from nutrition_planner.services.users import UserRepository, UserService

TODAY = date(2024, 3, 15)
BASIC_PRICE_ID = "price_basic"
PREMIUM_PRICE_ID = "price_premium"


def make_profile(**overrides: object) -> UserProfile:
    values: dict[str, object] = {
        "id": uuid4(),
        "name": "Ada",
        "email": f"ada-{uuid4().hex[:8]}@example.com",
        "age": 34,
        "weight": 165.0,
        "height": 66.0,
        "activity_level": ActivityLevel.MODERATE,
        "dietary_preferences": frozenset({"vegetarian"}),
        "health_goals": frozenset({"weight_loss"}),
    }
    values.update(overrides)
    return UserProfile(**values)  # type: ignore[arg-type]


def suggestion(name: str, calories: int = 400, **overrides: object) -> dict[str, object]:
    payload: dict[str, object] = {
        "name": name,
        "description": f"{name} description",
        "estimated_calories": calories,
        "prep_time": 20,
        "difficulty": "easy",
        "ingredients": ["oats", "berries"],
        "benefits": ["High fiber"],
        "macros": None,
    }
    payload.update(overrides)
    return payload


def meal_payload(slot: str, count: int = 3) -> dict[str, object]:
    return {
        "meal_type": slot,
        "suggestions": [suggestion(f"{slot.title()} option {i}") for i in range(count)],
    }


def targets_payload(calories: int = 2000) -> dict[str, object]:
    return {
        "calorie_target": calories,
        "macro_targets": {"protein": 120, "carbs": 220, "fat": 70},
        "explanation": "Moderate deficit for steady weight loss.",
        "tips": ["Drink water", "Prioritize protein"],
        "warnings": [],
    }


@dataclass
class InMemoryUserRepository(UserRepository):
    """In-memory user repository for tests."""

    users: dict[UUID, UserProfile] = field(default_factory=dict)
    updates: list[tuple[UUID, dict[str, object]]] = field(default_factory=list)

    def add(self, profile: UserProfile) -> UserProfile:
        self.users[profile.id] = profile
        return profile

    def create_user(self, payload: dict[str, object]) -> UserProfile:
        now = datetime.now(tz=UTC)
        profile = UserProfile(
            id=uuid4(),
            name=str(payload["name"]),
            email=str(payload["email"]),
            age=int(payload["age"]),
            weight=float(payload["weight"]),
            height=float(payload["height"]),
            activity_level=ActivityLevel(payload["activity_level"]),
            dietary_preferences=frozenset(payload.get("dietary_preferences") or []),
            health_goals=frozenset(payload.get("health_goals") or []),
            created_at=now,
            updated_at=now,
        )
        return self.add(profile)

    def get_by_id(self, user_id: UUID) -> UserProfile | None:
        return self.users.get(user_id)

    def get_by_email(self, email: str) -> UserProfile | None:
        for profile in self.users.values():
            if profile.email == email:
                return profile
        return None

    def update_user(self, user_id: UUID, changes: dict[str, object]) -> UserProfile:
        self.updates.append((user_id, changes))
        values = dict(changes)
        if "activity_level" in values:
            values["activity_level"] = ActivityLevel(values["activity_level"])
        if "subscription_tier" in values:
            values["subscription_tier"] = SubscriptionTier(values["subscription_tier"])
        for key in ("dietary_preferences", "health_goals"):
            if key in values:
                values[key] = frozenset(values[key])  # type: ignore[arg-type]
        updated = replace(
            self.users[user_id], **values, updated_at=datetime.now(tz=UTC)
        )
        self.users[user_id] = updated
        return updated


@dataclass
class InMemoryPlanRepository(PlanRepository):
    """In-memory plan, recipe and meal repository for tests."""

    plans: list[DietPlan] = field(default_factory=list)
    recipes: dict[UUID, Recipe] = field(default_factory=dict)
    meals: list[Meal] = field(default_factory=list)
    failing_meal_names: set[str] = field(default_factory=set)

    def create_plan(
        self,
        user_id: UUID,
        calorie_target: int,
        macro_targets: MacroTargets,
        *,
        replace_active: bool,
    ) -> DietPlan:
        if not replace_active and any(
            plan.user_id == user_id and plan.is_active for plan in self.plans
        ):
            raise active_plan_conflict(user_id)
        self.plans = [
            replace(plan, is_active=False) if plan.user_id == user_id else plan
            for plan in self.plans
        ]
        plan = DietPlan(
            id=uuid4(),
            user_id=user_id,
            calorie_target=calorie_target,
            macro_targets=macro_targets,
            is_active=True,
            generated_at=datetime.now(tz=UTC),
        )
        self.plans.append(plan)
        return plan

    def get_active_plan(self, user_id: UUID) -> DietPlan | None:
        for plan in self.plans:
            if plan.user_id == user_id and plan.is_active:
                return plan
        return None

    def list_plans(self, user_id: UUID) -> list[DietPlan]:
        return [plan for plan in reversed(self.plans) if plan.user_id == user_id]

    def list_meals_by_plan(self, plan_id: UUID) -> list[Meal]:
        return [meal for meal in self.meals if meal.plan_id == plan_id]

    def create_recipe(self, payload: dict[str, object]) -> Recipe:
        info = payload["nutritional_info"]
        recipe = Recipe(
            id=uuid4(),
            name=str(payload["name"]),
            description=str(payload["description"]),
            ingredients=list(payload["ingredients"]),  # type: ignore[arg-type]
            instructions=list(payload["instructions"]),  # type: ignore[arg-type]
            prep_time=int(payload["prep_time"]),
            cook_time=int(payload["cook_time"]),
            nutrition=NutritionSnapshot(**info),  # type: ignore[arg-type]
            source=RecipeSource(payload["source"]),
            external_id=payload.get("external_id"),  # type: ignore[arg-type]
        )
        self.recipes[recipe.id] = recipe
        return recipe

    def find_recipe_by_external_id(self, external_id: str) -> Recipe | None:
        for recipe in self.recipes.values():
            if recipe.external_id == external_id:
                return recipe
        return None

    def create_meal(self, payload: dict[str, object]) -> Meal:
        if payload["name"] in self.failing_meal_names:
            raise RuntimeError("Failed to create meal")
        macros = payload["macros"]
        meal = Meal(
            id=uuid4(),
            plan_id=UUID(str(payload["diet_plan_id"])),
            slot=MealSlot(payload["meal_type"]),
            recipe_id=UUID(str(payload["recipe_id"])),
            name=str(payload["name"]),
            calories=int(payload["calories"]),
            macros=NutritionSnapshot(
                calories=int(payload["calories"]),
                **macros,  # type: ignore[arg-type]
            ),
            preparation_time=int(payload["preparation_time"]),
        )
        self.meals.append(meal)
        return meal


@dataclass
class InMemoryProgressRepository(ProgressRepository):
    """In-memory progress log repository for tests."""

    logs: dict[UUID, ProgressLog] = field(default_factory=dict)

    def add(self, log: ProgressLog) -> ProgressLog:
        self.logs[log.id] = log
        return log

    def get_log_by_date(self, user_id: UUID, log_date: date) -> ProgressLog | None:
        for log in self.logs.values():
            if log.user_id == user_id and log.log_date == log_date:
                return log
        return None

    def get_log(self, log_id: UUID) -> ProgressLog | None:
        return self.logs.get(log_id)

    def upsert_log(
        self, user_id: UUID, log_date: date, fields: dict[str, object]
    ) -> ProgressLog:
        existing = self.get_log_by_date(user_id, log_date)
        if existing is not None:
            return self.update_log(existing.id, fields)
        log = ProgressLog(
            id=uuid4(),
            user_id=user_id,
            log_date=log_date,
            weight=float(fields["weight"]),
            food_consumed=list(fields.get("food_consumed") or []),  # type: ignore[arg-type]
            adherence_score=int(fields["adherence_score"]),
            notes=fields.get("notes"),  # type: ignore[arg-type]
        )
        return self.add(log)

    def update_log(self, log_id: UUID, fields: dict[str, object]) -> ProgressLog:
        updated = replace(self.logs[log_id], **fields)
        self.logs[log_id] = updated
        return updated

    def list_logs_in_range(
        self, user_id: UUID, start: date, end: date
    ) -> list[ProgressLog]:
        return sorted(
            (
                log
                for log in self.logs.values()
                if log.user_id == user_id and start <= log.log_date <= end
            ),
            key=lambda log: log.log_date,
        )


@dataclass
class FakeRecommendationClient(RecommendationClient):
    """Fake model client with canned payloads or errors per operation."""

    targets: object = field(default_factory=targets_payload)
    meals: dict[str, object] = field(
        default_factory=lambda: {
            slot.value: meal_payload(slot.value) for slot in MealSlot
        }
    )
    narration: object = "Eat balanced meals and stay consistent."
    progress: object = field(
        default_factory=lambda: {
            "insights": ["Weight is trending down"],
            "recommendations": ["Keep logging daily"],
            "motivation": "Great work!",
        }
    )
    delay_seconds: float = 0.0
    slot_delays: dict[str, float] = field(default_factory=dict)
    calls: list[str] = field(default_factory=list)
    prompts: list[str] = field(default_factory=list)

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
        self.calls.append(schema_name)
        self.prompts.append(prompt)
        if self.delay_seconds:
            await asyncio.sleep(self.delay_seconds)
        if schema_name == "nutrition_targets":
            return self._resolve(self.targets)
        if schema_name == "meal_suggestions":
            slot = next(name for name in self.meals if f" {name} options" in prompt)
            if slot in self.slot_delays:
                await asyncio.sleep(self.slot_delays[slot])
            return self._resolve(self.meals[slot])
        return self._resolve(self.progress)

    async def generate_text(  # noqa: PLR0913
        self,
        *,
        model: str,
        reasoning_effort: str | None,
        store: bool,
        instructions: str,
        prompt: str,
    ) -> str:
        self.calls.append("narration")
        return self._resolve(self.narration)  # type: ignore[return-value]

    @staticmethod
    def _resolve(value: object):  # type: ignore[no-untyped-def]
        if isinstance(value, Exception):
            raise value
        return value


@dataclass
class FakeBillingProvider(BillingProvider):
    """Fake billing provider that records customers, sessions and portals."""

    customers: list[tuple[str, str, UUID]] = field(default_factory=list)
    sessions: list[dict[str, object]] = field(default_factory=list)
    subscriptions: dict[str, ProviderSubscription] = field(default_factory=dict)
    portal_sessions: list[tuple[str, str]] = field(default_factory=list)
    error: Exception | None = None

    async def create_customer(self, email: str, name: str, user_id: UUID) -> str:
        if self.error is not None:
            raise self.error
        self.customers.append((email, name, user_id))
        return f"cus_{len(self.customers)}"

    async def create_checkout_session(  # noqa: PLR0913
        self,
        *,
        customer_id: str,
        price_id: str,
        user_id: UUID,
        success_url: str,
        cancel_url: str,
    ) -> CheckoutSession:
        if self.error is not None:
            raise self.error
        self.sessions.append(
            {"customer_id": customer_id, "price_id": price_id, "user_id": user_id}
        )
        session_id = f"cs_{len(self.sessions)}"
        return CheckoutSession(id=session_id, url=f"https://pay.test/{session_id}")

    async def get_subscription(self, subscription_id: str) -> ProviderSubscription:
        if self.error is not None:
            raise self.error
        if subscription_id not in self.subscriptions:
            raise LookupError(f"No such subscription: {subscription_id}")
        return self.subscriptions[subscription_id]

    async def update_subscription(
        self, subscription_id: str, *, cancel_at_period_end: bool
    ) -> ProviderSubscription:
        if self.error is not None:
            raise self.error
        updated = replace(
            self.subscriptions[subscription_id],
            cancel_at_period_end=cancel_at_period_end,
        )
        self.subscriptions[subscription_id] = updated
        return updated

    async def create_portal_session(
        self, customer_id: str, return_url: str
    ) -> PortalSession:
        if self.error is not None:
            raise self.error
        self.portal_sessions.append((customer_id, return_url))
        return PortalSession(url=f"https://portal.test/{customer_id}")


def edamam_recipe(  # noqa: PLR0913
    recipe_id: str,
    label: str,
    calories: float = 800.0,
    servings: float = 2.0,
    total_time: float = 40.0,
    **overrides: object,
) -> dict[str, object]:
    payload: dict[str, object] = {
        "uri": f"http://www.edamam.com/ontologies/edamam.owl#recipe_{recipe_id}",
        "label": label,
        "source": "Food52",
        "url": f"https://food52.test/{recipe_id}",
        "yield": servings,
        "ingredientLines": ["2 cups rice", "1 salmon fillet"],
        "calories": calories,
        "totalTime": total_time,
        "totalNutrients": {
            "PROCNT": {"label": "Protein", "quantity": 61.0, "unit": "g"},
            "CHOCDF": {"label": "Carbs", "quantity": 90.0, "unit": "g"},
            "FAT": {"label": "Fat", "quantity": 25.0, "unit": "g"},
        },
    }
    payload.update(overrides)
    return payload


@dataclass
class FakeEdamamClient(EdamamClient):
    """Fake recipe catalog keyed by recipe id."""

    recipes: dict[str, dict[str, object]] = field(default_factory=dict)
    searches: list[dict[str, object]] = field(default_factory=list)
    fetched: list[str] = field(default_factory=list)
    error: Exception | None = None

    async def search_recipes(  # noqa: PLR0913
        self,
        query: str,
        *,
        meal_types: Sequence[str] = (),
        diet_labels: Sequence[str] = (),
        health_labels: Sequence[str] = (),
        calories: tuple[int, int] | None = None,
        limit: int = 10,
    ) -> dict[str, object]:
        if self.error is not None:
            raise self.error
        self.searches.append(
            {
                "query": query,
                "meal_types": list(meal_types),
                "diet_labels": list(diet_labels),
                "health_labels": list(health_labels),
                "calories": calories,
                "limit": limit,
            }
        )
        hits = [{"recipe": recipe} for recipe in self.recipes.values()]
        return {"hits": hits[:limit]}

    async def get_recipe(self, recipe_id: str) -> dict[str, object]:
        if self.error is not None:
            raise self.error
        self.fetched.append(recipe_id)
        if recipe_id not in self.recipes:
            request = httpx.Request("GET", f"https://edamam.test/{recipe_id}")
            response = httpx.Response(404, request=request)
            raise httpx.HTTPStatusError(
                "Not Found", request=request, response=response
            )
        return self.recipes[recipe_id]


@pytest.fixture
def settings() -> Settings:
    return Settings(
        supabase_url="https://example.supabase.co",
        supabase_service_key="service-key",
        openai_api_key="openai-key",
        stripe_secret_key="sk_test_key",
        stripe_webhook_secret="whsec_test",
        stripe_basic_price_id=BASIC_PRICE_ID,
        stripe_premium_price_id=PREMIUM_PRICE_ID,
        billing_portal_return_url="https://app.test/dashboard",
        edamam_app_id="edamam-app",
        edamam_app_key="edamam-key",
    )


@pytest.fixture
def user_repository() -> InMemoryUserRepository:
    return InMemoryUserRepository()


@pytest.fixture
def plan_repository() -> InMemoryPlanRepository:
    return InMemoryPlanRepository()


@pytest.fixture
def progress_repository() -> InMemoryProgressRepository:
    return InMemoryProgressRepository()


@pytest.fixture
def recommendation_client() -> FakeRecommendationClient:
    return FakeRecommendationClient()


@pytest.fixture
def billing_provider() -> FakeBillingProvider:
    return FakeBillingProvider()


@pytest.fixture
def engine(recommendation_client: FakeRecommendationClient) -> RecommendationEngine:
    return RecommendationEngine(
        client=recommendation_client,
        model="gpt-test",
        reasoning_effort=None,
        store=False,
        timeout_seconds=1.0,
    )


@pytest.fixture
def orchestrator(
    user_repository: InMemoryUserRepository,
    plan_repository: InMemoryPlanRepository,
    engine: RecommendationEngine,
) -> PlanOrchestrator:
    return PlanOrchestrator(
        users=user_repository,
        plans=plan_repository,
        engine=engine,
        materializer=RecipeMaterializer(plan_repository),
    )


@pytest.fixture
def aggregator(
    user_repository: InMemoryUserRepository,
    progress_repository: InMemoryProgressRepository,
    engine: RecommendationEngine,
) -> ProgressAggregator:
    return ProgressAggregator(
        users=user_repository,
        repository=progress_repository,
        engine=engine,
        clock=lambda: TODAY,
    )


@pytest.fixture
def edamam_client() -> FakeEdamamClient:
    return FakeEdamamClient()


@pytest.fixture
def recipe_catalog(
    edamam_client: FakeEdamamClient,
    plan_repository: InMemoryPlanRepository,
    orchestrator: PlanOrchestrator,
) -> RecipeCatalogService:
    return RecipeCatalogService(
        client=edamam_client,
        plans=plan_repository,
        materializer=orchestrator.materializer,
    )


@pytest.fixture
def price_tiers() -> dict[str, SubscriptionTier]:
    return build_price_tiers(BASIC_PRICE_ID, PREMIUM_PRICE_ID)


@pytest.fixture
def container(  # noqa: PLR0913
    settings: Settings,
    user_repository: InMemoryUserRepository,
    orchestrator: PlanOrchestrator,
    aggregator: ProgressAggregator,
    recipe_catalog: RecipeCatalogService,
    billing_provider: FakeBillingProvider,
    price_tiers: dict[str, SubscriptionTier],
) -> AppContainer:
    async def close_resources() -> None:
        return None

    return AppContainer(
        settings=settings,
        user_service=UserService(user_repository),
        plan_orchestrator=orchestrator,
        progress_aggregator=aggregator,
        recipe_catalog=recipe_catalog,
        billing_service=BillingService(
            users=user_repository,
            provider=billing_provider,
            price_tiers=price_tiers,
        ),
        subscription_reconciler=SubscriptionReconciler(
            users=user_repository,
            price_tiers=price_tiers,
        ),
        close_resources=close_resources,
    )
