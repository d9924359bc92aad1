"""Dependency container wiring for the application."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from supabase import create_client

from nutrition_planner.adapters.edamam_client import HttpxEdamamClient
from nutrition_planner.adapters.openai_recommendation_client import (
    OpenAIRecommendationClient,
)
from nutrition_planner.adapters.stripe_client import HttpxStripeClient
from nutrition_planner.adapters.supabase_plan_repository import SupabasePlanRepository
from nutrition_planner.adapters.supabase_progress_repository import (
    SupabaseProgressRepository,
)
from nutrition_planner.adapters.supabase_user_repository import SupabaseUserRepository
from nutrition_planner.config import Settings
from nutrition_planner.services.billing import (
    BillingService,
    SubscriptionReconciler,
    build_price_tiers,
)
from nutrition_planner.services.materializer import MacroSplitPolicy, RecipeMaterializer
from nutrition_planner.services.plans import PlanOrchestrator
from nutrition_planner.services.progress import ProgressAggregator
from nutrition_planner.services.recipes import RecipeCatalogService
from nutrition_planner.services.recommendations import RecommendationEngine
from nutrition_planner.services.users import UserService


@dataclass
class AppContainer:
    """Holds application-wide dependencies."""

    settings: Settings
    user_service: UserService
    plan_orchestrator: PlanOrchestrator
    progress_aggregator: ProgressAggregator
    recipe_catalog: RecipeCatalogService
    billing_service: BillingService
    subscription_reconciler: SubscriptionReconciler
    close_resources: Callable[[], Awaitable[None]]


def build_container(settings: Settings | None = None) -> AppContainer:
    """Create the default dependency container."""
    resolved_settings = settings or Settings()
    supabase_client = create_client(
        resolved_settings.supabase_url, resolved_settings.supabase_service_key
    )
    user_repository = SupabaseUserRepository(supabase_client)
    plan_repository = SupabasePlanRepository(supabase_client)
    progress_repository = SupabaseProgressRepository(supabase_client)

    openai_client = OpenAIRecommendationClient.create(resolved_settings.openai_api_key)
    engine = RecommendationEngine(
        client=openai_client,
        model=resolved_settings.openai_model,
        reasoning_effort=resolved_settings.openai_reasoning_effort,
        store=resolved_settings.openai_store,
        timeout_seconds=resolved_settings.recommendation_timeout_seconds,
    )
    materializer = RecipeMaterializer(
        repository=plan_repository,
        policy=MacroSplitPolicy(
            protein_share=resolved_settings.recipe_protein_share,
            carbs_share=resolved_settings.recipe_carbs_share,
            fat_share=resolved_settings.recipe_fat_share,
            cook_time_offset_minutes=resolved_settings.recipe_cook_time_offset_minutes,
        ),
    )
    plan_orchestrator = PlanOrchestrator(
        users=user_repository,
        plans=plan_repository,
        engine=engine,
        materializer=materializer,
    )
    progress_aggregator = ProgressAggregator(
        users=user_repository,
        repository=progress_repository,
        engine=engine,
    )
    edamam_client = HttpxEdamamClient.create(
        app_id=resolved_settings.edamam_app_id,
        app_key=resolved_settings.edamam_app_key,
        base_url=resolved_settings.edamam_base_url,
        timeout=resolved_settings.catalog_timeout_seconds,
    )
    recipe_catalog = RecipeCatalogService(
        client=edamam_client,
        plans=plan_repository,
        materializer=materializer,
    )

    price_tiers = build_price_tiers(
        resolved_settings.stripe_basic_price_id,
        resolved_settings.stripe_premium_price_id,
    )
    stripe_client = HttpxStripeClient.create(
        secret_key=resolved_settings.stripe_secret_key,
        base_url=resolved_settings.stripe_base_url,
        timeout=resolved_settings.billing_timeout_seconds,
    )
    billing_service = BillingService(
        users=user_repository,
        provider=stripe_client,
        price_tiers=price_tiers,
    )
    subscription_reconciler = SubscriptionReconciler(
        users=user_repository,
        price_tiers=price_tiers,
    )

    async def close_resources() -> None:
        await stripe_client.close()
        await edamam_client.close()
        await openai_client.close()

    return AppContainer(
        settings=resolved_settings,
        user_service=UserService(user_repository),
        plan_orchestrator=plan_orchestrator,
        progress_aggregator=progress_aggregator,
        recipe_catalog=recipe_catalog,
        billing_service=billing_service,
        subscription_reconciler=subscription_reconciler,
        close_resources=close_resources,
    )
