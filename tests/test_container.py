"""Tests for container wiring."""

import asyncio

from nutrition_planner.containers import build_container
from nutrition_planner.domain.models import SubscriptionTier
from tests.conftest import BASIC_PRICE_ID


def test_build_container_creates_services(settings) -> None:
    container = build_container(settings)

    assert container.plan_orchestrator is not None
    assert container.progress_aggregator is not None
    assert container.recipe_catalog.client.app_id == "edamam-app"
    catalog = container.recipe_catalog
    assert catalog.materializer is container.plan_orchestrator.materializer
    assert (
        container.subscription_reconciler.price_tiers[BASIC_PRICE_ID]
        == SubscriptionTier.BASIC
    )
    assert container.plan_orchestrator.materializer.policy.fat_share == 0.35
    asyncio.run(container.close_resources())
