"""Tests for billing event reconciliation."""

from nutrition_planner.domain.models import SubscriptionTier
from nutrition_planner.services.billing import SubscriptionReconciler
from tests.conftest import (
    BASIC_PRICE_ID,
    PREMIUM_PRICE_ID,
    InMemoryUserRepository,
    make_profile,
)


def _subscription_event(
    event_type: str, user_id, price_id: str = PREMIUM_PRICE_ID, status: str = "active"
) -> dict[str, object]:
    return {
        "id": "evt_1",
        "type": event_type,
        "data": {
            "object": {
                "id": "sub_1",
                "status": status,
                "metadata": {"userId": str(user_id)},
                "items": {"data": [{"price": {"id": price_id}}]},
            }
        },
    }


def _reconciler(user_repository, price_tiers) -> SubscriptionReconciler:
    return SubscriptionReconciler(users=user_repository, price_tiers=price_tiers)


def test_active_subscription_sets_tier_from_price(user_repository, price_tiers) -> None:
    profile = user_repository.add(make_profile())
    reconciler = _reconciler(user_repository, price_tiers)

    outcome = reconciler.handle_event(
        _subscription_event("customer.subscription.created", profile.id, BASIC_PRICE_ID)
    )

    assert outcome.action == "applied"
    assert user_repository.users[profile.id].subscription_tier == SubscriptionTier.BASIC


def test_inactive_subscription_update_downgrades(user_repository, price_tiers) -> None:
    profile = user_repository.add(
        make_profile(subscription_tier=SubscriptionTier.PREMIUM)
    )
    reconciler = _reconciler(user_repository, price_tiers)

    reconciler.handle_event(
        _subscription_event(
            "customer.subscription.updated", profile.id, status="past_due"
        )
    )

    assert user_repository.users[profile.id].subscription_tier == SubscriptionTier.FREE


def test_unknown_price_maps_to_free(user_repository, price_tiers) -> None:
    profile = user_repository.add(
        make_profile(subscription_tier=SubscriptionTier.BASIC)
    )
    reconciler = _reconciler(user_repository, price_tiers)

    reconciler.handle_event(
        _subscription_event("customer.subscription.updated", profile.id, "price_other")
    )

    assert user_repository.users[profile.id].subscription_tier == SubscriptionTier.FREE


def test_deleted_subscription_is_idempotent(user_repository, price_tiers) -> None:
    profile = user_repository.add(
        make_profile(subscription_tier=SubscriptionTier.PREMIUM)
    )
    reconciler = _reconciler(user_repository, price_tiers)
    event = _subscription_event("customer.subscription.deleted", profile.id)

    first = reconciler.handle_event(event)
    second = reconciler.handle_event(event)

    assert first.action == "applied"
    assert second.action == "unchanged"
    assert user_repository.users[profile.id].subscription_tier == SubscriptionTier.FREE
    assert len(user_repository.updates) == 1


def test_checkout_attaches_customer_only_once(user_repository, price_tiers) -> None:
    profile = user_repository.add(make_profile(billing_customer_id="cus_existing"))
    reconciler = _reconciler(user_repository, price_tiers)

    outcome = reconciler.handle_event(
        {
            "type": "checkout.session.completed",
            "data": {
                "object": {
                    "customer": "cus_new",
                    "metadata": {"userId": str(profile.id)},
                }
            },
        }
    )

    assert outcome.action == "unchanged"
    assert user_repository.users[profile.id].billing_customer_id == "cus_existing"


def test_checkout_attaches_customer_when_missing(user_repository, price_tiers) -> None:
    profile = user_repository.add(make_profile())
    reconciler = _reconciler(user_repository, price_tiers)

    reconciler.handle_event(
        {
            "type": "checkout.session.completed",
            "data": {
                "object": {
                    "customer": "cus_new",
                    "metadata": {"userId": str(profile.id)},
                }
            },
        }
    )

    assert user_repository.users[profile.id].billing_customer_id == "cus_new"


def test_missing_user_metadata_is_a_no_op(user_repository, price_tiers) -> None:
    profile = user_repository.add(
        make_profile(subscription_tier=SubscriptionTier.BASIC)
    )
    reconciler = _reconciler(user_repository, price_tiers)
    event = _subscription_event("customer.subscription.deleted", profile.id)
    event["data"]["object"]["metadata"] = {}  # type: ignore[index]

    outcome = reconciler.handle_event(event)

    assert outcome.action == "dropped"
    assert user_repository.updates == []


def test_unknown_user_is_dropped(user_repository, price_tiers) -> None:
    reconciler = _reconciler(user_repository, price_tiers)

    outcome = reconciler.handle_event(
        _subscription_event(
            "customer.subscription.created", "00000000-0000-0000-0000-000000000001"
        )
    )

    assert outcome.action == "dropped"


def test_malformed_event_is_dropped(user_repository, price_tiers) -> None:
    reconciler = _reconciler(user_repository, price_tiers)

    outcome = reconciler.handle_event({"type": "customer.subscription.created"})

    assert outcome.action == "dropped"
    assert outcome.event_type is None


def test_invoice_events_are_logged_only(user_repository, price_tiers) -> None:
    reconciler = _reconciler(user_repository, price_tiers)

    outcome = reconciler.handle_event(
        {"type": "invoice.payment_failed", "data": {"object": {"id": "in_1"}}}
    )

    assert outcome.action == "logged"
    assert user_repository.updates == []


def test_unknown_event_type_is_ignored(user_repository, price_tiers) -> None:
    reconciler = _reconciler(user_repository, price_tiers)

    outcome = reconciler.handle_event(
        {"type": "customer.created", "data": {"object": {}}}
    )

    assert outcome.action == "ignored"


class FailingUserRepository(InMemoryUserRepository):
    """Reads succeed; writes fail like an unavailable store."""

    def update_user(self, user_id, changes):  # type: ignore[no-untyped-def]
        raise RuntimeError("store down")


def test_store_failure_is_dropped_not_raised(price_tiers) -> None:
    users = FailingUserRepository()
    profile = users.add(make_profile())
    reconciler = _reconciler(users, price_tiers)

    outcome = reconciler.handle_event(
        _subscription_event("customer.subscription.updated", profile.id)
    )

    assert outcome.action == "dropped"
    assert outcome.event_type == "customer.subscription.updated"
    assert outcome.detail == "RuntimeError: store down"
    assert users.users[profile.id].subscription_tier == SubscriptionTier.FREE
