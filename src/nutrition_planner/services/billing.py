"""Subscription catalog, checkout and billing event reconciliation."""

import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Protocol
from uuid import UUID

from pydantic import ValidationError as PayloadError

from nutrition_planner.domain.billing import (
    SUBSCRIPTION_PLANS,
    BillingEvent,
    CheckoutSession,
    PortalSession,
    ProviderSubscription,
    SubscriptionPlan,
)
from nutrition_planner.domain.errors import (
    NotFoundError,
    ProviderStateError,
    UpstreamFailure,
    ValidationError,
)
from nutrition_planner.domain.models import SubscriptionTier, UserProfile
from nutrition_planner.services.users import UserRepository

_logger = logging.getLogger(__name__)

ACTIVE_STATUS = "active"
SUBSCRIPTION_CREATED = "customer.subscription.created"
SUBSCRIPTION_UPDATED = "customer.subscription.updated"
SUBSCRIPTION_DELETED = "customer.subscription.deleted"
CHECKOUT_COMPLETED = "checkout.session.completed"
LOGGED_ONLY_EVENTS = frozenset(
    {"invoice.payment_succeeded", "invoice.payment_failed"}
)


class BillingProvider(Protocol):
    """Interface for the hosted billing provider."""

    async def create_customer(self, email: str, name: str, user_id: UUID) -> str:
        """Create a customer and return its provider id."""

    async def create_checkout_session(  # noqa: PLR0913
        self,
        *,
        customer_id: str,
        price_id: str,
        user_id: UUID,
        success_url: str,
        cancel_url: str,
    ) -> CheckoutSession:
        """Create a subscription checkout session."""

    async def get_subscription(self, subscription_id: str) -> ProviderSubscription:
        """Return the provider's view of a subscription."""

    async def update_subscription(
        self, subscription_id: str, *, cancel_at_period_end: bool
    ) -> ProviderSubscription:
        """Schedule or unschedule cancellation at the end of the period."""

    async def create_portal_session(
        self, customer_id: str, return_url: str
    ) -> PortalSession:
        """Create a self-service billing portal session."""


@dataclass(frozen=True)
class ReconcileOutcome:
    """What the reconciler did with one event."""

    event_type: str | None
    action: str
    user_id: UUID | None = None
    tier: SubscriptionTier | None = None
    detail: str | None = None


def _subscription_price(subscription: Mapping[str, object]) -> str | None:
    items = subscription.get("items")
    if not isinstance(items, dict):
        return None
    data = items.get("data")
    if not isinstance(data, list) or not data:
        return None
    first = data[0]
    price = first.get("price") if isinstance(first, dict) else None
    price_id = price.get("id") if isinstance(price, dict) else None
    return price_id if isinstance(price_id, str) else None


def _tier_for_active(
    subscription: Mapping[str, object], price_tiers: Mapping[str, SubscriptionTier]
) -> SubscriptionTier:
    if subscription.get("status") != ACTIVE_STATUS:
        return SubscriptionTier.FREE
    price_id = _subscription_price(subscription)
    if price_id is None:
        return SubscriptionTier.FREE
    return price_tiers.get(price_id, SubscriptionTier.FREE)


def _always_free(
    _subscription: Mapping[str, object], _price_tiers: Mapping[str, SubscriptionTier]
) -> SubscriptionTier:
    return SubscriptionTier.FREE


TierRule = Callable[
    [Mapping[str, object], Mapping[str, SubscriptionTier]], SubscriptionTier
]

TIER_TRANSITIONS: dict[str, TierRule] = {
    SUBSCRIPTION_CREATED: _tier_for_active,
    SUBSCRIPTION_UPDATED: _tier_for_active,
    SUBSCRIPTION_DELETED: _always_free,
}


def build_price_tiers(
    basic_price_id: str | None, premium_price_id: str | None
) -> dict[str, SubscriptionTier]:
    """Map configured provider price ids to internal tiers."""
    tiers: dict[str, SubscriptionTier] = {}
    if basic_price_id:
        tiers[basic_price_id] = SubscriptionTier.BASIC
    if premium_price_id:
        tiers[premium_price_id] = SubscriptionTier.PREMIUM
    return tiers


@dataclass
class SubscriptionReconciler:
    """Applies verified billing events to user subscription state."""

    users: UserRepository
    price_tiers: Mapping[str, SubscriptionTier]

    def handle_event(self, raw: Mapping[str, object]) -> ReconcileOutcome:
        """Apply one event. Never raises; replays converge to the same state."""
        try:
            event = BillingEvent.model_validate(raw)
        except PayloadError as exc:
            _logger.warning("Dropping malformed billing event: %s", exc)
            return ReconcileOutcome(
                event_type=None, action="dropped", detail="malformed event"
            )

        try:
            return self._dispatch(event)
        except ProviderStateError as exc:
            _logger.warning(
                "Ignoring billing event %s: %s",
                event.type,
                exc.message,
                extra={"event_id": event.id, "event_type": event.type},
            )
            return ReconcileOutcome(
                event_type=event.type, action="dropped", detail=exc.message
            )
        except NotFoundError as exc:
            _logger.warning(
                "Ignoring billing event %s for unknown user: %s",
                event.type,
                exc.message,
                extra={"event_id": event.id, "event_type": event.type},
            )
            return ReconcileOutcome(
                event_type=event.type, action="dropped", detail=exc.message
            )
        except Exception as exc:
            _logger.exception(
                "Failed to apply billing event %s",
                event.type,
                extra={"event_id": event.id, "event_type": event.type},
            )
            return ReconcileOutcome(
                event_type=event.type,
                action="dropped",
                detail=f"{type(exc).__name__}: {exc}",
            )

    def _dispatch(self, event: BillingEvent) -> ReconcileOutcome:
        payload = event.data.object
        rule = TIER_TRANSITIONS.get(event.type)
        if rule is not None:
            user = self._require_user(event, payload)
            tier = rule(payload, self.price_tiers)
            if user.subscription_tier == tier:
                return ReconcileOutcome(
                    event_type=event.type, action="unchanged", user_id=user.id, tier=tier
                )
            self.users.update_user(user.id, {"subscription_tier": tier.value})
            _logger.info(
                "Subscription tier for user %s: %s -> %s",
                user.id,
                user.subscription_tier.value,
                tier.value,
            )
            return ReconcileOutcome(
                event_type=event.type, action="applied", user_id=user.id, tier=tier
            )

        if event.type == CHECKOUT_COMPLETED:
            return self._attach_customer(event, payload)

        if event.type in LOGGED_ONLY_EVENTS:
            _logger.info(
                "Billing event %s received",
                event.type,
                extra={"event_id": event.id, "event_type": event.type},
            )
            return ReconcileOutcome(event_type=event.type, action="logged")

        _logger.debug("Unhandled billing event type: %s", event.type)
        return ReconcileOutcome(event_type=event.type, action="ignored")

    def _attach_customer(
        self, event: BillingEvent, payload: Mapping[str, object]
    ) -> ReconcileOutcome:
        user = self._require_user(event, payload)
        customer = payload.get("customer")
        if not isinstance(customer, str) or not customer:
            raise ProviderStateError("checkout session has no customer")
        if user.billing_customer_id:
            return ReconcileOutcome(
                event_type=event.type, action="unchanged", user_id=user.id
            )
        self.users.update_user(user.id, {"billing_customer_id": customer})
        _logger.info("Attached billing customer to user %s", user.id)
        return ReconcileOutcome(event_type=event.type, action="applied", user_id=user.id)

    def _require_user(
        self, event: BillingEvent, payload: Mapping[str, object]
    ) -> UserProfile:
        metadata = payload.get("metadata")
        raw_id = metadata.get("userId") if isinstance(metadata, dict) else None
        if not raw_id:
            raise ProviderStateError(f"{event.type} is missing metadata.userId")
        try:
            user_id = UUID(str(raw_id))
        except ValueError as exc:
            raise ProviderStateError(f"invalid metadata.userId: {raw_id}") from exc
        user = self.users.get_by_id(user_id)
        if user is None:
            raise NotFoundError("User", user_id)
        return user


@dataclass
class BillingService:
    """Plan catalog, checkout and subscription management for users."""

    users: UserRepository
    provider: BillingProvider
    price_tiers: Mapping[str, SubscriptionTier]

    def list_plans(self) -> tuple[SubscriptionPlan, ...]:
        """Return the static plan catalog."""
        return SUBSCRIPTION_PLANS

    def get_subscription(
        self, user_id: UUID
    ) -> tuple[SubscriptionPlan, tuple[SubscriptionPlan, ...]]:
        """Return the user's current plan and the available plans."""
        user = self._require_user(user_id)
        current = next(
            plan for plan in SUBSCRIPTION_PLANS if plan.tier == user.subscription_tier
        )
        return current, SUBSCRIPTION_PLANS

    async def start_checkout(
        self, user_id: UUID, plan_id: str, success_url: str, cancel_url: str
    ) -> CheckoutSession:
        """Create a checkout session, creating the billing customer on first use."""
        user = self._require_user(user_id)
        price_id = self._price_for(plan_id)

        customer_id = user.billing_customer_id
        if not customer_id:
            try:
                customer_id = await self.provider.create_customer(
                    user.email, user.name, user.id
                )
            except Exception as exc:
                raise UpstreamFailure("create_customer", str(exc)) from exc
            self.users.update_user(user.id, {"billing_customer_id": customer_id})
            _logger.info("Created billing customer for user %s", user.id)

        try:
            return await self.provider.create_checkout_session(
                customer_id=customer_id,
                price_id=price_id,
                user_id=user.id,
                success_url=success_url,
                cancel_url=cancel_url,
            )
        except Exception as exc:
            raise UpstreamFailure("create_checkout_session", str(exc)) from exc

    async def cancel_subscription(
        self, user_id: UUID, subscription_id: str
    ) -> ProviderSubscription:
        """Cancel at the end of the current billing period."""
        return await self._set_cancel_at_period_end(user_id, subscription_id, True)

    async def reactivate_subscription(
        self, user_id: UUID, subscription_id: str
    ) -> ProviderSubscription:
        """Undo a scheduled cancellation."""
        return await self._set_cancel_at_period_end(user_id, subscription_id, False)

    async def create_portal_session(
        self, user_id: UUID, return_url: str
    ) -> PortalSession:
        """Open the provider's self-service portal for the user's customer."""
        customer_id = self._require_customer(user_id)
        try:
            return await self.provider.create_portal_session(customer_id, return_url)
        except Exception as exc:
            raise UpstreamFailure("create_portal_session", str(exc)) from exc

    async def _set_cancel_at_period_end(
        self, user_id: UUID, subscription_id: str, cancel: bool
    ) -> ProviderSubscription:
        customer_id = self._require_customer(user_id)
        try:
            current = await self.provider.get_subscription(subscription_id)
        except Exception as exc:
            raise UpstreamFailure("get_subscription", str(exc)) from exc
        if current.customer_id != customer_id:
            raise NotFoundError("Subscription", subscription_id)
        try:
            updated = await self.provider.update_subscription(
                subscription_id, cancel_at_period_end=cancel
            )
        except Exception as exc:
            raise UpstreamFailure("update_subscription", str(exc)) from exc
        _logger.info(
            "Subscription %s for user %s: cancel_at_period_end=%s",
            subscription_id,
            user_id,
            updated.cancel_at_period_end,
        )
        return updated

    def _require_customer(self, user_id: UUID) -> str:
        user = self._require_user(user_id)
        if not user.billing_customer_id:
            raise NotFoundError("Billing account", user_id)
        return user.billing_customer_id

    def _price_for(self, plan_id: str) -> str:
        try:
            tier = SubscriptionTier(plan_id)
        except ValueError as exc:
            raise ValidationError(f"Unknown plan '{plan_id}'", field="plan_id") from exc
        for price_id, price_tier in self.price_tiers.items():
            if price_tier == tier:
                return price_id
        raise ValidationError(
            f"Plan '{plan_id}' cannot be purchased", field="plan_id"
        )

    def _require_user(self, user_id: UUID) -> UserProfile:
        user = self.users.get_by_id(user_id)
        if user is None:
            raise NotFoundError("User", user_id)
        return user
