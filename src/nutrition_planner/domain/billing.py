"""Billing domain models."""

from dataclasses import dataclass, field

from pydantic import BaseModel, Field

from nutrition_planner.domain.models import SubscriptionTier


@dataclass(frozen=True)
class SubscriptionPlan:
    """A purchasable subscription plan."""

    tier: SubscriptionTier
    name: str
    description: str
    price: int
    interval: str
    features: list[str] = field(default_factory=list)


SUBSCRIPTION_PLANS: tuple[SubscriptionPlan, ...] = (
    SubscriptionPlan(
        tier=SubscriptionTier.FREE,
        name="Free",
        description="Basic nutrition tracking",
        price=0,
        interval="month",
        features=[
            "Basic meal logging",
            "Simple progress tracking",
            "Limited recipe access",
        ],
    ),
    SubscriptionPlan(
        tier=SubscriptionTier.BASIC,
        name="Basic",
        description="Personalized nutrition plans",
        price=9,
        interval="month",
        features=[
            "Personalized diet plans",
            "Advanced meal logging",
            "Progress analytics",
            "Recipe recommendations",
            "Email support",
        ],
    ),
    SubscriptionPlan(
        tier=SubscriptionTier.PREMIUM,
        name="Premium",
        description="Complete nutrition coaching",
        price=19,
        interval="month",
        features=[
            "AI-powered meal planning",
            "Advanced progress tracking",
            "Unlimited recipe access",
            "Priority support",
            "Custom meal prep guides",
        ],
    ),
)


@dataclass(frozen=True)
class CheckoutSession:
    """A hosted checkout session created with the billing provider."""

    id: str
    url: str | None


@dataclass(frozen=True)
class ProviderSubscription:
    """Subscription state as reported by the billing provider."""

    id: str
    customer_id: str
    status: str
    cancel_at_period_end: bool
    current_period_end: int | None = None


@dataclass(frozen=True)
class PortalSession:
    """A hosted self-service billing portal session."""

    url: str


class BillingEventData(BaseModel):
    """Envelope around the provider object carried by an event."""

    object: dict[str, object]


class BillingEvent(BaseModel):
    """Inbound billing provider event after signature verification."""

    id: str | None = None
    type: str = Field(min_length=1)
    data: BillingEventData
