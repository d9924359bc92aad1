"""Stripe REST client and webhook signature verification."""

import hashlib
import hmac
import time
from dataclasses import dataclass
from uuid import UUID

import httpx

from nutrition_planner.domain.billing import (
    CheckoutSession,
    PortalSession,
    ProviderSubscription,
)
from nutrition_planner.services.billing import BillingProvider

SIGNATURE_TOLERANCE_SECONDS = 300


class SignatureVerificationError(Exception):
    """Raised when a webhook signature header does not match the payload."""


@dataclass
class HttpxStripeClient(BillingProvider):
    """HTTPX-backed Stripe client using form-encoded requests."""

    secret_key: str
    base_url: str
    http_client: httpx.AsyncClient
    timeout: float = 15

    @classmethod
    def create(
        cls, secret_key: str, base_url: str, timeout: float = 15
    ) -> "HttpxStripeClient":
        """Create a Stripe client with a managed httpx session."""
        return cls(
            secret_key=secret_key,
            base_url=base_url,
            http_client=httpx.AsyncClient(),
            timeout=timeout,
        )

    async def create_customer(self, email: str, name: str, user_id: UUID) -> str:
        """Create a customer tagged with the user id and return its id."""
        payload = await self._post(
            "customers",
            {"email": email, "name": name, "metadata[userId]": str(user_id)},
        )
        return str(payload["id"])

    async def create_checkout_session(  # noqa: PLR0913
        self,
        *,
        customer_id: str,
        price_id: str,
        user_id: UUID,
        success_url: str,
        cancel_url: str,
    ) -> CheckoutSession:
        """Create a subscription checkout session for one price."""
        payload = await self._post(
            "checkout/sessions",
            {
                "customer": customer_id,
                "mode": "subscription",
                "payment_method_types[0]": "card",
                "line_items[0][price]": price_id,
                "line_items[0][quantity]": "1",
                "success_url": success_url,
                "cancel_url": cancel_url,
                "metadata[userId]": str(user_id),
                "subscription_data[metadata][userId]": str(user_id),
            },
        )
        url = payload.get("url")
        return CheckoutSession(id=str(payload["id"]), url=url if url else None)

    async def get_subscription(self, subscription_id: str) -> ProviderSubscription:
        """Retrieve a subscription."""
        response = await self.http_client.get(
            f"{self.base_url}/subscriptions/{subscription_id}",
            headers=self._headers(),
            timeout=self.timeout,
        )
        response.raise_for_status()
        return _parse_subscription(response.json())

    async def update_subscription(
        self, subscription_id: str, *, cancel_at_period_end: bool
    ) -> ProviderSubscription:
        """Set whether the subscription ends with the current period."""
        payload = await self._post(
            f"subscriptions/{subscription_id}",
            {"cancel_at_period_end": "true" if cancel_at_period_end else "false"},
        )
        return _parse_subscription(payload)

    async def create_portal_session(
        self, customer_id: str, return_url: str
    ) -> PortalSession:
        """Create a billing portal session for a customer."""
        payload = await self._post(
            "billing_portal/sessions",
            {"customer": customer_id, "return_url": return_url},
        )
        return PortalSession(url=str(payload["url"]))

    async def _post(self, path: str, data: dict[str, str]) -> dict[str, object]:
        response = await self.http_client.post(
            f"{self.base_url}/{path}",
            data=data,
            headers=self._headers(),
            timeout=self.timeout,
        )
        response.raise_for_status()
        return response.json()

    def _headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.secret_key}"}

    async def close(self) -> None:
        """Close the underlying HTTP session."""
        await self.http_client.aclose()


def _parse_subscription(payload: dict[str, object]) -> ProviderSubscription:
    customer = payload.get("customer")
    if isinstance(customer, dict):
        customer = customer.get("id")
    period_end = payload.get("current_period_end")
    return ProviderSubscription(
        id=str(payload["id"]),
        customer_id=str(customer),
        status=str(payload.get("status")),
        cancel_at_period_end=bool(payload.get("cancel_at_period_end")),
        current_period_end=period_end if isinstance(period_end, int) else None,
    )


def verify_stripe_signature(
    payload: bytes,
    header: str | None,
    secret: str,
    tolerance: int = SIGNATURE_TOLERANCE_SECONDS,
    now: float | None = None,
) -> None:
    """Validate a Stripe-Signature header against the raw payload."""
    if not header:
        raise SignatureVerificationError("Missing signature header")
    timestamp: str | None = None
    signatures: list[str] = []
    for part in header.split(","):
        key, _, value = part.strip().partition("=")
        if key == "t":
            timestamp = value
        elif key == "v1":
            signatures.append(value)
    if timestamp is None or not signatures:
        raise SignatureVerificationError("Malformed signature header")
    try:
        signed_at = int(timestamp)
    except ValueError as exc:
        raise SignatureVerificationError("Malformed signature timestamp") from exc

    signed_payload = f"{timestamp}.".encode() + payload
    expected = hmac.new(secret.encode(), signed_payload, hashlib.sha256).hexdigest()
    if not any(hmac.compare_digest(expected, candidate) for candidate in signatures):
        raise SignatureVerificationError("Signature mismatch")

    current = time.time() if now is None else now
    if abs(current - signed_at) > tolerance:
        raise SignatureVerificationError("Signature timestamp outside tolerance")
