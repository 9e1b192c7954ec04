"""Stripe adapter used by the license purchase flow.

Every SDK call runs in a worker thread and is bounded by a timeout so a slow
provider fails the request instead of stalling the event loop.
"""
import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

import stripe
from fastapi import Request

logger = logging.getLogger(__name__)


class PaymentProviderError(Exception):
    """The payment provider failed, rejected the call or timed out."""


@dataclass
class PaymentIntent:
    """The parts of a provider payment intent the marketplace relies on."""

    id: str
    status: str
    client_secret: Optional[str] = None
    amount: Optional[int] = None
    currency: Optional[str] = None
    metadata: dict[str, Any] = field(default_factory=dict)


class StripePaymentProvider:
    """Thin async wrapper over the Stripe SDK."""

    def __init__(self, api_key: str, webhook_secret: str = "", timeout: float = 15.0):
        self.api_key = api_key
        self.webhook_secret = webhook_secret
        self.timeout = timeout

        # Configure Stripe
        stripe.api_key = api_key

    async def _call(self, description: str, fn: Callable, *args, **kwargs):
        try:
            return await asyncio.wait_for(
                asyncio.to_thread(fn, *args, **kwargs),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError as e:
            logger.error(f"Stripe call timed out after {self.timeout}s: {description}")
            raise PaymentProviderError(f"{description} timed out") from e
        except stripe.StripeError as e:
            logger.error(f"Stripe call failed: {description}: {e}")
            raise PaymentProviderError(f"{description} failed: {e}") from e

    @staticmethod
    def _to_intent(obj) -> PaymentIntent:
        return PaymentIntent(
            id=obj.id,
            status=obj.status,
            client_secret=getattr(obj, "client_secret", None),
            amount=getattr(obj, "amount", None),
            currency=getattr(obj, "currency", None),
            metadata=dict(getattr(obj, "metadata", None) or {}),
        )

    async def create_customer(self, email: str, metadata: Optional[dict] = None) -> str:
        """Create a Stripe customer and return its id."""
        customer = await self._call(
            "create customer",
            stripe.Customer.create,
            email=email,
            metadata=metadata or {},
        )
        return customer.id

    async def create_payment_intent(
        self,
        amount_cents: int,
        currency: str,
        customer_id: str,
        metadata: dict,
        idempotency_key: Optional[str] = None,
    ) -> PaymentIntent:
        kwargs = {
            "amount": amount_cents,
            "currency": currency.lower(),
            "customer": customer_id,
            "metadata": metadata,
        }
        if idempotency_key:
            kwargs["idempotency_key"] = idempotency_key
        intent = await self._call("create payment intent", stripe.PaymentIntent.create, **kwargs)
        return self._to_intent(intent)

    async def retrieve_payment_intent(self, intent_id: str) -> PaymentIntent:
        intent = await self._call("retrieve payment intent", stripe.PaymentIntent.retrieve, intent_id)
        return self._to_intent(intent)

    async def cancel_payment_intent(self, intent_id: str) -> PaymentIntent:
        intent = await self._call("cancel payment intent", stripe.PaymentIntent.cancel, intent_id)
        return self._to_intent(intent)

    async def refund_payment_intent(self, intent_id: str) -> str:
        """Refund the full amount captured by an intent; returns the refund id."""
        refund = await self._call("refund payment intent", stripe.Refund.create, payment_intent=intent_id)
        return refund.id

    def construct_event(self, payload: bytes, sig_header: str):
        """Verify a webhook signature and parse the event (raises on failure)."""
        return stripe.Webhook.construct_event(payload, sig_header, self.webhook_secret)


def get_payment_provider(request: Request) -> StripePaymentProvider:
    """Dependency returning the provider built at startup."""
    return request.app.state.payments
