"""
Stripe Checkout gateway.

Thin call-through to the payment processor: create a hosted checkout session
for a CheckoutIntent and read a session back. The Stripe SDK is synchronous,
so calls run in a worker thread to keep the event loop free. Failures are not
retried here; the caller or an operator decides.
"""
import asyncio
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import stripe
import structlog

from shared.config import settings
from shared.errors import UpstreamUnavailable, ValidationError

from .metadata import encode_metadata
from .pricing import calculate_unit_price, to_smallest_unit
from .schemas import CheckoutIntent

logger = structlog.get_logger(__name__)

PAID = "paid"


@dataclass(frozen=True)
class CreatedSession:
    id: str
    url: Optional[str]


@dataclass(frozen=True)
class PaymentSession:
    id: str
    payment_status: Optional[str]
    status: Optional[str] = None
    metadata: Dict[str, str] = field(default_factory=dict)
    customer_email: Optional[str] = None
    amount_total: Optional[int] = None
    currency: Optional[str] = None

    @property
    def is_paid(self) -> bool:
        return self.payment_status == PAID


def build_session_params(
    intent: CheckoutIntent,
    success_url: str,
    cancel_url: str,
    shipping_countries: List[str],
) -> Dict[str, Any]:
    """Translates a CheckoutIntent into Checkout Session create parameters."""
    currency = intent.currency.lower()

    line_items = [
        {
            "price_data": {
                "currency": currency,
                "product_data": {
                    "name": item.product.title.en,
                    "images": item.product.images[:1],  # Stripe shows one image per line item
                },
                "unit_amount": to_smallest_unit(calculate_unit_price(item), intent.currency),
            },
            "quantity": item.quantity,
        }
        for item in intent.items
    ]

    if intent.shipping > 0:
        line_items.append({
            "price_data": {
                "currency": currency,
                "product_data": {"name": "Shipping"},
                "unit_amount": to_smallest_unit(intent.shipping, intent.currency),
            },
            "quantity": 1,
        })

    return {
        "payment_method_types": ["card"],
        "line_items": line_items,
        "mode": "payment",
        "success_url": f"{success_url}?session_id={{CHECKOUT_SESSION_ID}}",
        "cancel_url": cancel_url,
        "customer_email": intent.shipping_info.email,
        "shipping_address_collection": {"allowed_countries": list(shipping_countries)},
        "metadata": encode_metadata(intent),
    }


def _plain_metadata(metadata) -> Dict[str, str]:
    if not metadata:
        return {}
    return {str(key): str(value) for key, value in metadata.items()}


def _customer_email(session) -> Optional[str]:
    email = getattr(session, "customer_email", None)
    if email:
        return email
    details = getattr(session, "customer_details", None)
    return getattr(details, "email", None) if details else None


def to_payment_session(session) -> PaymentSession:
    return PaymentSession(
        id=session.id,
        payment_status=getattr(session, "payment_status", None),
        status=getattr(session, "status", None),
        metadata=_plain_metadata(getattr(session, "metadata", None)),
        customer_email=_customer_email(session),
        amount_total=getattr(session, "amount_total", None),
        currency=getattr(session, "currency", None),
    )


class StripeGateway:
    def __init__(
        self,
        client: Optional[stripe.StripeClient],
        success_url: str = settings.SUCCESS_URL,
        cancel_url: str = settings.CANCEL_URL,
        shipping_countries: Optional[List[str]] = None,
    ):
        self._client = client
        self.success_url = success_url
        self.cancel_url = cancel_url
        self.shipping_countries = shipping_countries or list(settings.SHIPPING_COUNTRIES)

    @classmethod
    def from_settings(cls) -> "StripeGateway":
        if settings.USE_STRIPE_TEST_MODE:
            api_key = settings.STRIPE_SECRET_KEY_TEST
            if not api_key:
                logger.error("stripe_test_key_missing", hint="set STRIPE_SECRET_KEY_TEST")
            else:
                logger.info("stripe_mode", mode="test")
        else:
            api_key = settings.STRIPE_SECRET_KEY
            if not api_key:
                logger.error("stripe_live_key_missing", hint="set STRIPE_SECRET_KEY")
            elif not api_key.startswith("sk_live_"):
                logger.warning("stripe_key_not_live", hint="STRIPE_SECRET_KEY does not start with sk_live_")
            else:
                logger.info("stripe_mode", mode="live")

        client = stripe.StripeClient(api_key) if api_key else None
        return cls(client)

    def _require_client(self) -> stripe.StripeClient:
        if self._client is None:
            raise UpstreamUnavailable("Stripe is not configured")
        return self._client

    async def create_session(self, intent: CheckoutIntent) -> CreatedSession:
        client = self._require_client()
        params = build_session_params(intent, self.success_url, self.cancel_url, self.shipping_countries)
        try:
            session = await asyncio.to_thread(client.checkout.sessions.create, params=params)
        except stripe.InvalidRequestError as exc:
            logger.warning("stripe_session_rejected", error=str(exc))
            raise ValidationError(exc.user_message or str(exc)) from exc
        except stripe.StripeError as exc:
            logger.error("stripe_session_create_failed", error=str(exc))
            raise UpstreamUnavailable(f"Failed to create checkout session: {exc.user_message or exc}") from exc

        logger.info("stripe_session_created", session_id=session.id, items=len(intent.items))
        return CreatedSession(id=session.id, url=session.url)

    async def retrieve_session(self, session_id: str) -> PaymentSession:
        client = self._require_client()
        try:
            session = await asyncio.to_thread(
                client.checkout.sessions.retrieve,
                session_id,
                params={"expand": ["line_items", "customer", "payment_intent"]},
            )
        except stripe.InvalidRequestError as exc:
            logger.warning("stripe_session_not_found", session_id=session_id, error=str(exc))
            raise ValidationError(exc.user_message or str(exc), session_id=session_id) from exc
        except stripe.StripeError as exc:
            logger.error("stripe_session_retrieve_failed", session_id=session_id, error=str(exc))
            raise UpstreamUnavailable(f"Failed to retrieve checkout session: {exc.user_message or exc}") from exc

        return to_payment_session(session)
