"""Async Stripe API wrapper for Natours tour payments."""

import logging
from decimal import Decimal

import stripe
from stripe import StripeClient

from natours.config import settings

logger = logging.getLogger(__name__)


def get_stripe_client() -> StripeClient:
    """Create a StripeClient instance with async HTTP support."""
    return StripeClient(
        settings.stripe_secret_key,
        http_client=stripe.HTTPXClient(),
    )


def to_minor_units(amount: Decimal) -> int:
    """Convert a price in major currency units to Stripe's integer cents."""
    return int((Decimal(amount) * 100).quantize(Decimal("1")))


async def create_tour_checkout_session(
    *,
    tour_id: str,
    tour_name: str,
    tour_summary: str,
    tour_image: str,
    price: Decimal,
    customer_email: str,
    success_url: str,
    cancel_url: str,
) -> stripe.checkout.Session:
    """Create a one-off payment Checkout Session for a single tour booking.

    ``client_reference_id`` carries the tour id back to the
    ``checkout.session.completed`` webhook.
    """
    client = get_stripe_client()
    logger.info("Creating checkout session for tour %s (%s)", tour_id, customer_email)
    return await client.v1.checkout.sessions.create_async(
        params={
            "mode": "payment",
            "payment_method_types": ["card"],
            "success_url": success_url,
            "cancel_url": cancel_url,
            "customer_email": customer_email,
            "client_reference_id": tour_id,
            "line_items": [
                {
                    "quantity": 1,
                    "price_data": {
                        "currency": settings.stripe_currency,
                        "unit_amount": to_minor_units(price),
                        "product_data": {
                            "name": f"{tour_name} Tour",
                            "description": tour_summary,
                            "images": [f"{settings.public_url}/img/tours/{tour_image}"],
                        },
                    },
                }
            ],
        }
    )


def construct_webhook_event(payload: bytes, sig_header: str) -> stripe.Event:
    """Verify and construct a Stripe webhook event (synchronous)."""
    client = get_stripe_client()
    return client.construct_event(payload, sig_header, settings.stripe_webhook_secret)
