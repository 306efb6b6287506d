"""
Stripe payment intents.

The client completes the charge with the returned secret and then records
it separately through POST /payments.
"""
from decimal import Decimal, ROUND_DOWN
from typing import Optional

import stripe

from logger import get_logger

CURRENCY = "usd"

logger = get_logger("gateway")


class GatewayNotConfigured(Exception):
    pass


def to_minor_units(price) -> int:
    """Major units to cents, truncating anything below one cent."""
    return int((Decimal(str(price)) * 100).to_integral_value(rounding=ROUND_DOWN))


def create_payment_intent(price, api_key: Optional[str]) -> str:
    if not api_key:
        raise GatewayNotConfigured("STRIPE_SECRET_KEY is not set")
    amount = to_minor_units(price)
    intent = stripe.PaymentIntent.create(
        api_key=api_key,
        amount=amount,
        currency=CURRENCY,
        payment_method_types=["card"],
    )
    logger.info("Created payment intent %s for %s %s", intent["id"], amount, CURRENCY)
    return intent["client_secret"]
