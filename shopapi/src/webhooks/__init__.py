"""Inbound payment-provider webhooks.

The route module itself (``shopapi.src.webhooks.stripe``) is mounted by the
feature route registry; only the provider-independent pieces are exported
here so importing the package does not pull in FastAPI dependencies.
"""

from shopapi.src.webhooks.dispatcher import StripeEvent, WebhookDispatcher
from shopapi.src.webhooks.verification import compute_signature, verify_stripe_signature

__all__ = [
    "StripeEvent",
    "WebhookDispatcher",
    "compute_signature",
    "verify_stripe_signature",
]
