"""Payment adapters for billing data."""

from .stripe_adapter import (
    StripeAdapter,
    StripeAPIError,
    StripeAuthError,
    StripeCharge,
    StripeError,
    StripeInvoice,
    StripeListPage,
    StripePaymentIntent,
    StripeSubscription,
    SubscriptionItem,
    create_stripe_adapter,
)

__all__ = [
    "StripeAdapter",
    "StripeSubscription",
    "SubscriptionItem",
    "StripeCharge",
    "StripePaymentIntent",
    "StripeInvoice",
    "StripeListPage",
    "StripeError",
    "StripeAPIError",
    "StripeAuthError",
    "create_stripe_adapter",
]
