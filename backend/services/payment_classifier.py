"""
Payment classification: subscription, one-time purchase, or credit top-up.

Precedence is fixed:

1. Credit top-up (metadata or description) wins outright.
2. A payment with an invoice, or tagged with a membership product type, is a
   subscription payment only if its invoice carries a subscription reference.
3. Everything else, including payments whose invoice cannot be fetched, is a
   one-time purchase.
"""

import logging
from collections.abc import Collection, Mapping
from typing import Optional, Protocol

from adapters.payments.stripe_adapter import StripeInvoice
from core.domain.billing import PaymentCategory, is_credit_topup, is_subscription_candidate

logger = logging.getLogger(__name__)


class ClassifiablePayment(Protocol):
    """Fields shared by charges and payment intents."""

    id: str
    invoice_id: Optional[str]
    metadata: Mapping[str, str]
    description: Optional[str]


class InvoiceSource(Protocol):
    async def retrieve_invoice(self, invoice_id: str) -> StripeInvoice: ...


class PaymentClassifier:
    """Classifies succeeded payments, confirming subscriptions against their invoice."""

    def __init__(
        self,
        invoices: InvoiceSource,
        membership_product_types: Collection[str] = (),
    ):
        self.invoices = invoices
        self.membership_product_types = frozenset(membership_product_types)

    async def classify(self, payment: ClassifiablePayment) -> PaymentCategory:
        """Return the category of *payment*. Never raises for lookup failures."""
        if is_credit_topup(payment.metadata, payment.description):
            return PaymentCategory.CREDIT_TOPUP

        if not is_subscription_candidate(
            payment.metadata, payment.invoice_id, self.membership_product_types
        ):
            return PaymentCategory.ONE_TIME

        if not payment.invoice_id:
            # Tagged as membership but nothing to confirm it with
            return PaymentCategory.ONE_TIME

        if await self._invoice_has_subscription(payment.id, payment.invoice_id):
            return PaymentCategory.SUBSCRIPTION
        return PaymentCategory.ONE_TIME

    async def _invoice_has_subscription(self, payment_id: str, invoice_id: str) -> bool:
        try:
            invoice = await self.invoices.retrieve_invoice(invoice_id)
        except Exception as e:
            logger.warning(
                "Invoice %s lookup failed for payment %s, counting as one-time: %s",
                invoice_id,
                payment_id,
                e,
            )
            return False
        return invoice.subscription_id is not None
