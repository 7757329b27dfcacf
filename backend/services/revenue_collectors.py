"""
Revenue and subscription metric collectors.

Each collector computes one number from Stripe (or the local ledger) and is
independent of the others, so the aggregator can run all of them
concurrently. Collectors raise on provider errors; the aggregator is
responsible for turning failures into defaults.

Monetary sums are kept in integer minor units and converted to whole major
units only when a collector returns.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from adapters.payments.stripe_adapter import StripeAdapter, StripeSubscription
from core.domain.billing import (
    PaymentCategory,
    is_credit_topup,
    minor_to_major,
    monthly_equivalent,
    round_half_up,
)
from services.ledger import LedgerRevenueReader, resolve_ledger_first
from services.pagination import iterate_all
from services.payment_classifier import PaymentClassifier

logger = logging.getLogger(__name__)


class RevenueMetricCollectors:
    """
    The nine metric collectors, sharing one adapter, classifier and ledger.

    Args:
        adapter: Stripe adapter used for every provider walk
        classifier: Payment classifier (invoice lookups go through the same adapter)
        ledger: Ledger reader, or None to always walk Stripe
        window_days: Length of the "recent" window for the *_30d metrics
        page_size: Stripe page size
        live_mode_only: Ignore test-mode objects returned by the API
        now: Clock override, mainly for tests
    """

    def __init__(
        self,
        adapter: StripeAdapter,
        classifier: PaymentClassifier,
        ledger: Optional[LedgerRevenueReader] = None,
        *,
        window_days: int = 30,
        page_size: int = 100,
        live_mode_only: bool = True,
        now=None,
    ):
        self.adapter = adapter
        self.classifier = classifier
        self.ledger = ledger
        self.window_days = window_days
        self.page_size = page_size
        self.live_mode_only = live_mode_only
        self._now = now or (lambda: datetime.now(timezone.utc))

    def window_start(self) -> int:
        """Unix timestamp of the start of the recent-activity window."""
        return int((self._now() - timedelta(days=self.window_days)).timestamp())

    def _counts(self, obj) -> bool:
        return obj.livemode or not self.live_mode_only

    # Subscription counts

    async def _count_subscriptions(self, **filters) -> int:
        count = 0
        async for subscription in iterate_all(
            self.adapter.list_subscriptions, page_size=self.page_size, **filters
        ):
            if self._counts(subscription):
                count += 1
        return count

    async def active_subscriptions(self) -> int:
        """Number of currently active subscriptions."""
        count = await self._count_subscriptions(status="active")
        logger.info("Found %d active subscriptions", count)
        return count

    async def total_subscriptions(self) -> int:
        """Number of subscriptions ever created, in any status."""
        count = await self._count_subscriptions(status="all")
        logger.info("Found %d subscriptions in total", count)
        return count

    async def canceled_subscriptions(self) -> int:
        """Subscriptions canceled within the window, by cancellation time."""
        since = self.window_start()

        # Listed by creation time, so canceled_at is not monotonic within a page
        def _before_window(subscription: StripeSubscription) -> bool:
            return subscription.canceled_at is not None and subscription.canceled_at < since

        count = 0
        async for subscription in iterate_all(
            self.adapter.list_subscriptions,
            page_size=self.page_size,
            stop_when=_before_window,
            status="canceled",
        ):
            if (
                self._counts(subscription)
                and subscription.canceled_at is not None
                and subscription.canceled_at >= since
            ):
                count += 1

        logger.info("Found %d subscriptions canceled in the last %d days", count, self.window_days)
        return count

    async def new_subscribers(self) -> int:
        """Subscriptions created within the window, in any status."""
        count = await self._count_subscriptions(status="all", created_gte=self.window_start())
        logger.info("Found %d new subscriptions in the last %d days", count, self.window_days)
        return count

    # Monthly recurring revenue

    async def mrr(self) -> int:
        """Monthly recurring revenue of all active subscriptions, whole major units."""
        total = 0.0
        subscriptions = 0

        async for subscription in iterate_all(
            self.adapter.list_subscriptions,
            page_size=self.page_size,
            status="active",
            expand_prices=True,
        ):
            if not self._counts(subscription):
                continue
            subscriptions += 1
            for item in subscription.items:
                if item.recurring:
                    total += monthly_equivalent(item.unit_amount, item.interval)

        mrr = round_half_up(total)
        logger.info("Calculated MRR %d from %d active subscriptions", mrr, subscriptions)
        return mrr

    # Revenue

    async def _ledger_value(self, metric: str) -> int:
        if self.ledger is None:
            return 0
        totals = await self.ledger.get_revenue_totals()
        return getattr(totals, metric)

    async def total_revenue(self) -> int:
        """All-time succeeded revenue, whole major units."""
        cents = await resolve_ledger_first(
            "total_revenue",
            lambda: self._ledger_value("total_revenue"),
            self._walk_total_revenue,
        )
        return minor_to_major(cents)

    async def _walk_total_revenue(self) -> int:
        total = 0
        async for charge in iterate_all(self.adapter.list_charges, page_size=self.page_size):
            if charge.status == "succeeded" and self._counts(charge):
                total += charge.amount
        logger.info("Total revenue from Stripe: %d cents", total)
        return total

    async def one_time_revenue(self) -> int:
        """All-time revenue from one-time purchases, excluding credits, whole major units."""
        cents = await resolve_ledger_first(
            "one_time_revenue",
            lambda: self._ledger_value("one_time_revenue"),
            lambda: self._walk_payment_intents(PaymentCategory.ONE_TIME),
        )
        return minor_to_major(cents)

    async def credit_purchase_revenue(self) -> int:
        """All-time revenue from credit top-ups, whole major units."""
        cents = await resolve_ledger_first(
            "credit_purchase_revenue",
            lambda: self._ledger_value("credit_purchase_revenue"),
            lambda: self._walk_payment_intents(PaymentCategory.CREDIT_TOPUP),
        )
        return minor_to_major(cents)

    async def _walk_payment_intents(self, category: PaymentCategory) -> int:
        total = 0
        checked = 0
        async for intent in iterate_all(self.adapter.list_payment_intents, page_size=self.page_size):
            checked += 1
            if intent.status != "succeeded" or not self._counts(intent):
                continue
            if await self.classifier.classify(intent) is category:
                total += intent.settled_amount

        logger.info(
            "%s revenue from Stripe: %d cents (checked %d payment intents)",
            category.value,
            total,
            checked,
        )
        return total

    # Buyers

    async def new_one_time_buyers(self) -> int:
        """Distinct customers with a one-time purchase within the window."""
        customers: set[str] = set()

        async for charge in iterate_all(
            self.adapter.list_charges,
            page_size=self.page_size,
            created_gte=self.window_start(),
        ):
            if charge.status != "succeeded" or not self._counts(charge):
                continue
            if not charge.customer_id or charge.customer_id in customers:
                continue
            if is_credit_topup(charge.metadata, charge.description):
                continue
            if await self.classifier.classify(charge) is PaymentCategory.ONE_TIME:
                customers.add(charge.customer_id)

        logger.info(
            "Found %d new one-time buyers in the last %d days", len(customers), self.window_days
        )
        return len(customers)
