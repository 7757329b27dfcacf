"""
Ledger-first revenue lookup.

The ``stripe_payments`` table is filled by the webhook pipeline and is much
cheaper to read than walking Stripe. A positive ledger total is trusted as
is; a zero total (or a failing query) falls back to the provider walk.
Note that a ledger that genuinely sums to zero cannot be told apart from
one that has not been populated yet.
"""

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from sqlalchemy import case, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from infrastructure.database.models.payment import PaymentStatus, PaymentType, StripePayment

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LedgerRevenueTotals:
    """Succeeded live-mode revenue from the ledger, in minor units."""

    total_revenue: int = 0
    one_time_revenue: int = 0
    credit_purchase_revenue: int = 0


class LedgerRevenueReader:
    """Reads pre-aggregated revenue totals from the local payment ledger."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def get_revenue_totals(self) -> LedgerRevenueTotals:
        """
        Sum succeeded, non-test payments by payment type in a single query.

        Returns:
            LedgerRevenueTotals in minor units
        """

        def _sum_for(payment_type: PaymentType):
            return func.coalesce(
                func.sum(
                    case(
                        (StripePayment.payment_type == payment_type.value, StripePayment.amount_cents),
                        else_=0,
                    )
                ),
                0,
            )

        query = select(
            func.coalesce(func.sum(StripePayment.amount_cents), 0),
            _sum_for(PaymentType.ONE_TIME_SESSION),
            _sum_for(PaymentType.CREDIT_TOPUP),
        ).where(
            StripePayment.status == PaymentStatus.SUCCEEDED.value,
            or_(StripePayment.is_test_mode.is_(False), StripePayment.is_test_mode.is_(None)),
        )

        async with self.session_factory() as session:
            result = await session.execute(query)
            total, one_time, credit = result.one()

        return LedgerRevenueTotals(
            total_revenue=int(total or 0),
            one_time_revenue=int(one_time or 0),
            credit_purchase_revenue=int(credit or 0),
        )


async def resolve_ledger_first(
    metric: str,
    read_ledger: Callable[[], Awaitable[int]],
    walk_provider: Callable[[], Awaitable[int]],
) -> int:
    """
    Return the ledger value when it is positive, otherwise the provider walk.

    Args:
        metric: Metric name, for logging
        read_ledger: Coroutine function returning the ledger value
        walk_provider: Coroutine function computing the value from Stripe

    Returns:
        The resolved value, in the same units both callables use
    """
    try:
        value = await read_ledger()
    except Exception as e:
        logger.info(
            "Ledger unavailable for %s, walking Stripe instead: %s",
            metric,
            e,
            extra={"metric": metric},
        )
        return await walk_provider()

    if value > 0:
        return value

    logger.info("Ledger has no %s yet, walking Stripe instead", metric, extra={"metric": metric})
    return await walk_provider()
