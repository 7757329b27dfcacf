"""
Payments ledger model.

Rows are written by the Stripe webhook/backfill pipeline (outside this
service) and read here only as pre-aggregated revenue totals.
"""

from datetime import datetime
from enum import Enum
from typing import Optional
from uuid import uuid4

from sqlalchemy import Boolean, DateTime, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, TimestampMixin


class PaymentType(str, Enum):
    """Ledger classification of a payment."""

    SUBSCRIPTION = "subscription"
    ONE_TIME_SESSION = "one_time_session"
    CREDIT_TOPUP = "credit_topup"


class PaymentStatus(str, Enum):
    """Ledger payment status."""

    SUCCEEDED = "succeeded"
    PENDING = "pending"
    FAILED = "failed"
    REFUNDED = "refunded"


class StripePayment(Base, TimestampMixin):
    """A single Stripe payment recorded in the local ledger."""

    __tablename__ = "stripe_payments"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid4()),
    )

    # Stripe identifiers
    stripe_payment_id: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    stripe_customer_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True, index=True)

    # Money (minor currency units)
    amount_cents: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="usd")

    status: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        default=PaymentStatus.SUCCEEDED.value,
    )
    payment_type: Mapped[str] = mapped_column(String(50), nullable=False)
    """Values: 'subscription', 'one_time_session', 'credit_topup'"""

    product_type: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    payment_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    is_test_mode: Mapped[Optional[bool]] = mapped_column(Boolean, nullable=True, default=False)

    __table_args__ = (
        Index("ix_stripe_payments_status_type", "status", "payment_type"),
        Index("ix_stripe_payments_payment_date", "payment_date"),
    )

    def __repr__(self) -> str:
        return (
            f"<StripePayment(stripe_payment_id={self.stripe_payment_id!r}, "
            f"payment_type={self.payment_type!r}, amount_cents={self.amount_cents})>"
        )
