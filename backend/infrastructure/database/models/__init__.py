"""
SQLAlchemy database models.
"""

from .base import Base, TimestampMixin
from .payment import PaymentStatus, PaymentType, StripePayment

__all__ = [
    "Base",
    "TimestampMixin",
    "StripePayment",
    "PaymentType",
    "PaymentStatus",
]
