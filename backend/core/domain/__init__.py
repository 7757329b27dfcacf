# Domain Entities
# Pure business objects with no external dependencies
from .billing import BillingInterval, PaymentCategory
from .metrics import RevenueMetricsSnapshot

__all__ = [
    "BillingInterval",
    "PaymentCategory",
    "RevenueMetricsSnapshot",
]
