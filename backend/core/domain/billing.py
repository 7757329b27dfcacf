"""Billing domain rules: interval normalization, payment classification, rounding."""
from collections.abc import Collection, Mapping
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Optional


class BillingInterval(str, Enum):
    """Recurring cadence of a subscription line item."""
    DAY = "day"
    WEEK = "week"
    MONTH = "month"
    YEAR = "year"


class PaymentCategory(str, Enum):
    """What a succeeded payment paid for."""
    SUBSCRIPTION = "subscription"
    ONE_TIME = "one_time"
    CREDIT_TOPUP = "credit_topup"


CREDIT_TOPUP_PRODUCT_TYPE = "credit_topup"

# Sub-monthly cadences: weeks are approximated as 4.33 per month and days
# as 30; dashboards depend on these exact factors.
_MONTHLY_FACTORS: dict[str, float] = {
    BillingInterval.WEEK.value: 4.33,
    BillingInterval.DAY.value: 30.0,
}


def monthly_equivalent(unit_amount: Optional[int], interval: Optional[str]) -> float:
    """
    Convert a recurring price into its monthly amount in major currency units.

    Args:
        unit_amount: Price per interval in minor units (cents). None counts as 0.
        interval: One of day, week, month, year.

    Returns:
        Monthly-equivalent amount in major units. Unknown intervals return 0.0.
    """
    if not unit_amount:
        return 0.0
    if interval == BillingInterval.MONTH.value:
        return unit_amount / 100
    if interval == BillingInterval.YEAR.value:
        return unit_amount / 100 / 12
    if interval in _MONTHLY_FACTORS:
        return unit_amount / 100 * _MONTHLY_FACTORS[interval]
    return 0.0


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from zero."""
    return int(Decimal(str(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def minor_to_major(amount_minor: int) -> int:
    """Convert an integer minor-unit total into whole major units."""
    return int((Decimal(amount_minor) / 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def is_credit_topup(metadata: Optional[Mapping[str, str]], description: Optional[str]) -> bool:
    """
    Whether a payment is an in-app credit purchase.

    Matches the credit_topup product type, a package id mentioning credits,
    or a description containing "credit" in any case.
    """
    metadata = metadata or {}
    if metadata.get("product_type") == CREDIT_TOPUP_PRODUCT_TYPE:
        return True
    package_id = metadata.get("package_id") or ""
    if package_id.startswith("credits") or "credit" in package_id:
        return True
    return bool(description) and "credit" in description.lower()


def is_subscription_candidate(
    metadata: Optional[Mapping[str, str]],
    invoice_id: Optional[str],
    membership_product_types: Collection[str],
) -> bool:
    """Whether a payment might be a subscription charge and needs invoice confirmation."""
    product_type = (metadata or {}).get("product_type")
    return bool(invoice_id) or (product_type is not None and product_type in membership_product_types)
