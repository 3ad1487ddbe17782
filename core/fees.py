# Fee calculation for campaign funding (amounts in cents)

from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, Any

from config.app_config import PLATFORM_FEE_PERCENT, PROCESSING_FEE_PERCENT
from core.exceptions import MarketplaceError


def _percent_of(amount: int, percent: float) -> int:
    value = Decimal(amount) * Decimal(str(percent)) / Decimal(100)
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def calculate_fees(amount: int) -> Dict[str, Any]:
    """
    Fee breakdown for funding ``amount`` cents.

    Platform and processing fees are charged on top of the amount, so the
    brand pays ``total`` and ``amount`` lands in escrow.
    """
    if amount is None or amount <= 0:
        raise MarketplaceError("Amount must be greater than zero")

    platform_fee = _percent_of(amount, PLATFORM_FEE_PERCENT)
    processing_fee = _percent_of(amount, PROCESSING_FEE_PERCENT)

    return {
        "amount": amount,
        "platform_fee": platform_fee,
        "processing_fee": processing_fee,
        "total": amount + platform_fee + processing_fee,
        "platform_fee_percent": PLATFORM_FEE_PERCENT,
        "processing_fee_percent": PROCESSING_FEE_PERCENT,
    }


def compute_allocation_total(target_budget: int) -> Dict[str, int]:
    """What a brand must set aside to fully fund a campaign budget."""
    fees = calculate_fees(target_budget)
    return {
        "target_budget": target_budget,
        "platform_fee": fees["platform_fee"],
        "processing_fee": fees["processing_fee"],
        "total_required": fees["total"],
    }
