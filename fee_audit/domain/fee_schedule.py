"""Lookups against the bank's contractual fee schedule"""

from typing import Optional

from fee_audit.domain.models import BankConditions, FeeKind, FeeSchedule
from fee_audit.domain.patterns import OTHER_SERVICE, SERVICE_FEE_CODES, SERVICE_TYPE_PATTERNS, first_match


def classify_service(description: str) -> str:
    """Service type of a debit, from the ordered classification table"""
    return first_match(SERVICE_TYPE_PATTERNS, description) or OTHER_SERVICE


def find_matching_fee(service_type: str, conditions: Optional[BankConditions]) -> Optional[FeeSchedule]:
    """First schedule entry whose code or name contains one of the service's code fragments"""
    if conditions is None:
        return None

    codes = SERVICE_FEE_CODES.get(service_type, ())
    for fee in conditions.fees:
        code = fee.code.upper()
        name = fee.name.upper()
        if any(fragment in code or fragment in name for fragment in codes):
            return fee
    return None


def expected_amount(fee: FeeSchedule, base_amount: Optional[float] = None) -> float:
    """
    Contractual amount for one application of `fee`.

    Percentage fees need the amount of the underlying operation; without it
    the schedule's fixed amount (or its minimum) is the expected floor.
    Tier resolution happens upstream, so tiered entries carry their amount.
    """
    if fee.type is FeeKind.PERCENTAGE:
        rate = fee.percentage or 0
        if base_amount and rate > 0:
            calculated = abs(base_amount) * rate
            lower = fee.min_amount or 0
            upper = fee.max_amount if fee.max_amount is not None else float("inf")
            return min(max(calculated, lower), upper)
        return fee.amount or fee.min_amount or 0

    return fee.amount


def source_name(conditions: BankConditions) -> str:
    """Human label of the fee grid the evidence refers to"""
    if conditions.effective_date:
        return f"Fee schedule {conditions.bank_name} - {conditions.effective_date.strftime('%B %Y')}"
    return f"Conditions {conditions.bank_name}"
