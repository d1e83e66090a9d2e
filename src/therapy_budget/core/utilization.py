"""Plan utilization and allocation-status helpers.

Pure functions over a plan's items and funds, used by the plan summary
endpoint and by item edits. Money is handled in integer cents like the
allocation calculator.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date, timedelta
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Any

from therapy_budget.core.money import Amount, from_cents, to_cents

# Plan length assumed when end_of_plan is not after the start date.
DEFAULT_PLAN_DAYS = 180
MAX_PROJECTION_DAYS = 365


class AllocationStatus(str, Enum):
    """How a plan's allocation compares with its available funds."""

    OVER_BUDGET = "over_budget"
    FULLY_ALLOCATED = "fully_allocated"
    APPROACHING_LIMIT = "approaching_limit"
    GOOD_STANDING = "good_standing"


@dataclass(frozen=True)
class UtilizationSummary:
    """Allocation and usage figures for one plan.

    Attributes:
        available_funds: The plan's funding ceiling.
        total_allocated: Sum of unit_price * quantity over the plan's items.
        used_amount: Sum of unit_price * used_quantity.
        remaining_allocation: total_allocated - used_amount.
        unallocated_funds: available_funds - total_allocated (negative when over).
        utilization_pct: used_amount / total_allocated * 100, one decimal place.
        percent_allocated: total_allocated / available_funds * 100, capped at 100.
        status: Allocation status band.
        item_count: Number of items on the plan.
        period: Time-based figures, when the plan has an end date.
    """

    available_funds: Decimal
    total_allocated: Decimal
    used_amount: Decimal
    remaining_allocation: Decimal
    unallocated_funds: Decimal
    utilization_pct: Decimal
    percent_allocated: int
    status: AllocationStatus
    item_count: int
    period: PlanPeriod | None = None


@dataclass(frozen=True)
class PlanPeriod:
    """Time-based budget figures for a plan running from start_date to end_date.

    Attributes:
        start_date: First day of the plan (the plan's creation date).
        end_date: The plan's end_of_plan date.
        total_days: Days between start_date and end_date.
        days_elapsed: Days since start_date, clamped to [0, total_days].
        remaining_days: Days left until end_date (0 once expired).
        daily_budget: Allocated total spread evenly over the plan's days.
        daily_spend_rate: Used amount per elapsed day so far.
        projected_depletion_date: When the remaining allocation runs out at the
            current spend rate, if that falls before end_date.
        is_expired: True once today is past end_date.
    """

    start_date: date
    end_date: date
    total_days: int
    days_elapsed: int
    remaining_days: int
    daily_budget: Decimal
    daily_spend_rate: Decimal
    projected_depletion_date: date | None
    is_expired: bool


def _per_day(cents: int, days: int) -> Decimal:
    return from_cents(int((Decimal(cents) / days).quantize(Decimal("1"), rounding=ROUND_HALF_UP)))


def plan_period(
    start_date: date,
    end_date: date,
    total_allocated: Amount,
    used_amount: Amount,
    today: date,
) -> PlanPeriod:
    """Compute remaining days, daily budget and projected depletion for a plan."""
    total_days = (end_date - start_date).days
    days_elapsed = max(0, min((today - start_date).days, total_days))
    remaining_days = max(0, total_days - days_elapsed)

    allocated_cents = to_cents(total_allocated)
    used_cents = to_cents(used_amount)
    remaining_cents = allocated_cents - used_cents

    daily_budget = _per_day(allocated_cents, total_days if total_days > 0 else DEFAULT_PLAN_DAYS)
    daily_spend_rate = _per_day(used_cents, days_elapsed) if days_elapsed > 0 else from_cents(0)

    projected: date | None = None
    if used_cents > 0 and days_elapsed > 0 and remaining_cents > 0:
        days_until_depletion = min(
            remaining_cents * days_elapsed // used_cents,
            MAX_PROJECTION_DAYS,
        )
        candidate = today + timedelta(days=days_until_depletion)
        if candidate < end_date:
            projected = candidate

    return PlanPeriod(
        start_date=start_date,
        end_date=end_date,
        total_days=total_days,
        days_elapsed=days_elapsed,
        remaining_days=remaining_days,
        daily_budget=daily_budget,
        daily_spend_rate=daily_spend_rate,
        projected_depletion_date=projected,
        is_expired=today > end_date,
    )


def percent_allocated(total_allocated: Amount, available_funds: Amount) -> int:
    """Share of available funds already allocated, rounded half-up and capped at 100."""
    allocated_cents = to_cents(total_allocated)
    funds_cents = to_cents(available_funds)
    if allocated_cents <= 0 or funds_cents <= 0:
        return 0
    pct = (Decimal(allocated_cents) * 100 / Decimal(funds_cents)).quantize(
        Decimal("1"), rounding=ROUND_HALF_UP
    )
    return min(int(pct), 100)


def allocation_status(
    total_allocated: Amount,
    available_funds: Amount,
    approaching_pct: int = 80,
) -> AllocationStatus:
    """Classify a plan's allocation against its funds."""
    allocated_cents = to_cents(total_allocated)
    funds_cents = to_cents(available_funds)
    if allocated_cents > funds_cents:
        return AllocationStatus.OVER_BUDGET
    if allocated_cents == funds_cents:
        return AllocationStatus.FULLY_ALLOCATED
    if percent_allocated(total_allocated, available_funds) > approaching_pct:
        return AllocationStatus.APPROACHING_LIMIT
    return AllocationStatus.GOOD_STANDING


def summarize_utilization(
    items: Iterable[Any],
    available_funds: Amount,
    approaching_pct: int = 80,
    start_date: date | None = None,
    end_date: date | None = None,
    today: date | None = None,
) -> UtilizationSummary:
    """Compute allocation and usage figures from a plan's current items.

    Period figures are included when both start_date and end_date are given;
    today defaults to the current local date.
    """
    items = list(items)
    allocated_cents = 0
    used_cents = 0
    for item in items:
        price_cents = to_cents(item.unit_price)
        allocated_cents += price_cents * item.quantity
        used_cents += price_cents * (item.used_quantity or 0)

    funds_cents = to_cents(available_funds)
    if allocated_cents > 0:
        utilization = (Decimal(used_cents) * 100 / Decimal(allocated_cents)).quantize(
            Decimal("0.1"), rounding=ROUND_HALF_UP
        )
    else:
        utilization = Decimal("0.0")

    total = from_cents(allocated_cents)
    funds = from_cents(funds_cents)
    used = from_cents(used_cents)
    period = None
    if start_date is not None and end_date is not None:
        period = plan_period(start_date, end_date, total, used, today or date.today())

    return UtilizationSummary(
        available_funds=funds,
        total_allocated=total,
        used_amount=used,
        remaining_allocation=from_cents(allocated_cents - used_cents),
        unallocated_funds=from_cents(funds_cents - allocated_cents),
        utilization_pct=utilization,
        percent_allocated=percent_allocated(total, funds),
        status=allocation_status(total, funds, approaching_pct=approaching_pct),
        item_count=len(items),
        period=period,
    )


def max_affordable_quantity(existing_total: Amount, unit_price: Amount, available_funds: Amount) -> int:
    """Largest quantity of an item that fits in the remaining funds."""
    price_cents = to_cents(unit_price)
    if price_cents <= 0:
        return 0
    remaining_cents = to_cents(available_funds) - to_cents(existing_total)
    if remaining_cents <= 0:
        return 0
    return remaining_cents // price_cents


def quantity_below_used_error(quantity: int, used_quantity: int) -> str | None:
    """Return an error message when quantity would drop below units already used."""
    if quantity < used_quantity:
        return f"Quantity cannot be less than {used_quantity} unit(s) already used in sessions"
    return None
