"""Budget allocation reconciliation.

Two pieces, both pure and framework-free:

  Allocation calculator:  sums the line totals of a plan's items, adds a
                           candidate item and compares the result with the
                           plan's available funds.
  Allocation policy:      turns the signed delta into one of three
                           outcomes the caller switches on.

Key invariants:
  - delta = (existing_items_total + unit_price * quantity) - available_funds
  - All arithmetic is integer cents; no float drift across repeated additions.
  - delta > 0 -> BLOCKED, delta < 0 -> CONFIRM, delta == 0 -> PROCEED.
  - A snapshot is built fresh on every request and never cached.
  - evaluate_allocation() never raises.
  - Quantity reductions are never blocked; only increases are checked.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, replace
from decimal import Decimal
from enum import Enum
from typing import Any

from therapy_budget.core.money import Amount, format_currency, from_cents, to_cents


class AllocationInputError(ValueError):
    """Raised when calculator inputs fail the price/quantity/funds constraints."""


class AllocationOutcome(str, Enum):
    """The three terminal results of evaluating one submission."""

    BLOCKED = "blocked"
    CONFIRM = "confirm"
    PROCEED = "proceed"


class UserChoice(str, Enum):
    """The user's answer to a CONFIRM decision."""

    PROCEED = "proceed"
    ADJUST = "adjust"


@dataclass(frozen=True)
class AllocationSnapshot:
    """Monetary effect of adding a candidate item to a plan.

    Attributes:
        existing_items_total: Sum of line totals already on the plan.
        new_item_total: unit_price * quantity of the candidate item.
        total_allocated: existing_items_total + new_item_total.
        available_funds: The plan's funding ceiling.
        delta: total_allocated - available_funds (positive = over budget).
    """

    existing_items_total: Decimal
    new_item_total: Decimal
    total_allocated: Decimal
    available_funds: Decimal
    delta: Decimal

    @property
    def is_over_allocated(self) -> bool:
        return self.delta > 0

    @property
    def is_under_allocated(self) -> bool:
        return self.delta < 0


@dataclass(frozen=True)
class AllocationDecision:
    """Policy result consumed by the caller.

    Attributes:
        outcome: BLOCKED | CONFIRM | PROCEED.
        message: User-facing explanation (empty for PROCEED).
        delta: Signed delta from the snapshot the decision was made on.
        title: Dialog title for BLOCKED and CONFIRM outcomes.
        confirm_label: Label for the primary action.
        cancel_label: Label for the secondary action (CONFIRM only).
    """

    outcome: AllocationOutcome
    message: str
    delta: Decimal
    title: str | None = None
    confirm_label: str | None = None
    cancel_label: str | None = None

    @property
    def requires_confirmation(self) -> bool:
        return self.outcome is AllocationOutcome.CONFIRM


# ---------------------------------------------------------------------------
# Allocation calculator
# ---------------------------------------------------------------------------


def line_total_cents(unit_price: Amount, quantity: int) -> int:
    """Return unit_price * quantity in integer cents."""
    return to_cents(unit_price) * int(quantity)


def total_allocated(items: Iterable[Any]) -> Decimal:
    """Sum unit_price * quantity over items exposing those attributes."""
    return from_cents(sum(line_total_cents(item.unit_price, item.quantity) for item in items))


def compute_allocation(
    existing_items_total: Amount,
    candidate_unit_price: Amount,
    candidate_quantity: int,
    available_funds: Amount,
) -> AllocationSnapshot:
    """Compute the allocation snapshot for adding a candidate item.

    Args:
        existing_items_total: Sum of line totals already allocated on the plan.
        candidate_unit_price: Unit price of the new item (must be > 0).
        candidate_quantity: Quantity of the new item (must be >= 1).
        available_funds: The plan's available funds (must be >= 0).

    Returns:
        AllocationSnapshot with a signed delta.

    Raises:
        AllocationInputError: If any input violates its constraint.
    """
    try:
        existing_cents = to_cents(existing_items_total)
        price_cents = to_cents(candidate_unit_price)
        funds_cents = to_cents(available_funds)
    except ValueError as exc:
        raise AllocationInputError(str(exc)) from exc

    if isinstance(candidate_quantity, bool) or not isinstance(candidate_quantity, int):
        raise AllocationInputError(f"Quantity must be a whole number, got {candidate_quantity!r}")
    if price_cents <= 0:
        raise AllocationInputError("Unit price must be greater than 0")
    if candidate_quantity < 1:
        raise AllocationInputError("Quantity must be at least 1")
    if funds_cents < 0:
        raise AllocationInputError("Available funds must not be negative")
    if existing_cents < 0:
        raise AllocationInputError("Existing items total must not be negative")

    new_item_cents = price_cents * candidate_quantity
    new_total_cents = existing_cents + new_item_cents

    return AllocationSnapshot(
        existing_items_total=from_cents(existing_cents),
        new_item_total=from_cents(new_item_cents),
        total_allocated=from_cents(new_total_cents),
        available_funds=from_cents(funds_cents),
        delta=from_cents(new_total_cents - funds_cents),
    )


def snapshot_for_items(
    items: Iterable[Any],
    candidate_unit_price: Amount,
    candidate_quantity: int,
    available_funds: Amount,
    exclude_item_id: int | None = None,
) -> AllocationSnapshot:
    """Build a snapshot from a plan's live item list.

    Args:
        items: Current budget items on the plan.
        candidate_unit_price: Unit price of the item being added or edited.
        candidate_quantity: Quantity of the item being added or edited.
        available_funds: The plan's available funds.
        exclude_item_id: Item to leave out of the existing total (the item
            being edited, so it is not counted twice).
    """
    existing = [item for item in items if exclude_item_id is None or item.id != exclude_item_id]
    return compute_allocation(
        existing_items_total=total_allocated(existing),
        candidate_unit_price=candidate_unit_price,
        candidate_quantity=candidate_quantity,
        available_funds=available_funds,
    )


# ---------------------------------------------------------------------------
# Allocation policy
# ---------------------------------------------------------------------------


def evaluate_allocation(snapshot: AllocationSnapshot, currency_symbol: str = "$") -> AllocationDecision:
    """Map a snapshot's delta to a BLOCKED, CONFIRM, or PROCEED decision.

    Over-allocation is a hard stop with no proceed path. Under-allocation
    asks the user to confirm. An exact match proceeds without a dialog.
    """
    delta = snapshot.delta
    amount = format_currency(abs(delta), symbol=currency_symbol)

    if delta > 0:
        return AllocationDecision(
            outcome=AllocationOutcome.BLOCKED,
            message=f"Adding this item would exceed the available budget by {amount}.",
            delta=delta,
            title="Budget Allocation Exceeds Available Funds",
            confirm_label="Adjust Allocations",
        )

    if delta < 0:
        return AllocationDecision(
            outcome=AllocationOutcome.CONFIRM,
            message=(
                f"Adding this item would leave {amount} unallocated in the budget. "
                "Do you want to proceed?"
            ),
            delta=delta,
            title="Budget Allocation Below Available Funds",
            confirm_label="Yes, Add Item",
            cancel_label="No, Adjust Allocations",
        )

    return AllocationDecision(outcome=AllocationOutcome.PROCEED, message="", delta=delta)


def evaluate_quantity_change(
    snapshot: AllocationSnapshot,
    previous_quantity: int,
    new_quantity: int,
    currency_symbol: str = "$",
) -> AllocationDecision:
    """Decide on changing an existing item's quantity.

    ``snapshot`` must be built with the edited item excluded from the
    existing total. Reductions (and no-op edits) always proceed, so an
    over-budget plan can be brought back under its funds. Increases use the
    same thresholds as adding an item, worded for an edit.
    """
    if new_quantity <= previous_quantity:
        return AllocationDecision(outcome=AllocationOutcome.PROCEED, message="", delta=snapshot.delta)

    decision = evaluate_allocation(snapshot, currency_symbol=currency_symbol)
    amount = format_currency(abs(snapshot.delta), symbol=currency_symbol)

    if decision.outcome is AllocationOutcome.BLOCKED:
        return replace(
            decision,
            message=f"Increasing this quantity would exceed the available budget by {amount}.",
            title="Budget Exceeded",
        )
    if decision.outcome is AllocationOutcome.CONFIRM:
        return replace(
            decision,
            message=(
                f"Increasing this quantity would leave {amount} unallocated in the budget. "
                "Do you want to proceed?"
            ),
            confirm_label="Yes, Update Quantity",
        )
    return decision


def resolve_decision(decision: AllocationDecision, choice: UserChoice | None = None) -> bool:
    """Return True when the item may be created.

    BLOCKED is never approved, PROCEED always is, and CONFIRM only when the
    user explicitly chose to proceed.
    """
    if decision.outcome is AllocationOutcome.PROCEED:
        return True
    if decision.outcome is AllocationOutcome.CONFIRM:
        return choice is UserChoice.PROCEED
    return False
