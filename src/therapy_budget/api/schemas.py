"""Pydantic request and response schemas for the therapy budget API.

All API inputs and outputs are typed Pydantic models, never raw dicts.
Money fields are Decimals and serialize as two-place decimal strings.
"""

from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel, Field, computed_field

from therapy_budget.core.allocation import AllocationOutcome
from therapy_budget.core.utilization import AllocationStatus

Money = Decimal


# ---------------------------------------------------------------------------
# Budget plans
# ---------------------------------------------------------------------------


class CreatePlanRequest(BaseModel):
    """Request body for creating a budget plan."""

    client_id: int = Field(..., ge=1, description="Client (patient) the plan funds")
    available_funds: Money = Field(
        ...,
        ge=0,
        max_digits=12,
        decimal_places=2,
        description="Funding ceiling for all items on the plan",
        examples=["12000.00"],
    )
    plan_serial_number: str | None = Field(default=None, max_length=100)
    plan_code: str | None = Field(default=None, max_length=100)
    end_of_plan: date | None = Field(
        default=None,
        description="Plan end date (ISO 8601, YYYY-MM-DD)",
        examples=["2026-12-31"],
    )
    is_active: bool = Field(
        default=True,
        description="Make this the client's active plan (deactivates the others)",
    )


class UpdateFundsRequest(BaseModel):
    """Request body for changing a plan's available funds."""

    available_funds: Money = Field(..., ge=0, max_digits=12, decimal_places=2)


class PlanResponse(BaseModel):
    """Response schema for a budget plan."""

    id: int
    client_id: int
    plan_serial_number: str | None
    plan_code: str | None
    available_funds: Money
    end_of_plan: str | None
    is_active: bool
    created_at: datetime | None = None
    updated_at: datetime | None = None

    model_config = {"from_attributes": True}


class PlanPeriodResponse(BaseModel):
    """Remaining days, daily budget and projected depletion for a plan."""

    start_date: date
    end_date: date
    total_days: int
    days_elapsed: int
    remaining_days: int
    daily_budget: Money
    daily_spend_rate: Money
    projected_depletion_date: date | None
    is_expired: bool

    model_config = {"from_attributes": True}


class UtilizationResponse(BaseModel):
    """Allocation and usage summary for a plan."""

    plan_id: int
    client_id: int
    available_funds: Money
    total_allocated: Money
    used_amount: Money
    remaining_allocation: Money
    unallocated_funds: Money
    utilization_pct: Decimal
    percent_allocated: int
    status: AllocationStatus
    item_count: int
    period: PlanPeriodResponse | None = None


# ---------------------------------------------------------------------------
# Budget items
# ---------------------------------------------------------------------------


class EvaluateItemRequest(BaseModel):
    """Candidate item price and quantity for a dry-run allocation check."""

    unit_price: Money = Field(..., ge=Decimal("0.01"), max_digits=12, decimal_places=2)
    quantity: int = Field(..., ge=1)


class SubmitItemRequest(BaseModel):
    """Request body for adding an item to a plan."""

    item_code: str = Field(..., min_length=1, max_length=100, description="Item code is required")
    description: str = Field(..., min_length=1, description="Description is required")
    unit_price: Money = Field(
        ...,
        ge=Decimal("0.01"),
        max_digits=12,
        decimal_places=2,
        description="Unit price must be greater than 0",
    )
    quantity: int = Field(..., ge=1, description="Quantity must be at least 1")
    name: str | None = Field(default=None, max_length=255)
    category: str | None = Field(default=None, max_length=100)
    confirmed: bool = Field(
        default=False,
        description="Proceed even though the item leaves funds unallocated",
    )


class SubmitCatalogItemRequest(BaseModel):
    """Request body for adding a catalog item to a plan."""

    item_code: str = Field(..., min_length=1, max_length=100)
    quantity: int = Field(..., ge=1)
    unit_price: Money | None = Field(
        default=None,
        ge=Decimal("0.01"),
        max_digits=12,
        decimal_places=2,
        description="Override the catalog's default unit price",
    )
    confirmed: bool = False


class UpdateItemQuantityRequest(BaseModel):
    """Request body for changing an item's allocated quantity."""

    quantity: int = Field(..., ge=1)
    confirmed: bool = False


class RecordUsageRequest(BaseModel):
    """Request body for consuming units of an item."""

    units: int = Field(..., ge=1)


class BudgetItemResponse(BaseModel):
    """Response schema for a budget item."""

    id: int
    plan_id: int
    client_id: int
    item_code: str
    name: str | None
    description: str
    unit_price: Money
    quantity: int
    used_quantity: int
    category: str | None

    model_config = {"from_attributes": True}

    @computed_field  # type: ignore[prop-decorator]
    @property
    def line_total(self) -> Money:
        return (self.unit_price * self.quantity).quantize(Decimal("0.01"))


# ---------------------------------------------------------------------------
# Allocation decisions
# ---------------------------------------------------------------------------


class AllocationSnapshotResponse(BaseModel):
    """The figures a decision was made on."""

    existing_items_total: Money
    new_item_total: Money
    total_allocated: Money
    available_funds: Money
    delta: Money

    model_config = {"from_attributes": True}


class AllocationDecisionResponse(BaseModel):
    """The allocation policy's decision for one submission."""

    outcome: AllocationOutcome
    message: str
    delta: Money
    title: str | None
    confirm_label: str | None
    cancel_label: str | None
    requires_confirmation: bool

    model_config = {"from_attributes": True}


class AllocationCheckResponse(BaseModel):
    """Response for the dry-run evaluation endpoint."""

    snapshot: AllocationSnapshotResponse
    decision: AllocationDecisionResponse
    max_affordable_quantity: int = Field(
        ...,
        description="Most units at this price that fit in the unallocated funds (0 = budget limit reached)",
    )

    model_config = {"from_attributes": True}


class ItemSubmissionResponse(BaseModel):
    """Response for item submissions and quantity changes.

    ``created`` is False (and ``item`` null) when the decision was BLOCKED or
    when a CONFIRM decision was not confirmed.
    """

    snapshot: AllocationSnapshotResponse
    decision: AllocationDecisionResponse
    item: BudgetItemResponse | None
    created: bool

    model_config = {"from_attributes": True}


# ---------------------------------------------------------------------------
# Catalog
# ---------------------------------------------------------------------------


class CreateCatalogItemRequest(BaseModel):
    """Request body for adding a catalog entry."""

    item_code: str = Field(..., min_length=1, max_length=100, examples=["15_054_0128_1_3"])
    description: str = Field(..., min_length=1)
    default_unit_price: Money = Field(..., ge=Decimal("0.01"), max_digits=12, decimal_places=2)
    category: str | None = Field(default=None, max_length=100)
    is_active: bool = True


class CatalogItemResponse(BaseModel):
    """Response schema for a catalog entry."""

    id: int
    item_code: str
    description: str
    default_unit_price: Money
    category: str | None
    is_active: bool

    model_config = {"from_attributes": True}
