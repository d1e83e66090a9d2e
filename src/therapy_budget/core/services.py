"""Business logic services for the therapy budget service.

All services depend on repository interfaces (not concrete implementations)
and receive dependencies via constructor injection. No framework code
(FastAPI, SQLAlchemy) belongs here.

Key invariants:
- BudgetPlanService: at most one active plan per client.
- BudgetItemService: every submission re-reads the plan's items and runs the
  allocation policy on a fresh snapshot; an item is persisted only when
  resolve_decision() approves it. Quantity reductions skip the policy.
- CatalogService: item codes are unique.
"""

from dataclasses import dataclass
from datetime import date, datetime, timezone
from decimal import Decimal

from therapy_budget.core.allocation import (
    AllocationDecision,
    AllocationInputError,
    AllocationOutcome,
    AllocationSnapshot,
    UserChoice,
    evaluate_allocation,
    evaluate_quantity_change,
    resolve_decision,
    snapshot_for_items,
)
from therapy_budget.core.interfaces import (
    IBudgetItemRepository,
    IBudgetPlanRepository,
    ICatalogRepository,
)
from therapy_budget.core.models import BudgetItem, BudgetPlan, CatalogItem
from therapy_budget.core.money import Amount, to_decimal
from therapy_budget.core.utilization import (
    UtilizationSummary,
    max_affordable_quantity,
    quantity_below_used_error,
    summarize_utilization,
)
from therapy_budget.errors import BudgetValidationError, ConflictError, NotFoundError
from therapy_budget.observability import get_logger
from therapy_budget.settings import Settings

logger = get_logger(__name__)


@dataclass(frozen=True)
class AllocationCheck:
    """A snapshot, the policy decision made on it, and how many units still fit."""

    snapshot: AllocationSnapshot
    decision: AllocationDecision
    max_affordable_quantity: int


@dataclass(frozen=True)
class ItemSubmission:
    """Result of submitting an item: the decision and the created item, if any."""

    snapshot: AllocationSnapshot
    decision: AllocationDecision
    item: BudgetItem | None

    @property
    def created(self) -> bool:
        return self.item is not None


def _non_negative_funds(amount: Amount) -> Decimal:
    try:
        funds = to_decimal(amount)
    except ValueError as exc:
        raise BudgetValidationError(str(exc)) from exc
    if funds < 0:
        raise BudgetValidationError("Available funds must be a positive number")
    return funds


def _plan_end_date(value: date | str | None) -> date | None:
    if value is None or isinstance(value, date):
        return value
    try:
        return date.fromisoformat(value)
    except ValueError as exc:
        raise BudgetValidationError(f"End of plan must be an ISO date (YYYY-MM-DD), got {value!r}") from exc


class BudgetPlanService:
    """Create, activate, and summarise client budget plans."""

    def __init__(
        self,
        plan_repo: IBudgetPlanRepository,
        item_repo: IBudgetItemRepository,
        settings: Settings,
    ) -> None:
        """Initialize BudgetPlanService with required dependencies."""
        self._plan_repo = plan_repo
        self._item_repo = item_repo
        self._settings = settings

    async def create_plan(
        self,
        client_id: int,
        available_funds: Amount,
        plan_serial_number: str | None = None,
        plan_code: str | None = None,
        end_of_plan: date | str | None = None,
        is_active: bool = True,
    ) -> BudgetPlan:
        """Create a plan for a client.

        A new active plan replaces the client's current active plan.

        Raises:
            BudgetValidationError: If available_funds is negative or malformed,
                or end_of_plan is not an ISO date.
        """
        funds = _non_negative_funds(available_funds)
        end_date = _plan_end_date(end_of_plan)
        if is_active:
            await self._plan_repo.deactivate_for_client(client_id)

        plan = BudgetPlan(
            client_id=client_id,
            available_funds=funds,
            plan_serial_number=plan_serial_number,
            plan_code=plan_code,
            end_of_plan=end_date.isoformat() if end_date else None,
            is_active=is_active,
        )
        persisted = await self._plan_repo.create(plan)

        logger.info(
            "budget_plan_created",
            client_id=client_id,
            plan_id=persisted.id,
            available_funds=str(funds),
            is_active=is_active,
        )
        return persisted

    async def get_plan(self, plan_id: int) -> BudgetPlan:
        """Retrieve a plan.

        Raises:
            NotFoundError: If no plan has this id.
        """
        plan = await self._plan_repo.get_by_id(plan_id)
        if plan is None:
            raise NotFoundError(f"Budget plan {plan_id} not found")
        return plan

    async def list_plans(self, client_id: int) -> list[BudgetPlan]:
        """List all plans for a client."""
        return await self._plan_repo.list_by_client(client_id)

    async def get_active_plan(self, client_id: int) -> BudgetPlan:
        """Return the client's active plan.

        Raises:
            NotFoundError: If the client has no active plan.
        """
        plan = await self._plan_repo.get_active_for_client(client_id)
        if plan is None:
            raise NotFoundError(f"Client {client_id} has no active budget plan")
        return plan

    async def activate_plan(self, plan_id: int) -> BudgetPlan:
        """Make a plan the client's only active plan."""
        plan = await self.get_plan(plan_id)
        await self._plan_repo.deactivate_for_client(plan.client_id, except_plan_id=plan.id)
        plan.is_active = True
        persisted = await self._plan_repo.save(plan)

        logger.info("budget_plan_activated", client_id=plan.client_id, plan_id=plan.id)
        return persisted

    async def update_available_funds(self, plan_id: int, available_funds: Amount) -> BudgetPlan:
        """Change a plan's funding ceiling.

        Existing items are left untouched even if they now exceed the new
        ceiling; the utilization summary reports the plan as over budget.
        """
        funds = _non_negative_funds(available_funds)
        plan = await self.get_plan(plan_id)
        plan.available_funds = funds
        persisted = await self._plan_repo.save(plan)

        logger.info("budget_plan_funds_updated", plan_id=plan_id, available_funds=str(funds))
        return persisted

    async def get_utilization(
        self,
        plan_id: int,
        today: date | None = None,
    ) -> tuple[BudgetPlan, UtilizationSummary]:
        """Summarise allocation and usage for a plan from its current items.

        Period figures run from the plan's creation date to its end_of_plan
        and are omitted when the plan has no end date.
        """
        plan = await self.get_plan(plan_id)
        items = await self._item_repo.list_by_plan(plan_id)
        today = today or datetime.now(timezone.utc).date()
        summary = summarize_utilization(
            items,
            plan.available_funds,
            approaching_pct=self._settings.approaching_limit_pct,
            start_date=plan.created_at.date() if plan.created_at else today,
            end_date=_plan_end_date(plan.end_of_plan),
            today=today,
        )
        return plan, summary


class BudgetItemService:
    """Add, edit, and consume budget items under the allocation policy."""

    def __init__(
        self,
        plan_repo: IBudgetPlanRepository,
        item_repo: IBudgetItemRepository,
        catalog_repo: ICatalogRepository,
        settings: Settings,
    ) -> None:
        """Initialize BudgetItemService with required dependencies."""
        self._plan_repo = plan_repo
        self._item_repo = item_repo
        self._catalog_repo = catalog_repo
        self._settings = settings

    async def _get_plan(self, plan_id: int) -> BudgetPlan:
        plan = await self._plan_repo.get_by_id(plan_id)
        if plan is None:
            raise NotFoundError(f"Budget plan {plan_id} not found")
        return plan

    async def _get_item(self, item_id: int) -> BudgetItem:
        item = await self._item_repo.get_by_id(item_id)
        if item is None:
            raise NotFoundError(f"Budget item {item_id} not found")
        return item

    async def _snapshot(
        self,
        plan: BudgetPlan,
        unit_price: Amount,
        quantity: int,
        exclude_item_id: int | None = None,
    ) -> AllocationSnapshot:
        items = await self._item_repo.list_by_plan(plan.id)
        try:
            return snapshot_for_items(
                items,
                candidate_unit_price=unit_price,
                candidate_quantity=quantity,
                available_funds=plan.available_funds,
                exclude_item_id=exclude_item_id,
            )
        except AllocationInputError as exc:
            raise BudgetValidationError(str(exc)) from exc

    async def _check(self, plan: BudgetPlan, unit_price: Amount, quantity: int) -> AllocationCheck:
        snapshot = await self._snapshot(plan, unit_price, quantity)
        decision = evaluate_allocation(snapshot, currency_symbol=self._settings.currency_symbol)
        return AllocationCheck(
            snapshot=snapshot,
            decision=decision,
            max_affordable_quantity=max_affordable_quantity(
                snapshot.existing_items_total,
                unit_price,
                snapshot.available_funds,
            ),
        )

    @staticmethod
    def _log_withheld(plan_id: int, snapshot: AllocationSnapshot, decision: AllocationDecision) -> None:
        if decision.outcome is AllocationOutcome.BLOCKED:
            logger.info(
                "allocation_blocked",
                plan_id=plan_id,
                delta=str(snapshot.delta),
                total_allocated=str(snapshot.total_allocated),
                available_funds=str(snapshot.available_funds),
            )
        else:
            logger.info(
                "allocation_confirmation_required",
                plan_id=plan_id,
                delta=str(snapshot.delta),
            )

    async def evaluate_item(self, plan_id: int, unit_price: Amount, quantity: int) -> AllocationCheck:
        """Run the allocation policy for a candidate item without creating it."""
        plan = await self._get_plan(plan_id)
        return await self._check(plan, unit_price, quantity)

    async def submit_item(
        self,
        plan_id: int,
        item_code: str,
        description: str,
        unit_price: Amount,
        quantity: int,
        name: str | None = None,
        category: str | None = None,
        confirmed: bool = False,
    ) -> ItemSubmission:
        """Submit a new item to a plan.

        The item is created when the allocation exactly matches the plan's
        funds, or when it leaves funds unallocated and ``confirmed`` is True.
        An over-allocating item is never created.

        Args:
            plan_id: Plan to add the item to.
            item_code: Item code (usually from the catalog).
            description: Item description.
            unit_price: Price per unit (> 0).
            quantity: Units to allocate (>= 1).
            name: Optional display name.
            category: Optional category.
            confirmed: The user's answer to a CONFIRM decision.

        Returns:
            ItemSubmission carrying the decision and the created item, if any.

        Raises:
            NotFoundError: If the plan does not exist.
            BudgetValidationError: If price or quantity fail validation.
        """
        plan = await self._get_plan(plan_id)
        check = await self._check(plan, unit_price, quantity)
        choice = UserChoice.PROCEED if confirmed else None

        if not resolve_decision(check.decision, choice):
            self._log_withheld(plan_id, check.snapshot, check.decision)
            return ItemSubmission(snapshot=check.snapshot, decision=check.decision, item=None)

        item = BudgetItem(
            plan_id=plan.id,
            client_id=plan.client_id,
            item_code=item_code,
            name=name,
            description=description,
            unit_price=to_decimal(unit_price),
            quantity=quantity,
            used_quantity=0,
            category=category,
        )
        persisted = await self._item_repo.create(item)

        logger.info(
            "budget_item_created",
            plan_id=plan.id,
            item_id=persisted.id,
            item_code=item_code,
            line_total=str(check.snapshot.new_item_total),
            outcome=check.decision.outcome.value,
        )
        return ItemSubmission(snapshot=check.snapshot, decision=check.decision, item=persisted)

    async def create_item_from_catalog(
        self,
        plan_id: int,
        item_code: str,
        quantity: int,
        unit_price: Amount | None = None,
        confirmed: bool = False,
    ) -> ItemSubmission:
        """Submit an item copied from a catalog entry.

        Raises:
            NotFoundError: If the catalog entry does not exist.
            BudgetValidationError: If the catalog entry is inactive.
        """
        entry = await self._catalog_repo.get_by_code(item_code)
        if entry is None:
            raise NotFoundError(f"Catalog item '{item_code}' not found")
        if not entry.is_active:
            raise BudgetValidationError(f"Catalog item '{item_code}' is inactive")

        return await self.submit_item(
            plan_id=plan_id,
            item_code=entry.item_code,
            description=entry.description,
            unit_price=entry.default_unit_price if unit_price is None else unit_price,
            quantity=quantity,
            category=entry.category,
            confirmed=confirmed,
        )

    async def update_item_quantity(
        self,
        item_id: int,
        quantity: int,
        confirmed: bool = False,
    ) -> ItemSubmission:
        """Change an item's allocated quantity.

        Reductions are applied directly once they clear the used-quantity
        floor, so an over-budget plan can always be trimmed. Increases go
        through the allocation policy with the item's current line total left
        out of the existing total so it is not counted twice.

        Raises:
            NotFoundError: If the item or its plan does not exist.
            BudgetValidationError: If quantity is below the units already used.
        """
        item = await self._get_item(item_id)
        error = quantity_below_used_error(quantity, item.used_quantity)
        if error is not None:
            raise BudgetValidationError(error)

        plan = await self._get_plan(item.plan_id)
        snapshot = await self._snapshot(plan, item.unit_price, quantity, exclude_item_id=item.id)
        decision = evaluate_quantity_change(
            snapshot,
            previous_quantity=item.quantity,
            new_quantity=quantity,
            currency_symbol=self._settings.currency_symbol,
        )
        choice = UserChoice.PROCEED if confirmed else None

        if not resolve_decision(decision, choice):
            self._log_withheld(plan.id, snapshot, decision)
            return ItemSubmission(snapshot=snapshot, decision=decision, item=None)

        previous = item.quantity
        item.quantity = quantity
        persisted = await self._item_repo.save(item)

        logger.info(
            "budget_item_quantity_updated",
            plan_id=plan.id,
            item_id=item.id,
            previous_quantity=previous,
            quantity=quantity,
        )
        return ItemSubmission(snapshot=snapshot, decision=decision, item=persisted)

    async def record_usage(self, item_id: int, units: int) -> BudgetItem:
        """Consume units of an item (e.g. products used in a therapy session).

        Raises:
            BudgetValidationError: If units < 1 or usage would exceed the allocation.
        """
        if units < 1:
            raise BudgetValidationError("Usage must be at least 1 unit")
        item = await self._get_item(item_id)
        if item.used_quantity + units > item.quantity:
            raise BudgetValidationError(
                f"Using {units} unit(s) would exceed the {item.quantity} unit(s) "
                f"allocated to '{item.item_code}' ({item.used_quantity} already used)"
            )

        item.used_quantity += units
        persisted = await self._item_repo.save(item)

        logger.info(
            "budget_item_usage_recorded",
            item_id=item.id,
            units=units,
            used_quantity=item.used_quantity,
        )
        return persisted

    async def delete_item(self, item_id: int) -> None:
        """Remove an item from its plan."""
        item = await self._get_item(item_id)
        await self._item_repo.delete(item)
        logger.info("budget_item_deleted", item_id=item_id, plan_id=item.plan_id)

    async def list_items(self, plan_id: int) -> list[BudgetItem]:
        """List the current items of a plan."""
        await self._get_plan(plan_id)
        return await self._item_repo.list_by_plan(plan_id)


class CatalogService:
    """Manage and search the budget item catalog."""

    def __init__(self, catalog_repo: ICatalogRepository) -> None:
        """Initialize CatalogService with its repository."""
        self._catalog_repo = catalog_repo

    async def create_catalog_item(
        self,
        item_code: str,
        description: str,
        default_unit_price: Amount,
        category: str | None = None,
        is_active: bool = True,
    ) -> CatalogItem:
        """Add an entry to the catalog.

        Raises:
            ConflictError: If the item code already exists.
            BudgetValidationError: If the default price is not positive.
        """
        try:
            price = to_decimal(default_unit_price)
        except ValueError as exc:
            raise BudgetValidationError(str(exc)) from exc
        if price <= 0:
            raise BudgetValidationError("Unit price must be greater than 0")

        existing = await self._catalog_repo.get_by_code(item_code)
        if existing is not None:
            raise ConflictError(f"Catalog item '{item_code}' already exists")

        entry = CatalogItem(
            item_code=item_code,
            description=description,
            default_unit_price=price,
            category=category,
            is_active=is_active,
        )
        persisted = await self._catalog_repo.create(entry)
        logger.info("catalog_item_created", item_code=item_code, default_unit_price=str(price))
        return persisted

    async def get_by_code(self, item_code: str) -> CatalogItem:
        """Retrieve a catalog entry.

        Raises:
            NotFoundError: If no entry has this code.
        """
        entry = await self._catalog_repo.get_by_code(item_code)
        if entry is None:
            raise NotFoundError(f"Catalog item '{item_code}' not found")
        return entry

    async def list_catalog(
        self,
        category: str | None = None,
        search: str | None = None,
        active_only: bool = True,
    ) -> list[CatalogItem]:
        """List catalog entries filtered by category and free-text search."""
        return await self._catalog_repo.search(
            category=category,
            search=search.strip() if search else None,
            active_only=active_only,
        )
