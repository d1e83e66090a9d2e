"""Repository interfaces (Protocol classes) for the therapy budget service.

Services depend on these interfaces, not on the SQLAlchemy repositories,
so tests can inject AsyncMock or in-memory doubles.
"""

from typing import Protocol, runtime_checkable

from therapy_budget.core.models import BudgetItem, BudgetPlan, CatalogItem


@runtime_checkable
class IBudgetPlanRepository(Protocol):
    """Repository interface for budget plan persistence."""

    async def create(self, plan: BudgetPlan) -> BudgetPlan:
        """Persist a new plan."""
        ...

    async def get_by_id(self, plan_id: int) -> BudgetPlan | None:
        """Retrieve a plan by primary key."""
        ...

    async def list_by_client(self, client_id: int) -> list[BudgetPlan]:
        """List all plans for a client, newest first."""
        ...

    async def get_active_for_client(self, client_id: int) -> BudgetPlan | None:
        """Return the client's active plan, if any."""
        ...

    async def deactivate_for_client(self, client_id: int, except_plan_id: int | None = None) -> int:
        """Mark every active plan of a client inactive except one. Returns rows changed."""
        ...

    async def save(self, plan: BudgetPlan) -> BudgetPlan:
        """Persist changes to an existing plan."""
        ...


@runtime_checkable
class IBudgetItemRepository(Protocol):
    """Repository interface for budget item persistence."""

    async def create(self, item: BudgetItem) -> BudgetItem:
        """Persist a new item."""
        ...

    async def get_by_id(self, item_id: int) -> BudgetItem | None:
        """Retrieve an item by primary key."""
        ...

    async def list_by_plan(self, plan_id: int) -> list[BudgetItem]:
        """List the current items of a plan."""
        ...

    async def save(self, item: BudgetItem) -> BudgetItem:
        """Persist changes to an existing item."""
        ...

    async def delete(self, item: BudgetItem) -> None:
        """Delete an item."""
        ...


@runtime_checkable
class ICatalogRepository(Protocol):
    """Repository interface for the budget item catalog."""

    async def create(self, entry: CatalogItem) -> CatalogItem:
        """Persist a new catalog entry."""
        ...

    async def get_by_code(self, item_code: str) -> CatalogItem | None:
        """Find a catalog entry by its item code."""
        ...

    async def search(
        self,
        category: str | None = None,
        search: str | None = None,
        active_only: bool = True,
    ) -> list[CatalogItem]:
        """List catalog entries filtered by category and free-text search."""
        ...
