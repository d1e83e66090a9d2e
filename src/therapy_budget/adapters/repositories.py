"""SQLAlchemy repositories for the therapy budget service.

All repositories extend BaseRepository and implement the interfaces defined
in core/interfaces.py. Sessions come from the get_db_session dependency,
which commits at the end of each request.
"""

from sqlalchemy import or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from therapy_budget.core.models import BudgetItem, BudgetPlan, CatalogItem
from therapy_budget.database import BaseRepository
from therapy_budget.observability import get_logger

logger = get_logger(__name__)


class BudgetPlanRepository(BaseRepository[BudgetPlan]):
    """Repository for tb_budget_plans."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize with an async database session."""
        super().__init__(session, BudgetPlan)

    async def list_by_client(self, client_id: int) -> list[BudgetPlan]:
        """List all plans for a client, newest first."""
        query = (
            select(BudgetPlan)
            .where(BudgetPlan.client_id == client_id)
            .order_by(BudgetPlan.created_at.desc(), BudgetPlan.id.desc())
        )
        result = await self._session.execute(query)
        return list(result.scalars().all())

    async def get_active_for_client(self, client_id: int) -> BudgetPlan | None:
        """Return the client's active plan, if any."""
        query = (
            select(BudgetPlan)
            .where(BudgetPlan.client_id == client_id, BudgetPlan.is_active.is_(True))
            .order_by(BudgetPlan.id.desc())
            .limit(1)
        )
        result = await self._session.execute(query)
        return result.scalars().first()

    async def deactivate_for_client(self, client_id: int, except_plan_id: int | None = None) -> int:
        """Mark every active plan of a client inactive, optionally sparing one.

        Returns:
            Number of plans deactivated.
        """
        stmt = (
            update(BudgetPlan)
            .where(BudgetPlan.client_id == client_id, BudgetPlan.is_active.is_(True))
            .values(is_active=False)
            .execution_options(synchronize_session="fetch")
        )
        if except_plan_id is not None:
            stmt = stmt.where(BudgetPlan.id != except_plan_id)

        result = await self._session.execute(stmt)
        changed = result.rowcount or 0
        if changed:
            logger.debug("budget_plans_deactivated", client_id=client_id, count=changed)
        return changed


class BudgetItemRepository(BaseRepository[BudgetItem]):
    """Repository for tb_budget_items."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize with an async database session."""
        super().__init__(session, BudgetItem)

    async def list_by_plan(self, plan_id: int) -> list[BudgetItem]:
        """List the current items of a plan ordered by id."""
        query = select(BudgetItem).where(BudgetItem.plan_id == plan_id).order_by(BudgetItem.id)
        result = await self._session.execute(query)
        return list(result.scalars().all())


class CatalogRepository(BaseRepository[CatalogItem]):
    """Repository for tb_catalog_items."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize with an async database session."""
        super().__init__(session, CatalogItem)

    async def get_by_code(self, item_code: str) -> CatalogItem | None:
        """Find a catalog entry by its item code."""
        result = await self._session.execute(
            select(CatalogItem).where(CatalogItem.item_code == item_code)
        )
        return result.scalars().first()

    async def search(
        self,
        category: str | None = None,
        search: str | None = None,
        active_only: bool = True,
    ) -> list[CatalogItem]:
        """List catalog entries filtered by category and free-text search.

        Args:
            category: Exact category filter.
            search: Case-insensitive substring matched against code and description.
            active_only: Exclude inactive entries.

        Returns:
            Matching entries ordered by item code.
        """
        query = select(CatalogItem).order_by(CatalogItem.item_code)
        if active_only:
            query = query.where(CatalogItem.is_active.is_(True))
        if category is not None:
            query = query.where(CatalogItem.category == category)
        if search:
            pattern = f"%{search}%"
            query = query.where(
                or_(
                    CatalogItem.item_code.ilike(pattern),
                    CatalogItem.description.ilike(pattern),
                )
            )

        result = await self._session.execute(query)
        return list(result.scalars().all())
