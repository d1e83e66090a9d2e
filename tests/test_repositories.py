"""Repository tests for therapy-budget.

Integration tests require a live PostgreSQL instance.
Unit tests here verify model structure and repository wiring.
"""

from unittest.mock import AsyncMock, MagicMock

import pytest


class TestRepositoryImports:
    """Tests for the SQLAlchemy repository adapters."""

    def test_repositories_import_cleanly(self) -> None:
        from therapy_budget.adapters.repositories import (
            BudgetItemRepository,
            BudgetPlanRepository,
            CatalogRepository,
        )
        for repo_class in (BudgetPlanRepository, BudgetItemRepository, CatalogRepository):
            assert repo_class is not None

    def test_repositories_satisfy_protocols(self) -> None:
        """Adapters must structurally match the core interfaces."""
        from therapy_budget.adapters.repositories import (
            BudgetItemRepository,
            BudgetPlanRepository,
            CatalogRepository,
        )
        from therapy_budget.core.interfaces import (
            IBudgetItemRepository,
            IBudgetPlanRepository,
            ICatalogRepository,
        )

        session = MagicMock()
        assert isinstance(BudgetPlanRepository(session), IBudgetPlanRepository)
        assert isinstance(BudgetItemRepository(session), IBudgetItemRepository)
        assert isinstance(CatalogRepository(session), ICatalogRepository)


class TestBaseRepository:
    """Tests for BaseRepository session handling."""

    @pytest.mark.asyncio
    async def test_create_adds_flushes_and_refreshes(self) -> None:
        from therapy_budget.adapters.repositories import CatalogRepository
        from therapy_budget.core.models import CatalogItem

        session = MagicMock()
        session.flush = AsyncMock()
        session.refresh = AsyncMock()
        entry = CatalogItem(item_code="SP-01", description="Speech", default_unit_price=1, is_active=True)

        result = await CatalogRepository(session).create(entry)

        assert result is entry
        session.add.assert_called_once_with(entry)
        session.flush.assert_awaited_once()
        session.refresh.assert_awaited_once_with(entry)

    @pytest.mark.asyncio
    async def test_delete_flushes(self) -> None:
        from therapy_budget.adapters.repositories import BudgetItemRepository

        session = MagicMock()
        session.delete = AsyncMock()
        session.flush = AsyncMock()
        item = MagicMock()

        await BudgetItemRepository(session).delete(item)

        session.delete.assert_awaited_once_with(item)
        session.flush.assert_awaited_once()


class TestModelsImport:
    """Tests verifying ORM models import and are structurally correct."""

    def test_all_models_have_tb_prefix(self) -> None:
        """All therapy-budget tables should use the tb_ prefix."""
        from therapy_budget.core.models import BudgetItem, BudgetPlan, CatalogItem

        for model in (BudgetPlan, BudgetItem, CatalogItem):
            assert model.__tablename__.startswith("tb_"), f"{model.__name__} missing tb_ prefix"

    def test_money_columns_are_fixed_point(self) -> None:
        """Money is stored as NUMERIC(12, 2), never as a float column."""
        from sqlalchemy import Numeric

        from therapy_budget.core.models import BudgetItem, BudgetPlan, CatalogItem

        for column in (
            BudgetPlan.__table__.c.available_funds,
            BudgetItem.__table__.c.unit_price,
            CatalogItem.__table__.c.default_unit_price,
        ):
            assert isinstance(column.type, Numeric)
            assert column.type.asdecimal is True
            assert column.type.scale == 2

    def test_items_cascade_with_plan(self) -> None:
        from therapy_budget.core.models import BudgetItem

        (fk,) = BudgetItem.__table__.c.plan_id.foreign_keys
        assert fk.column.table.name == "tb_budget_plans"
        assert fk.ondelete == "CASCADE"

    def test_catalog_item_code_is_unique(self) -> None:
        from therapy_budget.core.models import CatalogItem

        assert CatalogItem.__table__.c.item_code.unique is True


class TestMigrations:
    """Tests for the Alembic configuration shipped at the repository root."""

    def test_alembic_ini_resolves_to_initial_revision(self) -> None:
        from pathlib import Path

        from alembic.config import Config
        from alembic.script import ScriptDirectory

        ini_path = Path(__file__).parent.parent / "alembic.ini"
        script = ScriptDirectory.from_config(Config(str(ini_path)))

        assert Path(script.dir).name == "migrations"
        assert script.get_current_head() == "001_tb_initial"
