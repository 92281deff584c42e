"""Engine and session helpers in billing_kernel.db.engine."""

from decimal import Decimal

import pytest
from sqlalchemy import func, select

from billing_kernel.db.engine import (
    get_engine,
    get_session_factory,
    is_postgres,
    session_scope,
)
from billing_modules.project.orm import ProjectModel


@pytest.fixture
def committed_rows_cleared(session_factory):
    """Rows written through session_scope are removed at teardown."""
    return session_factory


class TestEngine:
    def test_engine_is_the_suite_engine(self, db_engine):
        assert get_engine() is db_engine
        assert is_postgres() == (db_engine.dialect.name == "postgresql")

    def test_session_factory_bound_to_engine(self, db_engine, db_tables):
        session = get_session_factory()()
        try:
            assert session.get_bind() is db_engine
        finally:
            session.close()


class TestSessionScope:
    def test_commits_on_success(self, committed_rows_cleared):
        with session_scope() as session:
            session.add(ProjectModel(name="Porch", total_budget=Decimal("1200")))

        with session_scope() as session:
            count = session.execute(
                select(func.count()).select_from(ProjectModel).where(ProjectModel.name == "Porch")
            ).scalar_one()
        assert count == 1

    def test_rolls_back_on_error(self, committed_rows_cleared):
        with pytest.raises(RuntimeError):
            with session_scope() as session:
                session.add(ProjectModel(name="Shed", total_budget=Decimal("900")))
                session.flush()
                raise RuntimeError("abort")

        with session_scope() as session:
            count = session.execute(
                select(func.count()).select_from(ProjectModel).where(ProjectModel.name == "Shed")
            ).scalar_one()
        assert count == 0
