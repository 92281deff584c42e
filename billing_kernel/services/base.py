"""
BaseService -- abstract base for flush-only billing services.

Responsibility:
    Provides the common constructor and row-loading helpers for every
    service that writes within a caller-owned transaction.  Subclasses
    use ``session.flush()`` -- never ``session.commit()``.

Architecture position:
    Kernel > Services -- imperative shell infrastructure.

Invariants enforced:
    - Transaction boundaries: services flush within the caller's
      transaction and never commit or roll back themselves.  The
      orchestrator (or an owning module service) controls the boundary.
    - Locked reads: ``_lock`` issues ``SELECT ... FOR UPDATE`` with
      ``populate_existing`` so the returned row reflects committed state
      at the moment the lock was granted.
"""

from abc import ABC
from contextlib import contextmanager
from typing import Any, Generic, Iterator, TypeVar

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from billing_kernel.db.base import Base
from billing_kernel.exceptions import PersistenceError
from billing_kernel.logging_config import get_logger

logger = get_logger("services.base")

ModelType = TypeVar("ModelType", bound=Base)


class BaseService(ABC, Generic[ModelType]):
    """
    Abstract base class for flush-only services.

    Non-goals:
        - Does NOT manage transaction lifecycle (commit/rollback).
    """

    def __init__(self, session: Session):
        self.session = session

    def _lock(self, model: type[ModelType], entity_id: Any) -> ModelType | None:
        """Load one row with a row-level lock held until the transaction ends."""
        return self.session.execute(
            select(model)
            .where(model.id == entity_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()


@contextmanager
def transaction_boundary(session: Session, operation: str, **extra: Any) -> Iterator[None]:
    """
    Commit the session when the block succeeds; roll back and re-raise when
    it fails.  A database failure is re-raised as ``PersistenceError``.

    Used by the services that own their transaction (the orchestrator and
    the module services), never by flush-only services.
    """
    try:
        try:
            yield
            session.commit()
        except SQLAlchemyError as exc:
            raise PersistenceError(operation, str(exc)) from exc
    except Exception:
        session.rollback()
        logger.warning(
            "transaction_rolled_back",
            extra={"operation": operation, **{k: str(v) for k, v in extra.items()}},
            exc_info=True,
        )
        raise
