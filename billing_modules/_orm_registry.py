"""
Module ORM Registry (``billing_modules._orm_registry``).

Responsibility
--------------
Ensure all SQLAlchemy ORM models are imported so that ``Base.metadata``
contains their table definitions before tables are created or dropped.

Usage
-----
``billing_kernel.db.engine.create_tables()`` calls
``import_all_orm_models()`` before ``create_all``.
"""


def import_all_orm_models() -> None:
    """Import every ORM module (idempotent)."""
    # fmt: off
    import billing_kernel.services.sequence_service  # noqa: F401
    import billing_modules.project.orm  # noqa: F401
    import billing_modules.quote.orm  # noqa: F401
    import billing_modules.invoice.orm  # noqa: F401
    # fmt: on
