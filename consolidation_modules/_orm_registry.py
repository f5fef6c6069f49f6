"""
Module ORM Registry (``consolidation_modules._orm_registry``).

Responsibility
--------------
Ensure every module-level SQLAlchemy ORM model is imported so that
``Base.metadata`` holds its table definition before ``create_tables()``
runs.

Architecture position
---------------------
**Modules layer** -- utility.  Imported lazily by
``consolidation_kernel.db.engine.create_tables``; the kernel never
imports module ORM files at import time.
"""


def import_all_orm_models() -> None:
    """Import every ``consolidation_modules.*.orm`` module.

    Idempotent -- repeated calls are harmless.
    """
    # fmt: off
    import consolidation_modules.consolidation.orm  # noqa: F401
    import consolidation_modules.eliminations.orm  # noqa: F401
    import consolidation_modules.intercompany.orm  # noqa: F401
    # fmt: on
