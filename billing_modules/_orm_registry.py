"""
Module ORM Registry (``billing_modules._orm_registry``).

Ensures every kernel and module ORM model is imported so that
``Base.metadata`` contains their tables before ``create_all()`` runs.
Scripts, ``billing_kernel.db.engine.create_tables`` and ``tests/conftest.py``
all go through ``import_all_orm_models()``.
"""


def import_all_orm_models() -> None:
    """Import kernel models and every ``billing_modules.*.orm`` module.

    Idempotent -- repeated calls are harmless.
    """
    import billing_kernel.models  # noqa: F401
    import billing_kernel.services.sequence_service  # noqa: F401
    # fmt: off
    import billing_modules.posting.orm  # noqa: F401
    import billing_modules.leave.orm  # noqa: F401
    import billing_modules.invoice.orm  # noqa: F401
    # fmt: on
