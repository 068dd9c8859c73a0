"""Reconciliation of staged bank imports into the ledger.

An imported transaction starts ``pending`` and moves exactly once, to
``reconciled`` (a ledger transaction is created) or ``ignored`` (nothing is
created). Both are terminal. The move is a conditional update in the store,
and the ledger row carries ``source_imported_id`` under a unique constraint,
so two racing requests cannot both produce a transaction.
"""

import logging
from typing import Optional

from ..domain import ImportedTransaction, Transaction, new_id, utcnow
from ..errors import ConflictError, NotFoundError
from ..schemas import ReconcileRequest
from ..store.base import BudgetStore
from .budgets import apply_income
from .buckets import require_space
from .ledger import AUTO, resolve_budget_context

logger = logging.getLogger(__name__)

DEFAULT_CATEGORY = {"debit": "General spending", "credit": "Income"}


def _load_pending(
    store: BudgetStore,
    user_id: str,
    imported_id: str,
    space: Optional[str],
) -> ImportedTransaction:
    imported = store.get_imported(user_id, imported_id)
    if imported is None or (space is not None and imported.space != space):
        raise NotFoundError("Imported transaction not found")
    if imported.status != "pending":
        logger.warning("Imported transaction %s is already %s", imported_id, imported.status)
        raise ConflictError(f"Imported transaction is already {imported.status}")
    return imported


def _claim(store: BudgetStore, user_id: str, imported_id: str, to_status: str) -> None:
    if not store.transition_imported(user_id, imported_id, to_status, utcnow()):
        logger.warning("Lost race to mark imported transaction %s %s", imported_id, to_status)
        raise ConflictError("Imported transaction was already processed")


def ledger_description(imported: ImportedTransaction, override: Optional[str] = None) -> str:
    if override is not None:
        return override
    if imported.merchant and imported.merchant != imported.description:
        return f"{imported.merchant}: {imported.description}"
    return imported.description or imported.merchant or "Imported transaction"


def reconcile(
    store: BudgetStore,
    user_id: str,
    imported_id: str,
    payload: Optional[ReconcileRequest] = None,
    space: Optional[str] = None,
) -> tuple[ImportedTransaction, Transaction]:
    """Turn a pending import into a ledger transaction and mark it reconciled.

    Type and category follow the import's direction unless overridden. The
    active budget for the import's instant is attached, and the bucket comes
    from the override or the classifier.
    """
    payload = payload or ReconcileRequest()
    imported = _load_pending(store, user_id, imported_id, space)

    tx_type = payload.type or ("expense" if imported.direction == "debit" else "income")
    category = payload.category or DEFAULT_CATEGORY[imported.direction]

    with store.atomic():
        ctx = resolve_budget_context(
            store,
            user_id,
            imported.space,
            imported.occurred_at,
            category,
            budget_id=AUTO,
            budget_category=payload.budget_category,
            mini_budget_id=payload.mini_budget_id,
        )
        _claim(store, user_id, imported.id, "reconciled")

        now = utcnow()
        tx = Transaction(
            id=new_id(),
            user_id=user_id,
            space=imported.space,
            type=tx_type,
            amount=imported.amount,
            category=category,
            description=ledger_description(imported, payload.description),
            occurred_at=imported.occurred_at,
            budget_id=ctx.budget.id if ctx.budget else None,
            budget_category=ctx.bucket,
            mini_budget_id=ctx.mini_budget_id,
            source_imported_id=imported.id,
            created_at=now,
            updated_at=now,
        )
        store.add_transaction(tx)
        if tx_type == "income" and ctx.budget is not None:
            apply_income(store, ctx.budget, tx.amount, ctx.bucket)

    logger.info("Reconciled imported transaction %s into %s (budget=%s)", imported.id, tx.id, tx.budget_id)
    return store.get_imported(user_id, imported.id), tx


def ignore(
    store: BudgetStore,
    user_id: str,
    imported_id: str,
    space: Optional[str] = None,
) -> ImportedTransaction:
    imported = _load_pending(store, user_id, imported_id, space)
    with store.atomic():
        _claim(store, user_id, imported.id, "ignored")
    logger.info("Ignored imported transaction %s", imported.id)
    return store.get_imported(user_id, imported.id)


def list_imported(store: BudgetStore, user_id: str, space: str, status: str = "pending") -> list[ImportedTransaction]:
    return store.list_imported(user_id, require_space(space), status)
