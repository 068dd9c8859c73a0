"""Ledger transactions: manual entry, budget context, weak-reference resolution."""

import logging
from datetime import datetime
from typing import Iterable, NamedTuple, Optional

from ..domain import Budget, Transaction, as_utc, new_id, utcnow
from ..errors import NotFoundError, ValidationFailed
from ..schemas import TransactionCreate, TransactionUpdate
from ..store.base import BudgetStore
from .attribution import pick_active_budget
from .budgets import apply_income, get_budget
from .buckets import classify_bucket, require_space

logger = logging.getLogger(__name__)

# Sentinel: "caller did not say which budget", as opposed to "no budget".
AUTO = object()

_NOT_NULLABLE = ("type", "amount", "category", "description", "occurred_at")


class BudgetContext(NamedTuple):
    budget: Optional[Budget]
    bucket: Optional[str]
    mini_budget_id: Optional[str]


def resolve_budget_context(
    store: BudgetStore,
    user_id: str,
    space: str,
    occurred_at: datetime,
    category: str,
    *,
    budget_id=AUTO,
    budget_category: Optional[str] = None,
    mini_budget_id: Optional[str] = None,
) -> BudgetContext:
    """Work out budget, bucket and mini-budget for a new ledger entry.

    Explicit values win. With ``budget_id=AUTO`` the active budget for
    ``occurred_at`` is used; with ``budget_id=None`` the entry has no budget.
    The bucket is inferred from ``category`` only when a budget is attached
    and none was given. Without a budget, bucket and mini-budget are cleared.
    """
    if budget_id is AUTO:
        budget = pick_active_budget(store, user_id, space, occurred_at)
    elif budget_id is None:
        budget = None
    else:
        budget = get_budget(store, user_id, budget_id, space)

    if budget is None:
        return BudgetContext(None, None, None)

    bucket = budget_category or classify_bucket(category, space)
    if mini_budget_id is not None:
        _require_mini_budget(store, user_id, budget.id, mini_budget_id)
    return BudgetContext(budget, bucket, mini_budget_id)


def _require_mini_budget(store: BudgetStore, user_id: str, budget_id: str, mini_budget_id: str) -> None:
    if not any(m.id == mini_budget_id for m in store.list_mini_budgets(user_id, budget_id)):
        raise NotFoundError("Mini budget not found for this budget")


# ── Create / read / update / delete ───────────────────────────────────────────


def create_transaction(store: BudgetStore, user_id: str, payload: TransactionCreate) -> Transaction:
    explicit = payload.model_fields_set
    if "budget_id" in explicit and payload.budget_id is None and (payload.budget_category or payload.mini_budget_id):
        raise ValidationFailed("budget_category and mini_budget_id require a budget")
    occurred_at = as_utc(payload.occurred_at)
    with store.atomic():
        ctx = resolve_budget_context(
            store,
            user_id,
            payload.space,
            occurred_at,
            payload.category,
            budget_id=payload.budget_id if "budget_id" in explicit else AUTO,
            budget_category=payload.budget_category,
            mini_budget_id=payload.mini_budget_id,
        )
        now = utcnow()
        tx = Transaction(
            id=new_id(),
            user_id=user_id,
            space=payload.space,
            type=payload.type,
            amount=payload.amount,
            category=payload.category,
            description=payload.description,
            occurred_at=occurred_at,
            budget_id=ctx.budget.id if ctx.budget else None,
            budget_category=ctx.bucket,
            mini_budget_id=ctx.mini_budget_id,
            created_at=now,
            updated_at=now,
        )
        store.add_transaction(tx)
        if tx.type == "income" and ctx.budget is not None:
            apply_income(store, ctx.budget, tx.amount, ctx.bucket)
    logger.info("Recorded %s transaction %s (budget=%s)", tx.type, tx.id, tx.budget_id)
    return tx


def get_transaction(store: BudgetStore, user_id: str, tx_id: str, space: Optional[str] = None) -> Transaction:
    tx = store.get_transaction(user_id, tx_id)
    if tx is None or (space is not None and tx.space != space):
        raise NotFoundError("Transaction not found")
    return tx


def list_transactions(
    store: BudgetStore,
    user_id: str,
    space: str,
    *,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    type: Optional[str] = None,
    category: Optional[str] = None,
    budget_id: Optional[str] = None,
    limit: int = 50,
    offset: int = 0,
) -> tuple[int, list[Transaction]]:
    """Return ``(total, page)`` newest first."""
    if start is not None and end is not None and start > end:
        raise ValidationFailed("start must not be after end")
    matching = store.find_transactions(
        user_id,
        require_space(space),
        start=start,
        end=end,
        type=type,
        category=category,
        budget_id=budget_id,
    )
    return len(matching), matching[offset:offset + limit]


def update_transaction(
    store: BudgetStore,
    user_id: str,
    tx_id: str,
    payload: TransactionUpdate,
    space: Optional[str] = None,
) -> Transaction:
    """Apply a partial update. Budget context is not re-inferred here; explicit fields only."""
    changes = {name: getattr(payload, name) for name in payload.model_fields_set}
    for name in _NOT_NULLABLE:
        if name in changes and changes[name] is None:
            raise ValidationFailed(f"{name} cannot be null")
    if "occurred_at" in changes:
        changes["occurred_at"] = as_utc(changes["occurred_at"])

    with store.atomic():
        current = get_transaction(store, user_id, tx_id, space)
        updated = current.model_copy(update={**changes, "updated_at": utcnow()})
        if "budget_id" in changes:
            if updated.budget_id is None:
                cleared = {k: None for k in ("budget_category", "mini_budget_id") if k not in changes}
                updated = updated.model_copy(update=cleared)
            else:
                get_budget(store, user_id, updated.budget_id, current.space)
                if updated.budget_id != current.budget_id and "mini_budget_id" not in changes:
                    updated = updated.model_copy(update={"mini_budget_id": None})
        if updated.budget_id is None and (updated.budget_category or updated.mini_budget_id):
            raise ValidationFailed("budget_category and mini_budget_id require a budget")
        if "mini_budget_id" in changes and updated.mini_budget_id is not None:
            _require_mini_budget(store, user_id, updated.budget_id, updated.mini_budget_id)
        store.save_transaction(updated)
    logger.info("Updated transaction %s (%s)", tx_id, ", ".join(sorted(changes)) or "no fields")
    return updated


def delete_transaction(store: BudgetStore, user_id: str, tx_id: str, space: Optional[str] = None) -> None:
    get_transaction(store, user_id, tx_id, space)
    with store.atomic():
        store.delete_transaction(user_id, tx_id)
    logger.info("Deleted transaction %s", tx_id)


# ── Weak references ───────────────────────────────────────────────────────────


def budget_names(store: BudgetStore, user_id: str, transactions: Iterable[Transaction]) -> dict[str, str]:
    """Map each referenced budget id that still resolves to its name; dangling ids are absent."""
    names: dict[str, str] = {}
    for budget_id in {t.budget_id for t in transactions if t.budget_id}:
        budget = store.get_budget(user_id, budget_id)
        if budget is not None:
            names[budget_id] = budget.name
    return names
