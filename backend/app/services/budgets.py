"""Budget lifecycle: create, partial update, delete, mini-budgets and progress."""

import logging
from datetime import date, datetime, time, timezone
from typing import Optional

from ..domain import Budget, MiniBudget, new_id, utcnow
from ..errors import NotFoundError, ValidationFailed
from ..schemas import BudgetCreate, BudgetUpdate, MiniBudgetCreate
from ..store.base import BudgetStore
from .buckets import bucket_label, require_space
from .overlap import check_self_consistent, validate_no_overlap
from .periods import DateRange, effective_range, resolve_period

logger = logging.getLogger(__name__)

# Fields that may not be explicitly nulled in a partial update.
_REQUIRED_ON_UPDATE = ("name", "total_budget", "period", "start_date", "categories")
_RANGE_FIELDS = {"period", "start_date", "end_date"}


# ── Lookup ────────────────────────────────────────────────────────────────────


def get_budget(store: BudgetStore, user_id: str, budget_id: str, space: Optional[str] = None) -> Budget:
    budget = store.get_budget(user_id, budget_id)
    if budget is None or (space is not None and budget.space != space):
        raise NotFoundError("Budget not found")
    return budget


def list_budgets(
    store: BudgetStore,
    user_id: str,
    space: str,
    start: Optional[date] = None,
    end: Optional[date] = None,
) -> list[Budget]:
    """Budgets in ``space``, newest start first, optionally filtered by start date."""
    items = store.list_budgets(user_id, require_space(space))
    if start is not None:
        items = [b for b in items if b.start_date >= start]
    if end is not None:
        items = [b for b in items if b.start_date <= end]
    return items


# ── Create / update / delete ──────────────────────────────────────────────────


def create_budget(store: BudgetStore, user_id: str, payload: BudgetCreate) -> Budget:
    candidate = DateRange(
        payload.start_date,
        resolve_period(payload.period, payload.start_date, payload.end_date),
    )
    now = utcnow()
    budget = Budget(
        id=new_id(),
        user_id=user_id,
        space=payload.space,
        name=payload.name,
        total_budget=payload.total_budget,
        period=payload.period,
        start_date=payload.start_date,
        end_date=payload.end_date,
        categories=payload.categories,
        created_at=now,
        updated_at=now,
    )
    with store.space_lock(user_id, payload.space), store.atomic():
        validate_no_overlap(candidate, store.list_budgets(user_id, payload.space))
        store.add_budget(budget)
    logger.info("Created %s budget %s (%s..%s)", budget.space, budget.id,
                candidate.start.isoformat(), candidate.end.isoformat())
    return budget


def update_budget(
    store: BudgetStore,
    user_id: str,
    budget_id: str,
    payload: BudgetUpdate,
    space: Optional[str] = None,
) -> Budget:
    changes = {name: getattr(payload, name) for name in payload.model_fields_set}
    for name in _REQUIRED_ON_UPDATE:
        if name in changes and changes[name] is None:
            raise ValidationFailed(f"{name} cannot be null")

    current = get_budget(store, user_id, budget_id, space)
    with store.space_lock(user_id, current.space), store.atomic():
        # Re-read under the lock; the space of a budget never changes.
        current = get_budget(store, user_id, budget_id, space)
        updated = current.model_copy(update={**changes, "updated_at": utcnow()})
        candidate = effective_range(updated)
        if _RANGE_FIELDS & changes.keys():
            validate_no_overlap(candidate, store.list_budgets(user_id, current.space), exclude_id=budget_id)
        else:
            check_self_consistent(candidate)
        store.save_budget(updated)
    logger.info("Updated budget %s (%s)", budget_id, ", ".join(sorted(changes)) or "no fields")
    return updated


def delete_budget(store: BudgetStore, user_id: str, budget_id: str, space: Optional[str] = None) -> None:
    """Delete a budget and its mini-budgets. Transactions keep their (now dangling) reference."""
    budget = get_budget(store, user_id, budget_id, space)
    with store.atomic():
        removed = store.delete_mini_budgets_for(user_id, budget.id)
        store.delete_budget(user_id, budget.id)
    logger.info("Deleted budget %s and %d mini-budget(s)", budget.id, removed)


def apply_income(store: BudgetStore, budget: Budget, amount: int, bucket: Optional[str]) -> Budget:
    """Grow a budget by income attached to it: the total, and the bucket when one is set.

    Only the amounts move; every other field keeps its stored value, not the
    one on ``budget``. Must be called inside the caller's ``store.atomic()`` block.
    """
    grown = store.grow_budget(budget.user_id, budget.id, amount, bucket, utcnow())
    if grown is None:
        raise NotFoundError("Budget not found")
    return grown


# ── Mini-budgets ──────────────────────────────────────────────────────────────


def create_mini_budget(
    store: BudgetStore,
    user_id: str,
    budget_id: str,
    payload: MiniBudgetCreate,
    space: Optional[str] = None,
) -> MiniBudget:
    parent = get_budget(store, user_id, budget_id, space)
    now = utcnow()
    mini = MiniBudget(
        id=new_id(),
        user_id=user_id,
        budget_id=parent.id,
        name=payload.name,
        amount=payload.amount,
        category=payload.category,
        created_at=now,
        updated_at=now,
    )
    with store.atomic():
        store.add_mini_budget(mini)
    return mini


def list_mini_budgets(
    store: BudgetStore,
    user_id: str,
    budget_id: str,
    space: Optional[str] = None,
) -> list[MiniBudget]:
    parent = get_budget(store, user_id, budget_id, space)
    return store.list_mini_budgets(user_id, parent.id)


def delete_mini_budget(
    store: BudgetStore,
    user_id: str,
    budget_id: str,
    mini_id: str,
    space: Optional[str] = None,
) -> None:
    parent = get_budget(store, user_id, budget_id, space)
    if not any(m.id == mini_id for m in store.list_mini_budgets(user_id, parent.id)):
        raise NotFoundError("Mini budget not found")
    with store.atomic():
        store.delete_mini_budget(user_id, mini_id)


# ── Progress ──────────────────────────────────────────────────────────────────


def budget_progress(store: BudgetStore, user_id: str, budget_id: str, space: Optional[str] = None) -> dict:
    """Per-bucket budgeted vs. spent for expenses attached to this budget within its range."""
    budget = get_budget(store, user_id, budget_id, space)
    window = effective_range(budget)
    expenses = store.find_transactions(
        user_id,
        budget.space,
        start=datetime.combine(window.start, time.min, tzinfo=timezone.utc),
        end=datetime.combine(window.end, time.max, tzinfo=timezone.utc),
        budget_id=budget.id,
        type="expense",
    )

    spent_by_bucket: dict[str, int] = {}
    for t in expenses:
        if t.budget_category:
            spent_by_bucket[t.budget_category] = spent_by_bucket.get(t.budget_category, 0) + t.amount

    buckets = []
    for bucket in list(budget.categories) + [b for b in spent_by_bucket if b not in budget.categories]:
        budgeted = budget.categories[bucket].budgeted if bucket in budget.categories else 0
        spent = spent_by_bucket.get(bucket, 0)
        buckets.append({
            "bucket": bucket,
            "label": bucket_label(bucket, budget.space),
            "budgeted": budgeted,
            "spent": spent,
            "remaining": max(0, budgeted - spent),
        })

    total_spent = sum(t.amount for t in expenses)
    return {
        "budget": budget,
        "spent": total_spent,
        "remaining": max(0, budget.total_budget - total_spent),
        "buckets": buckets,
    }
