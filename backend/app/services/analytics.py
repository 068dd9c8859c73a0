"""Summary analytics for a space and a time window."""

import logging
from collections import defaultdict
from datetime import datetime

from .. import config
from ..errors import ValidationFailed
from ..store.base import BudgetStore
from .attribution import pick_active_budget
from .buckets import require_space
from .ledger import budget_names
from .periods import iter_days, utc_date

logger = logging.getLogger(__name__)


def _sum_by(items, key) -> dict[str, int]:
    totals: dict[str, int] = defaultdict(int)
    for t in items:
        k = key(t)
        if k:
            totals[k] += t.amount
    return dict(totals)


def summarize(store: BudgetStore, user_id: str, space: str, start: datetime, end: datetime) -> dict:
    """
    Totals for ``[start, end]`` (inclusive instants, UTC).

    When a budget is active for the window, every figure except
    ``unattributed_expenses`` is restricted to transactions attached to that
    budget. ``unattributed_expenses`` always covers expenses in the window
    whose budget reference is missing or no longer resolves.
    """
    require_space(space)
    if start > end:
        raise ValidationFailed("start must not be after end")
    first_day, last_day = utc_date(start), utc_date(end)
    if (last_day - first_day).days + 1 > config.MAX_SUMMARY_DAYS:
        raise ValidationFailed(f"Range is longer than {config.MAX_SUMMARY_DAYS} days")

    active = pick_active_budget(store, user_id, space, (start, end))
    in_range = store.find_transactions(user_id, space, start=start, end=end)

    live_budgets = budget_names(store, user_id, in_range)
    unattributed = sum(
        t.amount for t in in_range
        if t.type == "expense" and (t.budget_id is None or t.budget_id not in live_budgets)
    )

    scoped = [t for t in in_range if t.budget_id == active.id] if active else in_range
    expenses = [t for t in scoped if t.type == "expense"]
    income_total = sum(t.amount for t in scoped if t.type == "income")
    expense_total = sum(t.amount for t in expenses)

    by_mini_id = _sum_by(expenses, lambda t: t.mini_budget_id)
    mini_names = {m.id: m.name for m in store.get_mini_budgets(user_id, by_mini_id)}
    by_mini: dict[str, int] = defaultdict(int)
    for mini_id, amount in by_mini_id.items():
        by_mini[mini_names.get(mini_id, mini_id)] += amount

    per_day: dict = defaultdict(list)
    for t in expenses:
        per_day[utc_date(t.occurred_at)].append(t)
    daily = [
        {
            "day": day,
            "expenses": sum(t.amount for t in per_day[day]),
            "spending_by_category": _sum_by(per_day[day], lambda t: t.category),
        }
        for day in iter_days(first_day, last_day)
    ]

    logger.debug("Summary %s %s..%s: %d transactions in scope (budget=%s)",
                 space, start.isoformat(), end.isoformat(), len(scoped), active.id if active else None)
    return {
        "active_budget_id": active.id if active else None,
        "total_balance": income_total - expense_total,
        "income": income_total,
        "expenses": expense_total,
        "remaining_budget": max(0, active.total_budget - expense_total) if active else 0,
        "spending_by_category": _sum_by(expenses, lambda t: t.category),
        "spending_by_bucket": _sum_by(expenses, lambda t: t.budget_category),
        "spending_by_mini_budget": dict(by_mini),
        "daily_spending_by_category": daily,
        "unattributed_expenses": unattributed,
    }
