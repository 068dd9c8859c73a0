"""Active-budget selection."""

from datetime import datetime
from typing import Iterable, Optional, Union

from ..domain import Budget
from ..store.base import BudgetStore
from .periods import DateRange, effective_range, ranges_overlap, to_date_range


def _recency(budget: Budget) -> tuple:
    return (budget.start_date, budget.id)


def select_active_budget(
    budgets: Iterable[Budget],
    when: Union[DateRange, datetime, tuple],
) -> Optional[Budget]:
    """Pick the single active budget for an instant or a range.

    1. Among budgets whose effective range intersects ``when``, the one with
       the latest start date wins (id breaks ties, so the result is stable).
    2. If none intersects, the most recently started budget is returned
       anyway, so dashboards degrade to "most relevant" rather than nothing.
    3. ``None`` only when there are no budgets at all.

    ``budgets`` must already be limited to one (user, space).
    """
    budgets = list(budgets)
    if not budgets:
        return None
    window = to_date_range(when)
    matches = [b for b in budgets if ranges_overlap(window, effective_range(b))]
    return max(matches or budgets, key=_recency)


def pick_active_budget(
    store: BudgetStore,
    user_id: str,
    space: str,
    when: Union[DateRange, datetime, tuple],
) -> Optional[Budget]:
    return select_active_budget(store.list_budgets(user_id, space), when)
