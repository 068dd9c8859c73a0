"""Overlap validation for budgets within one (user, space)."""

import logging
from typing import Iterable, Optional

from ..domain import Budget
from ..errors import ConflictError, ValidationFailed
from .periods import DateRange, effective_range, ranges_overlap

logger = logging.getLogger(__name__)


def check_self_consistent(candidate: DateRange) -> None:
    if candidate.start > candidate.end:
        raise ValidationFailed(
            f"Invalid budget date range: start {candidate.start.isoformat()} "
            f"is after end {candidate.end.isoformat()}"
        )


def find_conflict(
    candidate: DateRange,
    siblings: Iterable[Budget],
    exclude_id: Optional[str] = None,
) -> Optional[Budget]:
    """Return the first sibling whose effective range overlaps ``candidate``."""
    for budget in siblings:
        if exclude_id is not None and budget.id == exclude_id:
            continue
        if ranges_overlap(candidate, effective_range(budget)):
            return budget
    return None


def validate_no_overlap(
    candidate: DateRange,
    siblings: Iterable[Budget],
    exclude_id: Optional[str] = None,
) -> None:
    """Raise unless ``candidate`` is well-formed and clear of every sibling.

    ``siblings`` must already be limited to the candidate's (user, space).
    Callers hold the store's space lock while calling this and writing, so
    the result is still true at write time.
    """
    check_self_consistent(candidate)
    conflict = find_conflict(candidate, siblings, exclude_id)
    if conflict is not None:
        logger.warning(
            "Budget range %s..%s overlaps budget %s",
            candidate.start.isoformat(),
            candidate.end.isoformat(),
            conflict.id,
        )
        raise ConflictError("A budget already exists for that timeline")
