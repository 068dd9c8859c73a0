from fastapi import APIRouter, Depends, Query

from ..database import get_store
from ..domain import Space
from ..errors import BudgetEngineError, to_http
from ..schemas import AnalyticsSummary
from ..security import require_user_id
from ..services.analytics import summarize
from ..services.periods import parse_instant
from ..store.base import BudgetStore

router = APIRouter(prefix="/analytics", tags=["analytics"])


@router.get("/summary", response_model=AnalyticsSummary, summary="Totals and breakdowns for a window")
def summary(
    space: Space = Query("personal"),
    start: str = Query(..., description="YYYY-MM-DD (UTC day start) or ISO instant"),
    end: str = Query(..., description="YYYY-MM-DD (UTC day end) or ISO instant"),
    user_id: str = Depends(require_user_id),
    store: BudgetStore = Depends(get_store),
):
    try:
        result = summarize(store, user_id, space, parse_instant(start), parse_instant(end, end_of_day=True))
    except BudgetEngineError as exc:
        raise to_http(exc)
    return AnalyticsSummary(**result)
