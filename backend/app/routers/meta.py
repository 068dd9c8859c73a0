from fastapi import APIRouter, Query

from ..domain import BUCKETS, Space
from ..errors import BudgetEngineError, to_http
from ..schemas import BucketInfo, PeriodResolveRequest, PeriodResolveResponse
from ..security import CurrentUser
from ..services.buckets import bucket_label
from ..services.overlap import check_self_consistent
from ..services.periods import DateRange, resolve_period

router = APIRouter(tags=["meta"], dependencies=[CurrentUser])


@router.get("/buckets", response_model=list[BucketInfo], summary="List budget buckets with display labels")
def list_buckets(space: Space = Query("personal")):
    return [BucketInfo(bucket=b, label=bucket_label(b, space)) for b in BUCKETS]


@router.post("/periods/resolve", response_model=PeriodResolveResponse, summary="Resolve a budget period's end date")
def resolve(payload: PeriodResolveRequest):
    try:
        end = resolve_period(payload.period, payload.start_date, payload.end_date)
        check_self_consistent(DateRange(payload.start_date, end))
    except BudgetEngineError as exc:
        raise to_http(exc)
    return PeriodResolveResponse(start_date=payload.start_date, effective_end=end)
