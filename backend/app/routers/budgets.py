from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query, Response

from ..database import get_store
from ..domain import Budget, MiniBudget, Space, utcnow
from ..errors import BudgetEngineError, to_http
from ..schemas import (
    ActiveBudgetResponse,
    BudgetCreate,
    BudgetListResponse,
    BudgetProgressResponse,
    BudgetSchema,
    BudgetUpdate,
    MiniBudgetCreate,
    MiniBudgetListResponse,
)
from ..security import require_user_id
from ..services import budgets as budget_service
from ..services.attribution import pick_active_budget
from ..services.periods import effective_range, parse_instant
from ..store.base import BudgetStore

router = APIRouter(prefix="/budgets", tags=["budgets"])


def _to_schema(budget: Budget) -> BudgetSchema:
    return BudgetSchema(**dict(budget), effective_end=effective_range(budget).end)


@router.get("", response_model=BudgetListResponse, summary="List budgets in a space")
def list_budgets(
    space: Space = Query("personal"),
    start: Optional[date] = Query(None, description="Only budgets starting on/after this date"),
    end: Optional[date] = Query(None, description="Only budgets starting on/before this date"),
    user_id: str = Depends(require_user_id),
    store: BudgetStore = Depends(get_store),
):
    try:
        items = budget_service.list_budgets(store, user_id, space, start, end)
    except BudgetEngineError as exc:
        raise to_http(exc)
    return BudgetListResponse(items=[_to_schema(b) for b in items])


@router.post("", response_model=BudgetSchema, status_code=201, summary="Create a budget")
def create_budget(
    payload: BudgetCreate,
    user_id: str = Depends(require_user_id),
    store: BudgetStore = Depends(get_store),
):
    try:
        budget = budget_service.create_budget(store, user_id, payload)
    except BudgetEngineError as exc:
        raise to_http(exc)
    return _to_schema(budget)


@router.get("/active", response_model=ActiveBudgetResponse, summary="Active budget for an instant or range")
def active_budget(
    space: Space = Query("personal"),
    start: Optional[str] = Query(None, description="YYYY-MM-DD or ISO instant; defaults to now"),
    end: Optional[str] = Query(None, description="YYYY-MM-DD or ISO instant; defaults to start"),
    user_id: str = Depends(require_user_id),
    store: BudgetStore = Depends(get_store),
):
    try:
        lo = parse_instant(start) if start else utcnow()
        hi = parse_instant(end, end_of_day=True) if end else lo
        budget = pick_active_budget(store, user_id, space, (lo, hi))
    except BudgetEngineError as exc:
        raise to_http(exc)
    return ActiveBudgetResponse(budget=_to_schema(budget) if budget else None)


@router.get("/{budget_id}", response_model=BudgetSchema, summary="Get a budget")
def get_budget(
    budget_id: str,
    space: Optional[Space] = Query(None),
    user_id: str = Depends(require_user_id),
    store: BudgetStore = Depends(get_store),
):
    try:
        budget = budget_service.get_budget(store, user_id, budget_id, space)
    except BudgetEngineError as exc:
        raise to_http(exc)
    return _to_schema(budget)


@router.patch("/{budget_id}", response_model=BudgetSchema, summary="Partially update a budget")
def update_budget(
    budget_id: str,
    payload: BudgetUpdate,
    space: Optional[Space] = Query(None),
    user_id: str = Depends(require_user_id),
    store: BudgetStore = Depends(get_store),
):
    try:
        budget = budget_service.update_budget(store, user_id, budget_id, payload, space)
    except BudgetEngineError as exc:
        raise to_http(exc)
    return _to_schema(budget)


@router.delete("/{budget_id}", status_code=204, summary="Delete a budget and its mini-budgets")
def delete_budget(
    budget_id: str,
    space: Optional[Space] = Query(None),
    user_id: str = Depends(require_user_id),
    store: BudgetStore = Depends(get_store),
):
    try:
        budget_service.delete_budget(store, user_id, budget_id, space)
    except BudgetEngineError as exc:
        raise to_http(exc)
    return Response(status_code=204)


@router.get("/{budget_id}/progress", response_model=BudgetProgressResponse, summary="Budgeted vs. spent per bucket")
def budget_progress(
    budget_id: str,
    space: Optional[Space] = Query(None),
    user_id: str = Depends(require_user_id),
    store: BudgetStore = Depends(get_store),
):
    try:
        progress = budget_service.budget_progress(store, user_id, budget_id, space)
    except BudgetEngineError as exc:
        raise to_http(exc)
    return BudgetProgressResponse(**{**progress, "budget": _to_schema(progress["budget"])})


# ── Mini-budgets ──────────────────────────────────────────────────────────────


@router.get("/{budget_id}/mini-budgets", response_model=MiniBudgetListResponse, summary="List mini-budgets")
def list_mini_budgets(
    budget_id: str,
    space: Optional[Space] = Query(None),
    user_id: str = Depends(require_user_id),
    store: BudgetStore = Depends(get_store),
):
    try:
        items = budget_service.list_mini_budgets(store, user_id, budget_id, space)
    except BudgetEngineError as exc:
        raise to_http(exc)
    return MiniBudgetListResponse(items=items)


@router.post("/{budget_id}/mini-budgets", response_model=MiniBudget, status_code=201, summary="Create a mini-budget")
def create_mini_budget(
    budget_id: str,
    payload: MiniBudgetCreate,
    space: Optional[Space] = Query(None),
    user_id: str = Depends(require_user_id),
    store: BudgetStore = Depends(get_store),
):
    try:
        mini = budget_service.create_mini_budget(store, user_id, budget_id, payload, space)
    except BudgetEngineError as exc:
        raise to_http(exc)
    return mini


@router.delete("/{budget_id}/mini-budgets/{mini_id}", status_code=204, summary="Delete a mini-budget")
def delete_mini_budget(
    budget_id: str,
    mini_id: str,
    space: Optional[Space] = Query(None),
    user_id: str = Depends(require_user_id),
    store: BudgetStore = Depends(get_store),
):
    try:
        budget_service.delete_mini_budget(store, user_id, budget_id, mini_id, space)
    except BudgetEngineError as exc:
        raise to_http(exc)
    return Response(status_code=204)
