from typing import Optional

from fastapi import APIRouter, Depends, Query, Response

from ..database import get_store
from ..domain import Space, Transaction, TransactionType
from ..errors import BudgetEngineError, to_http
from ..schemas import TransactionCreate, TransactionListResponse, TransactionSchema, TransactionUpdate
from ..security import require_user_id
from ..services import ledger
from ..services.periods import parse_instant
from ..store.base import BudgetStore

router = APIRouter(prefix="/transactions", tags=["transactions"])


def _to_schema(tx: Transaction, names: dict[str, str]) -> TransactionSchema:
    return TransactionSchema(**dict(tx), budget_name=names.get(tx.budget_id) if tx.budget_id else None)


@router.get("", response_model=TransactionListResponse, summary="List transactions")
def list_transactions(
    space: Space = Query("personal"),
    start: Optional[str] = Query(None, description="YYYY-MM-DD (UTC day start) or ISO instant"),
    end: Optional[str] = Query(None, description="YYYY-MM-DD (UTC day end) or ISO instant"),
    type: Optional[TransactionType] = Query(None),
    category: Optional[str] = Query(None),
    budget_id: Optional[str] = Query(None),
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    user_id: str = Depends(require_user_id),
    store: BudgetStore = Depends(get_store),
):
    try:
        total, items = ledger.list_transactions(
            store,
            user_id,
            space,
            start=parse_instant(start) if start else None,
            end=parse_instant(end, end_of_day=True) if end else None,
            type=type,
            category=category,
            budget_id=budget_id,
            limit=limit,
            offset=offset,
        )
    except BudgetEngineError as exc:
        raise to_http(exc)
    names = ledger.budget_names(store, user_id, items)
    return TransactionListResponse(total=total, items=[_to_schema(t, names) for t in items])


@router.post("", response_model=TransactionSchema, status_code=201, summary="Record a transaction")
def create_transaction(
    payload: TransactionCreate,
    user_id: str = Depends(require_user_id),
    store: BudgetStore = Depends(get_store),
):
    try:
        tx = ledger.create_transaction(store, user_id, payload)
    except BudgetEngineError as exc:
        raise to_http(exc)
    return _to_schema(tx, ledger.budget_names(store, user_id, [tx]))


@router.get("/{tx_id}", response_model=TransactionSchema, summary="Get a transaction")
def get_transaction(
    tx_id: str,
    space: Optional[Space] = Query(None),
    user_id: str = Depends(require_user_id),
    store: BudgetStore = Depends(get_store),
):
    try:
        tx = ledger.get_transaction(store, user_id, tx_id, space)
    except BudgetEngineError as exc:
        raise to_http(exc)
    return _to_schema(tx, ledger.budget_names(store, user_id, [tx]))


@router.patch("/{tx_id}", response_model=TransactionSchema, summary="Partially update a transaction")
def update_transaction(
    tx_id: str,
    payload: TransactionUpdate,
    space: Optional[Space] = Query(None),
    user_id: str = Depends(require_user_id),
    store: BudgetStore = Depends(get_store),
):
    try:
        tx = ledger.update_transaction(store, user_id, tx_id, payload, space)
    except BudgetEngineError as exc:
        raise to_http(exc)
    return _to_schema(tx, ledger.budget_names(store, user_id, [tx]))


@router.delete("/{tx_id}", status_code=204, summary="Delete a transaction")
def delete_transaction(
    tx_id: str,
    space: Optional[Space] = Query(None),
    user_id: str = Depends(require_user_id),
    store: BudgetStore = Depends(get_store),
):
    try:
        ledger.delete_transaction(store, user_id, tx_id, space)
    except BudgetEngineError as exc:
        raise to_http(exc)
    return Response(status_code=204)
