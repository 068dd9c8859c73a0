from typing import Optional

from fastapi import APIRouter, Body, Depends, Query

from ..database import get_store
from ..domain import ImportStatus, Space
from ..errors import BudgetEngineError, to_http
from ..schemas import IgnoreResponse, ImportedTransactionListResponse, ReconcileRequest, ReconcileResponse
from ..security import require_user_id
from ..services import reconciler
from ..store.base import BudgetStore

router = APIRouter(prefix="/imported-transactions", tags=["imported-transactions"])


@router.get("", response_model=ImportedTransactionListResponse, summary="List staged bank imports")
def list_imported(
    space: Space = Query("personal"),
    status: ImportStatus = Query("pending"),
    user_id: str = Depends(require_user_id),
    store: BudgetStore = Depends(get_store),
):
    try:
        items = reconciler.list_imported(store, user_id, space, status)
    except BudgetEngineError as exc:
        raise to_http(exc)
    return ImportedTransactionListResponse(items=items)


@router.post("/{imported_id}/reconcile", response_model=ReconcileResponse, summary="Reconcile into the ledger")
def reconcile(
    imported_id: str,
    payload: Optional[ReconcileRequest] = Body(None),
    space: Optional[Space] = Query(None),
    user_id: str = Depends(require_user_id),
    store: BudgetStore = Depends(get_store),
):
    try:
        imported, tx = reconciler.reconcile(store, user_id, imported_id, payload, space)
    except BudgetEngineError as exc:
        raise to_http(exc)
    return ReconcileResponse(imported_transaction=imported, transaction=tx)


@router.post("/{imported_id}/ignore", response_model=IgnoreResponse, summary="Dismiss without creating a transaction")
def ignore(
    imported_id: str,
    space: Optional[Space] = Query(None),
    user_id: str = Depends(require_user_id),
    store: BudgetStore = Depends(get_store),
):
    try:
        imported = reconciler.ignore(store, user_id, imported_id, space)
    except BudgetEngineError as exc:
        raise to_http(exc)
    return IgnoreResponse(imported_transaction=imported)
