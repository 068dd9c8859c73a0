from typing import Optional

from fastapi import APIRouter, Depends, Query, Response

from ..database import get_store
from ..domain import Space
from ..errors import BudgetEngineError, to_http
from ..schemas import BankLinkCreate, BankLinkCreateResponse, BankLinkListResponse
from ..security import require_user_id
from ..services import bank_links as link_service
from ..store.base import BudgetStore

router = APIRouter(prefix="/bank-links", tags=["bank-links"])


@router.get("", response_model=BankLinkListResponse, summary="List linked banks and their accounts")
def list_bank_links(
    space: Space = Query("personal"),
    user_id: str = Depends(require_user_id),
    store: BudgetStore = Depends(get_store),
):
    try:
        items = link_service.list_bank_links(store, user_id, space)
    except BudgetEngineError as exc:
        raise to_http(exc)
    return BankLinkListResponse(items=items)


@router.post("", response_model=BankLinkCreateResponse, status_code=201, summary="Link a (simulated) bank")
def create_bank_link(
    payload: BankLinkCreate,
    user_id: str = Depends(require_user_id),
    store: BudgetStore = Depends(get_store),
):
    try:
        link, imported = link_service.create_bank_link(store, user_id, payload)
    except BudgetEngineError as exc:
        raise to_http(exc)
    return BankLinkCreateResponse(link=link, imported=imported)


@router.delete("/{link_id}", status_code=204, summary="Unlink a bank and drop its staged imports")
def delete_bank_link(
    link_id: str,
    space: Optional[Space] = Query(None),
    user_id: str = Depends(require_user_id),
    store: BudgetStore = Depends(get_store),
):
    try:
        link_service.delete_bank_link(store, user_id, link_id, space)
    except BudgetEngineError as exc:
        raise to_http(exc)
    return Response(status_code=204)
