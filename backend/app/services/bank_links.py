"""Simulated bank linking: demo accounts plus staged imports for review."""

import logging
from typing import Optional

from ..domain import BankAccount, BankLink, ImportedTransaction, new_id, utcnow
from ..errors import NotFoundError
from ..schemas import BankLinkCreate
from ..store.base import BudgetStore
from .buckets import require_space

logger = logging.getLogger(__name__)

_CURRENCY = "NGN"

# ─────────────────────────────────────────────────────────────────────────────
# Demo data  (name, mask, type, balance)
# ─────────────────────────────────────────────────────────────────────────────

_DEMO_ACCOUNTS: list[tuple[str, str, str, int]] = [
    ("Main account",   "1234", "checking", 185000),
    ("Savings pocket", "5678", "savings",  420000),
]

# (account index, amount, direction, description, merchant)
_DEMO_IMPORTS: list[tuple[int, int, str, str, str]] = [
    (0,  4500, "debit",  "Groceries at Local Mart", "Local Mart"),
    (0,  1300, "debit",  "Transport - ride share",  "RideShare"),
    (1, 20000, "credit", "Salary top-up",           "Employer Ltd"),
]


def create_bank_link(
    store: BudgetStore,
    user_id: str,
    payload: BankLinkCreate,
) -> tuple[BankLink, list[ImportedTransaction]]:
    """Store a link with its demo accounts and seed pending imports on them."""
    space = payload.space
    now = utcnow()
    link_id = new_id()
    bank_name = payload.bank_name or f"Demo Bank {len(store.list_bank_links(user_id, space)) + 1}"

    accounts = [
        BankAccount(
            id=new_id(),
            user_id=user_id,
            space=space,
            bank_link_id=link_id,
            name=name,
            mask=mask,
            type=kind,
            currency=_CURRENCY,
            balance=balance,
            created_at=now,
        )
        for name, mask, kind, balance in _DEMO_ACCOUNTS
    ]
    link = BankLink(
        id=link_id,
        user_id=user_id,
        space=space,
        provider=payload.provider,
        bank_name=bank_name,
        created_at=now,
        accounts=accounts,
    )
    imported = [
        ImportedTransaction(
            id=new_id(),
            user_id=user_id,
            space=space,
            bank_account_id=accounts[idx].id,
            bank_name=bank_name,
            bank_account_name=accounts[idx].name,
            amount=amount,
            currency=_CURRENCY,
            direction=direction,
            description=description,
            merchant=merchant,
            occurred_at=now,
            status="pending",
            created_at=now,
            updated_at=now,
        )
        for idx, amount, direction, description, merchant in _DEMO_IMPORTS
    ]

    with store.atomic():
        store.add_bank_link(link)
        store.add_imported(imported)
    logger.info("Linked %s via %s for %s space (%d imports staged)", bank_name, payload.provider, space, len(imported))
    return link, imported


def list_bank_links(store: BudgetStore, user_id: str, space: str) -> list[BankLink]:
    return store.list_bank_links(user_id, require_space(space))


def delete_bank_link(store: BudgetStore, user_id: str, link_id: str, space: Optional[str] = None) -> None:
    link = store.get_bank_link(user_id, link_id)
    if link is None or (space is not None and link.space != space):
        raise NotFoundError("Bank link not found")
    with store.atomic():
        store.delete_bank_link(user_id, link_id)
    logger.info("Removed bank link %s", link_id)
