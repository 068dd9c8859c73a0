"""In-memory store with the same semantics as the SQL one.

Used by the test suite and by demo mode. All state lives in plain dicts keyed
by id; records are copied on the way in and out so callers never alias
stored state.
"""

import copy
import threading
from contextlib import contextmanager
from datetime import datetime
from typing import Iterable, Iterator, Optional

from ..domain import (
    BankLink,
    BucketAllocation,
    Budget,
    ImportedTransaction,
    ImportStatus,
    MiniBudget,
    Space,
    Transaction,
)
from ..errors import ConflictError
from .base import BudgetStore


class MemoryBudgetStore(BudgetStore):
    def __init__(self):
        self._budgets: dict[str, Budget] = {}
        self._mini_budgets: dict[str, MiniBudget] = {}
        self._transactions: dict[str, Transaction] = {}
        self._bank_links: dict[str, BankLink] = {}
        self._imported: dict[str, ImportedTransaction] = {}
        self._mutex = threading.RLock()
        self._space_locks: dict[tuple[str, str], threading.Lock] = {}
        self._depth = 0

    def _state(self) -> tuple:
        return (self._budgets, self._mini_budgets, self._transactions, self._bank_links, self._imported)

    # ─── Units of work ────────────────────────────────────────────────────────

    @contextmanager
    def atomic(self) -> Iterator[None]:
        with self._mutex:
            snapshot = copy.deepcopy(self._state()) if self._depth == 0 else None
            self._depth += 1
            try:
                yield
            except Exception:
                if snapshot is not None:
                    (
                        self._budgets,
                        self._mini_budgets,
                        self._transactions,
                        self._bank_links,
                        self._imported,
                    ) = snapshot
                raise
            finally:
                self._depth -= 1

    @contextmanager
    def space_lock(self, user_id: str, space: Space) -> Iterator[None]:
        with self._mutex:
            lock = self._space_locks.setdefault((user_id, space), threading.Lock())
        with lock:
            yield

    # ─── Budgets ──────────────────────────────────────────────────────────────

    def list_budgets(self, user_id: str, space: Space) -> list[Budget]:
        items = [b for b in self._budgets.values() if b.user_id == user_id and b.space == space]
        items.sort(key=lambda b: (b.start_date, b.id), reverse=True)
        return [b.model_copy(deep=True) for b in items]

    def get_budget(self, user_id: str, budget_id: str) -> Optional[Budget]:
        b = self._budgets.get(budget_id)
        if b is None or b.user_id != user_id:
            return None
        return b.model_copy(deep=True)

    def add_budget(self, budget: Budget) -> None:
        self._budgets[budget.id] = budget.model_copy(deep=True)

    def save_budget(self, budget: Budget) -> None:
        self._budgets[budget.id] = budget.model_copy(deep=True)

    def grow_budget(
        self,
        user_id: str,
        budget_id: str,
        amount: int,
        bucket: Optional[str],
        at: datetime,
    ) -> Optional[Budget]:
        with self._mutex:
            b = self._budgets.get(budget_id)
            if b is None or b.user_id != user_id:
                return None
            categories = dict(b.categories)
            if bucket is not None:
                current = categories.get(bucket, BucketAllocation(budgeted=0))
                categories[bucket] = BucketAllocation(budgeted=current.budgeted + amount)
            grown = b.model_copy(update={
                "total_budget": b.total_budget + amount,
                "categories": categories,
                "updated_at": at,
            }, deep=True)
            self._budgets[budget_id] = grown
            return grown.model_copy(deep=True)

    def delete_budget(self, user_id: str, budget_id: str) -> bool:
        b = self._budgets.get(budget_id)
        if b is None or b.user_id != user_id:
            return False
        del self._budgets[budget_id]
        return True

    # ─── Mini-budgets ─────────────────────────────────────────────────────────

    def list_mini_budgets(self, user_id: str, budget_id: str) -> list[MiniBudget]:
        items = [
            m for m in self._mini_budgets.values()
            if m.user_id == user_id and m.budget_id == budget_id
        ]
        items.sort(key=lambda m: (m.created_at, m.id), reverse=True)
        return [m.model_copy() for m in items]

    def get_mini_budgets(self, user_id: str, ids: Iterable[str]) -> list[MiniBudget]:
        wanted = set(ids)
        return [
            m.model_copy() for m in self._mini_budgets.values()
            if m.user_id == user_id and m.id in wanted
        ]

    def add_mini_budget(self, mini: MiniBudget) -> None:
        self._mini_budgets[mini.id] = mini.model_copy()

    def delete_mini_budget(self, user_id: str, mini_id: str) -> bool:
        m = self._mini_budgets.get(mini_id)
        if m is None or m.user_id != user_id:
            return False
        del self._mini_budgets[mini_id]
        return True

    def delete_mini_budgets_for(self, user_id: str, budget_id: str) -> int:
        doomed = [
            m.id for m in self._mini_budgets.values()
            if m.user_id == user_id and m.budget_id == budget_id
        ]
        for mini_id in doomed:
            del self._mini_budgets[mini_id]
        return len(doomed)

    # ─── Ledger transactions ──────────────────────────────────────────────────

    def add_transaction(self, tx: Transaction) -> None:
        if tx.source_imported_id is not None and any(
            t.source_imported_id == tx.source_imported_id for t in self._transactions.values()
        ):
            raise ConflictError("Imported transaction has already been reconciled")
        self._transactions[tx.id] = tx.model_copy()

    def get_transaction(self, user_id: str, tx_id: str) -> Optional[Transaction]:
        t = self._transactions.get(tx_id)
        if t is None or t.user_id != user_id:
            return None
        return t.model_copy()

    def save_transaction(self, tx: Transaction) -> None:
        self._transactions[tx.id] = tx.model_copy()

    def delete_transaction(self, user_id: str, tx_id: str) -> bool:
        t = self._transactions.get(tx_id)
        if t is None or t.user_id != user_id:
            return False
        del self._transactions[tx_id]
        return True

    def find_transactions(
        self,
        user_id: str,
        space: Space,
        *,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        budget_id: Optional[str] = None,
        type: Optional[str] = None,
        category: Optional[str] = None,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> list[Transaction]:
        items = []
        for t in self._transactions.values():
            if t.user_id != user_id or t.space != space:
                continue
            if start is not None and t.occurred_at < start:
                continue
            if end is not None and t.occurred_at > end:
                continue
            if budget_id is not None and t.budget_id != budget_id:
                continue
            if type is not None and t.type != type:
                continue
            if category is not None and t.category != category:
                continue
            items.append(t)
        items.sort(key=lambda t: (t.occurred_at, t.id), reverse=True)
        items = items[offset:] if limit is None else items[offset:offset + limit]
        return [t.model_copy() for t in items]

    # ─── Bank links ───────────────────────────────────────────────────────────

    def add_bank_link(self, link: BankLink) -> None:
        self._bank_links[link.id] = link.model_copy(deep=True)

    def list_bank_links(self, user_id: str, space: Space) -> list[BankLink]:
        items = [l for l in self._bank_links.values() if l.user_id == user_id and l.space == space]
        items.sort(key=lambda l: (l.created_at, l.id), reverse=True)
        return [l.model_copy(deep=True) for l in items]

    def get_bank_link(self, user_id: str, link_id: str) -> Optional[BankLink]:
        l = self._bank_links.get(link_id)
        if l is None or l.user_id != user_id:
            return None
        return l.model_copy(deep=True)

    def delete_bank_link(self, user_id: str, link_id: str) -> bool:
        link = self._bank_links.get(link_id)
        if link is None or link.user_id != user_id:
            return False
        account_ids = {a.id for a in link.accounts}
        for imported_id in [
            i.id for i in self._imported.values()
            if i.user_id == user_id and i.bank_account_id in account_ids
        ]:
            del self._imported[imported_id]
        del self._bank_links[link_id]
        return True

    # ─── Imported transactions ────────────────────────────────────────────────

    def add_imported(self, items: list[ImportedTransaction]) -> None:
        for item in items:
            self._imported[item.id] = item.model_copy()

    def get_imported(self, user_id: str, imported_id: str) -> Optional[ImportedTransaction]:
        i = self._imported.get(imported_id)
        if i is None or i.user_id != user_id:
            return None
        return i.model_copy()

    def list_imported(self, user_id: str, space: Space, status: ImportStatus) -> list[ImportedTransaction]:
        items = [
            i for i in self._imported.values()
            if i.user_id == user_id and i.space == space and i.status == status
        ]
        items.sort(key=lambda i: (i.occurred_at, i.id), reverse=True)
        return [i.model_copy() for i in items]

    def transition_imported(
        self,
        user_id: str,
        imported_id: str,
        to_status: ImportStatus,
        at: datetime,
    ) -> bool:
        with self._mutex:
            current = self._imported.get(imported_id)
            if current is None or current.user_id != user_id or current.status != "pending":
                return False
            update = {"status": to_status, "updated_at": at}
            if to_status == "reconciled":
                update["reconciled_at"] = at
            self._imported[imported_id] = current.model_copy(update=update)
            return True
