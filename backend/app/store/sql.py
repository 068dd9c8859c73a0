"""SQLAlchemy-backed store."""

import logging
import threading
from contextlib import contextmanager
from datetime import datetime
from typing import Iterable, Iterator, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from .. import models
from ..domain import (
    BankLink,
    Budget,
    ImportedTransaction,
    ImportStatus,
    MiniBudget,
    Space,
    Transaction,
)
from ..errors import ConflictError
from .base import BudgetStore

logger = logging.getLogger(__name__)


class _ProcessLock:
    def __init__(self):
        self.lock = threading.Lock()
        self.holders = 0


_process_locks: dict[tuple[str, str], _ProcessLock] = {}
_process_locks_guard = threading.Lock()


@contextmanager
def _process_lock(user_id: str, space: str) -> Iterator[None]:
    # Entries are dropped once nobody holds or waits on them.
    key = (user_id, space)
    with _process_locks_guard:
        entry = _process_locks.setdefault(key, _ProcessLock())
        entry.holders += 1
    try:
        with entry.lock:
            yield
    finally:
        with _process_locks_guard:
            entry.holders -= 1
            if entry.holders == 0:
                del _process_locks[key]


# ── Domain ↔ row mapping ──────────────────────────────────────────────────────


def _budget_values(b: Budget) -> dict:
    return {
        "id": b.id,
        "user_id": b.user_id,
        "space": b.space,
        "name": b.name,
        "total_budget": b.total_budget,
        "period": b.period,
        "start_date": b.start_date.isoformat(),
        "end_date": b.end_date.isoformat() if b.end_date else None,
        "categories": {k: v.model_dump() for k, v in b.categories.items()},
        "created_at": b.created_at,
        "updated_at": b.updated_at,
    }


def _record_values(record) -> dict:
    """Every field, including the excluded ``user_id``."""
    return {name: getattr(record, name) for name in type(record).model_fields}


class SqlBudgetStore(BudgetStore):
    def __init__(self, db: Session):
        self.db = db
        self._depth = 0

    # ─── Units of work ────────────────────────────────────────────────────────

    @contextmanager
    def atomic(self) -> Iterator[None]:
        self._depth += 1
        try:
            yield
            if self._depth == 1:
                self.db.commit()
        except Exception:
            if self._depth == 1:
                self.db.rollback()
            raise
        finally:
            self._depth -= 1

    @contextmanager
    def space_lock(self, user_id: str, space: Space) -> Iterator[None]:
        # The process lock covers one worker; the FOR UPDATE row lock covers
        # several workers on databases that implement row locks.
        with _process_lock(user_id, space):
            row = self._lock_row(user_id, space)
            if row is None:
                try:
                    with self.db.begin_nested():
                        self.db.add(models.SpaceLock(user_id=user_id, space=space, version=0))
                except IntegrityError:
                    # Another worker inserted the row first; lock theirs.
                    logger.debug("Space lock row for %s/%s created concurrently", user_id, space)
                row = self._lock_row(user_id, space)
            row.version += 1
            self.db.flush()
            yield

    def _lock_row(self, user_id: str, space: Space) -> Optional[models.SpaceLock]:
        return self.db.execute(
            select(models.SpaceLock)
            .where(models.SpaceLock.user_id == user_id, models.SpaceLock.space == space)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    # ─── Budgets ──────────────────────────────────────────────────────────────

    def list_budgets(self, user_id: str, space: Space) -> list[Budget]:
        rows = self.db.execute(
            select(models.Budget)
            .where(models.Budget.user_id == user_id, models.Budget.space == space)
            .order_by(models.Budget.start_date.desc(), models.Budget.id.desc())
        ).scalars()
        return [Budget.model_validate(r) for r in rows]

    def get_budget(self, user_id: str, budget_id: str) -> Optional[Budget]:
        row = self.db.get(models.Budget, budget_id)
        if row is None or row.user_id != user_id:
            return None
        return Budget.model_validate(row)

    def add_budget(self, budget: Budget) -> None:
        self.db.add(models.Budget(**_budget_values(budget)))
        self.db.flush()

    def save_budget(self, budget: Budget) -> None:
        row = self.db.get(models.Budget, budget.id)
        for key, value in _budget_values(budget).items():
            setattr(row, key, value)
        self.db.flush()

    def grow_budget(
        self,
        user_id: str,
        budget_id: str,
        amount: int,
        bucket: Optional[str],
        at: datetime,
    ) -> Optional[Budget]:
        B = models.Budget
        row = self._budget_for_update(user_id, budget_id)
        if row is None:
            return None
        values = {"total_budget": B.total_budget + amount, "updated_at": at}
        if bucket is not None:
            categories = dict(row.categories or {})
            budgeted = categories.get(bucket, {}).get("budgeted", 0)
            categories[bucket] = {"budgeted": budgeted + amount}
            values["categories"] = categories
        self.db.execute(
            update(B)
            .where(B.id == budget_id, B.user_id == user_id)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        return Budget.model_validate(self._budget_for_update(user_id, budget_id))

    def _budget_for_update(self, user_id: str, budget_id: str) -> Optional[models.Budget]:
        return self.db.execute(
            select(models.Budget)
            .where(models.Budget.id == budget_id, models.Budget.user_id == user_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def delete_budget(self, user_id: str, budget_id: str) -> bool:
        row = self.db.get(models.Budget, budget_id)
        if row is None or row.user_id != user_id:
            return False
        self.db.delete(row)
        self.db.flush()
        return True

    # ─── Mini-budgets ─────────────────────────────────────────────────────────

    def list_mini_budgets(self, user_id: str, budget_id: str) -> list[MiniBudget]:
        rows = self.db.execute(
            select(models.MiniBudget)
            .where(models.MiniBudget.user_id == user_id, models.MiniBudget.budget_id == budget_id)
            .order_by(models.MiniBudget.created_at.desc(), models.MiniBudget.id.desc())
        ).scalars()
        return [MiniBudget.model_validate(r) for r in rows]

    def get_mini_budgets(self, user_id: str, ids: Iterable[str]) -> list[MiniBudget]:
        ids = list(ids)
        if not ids:
            return []
        rows = self.db.execute(
            select(models.MiniBudget).where(
                models.MiniBudget.user_id == user_id, models.MiniBudget.id.in_(ids)
            )
        ).scalars()
        return [MiniBudget.model_validate(r) for r in rows]

    def add_mini_budget(self, mini: MiniBudget) -> None:
        self.db.add(models.MiniBudget(**_record_values(mini)))
        self.db.flush()

    def delete_mini_budget(self, user_id: str, mini_id: str) -> bool:
        row = self.db.get(models.MiniBudget, mini_id)
        if row is None or row.user_id != user_id:
            return False
        self.db.delete(row)
        self.db.flush()
        return True

    def delete_mini_budgets_for(self, user_id: str, budget_id: str) -> int:
        rows = self.db.execute(
            select(models.MiniBudget).where(
                models.MiniBudget.user_id == user_id, models.MiniBudget.budget_id == budget_id
            )
        ).scalars().all()
        for row in rows:
            self.db.delete(row)
        self.db.flush()
        return len(rows)

    # ─── Ledger transactions ──────────────────────────────────────────────────

    def add_transaction(self, tx: Transaction) -> None:
        self.db.add(models.Transaction(**_record_values(tx)))
        try:
            self.db.flush()
        except IntegrityError as exc:
            raise ConflictError("Imported transaction has already been reconciled") from exc

    def get_transaction(self, user_id: str, tx_id: str) -> Optional[Transaction]:
        row = self.db.get(models.Transaction, tx_id)
        if row is None or row.user_id != user_id:
            return None
        return Transaction.model_validate(row)

    def save_transaction(self, tx: Transaction) -> None:
        row = self.db.get(models.Transaction, tx.id)
        for key, value in _record_values(tx).items():
            setattr(row, key, value)
        self.db.flush()

    def delete_transaction(self, user_id: str, tx_id: str) -> bool:
        row = self.db.get(models.Transaction, tx_id)
        if row is None or row.user_id != user_id:
            return False
        self.db.delete(row)
        self.db.flush()
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
        T = models.Transaction
        query = select(T).where(T.user_id == user_id, T.space == space)
        if start is not None:
            query = query.where(T.occurred_at >= start)
        if end is not None:
            query = query.where(T.occurred_at <= end)
        if budget_id is not None:
            query = query.where(T.budget_id == budget_id)
        if type is not None:
            query = query.where(T.type == type)
        if category is not None:
            query = query.where(T.category == category)
        query = query.order_by(T.occurred_at.desc(), T.id.desc()).offset(offset)
        if limit is not None:
            query = query.limit(limit)
        return [Transaction.model_validate(r) for r in self.db.execute(query).scalars()]

    # ─── Bank links ───────────────────────────────────────────────────────────

    def add_bank_link(self, link: BankLink) -> None:
        values = _record_values(link)
        accounts = values.pop("accounts")
        row = models.BankLink(**values)
        row.accounts = [models.BankAccount(**_record_values(a)) for a in accounts]
        self.db.add(row)
        self.db.flush()

    def list_bank_links(self, user_id: str, space: Space) -> list[BankLink]:
        rows = self.db.execute(
            select(models.BankLink)
            .options(selectinload(models.BankLink.accounts))
            .where(models.BankLink.user_id == user_id, models.BankLink.space == space)
            .order_by(models.BankLink.created_at.desc(), models.BankLink.id.desc())
        ).scalars()
        return [BankLink.model_validate(r) for r in rows]

    def get_bank_link(self, user_id: str, link_id: str) -> Optional[BankLink]:
        row = self.db.get(models.BankLink, link_id)
        if row is None or row.user_id != user_id:
            return None
        return BankLink.model_validate(row)

    def delete_bank_link(self, user_id: str, link_id: str) -> bool:
        row = self.db.get(models.BankLink, link_id)
        if row is None or row.user_id != user_id:
            return False
        account_ids = [a.id for a in row.accounts]
        if account_ids:
            for imported in self.db.execute(
                select(models.ImportedTransaction).where(
                    models.ImportedTransaction.user_id == user_id,
                    models.ImportedTransaction.bank_account_id.in_(account_ids),
                )
            ).scalars().all():
                self.db.delete(imported)
        self.db.delete(row)
        self.db.flush()
        return True

    # ─── Imported transactions ────────────────────────────────────────────────

    def add_imported(self, items: list[ImportedTransaction]) -> None:
        self.db.add_all(models.ImportedTransaction(**_record_values(i)) for i in items)
        self.db.flush()

    def get_imported(self, user_id: str, imported_id: str) -> Optional[ImportedTransaction]:
        row = self.db.get(models.ImportedTransaction, imported_id, populate_existing=True)
        if row is None or row.user_id != user_id:
            return None
        return ImportedTransaction.model_validate(row)

    def list_imported(self, user_id: str, space: Space, status: ImportStatus) -> list[ImportedTransaction]:
        I = models.ImportedTransaction
        rows = self.db.execute(
            select(I)
            .where(I.user_id == user_id, I.space == space, I.status == status)
            .order_by(I.occurred_at.desc(), I.id.desc())
        ).scalars()
        return [ImportedTransaction.model_validate(r) for r in rows]

    def transition_imported(
        self,
        user_id: str,
        imported_id: str,
        to_status: ImportStatus,
        at: datetime,
    ) -> bool:
        I = models.ImportedTransaction
        values = {"status": to_status, "updated_at": at}
        if to_status == "reconciled":
            values["reconciled_at"] = at
        result = self.db.execute(
            update(I)
            .where(I.id == imported_id, I.user_id == user_id, I.status == "pending")
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1
