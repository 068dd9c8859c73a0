from abc import ABC, abstractmethod
from datetime import datetime
from typing import ContextManager, Iterable, Optional

from ..domain import (
    BankLink,
    Budget,
    ImportedTransaction,
    ImportStatus,
    MiniBudget,
    Space,
    Transaction,
)


class BudgetStore(ABC):
    """
    Persistence contract for the budget engine.

    Every read and write is scoped by ``user_id`` (and ``space`` where the
    entity carries one). Implementations: ``SqlBudgetStore`` for the real
    database and ``MemoryBudgetStore`` for tests and demo mode. Both must
    give the engine the same two guarantees:

    - ``space_lock`` serializes budget writes for one (user, space), so the
      overlap check and the write that follows it cannot interleave.
    - ``transition_imported`` is a conditional update on ``status``; only one
      caller can move a given imported transaction out of ``pending``.
    """

    # ─── Units of work ────────────────────────────────────────────────────────

    @abstractmethod
    def atomic(self) -> ContextManager[None]:
        """Commit everything written inside the block, or nothing on error."""

    @abstractmethod
    def space_lock(self, user_id: str, space: Space) -> ContextManager[None]:
        ...

    # ─── Budgets ──────────────────────────────────────────────────────────────

    @abstractmethod
    def list_budgets(self, user_id: str, space: Space) -> list[Budget]:
        ...

    @abstractmethod
    def get_budget(self, user_id: str, budget_id: str) -> Optional[Budget]:
        ...

    @abstractmethod
    def add_budget(self, budget: Budget) -> None:
        ...

    @abstractmethod
    def save_budget(self, budget: Budget) -> None:
        ...

    @abstractmethod
    def grow_budget(
        self,
        user_id: str,
        budget_id: str,
        amount: int,
        bucket: Optional[str],
        at: datetime,
    ) -> Optional[Budget]:
        """Add ``amount`` to the stored total (and to ``bucket`` when given), leaving other fields alone.

        Returns the budget as stored afterwards, or None if it no longer exists.
        """

    @abstractmethod
    def delete_budget(self, user_id: str, budget_id: str) -> bool:
        ...

    # ─── Mini-budgets ─────────────────────────────────────────────────────────

    @abstractmethod
    def list_mini_budgets(self, user_id: str, budget_id: str) -> list[MiniBudget]:
        ...

    @abstractmethod
    def get_mini_budgets(self, user_id: str, ids: Iterable[str]) -> list[MiniBudget]:
        ...

    @abstractmethod
    def add_mini_budget(self, mini: MiniBudget) -> None:
        ...

    @abstractmethod
    def delete_mini_budget(self, user_id: str, mini_id: str) -> bool:
        ...

    @abstractmethod
    def delete_mini_budgets_for(self, user_id: str, budget_id: str) -> int:
        ...

    # ─── Ledger transactions ──────────────────────────────────────────────────

    @abstractmethod
    def add_transaction(self, tx: Transaction) -> None:
        """Insert a ledger row. Raises ``ConflictError`` when ``source_imported_id`` is taken."""

    @abstractmethod
    def get_transaction(self, user_id: str, tx_id: str) -> Optional[Transaction]:
        ...

    @abstractmethod
    def save_transaction(self, tx: Transaction) -> None:
        ...

    @abstractmethod
    def delete_transaction(self, user_id: str, tx_id: str) -> bool:
        ...

    @abstractmethod
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
        """Newest first (``occurred_at`` desc, then ``id`` desc); bounds are inclusive."""

    # ─── Bank links ───────────────────────────────────────────────────────────

    @abstractmethod
    def add_bank_link(self, link: BankLink) -> None:
        """Insert the link together with its ``accounts``."""

    @abstractmethod
    def list_bank_links(self, user_id: str, space: Space) -> list[BankLink]:
        ...

    @abstractmethod
    def get_bank_link(self, user_id: str, link_id: str) -> Optional[BankLink]:
        ...

    @abstractmethod
    def delete_bank_link(self, user_id: str, link_id: str) -> bool:
        """Remove the link, its accounts and every imported transaction of those accounts."""

    # ─── Imported transactions ────────────────────────────────────────────────

    @abstractmethod
    def add_imported(self, items: list[ImportedTransaction]) -> None:
        ...

    @abstractmethod
    def get_imported(self, user_id: str, imported_id: str) -> Optional[ImportedTransaction]:
        ...

    @abstractmethod
    def list_imported(self, user_id: str, space: Space, status: ImportStatus) -> list[ImportedTransaction]:
        ...

    @abstractmethod
    def transition_imported(
        self,
        user_id: str,
        imported_id: str,
        to_status: ImportStatus,
        at: datetime,
    ) -> bool:
        """Move ``pending`` → ``to_status``. Returns False if the record was not pending."""
