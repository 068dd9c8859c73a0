from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, ForeignKey, Index, Integer, JSON, String, Text, UniqueConstraint
from sqlalchemy.orm import relationship

from .database import Base


def _now() -> datetime:
    return datetime.now(timezone.utc)


class SpaceLock(Base):
    """One row per (user, space); locked FOR UPDATE around budget writes."""

    __tablename__ = "space_locks"

    user_id = Column(String(120), primary_key=True)
    space = Column(String(20), primary_key=True)
    version = Column(Integer, nullable=False, default=0)


class Budget(Base):
    __tablename__ = "budgets"

    id = Column(String(36), primary_key=True)
    user_id = Column(String(120), nullable=False, index=True)
    space = Column(String(20), nullable=False, default="personal")
    name = Column(String(80), nullable=False)
    total_budget = Column(Integer, nullable=False, default=0)     # minor units
    period = Column(String(10), nullable=False)                   # monthly | weekly
    start_date = Column(String(10), nullable=False)               # YYYY-MM-DD
    end_date = Column(String(10), nullable=True)                  # YYYY-MM-DD, null = derived from period
    categories = Column(JSON, nullable=False, default=dict)       # bucket -> {"budgeted": int}
    created_at = Column(DateTime(timezone=True), nullable=False, default=_now)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_now, onupdate=_now)

    __table_args__ = (Index("idx_budgets_user_space_start", "user_id", "space", "start_date"),)


class MiniBudget(Base):
    __tablename__ = "mini_budgets"

    id = Column(String(36), primary_key=True)
    user_id = Column(String(120), nullable=False, index=True)
    # Owning reference; cascade is done by the budget service, not the database.
    budget_id = Column(String(36), nullable=False, index=True)
    name = Column(String(80), nullable=False)
    amount = Column(Integer, nullable=False, default=0)
    category = Column(String(30), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_now)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_now, onupdate=_now)


class Transaction(Base):
    __tablename__ = "transactions"

    id = Column(String(36), primary_key=True)
    user_id = Column(String(120), nullable=False, index=True)
    space = Column(String(20), nullable=False, default="personal")
    type = Column(String(10), nullable=False)                     # income | expense
    amount = Column(Integer, nullable=False)                      # minor units, > 0
    category = Column(String(60), nullable=False)
    description = Column(Text, nullable=False, default="")
    occurred_at = Column(DateTime(timezone=True), nullable=False)
    # Weak references: plain ids, no foreign keys, may dangle after deletes.
    budget_id = Column(String(36), nullable=True, index=True)
    budget_category = Column(String(30), nullable=True)
    mini_budget_id = Column(String(36), nullable=True)
    source_imported_id = Column(String(36), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_now)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_now, onupdate=_now)

    __table_args__ = (
        UniqueConstraint("source_imported_id", name="uq_transactions_source_imported_id"),
        Index("idx_transactions_user_space_occurred", "user_id", "space", "occurred_at"),
    )


class BankLink(Base):
    __tablename__ = "bank_links"

    id = Column(String(36), primary_key=True)
    user_id = Column(String(120), nullable=False, index=True)
    space = Column(String(20), nullable=False, default="personal")
    provider = Column(String(80), nullable=False)
    bank_name = Column(String(120), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_now)

    accounts = relationship(
        "BankAccount",
        back_populates="bank_link",
        cascade="all, delete-orphan",
        order_by="BankAccount.name",
    )


class BankAccount(Base):
    __tablename__ = "bank_accounts"

    id = Column(String(36), primary_key=True)
    user_id = Column(String(120), nullable=False, index=True)
    space = Column(String(20), nullable=False, default="personal")
    bank_link_id = Column(String(36), ForeignKey("bank_links.id"), nullable=False, index=True)
    name = Column(String(120), nullable=False)
    mask = Column(String(8), nullable=False)
    type = Column(String(20), nullable=False)                     # checking | savings
    currency = Column(String(3), nullable=False)
    balance = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_now)

    bank_link = relationship("BankLink", back_populates="accounts")


class ImportedTransaction(Base):
    __tablename__ = "imported_transactions"

    id = Column(String(36), primary_key=True)
    user_id = Column(String(120), nullable=False, index=True)
    space = Column(String(20), nullable=False, default="personal")
    bank_account_id = Column(String(36), nullable=False, index=True)
    bank_name = Column(String(120), nullable=False)
    bank_account_name = Column(String(120), nullable=False)
    amount = Column(Integer, nullable=False)
    currency = Column(String(3), nullable=False)
    direction = Column(String(10), nullable=False)                # debit | credit
    description = Column(Text, nullable=False)
    merchant = Column(String(255), nullable=False, default="")
    occurred_at = Column(DateTime(timezone=True), nullable=False)
    status = Column(String(12), nullable=False, default="pending")  # pending | reconciled | ignored
    reconciled_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_now)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_now, onupdate=_now)

    __table_args__ = (Index("idx_imported_user_space_status", "user_id", "space", "status"),)
