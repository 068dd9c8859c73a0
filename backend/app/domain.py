"""Domain records exchanged between the store layer, the engine and the API.

Money values are integers in the smallest currency unit. Instants are always
timezone-aware UTC; naive values coming back from SQLite are taken as UTC.
"""

import uuid
from datetime import date, datetime, timezone
from typing import Annotated, Literal, Optional

from pydantic import AfterValidator, BaseModel, Field

Space = Literal["personal", "business"]
Period = Literal["monthly", "weekly"]
TransactionType = Literal["income", "expense"]
Direction = Literal["debit", "credit"]
ImportStatus = Literal["pending", "reconciled", "ignored"]
Bucket = Literal[
    "Essential",
    "Savings",
    "Free Spending",
    "Investments",
    "Miscellaneous",
    "Debt Financing",
]

SPACES: tuple[str, ...] = ("personal", "business")
BUCKETS: tuple[str, ...] = (
    "Essential",
    "Savings",
    "Free Spending",
    "Investments",
    "Miscellaneous",
    "Debt Financing",
)


def as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return str(uuid.uuid4())


UtcDatetime = Annotated[datetime, AfterValidator(as_utc)]


class Record(BaseModel):
    model_config = {"from_attributes": True}


# ─────────────────────────────────────────────────────────────────────────────
# Budgets
# ─────────────────────────────────────────────────────────────────────────────


class BucketAllocation(BaseModel):
    budgeted: int = Field(ge=0)


class Budget(Record):
    id: str
    user_id: str = Field(exclude=True)
    space: Space
    name: str
    total_budget: int = Field(ge=0)
    period: Period
    start_date: date
    end_date: Optional[date] = None
    categories: dict[Bucket, BucketAllocation] = Field(default_factory=dict)
    created_at: UtcDatetime
    updated_at: UtcDatetime


class MiniBudget(Record):
    id: str
    user_id: str = Field(exclude=True)
    budget_id: str
    name: str
    amount: int = Field(ge=0)
    category: Optional[Bucket] = None
    created_at: UtcDatetime
    updated_at: UtcDatetime


# ─────────────────────────────────────────────────────────────────────────────
# Ledger
# ─────────────────────────────────────────────────────────────────────────────


class Transaction(Record):
    id: str
    user_id: str = Field(exclude=True)
    space: Space
    type: TransactionType
    amount: int = Field(gt=0)
    category: str
    description: str = ""
    occurred_at: UtcDatetime
    budget_id: Optional[str] = None          # weak reference, may dangle
    budget_category: Optional[Bucket] = None
    mini_budget_id: Optional[str] = None     # weak reference, may dangle
    source_imported_id: Optional[str] = None
    created_at: UtcDatetime
    updated_at: UtcDatetime


# ─────────────────────────────────────────────────────────────────────────────
# Bank link import
# ─────────────────────────────────────────────────────────────────────────────


class BankAccount(Record):
    id: str
    user_id: str = Field(exclude=True)
    space: Space
    bank_link_id: str
    name: str
    mask: str
    type: str
    currency: str
    balance: int = 0
    created_at: UtcDatetime


class BankLink(Record):
    id: str
    user_id: str = Field(exclude=True)
    space: Space
    provider: str
    bank_name: str
    created_at: UtcDatetime
    accounts: list[BankAccount] = Field(default_factory=list)


class ImportedTransaction(Record):
    id: str
    user_id: str = Field(exclude=True)
    space: Space
    bank_account_id: str
    bank_name: str
    bank_account_name: str
    amount: int = Field(gt=0)
    currency: str
    direction: Direction
    description: str
    merchant: str = ""
    occurred_at: UtcDatetime
    status: ImportStatus = "pending"
    reconciled_at: Optional[UtcDatetime] = None
    created_at: UtcDatetime
    updated_at: UtcDatetime
