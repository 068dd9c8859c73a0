from datetime import date, datetime
from typing import Annotated, Optional

from pydantic import BaseModel, Field

from .domain import (
    BankLink,
    Bucket,
    BucketAllocation,
    Budget,
    ImportedTransaction,
    MiniBudget,
    Period,
    Space,
    Transaction,
    TransactionType,
)

Money = Annotated[int, Field(ge=0)]
PositiveMoney = Annotated[int, Field(gt=0)]


# ─────────────────────────────────────────────────────────────────────────────
# Health / reference data
# ─────────────────────────────────────────────────────────────────────────────


class HealthResponse(BaseModel):
    status: str
    version: str


class BucketInfo(BaseModel):
    bucket: Bucket
    label: str


class PeriodResolveRequest(BaseModel):
    period: Period
    start_date: date
    end_date: Optional[date] = None


class PeriodResolveResponse(BaseModel):
    start_date: date
    effective_end: date


# ─────────────────────────────────────────────────────────────────────────────
# Budgets
# ─────────────────────────────────────────────────────────────────────────────


class BudgetCreate(BaseModel):
    model_config = {"extra": "forbid"}

    space: Space = "personal"
    name: str = Field(min_length=1, max_length=80)
    total_budget: Money
    period: Period
    start_date: date
    end_date: Optional[date] = None
    categories: dict[Bucket, BucketAllocation] = Field(default_factory=dict)


class BudgetUpdate(BaseModel):
    """Partial update; only fields present in the body are applied.

    ``end_date: null`` clears an explicit end so the period decides it again.
    """

    model_config = {"extra": "forbid"}

    name: Optional[str] = Field(default=None, min_length=1, max_length=80)
    total_budget: Optional[Money] = None
    period: Optional[Period] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    categories: Optional[dict[Bucket, BucketAllocation]] = None


class BudgetSchema(Budget):
    effective_end: date


class BudgetListResponse(BaseModel):
    items: list[BudgetSchema]


class ActiveBudgetResponse(BaseModel):
    budget: Optional[BudgetSchema] = None


class BucketProgress(BaseModel):
    bucket: Bucket
    label: str
    budgeted: int
    spent: int
    remaining: int


class BudgetProgressResponse(BaseModel):
    budget: BudgetSchema
    spent: int
    remaining: int
    buckets: list[BucketProgress]


class MiniBudgetCreate(BaseModel):
    model_config = {"extra": "forbid"}

    name: str = Field(min_length=1, max_length=80)
    amount: Money
    category: Optional[Bucket] = None


class MiniBudgetListResponse(BaseModel):
    items: list[MiniBudget]


# ─────────────────────────────────────────────────────────────────────────────
# Transactions
# ─────────────────────────────────────────────────────────────────────────────


class TransactionCreate(BaseModel):
    """Manual ledger entry.

    Leave ``budget_id`` out to let the engine attach the active budget; send
    ``budget_id: null`` to record the transaction without a budget.
    """

    model_config = {"extra": "forbid"}

    space: Space = "personal"
    type: TransactionType
    amount: PositiveMoney
    category: str = Field(min_length=1, max_length=60)
    description: str = Field(default="", max_length=120)
    occurred_at: datetime
    budget_id: Optional[str] = Field(default=None, min_length=1, max_length=120)
    budget_category: Optional[Bucket] = None
    mini_budget_id: Optional[str] = Field(default=None, min_length=1, max_length=120)


class TransactionUpdate(BaseModel):
    model_config = {"extra": "forbid"}

    type: Optional[TransactionType] = None
    amount: Optional[PositiveMoney] = None
    category: Optional[str] = Field(default=None, min_length=1, max_length=60)
    description: Optional[str] = Field(default=None, max_length=120)
    occurred_at: Optional[datetime] = None
    budget_id: Optional[str] = Field(default=None, min_length=1, max_length=120)
    budget_category: Optional[Bucket] = None
    mini_budget_id: Optional[str] = Field(default=None, min_length=1, max_length=120)


class TransactionSchema(Transaction):
    budget_name: Optional[str] = None


class TransactionListResponse(BaseModel):
    total: int
    items: list[TransactionSchema]


# ─────────────────────────────────────────────────────────────────────────────
# Bank links / imported transactions
# ─────────────────────────────────────────────────────────────────────────────


class BankLinkCreate(BaseModel):
    space: Space = "personal"
    provider: str = Field(min_length=1, max_length=80)
    bank_name: Optional[str] = Field(default=None, min_length=1, max_length=120)


class BankLinkListResponse(BaseModel):
    items: list[BankLink]


class BankLinkCreateResponse(BaseModel):
    link: BankLink
    imported: list[ImportedTransaction]


class ImportedTransactionListResponse(BaseModel):
    items: list[ImportedTransaction]


class ReconcileRequest(BaseModel):
    model_config = {"extra": "forbid"}

    type: Optional[TransactionType] = None
    category: Optional[str] = Field(default=None, min_length=1, max_length=60)
    description: Optional[str] = Field(default=None, max_length=120)
    budget_category: Optional[Bucket] = None
    mini_budget_id: Optional[str] = Field(default=None, min_length=1, max_length=120)


class ReconcileResponse(BaseModel):
    imported_transaction: ImportedTransaction
    transaction: Transaction


class IgnoreResponse(BaseModel):
    imported_transaction: ImportedTransaction


# ─────────────────────────────────────────────────────────────────────────────
# Analytics
# ─────────────────────────────────────────────────────────────────────────────


class DailySpending(BaseModel):
    day: date
    expenses: int
    spending_by_category: dict[str, int]


class AnalyticsSummary(BaseModel):
    active_budget_id: Optional[str] = None
    total_balance: int
    income: int
    expenses: int
    remaining_budget: int
    spending_by_category: dict[str, int]
    spending_by_bucket: dict[str, int]
    spending_by_mini_budget: dict[str, int]
    daily_spending_by_category: list[DailySpending]
    unattributed_expenses: int
