from datetime import date, datetime, timezone

import pytest

from app.domain import ImportedTransaction, new_id
from app.errors import ConflictError, NotFoundError
from app.schemas import BankLinkCreate, BudgetUpdate, MiniBudgetCreate, ReconcileRequest
from app.services import reconciler
from app.services.bank_links import create_bank_link, delete_bank_link
from app.services.budgets import create_mini_budget, get_budget, update_budget

USER = "user-1"
_WHEN = datetime(2024, 3, 10, 9, 30, tzinfo=timezone.utc)


@pytest.fixture
def make_imported(store):
    def _make(amount=4500, direction="debit", description="Groceries at Local Mart", merchant="Local Mart",
              space="personal", occurred_at=_WHEN):
        item = ImportedTransaction(
            id=new_id(),
            user_id=USER,
            space=space,
            bank_account_id="acct-1",
            bank_name="Demo Bank 1",
            bank_account_name="Main account",
            amount=amount,
            currency="NGN",
            direction=direction,
            description=description,
            merchant=merchant,
            occurred_at=occurred_at,
            created_at=occurred_at,
            updated_at=occurred_at,
        )
        with store.atomic():
            store.add_imported([item])
        return item

    return _make


class TestReconcile:
    def test_debit_defaults_to_general_spending_expense(self, store, make_imported):
        imported = make_imported(amount=4500, direction="debit")
        out, tx = reconciler.reconcile(store, USER, imported.id)
        assert tx.type == "expense"
        assert tx.category == "General spending"
        assert tx.amount == 4500
        assert tx.occurred_at == imported.occurred_at
        assert tx.source_imported_id == imported.id
        assert out.status == "reconciled"
        assert out.reconciled_at is not None

    def test_credit_defaults_to_income(self, store, make_imported):
        imported = make_imported(amount=20000, direction="credit", description="Salary top-up", merchant="Employer Ltd")
        _, tx = reconciler.reconcile(store, USER, imported.id)
        assert tx.type == "income"
        assert tx.category == "Income"

    def test_description_is_prefixed_with_merchant(self, store, make_imported):
        imported = make_imported(description="Groceries at Local Mart", merchant="Local Mart")
        _, tx = reconciler.reconcile(store, USER, imported.id)
        assert tx.description == "Local Mart: Groceries at Local Mart"

    def test_description_without_merchant(self, store, make_imported):
        imported = make_imported(description="Card payment", merchant="")
        _, tx = reconciler.reconcile(store, USER, imported.id)
        assert tx.description == "Card payment"

    def test_overrides(self, store, make_budget, make_imported):
        make_budget(start="2024-03-01")
        imported = make_imported()
        payload = ReconcileRequest(category="Eating out", description="Lunch", budget_category="Savings")
        _, tx = reconciler.reconcile(store, USER, imported.id, payload)
        assert tx.category == "Eating out"
        assert tx.description == "Lunch"
        assert tx.budget_category == "Savings"

    def test_attaches_active_budget_and_classifies(self, store, make_budget, make_imported):
        march = make_budget(start="2024-03-01")
        make_budget(start="2024-04-01")
        imported = make_imported()
        _, tx = reconciler.reconcile(store, USER, imported.id, ReconcileRequest(category="Groceries"))
        assert tx.budget_id == march.id
        assert tx.budget_category == "Essential"

    def test_no_budgets_leaves_transaction_unattributed(self, store, make_imported):
        imported = make_imported()
        _, tx = reconciler.reconcile(store, USER, imported.id, ReconcileRequest(budget_category="Savings"))
        assert tx.budget_id is None
        assert tx.budget_category is None

    def test_mini_budget_override(self, store, make_budget, make_imported):
        budget = make_budget(start="2024-03-01")
        mini = create_mini_budget(store, USER, budget.id, MiniBudgetCreate(name="Food", amount=10000))
        _, tx = reconciler.reconcile(store, USER, make_imported().id, ReconcileRequest(mini_budget_id=mini.id))
        assert tx.mini_budget_id == mini.id

    def test_reconciled_income_grows_budget(self, store, make_budget, make_imported):
        budget = make_budget(start="2024-03-01", total=100000)
        imported = make_imported(amount=20000, direction="credit")
        reconciler.reconcile(store, USER, imported.id, ReconcileRequest(budget_category="Savings"))
        grown = get_budget(store, USER, budget.id)
        assert grown.total_budget == 120000
        assert grown.categories["Savings"].budgeted == 20000

    def test_budget_edit_during_reconcile_survives_income(self, store, make_budget, make_imported, monkeypatch):
        budget = make_budget(start="2024-03-01", end="2024-03-20", total=100000)
        imported = make_imported(amount=20000, direction="credit")
        resolve = reconciler.resolve_budget_context

        def resolve_then_edit(*args, **kwargs):
            ctx = resolve(*args, **kwargs)
            update_budget(store, USER, budget.id, BudgetUpdate(end_date=date(2024, 3, 25)))
            return ctx

        monkeypatch.setattr(reconciler, "resolve_budget_context", resolve_then_edit)
        reconciler.reconcile(store, USER, imported.id)
        stored = get_budget(store, USER, budget.id)
        assert stored.end_date == date(2024, 3, 25)
        assert stored.total_budget == 120000

    def test_second_reconcile_conflicts_and_creates_nothing(self, store, make_imported):
        imported = make_imported()
        reconciler.reconcile(store, USER, imported.id)
        with pytest.raises(ConflictError):
            reconciler.reconcile(store, USER, imported.id)
        assert len(store.find_transactions(USER, "personal")) == 1

    def test_lost_transition_creates_nothing(self, store, make_imported):
        imported = make_imported()
        # Another request wins the transition between our read and our write.
        original = store.get_imported

        def stale_read(user_id, imported_id):
            item = original(user_id, imported_id)
            return item.model_copy(update={"status": "pending"}) if item else None

        store.transition_imported(USER, imported.id, "ignored", _WHEN)
        store.get_imported = stale_read
        with pytest.raises(ConflictError):
            reconciler.reconcile(store, USER, imported.id)
        assert store.find_transactions(USER, "personal") == []

    def test_missing_is_not_found(self, store):
        with pytest.raises(NotFoundError):
            reconciler.reconcile(store, USER, "missing")

    def test_wrong_space_is_not_found(self, store, make_imported):
        imported = make_imported(space="business")
        with pytest.raises(NotFoundError):
            reconciler.reconcile(store, USER, imported.id, space="personal")

    def test_other_user_is_not_found(self, store, make_imported):
        imported = make_imported()
        with pytest.raises(NotFoundError):
            reconciler.reconcile(store, "intruder", imported.id)


class TestIgnore:
    def test_ignore_creates_no_transaction(self, store, make_imported):
        imported = make_imported()
        out = reconciler.ignore(store, USER, imported.id)
        assert out.status == "ignored"
        assert out.reconciled_at is None
        assert store.find_transactions(USER, "personal") == []

    def test_ignored_is_terminal(self, store, make_imported):
        imported = make_imported()
        reconciler.ignore(store, USER, imported.id)
        with pytest.raises(ConflictError):
            reconciler.reconcile(store, USER, imported.id)
        with pytest.raises(ConflictError):
            reconciler.ignore(store, USER, imported.id)

    def test_reconciled_cannot_be_ignored(self, store, make_imported):
        imported = make_imported()
        reconciler.reconcile(store, USER, imported.id)
        with pytest.raises(ConflictError):
            reconciler.ignore(store, USER, imported.id)


class TestListImported:
    def test_filters_by_status(self, store, make_imported):
        a = make_imported()
        b = make_imported()
        reconciler.ignore(store, USER, a.id)
        assert [i.id for i in reconciler.list_imported(store, USER, "personal")] == [b.id]
        assert [i.id for i in reconciler.list_imported(store, USER, "personal", "ignored")] == [a.id]


class TestBankLinks:
    def test_link_seeds_three_pending_imports(self, store):
        link, imported = create_bank_link(store, USER, BankLinkCreate(provider="mono"))
        assert link.bank_name == "Demo Bank 1"
        assert [a.name for a in link.accounts] == ["Main account", "Savings pocket"]
        assert sorted((i.amount, i.direction) for i in imported) == [(1300, "debit"), (4500, "debit"), (20000, "credit")]
        assert len(reconciler.list_imported(store, USER, "personal")) == 3

    def test_second_link_is_numbered(self, store):
        create_bank_link(store, USER, BankLinkCreate(provider="mono"))
        link, _ = create_bank_link(store, USER, BankLinkCreate(provider="mono"))
        assert link.bank_name == "Demo Bank 2"

    def test_delete_drops_staged_imports(self, store):
        link, _ = create_bank_link(store, USER, BankLinkCreate(provider="mono", bank_name="My Bank"))
        delete_bank_link(store, USER, link.id)
        assert store.list_bank_links(USER, "personal") == []
        assert reconciler.list_imported(store, USER, "personal") == []

    def test_delete_missing_is_not_found(self, store):
        with pytest.raises(NotFoundError):
            delete_bank_link(store, USER, "missing")
