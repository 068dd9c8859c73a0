from datetime import datetime, timezone

import pytest

from app.errors import NotFoundError, ValidationFailed
from app.schemas import MiniBudgetCreate, TransactionUpdate
from app.services import ledger
from app.services.budgets import create_mini_budget, delete_budget

USER = "user-1"


class TestCreateTransaction:
    def test_attaches_active_budget_and_classifies(self, make_budget, make_tx):
        budget = make_budget(start="2024-03-01")
        tx = make_tx(day="2024-03-10", category="Groceries")
        assert tx.budget_id == budget.id
        assert tx.budget_category == "Essential"

    def test_explicit_bucket_wins(self, make_budget, make_tx):
        make_budget(start="2024-03-01")
        tx = make_tx(category="Groceries", budget_category="Free Spending")
        assert tx.budget_category == "Free Spending"

    def test_explicit_null_budget_clears_context(self, make_budget, make_tx):
        make_budget(start="2024-03-01")
        tx = make_tx(budget_id=None)
        assert tx.budget_id is None
        assert tx.budget_category is None
        assert tx.mini_budget_id is None

    def test_bucket_without_budget_is_rejected(self, store, make_budget, make_tx):
        make_budget(start="2024-03-01")
        with pytest.raises(ValidationFailed):
            make_tx(budget_id=None, budget_category="Savings")
        assert store.find_transactions(USER, "personal") == []

    def test_no_budgets_means_no_context(self, make_tx):
        tx = make_tx()
        assert tx.budget_id is None
        assert tx.budget_category is None

    def test_explicit_budget_must_be_in_space(self, make_budget, make_tx):
        business = make_budget(space="business")
        with pytest.raises(NotFoundError):
            make_tx(space="personal", budget_id=business.id)

    def test_mini_budget_must_belong_to_budget(self, store, make_budget, make_tx):
        march = make_budget(start="2024-03-01")
        april = make_budget(start="2024-04-01")
        mini = create_mini_budget(store, USER, april.id, MiniBudgetCreate(name="Food", amount=100))
        with pytest.raises(NotFoundError):
            make_tx(day="2024-03-10", mini_budget_id=mini.id)
        ok = create_mini_budget(store, USER, march.id, MiniBudgetCreate(name="Food", amount=100))
        assert make_tx(day="2024-03-10", mini_budget_id=ok.id).mini_budget_id == ok.id

    def test_non_positive_amount_rejected_by_schema(self, make_tx):
        with pytest.raises(ValueError):
            make_tx(amount=0)


class TestListAndGet:
    def test_newest_first_with_total(self, store, make_tx):
        for day in ("2024-03-01", "2024-03-03", "2024-03-02"):
            make_tx(day=day)
        total, page = ledger.list_transactions(store, USER, "personal", limit=2)
        assert total == 3
        assert [t.occurred_at.day for t in page] == [3, 2]

    def test_filters(self, store, make_tx):
        make_tx(day="2024-03-01", category="Rent", amount=50000)
        make_tx(day="2024-03-02", category="Salary", type="income", amount=90000)
        total, page = ledger.list_transactions(store, USER, "personal", type="income")
        assert total == 1
        assert page[0].category == "Salary"

    def test_inverted_range_rejected(self, store):
        with pytest.raises(ValidationFailed):
            ledger.list_transactions(
                store, USER, "personal",
                start=datetime(2024, 3, 2, tzinfo=timezone.utc),
                end=datetime(2024, 3, 1, tzinfo=timezone.utc),
            )

    def test_get_other_space_is_not_found(self, store, make_tx):
        tx = make_tx(space="business")
        with pytest.raises(NotFoundError):
            ledger.get_transaction(store, USER, tx.id, space="personal")


class TestUpdateAndDelete:
    def test_partial_update(self, store, make_tx):
        tx = make_tx(description="")
        updated = ledger.update_transaction(store, USER, tx.id, TransactionUpdate(description="weekly shop"))
        assert updated.description == "weekly shop"
        assert updated.amount == tx.amount

    def test_clearing_budget_clears_bucket(self, store, make_budget, make_tx):
        make_budget()
        tx = make_tx()
        updated = ledger.update_transaction(store, USER, tx.id, TransactionUpdate.model_validate({"budget_id": None}))
        assert updated.budget_id is None
        assert updated.budget_category is None

    def test_null_amount_rejected(self, store, make_tx):
        tx = make_tx()
        with pytest.raises(ValidationFailed):
            ledger.update_transaction(store, USER, tx.id, TransactionUpdate.model_validate({"amount": None}))

    def test_mini_budget_from_another_budget_is_not_found(self, store, make_budget, make_tx):
        make_budget(start="2024-03-01")
        april = make_budget(start="2024-04-01")
        foreign = create_mini_budget(store, USER, april.id, MiniBudgetCreate(name="Food", amount=100))
        tx = make_tx(day="2024-03-10")
        for mini_id in (foreign.id, "does-not-exist"):
            with pytest.raises(NotFoundError):
                ledger.update_transaction(store, USER, tx.id, TransactionUpdate(mini_budget_id=mini_id))
        assert store.get_transaction(USER, tx.id).mini_budget_id is None

    def test_mini_budget_of_own_budget_is_accepted(self, store, make_budget, make_tx):
        march = make_budget(start="2024-03-01")
        mini = create_mini_budget(store, USER, march.id, MiniBudgetCreate(name="Food", amount=100))
        tx = make_tx(day="2024-03-10")
        updated = ledger.update_transaction(store, USER, tx.id, TransactionUpdate(mini_budget_id=mini.id))
        assert updated.mini_budget_id == mini.id

    def test_moving_budget_drops_old_mini_budget(self, store, make_budget, make_tx):
        march = make_budget(start="2024-03-01")
        april = make_budget(start="2024-04-01")
        mini = create_mini_budget(store, USER, march.id, MiniBudgetCreate(name="Food", amount=100))
        tx = make_tx(day="2024-03-10", mini_budget_id=mini.id)
        updated = ledger.update_transaction(store, USER, tx.id, TransactionUpdate(budget_id=april.id))
        assert updated.budget_id == april.id
        assert updated.mini_budget_id is None

    def test_moving_budget_checks_mini_budget_against_new_budget(self, store, make_budget, make_tx):
        march = make_budget(start="2024-03-01")
        april = make_budget(start="2024-04-01")
        march_mini = create_mini_budget(store, USER, march.id, MiniBudgetCreate(name="Food", amount=100))
        april_mini = create_mini_budget(store, USER, april.id, MiniBudgetCreate(name="Food", amount=100))
        tx = make_tx(day="2024-03-10")
        with pytest.raises(NotFoundError):
            ledger.update_transaction(
                store, USER, tx.id, TransactionUpdate(budget_id=april.id, mini_budget_id=march_mini.id)
            )
        updated = ledger.update_transaction(
            store, USER, tx.id, TransactionUpdate(budget_id=april.id, mini_budget_id=april_mini.id)
        )
        assert updated.mini_budget_id == april_mini.id

    def test_null_budget_with_explicit_bucket_is_rejected(self, store, make_budget, make_tx):
        make_budget()
        tx = make_tx()
        with pytest.raises(ValidationFailed):
            ledger.update_transaction(
                store, USER, tx.id, TransactionUpdate.model_validate({"budget_id": None, "budget_category": "Savings"})
            )

    def test_delete(self, store, make_tx):
        tx = make_tx()
        ledger.delete_transaction(store, USER, tx.id)
        with pytest.raises(NotFoundError):
            ledger.get_transaction(store, USER, tx.id)


class TestBudgetNames:
    def test_dangling_reference_resolves_to_nothing(self, store, make_budget, make_tx):
        budget = make_budget(name="March")
        tx = make_tx()
        assert ledger.budget_names(store, USER, [tx]) == {budget.id: "March"}
        delete_budget(store, USER, budget.id)
        assert ledger.budget_names(store, USER, [store.get_transaction(USER, tx.id)]) == {}
