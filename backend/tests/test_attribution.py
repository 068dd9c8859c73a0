from datetime import date, datetime, timezone

from app.services.attribution import pick_active_budget, select_active_budget

USER = "user-1"


def _at(day, hour=12):
    d = date.fromisoformat(day)
    return datetime(d.year, d.month, d.day, hour, tzinfo=timezone.utc)


class TestPickActiveBudget:
    def test_no_budgets_is_none(self, store):
        assert pick_active_budget(store, USER, "personal", _at("2024-03-10")) is None

    def test_instant_inside_budget(self, store, make_budget):
        march = make_budget(start="2024-03-01")
        make_budget(start="2024-04-01")
        assert pick_active_budget(store, USER, "personal", _at("2024-03-10")).id == march.id

    def test_instant_on_derived_last_day(self, store, make_budget):
        march = make_budget(start="2024-03-01")
        make_budget(start="2024-04-01")
        assert pick_active_budget(store, USER, "personal", _at("2024-03-31", hour=23)).id == march.id

    def test_range_picks_latest_start_among_matches(self, store, make_budget):
        make_budget(start="2024-03-01", period="weekly")
        later = make_budget(start="2024-03-08", period="weekly")
        window = (_at("2024-03-01", 0), _at("2024-03-14", 23))
        assert pick_active_budget(store, USER, "personal", window).id == later.id

    def test_falls_back_to_most_recent_start_when_nothing_matches(self, store, make_budget):
        # Dashboards still get a budget context when the window is outside every budget.
        make_budget(start="2024-01-01")
        feb = make_budget(start="2024-02-01")
        assert pick_active_budget(store, USER, "personal", _at("2024-06-15")).id == feb.id

    def test_fallback_also_applies_before_first_budget(self, store, make_budget):
        march = make_budget(start="2024-03-01")
        assert pick_active_budget(store, USER, "personal", _at("2023-12-25")).id == march.id

    def test_other_space_is_invisible(self, store, make_budget):
        make_budget(start="2024-03-01", space="business")
        assert pick_active_budget(store, USER, "personal", _at("2024-03-10")) is None

    def test_other_user_is_invisible(self, store, make_budget):
        make_budget(start="2024-03-01", user_id="someone-else")
        assert pick_active_budget(store, USER, "personal", _at("2024-03-10")) is None

    def test_repeated_calls_agree(self, store, make_budget):
        make_budget(start="2024-03-01")
        make_budget(start="2024-04-01")
        results = {pick_active_budget(store, USER, "personal", _at("2024-04-02")).id for _ in range(5)}
        assert len(results) == 1


class TestSelectActiveBudget:
    def test_empty_iterable(self):
        assert select_active_budget([], _at("2024-03-10")) is None

    def test_accepts_date_pairs(self, store, make_budget):
        march = make_budget(start="2024-03-01")
        budgets = store.list_budgets(USER, "personal")
        assert select_active_budget(budgets, (date(2024, 3, 5), date(2024, 3, 6))).id == march.id
