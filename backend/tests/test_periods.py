from datetime import date, datetime, timedelta, timezone

import pytest

from app.errors import ValidationFailed
from app.services.periods import (
    DateRange,
    anchor_noon,
    iter_days,
    parse_instant,
    parse_iso_date,
    ranges_overlap,
    resolve_period,
    to_date_range,
)


class TestResolvePeriod:
    def test_monthly_from_first(self):
        assert resolve_period("monthly", date(2024, 3, 1)) == date(2024, 3, 31)

    def test_monthly_from_mid_month_still_ends_at_month_end(self):
        assert resolve_period("monthly", date(2024, 3, 17)) == date(2024, 3, 31)

    def test_monthly_leap_february(self):
        assert resolve_period("monthly", date(2024, 2, 10)) == date(2024, 2, 29)

    def test_monthly_non_leap_february(self):
        assert resolve_period("monthly", date(2023, 2, 1)) == date(2023, 2, 28)

    def test_monthly_december(self):
        assert resolve_period("monthly", date(2024, 12, 5)) == date(2024, 12, 31)

    def test_weekly_is_start_plus_six(self):
        assert resolve_period("weekly", date(2024, 3, 1)) == date(2024, 3, 7)

    def test_weekly_crosses_month(self):
        assert resolve_period("weekly", date(2024, 3, 28)) == date(2024, 4, 3)

    def test_weekly_every_day_of_a_year(self):
        start = date(2024, 1, 1)
        for offset in range(366):
            d = start + timedelta(days=offset)
            assert resolve_period("weekly", d) == d + timedelta(days=6)

    def test_explicit_end_wins(self):
        assert resolve_period("monthly", date(2024, 3, 1), date(2024, 3, 15)) == date(2024, 3, 15)

    def test_explicit_end_returned_even_before_start(self):
        # Self-consistency is the overlap validator's job.
        assert resolve_period("weekly", date(2024, 3, 10), date(2024, 3, 1)) == date(2024, 3, 1)

    def test_unknown_period_raises(self):
        with pytest.raises(ValidationFailed):
            resolve_period("yearly", date(2024, 3, 1))


class TestParsing:
    def test_iso_date(self):
        assert parse_iso_date("2024-03-01") == date(2024, 3, 1)

    @pytest.mark.parametrize("raw", ["2024-3-1", "03/01/2024", "2024-02-30", "", "2024-03-01T00:00"])
    def test_bad_dates_raise(self, raw):
        with pytest.raises(ValidationFailed):
            parse_iso_date(raw)

    def test_date_only_start_is_utc_midnight(self):
        assert parse_instant("2024-03-01") == datetime(2024, 3, 1, tzinfo=timezone.utc)

    def test_date_only_end_is_last_microsecond(self):
        assert parse_instant("2024-03-01", end_of_day=True) == datetime(
            2024, 3, 1, 23, 59, 59, 999999, tzinfo=timezone.utc
        )

    def test_zulu_instant(self):
        assert parse_instant("2024-03-01T10:30:00Z") == datetime(2024, 3, 1, 10, 30, tzinfo=timezone.utc)

    def test_offset_instant_converted_to_utc(self):
        assert parse_instant("2024-03-01T01:00:00+02:00") == datetime(2024, 2, 29, 23, 0, tzinfo=timezone.utc)

    def test_naive_instant_taken_as_utc(self):
        assert parse_instant("2024-03-01T08:00:00").tzinfo == timezone.utc

    def test_garbage_instant_raises(self):
        with pytest.raises(ValidationFailed):
            parse_instant("yesterday")

    def test_noon_anchor(self):
        assert anchor_noon(date(2024, 3, 1)) == datetime(2024, 3, 1, 12, tzinfo=timezone.utc)


class TestRanges:
    def test_overlap_is_symmetric(self):
        ranges = [
            DateRange(date(2024, 3, 1), date(2024, 3, 31)),
            DateRange(date(2024, 3, 31), date(2024, 4, 6)),
            DateRange(date(2024, 4, 1), date(2024, 4, 30)),
            DateRange(date(2024, 2, 1), date(2024, 5, 1)),
        ]
        for a in ranges:
            for b in ranges:
                assert ranges_overlap(a, b) == ranges_overlap(b, a)

    def test_shared_endpoint_overlaps(self):
        assert ranges_overlap(
            DateRange(date(2024, 3, 1), date(2024, 3, 31)),
            DateRange(date(2024, 3, 31), date(2024, 4, 30)),
        )

    def test_adjacent_ranges_do_not_overlap(self):
        assert not ranges_overlap(
            DateRange(date(2024, 3, 1), date(2024, 3, 31)),
            DateRange(date(2024, 4, 1), date(2024, 4, 30)),
        )

    def test_instant_becomes_single_utc_day(self):
        late = datetime(2024, 3, 31, 23, 30, tzinfo=timezone(timedelta(hours=-5)))
        assert to_date_range(late) == DateRange(date(2024, 4, 1), date(2024, 4, 1))

    def test_pair_of_instants(self):
        r = to_date_range((datetime(2024, 3, 1, tzinfo=timezone.utc), datetime(2024, 3, 7, 23, tzinfo=timezone.utc)))
        assert r == DateRange(date(2024, 3, 1), date(2024, 3, 7))

    def test_iter_days_inclusive(self):
        assert list(iter_days(date(2024, 2, 28), date(2024, 3, 1))) == [
            date(2024, 2, 28),
            date(2024, 2, 29),
            date(2024, 3, 1),
        ]
