"""
Tests for the test window state machine and the rank-reveal gate.
"""
from datetime import date, datetime, time, timedelta, timezone
from types import SimpleNamespace

from dailytest.core.window import (
    WindowState,
    classify_window,
    is_late_submission,
    is_rank_revealed,
    latest_revealed_date,
    rank_reveal_at,
    window_state_of,
)

START = datetime(2025, 3, 14, 3, 30, tzinfo=timezone.utc)
END = datetime(2025, 3, 14, 12, 30, tzinfo=timezone.utc)
ONE_MICROSECOND = timedelta(microseconds=1)


class TestClassifyWindow:
    """Tests for classify_window."""

    def test_before_start_is_not_started(self):
        assert (
            classify_window(START, END, START - ONE_MICROSECOND)
            == WindowState.NOT_STARTED
        )

    def test_start_boundary_is_active(self):
        assert classify_window(START, END, START) == WindowState.ACTIVE

    def test_inside_window_is_active(self):
        assert classify_window(START, END, START + timedelta(hours=2)) == WindowState.ACTIVE

    def test_end_boundary_is_active(self):
        assert classify_window(START, END, END) == WindowState.ACTIVE

    def test_after_end_is_archived(self):
        assert classify_window(START, END, END + ONE_MICROSECOND) == WindowState.ARCHIVED

    def test_archived_serializes_as_ended(self):
        assert WindowState.ARCHIVED.value == "ended"

    def test_naive_values_treated_as_utc(self):
        naive_start = START.replace(tzinfo=None)
        naive_end = END.replace(tzinfo=None)

        assert classify_window(naive_start, naive_end, END) == WindowState.ACTIVE

    def test_other_offsets_compare_as_instants(self):
        ist = timezone(timedelta(hours=5, minutes=30))
        # 09:00 IST == 03:30 UTC
        now = datetime(2025, 3, 14, 9, 0, tzinfo=ist)

        assert classify_window(START, END, now) == WindowState.ACTIVE

    def test_window_state_of_model(self):
        test = SimpleNamespace(window_start=START, window_end=END)

        assert window_state_of(test, END + timedelta(hours=1)) == WindowState.ARCHIVED


class TestIsLateSubmission:
    """Submission timeliness is decided against window_end only."""

    def test_at_window_end_is_on_time(self):
        assert is_late_submission(END, END) is False

    def test_one_microsecond_after_end_is_late(self):
        assert is_late_submission(END, END + ONE_MICROSECOND) is True

    def test_before_end_is_on_time(self):
        assert is_late_submission(END, START) is False


class TestRankReveal:
    """Tests for the daily rank-reveal gate (default 20:00 UTC+05:30)."""

    def test_reveal_instant_in_utc(self):
        reveal = rank_reveal_at(date(2025, 3, 14))

        assert reveal == datetime(2025, 3, 14, 14, 30, tzinfo=timezone.utc)

    def test_custom_reveal_time(self):
        reveal = rank_reveal_at(date(2025, 3, 14), time(18, 0))

        assert reveal == datetime(2025, 3, 14, 12, 30, tzinfo=timezone.utc)

    def test_closed_before_cutoff(self):
        now = datetime(2025, 3, 14, 14, 29, 59, tzinfo=timezone.utc)

        assert is_rank_revealed(date(2025, 3, 14), now) is False

    def test_open_at_cutoff(self):
        now = datetime(2025, 3, 14, 14, 30, tzinfo=timezone.utc)

        assert is_rank_revealed(date(2025, 3, 14), now) is True

    def test_open_on_later_days(self):
        now = datetime(2025, 3, 20, 0, 0, tzinfo=timezone.utc)

        assert is_rank_revealed(date(2025, 3, 14), now) is True


class TestLatestRevealedDate:
    """The newest scheduled date whose ranks are public."""

    # 20:00 at UTC+05:30 is 14:30 UTC
    REVEAL = datetime(2025, 3, 14, 14, 30, tzinfo=timezone.utc)

    def test_before_cutoff_is_previous_day(self):
        now = self.REVEAL - ONE_MICROSECOND

        assert latest_revealed_date(now) == date(2025, 3, 13)

    def test_at_cutoff_is_today(self):
        assert latest_revealed_date(self.REVEAL) == date(2025, 3, 14)

    def test_uses_platform_date_not_utc_date(self):
        # 23:00 UTC on the 14th is already 04:30 on the 15th platform time
        now = datetime(2025, 3, 14, 23, 0, tzinfo=timezone.utc)

        assert latest_revealed_date(now) == date(2025, 3, 14)

    def test_custom_reveal_time(self):
        now = datetime(2025, 3, 14, 4, 0, tzinfo=timezone.utc)  # 09:30 local

        assert latest_revealed_date(now, time(9, 0)) == date(2025, 3, 14)
        assert latest_revealed_date(now, time(10, 0)) == date(2025, 3, 13)
