"""
Unit tests for derived countdown state and next-occurrence arithmetic.

Every function takes an explicit reference instant, so all tests pin ``now``.
"""

from datetime import datetime
from datetime import timedelta

import pytest

from timefill import countdown
from timefill.models import EventStatus
from timefill.models import RepeatKind
from timefill.models import TimeBreakdown
from timefill.models import YearlyRepeatStyle
from tests.conftest import NOW
from tests.conftest import make_event


class TestScheduledState:
    def test_future_start_is_scheduled(self):
        event = make_event(created=NOW + timedelta(days=2), target=NOW + timedelta(days=9))
        assert countdown.is_scheduled(event, NOW) is True
        assert countdown.status(event, NOW) is EventStatus.SCHEDULED

    def test_started_event_is_not_scheduled(self):
        assert countdown.is_scheduled(make_event(), NOW) is False

    def test_start_instant_itself_is_not_scheduled(self):
        event = make_event(created=NOW)
        assert countdown.is_scheduled(event, NOW) is False

    def test_until_start_breakdown(self):
        event = make_event(
            created=NOW + timedelta(days=1, hours=2, minutes=3, seconds=4),
            target=NOW + timedelta(days=5),
        )
        assert countdown.until_start(event, NOW) == TimeBreakdown(1, 2, 3, 4)

    def test_starts_today_within_24_hours(self):
        event = make_event(created=NOW + timedelta(hours=5), target=NOW + timedelta(days=3))
        assert countdown.hours_until_start(event, NOW) == 5
        assert countdown.starts_today(event, NOW) is True

    def test_starts_today_false_beyond_24_hours(self):
        event = make_event(created=NOW + timedelta(hours=30), target=NOW + timedelta(days=3))
        assert countdown.starts_today(event, NOW) is False

    def test_starts_today_false_once_started(self):
        assert countdown.starts_today(make_event(), NOW) is False


class TestRemaining:
    def test_breakdown_of_positive_difference(self):
        event = make_event(target=NOW + timedelta(days=2, hours=3, minutes=4, seconds=5))
        assert countdown.remaining(event, NOW) == TimeBreakdown(2, 3, 4, 5)

    def test_fractional_seconds_are_floored(self):
        event = make_event(target=NOW + timedelta(seconds=59, microseconds=999_999))
        assert countdown.remaining(event, NOW) == TimeBreakdown(0, 0, 0, 59)

    def test_past_target_clamps_to_zero(self):
        event = make_event(target=NOW - timedelta(hours=1, minutes=30))
        assert countdown.remaining(event, NOW) == TimeBreakdown(0, 0, 0, 0)


class TestProgress:
    def test_halfway(self):
        event = make_event(created=NOW - timedelta(days=5), target=NOW + timedelta(days=5))
        assert countdown.progress(event, NOW) == pytest.approx(0.5)

    def test_scheduled_event_has_no_progress(self):
        event = make_event(created=NOW + timedelta(days=1), target=NOW + timedelta(days=2))
        assert countdown.progress(event, NOW) == 0.0

    def test_completed_event_is_full(self):
        event = make_event(created=NOW - timedelta(days=5), target=NOW - timedelta(days=1))
        assert countdown.progress(event, NOW) == 1.0

    @pytest.mark.parametrize("target_offset", [timedelta(0), -timedelta(hours=1)])
    def test_non_positive_duration_does_not_raise(self, target_offset):
        """A target at or before the start reads as complete instead of dividing by zero."""
        created = NOW - timedelta(hours=2)
        event = make_event(created=created, target=created + target_offset)
        assert countdown.progress(event, NOW) == 1.0

    def test_progress_always_within_bounds(self):
        offsets = [timedelta(days=d) for d in range(-20, 21, 3)]
        for created_offset in offsets:
            for target_offset in offsets:
                event = make_event(created=NOW + created_offset, target=NOW + target_offset)
                for now_offset in offsets:
                    value = countdown.progress(event, NOW + now_offset)
                    assert 0.0 <= value <= 1.0


class TestCompletionAndReset:
    def test_completed_at_target_instant(self):
        event = make_event(target=NOW)
        assert countdown.is_completed(event, NOW) is True
        assert countdown.is_completed(event, NOW - timedelta(seconds=1)) is False

    def test_reset_boundary_is_inclusive_at_120_seconds(self):
        event = make_event(target=NOW, repeat=RepeatKind.WEEKLY)
        assert countdown.should_reset_repeat(event, NOW + timedelta(seconds=119)) is False
        assert countdown.should_reset_repeat(event, NOW + timedelta(seconds=120)) is True

    def test_non_repeating_never_resets(self):
        event = make_event(target=NOW - timedelta(days=30))
        assert countdown.repeats(event) is False
        assert countdown.should_reset_repeat(event, NOW) is False

    def test_count_up_phase_status(self):
        event = make_event(target=NOW - timedelta(seconds=30), repeat=RepeatKind.DAILY)
        assert countdown.status(event, NOW) is EventStatus.COUNTING_UP
        assert countdown.status(event, NOW + timedelta(seconds=90)) is EventStatus.COMPLETED

    def test_non_repeating_completed_status(self):
        event = make_event(target=NOW - timedelta(seconds=30))
        assert countdown.status(event, NOW) is EventStatus.COMPLETED

    def test_active_status(self):
        assert countdown.status(make_event(), NOW) is EventStatus.ACTIVE


class TestCountUp:
    def test_before_completion(self):
        assert countdown.count_up(make_event(), NOW) == (0, 0)

    def test_elapsed_minutes_and_seconds(self):
        event = make_event(target=NOW - timedelta(seconds=75))
        assert countdown.count_up(event, NOW) == (1, 15)

    def test_capped_at_two_minutes(self):
        event = make_event(target=NOW - timedelta(minutes=10))
        assert countdown.count_up(event, NOW) == (2, 0)


class TestDayCounts:
    def test_total_days(self):
        event = make_event(created=NOW, target=NOW + timedelta(days=10, hours=5))
        assert countdown.total_days(event) == 10

    def test_total_days_at_least_one(self):
        event = make_event(created=NOW, target=NOW + timedelta(hours=3))
        assert countdown.total_days(event) == 1

    def test_days_since_start(self):
        event = make_event(created=NOW - timedelta(days=3, hours=1), target=NOW + timedelta(days=7))
        assert countdown.days_since_start(event, NOW) == 3

    def test_days_since_start_capped_at_total(self):
        event = make_event(created=NOW - timedelta(days=30), target=NOW - timedelta(days=20))
        assert countdown.days_since_start(event, NOW) == countdown.total_days(event) == 10

    def test_days_since_start_never_negative(self):
        event = make_event(created=NOW + timedelta(days=2), target=NOW + timedelta(days=5))
        assert countdown.days_since_start(event, NOW) == 0


class TestNextOccurrence:
    def test_no_repeat_has_no_next_occurrence(self):
        event = make_event()
        assert countdown.next_occurrence_date(event, event.target_date) is None

    def test_daily_every_three_days(self):
        target = datetime(2025, 1, 10, 9, 0)
        event = make_event(target=target, repeat=RepeatKind.DAILY, interval=3)
        assert countdown.next_occurrence_date(event, target) == datetime(2025, 1, 13, 9, 0)

    def test_weekly_keeps_weekday(self):
        target = datetime(2025, 3, 5, 18, 30)  # Wednesday
        event = make_event(target=target, repeat=RepeatKind.WEEKLY, interval=2)
        result = countdown.next_occurrence_date(event, target)
        assert result == datetime(2025, 3, 19, 18, 30)
        assert result.weekday() == target.weekday()

    def test_monthly_clamps_to_end_of_short_month(self):
        target = datetime(2025, 1, 31, 8, 0)
        event = make_event(target=target, repeat=RepeatKind.MONTHLY)
        assert countdown.next_occurrence_date(event, target) == datetime(2025, 2, 28, 8, 0)

    def test_monthly_interval_two(self):
        target = datetime(2025, 1, 31, 8, 0)
        event = make_event(target=target, repeat=RepeatKind.MONTHLY, interval=2)
        assert countdown.next_occurrence_date(event, target) == datetime(2025, 3, 31, 8, 0)

    def test_yearly_fixed_date(self):
        target = datetime(2025, 11, 2, 10, 15)
        event = make_event(target=target, repeat=RepeatKind.YEARLY)
        assert countdown.next_occurrence_date(event, target) == datetime(2026, 11, 2, 10, 15)

    def test_yearly_fixed_date_leap_day(self):
        target = datetime(2024, 2, 29, 12, 0)
        event = make_event(target=target, repeat=RepeatKind.YEARLY)
        assert countdown.next_occurrence_date(event, target) == datetime(2025, 2, 28, 12, 0)

    def test_yearly_relative_first_sunday_of_november(self):
        target = datetime(2025, 11, 2, 10, 15)  # first Sunday of November 2025
        event = make_event(
            target=target,
            repeat=RepeatKind.YEARLY,
            style=YearlyRepeatStyle.RELATIVE_WEEKDAY,
        )
        result = countdown.next_occurrence_date(event, target)
        assert result == datetime(2026, 11, 1, 10, 15)
        assert result.weekday() == 6

    def test_yearly_relative_second_sunday(self):
        target = datetime(2025, 11, 9)
        event = make_event(
            target=target, repeat=RepeatKind.YEARLY, style=YearlyRepeatStyle.RELATIVE_WEEKDAY
        )
        assert countdown.next_occurrence_date(event, target) == datetime(2026, 11, 8)

    def test_yearly_relative_interval_two(self):
        target = datetime(2025, 11, 2)
        event = make_event(
            target=target,
            repeat=RepeatKind.YEARLY,
            interval=2,
            style=YearlyRepeatStyle.RELATIVE_WEEKDAY,
        )
        # November 2027 starts on a Monday, so its first Sunday is the 7th.
        assert countdown.next_occurrence_date(event, target) == datetime(2027, 11, 7)

    def test_yearly_relative_missing_fifth_weekday_spills_over(self):
        """December 2025 has only four Sundays; the fifth lands in January."""
        target = datetime(2024, 12, 29)  # fifth Sunday of December 2024
        event = make_event(
            target=target, repeat=RepeatKind.YEARLY, style=YearlyRepeatStyle.RELATIVE_WEEKDAY
        )
        assert countdown.next_occurrence_date(event, target) == datetime(2026, 1, 4)

    def test_style_ignored_for_non_yearly(self):
        target = datetime(2025, 11, 2)
        event = make_event(
            target=target, repeat=RepeatKind.MONTHLY, style=YearlyRepeatStyle.RELATIVE_WEEKDAY
        )
        assert countdown.next_occurrence_date(event, target) == datetime(2025, 12, 2)


class TestDisplayHelpers:
    @pytest.mark.parametrize(
        ("repeat", "interval", "style", "expected"),
        [
            (RepeatKind.NONE, 1, YearlyRepeatStyle.FIXED_DATE, None),
            (RepeatKind.DAILY, 1, YearlyRepeatStyle.FIXED_DATE, "Repeats Daily"),
            (RepeatKind.DAILY, 3, YearlyRepeatStyle.FIXED_DATE, "Repeats Every 3 Days"),
            (RepeatKind.WEEKLY, 2, YearlyRepeatStyle.FIXED_DATE, "Repeats Every 2 Weeks"),
            (RepeatKind.MONTHLY, 1, YearlyRepeatStyle.FIXED_DATE, "Repeats Monthly"),
            (RepeatKind.YEARLY, 1, YearlyRepeatStyle.FIXED_DATE, "Repeats Yearly"),
            (
                RepeatKind.YEARLY,
                1,
                YearlyRepeatStyle.RELATIVE_WEEKDAY,
                "Repeats Yearly (Relative)",
            ),
            (
                RepeatKind.YEARLY,
                4,
                YearlyRepeatStyle.RELATIVE_WEEKDAY,
                "Repeats Every 4 Years (Relative)",
            ),
        ],
    )
    def test_repeat_display_text(self, repeat, interval, style, expected):
        event = make_event(repeat=repeat, interval=interval, style=style)
        assert countdown.repeat_display_text(event) == expected

    def test_completed_badge_non_repeating(self):
        event = make_event(target=NOW - timedelta(days=40))
        assert countdown.should_show_completed_badge(event, NOW) is True
        assert countdown.should_show_completed_badge(make_event(), NOW) is False

    def test_completed_badge_repeating_within_a_day(self):
        event = make_event(target=NOW - timedelta(hours=3), repeat=RepeatKind.WEEKLY)
        assert countdown.should_show_completed_badge(event, NOW) is True
        assert countdown.should_show_completed_badge(event, NOW + timedelta(hours=22)) is False
