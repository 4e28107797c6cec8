from datetime import date, datetime, timezone

import pytest

from conftest import TZ
from app.models.steps import AuthorizationState, TrackerSnapshot, WeeklyStepCounts, DailyStepCount
from app.services.chart_service import (
    ACHIEVED_MESSAGE, daily_chart, fill_fraction, goal_achieved, main_view, weekly_chart,
)
from app.utils.date_utils import format_day_label, start_of_day, start_of_week

WEEK_START = datetime(2026, 10, 18, tzinfo=TZ)


class TestFillFraction:
    @pytest.mark.parametrize("goal", [1000, 10000, 50000])
    @pytest.mark.parametrize("count", [0, 999, 1000, 12500, 60000])
    def test_clamped_ratio_and_achieved(self, goal, count):
        assert fill_fraction(count, goal) == min(count / goal, 1.0)
        assert goal_achieved(count, goal) is (count >= goal)

    def test_zero_goal_does_not_divide(self):
        assert fill_fraction(500, 0) == 0.0
        assert goal_achieved(500, 0) is False

    def test_goal_exceeded(self):
        chart = daily_chart(12500, 10000)
        assert chart.fill_fraction == 1.0
        assert chart.achieved is True
        assert chart.message == ACHIEVED_MESSAGE
        assert chart.goal_label == "目標: 10000歩"

    def test_not_achieved_has_no_message(self):
        chart = daily_chart(2500, 10000)
        assert chart.fill_fraction == 0.25
        assert chart.message is None


class TestWeeklyChart:
    def test_seven_panes_with_labels(self):
        weekly = WeeklyStepCounts.filled(WEEK_START, {date(2026, 10, 19): 11000})
        chart = weekly_chart(weekly, 10000, WEEK_START)

        assert len(chart.panes) == 7
        assert chart.panes[0].label == "10/18 (日)"
        assert chart.panes[1].label == "10/19 (月)"
        assert chart.panes[1].chart.achieved is True
        assert [p.chart.steps for p in chart.panes] == [0, 11000, 0, 0, 0, 0, 0]

    def test_missing_weekly_renders_zeros(self):
        chart = weekly_chart(None, 10000, WEEK_START)
        assert [p.chart.steps for p in chart.panes] == [0] * 7


class TestModels:
    def test_weekly_requires_seven_days(self):
        with pytest.raises(ValueError):
            WeeklyStepCounts(days=[DailyStepCount(date=WEEK_START, count=1)])

    def test_negative_counts_rejected(self):
        with pytest.raises(ValueError):
            DailyStepCount(date=WEEK_START, count=-1)

    def test_filled_clamps_negative_to_zero(self):
        weekly = WeeklyStepCounts.filled(WEEK_START, {date(2026, 10, 18): -5})
        assert weekly.days[0].count == 0


class TestMainView:
    def test_call_to_action_when_not_authorized(self):
        view = main_view(TrackerSnapshot())
        assert view["authorized"] is False
        assert view["action"]["href"] == "/main/authorize"

    def test_today_total_when_authorized(self):
        snap = TrackerSnapshot(
            authorization=AuthorizationState.GRANTED,
            daily=DailyStepCount(date=WEEK_START, count=321),
        )
        view = main_view(snap)
        assert view["authorized"] is True
        assert view["steps"] == 321


class TestDateUtils:
    def test_start_of_day_converts_to_local(self):
        utc = datetime(2026, 10, 20, 16, 0, tzinfo=timezone.utc)  # 10/21 01:00 JST
        assert start_of_day(utc, TZ) == datetime(2026, 10, 21, tzinfo=TZ)

    @pytest.mark.parametrize("week_start,expected", [
        (6, datetime(2026, 10, 18, tzinfo=TZ)),
        (0, datetime(2026, 10, 19, tzinfo=TZ)),
    ])
    def test_start_of_week(self, week_start, expected):
        now = datetime(2026, 10, 21, 9, 0, tzinfo=TZ)
        assert start_of_week(now, TZ, week_start) == expected

    def test_start_of_week_on_first_day(self):
        now = datetime(2026, 10, 18, 0, 0, tzinfo=TZ)
        assert start_of_week(now, TZ, 6) == now

    def test_format_day_label(self):
        assert format_day_label(date(2026, 1, 3)) == "1/3 (土)"
