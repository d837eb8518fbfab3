from datetime import date, timedelta

from conftest import MONDAY, make_diet_plan, make_workout_plan

from fitplan.plan.calendar import (
    DIET_WEEK,
    WORKOUT_WEEK,
    WeekIndexing,
    days_in_first_week,
    find_day_for_date,
    get_current_week,
    get_current_week_days,
    get_progress_percentage,
    get_total_weeks,
    week_number_for_day,
)


def test_week_indexing():
    sunday = date(2026, 10, 18)
    assert WeekIndexing.SUNDAY_FIRST.index_of(sunday) == 0
    assert WeekIndexing.MONDAY_FIRST.index_of(sunday) == 6
    assert WeekIndexing.MONDAY_FIRST.index_of(MONDAY) == 0
    assert WeekIndexing.SUNDAY_FIRST.day_names()[0] == "Sunday"


def test_first_week_runs_through_sunday():
    assert days_in_first_week(MONDAY) == 7
    assert days_in_first_week(date(2026, 10, 21)) == 5
    assert days_in_first_week(date(2026, 10, 18)) == 1


def test_current_week():
    assert get_current_week(MONDAY, MONDAY - timedelta(days=3), 12) == 1
    assert get_current_week(MONDAY, date(2026, 10, 25), 12) == 1
    assert get_current_week(MONDAY, date(2026, 10, 26), 12) == 2
    # a Sunday start makes week 1 a single day
    assert get_current_week(date(2026, 10, 18), MONDAY, 12) == 2
    assert get_current_week(date(2026, 10, 21), date(2026, 10, 26), 12) == 2
    # clamped to the plan length
    assert get_current_week(MONDAY, MONDAY + timedelta(days=400), 12) == 12


def test_week_number_for_day():
    assert week_number_for_day(1) == 1
    assert week_number_for_day(7) == 1
    assert week_number_for_day(8) == 2


def test_progress_percentage():
    assert get_progress_percentage(1, 12) == 0
    assert get_progress_percentage(4, 12) == 25
    assert get_progress_percentage(20, 12) == 100
    assert get_progress_percentage(3, 0) == 0


def test_total_weeks_falls_back_to_dates():
    plan = make_diet_plan().model_copy(update={"total_weeks": 0})
    assert get_total_weeks(plan) == 12


def test_first_week_days_start_at_plan_start():
    start = date(2026, 10, 21)
    plan = make_diet_plan(start=start)
    days = get_current_week_days(plan, DIET_WEEK, date(2026, 10, 22))
    assert [d.date for d in days] == ["2026-10-21", "2026-10-22", "2026-10-23", "2026-10-24", "2026-10-25"]
    assert [d.day for d in days] == [1, 2, 3, 4, 5]
    assert days[0].day_name == "Wednesday"


def test_later_weeks_are_monday_to_sunday():
    plan = make_workout_plan()
    today = date(2026, 11, 4)
    days = get_current_week_days(plan, WORKOUT_WEEK, today)
    assert len(days) == 7
    assert days[0].date == "2026-11-02"
    assert days[0].day_name == "Monday"
    assert days[-1].date == "2026-11-08"
    assert [d.day for d in days] == list(range(15, 22))
    # the Sunday slot of the pattern is a rest day
    assert days[-1].is_rest_day


def test_find_day_for_date():
    plan = make_diet_plan()
    day = find_day_for_date(plan, DIET_WEEK, date(2026, 10, 21))
    assert day is not None
    assert day.date == "2026-10-21"
    assert day.day == 3
    assert find_day_for_date(plan, DIET_WEEK, MONDAY - timedelta(days=1)) is None
