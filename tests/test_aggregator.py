import pytest

from app.client import aggregator
from app.schemas.goals import Goals
from app.schemas.health_data import HealthRecord
from app.utils.dates import normalize_date, shift_day

TODAY = "2024-01-15"  # a Monday


def make_record(day, time="12:00", **metrics):
    metrics.setdefault("steps", 1000)
    return HealthRecord(user_id="user_1", date=day, created_at=f"{day}T{time}:00Z", **metrics)


def days_back(count):
    return shift_day(TODAY, -count)


def test_normalize_date_accepts_common_shapes():
    assert normalize_date("2024-01-15") == "2024-01-15"
    assert normalize_date("2024-01-15T23:59:59.000Z") == "2024-01-15"
    assert normalize_date({"$date": "2024-01-15T00:00:00Z"}) == "2024-01-15"


@pytest.mark.parametrize("value", ["15/01/2024", "2024-13-01", "", 20240115])
def test_normalize_date_rejects_invalid_values(value):
    with pytest.raises(ValueError):
        normalize_date(value)


def test_daily_snapshot_sums_cumulative_and_keeps_latest_point_values():
    records = [
        make_record(TODAY, "08:00", steps=5000, water_intake=0.5, weight=71.0, mood="neutral", notes="walk"),
        make_record(TODAY, "18:00", steps=3000, water_intake=0.75, mood="good", notes="gym"),
        make_record(days_back(1), "09:00", steps=9000),
    ]

    snapshot = aggregator.daily_snapshot(records, TODAY)

    assert snapshot["steps"] == 8000
    assert snapshot["water_intake"] == pytest.approx(1.25)
    assert snapshot["weight"] == 71.0
    assert snapshot["mood"] == "good"
    assert snapshot["notes"] == "[08:00] walk | [18:00] gym"
    assert snapshot["entry_count"] == 2


def test_daily_snapshot_orders_by_created_at_not_input_order():
    records = [
        make_record(TODAY, "20:00", weight=70.0),
        make_record(TODAY, "07:00", weight=72.0),
    ]

    assert aggregator.daily_snapshot(records, TODAY)["weight"] == 70.0


def test_daily_snapshot_of_empty_day():
    assert aggregator.daily_snapshot([make_record(days_back(1))], TODAY) == {"date": TODAY}


def test_merge_records_drops_remote_copies_of_local_records():
    local = make_record(TODAY, "08:00").model_copy(update={"local_id": "local_a", "id": "7", "synced": True})
    unsent = make_record(TODAY, "09:00").model_copy(update={"local_id": "local_b"})
    remote_same_id = make_record(TODAY, "08:00").model_copy(update={"id": "7", "synced": True})
    remote_same_stamp = make_record(TODAY, "09:00").model_copy(update={"id": "8", "synced": True})
    remote_other = make_record(days_back(1)).model_copy(update={"id": "9", "synced": True})

    merged = aggregator.merge_records([local, unsent], [remote_same_id, remote_same_stamp, remote_other])

    assert merged == [local, unsent, remote_other]


def test_daily_history_is_newest_first_and_windowed():
    records = [make_record(days_back(offset)) for offset in (0, 2, 5, 40)]

    history = aggregator.daily_history(records, days=30, today=TODAY)

    assert [day["date"] for day in history] == [TODAY, days_back(2), days_back(5)]


def test_week_slice_is_inclusive_of_both_ends():
    records = [make_record(days_back(offset)) for offset in (0, 7, 8)]

    sliced = aggregator.week_slice(records, TODAY)

    assert {record.date for record in sliced} == {TODAY, days_back(7)}


def test_weekly_averages_count_each_entry():
    records = [
        make_record(TODAY, "08:00", steps=5000),
        make_record(TODAY, "18:00", steps=3000),
    ]

    assert aggregator.weekly_averages(records)["steps"] == 4000


def test_weekly_averages_treat_missing_metrics_as_zero():
    records = [
        make_record(TODAY, "08:00", steps=4000, water_intake=1.0, sleep_hours=7.0),
        make_record(TODAY, "20:00", steps=6000, water_intake=1.0),
        make_record(days_back(1), steps=6000, water_intake=1.5, sleep_hours=8.0),
    ]

    averages = aggregator.weekly_averages(records)

    assert averages == {"steps": 5333, "water": 1.2, "sleep": 5.0}


def test_weekly_averages_round_half_up():
    records = [
        make_record(TODAY, "08:00", steps=4000, water_intake=1.0),
        make_record(TODAY, "20:00", steps=4001, water_intake=1.5),
    ]

    averages = aggregator.weekly_averages(records)

    assert averages["steps"] == 4001
    assert averages["water"] == 1.3



def test_weekly_averages_of_no_records():
    assert aggregator.weekly_averages([]) == {"steps": 0, "water": 0, "sleep": 0}


def test_current_streak_counts_back_from_today():
    records = [make_record(days_back(offset)) for offset in (0, 1, 2, 4)]

    assert aggregator.current_streak(records, TODAY) == 3
    assert aggregator.current_streak(records[1:], TODAY) == 0


def test_longest_streak_finds_best_run():
    offsets = (0, 1, 5, 6, 7, 8, 20)
    records = [make_record(days_back(offset)) for offset in offsets]

    assert aggregator.longest_streak(records) == 4
    assert aggregator.longest_streak([]) == 0


def test_weekly_improvement_compares_trailing_weeks():
    records = [make_record(days_back(offset), steps=10000) for offset in range(0, 7)]
    records += [make_record(days_back(offset), steps=5000) for offset in range(7, 14)]

    assert aggregator.weekly_improvement(records, TODAY) == 100.0


def test_weekly_improvement_without_previous_week():
    records = [make_record(TODAY, steps=10000)]

    assert aggregator.weekly_improvement(records, TODAY) == 0


def test_goal_completion_counts_only_defined_goals():
    snapshot = {"date": TODAY, "steps": 10000, "water_intake": 1.0, "sleep_hours": 8.0}

    assert aggregator.goal_completion(snapshot) == {"achieved": 2, "total": 3}
    assert aggregator.goal_completion(snapshot, Goals(steps_goal=0)) == {"achieved": 1, "total": 2}


def test_weight_goal_is_met_within_tolerance():
    goals = Goals(weight_goal=70.0)

    assert aggregator.goal_status({"weight": 72.0}, goals)["weight_goal"] is True
    assert aggregator.goal_status({"weight": 75.0}, goals)["weight_goal"] is False
    assert aggregator.goal_status({}, goals)["weight_goal"] is False


def test_overall_score_weights_each_goal():
    snapshot = {"steps": 5000, "water_intake": 2.0, "sleep_hours": 9.0, "mood": "good"}

    assert aggregator.overall_score(snapshot, {"steps_goal": 10000, "water_goal": 2.0, "sleep_goal": 8}) == 81.0


def test_overall_score_of_empty_day_is_zero():
    assert aggregator.overall_score({"date": TODAY}) == 0


def test_activity_heatmap_is_monday_aligned():
    records = [
        make_record(TODAY, steps=12000, mood="excellent"),
        make_record(days_back(3), steps=4000, mood="bad"),
    ]

    grid = aggregator.activity_heatmap(records, "steps", today=TODAY)

    assert len(grid) == 12
    assert all(len(week) == 7 for week in grid)
    assert grid[-1][0] == {"date": TODAY, "value": 12000, "has_data": True}
    assert grid[0][0]["date"] == shift_day(TODAY, -77)

    mood_grid = aggregator.activity_heatmap(records, "mood", today=TODAY)
    assert mood_grid[-1][0]["value"] == 5
    assert mood_grid[-2][4]["value"] == 2
    assert mood_grid[-2][5] == {"date": days_back(2), "value": 0, "has_data": False}


def test_activity_heatmap_rejects_unknown_metric():
    with pytest.raises(ValueError):
        aggregator.activity_heatmap([], "calories", today=TODAY)


def test_build_dashboard_collects_all_stats():
    records = [
        make_record(TODAY, "08:00", steps=5000),
        make_record(TODAY, "18:00", steps=3000),
        make_record(days_back(1), steps=9000),
    ]

    dashboard = aggregator.build_dashboard(records, Goals(), today=TODAY)

    assert dashboard["today"]["steps"] == 8000
    assert dashboard["current_streak"] == 2
    assert dashboard["longest_streak"] == 2
    assert dashboard["weekly_averages"]["steps"] == 5667
    assert dashboard["total_entries"] == 3
    assert dashboard["goal_completion"] == {"achieved": 0, "total": 3}
    assert dashboard["trend"]["data_points"] == 2
    assert dashboard["correlations"] == []
    assert dashboard["strongest_correlation"] is None
    assert [item["kind"] for item in dashboard["reminders"]] == ["water"]


def test_weekly_improvement_of_doubled_steps():
    records = [make_record(days_back(1), steps=8000), make_record(days_back(8), steps=4000)]

    assert aggregator.weekly_improvement(records, TODAY) == 100


def test_removing_todays_only_entry_breaks_streak():
    records = [make_record(TODAY)]

    assert aggregator.current_streak(records, TODAY) == 1
    assert aggregator.current_streak([], TODAY) == 0


def test_zero_steps_still_counts_as_an_entry():
    records = [make_record(TODAY, steps=0)]

    assert aggregator.current_streak(records, TODAY) == 1
    assert aggregator.today_snapshot(records, TODAY)["steps"] == 0


def test_trend_stats_average_days_in_period():
    records = [
        make_record(TODAY, "08:00", steps=3000, water_intake=0.5, sleep_hours=7.0),
        make_record(TODAY, "18:00", steps=2000, water_intake=0.5),
        make_record(days_back(2), steps=4000, water_intake=2.0),
        make_record(days_back(10), steps=99999),
    ]

    stats = aggregator.trend_stats(records, days=7, today=TODAY)

    assert stats == {"steps": 4500, "water": 1.5, "sleep": 3.5, "days": 7, "data_points": 2}


def test_trend_stats_of_empty_period():
    stats = aggregator.trend_stats([make_record(days_back(60))], days=30, today=TODAY)

    assert stats["data_points"] == 0
    assert stats["steps"] == 0


def test_trend_stats_rejects_empty_period():
    with pytest.raises(ValueError):
        aggregator.trend_stats([], days=0, today=TODAY)


def test_mood_to_number_defaults_to_neutral():
    assert aggregator.mood_to_number("excellent") == 5
    assert aggregator.mood_to_number("terrible") == 1
    assert aggregator.mood_to_number(None) == 3


def test_pearson_handles_flat_series():
    assert aggregator.pearson([1, 2, 3], [3, 2, 1]) == pytest.approx(-1.0)
    assert aggregator.pearson([1, 1, 1], [1, 2, 3]) == 0.0
    assert aggregator.pearson([], []) == 0.0


def test_correlations_need_ten_days():
    records = [make_record(days_back(offset)) for offset in range(9)]

    assert aggregator.correlations(records) == []
    assert aggregator.strongest_correlation([]) is None


def test_correlations_find_steps_and_sleep_together():
    records = [
        make_record(days_back(offset), steps=1000 * (offset + 1), sleep_hours=5 + offset * 0.5)
        for offset in range(10)
    ]

    results = aggregator.correlations(records)

    assert [result["pair"] for result in results] == ["steps_sleep", "water_mood", "sleep_mood"]
    assert results[0]["value"] == 1.0
    assert results[0]["significant"] is True
    assert results[1] == {"pair": "water_mood", "value": 0.0, "threshold": 0.2, "significant": False}
    assert aggregator.strongest_correlation(results) == {
        "pair": "steps_sleep",
        "value": 1.0,
        "strength": 100,
        "direction": "positive",
    }


def test_strongest_correlation_reports_negative_direction():
    results = [
        {"pair": "steps_sleep", "value": 0.1, "threshold": 0.3, "significant": False},
        {"pair": "sleep_mood", "value": -0.456, "threshold": 0.2, "significant": True},
    ]

    strongest = aggregator.strongest_correlation(results)

    assert strongest["pair"] == "sleep_mood"
    assert strongest["strength"] == 46
    assert strongest["direction"] == "negative"


def test_reminders_for_an_empty_day():
    items = aggregator.reminders({"date": TODAY}, Goals(), streak=7)

    assert [item["kind"] for item in items] == ["tracking", "water", "steps-low"]


def test_reminders_congratulate_met_goals_and_weekly_streaks():
    snapshot = {"date": TODAY, "steps": 9500, "water_intake": 2.0, "sleep_hours": 8.0, "entry_count": 2}

    items = aggregator.reminders(snapshot, Goals(), streak=14)

    assert [item["kind"] for item in items] == ["steps-almost", "goal-reached", "goal-reached", "streak"]
    assert items[0]["message"] == "Only 500 steps to go!"


def test_reminders_skip_undefined_goals():
    snapshot = {"date": TODAY, "steps": 100, "entry_count": 1}

    items = aggregator.reminders(snapshot, Goals(steps_goal=0, water_goal=0), streak=3)

    assert items == []
