"""Derived statistics over a snapshot of health records.

Every function here is pure: it reads the records it is given and returns
plain dicts or numbers. Days are compared as ``YYYY-MM-DD`` strings only;
``created_at`` is used for ordering entries within a day and nothing else.
"""

import math
from collections import defaultdict
from datetime import datetime, timedelta, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable

from app.schemas.goals import Goals
from app.schemas.health_data import HealthRecord
from app.utils.dates import normalize_date, shift_day, to_date, today_str

CUMULATIVE_FIELDS = ("steps", "water_intake", "sleep_hours")
POINT_IN_TIME_FIELDS = ("weight", "systolic", "diastolic", "pulse", "mood")

STREAK_LOOKBACK_DAYS = 365
WEIGHT_TOLERANCE = 0.05
HEATMAP_WEEKS = 12

MOOD_SCORES = {"terrible": 0.2, "bad": 0.4, "neutral": 0.6, "good": 0.8, "excellent": 1.0}
MOOD_LEVELS = {"terrible": 1, "bad": 2, "neutral": 3, "good": 4, "excellent": 5}
NEUTRAL_MOOD_LEVEL = 3

SCORE_WEIGHTS = {"steps": 30, "water": 25, "sleep": 25, "mood": 20}

HEATMAP_METRICS = {
    "steps": "steps",
    "water": "water_intake",
    "sleep": "sleep_hours",
    "mood": "mood",
}

CORRELATION_MIN_POINTS = 10
CORRELATION_PAIRS = (
    ("steps_sleep", "steps", "sleep_hours", 0.3),
    ("water_mood", "water_intake", "mood", 0.2),
    ("sleep_mood", "sleep_hours", "mood", 0.2),
)

WATER_REMINDER_RATIO = 0.7
STEPS_LOW_RATIO = 0.6
STEPS_ALMOST_RATIO = 0.9

_EARLIEST = datetime.min.replace(tzinfo=timezone.utc)


def _day_of(record: HealthRecord) -> str:
    return normalize_date(record.date)


def _chronological(records: Iterable[HealthRecord]) -> list[HealthRecord]:
    # sorted() is stable, so same-instant entries keep insertion order
    return sorted(records, key=lambda record: record.created_at or _EARLIEST)


def _group_by_day(records: Iterable[HealthRecord]) -> dict[str, list[HealthRecord]]:
    grouped: dict[str, list[HealthRecord]] = defaultdict(list)
    for record in records:
        grouped[_day_of(record)].append(record)
    return grouped


def _targets(goals) -> dict:
    if goals is None:
        return Goals().targets()
    if isinstance(goals, Goals):
        return goals.targets()
    return Goals.model_validate(goals).targets()


def merge_records(local: Iterable[HealthRecord], remote: Iterable[HealthRecord]) -> list[HealthRecord]:
    """Union of local and remote records with duplicates dropped.

    A record is a duplicate when it shares a server id, a client local id, or
    the same ``(date, created_at)`` pair with a record already kept. Local
    records are kept in preference to their remote copies.
    """
    merged: list[HealthRecord] = []
    seen_ids: set[str] = set()
    seen_local_ids: set[str] = set()
    seen_stamps: set[tuple[str, datetime]] = set()

    for record in [*local, *remote]:
        stamp = (_day_of(record), record.created_at) if record.created_at else None
        if record.id and record.id in seen_ids:
            continue
        if record.local_id and record.local_id in seen_local_ids:
            continue
        if stamp and stamp in seen_stamps:
            continue
        merged.append(record)
        if record.id:
            seen_ids.add(record.id)
        if record.local_id:
            seen_local_ids.add(record.local_id)
        if stamp:
            seen_stamps.add(stamp)
    return merged


def _stamped_note(record: HealthRecord) -> str:
    if record.created_at is None:
        return record.notes
    return f"[{record.created_at:%H:%M}] {record.notes}"


def daily_snapshot(records: Iterable[HealthRecord], day) -> dict:
    """Merge every record of ``day`` into one snapshot.

    Cumulative metrics are summed, point-in-time metrics take the most recent
    non-null value and notes are concatenated in order of entry. A day with
    no records yields ``{"date": day}``.
    """
    day = normalize_date(day)
    entries = [record for record in records if _day_of(record) == day]
    snapshot: dict = {"date": day}
    if not entries:
        return snapshot

    ordered = _chronological(entries)
    for field in CUMULATIVE_FIELDS:
        values = [getattr(record, field) for record in ordered if getattr(record, field) is not None]
        if values:
            snapshot[field] = sum(values)

    for field in POINT_IN_TIME_FIELDS:
        for record in reversed(ordered):
            value = getattr(record, field)
            if value is not None:
                snapshot[field] = value
                break

    notes = [_stamped_note(record) for record in ordered if record.notes]
    if notes:
        snapshot["notes"] = " | ".join(notes)

    snapshot["entry_count"] = len(entries)
    stamps = [record.created_at for record in entries if record.created_at]
    if stamps:
        snapshot["last_updated"] = max(stamps)
    return snapshot


def today_snapshot(records: Iterable[HealthRecord], today=None) -> dict:
    return daily_snapshot(records, today or today_str())


def daily_history(records: Iterable[HealthRecord], days: int | None = None, today=None) -> list[dict]:
    """Day-grouped snapshots, newest first, for days that have records.

    With ``days`` set only days on or after ``today - days`` are included and
    at most ``days`` rows are returned.
    """
    grouped = _group_by_day(records)
    keys = sorted(grouped, reverse=True)
    if days is not None:
        cutoff = shift_day(normalize_date(today or today_str()), -days)
        keys = [day for day in keys if day >= cutoff][:days]
    return [daily_snapshot(grouped[day], day) for day in keys]


def _daily_totals(records: Iterable[HealthRecord]) -> dict[str, dict]:
    totals: dict[str, dict] = defaultdict(dict)
    for record in records:
        day_totals = totals[_day_of(record)]
        for field in CUMULATIVE_FIELDS:
            value = getattr(record, field)
            if value is not None:
                day_totals[field] = day_totals.get(field, 0) + value
    return totals


def _mean(values: list) -> float:
    return sum(values) / len(values) if values else 0


def _round_half_up(value: float, places: int = 0) -> float:
    quantum = Decimal(1).scaleb(-places)
    return float(Decimal(str(value)).quantize(quantum, rounding=ROUND_HALF_UP))


def _averages(steps: list, water: list, sleep: list) -> dict:
    return {
        "steps": int(_round_half_up(_mean(steps))),
        "water": _round_half_up(_mean(water), 1),
        "sleep": _round_half_up(_mean(sleep), 1),
    }


def week_slice(records: Iterable[HealthRecord], now=None) -> list[HealthRecord]:
    """Records dated within ``[now - 7 days, now]`` inclusive."""
    end = normalize_date(now or today_str())
    start = shift_day(end, -7)
    return [record for record in records if start <= _day_of(record) <= end]


def weekly_averages(records: Iterable[HealthRecord]) -> dict:
    """Mean steps, water and sleep per entry across the given slice.

    Every entry counts once and an entry without a metric contributes 0 to
    it. Steps round half up to a whole number, water and sleep to one decimal.
    """
    records = list(records)
    return _averages(
        [record.steps or 0 for record in records],
        [record.water_intake or 0 for record in records],
        [record.sleep_hours or 0 for record in records],
    )


def trend_stats(records: Iterable[HealthRecord], days: int = 7, today=None) -> dict:
    """Per-day averages over the days with records in the last ``days`` days."""
    if days < 1:
        raise ValueError("Trend period must be at least one day")
    history = daily_history(records, days=days, today=today)
    stats = _averages(
        [day.get("steps") or 0 for day in history],
        [day.get("water_intake") or 0 for day in history],
        [day.get("sleep_hours") or 0 for day in history],
    )
    stats.update(days=days, data_points=len(history))
    return stats


def current_streak(records: Iterable[HealthRecord], today=None) -> int:
    """Consecutive days with at least one record, counting back from today."""
    days = {_day_of(record) for record in records}
    cursor = normalize_date(today or today_str())
    streak = 0
    while streak < STREAK_LOOKBACK_DAYS and cursor in days:
        streak += 1
        cursor = shift_day(cursor, -1)
    return streak


def longest_streak(records: Iterable[HealthRecord]) -> int:
    days = sorted({to_date(_day_of(record)) for record in records})
    longest = run = 0
    previous = None
    for day in days:
        run = run + 1 if previous is not None and day - previous == timedelta(days=1) else 1
        longest = max(longest, run)
        previous = day
    return longest


def _mean_daily_steps(records: Iterable[HealthRecord], start: str, end: str) -> float | None:
    totals = _daily_totals(record for record in records if start <= _day_of(record) <= end)
    steps = [day["steps"] for day in totals.values() if "steps" in day]
    if not steps:
        return None
    return sum(steps) / len(steps)


def weekly_improvement(records: Iterable[HealthRecord], now=None) -> float:
    """Percent change in mean daily steps, trailing 7 days vs. the 7 before."""
    records = list(records)
    end = normalize_date(now or today_str())
    current = _mean_daily_steps(records, shift_day(end, -6), end)
    previous = _mean_daily_steps(records, shift_day(end, -13), shift_day(end, -7))
    if current is None or previous is None or previous == 0:
        return 0
    return round((current - previous) / previous * 100, 1)


def mood_to_number(mood) -> int:
    return MOOD_LEVELS.get(mood, NEUTRAL_MOOD_LEVEL)


def _series(history: list[dict], field: str) -> list[float]:
    if field == "mood":
        return [mood_to_number(day.get("mood")) for day in history]
    return [day.get(field) or 0 for day in history]


def pearson(xs: list, ys: list) -> float:
    """Pearson correlation coefficient of two equal-length series, 0 when undefined."""
    n = len(xs)
    if n == 0 or n != len(ys):
        return 0.0
    sum_x, sum_y = sum(xs), sum(ys)
    sum_xy = sum(x * y for x, y in zip(xs, ys))
    sum_x2 = sum(x * x for x in xs)
    sum_y2 = sum(y * y for y in ys)
    spread = (n * sum_x2 - sum_x**2) * (n * sum_y2 - sum_y**2)
    if spread <= 0:
        return 0.0
    return (n * sum_xy - sum_x * sum_y) / math.sqrt(spread)


def correlations(records: Iterable[HealthRecord], min_points: int = CORRELATION_MIN_POINTS) -> list[dict]:
    """Correlation of each metric pair across day snapshots.

    Days missing a metric count it as 0 and a missing mood as neutral. With
    fewer than ``min_points`` days the list is empty.
    """
    history = daily_history(records)
    if len(history) < min_points:
        return []
    results = []
    for pair, x_field, y_field, threshold in CORRELATION_PAIRS:
        value = pearson(_series(history, x_field), _series(history, y_field))
        results.append(
            {
                "pair": pair,
                "value": round(value, 3),
                "threshold": threshold,
                "significant": abs(value) > threshold,
            }
        )
    return results


def strongest_correlation(results: list[dict]) -> dict | None:
    """The pair with the largest absolute coefficient, as a percentage strength."""
    if not results:
        return None
    strongest = max(results, key=lambda result: abs(result["value"]))
    value = strongest["value"]
    return {
        "pair": strongest["pair"],
        "value": value,
        "strength": int(_round_half_up(abs(value) * 100)),
        "direction": "positive" if value > 0 else "negative",
    }


def goal_status(snapshot: dict, goals=None) -> dict:
    """Per-goal met/unmet flags for a day snapshot; undefined goals are omitted."""
    targets = _targets(goals)
    status = {}
    for field, key in (("steps", "steps_goal"), ("water_intake", "water_goal"), ("sleep_hours", "sleep_goal")):
        target = targets.get(key)
        if target:
            status[key] = (snapshot.get(field) or 0) >= target
    weight_goal = targets.get("weight_goal")
    if weight_goal:
        weight = snapshot.get("weight")
        status["weight_goal"] = weight is not None and abs(weight - weight_goal) <= weight_goal * WEIGHT_TOLERANCE
    return status


def goal_completion(snapshot: dict, goals=None) -> dict:
    status = goal_status(snapshot, goals)
    return {"achieved": sum(1 for met in status.values() if met), "total": len(status)}


def overall_score(snapshot: dict, goals=None) -> float:
    """Weighted 0-100 score of a day's progress towards its goals."""
    targets = _targets(goals)
    score = 0.0
    max_score = 0
    for field, key, weight in (
        ("steps", "steps_goal", SCORE_WEIGHTS["steps"]),
        ("water_intake", "water_goal", SCORE_WEIGHTS["water"]),
        ("sleep_hours", "sleep_goal", SCORE_WEIGHTS["sleep"]),
    ):
        target = targets.get(key)
        if target:
            max_score += weight
            score += min((snapshot.get(field) or 0) / target, 1) * weight
    mood = snapshot.get("mood")
    if mood:
        max_score += SCORE_WEIGHTS["mood"]
        score += MOOD_SCORES.get(mood, 0) * SCORE_WEIGHTS["mood"]
    if not max_score:
        return 0
    return round(score / max_score * 100, 1)


def reminders(snapshot: dict, goals=None, streak: int = 0) -> list[dict]:
    """Nudges and congratulations for a day snapshot.

    Each item is ``{"kind": ..., "message": ...}``. Congratulations are only
    given for a day that has entries.
    """
    targets = _targets(goals)
    items = []
    logged = bool(snapshot.get("entry_count"))
    if not logged:
        items.append({"kind": "tracking", "message": "Nothing logged today yet. Take a moment to track your health."})

    water_goal = targets.get("water_goal")
    water = snapshot.get("water_intake") or 0
    if water_goal and water < water_goal * WATER_REMINDER_RATIO:
        items.append({"kind": "water", "message": f"Only {water:g} L of {water_goal:g} L water so far. Time for a glass!"})

    steps_goal = targets.get("steps_goal")
    steps = snapshot.get("steps") or 0
    if steps_goal:
        if steps < steps_goal * STEPS_LOW_RATIO:
            items.append({"kind": "steps-low", "message": f"{steps} of {steps_goal} steps. How about a short walk?"})
        elif steps_goal * STEPS_ALMOST_RATIO <= steps < steps_goal:
            items.append({"kind": "steps-almost", "message": f"Only {steps_goal - steps} steps to go!"})

    if not logged:
        return items
    for field, key, label in (
        ("steps", "steps_goal", "Step"),
        ("water_intake", "water_goal", "Water"),
        ("sleep_hours", "sleep_goal", "Sleep"),
    ):
        target = targets.get(key)
        if target and (snapshot.get(field) or 0) >= target:
            items.append({"kind": "goal-reached", "message": f"{label} goal reached!"})
    if streak > 0 and streak % 7 == 0:
        items.append({"kind": "streak", "message": f"{streak}-day streak! Keep it going."})
    return items


def activity_heatmap(records: Iterable[HealthRecord], metric: str = "steps", today=None, weeks: int = HEATMAP_WEEKS) -> list[list[dict]]:
    """Monday-aligned weekly grid of one metric's daily value, oldest week first."""
    if metric not in HEATMAP_METRICS:
        raise ValueError(f"Unknown heatmap metric: {metric}")
    field = HEATMAP_METRICS[metric]
    grouped = _group_by_day(records)
    end = to_date(normalize_date(today or today_str()))
    first_monday = end - timedelta(days=end.weekday()) - timedelta(weeks=weeks - 1)

    grid = []
    for week_index in range(weeks):
        week = []
        for day_index in range(7):
            day = (first_monday + timedelta(weeks=week_index, days=day_index)).isoformat()
            entries = grouped.get(day)
            value = 0
            if entries:
                raw = daily_snapshot(entries, day).get(field)
                if field == "mood":
                    value = MOOD_LEVELS.get(raw, 0)
                elif raw is not None:
                    value = raw
            week.append({"date": day, "value": value, "has_data": bool(entries)})
        grid.append(week)
    return grid


def build_dashboard(records: Iterable[HealthRecord], goals=None, today=None) -> dict:
    """Everything the dashboard shows, computed from one record snapshot."""
    records = list(records)
    today = normalize_date(today or today_str())
    snapshot = today_snapshot(records, today)
    streak = current_streak(records, today)
    pairs = correlations(records)
    return {
        "today": snapshot,
        "goal_completion": goal_completion(snapshot, goals),
        "goal_status": goal_status(snapshot, goals),
        "overall_score": overall_score(snapshot, goals),
        "weekly_averages": weekly_averages(week_slice(records, today)),
        "current_streak": streak,
        "longest_streak": longest_streak(records),
        "weekly_improvement": weekly_improvement(records, today),
        "trend": trend_stats(records, 7, today),
        "correlations": pairs,
        "strongest_correlation": strongest_correlation(pairs),
        "reminders": reminders(snapshot, goals, streak),
        "total_entries": len(records),
    }
