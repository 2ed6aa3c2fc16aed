from app.client import achievements
from app.client.achievements import AchievementTracker
from app.schemas.goals import Goals
from app.schemas.health_data import HealthRecord
from app.utils.dates import shift_day

TODAY = "2024-01-15"


def make_record(offset=0, **metrics):
    metrics.setdefault("steps", 2000)
    day = shift_day(TODAY, -offset)
    return HealthRecord(user_id="user_badges", date=day, created_at=f"{day}T12:00:00Z", **metrics)


def unlocked(results):
    return {result["id"] for result in results if result["unlocked"]}


def test_no_records_unlock_nothing():
    results = achievements.evaluate([])

    assert unlocked(results) == set()
    assert achievements.total_xp(results) == 0


def test_first_entry_and_step_badges():
    results = achievements.evaluate([make_record(steps=10500)])

    assert unlocked(results) == {"first_entry", "steps_10k"}
    assert achievements.total_xp(results) == 35


def test_week_streak_and_mood_badges():
    records = [make_record(offset, mood="good") for offset in range(7)]

    ids = unlocked(achievements.evaluate(records))

    assert {"first_entry", "streak_7", "mood_week"} <= ids
    assert "streak_30" not in ids


def test_perfect_day_uses_user_goals():
    record = make_record(steps=6000, water_intake=1.5, sleep_hours=7)

    assert "all_goals_day" not in unlocked(achievements.evaluate([record]))

    easy = Goals(steps_goal=5000, water_goal=1.5, sleep_goal=7)
    assert "all_goals_day" in unlocked(achievements.evaluate([record], easy))


def test_tracker_notifies_each_badge_once(storage):
    notified = []
    tracker = AchievementTracker(storage, notifier=notified.append)
    records = [make_record(steps=12000)]

    first = tracker.new_milestones(records)
    second = tracker.new_milestones(records)

    assert {result["id"] for result in first} == {"first_entry", "steps_10k"}
    assert second == []
    assert [result["id"] for result in notified] == [result["id"] for result in first]
    assert tracker.seen() == {"first_entry", "steps_10k"}


def test_seen_badges_survive_a_new_tracker(storage):
    AchievementTracker(storage).new_milestones([make_record()])
    notified = []

    fresh = AchievementTracker(storage, notifier=notified.append).new_milestones([make_record()])

    assert fresh == []
    assert notified == []


def test_failing_notifier_does_not_stop_other_notifications(storage):
    received = []

    def flaky(result):
        received.append(result["id"])
        raise RuntimeError("display unavailable")

    fresh = AchievementTracker(storage, notifier=flaky).new_milestones([make_record(steps=10000)])

    assert len(fresh) == 2
    assert len(received) == 2
