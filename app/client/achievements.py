"""Milestone badges derived from the full record history.

Rules are pure predicates over an :class:`AchievementContext`; nothing about
which badges are unlocked is stored. The only persisted state is the set of
badge ids the user has already been notified about.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Iterable

from app.client import aggregator
from app.client.errors import StorageError
from app.client.storage import LocalStorage
from app.schemas.goals import Goals
from app.schemas.health_data import HealthRecord

logger = logging.getLogger(__name__)

SEEN_KEY = "seenAchievements"


@dataclass(frozen=True)
class AchievementContext:
    records: list[HealthRecord]
    days: list[dict]
    goals: Goals

    @classmethod
    def build(cls, records: Iterable[HealthRecord], goals: Goals | None = None) -> "AchievementContext":
        records = list(records)
        return cls(records=records, days=aggregator.daily_history(records), goals=goals or Goals())


@dataclass(frozen=True)
class Achievement:
    id: str
    title: str
    description: str
    xp: int
    predicate: Callable[[AchievementContext], bool]


def _days_meeting(context: AchievementContext, field: str, target: float | None) -> int:
    if not target:
        return 0
    return sum(1 for day in context.days if (day.get(field) or 0) >= target)


def _all_goals_met(context: AchievementContext) -> bool:
    for day in context.days:
        completion = aggregator.goal_completion(day, context.goals)
        if completion["total"] and completion["achieved"] == completion["total"]:
            return True
    return False


ACHIEVEMENTS: tuple[Achievement, ...] = (
    Achievement("first_entry", "First Steps", "Log your first health entry", 10, lambda ctx: len(ctx.records) >= 1),
    Achievement("streak_7", "Week Warrior", "Track on 7 consecutive days", 50, lambda ctx: aggregator.longest_streak(ctx.records) >= 7),
    Achievement("streak_30", "Habit Master", "Track on 30 consecutive days", 150, lambda ctx: aggregator.longest_streak(ctx.records) >= 30),
    Achievement("steps_10k", "10k Club", "Walk 10,000 steps in a single day", 25, lambda ctx: _days_meeting(ctx, "steps", 10000) >= 1),
    Achievement("entries_100", "Centurion", "Log 100 entries", 100, lambda ctx: len(ctx.records) >= 100),
    Achievement("all_goals_day", "Perfect Day", "Meet every goal on the same day", 75, _all_goals_met),
    Achievement(
        "hydration_7",
        "Hydration Hero",
        "Reach your water goal on 7 days",
        40,
        lambda ctx: _days_meeting(ctx, "water_intake", ctx.goals.water_goal) >= 7,
    ),
    Achievement(
        "mood_week",
        "Self Aware",
        "Log your mood on 7 different days",
        20,
        lambda ctx: sum(1 for day in ctx.days if day.get("mood")) >= 7,
    ),
)


def evaluate(records: Iterable[HealthRecord], goals: Goals | None = None, rules: Iterable[Achievement] = ACHIEVEMENTS) -> list[dict]:
    context = AchievementContext.build(records, goals)
    return [
        {
            "id": rule.id,
            "title": rule.title,
            "description": rule.description,
            "xp": rule.xp,
            "unlocked": bool(rule.predicate(context)),
        }
        for rule in rules
    ]


def total_xp(results: Iterable[dict]) -> int:
    return sum(result["xp"] for result in results if result["unlocked"])


class AchievementTracker:
    """Fires a notification once per newly unlocked achievement."""

    def __init__(
        self,
        storage: LocalStorage,
        notifier: Callable[[dict], None] | None = None,
        rules: Iterable[Achievement] = ACHIEVEMENTS,
    ):
        self.storage = storage
        self.notifier = notifier
        self.rules = tuple(rules)

    def seen(self) -> set[str]:
        raw = self.storage.get_item(SEEN_KEY, [])
        return set(raw) if isinstance(raw, list) else set()

    def new_milestones(self, records: Iterable[HealthRecord], goals: Goals | None = None) -> list[dict]:
        results = evaluate(records, goals, self.rules)
        seen = self.seen()
        fresh = [result for result in results if result["unlocked"] and result["id"] not in seen]
        if not fresh:
            return []

        seen.update(result["id"] for result in fresh)
        try:
            self.storage.set_item(SEEN_KEY, sorted(seen))
        except StorageError:
            logger.warning("Could not persist seen achievements; notifications may repeat", exc_info=True)

        for result in fresh:
            logger.info("Achievement unlocked: %s (+%s XP)", result["id"], result["xp"])
            if self.notifier:
                try:
                    self.notifier(result)
                except Exception:
                    logger.exception("Achievement notifier failed for %s", result["id"])
        return fresh
