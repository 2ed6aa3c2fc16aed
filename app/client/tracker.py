import logging
from dataclasses import dataclass
from typing import Callable

from app.client import achievements, aggregator
from app.client.achievements import AchievementTracker
from app.client.context import TrackerContext
from app.client.errors import DuplicateEntryError, GatewayError, StorageError
from app.client.goals import GoalStore
from app.client.scheduler import Scheduler
from app.client.store import RecordStore
from app.client.sync import SyncEngine
from app.config import Settings, settings as default_settings
from app.schemas.goals import Goals
from app.schemas.health_data import HealthRecord

logger = logging.getLogger(__name__)


@dataclass
class SaveOutcome:
    status: str
    message: str
    record: HealthRecord | None = None


class HealthTracker:
    """Entry point for user actions on one client session."""

    def __init__(
        self,
        context: TrackerContext,
        config: Settings = default_settings,
        notifier: Callable[[dict], None] | None = None,
        on_stats: Callable[[dict], None] | None = None,
        online: bool = True,
    ):
        self.context = context
        self.config = config
        self.store = RecordStore(context.storage, context.user_id, limit=config.LOCAL_RECORD_LIMIT)
        self.sync = SyncEngine(self.store, context.gateway, config.SYNC_INTERVAL_MINUTES, online=online)
        self.goal_store = GoalStore(context.storage, context.gateway, context.user_id)
        self.achievements = AchievementTracker(context.storage, notifier)
        self.scheduler = Scheduler()
        self.on_stats = on_stats
        self.goals: Goals = self.goal_store.cached()
        self.latest_dashboard: dict | None = None
        self._remote_cache: list[HealthRecord] = []

    @classmethod
    def create(cls, config: Settings = default_settings, **kwargs) -> "HealthTracker":
        return cls(TrackerContext.create(config), config=config, **kwargs)

    @property
    def user_id(self) -> str:
        return self.context.user_id

    @property
    def online(self) -> bool:
        return self.sync.online

    def set_online(self, online: bool) -> None:
        self.sync.set_online(online)

    async def log_entry(self, data) -> SaveOutcome:
        """Record a new entry. Raises RecordValidationError for invalid input."""
        try:
            record = self.store.append(data)
        except StorageError as exc:
            if exc.record is None:
                raise
            logger.warning("Local save failed (%s); attempting direct upload", exc)
            return await self._upload_directly(exc.record)

        if self.sync.online:
            self.sync.trigger("local-write")
            return SaveOutcome("queued", "Saved! Syncing in the background.", record)
        return SaveOutcome("queued", "Saved locally, will sync later.", record)

    async def _upload_directly(self, record: HealthRecord) -> SaveOutcome:
        if not self.sync.online:
            return SaveOutcome("failed", "Could not save: device storage is full and you are offline.", record)
        try:
            data = await self.context.gateway.push_record(record)
        except DuplicateEntryError:
            record.synced = True
            return SaveOutcome("synced", "Saved (an identical entry was already stored).", record)
        except GatewayError as exc:
            logger.error("Direct upload of %s failed (%s)", record.local_id, exc.kind)
            return SaveOutcome("failed", "Could not save: device storage is full and the server is unreachable.", record)
        record.synced = True
        record.id = str(data["id"])
        self._remote_cache.append(record)
        return SaveOutcome("synced", "Saved to the server (device storage unavailable).", record)

    async def refresh(self) -> list[HealthRecord]:
        """Fetch the latest server records when online; returns the merged view."""
        if self.sync.online:
            try:
                self._remote_cache = await self.context.gateway.fetch_records(
                    self.user_id, limit=self.config.MAX_FETCH_LIMIT
                )
            except GatewayError as exc:
                logger.info("Using cached remote records (%s)", exc.kind)
        return self.records()

    def records(self) -> list[HealthRecord]:
        return aggregator.merge_records(self.store.all(), self._remote_cache)

    def dashboard(self, today=None) -> dict:
        return aggregator.build_dashboard(self.records(), self.goals, today)

    def history(self, days: int = 30, today=None) -> list[dict]:
        return aggregator.daily_history(self.records(), days=days, today=today)

    def heatmap(self, metric: str = "steps", today=None) -> list[list[dict]]:
        return aggregator.activity_heatmap(self.records(), metric, today)

    def trends(self, days: int = 7, today=None) -> dict:
        return aggregator.trend_stats(self.records(), days, today)

    def insights(self) -> dict:
        """Metric correlations once enough days are logged."""
        pairs = aggregator.correlations(self.records())
        return {"correlations": pairs, "strongest": aggregator.strongest_correlation(pairs)}

    def reminders(self, today=None) -> list[dict]:
        records = self.records()
        snapshot = aggregator.today_snapshot(records, today)
        return aggregator.reminders(snapshot, self.goals, aggregator.current_streak(records, today))

    async def load_goals(self) -> Goals:
        self.goals = await self.goal_store.load(online=self.sync.online)
        return self.goals

    async def save_goals(self, goals) -> Goals:
        self.goals = await self.goal_store.save(goals)
        return self.goals

    def achievement_summary(self) -> dict:
        results = achievements.evaluate(self.records(), self.goals)
        return {"achievements": results, "total_xp": achievements.total_xp(results)}

    def check_achievements(self) -> list[dict]:
        return self.achievements.new_milestones(self.records(), self.goals)

    async def _refresh_stats(self) -> None:
        await self.refresh()
        self.latest_dashboard = self.dashboard()
        if self.on_stats:
            self.on_stats(self.latest_dashboard)

    async def start(self) -> None:
        await self.load_goals()
        self.sync.start()
        self.scheduler.every("stats-refresh", self.config.STATS_REFRESH_SECONDS, self._refresh_stats, run_immediately=True)
        self.scheduler.every("achievements", self.config.ACHIEVEMENT_CHECK_MINUTES * 60, self.check_achievements)
        self.sync.trigger("startup")
        logger.info("Health tracker started for user %s", self.user_id)

    async def close(self) -> None:
        await self.scheduler.stop_all()
        await self.sync.stop()
        await self.context.aclose()
        logger.info("Health tracker closed for user %s", self.user_id)
