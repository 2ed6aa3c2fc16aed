import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum

from app.client.errors import DuplicateEntryError, GatewayError, StorageError
from app.client.gateway import RemoteGateway
from app.client.scheduler import PeriodicTask
from app.client.store import RecordStore

logger = logging.getLogger(__name__)

DEFAULT_SYNC_INTERVAL_MINUTES = 5


class RecordState(str, Enum):
    pending = "pending"
    in_flight = "in-flight"
    synced = "synced"


@dataclass
class SyncReport:
    attempted: int = 0
    synced: int = 0
    duplicates: int = 0
    failed: int = 0
    skipped: int = 0
    errors: dict[str, str] = field(default_factory=dict)


class SyncEngine:
    """Pushes unsynced local records to the server.

    Only one pass runs at a time; a trigger that arrives while a pass is in
    flight is dropped rather than queued. A failed push leaves the record
    pending for the next trigger and never blocks the records after it.
    """

    def __init__(
        self,
        store: RecordStore,
        gateway: RemoteGateway,
        interval_minutes: float = DEFAULT_SYNC_INTERVAL_MINUTES,
        online: bool = True,
    ):
        self.store = store
        self.gateway = gateway
        self.interval_seconds = interval_minutes * 60
        self.online = online
        self.last_report: SyncReport | None = None
        self._in_flight = False
        self._states: dict[str, RecordState] = {}
        self._background: set[asyncio.Task] = set()
        self._timer: PeriodicTask | None = None

    @property
    def in_flight(self) -> bool:
        return self._in_flight

    def state_of(self, local_id: str) -> RecordState | None:
        if local_id in self._states:
            return self._states[local_id]
        record = self.store.get(local_id)
        if record is None:
            return None
        return RecordState.synced if record.synced else RecordState.pending

    async def sync_pending(self) -> SyncReport | None:
        """Run one sync pass; returns None when skipped (offline or coalesced)."""
        if not self.online:
            logger.debug("Sync skipped: offline")
            return None
        if self._in_flight:
            logger.debug("Sync skipped: a pass is already in flight")
            return None

        self._in_flight = True
        report = SyncReport()
        try:
            pending = self.store.list_unsynced()
            if pending:
                logger.info("Syncing %s pending records", len(pending))
            for queued in pending:
                await self._push(queued.local_id, report)
        finally:
            self._in_flight = False

        self.last_report = report
        if report.attempted:
            logger.info(
                "Sync pass finished: synced=%s duplicates=%s failed=%s skipped=%s",
                report.synced,
                report.duplicates,
                report.failed,
                report.skipped,
            )
        return report

    async def _push(self, local_id: str, report: SyncReport) -> None:
        # Re-read so a record synced by an earlier, interrupted pass is not pushed again
        record = self.store.get(local_id)
        if record is None or record.synced:
            report.skipped += 1
            self._states.pop(local_id, None)
            return

        self._states[local_id] = RecordState.in_flight
        report.attempted += 1
        try:
            data = await self.gateway.push_record(record)
        except DuplicateEntryError:
            logger.warning("Server already holds an identical entry for %s; treating %s as synced", record.date, local_id)
            self._finish(local_id, None, report)
            report.duplicates += 1
        except GatewayError as exc:
            logger.warning("Push of %s failed (%s): %s", local_id, exc.kind, exc)
            self._states[local_id] = RecordState.pending
            report.failed += 1
            report.errors[local_id] = exc.kind
        else:
            if self._finish(local_id, str(data["id"]), report):
                report.synced += 1

    def _finish(self, local_id: str, remote_id: str | None, report: SyncReport) -> bool:
        try:
            self.store.mark_synced(local_id, remote_id)
        except StorageError as exc:
            logger.error("Could not mark %s as synced locally: %s", local_id, exc)
            self._states[local_id] = RecordState.pending
            report.failed += 1
            report.errors[local_id] = "storage"
            return False
        # synced is read back from the store
        self._states.pop(local_id, None)
        return True

    def trigger(self, reason: str = "manual") -> asyncio.Task | None:
        """Start a pass in the background without waiting for it."""
        if not self.online or self._in_flight:
            logger.debug("Sync trigger (%s) dropped", reason)
            return None
        logger.debug("Sync triggered: %s", reason)
        task = asyncio.create_task(self.sync_pending())
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return task

    def set_online(self, online: bool) -> asyncio.Task | None:
        was_online = self.online
        self.online = online
        if online and not was_online:
            logger.info("Connection restored; syncing pending records")
            return self.trigger("reconnect")
        if not online and was_online:
            logger.info("Connection lost; records will queue locally")
        return None

    async def _periodic(self) -> None:
        if self.online:
            await self.sync_pending()

    def start(self) -> PeriodicTask:
        if self._timer is None:
            self._timer = PeriodicTask("sync", self.interval_seconds, self._periodic)
        self._timer.start()
        return self._timer

    async def stop(self) -> None:
        if self._timer:
            await self._timer.stop()
            self._timer = None
        if self._background:
            await asyncio.gather(*self._background, return_exceptions=True)
