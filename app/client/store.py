import logging
import uuid
from datetime import datetime, timezone

from pydantic import ValidationError

from app.client.errors import RecordValidationError, StorageError
from app.client.storage import LocalStorage
from app.schemas.health_data import HealthRecord
from app.utils.dates import today_str

logger = logging.getLogger(__name__)

RECORDS_KEY = "healthData"
DEFAULT_RECORD_LIMIT = 100


def new_local_id() -> str:
    return f"local_{uuid.uuid4().hex}"


class RecordStore:
    """Bounded, durable list of this client's health records.

    The list is a ring buffer: once ``limit`` records are stored, appending
    evicts the oldest. Every record carries a ``synced`` flag that the sync
    engine flips after the server confirms the write.
    """

    def __init__(self, storage: LocalStorage, user_id: str, limit: int = DEFAULT_RECORD_LIMIT):
        self.storage = storage
        self.user_id = user_id
        self.limit = limit

    def _load(self) -> list[HealthRecord]:
        raw = self.storage.get_item(RECORDS_KEY, [])
        if not isinstance(raw, list):
            logger.warning("Ignoring malformed %s value in local storage", RECORDS_KEY)
            return []
        records = []
        for item in raw:
            try:
                records.append(HealthRecord.model_validate(item))
            except ValidationError:
                logger.warning("Dropping unreadable local record %s", item.get("localId") if isinstance(item, dict) else item)
        return records

    def _save(self, records: list[HealthRecord]) -> None:
        self.storage.set_item(RECORDS_KEY, [record.model_dump(by_alias=True, mode="json") for record in records])

    def validate(self, data) -> HealthRecord:
        """Build a new unsynced record from user input, or raise RecordValidationError."""
        if isinstance(data, HealthRecord):
            data = data.model_dump(by_alias=True, exclude={"id", "local_id", "synced"})
        payload = dict(data)
        if not payload.get("userId") and not payload.get("user_id"):
            payload["userId"] = self.user_id
        if not payload.get("date"):
            payload["date"] = today_str()
        if payload.get("createdAt") is None and payload.get("created_at") is None:
            payload["createdAt"] = datetime.now(timezone.utc)
        payload["localId"] = new_local_id()
        payload["synced"] = False
        payload.pop("id", None)
        try:
            return HealthRecord.model_validate(payload)
        except ValidationError as exc:
            raise RecordValidationError.from_pydantic(exc) from exc

    def append(self, data) -> HealthRecord:
        record = self.validate(data)
        try:
            records = self._load()
            records.append(record)
            if len(records) > self.limit:
                evicted = records[: len(records) - self.limit]
                unsynced = [item.local_id for item in evicted if not item.synced]
                if unsynced:
                    logger.warning("Evicting %s unsynced records from local store: %s", len(unsynced), unsynced)
                records = records[-self.limit :]
            self._save(records)
        except StorageError as exc:
            exc.record = record
            raise
        logger.info("Stored record %s for %s locally", record.local_id, record.date)
        return record

    def all(self) -> list[HealthRecord]:
        return self._load()

    def get(self, local_id: str) -> HealthRecord | None:
        for record in self._load():
            if record.local_id == local_id:
                return record
        return None

    def list_unsynced(self) -> list[HealthRecord]:
        return [record for record in self._load() if not record.synced]

    def mark_synced(self, local_id: str, remote_id: str | None = None) -> bool:
        records = self._load()
        for record in records:
            if record.local_id == local_id:
                if record.synced and (remote_id is None or record.id == remote_id):
                    return True
                record.synced = True
                if remote_id is not None:
                    record.id = remote_id
                self._save(records)
                logger.debug("Marked record %s as synced (remote id %s)", local_id, remote_id)
                return True
        logger.debug("mark_synced: no local record %s", local_id)
        return False

    def clear(self) -> None:
        self.storage.remove_item(RECORDS_KEY)
