import logging
import uuid
from datetime import date, datetime, timedelta, timezone

from sqlalchemy.orm import Session

from app.client import aggregator
from app.config import settings
from app.models.health_data import HealthEntry
from app.schemas.health_data import METRIC_FIELDS, DailyAggregate, HealthDataCreate, HealthRecord

logger = logging.getLogger(__name__)


def _naive_utc(value: datetime | None) -> datetime:
    if value is None:
        return datetime.utcnow()
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def entry_to_record(entry: HealthEntry) -> HealthRecord:
    return HealthRecord(
        id=str(entry.id),
        user_id=entry.user_id,
        date=entry.entry_date,
        created_at=entry.created_at,
        local_id=entry.local_id,
        synced=True,
        **{field: getattr(entry, field) for field in METRIC_FIELDS},
    )


def list_entries(db: Session, user_id: str, limit: int | None = None, days: int | None = None) -> list[HealthEntry]:
    limit = min(limit or settings.DEFAULT_FETCH_LIMIT, settings.MAX_FETCH_LIMIT)
    query = db.query(HealthEntry).filter(HealthEntry.user_id == user_id)
    if days:
        query = query.filter(HealthEntry.entry_date >= date.today() - timedelta(days=days))
    entries = (
        query.order_by(HealthEntry.entry_date.desc(), HealthEntry.created_at.desc())
        .limit(limit)
        .all()
    )
    logger.info("Retrieved %s records for user %s", len(entries), user_id)
    return entries


def same_day_entries(db: Session, user_id: str, entry_date: date) -> list[HealthEntry]:
    return (
        db.query(HealthEntry)
        .filter(HealthEntry.user_id == user_id, HealthEntry.entry_date == entry_date)
        .all()
    )


def is_duplicate(existing: list[HealthEntry], body: HealthDataCreate) -> bool:
    """True when an existing same-day entry carries exactly the same metrics."""
    incoming = body.metrics()
    return any(
        all(getattr(entry, field) == incoming[field] for field in METRIC_FIELDS)
        for entry in existing
    )


def create_entry(db: Session, body: HealthDataCreate, entry_date: date) -> HealthEntry:
    entry = HealthEntry(
        user_id=body.user_id,
        entry_date=entry_date,
        local_id=body.local_id,
        submission_id=body.submission_id or f"sub_{uuid.uuid4().hex[:16]}",
        created_at=_naive_utc(body.created_at),
        **body.metrics(),
    )
    db.add(entry)
    db.commit()
    db.refresh(entry)
    logger.info("Health data saved: id=%s user=%s date=%s", entry.id, entry.user_id, entry.entry_date)
    return entry


def aggregate_days(db: Session, user_id: str, days: int) -> list[dict]:
    cutoff = date.today() - timedelta(days=days)
    entries = (
        db.query(HealthEntry)
        .filter(HealthEntry.user_id == user_id, HealthEntry.entry_date >= cutoff)
        .all()
    )
    records = [entry_to_record(entry) for entry in entries]
    rows = aggregator.daily_history(records, days=days)
    logger.info("Aggregated %s days for user %s", len(rows), user_id)
    return [DailyAggregate.model_validate(row).model_dump(by_alias=True, mode="json") for row in rows]
