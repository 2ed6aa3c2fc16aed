import logging
from datetime import date, timezone

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from app.database import get_db
from app.schemas.health_data import HealthDataCreate, HealthDataCreated
from app.services.health_data_service import (
    aggregate_days,
    create_entry,
    entry_to_record,
    is_duplicate,
    list_entries,
    same_day_entries,
)
from app.utils.response import create_response, error_response, handle_exception

router = APIRouter(tags=["Health Data"])
logger = logging.getLogger(__name__)


def _require_user_id(user_id: str) -> str:
    user_id = user_id.strip()
    if not user_id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Valid userId is required")
    return user_id


@router.get("/health-data/{user_id}")
def get_health_data(
    user_id: str,
    limit: int | None = Query(None, ge=1),
    days: int | None = Query(None, ge=1),
    db: Session = Depends(get_db),
):
    try:
        user_id = _require_user_id(user_id)
        logger.info("Fetching health data for user %s limit=%s days=%s", user_id, limit, days)
        entries = list_entries(db, user_id, limit=limit, days=days)
        return [entry_to_record(entry).model_dump(by_alias=True, mode="json") for entry in entries]
    except HTTPException:
        raise
    except Exception as exc:
        logger.exception("Failed to fetch health data for user %s", user_id)
        return handle_exception(exc)


@router.post("/health-data")
def create_health_data(
    body: HealthDataCreate,
    db: Session = Depends(get_db),
):
    try:
        logger.info("Processing health data for user %s date=%s", body.user_id, body.date)
        entry_date = date.fromisoformat(body.date) if body.date else date.today()
        existing = same_day_entries(db, body.user_id, entry_date)
        if existing and not body.force_submit and is_duplicate(existing, body):
            logger.info("Duplicate entry prevented for user %s on %s", body.user_id, entry_date)
            return error_response(
                "DUPLICATE_DATA",
                "DUPLICATE_DATA",
                status.HTTP_409_CONFLICT,
                message="Identical data already exists for this date",
                suggestion="Use forceSubmit=true to override",
                existingEntries=len(existing),
            )

        entry = create_entry(db, body, entry_date)
        created = HealthDataCreated(
            id=str(entry.id),
            user_id=entry.user_id,
            date=entry.entry_date.isoformat(),
            created_at=entry.created_at.replace(tzinfo=timezone.utc),
        )
        return create_response(
            message="Health data saved successfully",
            data=created.model_dump(by_alias=True, mode="json"),
            status_code=status.HTTP_201_CREATED,
        )
    except Exception as exc:
        logger.exception("Failed to save health data for user %s", body.user_id)
        return handle_exception(exc)


@router.get("/health-data-aggregated/{user_id}")
def get_aggregated_health_data(
    user_id: str,
    days: int = Query(30, ge=1, le=365),
    db: Session = Depends(get_db),
):
    try:
        user_id = _require_user_id(user_id)
        logger.info("Aggregating data for user %s (%s days)", user_id, days)
        return aggregate_days(db, user_id, days)
    except HTTPException:
        raise
    except Exception as exc:
        logger.exception("Failed to aggregate health data for user %s", user_id)
        return handle_exception(exc)
