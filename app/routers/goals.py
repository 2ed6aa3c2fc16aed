import logging

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app.database import get_db
from app.schemas.goals import GoalsUpdate
from app.services.goals_service import get_goals, upsert_goals
from app.utils.response import create_response, handle_exception

router = APIRouter(prefix="/goals", tags=["Goals"])
logger = logging.getLogger(__name__)


@router.get("/{user_id}")
def read_goals(user_id: str, db: Session = Depends(get_db)):
    try:
        logger.info("Fetching goals for user %s", user_id)
        return get_goals(db, user_id).model_dump(by_alias=True, mode="json")
    except Exception as exc:
        logger.exception("Failed to fetch goals for user %s", user_id)
        return handle_exception(exc)


@router.post("")
def save_goals(body: GoalsUpdate, db: Session = Depends(get_db)):
    try:
        logger.info("Saving goals for user %s", body.user_id)
        goals = upsert_goals(db, body)
        return create_response(
            message="Goals updated successfully",
            data=goals.model_dump(by_alias=True, mode="json"),
            status_code=status.HTTP_200_OK,
        )
    except Exception as exc:
        logger.exception("Failed to save goals for user %s", body.user_id)
        return handle_exception(exc)
