import logging
from datetime import datetime

from sqlalchemy.orm import Session

from app.models.goals import UserGoals
from app.schemas.goals import Goals, GoalsUpdate

logger = logging.getLogger(__name__)


def _to_schema(row: UserGoals) -> Goals:
    return Goals(
        user_id=row.user_id,
        steps_goal=row.steps_goal,
        water_goal=row.water_goal,
        sleep_goal=row.sleep_goal,
        weight_goal=row.weight_goal,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def get_goals(db: Session, user_id: str) -> Goals:
    row = db.query(UserGoals).filter(UserGoals.user_id == user_id).first()
    if not row:
        logger.info("No goals stored for user %s; returning defaults", user_id)
        return Goals(user_id=user_id, created_at=datetime.utcnow())
    return _to_schema(row)


def upsert_goals(db: Session, body: GoalsUpdate) -> Goals:
    row = db.query(UserGoals).filter(UserGoals.user_id == body.user_id).first()
    if row is None:
        row = UserGoals(user_id=body.user_id)
        db.add(row)
    row.steps_goal = body.steps_goal
    row.water_goal = body.water_goal
    row.sleep_goal = body.sleep_goal
    row.weight_goal = body.weight_goal
    row.updated_at = datetime.utcnow()
    db.commit()
    db.refresh(row)
    logger.info("Goals saved for user %s", body.user_id)
    return _to_schema(row)
