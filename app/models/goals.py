from datetime import datetime

from sqlalchemy import Column, DateTime, Float, Integer, String, UniqueConstraint

from app.database import Base


class UserGoals(Base):
    __tablename__ = "goals"
    __table_args__ = (UniqueConstraint("user_id", name="uq_goals_user"),)

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String, nullable=False, index=True)
    steps_goal = Column(Integer, nullable=False, default=10000)
    water_goal = Column(Float, nullable=False, default=2.0)
    sleep_goal = Column(Float, nullable=False, default=8.0)
    weight_goal = Column(Float, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)
