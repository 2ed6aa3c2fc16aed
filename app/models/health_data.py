from datetime import datetime

from sqlalchemy import Column, Date, DateTime, Float, Index, Integer, String, Text

from app.database import Base


class HealthEntry(Base):
    __tablename__ = "health_data"
    __table_args__ = (
        Index("ix_health_data_user_date", "user_id", "entry_date"),
        Index("ix_health_data_user_created", "user_id", "created_at"),
    )

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String, nullable=False, index=True)
    entry_date = Column(Date, nullable=False, index=True)
    weight = Column(Float, nullable=True)
    steps = Column(Integer, nullable=True)
    water_intake = Column(Float, nullable=True)
    sleep_hours = Column(Float, nullable=True)
    systolic = Column(Integer, nullable=True)
    diastolic = Column(Integer, nullable=True)
    pulse = Column(Integer, nullable=True)
    mood = Column(String, nullable=True)
    notes = Column(Text, nullable=True)
    local_id = Column(String, nullable=True)
    submission_id = Column(String, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
