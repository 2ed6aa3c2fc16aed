from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from app.config import settings
from app.utils.dates import normalize_date

CAMEL_CONFIG = {
    "alias_generator": to_camel,
    "populate_by_name": True,
    "use_enum_values": True,
    "from_attributes": True,
}

METRIC_FIELDS = (
    "weight",
    "steps",
    "water_intake",
    "sleep_hours",
    "systolic",
    "diastolic",
    "pulse",
    "mood",
    "notes",
)


class Mood(str, Enum):
    excellent = "excellent"
    good = "good"
    neutral = "neutral"
    bad = "bad"
    terrible = "terrible"


class HealthMetrics(BaseModel):
    model_config = CAMEL_CONFIG

    weight: float | None = Field(None, gt=0, le=700)
    steps: int | None = Field(None, ge=0)
    water_intake: float | None = Field(None, ge=0, le=30)
    sleep_hours: float | None = Field(None, ge=0, le=24)
    systolic: int | None = Field(None, ge=40, le=300)
    diastolic: int | None = Field(None, ge=20, le=200)
    pulse: int | None = Field(None, ge=20, le=250)
    mood: Mood | None = None
    notes: str | None = None

    @field_validator("notes")
    @classmethod
    def validate_notes(cls, value: str | None) -> str | None:
        if value is None:
            return None
        value = value.strip()
        if not value:
            return None
        if len(value) > settings.NOTES_MAX_LENGTH:
            raise ValueError(f"notes must be at most {settings.NOTES_MAX_LENGTH} characters")
        return value

    @model_validator(mode="after")
    def validate_metrics(self):
        if (self.systolic is None) != (self.diastolic is None):
            raise ValueError("systolic and diastolic must be provided together")
        if self.systolic is not None and self.systolic <= self.diastolic:
            raise ValueError("systolic must be greater than diastolic")
        if not self.has_metrics():
            raise ValueError("at least one metric must be provided")
        return self

    def has_metrics(self) -> bool:
        return any(getattr(self, name) is not None for name in METRIC_FIELDS)

    def metrics(self) -> dict:
        return {name: getattr(self, name) for name in METRIC_FIELDS}


def _ensure_aware(value: datetime | None) -> datetime | None:
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class HealthDataCreate(HealthMetrics):
    """Body of ``POST /health-data``."""

    user_id: str
    date: str | None = None
    created_at: datetime | None = None
    local_id: str | None = None
    submission_id: str | None = None
    force_submit: bool = False

    @field_validator("user_id")
    @classmethod
    def validate_user_id(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("userId must not be blank")
        return value

    @field_validator("date", mode="before")
    @classmethod
    def validate_date(cls, value):
        if value is None or value == "":
            return None
        return normalize_date(value)

    @field_validator("created_at")
    @classmethod
    def validate_created_at(cls, value: datetime | None) -> datetime | None:
        return _ensure_aware(value)


class HealthRecord(HealthMetrics):
    """A single health entry as known to a client.

    ``local_id`` is set for records created on this client, ``id`` once the
    server has stored the record. ``synced`` only ever goes from False to True.
    """

    id: str | None = None
    user_id: str
    date: str
    created_at: datetime | None = None
    local_id: str | None = None
    synced: bool = False

    @field_validator("id", mode="before")
    @classmethod
    def validate_id(cls, value):
        if value is None:
            return None
        return str(value)

    @field_validator("date", mode="before")
    @classmethod
    def validate_date(cls, value):
        return normalize_date(value)

    @field_validator("created_at")
    @classmethod
    def validate_created_at(cls, value: datetime | None) -> datetime | None:
        return _ensure_aware(value)

    def to_payload(self) -> dict:
        """Wire representation used when pushing to the server."""
        return self.model_dump(by_alias=True, mode="json", exclude_none=True, exclude={"id", "synced"})


class HealthDataCreated(BaseModel):
    model_config = CAMEL_CONFIG

    id: str
    user_id: str
    date: str
    created_at: datetime


class DailyAggregate(BaseModel):
    model_config = CAMEL_CONFIG

    date: str
    weight: float | None = None
    steps: int | None = None
    water_intake: float | None = None
    sleep_hours: float | None = None
    systolic: int | None = None
    diastolic: int | None = None
    pulse: int | None = None
    mood: Mood | None = None
    notes: str | None = None
    entry_count: int = 0
    last_updated: datetime | None = None
