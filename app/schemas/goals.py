from datetime import datetime

from pydantic import BaseModel, Field, field_validator

from app.schemas.health_data import CAMEL_CONFIG

DEFAULT_STEPS_GOAL = 10000
DEFAULT_WATER_GOAL = 2.0
DEFAULT_SLEEP_GOAL = 8.0


class GoalsBase(BaseModel):
    model_config = CAMEL_CONFIG

    steps_goal: int = Field(DEFAULT_STEPS_GOAL, ge=0)
    water_goal: float = Field(DEFAULT_WATER_GOAL, ge=0)
    sleep_goal: float = Field(DEFAULT_SLEEP_GOAL, ge=0, le=24)
    weight_goal: float | None = Field(None, gt=0)

    @field_validator("steps_goal", "water_goal", "sleep_goal", mode="before")
    @classmethod
    def default_when_null(cls, value, info):
        if value is None:
            return cls.model_fields[info.field_name].default
        return value


class GoalsUpdate(GoalsBase):
    """Body of ``POST /goals``; omitted fields take their defaults."""

    user_id: str

    @field_validator("user_id")
    @classmethod
    def validate_user_id(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("userId must not be blank")
        return value


class Goals(GoalsBase):
    user_id: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def targets(self) -> dict:
        return {
            "steps_goal": self.steps_goal,
            "water_goal": self.water_goal,
            "sleep_goal": self.sleep_goal,
            "weight_goal": self.weight_goal,
        }
