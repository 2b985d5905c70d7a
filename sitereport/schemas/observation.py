from __future__ import annotations
from datetime import datetime
from enum import Enum
from pydantic import BaseModel, Field, model_validator
from pydantic.alias_generators import to_camel


class Priority(str, Enum):
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"
    CRITICAL = "Critical"

    @property
    def severity(self) -> int:
        return _SEVERITY[self]


_SEVERITY = {
    Priority.LOW: 1,
    Priority.MEDIUM: 2,
    Priority.HIGH: 3,
    Priority.CRITICAL: 4,
}


class Coordinates(BaseModel):
    """Pin position as a percentage of the plan image's width and height."""

    x: float = Field(ge=0, le=100)
    y: float = Field(ge=0, le=100)

    model_config = {"frozen": True, "alias_generator": to_camel, "populate_by_name": True}


class Observation(BaseModel):
    id: str
    note: str = ""
    priority: Priority = Priority.MEDIUM
    plan_id: str | None = None
    coords: Coordinates | None = None
    images: list[str] = Field(default_factory=list)
    tags: list[str] = []
    trade: str = ""
    responsible_party: str = ""
    recommended_action: str = ""
    timestamp: datetime

    model_config = {"frozen": True, "alias_generator": to_camel, "populate_by_name": True}

    @model_validator(mode="after")
    def check_pin_has_plan(self) -> Observation:
        if self.coords is not None and self.plan_id is None:
            raise ValueError("coords require a plan_id")
        return self

    @property
    def is_pinned(self) -> bool:
        return self.plan_id is not None and self.coords is not None


class Finding(BaseModel):
    """An observation with its finding number for one report run."""

    number: int = Field(ge=1)
    observation: Observation

    model_config = {"frozen": True, "alias_generator": to_camel, "populate_by_name": True}


def number_findings(observations: list[Observation]) -> list[Finding]:
    """Number observations 1..N in canonical stored order."""
    return [
        Finding(number=index, observation=obs)
        for index, obs in enumerate(observations, start=1)
    ]
