from __future__ import annotations
from datetime import datetime
from pydantic import BaseModel, Field, model_validator
from pydantic.alias_generators import to_camel

from sitereport.schemas.observation import Observation


class ProjectInfo(BaseModel):
    id: str
    name: str
    location: str = ""
    inspector: str = ""
    email_to: str = ""
    last_modified: datetime

    model_config = {"frozen": True, "alias_generator": to_camel, "populate_by_name": True}


class FloorPlan(BaseModel):
    id: str
    name: str
    image_data: str  # base64 or data: URL

    model_config = {"frozen": True, "alias_generator": to_camel, "populate_by_name": True}


class WeatherSnapshot(BaseModel):
    temp: float  # °F
    condition: str
    humidity: float  # %
    wind: float  # mph

    model_config = {"frozen": True, "alias_generator": to_camel, "populate_by_name": True}


class ProjectSnapshot(BaseModel):
    """Read-only view of a project consumed by one report run.

    ``observations`` is the canonical stored order (newest first) and is the
    source of finding numbers.
    """

    project: ProjectInfo
    plans: list[FloorPlan] = Field(default_factory=list)
    observations: list[Observation] = Field(default_factory=list)
    weather: WeatherSnapshot | None = None

    model_config = {"frozen": True, "alias_generator": to_camel, "populate_by_name": True}

    @model_validator(mode="after")
    def check_unique_ids(self) -> ProjectSnapshot:
        obs_ids = [o.id for o in self.observations]
        if len(set(obs_ids)) != len(obs_ids):
            raise ValueError("observation ids must be unique")
        plan_ids = [p.id for p in self.plans]
        if len(set(plan_ids)) != len(plan_ids):
            raise ValueError("plan ids must be unique")
        return self

    def plan_name(self, plan_id: str | None) -> str:
        for plan in self.plans:
            if plan.id == plan_id:
                return plan.name
        return "Unassigned"
