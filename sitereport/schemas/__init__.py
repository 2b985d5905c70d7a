"""Pydantic models for project snapshots and report results."""

from sitereport.schemas.observation import (
    Coordinates, Finding, Observation, Priority, number_findings,
)
from sitereport.schemas.project import FloorPlan, ProjectInfo, ProjectSnapshot, WeatherSnapshot
from sitereport.schemas.report import ExportStatus, ReportResult

__all__ = [
    "Coordinates", "Finding", "Observation", "Priority", "number_findings",
    "FloorPlan", "ProjectInfo", "ProjectSnapshot", "WeatherSnapshot",
    "ExportStatus", "ReportResult",
]
