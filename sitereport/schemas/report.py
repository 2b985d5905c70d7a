from __future__ import annotations
from enum import Enum
from pydantic import BaseModel


class ExportStatus(str, Enum):
    COMPLETED = "completed"
    NOTHING_TO_EXPORT = "nothing_to_export"
    FAILED = "failed"
    BUSY = "busy"


class ReportResult(BaseModel):
    status: ExportStatus
    filename: str = ""
    content: bytes = b""
    page_count: int = 0
    pages: list[str] = []  # cover | summary | map:<plan id> | findings
    skipped_plans: list[str] = []
    skipped_findings: list[int] = []
    skipped_photos: int = 0
    error: str = ""

    @property
    def ok(self) -> bool:
        return self.status == ExportStatus.COMPLETED
