"""Report export: single in-flight run per project, hand-off to a save collaborator."""

from __future__ import annotations

import inspect
import logging
from datetime import datetime
from enum import Enum
from typing import Awaitable, Callable

from sitereport.schemas import ExportStatus, ProjectSnapshot, ReportResult
from sitereport.services.pdf_generator import generate_pdf, report_filename

logger = logging.getLogger(__name__)

SaveCallback = Callable[[str, bytes], "Awaitable[None] | None"]

__all__ = ["ExportGate", "GateState", "export_report", "report_filename"]


class GateState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"


class ExportGate:
    """Caller-held token that allows one report run at a time."""

    def __init__(self):
        self.state = GateState.IDLE

    @property
    def running(self) -> bool:
        return self.state == GateState.RUNNING

    def acquire(self) -> bool:
        if self.running:
            return False
        self.state = GateState.RUNNING
        return True

    def release(self) -> None:
        self.state = GateState.IDLE


async def export_report(
    snapshot: ProjectSnapshot,
    gate: ExportGate,
    save: SaveCallback | None = None,
    generated_at: datetime | None = None,
) -> ReportResult:
    """Generate the PDF report under ``gate`` and hand it to ``save``.

    A call made while another run holds the gate is ignored with a ``busy``
    result. Unexpected errors produce a ``failed`` result with no content.
    """
    if not gate.acquire():
        logger.warning(f"Export already running for project {snapshot.project.id}, ignoring request")
        return ReportResult(status=ExportStatus.BUSY)

    try:
        result = await generate_pdf(snapshot, generated_at=generated_at)
        if result.ok and save is not None:
            saved = save(result.filename, result.content)
            if inspect.isawaitable(saved):
                await saved
    except Exception as e:
        logger.error(f"Export failed for project {snapshot.project.id}: {e}")
        return ReportResult(status=ExportStatus.FAILED, error=str(e))
    finally:
        gate.release()

    if result.ok:
        logger.info(f"Exported {result.filename} ({result.page_count} pages)")
    return result
