"""Load project snapshots exported by the record store."""

from __future__ import annotations

import asyncio
from pathlib import Path

from sitereport.schemas import ProjectSnapshot


def load_snapshot_sync(path: str | Path) -> ProjectSnapshot:
    """Parse a snapshot JSON file. Accepts camelCase or snake_case keys."""
    return ProjectSnapshot.model_validate_json(Path(path).read_text(encoding="utf-8"))


async def load_snapshot(path: str | Path) -> ProjectSnapshot:
    """Async wrapper for load_snapshot_sync."""
    return await asyncio.to_thread(load_snapshot_sync, path)
