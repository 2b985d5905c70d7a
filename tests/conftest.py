import base64
import io
import itertools
from datetime import datetime, timezone

import pytest
from PIL import Image

from sitereport.schemas import FloorPlan, Observation, ProjectInfo, ProjectSnapshot


@pytest.fixture
def make_payload():
    """Factory for data: URL image payloads."""
    def _make(size=(400, 300), color=(240, 240, 240), fmt="PNG"):
        img = Image.new("RGB", size, color=color)
        buf = io.BytesIO()
        img.save(buf, format=fmt)
        mime = "image/png" if fmt == "PNG" else "image/jpeg"
        return f"data:{mime};base64,{base64.standard_b64encode(buf.getvalue()).decode('utf-8')}"
    return _make


@pytest.fixture
def corrupt_payload():
    return "data:image/png;base64," + base64.standard_b64encode(b"not really a png").decode("utf-8")


@pytest.fixture
def make_observation():
    counter = itertools.count(1)

    def _make(**kwargs):
        n = next(counter)
        fields = {
            "id": f"obs-{n}",
            "note": f"Observation {n}",
            "priority": "Medium",
            "timestamp": datetime(2026, 3, 1, 9, n % 60, tzinfo=timezone.utc),
        }
        fields.update(kwargs)
        return Observation(**fields)
    return _make


@pytest.fixture
def make_plan(make_payload):
    def _make(plan_id, name=None, size=(400, 300), image_data=None):
        return FloorPlan(id=plan_id, name=name or f"Plan {plan_id}", image_data=image_data or make_payload(size))
    return _make


@pytest.fixture
def project():
    return ProjectInfo(
        id="proj-1",
        name="Harbor View Tower",
        location="Seattle, WA",
        inspector="J. Rivera",
        last_modified=datetime(2026, 3, 1, tzinfo=timezone.utc),
    )


@pytest.fixture
def make_snapshot(project):
    def _make(plans=(), observations=(), weather=None):
        return ProjectSnapshot(project=project, plans=list(plans), observations=list(observations), weather=weather)
    return _make
