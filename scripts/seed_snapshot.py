"""Write a demo project snapshot with generated floor plans and photos."""

import argparse
import base64
import io
from datetime import datetime, timedelta, timezone
from pathlib import Path

from PIL import Image, ImageDraw

from sitereport.schemas import (
    Coordinates, FloorPlan, Observation, Priority, ProjectInfo, ProjectSnapshot, WeatherSnapshot,
)


def _data_url(img: Image.Image) -> str:
    buf = io.BytesIO()
    img.convert("RGB").save(buf, "JPEG", quality=85)
    return "data:image/jpeg;base64," + base64.standard_b64encode(buf.getvalue()).decode("utf-8")


def _floor_plan(size: tuple[int, int], rooms: int) -> str:
    img = Image.new("RGB", size, (250, 250, 247))
    draw = ImageDraw.Draw(img)
    w, h = size
    draw.rectangle((20, 20, w - 20, h - 20), outline=(40, 40, 40), width=6)
    for i in range(1, rooms):
        x = 20 + i * (w - 40) // rooms
        draw.line((x, 20, x, h - 20), fill=(40, 40, 40), width=4)
    draw.line((20, h // 2, w - 20, h // 2), fill=(40, 40, 40), width=4)
    return _data_url(img)


def _photo(color: tuple[int, int, int]) -> str:
    img = Image.new("RGB", (640, 480), color)
    ImageDraw.Draw(img).ellipse((220, 140, 420, 340), outline=(255, 255, 255), width=8)
    return _data_url(img)


def build_snapshot() -> ProjectSnapshot:
    now = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)
    plans = [
        FloorPlan(id="plan-l1", name="Level 1", image_data=_floor_plan((2400, 1600), 4)),
        FloorPlan(id="plan-l2", name="Level 2", image_data=_floor_plan((1800, 1800), 3)),
        FloorPlan(id="plan-roof", name="Roof", image_data=_floor_plan((1200, 800), 2)),
    ]
    rows = [
        ("Exposed wiring at junction box above corridor ceiling.", Priority.CRITICAL, "plan-l1", (18, 30), "Electrical", 2),
        ("Fire stopping missing around sprinkler penetration.", Priority.HIGH, "plan-l1", (62, 71), "Fire Protection", 1),
        ("Drywall joint tape lifting at stair core.", Priority.LOW, "plan-l2", (45, 12), "Drywall", 0),
        ("Water ponding near roof drain RD-2; slope to drain insufficient.", Priority.HIGH, None, None, "Roofing", 7),
        ("Housekeeping: debris in egress path.", Priority.MEDIUM, None, None, "", 0),
    ]
    observations = []
    for i, (note, priority, plan_id, xy, trade, photos) in enumerate(rows):
        observations.append(Observation(
            id=f"obs-{i + 1}",
            note=note,
            priority=priority,
            plan_id=plan_id,
            coords=Coordinates(x=xy[0], y=xy[1]) if xy else None,
            images=[_photo((60 + 30 * k, 90, 140)) for k in range(photos)],
            trade=trade,
            responsible_party="ABC Builders" if trade else "",
            timestamp=now - timedelta(hours=i),
        ))
    return ProjectSnapshot(
        project=ProjectInfo(
            id="demo",
            name="Demo Tower - Phase 2",
            location="Portland, OR",
            inspector="Sam Inspector",
            last_modified=now,
        ),
        plans=plans,
        observations=observations,
        weather=WeatherSnapshot(temp=54, condition="Light Rain", humidity=81, wind=7),
    )


def main():
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--out", default="data/demo_snapshot.json")
    args = parser.parse_args()

    path = Path(args.out)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(build_snapshot().model_dump_json(by_alias=True, indent=2), encoding="utf-8")
    print(f"Snapshot written: {path}")
    print(f"Render it with: sitereport pdf {path}")


if __name__ == "__main__":
    main()
