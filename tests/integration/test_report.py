"""End-to-end tests for PDF/HTML report generation and export."""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone

import pytest
from reportlab.lib.units import mm

from sitereport.schemas import Coordinates, ExportStatus, Priority, WeatherSnapshot
from sitereport.services.export import ExportGate, GateState, export_report, report_filename
from sitereport.services.layout import LayoutEngine
from sitereport.services.pdf_generator import ReportAssembler, generate_pdf
from sitereport.services.report_generator import generate_report

_GENERATED_AT = datetime(2026, 3, 2, 14, 30, tzinfo=timezone.utc)


@pytest.fixture
def three_plan_snapshot(make_snapshot, make_plan, make_observation, make_payload):
    plans = [make_plan("a", "Level 1"), make_plan("b", "Level 2"), make_plan("c", "Roof")]
    observations = [
        make_observation(plan_id="c", coords=Coordinates(x=10, y=20), priority=Priority.HIGH),
        make_observation(plan_id="a", coords=Coordinates(x=50, y=50), priority=Priority.CRITICAL,
                         images=[make_payload((320, 240))]),
        make_observation(note="General housekeeping", trade="GC"),
    ]
    return make_snapshot(
        plans=plans,
        observations=observations,
        weather=WeatherSnapshot(temp=68, condition="Overcast", humidity=72, wind=9),
    )


@pytest.fixture
def draw_log(monkeypatch):
    """Record where every finding block is drawn."""
    calls = []
    original = ReportAssembler.draw_finding

    def spy(self, block, top, photos):
        calls.append({"page": len(self.pages), "top": top, "block": block})
        return original(self, block, top, photos)

    monkeypatch.setattr(ReportAssembler, "draw_finding", spy)
    return calls


@pytest.fixture
def text_log(monkeypatch):
    """Record every string drawn, with the page it lands on."""
    calls = []
    original = ReportAssembler._text

    def spy(self, x, top, text, *args, **kwargs):
        calls.append((self.pages[-1], text))
        return original(self, x, top, text, *args, **kwargs)

    monkeypatch.setattr(ReportAssembler, "_text", spy)
    return calls


# ── cover ────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_cover_shows_project_details(three_plan_snapshot, text_log):
    await generate_pdf(three_plan_snapshot, generated_at=_GENERATED_AT)
    cover = [text for page, text in text_log if page == "cover"]
    assert "SITE INSPECTION REPORT" in cover
    assert "Project Name: Harbor View Tower" in cover
    assert "Location: Seattle, WA" in cover
    assert "Inspector: J. Rivera" in cover
    assert "Total Findings: 3" in cover


@pytest.mark.asyncio
async def test_cover_weather_block(three_plan_snapshot, text_log):
    await generate_pdf(three_plan_snapshot, generated_at=_GENERATED_AT)
    cover = [text for page, text in text_log if page == "cover"]
    assert "CURRENT WEATHER" in cover
    assert any("Overcast" in text and "Humidity: 72%" in text for text in cover)


@pytest.mark.asyncio
async def test_cover_without_weather_has_no_weather_block(three_plan_snapshot, text_log):
    snapshot = three_plan_snapshot.model_copy(update={"weather": None})
    await generate_pdf(snapshot, generated_at=_GENERATED_AT)
    drawn = [text for _, text in text_log]
    assert "CURRENT WEATHER" not in drawn
    assert not any("Humidity" in text for text in drawn)
    assert "Total Findings: 3" in drawn


# ── outcomes─────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_zero_observations_is_nothing_to_export(make_snapshot, make_plan):
    saved = []
    result = await export_report(make_snapshot(plans=[make_plan("a")]), ExportGate(), save=lambda n, c: saved.append(n))
    assert result.status == ExportStatus.NOTHING_TO_EXPORT
    assert result.content == b""
    assert saved == []


@pytest.mark.asyncio
async def test_full_report(three_plan_snapshot):
    result = await generate_pdf(three_plan_snapshot, generated_at=_GENERATED_AT)
    assert result.status == ExportStatus.COMPLETED
    assert result.content.startswith(b"%PDF")
    assert result.filename == "Harbor_View_Tower_SiteReport.pdf"
    assert result.page_count == len(result.pages)


@pytest.mark.asyncio
async def test_only_plans_with_findings_get_map_pages(three_plan_snapshot):
    result = await generate_pdf(three_plan_snapshot, generated_at=_GENERATED_AT)
    assert [p for p in result.pages if p.startswith("map:")] == ["map:a", "map:c"]
    assert result.pages == ["cover", "map:a", "map:c", "findings"]


@pytest.mark.asyncio
async def test_plan_with_only_unlocated_finding_still_gets_page(make_snapshot, make_plan, make_observation):
    snapshot = make_snapshot(plans=[make_plan("a")], observations=[make_observation(plan_id="a")])
    result = await generate_pdf(snapshot)
    assert "map:a" in result.pages


@pytest.mark.asyncio
async def test_corrupt_plan_is_skipped(three_plan_snapshot, make_plan, corrupt_payload):
    plans = list(three_plan_snapshot.plans)
    plans[0] = make_plan("a", "Level 1", image_data=corrupt_payload)
    snapshot = three_plan_snapshot.model_copy(update={"plans": plans})

    result = await generate_pdf(snapshot, generated_at=_GENERATED_AT)
    assert result.status == ExportStatus.COMPLETED
    assert result.skipped_plans == ["a"]
    assert result.pages == ["cover", "map:c", "findings"]


@pytest.mark.asyncio
async def test_corrupt_photo_is_dropped(make_snapshot, make_observation, make_payload, corrupt_payload, draw_log):
    snapshot = make_snapshot(observations=[
        make_observation(images=[make_payload(), corrupt_payload, make_payload()]),
    ])
    result = await generate_pdf(snapshot)
    assert result.ok
    assert result.skipped_photos == 1
    assert draw_log[0]["block"].photo_count == 2


@pytest.mark.asyncio
async def test_photo_labels_keep_original_position(make_snapshot, make_observation, make_payload, corrupt_payload,
                                                  text_log):
    snapshot = make_snapshot(observations=[
        make_observation(images=[make_payload(), corrupt_payload, make_payload()]),
    ])
    await generate_pdf(snapshot)
    labels = [text for page, text in text_log if text.startswith("Photo ")]
    assert labels == ["Photo 1", "Photo 3"]


@pytest.mark.asyncio
async def test_photos_beyond_one_page_are_dropped(make_snapshot, make_observation, make_payload, draw_log):
    photo = make_payload((120, 90))
    snapshot = make_snapshot(observations=[
        make_observation(note="Thirteen photos", images=[photo] * 13),
        make_observation(note="Next finding"),
    ])
    result = await generate_pdf(snapshot)
    assert result.ok

    capacity = LayoutEngine().photo_capacity()
    assert result.skipped_photos == 13 - capacity
    assert draw_log[0]["block"].photo_count == capacity
    bottom = LayoutEngine().bottom
    for call in draw_log:
        assert call["top"] + call["block"].height <= bottom + 1e-6


@pytest.mark.asyncio
async def test_plan_bug_is_not_skipped_as_corrupt(three_plan_snapshot, monkeypatch):
    def broken(*args, **kwargs):
        raise RuntimeError("pin renderer broke")

    monkeypatch.setattr("sitereport.services.plan_compositor.draw_pin", broken)
    with pytest.raises(RuntimeError, match="pin renderer broke"):
        await generate_pdf(three_plan_snapshot)

    gate = ExportGate()
    result = await export_report(three_plan_snapshot, gate)
    assert result.status == ExportStatus.FAILED
    assert result.skipped_plans == []
    assert gate.state == GateState.IDLE


@pytest.mark.asyncio
async def test_seven_photos_do_not_overlap_next_finding(make_snapshot, make_observation, make_payload, draw_log):
    snapshot = make_snapshot(observations=[
        make_observation(note="Seven photos", images=[make_payload((200 + i * 10, 150)) for i in range(7)]),
        make_observation(note="Next finding"),
    ])
    result = await generate_pdf(snapshot)
    assert result.ok

    first, second = draw_log
    assert first["block"].photo_count == 7
    assert first["block"].grid_height == pytest.approx(3 * (50 * mm + 8 * mm))
    if second["page"] == first["page"]:
        assert second["top"] >= first["top"] + first["block"].height - 1e-6
    else:
        assert second["page"] == first["page"] + 1
        assert second["top"] == pytest.approx(LayoutEngine().top)


@pytest.mark.asyncio
async def test_findings_numbered_in_canonical_order(three_plan_snapshot, draw_log):
    await generate_pdf(three_plan_snapshot)
    assert [c["block"].finding.number for c in draw_log] == [1, 2, 3]
    assert [c["block"].finding.observation.id for c in draw_log] == [o.id for o in three_plan_snapshot.observations]


@pytest.mark.asyncio
async def test_many_findings_paginate_without_splitting(make_snapshot, make_observation, make_payload, draw_log):
    photo = make_payload((120, 90))
    snapshot = make_snapshot(observations=[
        make_observation(note="Sealant failure at window head " * (i % 5 + 1), images=[photo] * (i % 4))
        for i in range(14)
    ])
    result = await generate_pdf(snapshot)
    assert result.pages.count("findings") > 1

    bottom = LayoutEngine().bottom
    for call in draw_log:
        assert call["top"] + call["block"].height <= bottom + 1e-6


@pytest.mark.asyncio
async def test_long_summary_table_continues_on_next_page(make_snapshot, make_observation):
    snapshot = make_snapshot(observations=[make_observation() for _ in range(60)])
    result = await generate_pdf(snapshot)
    assert result.pages[0] == "cover"
    assert "summary" in result.pages
    assert result.pages.index("summary") < result.pages.index("findings")


@pytest.mark.asyncio
async def test_pdf_is_reproducible(three_plan_snapshot):
    first = await generate_pdf(three_plan_snapshot, generated_at=_GENERATED_AT)
    second = await generate_pdf(three_plan_snapshot, generated_at=_GENERATED_AT)
    assert first.content == second.content


# ── export gate ──────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_export_hands_artifact_to_save(three_plan_snapshot):
    saved = {}

    async def save(filename, content):
        saved[filename] = content

    gate = ExportGate()
    result = await export_report(three_plan_snapshot, gate, save=save)
    assert result.ok
    assert saved == {result.filename: result.content}
    assert gate.state == GateState.IDLE


@pytest.mark.asyncio
async def test_second_run_while_running_is_ignored(three_plan_snapshot):
    gate = ExportGate()
    results = await asyncio.gather(
        export_report(three_plan_snapshot, gate),
        export_report(three_plan_snapshot, gate),
    )
    assert sorted(r.status.value for r in results) == ["busy", "completed"]
    assert gate.state == GateState.IDLE


@pytest.mark.asyncio
async def test_busy_gate_returns_busy(three_plan_snapshot):
    gate = ExportGate()
    assert gate.acquire()
    result = await export_report(three_plan_snapshot, gate)
    assert result.status == ExportStatus.BUSY
    assert gate.running


@pytest.mark.asyncio
async def test_unexpected_error_fails_whole_run(three_plan_snapshot, monkeypatch):
    def boom(self):
        raise RuntimeError("canvas exploded")

    monkeypatch.setattr(ReportAssembler, "render", boom)
    saved = []
    gate = ExportGate()
    result = await export_report(three_plan_snapshot, gate, save=lambda n, c: saved.append(n))
    assert result.status == ExportStatus.FAILED
    assert "canvas exploded" in result.error
    assert result.content == b""
    assert saved == []
    assert gate.state == GateState.IDLE


@pytest.mark.parametrize("name,expected", [
    ("Harbor View Tower", "Harbor_View_Tower_SiteReport.pdf"),
    ("Bldg #4 / Phase-2", "Bldg__4___Phase_2_SiteReport.pdf"),
    ("Résidence", "R_sidence_SiteReport.pdf"),
])
def test_report_filename(name, expected):
    assert report_filename(name) == expected


# ── html ─────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_html_report(three_plan_snapshot):
    html = await generate_report(three_plan_snapshot, generated_at=_GENERATED_AT)
    assert "SITE INSPECTION REPORT" in html
    assert html.count("Map Reference:") == 2
    assert html.index("LEVEL 1") < html.index("ROOF")
    assert "Finding #3" in html
    assert "Overcast" in html


@pytest.mark.asyncio
async def test_html_report_escapes_notes(make_snapshot, make_observation):
    snapshot = make_snapshot(observations=[make_observation(note="<script>alert(1)</script>")])
    html = await generate_report(snapshot)
    assert "<script>alert(1)</script>" not in html


@pytest.mark.asyncio
async def test_html_nothing_to_export(make_snapshot):
    assert await generate_report(make_snapshot()) is None


@pytest.mark.asyncio
async def test_html_drops_corrupt_photos(make_snapshot, make_observation, make_payload, corrupt_payload):
    snapshot = make_snapshot(observations=[
        make_observation(images=[make_payload(), corrupt_payload, make_payload()]),
    ])
    html = await generate_report(snapshot)
    assert corrupt_payload not in html
    assert "Photo 1" in html
    assert "Photo 2" not in html
    assert "Photo 3" in html
