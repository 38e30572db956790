"""Unit tests for the JSON summary and stage chart."""

import json
from datetime import time

import matplotlib.pyplot as plt
import pytest

from ahi_calc.ledger import EVENT_TYPES, STAGES, SleepStageLedger
from ahi_calc.report import (
    build_summary,
    classify_severity,
    create_stage_chart,
    format_result_line,
    render_chart,
    save_chart,
    save_summary,
)

N1, N2, N3 = 1, 2, 3


def _scored_ledger() -> SleepStageLedger:
    ledger = SleepStageLedger()
    ledger.set_time(N2, "start", time(22, 0))
    ledger.set_time(N2, "end", time(23, 30))
    ledger.adjust_event_count(N2, "Obstructive Apnea", 1)
    ledger.adjust_event_count(N2, "Obstructive Apnea", 1)
    ledger.set_time(N1, "start", time(23, 0))
    ledger.set_time(N1, "end", time(22, 0))
    return ledger


# ---------------------------------------------------------------------------
# classify_severity
# ---------------------------------------------------------------------------
@pytest.mark.parametrize(
    "ahi, expected",
    [(0.5, "Normal"), (5.0, "Mild"), (14.99, "Mild"), (15.0, "Moderate"), (30.0, "Severe")],
)
def test_severity_bands(ahi, expected):
    assert classify_severity(ahi) == expected


def test_severity_unset():
    assert classify_severity(None) is None


# ---------------------------------------------------------------------------
# build_summary
# ---------------------------------------------------------------------------
def test_summary_values():
    summary = build_summary(_scored_ledger())
    assert summary["ahi"] == "1.33"
    assert summary["severity"] == "Normal"
    assert summary["total_events"] == 2
    assert summary["total_duration_hours"] == 1.5
    assert summary["event_totals"]["Obstructive Apnea"] == 2
    assert set(summary["event_totals"]) == set(EVENT_TYPES)
    assert [s["stage"] for s in summary["stages"]] == list(STAGES)


def test_summary_stage_rows():
    stages = build_summary(_scored_ledger())["stages"]
    assert stages[N2]["start_time"] == "22:00"
    assert stages[N2]["end_time"] == "23:30"
    assert stages[N2]["duration_hours"] == 1.5
    assert stages[N1]["duration_hours"] == 0.0
    assert stages[0]["start_time"] is None


def test_summary_notices_are_structured():
    summary = build_summary(_scored_ledger())
    assert summary["warnings"] == []
    (error,) = summary["errors"]
    assert error["code"] == "inverted_interval"
    assert error["stage"] == "N1"
    assert "N1" in error["message"]


def test_summary_blank_ahi():
    summary = build_summary(SleepStageLedger())
    assert summary["ahi"] == ""
    assert summary["severity"] is None
    assert [w["stage"] for w in summary["warnings"]] == [None, None]


def test_summary_excludes_inactive_events():
    ledger = _scored_ledger()
    ledger.adjust_event_count(N3, "Central Apnea", 1)
    ledger.toggle_active(N3)
    summary = build_summary(ledger)
    assert summary["event_totals"]["Central Apnea"] == 0
    assert summary["stages"][N3]["active"] is False


def test_summary_is_json_serialisable():
    json.dumps(build_summary(_scored_ledger()))


def test_save_summary(tmp_path):
    """The written file carries the notices, not just the totals."""
    path = tmp_path / "out" / "summary.json"
    returned = save_summary(_scored_ledger(), path)
    written = json.loads(path.read_text())
    assert written == returned
    assert written["ahi"] == "1.33"
    assert [e["stage"] for e in written["errors"]] == ["N1"]


def test_result_line():
    line = format_result_line(_scored_ledger().view)
    assert line == "( respiratory events = 2 / sleep duration = 1.50 )"


# ---------------------------------------------------------------------------
# Stage chart
# ---------------------------------------------------------------------------
def test_chart_has_two_panels():
    fig = create_stage_chart(_scored_ledger())
    assert len(fig.axes) == 2
    plt.close(fig)


def test_render_chart_png_closes_figure():
    """Rendering returns PNG bytes and leaves no figure open."""
    plt.close("all")
    data = render_chart(SleepStageLedger())
    assert data[:8] == b"\x89PNG\r\n\x1a\n"
    assert plt.get_fignums() == []


def test_render_chart_svg():
    data = render_chart(_scored_ledger(), fmt="svg")
    assert b"<svg" in data


def test_save_chart(tmp_path):
    path = save_chart(_scored_ledger(), tmp_path / "charts" / "stages.png")
    assert path.read_bytes()[:4] == b"\x89PNG"
