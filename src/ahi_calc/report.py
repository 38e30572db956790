"""Generate the per-stage chart and JSON summary for a ledger."""

from __future__ import annotations

import json
import logging
from io import BytesIO
from pathlib import Path

import matplotlib
matplotlib.use("Agg")
import matplotlib.pyplot as plt
import matplotlib.patches as mpatches
import numpy as np

from .ledger import EVENT_TYPES, WAKE_STAGE, DerivedView, Notice, SleepStageLedger

log = logging.getLogger(__name__)

# AHI severity bands (events/hour), upper bounds exclusive
SEVERITY_BANDS: tuple[tuple[float, str], ...] = (
    (5.0, "Normal"),
    (15.0, "Mild"),
    (30.0, "Moderate"),
)
SEVERITY_MAX = "Severe"

EVENT_COLORS = {
    "Obstructive Apnea": "#F44336",
    "Central Apnea": "#E91E63",
    "Mixed Apnea": "#9C27B0",
    "Obstructive Hypopnea": "#FF9800",
    "Central Hypopnea": "#FFC107",
    "Mixed Hypopnea": "#795548",
}
SLEEP_COLOR = "#2196F3"
WAKE_COLOR = "#B0BEC5"


def classify_severity(ahi: float | None) -> str | None:
    """Map an AHI to Normal / Mild / Moderate / Severe (``None`` if unset)."""
    if ahi is None:
        return None
    for upper, label in SEVERITY_BANDS:
        if ahi < upper:
            return label
    return SEVERITY_MAX


def format_result_line(view: DerivedView) -> str:
    """Banner text shown under the AHI headline."""
    return (
        f"( respiratory events = {view.total_events} / "
        f"sleep duration = {view.total_duration:.2f} )"
    )


def _fmt_time(value) -> str | None:
    return value.strftime("%H:%M") if value is not None else None


def _notice_dict(notice: Notice) -> dict:
    return {"code": notice.code, "stage": notice.stage, "message": notice.message}


# ---------------------------------------------------------------------------
# JSON summary
# ---------------------------------------------------------------------------
def build_summary(ledger: SleepStageLedger) -> dict:
    """Build a JSON-serialisable summary dict."""
    view = ledger.view
    rows = ledger.rows

    event_totals = {label: 0 for label in EVENT_TYPES}
    for row in rows:
        if row.active:
            for label, count in row.events.items():
                event_totals[label] += count

    return {
        "ahi": view.ahi,
        "severity": classify_severity(view.ahi_value),
        "total_events": view.total_events,
        "total_duration_hours": round(view.total_duration, 2),
        "event_totals": event_totals,
        "stages": [
            {
                "stage": row.stage,
                "active": row.active,
                "start_time": _fmt_time(row.start_time),
                "end_time": _fmt_time(row.end_time),
                "duration_hours": round(row.duration, 2),
                "events": dict(row.events),
            }
            for row in rows
        ],
        "errors": [_notice_dict(n) for n in view.errors],
        "warnings": [_notice_dict(n) for n in view.warnings],
    }


def save_summary(ledger: SleepStageLedger, path: str | Path) -> dict:
    """Write the ledger's summary (notices included) as JSON and return it."""
    summary = build_summary(ledger)
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(summary, indent=2))
    log.info(
        "Summary written to %s (ahi=%r, %d errors, %d warnings)",
        path, summary["ahi"], len(summary["errors"]), len(summary["warnings"]),
    )
    return summary


# ---------------------------------------------------------------------------
# Stage chart
# ---------------------------------------------------------------------------
def create_stage_chart(
    ledger: SleepStageLedger,
    *,
    title: str = "Sleep Stages – Duration & Respiratory Events",
) -> plt.Figure:
    """Two-panel bar chart: hours per stage, then stacked event counts.

    W is drawn greyed out since it never counts toward sleep duration.
    Inactive stages are drawn empty.
    """
    rows = ledger.rows
    labels = [r.stage for r in rows]
    x = np.arange(len(rows))

    fig, (ax_dur, ax_ev) = plt.subplots(2, 1, figsize=(10, 7), sharex=True)

    # --- Panel 1: duration ---
    durations = [r.duration if r.active else 0.0 for r in rows]
    colors = [WAKE_COLOR if r.stage == WAKE_STAGE else SLEEP_COLOR for r in rows]
    ax_dur.bar(x, durations, color=colors)
    ax_dur.set_ylabel("Duration (h)")
    ax_dur.set_title(title, fontsize=12)
    sleep_patch = mpatches.Patch(color=SLEEP_COLOR, label="Counts toward sleep")
    wake_patch = mpatches.Patch(color=WAKE_COLOR, label="Wake (excluded)")
    ax_dur.legend(handles=[sleep_patch, wake_patch], loc="upper right", fontsize=8)

    # --- Panel 2: events, stacked by type ---
    bottom = np.zeros(len(rows))
    for label in EVENT_TYPES:
        counts = np.array([r.events[label] if r.active else 0 for r in rows], dtype=float)
        ax_ev.bar(x, counts, bottom=bottom, color=EVENT_COLORS[label], label=label)
        bottom += counts
    ax_ev.set_ylabel("Events")
    ax_ev.legend(loc="upper right", fontsize=7, ncol=2)

    ax_ev.set_xticks(x)
    ax_ev.set_xticklabels(
        [lbl if r.active else f"{lbl}\n(off)" for lbl, r in zip(labels, rows)]
    )
    ax_ev.set_xlabel("Stage")
    fig.tight_layout()
    return fig


def render_chart(ledger: SleepStageLedger, fmt: str = "png", dpi: int = 150) -> bytes:
    """Draw the stage chart for *ledger* and return the encoded image.

    The figure is closed before returning.
    """
    fig = create_stage_chart(ledger)
    try:
        buf = BytesIO()
        fig.savefig(buf, format=fmt, dpi=dpi, bbox_inches="tight")
        return buf.getvalue()
    finally:
        plt.close(fig)


def save_chart(ledger: SleepStageLedger, path: str | Path, dpi: int = 150) -> Path:
    """Write the stage chart as an image; format follows the file suffix."""
    path = Path(path)
    fmt = path.suffix.lstrip(".").lower() or "png"
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(render_chart(ledger, fmt=fmt, dpi=dpi))
    log.info("Chart for %d active stages written to %s",
             sum(r.active for r in ledger.rows), path)
    return path
