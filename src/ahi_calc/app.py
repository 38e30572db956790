"""Streamlit UI for the Apnea-Hypopnea Index calculator."""

from __future__ import annotations

import json
from datetime import timedelta

import streamlit as st

from ahi_calc.ledger import EVENT_TYPES, STAGES, Notice, SleepStageLedger

TIME_STEP = timedelta(minutes=5)
LABEL_WIDTH = 2


def _ledger() -> SleepStageLedger:
    return st.session_state["ledger"]


def _init_state() -> None:
    if "ledger" in st.session_state:
        return
    st.session_state["ledger"] = SleepStageLedger()
    st.session_state["dismissed"] = set()
    _sync_widgets()


def _sync_widgets() -> None:
    """Push ledger values back into widget state (after reset / deactivate)."""
    for i, row in enumerate(_ledger().rows):
        st.session_state[f"active_{i}"] = row.active
        st.session_state[f"start_{i}"] = row.start_time
        st.session_state[f"end_{i}"] = row.end_time


def _edited() -> None:
    # A dismissed notice comes back if its condition still holds
    st.session_state["dismissed"] = set()


# ---------------------------------------------------------------------------
# Widget callbacks: one ledger mutation each
# ---------------------------------------------------------------------------
def _on_time(index: int, which: str) -> None:
    _ledger().set_time(index, which, st.session_state[f"{which}_{index}"])
    _edited()


def _on_count(index: int, label: str, delta: int) -> None:
    _ledger().adjust_event_count(index, label, delta)
    _edited()


def _on_toggle(index: int) -> None:
    _ledger().toggle_active(index)
    _sync_widgets()
    _edited()


def _on_reset() -> None:
    _ledger().reset()
    _sync_widgets()
    _edited()


def _dismiss(notice: Notice) -> None:
    st.session_state["dismissed"].add(notice)


# ---------------------------------------------------------------------------
# Rendering
# ---------------------------------------------------------------------------
def _render_notices() -> None:
    view = _ledger().view
    dismissed = st.session_state["dismissed"]
    for n, notice in enumerate(view.notices):
        if notice in dismissed:
            continue
        body, close = st.columns([24, 1])
        with body:
            if notice.kind == "error":
                st.error(notice.message)
            else:
                st.warning(notice.message)
        close.button(
            "✕", key=f"dismiss_{n}_{notice.code}_{notice.stage}",
            on_click=_dismiss, args=(notice,), help="Dismiss",
        )


def _render_result() -> None:
    from ahi_calc.report import classify_severity, format_result_line

    view = _ledger().view
    if view.total_events > 0 and view.total_duration > 0:
        st.markdown(
            f"<h3 style='text-align:center'>AHI: {view.ahi}</h3>",
            unsafe_allow_html=True,
        )
        st.markdown(
            f"<p style='text-align:center'>{format_result_line(view)} "
            f"&mdash; {classify_severity(view.ahi_value)}</p>",
            unsafe_allow_html=True,
        )


def _render_grid() -> None:
    ledger = _ledger()
    rows = ledger.rows
    view = ledger.view
    widths = [LABEL_WIDTH] + [3] * len(STAGES)

    # Header: stage label + active switch
    cells = st.columns(widths)
    cells[0].markdown("**Stage**")
    for i, stage in enumerate(STAGES):
        cells[i + 1].toggle(stage, key=f"active_{i}", on_change=_on_toggle, args=(i,))

    # Start / end times
    for which, caption in (("start", "Start Time"), ("end", "End Time")):
        cells = st.columns(widths)
        cells[0].markdown(caption)
        for i, row in enumerate(rows):
            cells[i + 1].time_input(
                f"{caption} {row.stage}",
                key=f"{which}_{i}",
                step=TIME_STEP,
                disabled=not row.active,
                on_change=_on_time,
                args=(i, which),
                label_visibility="collapsed",
            )
            if any(n.kind == "error" for n in view.notices_for(row.stage)):
                cells[i + 1].caption(":red[invalid interval]")

    # Duration
    cells = st.columns(widths)
    cells[0].markdown("Duration (hrs)")
    for i, row in enumerate(rows):
        cells[i + 1].markdown(f"{row.duration:.2f}" if row.active else "-")

    # Event counters
    for label in EVENT_TYPES:
        cells = st.columns(widths)
        cells[0].markdown(label)
        for i, row in enumerate(rows):
            minus, count, plus = cells[i + 1].columns(3)
            minus.button(
                "−", key=f"dec_{i}_{label}", disabled=not row.active,
                on_click=_on_count, args=(i, label, -1),
            )
            count.markdown(str(row.events[label]))
            plus.button(
                "+", key=f"inc_{i}_{label}", disabled=not row.active,
                on_click=_on_count, args=(i, label, 1),
            )


def _render_exports() -> None:
    from ahi_calc.report import build_summary, render_chart

    ledger = _ledger()
    png = render_chart(ledger)
    with st.expander("Stage chart"):
        st.image(png)

    json_str = json.dumps(build_summary(ledger), indent=2)
    col1, col2 = st.columns(2)
    col1.download_button(
        "Download JSON",
        data=json_str,
        file_name="ahi_summary.json",
        mime="application/json",
    )
    col2.download_button(
        "Download chart",
        data=png,
        file_name="ahi_stages.png",
        mime="image/png",
    )


def main() -> None:
    st.set_page_config(page_title="AHI Calculator", layout="wide")
    _init_state()

    st.title("Apnea-Hypopnea Index Calculator")

    _render_notices()
    _render_result()
    _render_grid()

    st.markdown("---")
    col1, col2 = st.columns([1, 5])
    with col1:
        st.button("Reset", on_click=_on_reset)
    with col2:
        _render_exports()


if __name__ == "__main__":
    main()
