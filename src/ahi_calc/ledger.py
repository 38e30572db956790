"""Sleep-stage ledger: per-stage intervals and event counts -> AHI.

The ledger holds exactly one row per sleep stage (W, N1, N2, N3, R).  Each
row carries an optional start/end time of day, a derived duration in hours,
a count per respiratory event type and an *active* flag.

After every edit the whole derived view is rebuilt from scratch:

  - **total_events**:   sum of all counts over active rows.
  - **total_duration**: sum of durations over active rows, excluding W
                        (wake time is never sleep time).
  - **AHI**:            total_events / total_duration, two decimals, or blank
                        when either total is zero.
  - **warnings**:       valid but incomplete data (no sleep time, no events).
  - **errors**:         inverted intervals, one per offending stage.

Nothing here raises for questionable clinical input: inverted intervals and
empty totals become notices, counts floor at zero.  Only API misuse (bad
index, unknown label) raises.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from datetime import date, datetime, time
from typing import Literal

log = logging.getLogger(__name__)

STAGES: tuple[str, ...] = ("W", "N1", "N2", "N3", "R")
WAKE_STAGE = "W"

EVENT_TYPES: tuple[str, ...] = (
    "Obstructive Apnea",
    "Central Apnea",
    "Mixed Apnea",
    "Obstructive Hypopnea",
    "Central Hypopnea",
    "Mixed Hypopnea",
)

Endpoint = Literal["start", "end"]
NoticeKind = Literal["warning", "error"]

# Notice codes
INSUFFICIENT_SLEEP = "insufficient_sleep_duration"
NO_EVENTS = "no_respiratory_events"
INVERTED_INTERVAL = "inverted_interval"


def _empty_counts() -> dict[str, int]:
    return {label: 0 for label in EVENT_TYPES}


def parse_time(text: str | None) -> time | None:
    """Parse ``HH:MM`` or ``HH:MM:SS`` (24-hour).  Blank -> ``None``."""
    if text is None or not text.strip():
        return None
    text = text.strip()
    for fmt in ("%H:%M", "%H:%M:%S"):
        try:
            return datetime.strptime(text, fmt).time()
        except ValueError:
            continue
    raise ValueError(f"Invalid time of day: {text!r} (expected HH:MM)")


def interval_hours(start: time, end: time) -> float:
    """Signed hour difference ``end - start`` on the same day."""
    delta = datetime.combine(date.min, end) - datetime.combine(date.min, start)
    return delta.total_seconds() / 3600.0


@dataclass
class StageRow:
    """One sleep stage's interval and event counts."""

    stage: str
    start_time: time | None = None
    end_time: time | None = None
    duration: float = 0.0
    events: dict[str, int] = field(default_factory=_empty_counts)
    active: bool = True

    @property
    def total_events(self) -> int:
        return sum(self.events.values())

    @property
    def is_inverted(self) -> bool:
        """Both endpoints set and end is not after start."""
        return (
            self.start_time is not None
            and self.end_time is not None
            and self.end_time <= self.start_time
        )

    def snapshot(self) -> StageRow:
        return replace(self, events=dict(self.events))


@dataclass(frozen=True)
class Notice:
    """A warning or error, optionally attributed to one stage."""

    kind: NoticeKind
    code: str
    message: str
    stage: str | None = None

    def __str__(self) -> str:
        return self.message


@dataclass(frozen=True)
class DerivedView:
    """Read-only projection of the ledger, rebuilt after every edit."""

    total_events: int = 0
    total_duration: float = 0.0
    ahi: str = ""
    warnings: tuple[Notice, ...] = ()
    errors: tuple[Notice, ...] = ()

    @property
    def ahi_value(self) -> float | None:
        return float(self.ahi) if self.ahi else None

    @property
    def warning_messages(self) -> list[str]:
        return [n.message for n in self.warnings]

    @property
    def error_messages(self) -> list[str]:
        return [n.message for n in self.errors]

    @property
    def notices(self) -> list[Notice]:
        """Errors first, then warnings (display order)."""
        return [*self.errors, *self.warnings]

    def notices_for(self, stage: str) -> list[Notice]:
        return [n for n in self.notices if n.stage == stage]


# ---------------------------------------------------------------------------
# Derivation
# ---------------------------------------------------------------------------
def derive_view(rows: tuple[StageRow, ...] | list[StageRow]) -> DerivedView:
    """Compute totals, AHI, warnings and errors from *rows*.

    Pure function of its input; the ledger calls it after every edit.
    """
    active = [r for r in rows if r.active]

    total_events = sum(r.total_events for r in active)
    total_duration = sum(r.duration for r in active if r.stage != WAKE_STAGE)

    warnings: list[Notice] = []
    if total_duration == 0:
        warnings.append(Notice(
            "warning",
            INSUFFICIENT_SLEEP,
            "Insufficient sleep duration: please enter some time asleep (not W)",
        ))
    if total_events == 0:
        warnings.append(Notice(
            "warning",
            NO_EVENTS,
            "No respiratory events: please enter at least one respiratory event",
        ))

    errors = tuple(
        Notice(
            "error",
            INVERTED_INTERVAL,
            f"End time cannot be earlier than start time for stage {r.stage}",
            stage=r.stage,
        )
        for r in active
        if r.is_inverted
    )

    # Blank, never "0.00", when either total is zero
    ahi = ""
    if total_duration > 0 and total_events > 0:
        ahi = f"{total_events / total_duration:.2f}"

    return DerivedView(
        total_events=total_events,
        total_duration=total_duration,
        ahi=ahi,
        warnings=tuple(warnings),
        errors=errors,
    )


# ---------------------------------------------------------------------------
# Ledger
# ---------------------------------------------------------------------------
class SleepStageLedger:
    """Fixed five-row ledger with a single mutation API.

    Every mutating call finishes with :meth:`recompute`, so :attr:`view`
    always reflects the rows as they are after the last edit.
    """

    def __init__(self) -> None:
        self._rows: list[StageRow] = []
        self._view = DerivedView()
        self.reset()

    # -- read side ---------------------------------------------------------
    @property
    def rows(self) -> tuple[StageRow, ...]:
        return self.get_ledger()

    @property
    def view(self) -> DerivedView:
        return self._view

    def get_ledger(self) -> tuple[StageRow, ...]:
        """Copies of the five rows in stage order."""
        return tuple(r.snapshot() for r in self._rows)

    def get_derived_view(self) -> DerivedView:
        return self._view

    def index_of(self, stage: str) -> int:
        try:
            return STAGES.index(stage)
        except ValueError:
            raise ValueError(
                f"Unknown stage: {stage!r} (expected one of {', '.join(STAGES)})"
            ) from None

    # -- write side --------------------------------------------------------
    def reset(self) -> None:
        """Back to the initial state: all stages active, nothing entered."""
        self._rows = [StageRow(stage) for stage in STAGES]
        self.recompute()

    def set_time(self, index: int, which: Endpoint, value: time | None) -> None:
        """Set or clear one endpoint of a stage interval.

        An inverted interval keeps both stored times (so they can be fixed)
        but gets zero duration and shows up in :attr:`DerivedView.errors`.
        """
        row = self._row(index)
        if which not in ("start", "end"):
            raise ValueError(f"Unknown endpoint: {which!r} (expected 'start' or 'end')")
        if value is not None and not isinstance(value, time):
            raise TypeError(f"Expected datetime.time or None, got {type(value).__name__}")
        if value is not None and value.tzinfo is not None:
            # Wall-clock only; aware and naive times cannot be compared
            value = value.replace(tzinfo=None)
        if not row.active:
            log.debug("Ignoring %s time on inactive stage %s", which, row.stage)
            return

        if which == "start":
            row.start_time = value
        else:
            row.end_time = value

        if row.start_time is not None and row.end_time is not None:
            hours = interval_hours(row.start_time, row.end_time)
            row.duration = hours if hours > 0 else 0.0
        else:
            row.duration = 0.0

        log.debug(
            "Stage %s: %s=%s -> duration %.2f h", row.stage, which, value, row.duration
        )
        self.recompute()

    def adjust_event_count(self, index: int, label: str, delta: int) -> None:
        """Increment or decrement one event counter, flooring at zero."""
        row = self._row(index)
        if label not in EVENT_TYPES:
            raise ValueError(f"Unknown event type: {label!r}")
        if delta not in (1, -1):
            raise ValueError(f"delta must be +1 or -1, got {delta!r}")
        if not row.active:
            log.debug("Ignoring %s change on inactive stage %s", label, row.stage)
            return

        row.events[label] = max(0, row.events[label] + delta)
        log.debug("Stage %s: %s -> %d", row.stage, label, row.events[label])
        self.recompute()

    def toggle_active(self, index: int) -> None:
        """Flip a stage's active flag.

        Deactivating wipes the row's times, duration and counts.
        Reactivating restores nothing.
        """
        row = self._row(index)
        row.active = not row.active
        if not row.active:
            row.start_time = None
            row.end_time = None
            row.duration = 0.0
            row.events = _empty_counts()
        log.debug("Stage %s active=%s", row.stage, row.active)
        self.recompute()

    def recompute(self) -> DerivedView:
        self._view = derive_view(self._rows)
        return self._view

    # -- helpers -----------------------------------------------------------
    def _row(self, index: int) -> StageRow:
        if isinstance(index, bool) or not isinstance(index, int):
            raise TypeError(f"Stage index must be an int, got {type(index).__name__}")
        if not 0 <= index < len(self._rows):
            raise IndexError(f"Stage index out of range: {index}")
        return self._rows[index]
