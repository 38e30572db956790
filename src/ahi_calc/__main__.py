"""CLI entry point: ``python -m ahi_calc --time N2 22:00 23:30 --event N2 "Obstructive Apnea" 2``."""

from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path

from .ledger import EVENT_TYPES, SleepStageLedger, parse_time


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ahi-calc",
        description="Apnea-Hypopnea Index from per-stage sleep times and event counts.",
    )
    parser.add_argument(
        "--time", nargs=3, action="append", default=[],
        metavar=("STAGE", "START", "END"),
        help="Stage interval as 24-hour HH:MM times (repeatable)",
    )
    parser.add_argument(
        "--event", nargs=3, action="append", default=[],
        metavar=("STAGE", "TYPE", "COUNT"),
        help=f"Event count for a stage; TYPE is one of: {', '.join(EVENT_TYPES)} (repeatable)",
    )
    parser.add_argument(
        "--inactive", action="append", default=[], metavar="STAGE",
        help="Exclude a stage from the calculation (repeatable)",
    )
    parser.add_argument(
        "-o", "--output-dir", default=None,
        help="If given, write summary.json and stages.png here",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    return parser


def apply_args(ledger: SleepStageLedger, args: argparse.Namespace) -> None:
    """Replay CLI edits through the ledger's mutation API.

    Raises ``ValueError`` for unknown stages, event types, counts or times.
    """
    for stage, start, end in args.time:
        index = ledger.index_of(stage)
        ledger.set_time(index, "start", parse_time(start))
        ledger.set_time(index, "end", parse_time(end))

    for stage, label, count in args.event:
        index = ledger.index_of(stage)
        if label not in EVENT_TYPES:
            raise ValueError(f"Unknown event type: {label!r}")
        try:
            n = int(count)
        except ValueError:
            raise ValueError(f"Event count must be an integer, got {count!r}") from None
        delta = 1 if n > 0 else -1
        for _ in range(abs(n)):
            ledger.adjust_event_count(index, label, delta)

    # Applied last: deactivation wipes the stage
    for stage in args.inactive:
        index = ledger.index_of(stage)
        if ledger.rows[index].active:
            ledger.toggle_active(index)


def main(argv: list[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")

    from .report import build_summary, save_chart, save_summary

    ledger = SleepStageLedger()
    try:
        apply_args(ledger, args)
    except ValueError as exc:
        parser.error(str(exc))

    view = ledger.view
    for notice in view.errors:
        print(f"  Error: {notice.message}")
    for notice in view.warnings:
        print(f"  Warning: {notice.message}")

    summary = build_summary(ledger)
    print(json.dumps(summary, indent=2))

    if args.output_dir is not None:
        output_dir = Path(args.output_dir)
        save_summary(ledger, output_dir / "summary.json")
        save_chart(ledger, output_dir / "stages.png")
        print(f"\nOutputs saved to {output_dir}/")


if __name__ == "__main__":
    main()
