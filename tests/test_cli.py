"""Tests for the ``python -m ahi_calc`` entry point."""

import json

import pytest

from ahi_calc.__main__ import apply_args, build_parser, main
from ahi_calc.ledger import SleepStageLedger


def _run(argv):
    ledger = SleepStageLedger()
    apply_args(ledger, build_parser().parse_args(argv))
    return ledger


def test_time_and_events():
    ledger = _run([
        "--time", "N2", "22:00", "23:30",
        "--event", "N2", "Obstructive Apnea", "2",
    ])
    assert ledger.view.ahi == "1.33"


def test_negative_count_floors_at_zero():
    ledger = _run([
        "--event", "R", "Central Apnea", "1",
        "--event", "R", "Central Apnea", "-3",
    ])
    assert ledger.rows[4].events["Central Apnea"] == 0


def test_inactive_stage_is_wiped():
    ledger = _run([
        "--time", "N3", "01:00", "02:00",
        "--event", "N3", "Mixed Apnea", "4",
        "--inactive", "N3",
    ])
    row = ledger.rows[3]
    assert not row.active
    assert row.total_events == 0
    assert row.start_time is None


def test_unknown_stage_rejected():
    with pytest.raises(ValueError, match="Unknown stage"):
        _run(["--time", "N4", "22:00", "23:00"])


def test_unknown_event_rejected():
    with pytest.raises(ValueError, match="Unknown event type"):
        _run(["--event", "N2", "Snore", "1"])


def test_main_prints_summary(capsys):
    main(["--time", "N2", "22:00", "23:00", "--event", "N2", "Central Hypopnea", "3"])
    out = capsys.readouterr().out
    summary = json.loads(out[out.index("{"):])
    assert summary["ahi"] == "3.00"
    assert summary["severity"] == "Normal"


def test_main_reports_notices(capsys):
    main(["--time", "N1", "23:00", "22:00"])
    out = capsys.readouterr().out
    assert "Error: End time cannot be earlier than start time for stage N1" in out
    assert "Warning: Insufficient sleep duration" in out


def test_main_bad_time_exits():
    with pytest.raises(SystemExit):
        main(["--time", "N2", "late", "23:00"])


def test_main_writes_outputs(tmp_path):
    main([
        "--time", "N2", "22:00", "23:00",
        "--event", "N2", "Obstructive Apnea", "1",
        "-o", str(tmp_path),
    ])
    assert (tmp_path / "summary.json").is_file()
    assert (tmp_path / "stages.png").is_file()
