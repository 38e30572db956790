"""Apnea-Hypopnea Index calculator built on a five-stage sleep ledger."""

from .ledger import (
    EVENT_TYPES,
    STAGES,
    WAKE_STAGE,
    DerivedView,
    Notice,
    SleepStageLedger,
    StageRow,
    parse_time,
)

__all__ = [
    "EVENT_TYPES",
    "STAGES",
    "WAKE_STAGE",
    "DerivedView",
    "Notice",
    "SleepStageLedger",
    "StageRow",
    "parse_time",
]
