"""Scan engine: data model, probe executor and sweep controller."""

from .models import (
    Completed,
    LinkConfig,
    Parity,
    ProbeOutcome,
    ProbingAddress,
    Responded,
    ScanEvent,
    ScanReport,
    ScanSpec,
)
from .probe import probe
from .sweep import ProgressSink, SweepController, SweepState, sweep

__all__ = [
    "Completed",
    "LinkConfig",
    "Parity",
    "ProbeOutcome",
    "ProbingAddress",
    "ProgressSink",
    "Responded",
    "ScanEvent",
    "ScanReport",
    "ScanSpec",
    "SweepController",
    "SweepState",
    "probe",
    "sweep",
]
