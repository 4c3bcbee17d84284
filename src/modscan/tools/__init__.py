"""Command-line tools: the unit-address scanner and its console reporter."""

from .address_scanner import run_scan
from .report import (
    ConsoleReporter,
    format_responder_line,
    format_scan_header,
    format_summary,
)

__all__ = [
    "ConsoleReporter",
    "format_responder_line",
    "format_scan_header",
    "format_summary",
    "run_scan",
]
