"""
Console rendering of a sweep: header, live responder lines, progress and the
final summary.

ConsoleReporter is a progress sink; the format_* helpers are pure and return
strings so they can be reused by other front-ends.
"""

import logging
import sys
from typing import Optional, TextIO

from ..scanner.models import (
    Completed,
    LinkConfig,
    ProbingAddress,
    Responded,
    ScanEvent,
    ScanReport,
    ScanSpec,
)

logger = logging.getLogger(__name__)

RULE = "=" * 50

NO_RESPONDER_HINTS = (
    "Serial port configuration (device path, permissions, adapter in use)",
    "Physical wiring (power, RS485 A/B polarity, termination)",
    "Link parameters (baud rate, parity, stop bits)",
)


def format_scan_header(link: LinkConfig, device_path: str, spec: ScanSpec) -> str:
    """Describe what is about to be scanned."""
    lines = [
        "Modbus ID sweep (function 3: Read Holding Registers)",
        f"Device: {device_path}",
        f"Link: {link.baud_rate} bps, {link.framing}, timeout {int(link.byte_timeout * 1000)} ms",
        f"Unit IDs: {spec.start_address} - {spec.end_address} ({spec.total} candidates)",
        f"Probe register: {spec.probe_register} (count {spec.register_count})",
    ]
    return "\n".join(lines)


def format_responder_line(event: Responded) -> str:
    """One line for a unit that just answered."""
    return (
        f"ID {event.address} - RESPONDS - register {event.register}: "
        f"{event.first_value} ({event.elapsed_ms} ms)"
    )


def format_summary(report: ScanReport) -> str:
    """
    Format the end-of-sweep summary.

    Lists every responder with the first value it returned. With no
    responders, lists the usual causes to check instead.

    Args:
        report: Final (or partial, if cancelled) report.

    Returns:
        Formatted multi-line string.
    """
    spec = report.spec
    lines: list[str] = [RULE]
    if report.cancelled:
        lines.append(
            f"Scan cancelled after {report.total_probed} of {spec.total} addresses"
        )
    else:
        lines.append("Scan completed")
    lines.append(f"Candidates probed: {report.total_probed}")
    lines.append(f"Devices found: {report.responder_count}")

    if report.responding:
        lines.append("Responding IDs:")
        for address, values in report.responding:
            lines.append(f"  ID {address}: register {spec.probe_register} = {values[0]}")
    else:
        lines.append("No devices found")
        lines.append("Check:")
        lines.extend(f"  - {hint}" for hint in NO_RESPONDER_HINTS)

    if report.transport_failures:
        lines.append(
            f"Serial port could not be opened for {report.transport_failures} "
            f"of {report.total_probed} probes"
        )
    lines.append(RULE)
    return "\n".join(lines)


class ConsoleReporter:
    """Progress sink printing responders as they are found and a final summary.

    On an interactive terminal a single progress line shows the current
    position; it is overwritten in place and cleared before any other output.
    """

    def __init__(self, stream: Optional[TextIO] = None, *, progress: bool = True):
        """
        Args:
            stream: Output stream. Defaults to the current sys.stdout.
            progress: Show the in-place progress line (only on a TTY).
        """
        self._stream = stream
        self._progress = progress
        self._progress_width = 0

    @property
    def _out(self) -> TextIO:
        return self._stream if self._stream is not None else sys.stdout

    def __call__(self, event: ScanEvent) -> None:
        if isinstance(event, ProbingAddress):
            self._on_probing(event)
        elif isinstance(event, Responded):
            self._print(format_responder_line(event))
        elif isinstance(event, Completed):
            self._print(format_summary(event.report))

    def _on_probing(self, event: ProbingAddress) -> None:
        logger.debug("Probing ID %d (%d/%d)", event.address, event.position, event.total)
        if not (self._progress and self._out.isatty()):
            return
        width = len(str(event.total))
        percent = event.position * 100 // event.total
        text = f"[{event.position:>{width}}/{event.total}] {percent:3d}% - ID: {event.address}"
        self._out.write("\r" + text.ljust(self._progress_width))
        self._out.flush()
        self._progress_width = len(text)

    def _clear_progress(self) -> None:
        if self._progress_width:
            self._out.write("\r" + " " * self._progress_width + "\r")
            self._progress_width = 0

    def _print(self, text: str) -> None:
        self._clear_progress()
        print(text, file=self._out, flush=True)
        for line in text.splitlines():
            logger.info("%s", line)
