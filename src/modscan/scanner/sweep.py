"""
Sweep controller: probes every address of a ScanSpec in ascending order,
one at a time, with a bus-settling delay between probes.

The bus is half-duplex and shared, so probes never overlap. Progress is
published to an optional sink (any callable taking one event); the
controller does not depend on what the sink does with it.
"""

import asyncio
import logging
import time
from enum import Enum, auto
from typing import Callable, Optional

from ..bus.transport import TransportOpener, make_serial_opener
from ..errors import TransportOpenError
from .models import (
    Completed,
    LinkConfig,
    ProbeOutcome,
    ProbingAddress,
    Responded,
    ScanEvent,
    ScanReport,
    ScanSpec,
)
from .probe import probe

logger = logging.getLogger(__name__)

ProgressSink = Callable[[ScanEvent], None]


class SweepState(Enum):
    NOT_STARTED = auto()
    PROBING = auto()
    COMPLETED = auto()
    CANCELLED = auto()


class SweepController:
    """Runs one sweep over the address range and owns its ScanReport.

    cancel() stops the sweep at the next suspension point: during the
    inter-probe delay, or once the in-flight probe has finished within its
    timeout. The partial report is returned and Completed is still emitted.
    Cancelling the task running run() instead re-raises CancelledError and
    leaves the partial report on `report`.
    """

    def __init__(
        self,
        link: LinkConfig,
        device_path: str,
        spec: ScanSpec,
        sink: Optional[ProgressSink] = None,
        opener: Optional[TransportOpener] = None,
        *,
        reopen_per_probe: bool = False,
    ):
        """
        Args:
            link: Serial link parameters.
            device_path: Device path handed to the opener.
            spec: Address range and probe read.
            sink: Receives ProbingAddress, Responded and Completed events.
            opener: Transport opener. If None, a serial opener is created
                (and closed when the sweep ends) according to reopen_per_probe.
            reopen_per_probe: Open a new serial handle for every probe.
        """
        self._link = link
        self._device_path = device_path
        self._spec = spec
        self._sink = sink
        self._owns_opener = opener is None
        self._opener = opener if opener is not None else make_serial_opener(reopen_per_probe)
        self._report = ScanReport(spec=spec)
        self._state = SweepState.NOT_STARTED
        self._current_address: Optional[int] = None
        self._stop = asyncio.Event()

    @property
    def state(self) -> SweepState:
        return self._state

    @property
    def current_address(self) -> Optional[int]:
        """Address being probed right now, None between probes."""
        return self._current_address

    @property
    def report(self) -> ScanReport:
        return self._report

    def cancel(self) -> None:
        """Request the sweep to stop at the next suspension point."""
        if not self._stop.is_set():
            logger.info("Scan cancellation requested")
        self._stop.set()

    async def run(self) -> ScanReport:
        """
        Probe the whole range and return the report.

        Returns:
            The final ScanReport (partial and flagged cancelled if cancel()
            was called before the last address).

        Raises:
            RuntimeError: The controller has already run.
        """
        if self._state is not SweepState.NOT_STARTED:
            raise RuntimeError("A SweepController can only run once")

        self._state = SweepState.PROBING
        started = time.monotonic()
        logger.info(
            "Scanning unit addresses %d-%d on %s (%d bps %s), register %d x%d",
            self._spec.start_address,
            self._spec.end_address,
            self._device_path,
            self._link.baud_rate,
            self._link.framing,
            self._spec.probe_register,
            self._spec.register_count,
        )

        try:
            finished = await self._sweep()
        except asyncio.CancelledError:
            self._finish(started, cancelled=True)
            raise
        finally:
            self._current_address = None
            if self._owns_opener:
                await self._opener.aclose()

        self._finish(started, cancelled=not finished)
        self._emit(Completed(self._report))
        return self._report

    async def _sweep(self) -> bool:
        """Probe loop. Returns False if it stopped early on a cancel request."""
        total = self._spec.total
        for position, address in enumerate(self._spec.addresses(), start=1):
            if self._stop.is_set():
                return False

            self._current_address = address
            self._emit(ProbingAddress(address=address, position=position, total=total))

            outcome = await self._probe_address(address)
            if self._report.record(outcome):
                assert outcome.values is not None
                self._emit(
                    Responded(
                        address=address,
                        register=self._spec.probe_register,
                        first_value=outcome.values[0],
                        elapsed_ms=outcome.elapsed_ms,
                        values=outcome.values,
                    )
                )
            self._current_address = None

            if address < self._spec.end_address and await self._settle():
                return False
        return True

    async def _probe_address(self, address: int) -> ProbeOutcome:
        """Open a client for `address`, probe it and always close the client."""
        started = time.monotonic()
        try:
            client = await self._opener.open(self._link, self._device_path, address)
        except TransportOpenError as e:
            self._report.transport_failures += 1
            logger.warning("Unit %d not probed: %s", address, e)
            return ProbeOutcome.failed(address, time.monotonic() - started, str(e))

        try:
            return await probe(
                client,
                self._spec.probe_register,
                self._spec.register_count,
                self._link.byte_timeout,
            )
        finally:
            await client.aclose()

    async def _settle(self) -> bool:
        """Wait the inter-probe delay. Returns True if a cancel was requested."""
        delay = self._spec.inter_probe_delay
        if self._stop.is_set():
            return True
        if delay <= 0:
            await asyncio.sleep(0)
            return self._stop.is_set()
        try:
            await asyncio.wait_for(self._stop.wait(), delay)
        except asyncio.TimeoutError:
            return False
        return True

    def _finish(self, started: float, *, cancelled: bool) -> None:
        self._report.elapsed = time.monotonic() - started
        self._report.cancelled = cancelled
        self._state = SweepState.CANCELLED if cancelled else SweepState.COMPLETED
        logger.info(
            "Scan %s: %d of %d addresses probed, %d responding",
            "cancelled" if cancelled else "completed",
            self._report.total_probed,
            self._spec.total,
            self._report.responder_count,
        )

    def _emit(self, event: ScanEvent) -> None:
        if self._sink is None:
            return
        try:
            self._sink(event)
        except Exception:
            logger.exception("Progress sink failed on %s", type(event).__name__)


async def sweep(
    link: LinkConfig,
    device_path: str,
    spec: ScanSpec,
    sink: Optional[ProgressSink] = None,
    opener: Optional[TransportOpener] = None,
    *,
    reopen_per_probe: bool = False,
) -> ScanReport:
    """
    Run one sweep and return its report.

    Convenience wrapper around SweepController for callers that do not need
    to cancel the sweep from outside.
    """
    controller = SweepController(
        link,
        device_path,
        spec,
        sink,
        opener,
        reopen_per_probe=reopen_per_probe,
    )
    return await controller.run()
