"""
Data model of a scan: link and scan parameters, probe outcomes, the report and
the progress events emitted while sweeping.

LinkConfig and ScanSpec are frozen and arrive already validated (see
modscan.config.loader). ProbeOutcome is created once per probe and never
mutated. ScanReport is filled in by a single SweepController.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Iterator, Optional, Union

MIN_UNIT_ADDRESS = 1
MAX_UNIT_ADDRESS = 247

# RTU framing always carries 8 data bits per character.
RTU_DATA_BITS = 8


class Parity(Enum):
    """Serial parity, valued by the letter used in framing strings (8N1)."""

    NONE = "N"
    EVEN = "E"
    ODD = "O"


@dataclass(frozen=True)
class LinkConfig:
    """Serial link parameters, fixed for the lifetime of a scan."""

    baud_rate: int
    parity: Parity = Parity.NONE
    stop_bits: int = 1
    data_bits: int = RTU_DATA_BITS
    byte_timeout: float = 0.2  # seconds

    @property
    def framing(self) -> str:
        """Framing as used on the wire, e.g. "8E1"."""
        return f"{RTU_DATA_BITS}{self.parity.value}{self.stop_bits}"


@dataclass(frozen=True)
class ScanSpec:
    """Address range and probe read to perform on every candidate."""

    start_address: int
    end_address: int
    probe_register: int = 0
    register_count: int = 1
    inter_probe_delay: float = 0.0  # seconds

    def addresses(self) -> Iterator[int]:
        """Candidate unit addresses, ascending, closed interval."""
        return iter(range(self.start_address, self.end_address + 1))

    @property
    def total(self) -> int:
        return self.end_address - self.start_address + 1


@dataclass(frozen=True)
class ProbeOutcome:
    """Result of one probe against one unit address."""

    address: int
    succeeded: bool
    values: Optional[tuple[int, ...]]
    elapsed: float  # seconds
    reason: Optional[str] = None

    @classmethod
    def responded(
        cls, address: int, values: list[int], elapsed: float
    ) -> "ProbeOutcome":
        """
        Build the outcome of a read that returned data.

        An empty value sequence is not evidence of a device worth reporting,
        so it yields a failed outcome.
        """
        if not values:
            return cls.failed(address, elapsed, "empty response")
        return cls(
            address=address,
            succeeded=True,
            values=tuple(values),
            elapsed=elapsed,
        )

    @classmethod
    def failed(cls, address: int, elapsed: float, reason: str) -> "ProbeOutcome":
        return cls(
            address=address,
            succeeded=False,
            values=None,
            elapsed=elapsed,
            reason=reason,
        )

    @property
    def elapsed_ms(self) -> int:
        return int(self.elapsed * 1000)


@dataclass
class ScanReport:
    """Aggregated result of one sweep."""

    spec: ScanSpec
    responding: list[tuple[int, tuple[int, ...]]] = field(default_factory=list)
    total_probed: int = 0
    transport_failures: int = 0
    cancelled: bool = False
    elapsed: float = 0.0

    def record(self, outcome: ProbeOutcome) -> bool:
        """
        Account for one probe outcome.

        Args:
            outcome: Outcome of the probe just finished.

        Returns:
            True if the outcome was added to the responders.
        """
        self.total_probed += 1
        if outcome.succeeded and outcome.values:
            self.responding.append((outcome.address, outcome.values))
            return True
        return False

    @property
    def responder_count(self) -> int:
        return len(self.responding)

    @property
    def responding_addresses(self) -> list[int]:
        return [address for address, _ in self.responding]


# --- Progress events ---


@dataclass(frozen=True)
class ProbingAddress:
    """A probe of `address` is about to start (`position` of `total`, 1-based)."""

    address: int
    position: int
    total: int


@dataclass(frozen=True)
class Responded:
    """A unit answered the probe read with data."""

    address: int
    register: int
    first_value: int
    elapsed_ms: int
    values: tuple[int, ...]


@dataclass(frozen=True)
class Completed:
    """The sweep ended; carries the final (possibly partial) report."""

    report: ScanReport


ScanEvent = Union[ProbingAddress, Responded, Completed]
