"""
Simulated field bus for development and demos without a serial adapter.

The "device path" of a simulated bus is a YAML file describing which units
are present and what their holding registers contain:

    units:
      2:
        registers: {100: 42}
        latency_ms: 15
      9:
        exception_code: 2

Units not listed never answer: a read waits for the link timeout and raises
ProbeTimeout, like a silent address on a real bus.
"""

import asyncio
import logging
from typing import Optional

import aiofiles
import yaml
from pydantic import BaseModel, Field, ValidationError

from ..errors import ProbeTimeout, ProtocolError, TransportOpenError
from ..scanner.models import LinkConfig

logger = logging.getLogger(__name__)

# Modbus exception code returned for registers a simulated unit does not define.
ILLEGAL_DATA_ADDRESS = 2


class SimulatedUnit(BaseModel):
    """Schema for one unit in the bus file."""

    registers: dict[int, int] = Field(default_factory=dict)
    latency_ms: int = Field(0, ge=0)
    exception_code: Optional[int] = Field(None, ge=1, le=255)

    def read(self, register: int, count: int) -> list[int]:
        """Return `count` register values starting at `register`."""
        if self.exception_code is not None:
            raise ProtocolError(
                f"Simulated exception {self.exception_code}",
                exception_code=self.exception_code,
            )
        values: list[int] = []
        for reg in range(register, register + count):
            if reg not in self.registers:
                raise ProtocolError(
                    f"Illegal data address {reg}",
                    exception_code=ILLEGAL_DATA_ADDRESS,
                )
            values.append(self.registers[reg] & 0xFFFF)
        return values


class SimulatedBus(BaseModel):
    """Schema for the bus file root."""

    units: dict[int, SimulatedUnit] = Field(default_factory=dict)


async def load_bus(bus_file: str) -> SimulatedBus:
    """
    Read and validate a bus description file.

    Args:
        bus_file: Path to the YAML bus file.

    Returns:
        Validated SimulatedBus.

    Raises:
        TransportOpenError: The file is missing, unreadable or invalid.
    """
    try:
        async with aiofiles.open(bus_file, "r", encoding="utf-8") as f:
            content = await f.read()
    except OSError as e:
        raise TransportOpenError(f"Cannot open simulated bus {bus_file}: {e}") from e

    try:
        raw = yaml.safe_load(content) or {}
    except yaml.YAMLError as e:
        raise TransportOpenError(f"Invalid YAML in simulated bus {bus_file}: {e}") from e

    try:
        bus = SimulatedBus.model_validate(raw)
    except ValidationError as e:
        raise TransportOpenError(f"Invalid simulated bus {bus_file}: {e}") from e

    logger.debug(
        "[SIMULATOR] Loaded %s with units %s", bus_file, sorted(bus.units.keys())
    )
    return bus


class SimulatedUnitClient:
    """FieldbusClient answering from a SimulatedBus."""

    def __init__(
        self,
        unit: Optional[SimulatedUnit],
        unit_address: int,
        timeout: float,
    ):
        self._unit = unit
        self.unit_address = unit_address
        self._timeout = timeout

    async def read_holding_registers(self, register: int, count: int) -> list[int]:
        if self._unit is None:
            await asyncio.sleep(self._timeout)
            raise ProbeTimeout(f"No response from unit {self.unit_address}")

        if self._unit.latency_ms:
            await asyncio.sleep(self._unit.latency_ms / 1000)
        values = self._unit.read(register, count)
        logger.debug(
            "[SIMULATOR] READ unit %d register %d x%d: %s",
            self.unit_address,
            register,
            count,
            values,
        )
        return values

    async def aclose(self) -> None:
        """No resources to release."""


class SimulatedBusOpener:
    """TransportOpener whose device path is a bus YAML file, loaded once per path."""

    def __init__(self) -> None:
        self._buses: dict[str, SimulatedBus] = {}

    async def open(
        self, link: LinkConfig, device_path: str, unit_address: int
    ) -> SimulatedUnitClient:
        bus = self._buses.get(device_path)
        if bus is None:
            bus = await load_bus(device_path)
            self._buses[device_path] = bus
        return SimulatedUnitClient(
            bus.units.get(unit_address), unit_address, link.byte_timeout
        )

    async def aclose(self) -> None:
        self._buses.clear()
