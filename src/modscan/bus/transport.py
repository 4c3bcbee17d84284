"""
Field-bus client abstraction: Protocols and the pymodbus serial implementation.

The scan engine depends only on TransportOpener and FieldbusClient. An opener
turns (link, device path, unit address) into a client bound to that unit; the
client exposes a single read operation and is closed after each probe.

Two serial openers are provided. pymodbus takes the unit id per request, so
binding a unit is free and SharedSerialOpener keeps one handle for the whole
sweep. PerProbeSerialOpener opens and closes the port around every probe,
which some USB-RS485 adapters need to recover from garbled frames.
"""

import logging
from typing import Optional, Protocol, runtime_checkable

from pymodbus import FramerType, ModbusException
from pymodbus.client import AsyncModbusSerialClient
from pymodbus.exceptions import ModbusIOException

from ..errors import ProbeTimeout, ProtocolError, TransportOpenError
from ..scanner.models import RTU_DATA_BITS, LinkConfig

logger = logging.getLogger(__name__)


@runtime_checkable
class FieldbusClient(Protocol):
    """A protocol client bound to one unit address."""

    unit_address: int

    async def read_holding_registers(self, register: int, count: int) -> list[int]:
        """
        Read `count` holding registers starting at `register`.

        Raises:
            ProbeTimeout: The unit did not answer.
            ProtocolError: The unit answered with an exception or a bad frame.
        """
        ...

    async def aclose(self) -> None:
        """Release whatever the client owns. Safe to call more than once."""
        ...


@runtime_checkable
class TransportOpener(Protocol):
    """Produces bound clients, one per probe."""

    async def open(
        self, link: LinkConfig, device_path: str, unit_address: int
    ) -> FieldbusClient:
        """
        Bind a client to `unit_address` on the bus at `device_path`.

        Raises:
            TransportOpenError: The device path cannot be opened.
        """
        ...

    async def aclose(self) -> None:
        """Release handles kept between probes."""
        ...


class SerialUnitClient:
    """FieldbusClient over a pymodbus serial client, addressed at one unit."""

    def __init__(
        self,
        client: AsyncModbusSerialClient,
        unit_address: int,
        *,
        owns_handle: bool,
    ):
        """
        Args:
            client: Connected pymodbus serial client.
            unit_address: Unit id every request is sent to.
            owns_handle: Close the serial handle in aclose() (per-probe policy).
        """
        self._client = client
        self.unit_address = unit_address
        self._owns_handle = owns_handle
        self._closed = False

    async def read_holding_registers(self, register: int, count: int) -> list[int]:
        try:
            response = await self._client.read_holding_registers(
                register, count=count, device_id=self.unit_address
            )
        except ModbusIOException as e:
            raise ProbeTimeout(f"No response from unit {self.unit_address}: {e}") from e
        except ModbusException as e:
            raise ProtocolError(f"Invalid response from unit {self.unit_address}: {e}") from e

        if response.isError():
            code = getattr(response, "exception_code", None)
            raise ProtocolError(
                f"Unit {self.unit_address} rejected read of register {register} "
                f"(exception code {code})",
                exception_code=code,
            )
        return list(response.registers)

    async def aclose(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._owns_handle:
            self._client.close()


async def connect_serial(link: LinkConfig, device_path: str) -> AsyncModbusSerialClient:
    """
    Open a pymodbus RTU client on `device_path` with the link's parameters.

    Internal retries and automatic reconnects are disabled: the probe timeout
    bounds each request and a lost port is reopened by the opener instead.

    Args:
        link: Serial link parameters.
        device_path: Platform device path (e.g. "/dev/ttyUSB0", "COM3").

    Returns:
        Connected AsyncModbusSerialClient.

    Raises:
        TransportOpenError: The port could not be opened.
    """
    try:
        client = AsyncModbusSerialClient(
            port=device_path,
            framer=FramerType.RTU,
            baudrate=link.baud_rate,
            bytesize=RTU_DATA_BITS,
            parity=link.parity.value,
            stopbits=link.stop_bits,
            timeout=link.byte_timeout,
            retries=0,
            reconnect_delay=0,
        )
    except (ModbusException, ValueError) as e:
        raise TransportOpenError(f"Cannot configure serial port {device_path}: {e}") from e

    try:
        connected = await client.connect()
    except (ModbusException, OSError, ValueError) as e:
        client.close()
        raise TransportOpenError(f"Cannot open serial port {device_path}: {e}") from e

    if not connected:
        client.close()
        raise TransportOpenError(f"Cannot open serial port {device_path}")

    logger.debug("Opened %s at %d bps %s", device_path, link.baud_rate, link.framing)
    return client


async def open_serial_client(
    link: LinkConfig, device_path: str, unit_address: int
) -> SerialUnitClient:
    """Open a fresh serial handle and bind it to `unit_address`; the client owns the handle."""
    client = await connect_serial(link, device_path)
    return SerialUnitClient(client, unit_address, owns_handle=True)


class PerProbeSerialOpener:
    """Opens a new serial handle for every probe; the probe's client closes it."""

    async def open(
        self, link: LinkConfig, device_path: str, unit_address: int
    ) -> FieldbusClient:
        return await open_serial_client(link, device_path, unit_address)

    async def aclose(self) -> None:
        """Nothing is kept between probes."""


class SharedSerialOpener:
    """Keeps one serial handle for the sweep and rebinds it to each unit address."""

    _client: Optional[AsyncModbusSerialClient]

    def __init__(self) -> None:
        self._client = None
        self._handle_key: Optional[tuple[LinkConfig, str]] = None

    async def open(
        self, link: LinkConfig, device_path: str, unit_address: int
    ) -> FieldbusClient:
        key = (link, device_path)
        if self._client is None or not self._client.connected or self._handle_key != key:
            if self._client is not None:
                logger.debug("Reopening serial handle on %s", device_path)
            await self.aclose()
            self._client = await connect_serial(link, device_path)
            self._handle_key = key
        return SerialUnitClient(self._client, unit_address, owns_handle=False)

    async def aclose(self) -> None:
        """Close the shared handle. Safe to call multiple times."""
        if self._client is not None:
            self._client.close()
            self._client = None
            self._handle_key = None


def make_serial_opener(reopen_per_probe: bool) -> TransportOpener:
    """Return the serial opener for the configured handle policy."""
    if reopen_per_probe:
        return PerProbeSerialOpener()
    return SharedSerialOpener()
