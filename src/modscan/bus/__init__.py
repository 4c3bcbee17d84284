"""Field-bus transports: pymodbus serial openers and the simulated bus."""

from .simulator import SimulatedBusOpener
from .transport import (
    FieldbusClient,
    PerProbeSerialOpener,
    SharedSerialOpener,
    TransportOpener,
    make_serial_opener,
)

__all__ = [
    "FieldbusClient",
    "PerProbeSerialOpener",
    "SharedSerialOpener",
    "SimulatedBusOpener",
    "TransportOpener",
    "make_serial_opener",
]
