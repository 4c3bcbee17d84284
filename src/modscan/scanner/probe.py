"""
Probe executor: one bounded-time read against one unit, classified into a
ProbeOutcome.

No device and a device that rejects the read are deliberately not told apart:
both are "no usable response". The failure reason is kept on the outcome for
the debug log only.
"""

import asyncio
import logging
import time

from pymodbus import ModbusException

from ..bus.transport import FieldbusClient
from ..errors import ProbeTimeout, ProtocolError
from .models import ProbeOutcome

logger = logging.getLogger(__name__)


async def probe(
    client: FieldbusClient,
    register: int,
    count: int,
    timeout: float,
) -> ProbeOutcome:
    """
    Issue one read-holding-registers request and classify the result.

    Args:
        client: Client bound to the candidate unit address.
        register: First holding register to read.
        count: Number of registers to read.
        timeout: Upper bound in seconds for the whole request, including any
            retries done by the protocol layer.

    Returns:
        ProbeOutcome; succeeded only when data came back within the timeout.
        Transport and protocol errors never propagate.
    """
    address = client.unit_address
    started = time.monotonic()
    try:
        values = await asyncio.wait_for(
            client.read_holding_registers(register, count), timeout
        )
    except (asyncio.TimeoutError, ProbeTimeout):
        reason = "timeout"
    except ProtocolError as e:
        reason = f"protocol error: {e}"
    except ModbusException as e:
        reason = f"modbus error: {e}"
    except OSError as e:
        reason = f"serial I/O error: {e}"
    else:
        elapsed = time.monotonic() - started
        outcome = ProbeOutcome.responded(address, values, elapsed)
        logger.debug(
            "Unit %d register %d: %s (%d ms)",
            address,
            register,
            values,
            outcome.elapsed_ms,
        )
        return outcome

    elapsed = time.monotonic() - started
    logger.debug("Unit %d: no usable response (%s)", address, reason)
    return ProbeOutcome.failed(address, elapsed, reason)
