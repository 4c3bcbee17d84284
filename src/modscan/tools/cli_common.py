"""
Shared CLI argument parsing, settings overrides and opener creation.

Overrides given on the command line are merged into the loaded settings and
validated again with the same schema as the config file, so a bad --baud or
--range fails exactly like a bad config value.
"""

import argparse
import re
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, AsyncIterator

import serial.tools.list_ports

from ..bus.simulator import SimulatedBusOpener
from ..bus.transport import TransportOpener, make_serial_opener
from ..config.loader import AppSettings, validate_settings
from ..errors import ConfigurationError

FRAMING_PATTERN = re.compile(r"^([78])([NEO])([12])$")


def add_config_arguments(parser: argparse.ArgumentParser) -> None:
    """
    Add --config, --simulate and logging arguments to the parser.

    Args:
        parser: ArgumentParser to add arguments to.
    """
    parser.add_argument(
        "-c",
        "--config",
        type=Path,
        metavar="PATH",
        help="Config file (default: /var/lib/modscan/config.yaml, then config/config.yaml)",
    )
    parser.add_argument(
        "--simulate",
        type=str,
        metavar="BUS_FILE",
        help="Scan a simulated bus described by a YAML file instead of the serial port",
    )
    parser.add_argument(
        "--dev",
        action="store_true",
        help="Write logs to logging.dir_dev instead of logging.dir_prod",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Debug logging on the console",
    )


def add_override_arguments(parser: argparse.ArgumentParser) -> None:
    """
    Add link and scan overrides to the parser.

    Args:
        parser: ArgumentParser to add arguments to.
    """
    parser.add_argument("-d", "--device", type=str, help="Serial device path (e.g. /dev/ttyUSB0, COM3)")
    parser.add_argument("-b", "--baud", type=int, help="Baud rate (e.g. 9600, 19200)")
    parser.add_argument(
        "-s",
        "--framing",
        type=str,
        metavar="8N1",
        help="Data bits, parity and stop bits: 8N1, 8E1, 8O1, 8N2, ...",
    )
    parser.add_argument(
        "--range",
        type=int,
        nargs=2,
        metavar=("START", "END"),
        dest="address_range",
        help="Unit address range to scan, inclusive (1-247)",
    )
    parser.add_argument("--register", type=int, help="Holding register to read")
    parser.add_argument("--count", type=int, help="Number of registers to read")
    parser.add_argument("--timeout-ms", type=int, help="Per-probe response timeout")
    parser.add_argument("--delay-ms", type=int, help="Delay between probes")
    parser.add_argument(
        "--reopen-per-probe",
        action="store_true",
        default=None,
        help="Open and close the serial port around every probe",
    )


def parse_framing(framing: str) -> tuple[int, str, int]:
    """
    Parse a framing string such as "8E1".

    Returns:
        (data_bits, parity letter, stop_bits)

    Raises:
        ConfigurationError: The string is not a valid framing.
    """
    match = FRAMING_PATTERN.match(framing.strip().upper())
    if not match:
        raise ConfigurationError(
            f"Invalid framing {framing!r}. Valid values are e.g. 8N1, 8E1, 8O1, 8N2."
        )
    data_bits, parity, stop_bits = match.groups()
    return int(data_bits), parity, int(stop_bits)


def apply_overrides(settings: AppSettings, args: argparse.Namespace) -> AppSettings:
    """
    Merge command-line overrides into settings and revalidate.

    Args:
        settings: Settings loaded from the config file.
        args: Parsed arguments from add_override_arguments.

    Returns:
        New AppSettings (settings is left untouched).

    Raises:
        ConfigurationError: An override is invalid.
    """
    data: dict[str, Any] = settings.model_dump()
    link = data["link"]
    scan = data["scan"]

    if getattr(args, "device", None):
        data["serial_device"] = args.device
    if getattr(args, "reopen_per_probe", None) is not None:
        data["reopen_per_probe"] = args.reopen_per_probe
    if getattr(args, "baud", None) is not None:
        link["baud_rate"] = args.baud
    if getattr(args, "framing", None):
        link["data_bits"], link["parity"], link["stop_bits"] = parse_framing(args.framing)
    if getattr(args, "timeout_ms", None) is not None:
        link["timeout_ms"] = args.timeout_ms
    if getattr(args, "address_range", None):
        scan["address_range"] = list(args.address_range)
    if getattr(args, "register", None) is not None:
        scan["probe_register"] = args.register
    if getattr(args, "count", None) is not None:
        scan["register_count"] = args.count
    if getattr(args, "delay_ms", None) is not None:
        scan["inter_probe_delay_ms"] = args.delay_ms

    return validate_settings(data, "command line")


def list_serial_ports() -> list[str]:
    """Serial ports visible to pyserial, sorted by their numeric suffix."""
    return sorted(
        (p.device for p in serial.tools.list_ports.comports()),
        key=lambda x: (int("".join(filter(str.isdigit, x)) or 0), x),
    )


def device_path_for(args: argparse.Namespace, settings: AppSettings) -> str:
    """Bus file in simulated mode, else the configured serial device."""
    return args.simulate if getattr(args, "simulate", None) else settings.serial_device


@asynccontextmanager
async def opener_context(
    args: argparse.Namespace, settings: AppSettings
) -> AsyncIterator[TransportOpener]:
    """
    Async context manager yielding the opener for this run.

    The simulated bus is used when --simulate is given, otherwise the serial
    opener for the configured handle policy. Handles kept by the opener are
    released on exit.
    """
    opener: TransportOpener
    if getattr(args, "simulate", None):
        opener = SimulatedBusOpener()
    else:
        opener = make_serial_opener(settings.reopen_per_probe)
    try:
        yield opener
    finally:
        await opener.aclose()
