"""
Unit-address scanner for a Modbus RTU serial bus.

Probes every unit ID in the configured range with a Read Holding Registers
request and reports which IDs answer. Intended for commissioning and
troubleshooting when the ID of a device on a shared RS485 line is unknown.
"""

import argparse
import asyncio
import logging
import signal
import sys
from pathlib import Path
from typing import Optional

from ..config.loader import AppSettings, link_config, load_settings, scan_spec
from ..errors import ConfigurationError
from ..scanner.models import RTU_DATA_BITS, ScanReport
from ..scanner.sweep import SweepController
from .cli_common import (
    add_config_arguments,
    add_override_arguments,
    apply_overrides,
    device_path_for,
    list_serial_ports,
    opener_context,
)
from .log_setup import configure_logging, resolve_level
from .report import ConsoleReporter, format_scan_header

logger = logging.getLogger(__name__)


def _parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    """Parse CLI arguments."""
    parser = argparse.ArgumentParser(
        prog="modscan",
        description="Find which Modbus RTU unit IDs answer on a serial bus.",
    )
    add_config_arguments(parser)
    add_override_arguments(parser)
    parser.add_argument(
        "--no-progress",
        action="store_true",
        help="Do not show the progress line",
    )
    parser.add_argument(
        "--list-ports",
        action="store_true",
        help="List serial ports and exit",
    )
    return parser.parse_args(argv)


def _load(args: argparse.Namespace) -> AppSettings:
    """Load the config file and apply command-line overrides."""
    settings = load_settings(args.config)
    return apply_overrides(settings, args)


def _install_cancel_handlers(controller: SweepController) -> list[signal.Signals]:
    """Route SIGINT/SIGTERM to controller.cancel(). Returns the signals hooked."""
    loop = asyncio.get_running_loop()
    hooked: list[signal.Signals] = []
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, controller.cancel)
        except (NotImplementedError, RuntimeError):
            # Windows event loops have no signal handler support.
            continue
        hooked.append(sig)
    return hooked


async def run_scan(
    args: argparse.Namespace,
    settings: AppSettings,
    reporter: ConsoleReporter,
) -> ScanReport:
    """
    Run one sweep with the opener selected by args and return its report.

    Args:
        args: Parsed CLI arguments (for --simulate).
        settings: Validated settings with overrides applied.
        reporter: Progress sink rendering the sweep.

    Returns:
        Final ScanReport, partial if the user interrupted the scan.
    """
    link = link_config(settings)
    spec = scan_spec(settings)
    device_path = device_path_for(args, settings)

    if link.data_bits != RTU_DATA_BITS:
        logger.warning(
            "data_bits=%d ignored: RTU framing uses %d data bits",
            link.data_bits,
            RTU_DATA_BITS,
        )

    print(format_scan_header(link, device_path, spec))
    print()

    async with opener_context(args, settings) as opener:
        controller = SweepController(link, device_path, spec, reporter, opener)
        hooked = _install_cancel_handlers(controller)
        try:
            return await controller.run()
        finally:
            loop = asyncio.get_running_loop()
            for sig in hooked:
                loop.remove_signal_handler(sig)


async def _main_async(argv: Optional[list[str]] = None) -> int:
    """Async main logic. Returns exit code."""
    args = _parse_args(argv)

    if args.list_ports:
        ports = list_serial_ports()
        if not ports:
            print("No serial ports found")
        for port in ports:
            print(port)
        return 0

    try:
        settings = _load(args)
    except ConfigurationError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    log_dir = settings.logging.dir_dev if args.dev else settings.logging.dir_prod
    configure_logging(
        Path(log_dir),
        resolve_level(args.verbose),
        settings.logging.retention_days,
        verbose=args.verbose,
    )
    logger.info("Starting Modbus unit-address scan")

    reporter = ConsoleReporter(progress=not args.no_progress)
    await run_scan(args, settings, reporter)
    return 0


def main() -> None:
    """CLI entry point."""
    exit_code = asyncio.run(_main_async())
    raise SystemExit(exit_code)


if __name__ == "__main__":
    main()
