"""Shared pytest fixtures for modscan tests."""

import pytest

from modscan.scanner.models import LinkConfig, Parity, ScanSpec


@pytest.fixture
def link() -> LinkConfig:
    """Link with a short timeout so silent units do not slow tests down."""
    return LinkConfig(baud_rate=9600, parity=Parity.NONE, stop_bits=1, byte_timeout=0.05)


@pytest.fixture
def scan_spec() -> ScanSpec:
    """Range [1,5], register 100, one register, no inter-probe delay."""
    return ScanSpec(
        start_address=1,
        end_address=5,
        probe_register=100,
        register_count=1,
        inter_probe_delay=0.0,
    )
