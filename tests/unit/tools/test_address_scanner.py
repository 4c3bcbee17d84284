"""Tests for the modscan command (address_scanner)."""

import logging
from pathlib import Path
from typing import Iterator

import pytest

from modscan.tools import address_scanner
from modscan.tools.address_scanner import _main_async
from modscan.tools.log_setup import INSTALLED_MARK

BUS_YAML = """\
units:
  2:
    registers: {0: 42}
  4:
    registers: {0: 7}
  5:
    exception_code: 2
"""


@pytest.fixture(autouse=True)
def restore_root_logging() -> Iterator[None]:
    root = logging.getLogger()
    level = root.level
    yield
    for handler in list(root.handlers):
        if getattr(handler, INSTALLED_MARK, False):
            root.removeHandler(handler)
            handler.close()
    root.setLevel(level)


@pytest.fixture
def config_file(tmp_path: Path) -> Path:
    path = tmp_path / "config.yaml"
    path.write_text(
        f"""\
serial_device: /dev/ttyUSB0
link:
  baud_rate: 9600
  parity: N
  stop_bits: 1
  timeout_ms: 20
scan:
  address_range: [1, 5]
logging:
  dir_dev: {tmp_path / "logs-dev"}
  dir_prod: {tmp_path / "logs"}
  retention_days: 3
""",
        encoding="utf-8",
    )
    return path


@pytest.fixture
def bus_file(tmp_path: Path) -> Path:
    path = tmp_path / "bus.yaml"
    path.write_text(BUS_YAML, encoding="utf-8")
    return path


class TestMainSimulated:
    """End-to-end runs against a simulated bus."""

    @pytest.mark.asyncio
    async def test_reports_responding_ids(
        self, config_file: Path, bus_file: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        code = await _main_async(["-c", str(config_file), "--simulate", str(bus_file)])

        assert code == 0
        out = capsys.readouterr().out
        assert f"Device: {bus_file}" in out
        assert "ID 2 - RESPONDS - register 0: 42" in out
        assert "ID 4 - RESPONDS - register 0: 7" in out
        assert "ID 5 - RESPONDS" not in out
        assert "Devices found: 2" in out
        assert "  ID 2: register 0 = 42" in out

    @pytest.mark.asyncio
    async def test_writes_log_file(self, config_file: Path, bus_file: Path, tmp_path: Path) -> None:
        await _main_async(["-c", str(config_file), "--simulate", str(bus_file)])
        log_text = (tmp_path / "logs" / "modscan.log").read_text(encoding="utf-8")
        assert "Devices found: 2" in log_text

    @pytest.mark.asyncio
    async def test_dev_log_dir(self, config_file: Path, bus_file: Path, tmp_path: Path) -> None:
        await _main_async(["-c", str(config_file), "--simulate", str(bus_file), "--dev"])
        assert (tmp_path / "logs-dev" / "modscan.log").is_file()

    @pytest.mark.asyncio
    async def test_overrides_apply(
        self, config_file: Path, bus_file: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        code = await _main_async(
            ["-c", str(config_file), "--simulate", str(bus_file), "--range", "3", "4"]
        )
        assert code == 0
        out = capsys.readouterr().out
        assert "Unit IDs: 3 - 4 (2 candidates)" in out
        assert "Devices found: 1" in out
        assert "ID 2 - RESPONDS" not in out

    @pytest.mark.asyncio
    async def test_seven_data_bits_warns(
        self,
        config_file: Path,
        bus_file: Path,
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        with caplog.at_level(logging.WARNING, logger="modscan.tools.address_scanner"):
            code = await _main_async(
                ["-c", str(config_file), "--simulate", str(bus_file), "-s", "7E1"]
            )
        assert code == 0
        assert "data_bits=7 ignored" in caplog.text

    @pytest.mark.asyncio
    async def test_no_responders(
        self, config_file: Path, tmp_path: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        empty_bus = tmp_path / "empty.yaml"
        empty_bus.write_text("units: {}\n", encoding="utf-8")
        code = await _main_async(
            ["-c", str(config_file), "--simulate", str(empty_bus), "--range", "1", "2"]
        )
        assert code == 0
        out = capsys.readouterr().out
        assert "No devices found" in out
        assert "Check:" in out


class TestMainErrors:
    """Exit codes and messages for configuration problems."""

    @pytest.mark.asyncio
    async def test_missing_config(self, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
        code = await _main_async(["-c", str(tmp_path / "missing.yaml")])
        assert code == 1
        assert "Error:" in capsys.readouterr().err

    @pytest.mark.asyncio
    async def test_invalid_override(
        self, config_file: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        code = await _main_async(["-c", str(config_file), "--range", "0", "300"])
        assert code == 1
        err = capsys.readouterr().err
        assert "Error:" in err
        assert "address_range" in err


class TestListPorts:
    @pytest.mark.asyncio
    async def test_lists_ports(
        self, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
    ) -> None:
        monkeypatch.setattr(
            address_scanner, "list_serial_ports", lambda: ["/dev/ttyUSB0", "/dev/ttyUSB1"]
        )
        assert await _main_async(["--list-ports"]) == 0
        assert capsys.readouterr().out.splitlines() == ["/dev/ttyUSB0", "/dev/ttyUSB1"]

    @pytest.mark.asyncio
    async def test_no_ports(
        self, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
    ) -> None:
        monkeypatch.setattr(address_scanner, "list_serial_ports", lambda: [])
        assert await _main_async(["--list-ports"]) == 0
        assert "No serial ports found" in capsys.readouterr().out
