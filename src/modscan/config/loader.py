"""
Scanner settings: YAML config file validated with pydantic.

load_settings() finds the config file (explicit path, else the install and
development locations), validates it and returns AppSettings. The engine never
sees AppSettings directly: link_config() and scan_spec() turn it into the
frozen LinkConfig / ScanSpec the sweep consumes.
"""

import logging
from pathlib import Path
from typing import Any, Literal, Optional, Sequence

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from ..errors import ConfigurationError
from ..scanner.models import (
    MAX_UNIT_ADDRESS,
    MIN_UNIT_ADDRESS,
    LinkConfig,
    Parity,
    ScanSpec,
)

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATHS: tuple[Path, ...] = (
    Path("/var/lib/modscan/config.yaml"),
    Path("config/config.yaml"),
)

# Read Holding Registers (FC 3) returns at most 125 registers per request.
MAX_REGISTER_COUNT = 125


# --- Pydantic schema for YAML validation ---


class LinkSettings(BaseModel):
    """Serial link section."""

    baud_rate: int = Field(..., gt=0)
    data_bits: Literal[7, 8] = 8
    parity: Literal["N", "E", "O"] = "N"
    stop_bits: Literal[1, 2] = 1
    timeout_ms: int = Field(..., gt=0)

    @field_validator("parity", mode="before")
    @classmethod
    def _upper_parity(cls, value: Any) -> Any:
        return value.upper() if isinstance(value, str) else value


class ScanSettings(BaseModel):
    """Scan section."""

    address_range: list[int]
    probe_register: int = Field(0, ge=0, le=0xFFFF)
    register_count: int = Field(1, ge=1, le=MAX_REGISTER_COUNT)
    inter_probe_delay_ms: int = Field(0, ge=0)

    @field_validator("address_range")
    @classmethod
    def _check_range(cls, value: list[int]) -> list[int]:
        if len(value) != 2:
            raise ValueError("must contain exactly two elements: [start, end]")
        start, end = value
        if start < MIN_UNIT_ADDRESS:
            raise ValueError(f"start address must be >= {MIN_UNIT_ADDRESS}")
        if end > MAX_UNIT_ADDRESS:
            raise ValueError(f"end address must be <= {MAX_UNIT_ADDRESS}")
        if start > end:
            raise ValueError("start address must be <= end address")
        return value

    @model_validator(mode="after")
    def _check_register_span(self) -> "ScanSettings":
        if self.probe_register + self.register_count > 0x10000:
            raise ValueError("probe_register + register_count exceeds 16-bit register space")
        return self


class LoggingSettings(BaseModel):
    """Log directory selection and retention."""

    dir_dev: str = "logs"
    dir_prod: str = "/var/log/modscan"
    retention_days: int = Field(14, ge=1)


class AppSettings(BaseModel):
    """Root of the config file."""

    serial_device: str = Field(..., min_length=1)
    reopen_per_probe: bool = False
    link: LinkSettings
    scan: ScanSettings
    logging: LoggingSettings = Field(default_factory=LoggingSettings)


def link_config(settings: AppSettings) -> LinkConfig:
    """Build the engine's LinkConfig from validated settings."""
    link = settings.link
    return LinkConfig(
        baud_rate=link.baud_rate,
        parity=Parity(link.parity),
        stop_bits=link.stop_bits,
        data_bits=link.data_bits,
        byte_timeout=link.timeout_ms / 1000,
    )


def scan_spec(settings: AppSettings) -> ScanSpec:
    """Build the engine's ScanSpec from validated settings."""
    scan = settings.scan
    start, end = scan.address_range
    return ScanSpec(
        start_address=start,
        end_address=end,
        probe_register=scan.probe_register,
        register_count=scan.register_count,
        inter_probe_delay=scan.inter_probe_delay_ms / 1000,
    )


def find_config_file(
    candidates: Sequence[Path] = DEFAULT_CONFIG_PATHS,
) -> Path:
    """
    Return the first existing config file among `candidates`.

    Raises:
        ConfigurationError: None of the candidates exists.
    """
    for path in candidates:
        if path.is_file():
            return path
    tried = ", ".join(str(p) for p in candidates)
    raise ConfigurationError(f"No configuration file found. Tried: {tried}")


def validate_settings(raw: Any, source: str = "<overrides>") -> AppSettings:
    """
    Validate a raw mapping against the settings schema.

    Args:
        raw: Parsed YAML (or an already-dumped settings dict with overrides).
        source: Name used in error messages.

    Raises:
        ConfigurationError: The mapping does not satisfy the schema.
    """
    if not isinstance(raw, dict):
        logger.error("Config %s root must be a mapping, got %s", source, type(raw))
        raise ConfigurationError(
            f"Config {source} root must be a mapping, got {type(raw).__name__}."
        )
    try:
        return AppSettings.model_validate(raw)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid configuration in {source}: {e}") from e


def load_settings(path: Optional[Path] = None) -> AppSettings:
    """Load scanner settings from YAML.

    Args:
        path: Config file. If None, DEFAULT_CONFIG_PATHS are searched in order.

    Returns:
        Validated AppSettings.

    Raises:
        ConfigurationError: File not found, unreadable, not YAML, or invalid.
    """
    config_path = path if path is not None else find_config_file()
    if not config_path.is_file():
        logger.error("Config file not found: %s", config_path)
        raise ConfigurationError(f"Config file {config_path} not found.")

    try:
        content = config_path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigurationError(f"Cannot read config {config_path}: {e}") from e

    try:
        raw = yaml.safe_load(content)
    except yaml.YAMLError as e:
        logger.error("Invalid YAML in config %s: %s", config_path, e)
        raise ConfigurationError(f"Invalid YAML in config {config_path}: {e}.") from e

    if raw is None:
        raise ConfigurationError(f"Config {config_path} is empty.")

    settings = validate_settings(raw, str(config_path))
    logger.debug("Loaded settings from %s: %s", config_path, settings.model_dump())
    return settings
