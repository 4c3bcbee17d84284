"""
Error hierarchy for the scanner.

Only ConfigurationError is fatal. The transport and probe errors are raised by
bus clients and absorbed by the sweep into failed probe outcomes.
"""

from typing import Optional


class ModscanError(Exception):
    """Base error for modscan."""


class ConfigurationError(ModscanError):
    """Raised when the configuration file or overrides are invalid."""


class TransportOpenError(ModscanError):
    """Raised when the serial device cannot be opened (missing, busy, no permission)."""


class ProbeTimeout(ModscanError):
    """Raised when a unit does not answer within the probe timeout."""


class ProtocolError(ModscanError):
    """Raised when a unit answers with an exception response or an invalid frame."""

    def __init__(self, message: str, exception_code: Optional[int] = None):
        super().__init__(message)
        self.exception_code = exception_code
