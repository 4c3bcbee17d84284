"""Modbus RTU unit-address scanner."""

__version__ = "0.1.0"
