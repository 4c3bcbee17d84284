"""Configuration file loading and validation."""

from .loader import AppSettings, link_config, load_settings, scan_spec

__all__ = ["AppSettings", "link_config", "load_settings", "scan_spec"]
