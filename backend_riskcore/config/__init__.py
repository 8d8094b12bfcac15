"""
Configuration management for Backend RiskCore.

Loads settings from environment variables and an optional .env file.
Exposes a single source of truth for reference-data paths, calibration store
location and detector resource bounds.
"""

from backend_riskcore.config.settings import Settings, get_settings  # noqa: F401

__all__ = ["Settings", "get_settings"]
