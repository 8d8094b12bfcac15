"""
Application settings.

Typed, immutable view over the environment getters in config.env. Built once
per process and cached; call get_settings.cache_clear() after changing the
environment (tests do this).
"""

from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path

from backend_riskcore.config.env import (
    get_calibration_store_path,
    get_max_tx_history,
    get_pattern_workers,
    get_reference_list_paths,
)


@dataclass(frozen=True)
class Settings:
    """Resolved RiskCore configuration."""

    reference_list_paths: dict[str, Path]
    calibration_store_path: Path
    max_tx_history: int
    pattern_workers: int


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return the current application settings."""
    return Settings(
        reference_list_paths=get_reference_list_paths(),
        calibration_store_path=get_calibration_store_path(),
        max_tx_history=get_max_tx_history(),
        pattern_workers=get_pattern_workers(),
    )
