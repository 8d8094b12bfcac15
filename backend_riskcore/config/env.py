"""
Environment variable loading for RiskCore.

- RISKCORE_REFERENCE_DIR: directory holding the known-address JSON lists
  (default: backend_riskcore/data/reference).
- MIXER_ADDRESSES_PATH, SANCTIONED_ADDRESSES_PATH, SCAM_ADDRESSES_PATH,
  MANIPULATION_ADDRESSES_PATH, SUSPICIOUS_TOKENS_PATH: per-list overrides.
- RISK_CALIBRATION_PATH: JSON file with persisted calibration records.
- RISKCORE_MAX_TX_HISTORY: cap on history length callers should pass in.
- RISKCORE_PATTERN_WORKERS: thread count for category-parallel detection (0 = sequential).
- Loads .env from project root when available.
"""

from __future__ import annotations

import os
from pathlib import Path

# Project root: config is backend_riskcore/config/, root is 2 levels up
_CONFIG_DIR = Path(__file__).resolve().parent
_BACKEND_DIR = _CONFIG_DIR.parent
_ROOT = _BACKEND_DIR.parent
_ENV_PATH = _ROOT / ".env"

DEFAULT_REFERENCE_DIR = _BACKEND_DIR / "data" / "reference"
DEFAULT_CALIBRATION_PATH = _BACKEND_DIR / "data" / "risk_calibration.json"
DEFAULT_MAX_TX_HISTORY = 1000
DEFAULT_PATTERN_WORKERS = 0

# list name -> (env override, default file name)
REFERENCE_LIST_FILES = {
    "mixers": ("MIXER_ADDRESSES_PATH", "mixers.json"),
    "sanctioned": ("SANCTIONED_ADDRESSES_PATH", "sanctioned.json"),
    "scams": ("SCAM_ADDRESSES_PATH", "scams.json"),
    "market_manipulation": ("MANIPULATION_ADDRESSES_PATH", "market_manipulation.json"),
    "suspicious_tokens": ("SUSPICIOUS_TOKENS_PATH", "suspicious_tokens.json"),
}


def load_riskcore_env() -> None:
    """Load .env from project root. Safe to call multiple times."""
    from dotenv import load_dotenv

    if _ENV_PATH.is_file():
        load_dotenv(_ENV_PATH)


def _int_env(name: str, default: int) -> int:
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def get_reference_data_dir() -> Path:
    """Directory with the known-address lists; RISKCORE_REFERENCE_DIR overrides the bundled one."""
    load_riskcore_env()
    raw = (os.getenv("RISKCORE_REFERENCE_DIR") or "").strip()
    return Path(raw) if raw else DEFAULT_REFERENCE_DIR


def get_reference_list_paths() -> dict[str, Path]:
    """
    Resolve the JSON file for each reference list.
    Order: per-list env override > RISKCORE_REFERENCE_DIR/<default name>.
    """
    load_riskcore_env()
    base = get_reference_data_dir()
    paths: dict[str, Path] = {}
    for name, (env_name, file_name) in REFERENCE_LIST_FILES.items():
        override = (os.getenv(env_name) or "").strip()
        paths[name] = Path(override) if override else base / file_name
    return paths


def get_calibration_store_path() -> Path:
    """Return RISK_CALIBRATION_PATH, or the bundled default location."""
    load_riskcore_env()
    raw = (os.getenv("RISK_CALIBRATION_PATH") or "").strip()
    return Path(raw) if raw else DEFAULT_CALIBRATION_PATH


def get_max_tx_history() -> int:
    """Cap on transaction history length; never below 1."""
    load_riskcore_env()
    return max(1, _int_env("RISKCORE_MAX_TX_HISTORY", DEFAULT_MAX_TX_HISTORY))


def get_pattern_workers() -> int:
    """Worker threads for category-parallel detection; 0 runs categories sequentially."""
    load_riskcore_env()
    return max(0, _int_env("RISKCORE_PATTERN_WORKERS", DEFAULT_PATTERN_WORKERS))
