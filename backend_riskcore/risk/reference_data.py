"""
Known-address intelligence for the calibration engine.

ReferenceLists is an immutable snapshot of the mixer, sanctioned, scam and
market-manipulation address sets plus the suspicious-token denylist. Each list
lives in its own JSON file (a flat array of strings); see config.env for the
path resolution. The engine only reads a snapshot; reloading builds a new one.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Mapping

from backend_riskcore.config.env import get_reference_list_paths
from backend_riskcore.core.exceptions import ReferenceDataError
from backend_riskcore.riskcore_logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class ReferenceLists:
    mixers: frozenset[str] = frozenset()
    sanctioned: frozenset[str] = frozenset()
    scams: frozenset[str] = frozenset()
    market_manipulation: frozenset[str] = frozenset()
    suspicious_tokens: frozenset[str] = frozenset()

    @classmethod
    def from_iterables(
        cls,
        mixers: Iterable[str] = (),
        sanctioned: Iterable[str] = (),
        scams: Iterable[str] = (),
        market_manipulation: Iterable[str] = (),
        suspicious_tokens: Iterable[str] = (),
    ) -> "ReferenceLists":
        return cls(
            mixers=_clean(mixers),
            sanctioned=_clean(sanctioned),
            scams=_clean(scams),
            market_manipulation=_clean(market_manipulation),
            suspicious_tokens=_clean(suspicious_tokens),
        )

    def counts(self) -> dict[str, int]:
        return {
            "mixers": len(self.mixers),
            "sanctioned": len(self.sanctioned),
            "scams": len(self.scams),
            "market_manipulation": len(self.market_manipulation),
            "suspicious_tokens": len(self.suspicious_tokens),
        }


def _clean(values: Iterable[str]) -> frozenset[str]:
    return frozenset(str(v).strip() for v in values if v and str(v).strip())


# Example addresses bundled for demos and tests; production lists come from files.
DEFAULT_REFERENCE_LISTS = ReferenceLists.from_iterables(
    mixers=(
        "CJsLwbP1iu5DuUikHEJnLfANgKy6stB2uFgvBBHoyxwz",
        "2wT8Yq49kHgDzXuPxZSaeLaH1qbmGXtEyPy64bL7aD3c",
    ),
    sanctioned=(
        "58oPyQpn7QXvYfGrX3KKzP4Eq9uPNXtKjEkpoLH5TQjY",
        "HN8Hmb3kXNxVZPLDM7GXBSJyJ2GNKfNpM7xg5LYyJRPf",
    ),
    scams=(
        "Ey9TMgRNZAd5XbFzxUcVvYqvBgzMJGNgPZFrNxuKxzUW",
        "J7nSEX8ADf3pVVKkjJnXnwJFXTJcJvyHs6Meh2uDMFmf",
    ),
    market_manipulation=(
        "DuXL7CNZhZksAZJxTdVNrKuHMqMUdMkuNhJYmiXHxgNb",
        "GvX4AU4V9atTBhJ9MpEpZZnEFMJDvVKrHXXEEDNUPPTZ",
    ),
)


def _read_address_file(path: Path) -> frozenset[str]:
    """Strict read; raises ReferenceDataError on anything but a JSON array."""
    if not path.is_file():
        raise ReferenceDataError(str(path), "file not found")
    try:
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise ReferenceDataError(str(path), str(e)) from e
    if not isinstance(data, list):
        raise ReferenceDataError(str(path), "expected a JSON array of addresses")
    return _clean(data)


def _load_address_file(path: Path) -> frozenset[str]:
    """Tolerant read. Returns empty set on failure."""
    if not path.is_file():
        logger.debug("reference_list_missing", path=str(path))
        return frozenset()
    try:
        return _read_address_file(path)
    except ReferenceDataError as e:
        logger.warning("reference_list_load_failed", path=e.path, error=e.reason)
        return frozenset()


def load_reference_lists(
    paths: Mapping[str, Path | str] | None = None,
    *,
    strict: bool = False,
) -> ReferenceLists:
    """
    Load all reference lists from JSON files.

    Args:
        paths: list name -> file; defaults to config.env resolution. Names
            missing from the mapping load as empty sets.
        strict: raise ReferenceDataError instead of logging and returning
            an empty set for an unreadable file.
    """
    resolved = {k: Path(v) for k, v in (paths or get_reference_list_paths()).items()}
    reader = _read_address_file if strict else _load_address_file
    loaded = {
        name: reader(resolved[name]) if name in resolved else frozenset()
        for name in ("mixers", "sanctioned", "scams", "market_manipulation", "suspicious_tokens")
    }
    lists = ReferenceLists(**loaded)
    logger.info("reference_lists_loaded", **lists.counts())
    return lists
