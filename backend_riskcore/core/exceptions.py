"""
Application-level exceptions.

Only contract violations (caller misuse) surface as exceptions from the engine.
Insufficient or malformed transaction data is never an error: detectors return
empty results. External-dependency failures are handled inside the calibration
engine and never reach the caller.
"""

from __future__ import annotations

from typing import Any


class RiskCoreError(Exception):
    """Base class for all backend_riskcore errors."""


class InvalidAddressError(RiskCoreError, ValueError):
    """Subject address is missing, empty, or not a string."""

    def __init__(self, address: Any) -> None:
        super().__init__(f"subject address must be a non-empty string, got {address!r}")
        self.address = address


class ReferenceDataError(RiskCoreError):
    """A known-address reference file could not be read or parsed."""

    def __init__(self, path: str, reason: str) -> None:
        super().__init__(f"reference data unreadable: {path} ({reason})")
        self.path = path
        self.reason = reason


class CalibrationStoreError(RiskCoreError):
    """Calibration record could not be persisted."""


class CatalogFormatError(RiskCoreError, ValueError):
    """Pattern catalog JSON is not in the export format."""


def require_address(address: Any) -> str:
    """Return the stripped address or raise InvalidAddressError."""
    if not isinstance(address, str) or not address.strip():
        raise InvalidAddressError(address)
    return address.strip()