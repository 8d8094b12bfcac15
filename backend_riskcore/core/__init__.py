"""
Core utilities shared by the pattern detectors and the risk calibration engine.

Domain exceptions and the subject-address precondition check.
"""

from backend_riskcore.core.exceptions import (
    CalibrationStoreError,
    CatalogFormatError,
    InvalidAddressError,
    ReferenceDataError,
    RiskCoreError,
    require_address,
)

__all__ = [
    "CalibrationStoreError",
    "CatalogFormatError",
    "InvalidAddressError",
    "ReferenceDataError",
    "RiskCoreError",
    "require_address",
]
