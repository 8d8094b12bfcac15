"""
Backend RiskCore: transaction pattern detection and risk calibration for Solana wallets.

Pure, synchronous analysis over already-fetched transaction history: pattern
detectors (time, amount, flow, behavioral) with a per-category aggregator, and
a risk calibration engine that turns factor detectors plus known-address
intelligence into a bounded 0-100 risk profile.
"""

from backend_riskcore.patterns.aggregator import detect_transaction_patterns
from backend_riskcore.risk.calibration import (
    RiskCalibrationEngine,
    calibrate_risk_score,
    mitigation_recommendations,
    top_risk_factors,
)

__version__ = "0.1.0"

__all__ = [
    "RiskCalibrationEngine",
    "calibrate_risk_score",
    "detect_transaction_patterns",
    "mitigation_recommendations",
    "top_risk_factors",
]
