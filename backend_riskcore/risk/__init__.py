"""
Risk calibration package: factor detectors, weights and the calibration engine.

Turns a wallet's on-chain history, its balance and known-address intelligence
into a bounded 0-100 RiskProfile. Weights and category thresholds are tunable
through persisted calibration records.
"""

from backend_riskcore.risk.models import (
    AccountTransaction,
    CalibratedWeights,
    CalibrationRecord,
    CategoryThresholds,
    FactorType,
    RiskCategory,
    RiskFactor,
    RiskProfile,
    apply_calibration,
    categorize_score,
)
from backend_riskcore.risk.account_info import (
    AccountInfoProvider,
    BalanceLookup,
    CallableAccountInfoProvider,
    StaticAccountInfoProvider,
)
from backend_riskcore.risk.reference_data import (
    DEFAULT_REFERENCE_LISTS,
    ReferenceLists,
    load_reference_lists,
)
from backend_riskcore.risk.calibration_store import CalibrationStore, load_active_weights
from backend_riskcore.risk.calibration import (
    FeedbackRecord,
    RiskCalibrationEngine,
    apply_risk_scoring_feedback,
    calibrate_risk_score,
    mitigation_recommendations,
    top_risk_factors,
)

__all__ = [
    "AccountInfoProvider",
    "AccountTransaction",
    "BalanceLookup",
    "CalibratedWeights",
    "CalibrationRecord",
    "CalibrationStore",
    "CallableAccountInfoProvider",
    "CategoryThresholds",
    "DEFAULT_REFERENCE_LISTS",
    "FactorType",
    "FeedbackRecord",
    "ReferenceLists",
    "RiskCalibrationEngine",
    "RiskCategory",
    "RiskFactor",
    "RiskProfile",
    "StaticAccountInfoProvider",
    "apply_calibration",
    "apply_risk_scoring_feedback",
    "calibrate_risk_score",
    "categorize_score",
    "load_active_weights",
    "load_reference_lists",
    "mitigation_recommendations",
    "top_risk_factors",
]
