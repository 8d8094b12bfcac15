"""
Data models for risk calibration input and output.

Responsibilities:
- AccountTransaction: the richer per-transaction record the factor detectors
  read (account keys, balances, error, logs).
- RiskFactor / RiskProfile: factor detector output and the merged profile.
- CalibratedWeights / CalibrationRecord: the tunable weight table and the
  persisted adjustments applied on top of it.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field, fields, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Mapping, Sequence

from backend_riskcore.patterns.models import Severity, parse_timestamp
from backend_riskcore.riskcore_logging import get_logger

logger = get_logger(__name__)

LAMPORTS_PER_SOL = 1_000_000_000

DEFAULT_HIGH_THRESHOLD = 75.0
DEFAULT_MEDIUM_THRESHOLD = 40.0


class FactorType(str, Enum):
    HIGH_RISK_INTERACTION = "high_risk_interaction"
    HIGH_VELOCITY = "high_velocity"
    UNUSUAL_TIMING = "unusual_timing"
    NEW_ACCOUNT_HIGH_ACTIVITY = "new_account_high_activity"
    LOW_BALANCE_HIGH_THROUGHPUT = "low_balance_high_throughput"
    COMPLEX_PATTERNS = "complex_patterns"
    MARKET_MANIPULATION = "market_manipulation"
    WASH_TRADING = "wash_trading"
    FAILED_TRANSACTIONS = "failed_transactions"
    UNUSUAL_TOKEN_TRANSFERS = "unusual_token_transfers"


class RiskCategory(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


@dataclass(frozen=True)
class CategoryThresholds:
    """Score cut-offs: score >= high -> HIGH, score >= medium -> MEDIUM."""

    high: float = DEFAULT_HIGH_THRESHOLD
    medium: float = DEFAULT_MEDIUM_THRESHOLD

    def __post_init__(self) -> None:
        if self.medium > self.high:
            raise ValueError(f"medium threshold {self.medium} above high threshold {self.high}")


DEFAULT_THRESHOLDS = CategoryThresholds()


def categorize_score(score: float, thresholds: CategoryThresholds = DEFAULT_THRESHOLDS) -> RiskCategory:
    """Monotonic mapping from a 0-100 score to a risk category."""
    if score >= thresholds.high:
        return RiskCategory.HIGH
    if score >= thresholds.medium:
        return RiskCategory.MEDIUM
    return RiskCategory.LOW


def clamp_unit(value: float) -> float:
    """Clamp to [0, 1]; NaN becomes 0."""
    if math.isnan(value):
        return 0.0
    return max(0.0, min(1.0, float(value)))


@dataclass(frozen=True)
class RiskFactor:
    """
    One factor detector's verdict. score is the weighted, normalized
    contribution in [0, 1]; impact is round(score * 100).
    """

    type: FactorType
    name: str
    score: float
    severity: Severity
    description: str
    impact: int = field(init=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "score", clamp_unit(self.score))
        object.__setattr__(self, "impact", round(self.score * 100))

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type.value,
            "name": self.name,
            "score": self.score,
            "impact": self.impact,
            "severity": self.severity.value,
            "description": self.description,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "RiskFactor":
        return cls(
            type=FactorType(data["type"]),
            name=str(data.get("name") or ""),
            score=float(data.get("score") or 0.0),
            severity=Severity(data.get("severity") or Severity.LOW.value),
            description=str(data.get("description") or ""),
        )


@dataclass(frozen=True)
class RiskProfile:
    """Calibrated risk for one address; score in [0, 100]."""

    address: str
    score: float
    category: RiskCategory
    factors: tuple[RiskFactor, ...]
    last_updated: datetime

    def factor(self, factor_type: FactorType) -> RiskFactor | None:
        for f in self.factors:
            if f.type == factor_type:
                return f
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "address": self.address,
            "score": self.score,
            "category": self.category.value,
            "factors": [f.to_dict() for f in self.factors],
            "lastUpdated": self.last_updated.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "RiskProfile":
        return cls(
            address=str(data["address"]),
            score=float(data.get("score") or 0.0),
            category=RiskCategory(data.get("category") or RiskCategory.LOW.value),
            factors=tuple(RiskFactor.from_dict(f) for f in data.get("factors") or []),
            last_updated=parse_timestamp(data.get("lastUpdated") or datetime.now(timezone.utc)),
        )


def _account_key(entry: Any) -> str:
    # jsonParsed gives {"pubkey": ..., "signer": ...}; legacy encoding gives plain strings
    if isinstance(entry, dict):
        return str(entry.get("pubkey") or "")
    return str(entry or "")


@dataclass(frozen=True)
class AccountTransaction:
    """
    One transaction from the subject's on-chain history.

    Balances are in lamports, index-aligned with account_keys. has_meta is
    False when the RPC returned no meta (balances/err/logs then unknown).
    """

    signature: str
    block_time: float | None
    account_keys: tuple[str, ...] = ()
    pre_balances: tuple[int, ...] = ()
    post_balances: tuple[int, ...] = ()
    err: Any = None
    log_messages: tuple[str, ...] = ()
    has_meta: bool = True

    @property
    def failed(self) -> bool:
        return self.has_meta and self.err is not None

    @property
    def balance_delta_sol(self) -> float:
        """|sum(post) - sum(pre)| in SOL; 0 without meta."""
        if not self.has_meta or not self.pre_balances or not self.post_balances:
            return 0.0
        return abs(sum(self.post_balances) - sum(self.pre_balances)) / LAMPORTS_PER_SOL

    @classmethod
    def from_rpc(cls, data: Mapping[str, Any]) -> "AccountTransaction":
        """
        Parse a getTransaction (jsonParsed) style dict:
        {blockTime, transaction: {signatures, message: {accountKeys}}, meta: {...}}.
        """
        tx = data.get("transaction") or {}
        message = tx.get("message") or {}
        meta = data.get("meta")
        sigs = tx.get("signatures") or []
        signature = data.get("signature") or (sigs[0] if sigs else "")
        block_time = data.get("blockTime", data.get("block_time"))
        return cls(
            signature=str(signature),
            block_time=float(block_time) if block_time is not None else None,
            account_keys=tuple(_account_key(k) for k in message.get("accountKeys") or []),
            pre_balances=tuple(int(b) for b in (meta or {}).get("preBalances") or []),
            post_balances=tuple(int(b) for b in (meta or {}).get("postBalances") or []),
            err=(meta or {}).get("err"),
            log_messages=tuple(str(m) for m in (meta or {}).get("logMessages") or []),
            has_meta=meta is not None,
        )


@dataclass(frozen=True)
class CalibratedWeights:
    """Per-factor multipliers, each in [0, 1]."""

    mixer_interaction: float = 0.85
    sanctioned_interaction: float = 0.95
    scam_interaction: float = 0.75
    high_velocity: float = 0.65
    unusual_hours: float = 0.35
    new_account: float = 0.45
    low_balance_high_throughput: float = 0.7
    complex_patterns: float = 0.6
    market_manipulation: float = 0.8
    wash_trading: float = 0.75
    failed_transactions: float = 0.4
    unusual_token_transfers: float = 0.55
    thresholds: CategoryThresholds = DEFAULT_THRESHOLDS

    @classmethod
    def weight_names(cls) -> tuple[str, ...]:
        return tuple(f.name for f in fields(cls) if f.name != "thresholds")

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {name: getattr(self, name) for name in self.weight_names()}
        out["thresholds"] = {"high": self.thresholds.high, "medium": self.thresholds.medium}
        return out


DEFAULT_WEIGHTS = CalibratedWeights()


@dataclass(frozen=True)
class CalibrationRecord:
    """
    A persisted calibration: absolute weight overrides by weight name and
    optional category threshold overrides ("high", "medium").
    """

    factor_adjustments: dict[str, float]
    threshold_adjustments: dict[str, float]
    description: str
    created_at: datetime
    id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "factorAdjustments": dict(self.factor_adjustments),
            "thresholdAdjustments": dict(self.threshold_adjustments),
            "description": self.description,
            "createdAt": self.created_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "CalibrationRecord":
        return cls(
            id=data.get("id"),
            factor_adjustments={str(k): float(v) for k, v in (data.get("factorAdjustments") or {}).items()},
            threshold_adjustments={str(k): float(v) for k, v in (data.get("thresholdAdjustments") or {}).items()},
            description=str(data.get("description") or ""),
            created_at=parse_timestamp(data["createdAt"]),
        )


def apply_calibration(weights: CalibratedWeights, record: CalibrationRecord | None) -> CalibratedWeights:
    """
    Return a new weight table with the record's overrides applied.

    Unknown weight names are ignored (logged). Weights are clamped to [0, 1].
    A threshold pair that would invert (medium > high) keeps the current thresholds.
    """
    if record is None:
        return weights
    known = set(CalibratedWeights.weight_names())
    overrides: dict[str, Any] = {}
    for name, value in record.factor_adjustments.items():
        if name not in known:
            logger.warning("calibration_unknown_weight", weight=name)
            continue
        overrides[name] = clamp_unit(value)

    thresholds = weights.thresholds
    if record.threshold_adjustments:
        high = float(record.threshold_adjustments.get("high", thresholds.high))
        medium = float(record.threshold_adjustments.get("medium", thresholds.medium))
        try:
            thresholds = CategoryThresholds(high=high, medium=medium)
        except ValueError as e:
            logger.warning("calibration_thresholds_rejected", error=str(e))
    return replace(weights, thresholds=thresholds, **overrides)


def sorted_by_score(factors: Sequence[RiskFactor]) -> list[RiskFactor]:
    """Descending by score; ties keep detector order."""
    return sorted(factors, key=lambda f: f.score, reverse=True)
