"""
Risk calibration engine.

calibrate_risk_score runs the ten factor detectors over a wallet's history,
sums their weighted scores, scales to 0-100 and categorizes. It never raises
for data or dependency problems: a failed balance lookup or any error mid-run
is logged and the previous profile (or a zero low profile) is returned. Only a
missing/empty subject address raises.

RiskCalibrationEngine holds reference lists and weights; refresh() swaps them
atomically and every calibrate() call works on the snapshot taken at entry.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Any, Iterable, Mapping, Sequence, Union

from backend_riskcore.config.settings import get_settings
from backend_riskcore.core.exceptions import require_address
from backend_riskcore.risk.account_info import AccountInfoProvider
from backend_riskcore.risk.calibration_store import CalibrationStore, load_active_weights
from backend_riskcore.risk.factors import FACTOR_DETECTORS, FactorContext
from backend_riskcore.risk.models import (
    DEFAULT_WEIGHTS,
    AccountTransaction,
    CalibratedWeights,
    FactorType,
    RiskCategory,
    RiskFactor,
    RiskProfile,
    categorize_score,
    sorted_by_score,
)
from backend_riskcore.risk.reference_data import (
    DEFAULT_REFERENCE_LISTS,
    ReferenceLists,
    load_reference_lists,
)
from backend_riskcore.riskcore_logging import bind_wallet, get_logger, short_wallet

logger = get_logger(__name__)

HistoryEntry = Union[AccountTransaction, Mapping[str, Any]]

MITIGATION_ADVICE: dict[FactorType, str] = {
    FactorType.HIGH_RISK_INTERACTION: "Avoid interacting with high-risk addresses like mixers and sanctioned entities",
    FactorType.HIGH_VELOCITY: "Reduce transaction frequency to avoid triggering velocity-based risk alerts",
    FactorType.UNUSUAL_TIMING: "Distribute transactions more evenly throughout the day",
    FactorType.NEW_ACCOUNT_HIGH_ACTIVITY: "Establish a longer account history before conducting high-volume transactions",
    FactorType.LOW_BALANCE_HIGH_THROUGHPUT: "Maintain appropriate balance levels relative to transaction volume",
    FactorType.COMPLEX_PATTERNS: "Simplify transaction patterns by reducing the number of hops between accounts",
    FactorType.MARKET_MANIPULATION: "Avoid patterns that could be interpreted as market manipulation",
    FactorType.WASH_TRADING: "Avoid circular transactions between the same accounts",
    FactorType.FAILED_TRANSACTIONS: "Investigate and resolve the cause of failed transactions",
    FactorType.UNUSUAL_TOKEN_TRANSFERS: "Exercise caution when interacting with new or suspicious tokens",
}
HIGH_RISK_REVIEW_ADVICE = "Consider a complete review of transaction patterns and security practices"


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _as_account_transactions(history: Iterable[HistoryEntry]) -> tuple[AccountTransaction, ...]:
    return tuple(
        tx if isinstance(tx, AccountTransaction) else AccountTransaction.from_rpc(tx)
        for tx in history or ()
    )


def fallback_profile(address: str, existing_profile: RiskProfile | None) -> RiskProfile:
    """Existing profile with a fresh last_updated, or a zero-score low profile."""
    if existing_profile is not None:
        return replace(existing_profile, last_updated=_now())
    return RiskProfile(
        address=address,
        score=0.0,
        category=RiskCategory.LOW,
        factors=(),
        last_updated=_now(),
    )


def calibrate_risk_score(
    address: str,
    account_info_provider: AccountInfoProvider,
    transaction_history: Sequence[HistoryEntry],
    existing_profile: RiskProfile | None = None,
    *,
    reference_lists: ReferenceLists | None = None,
    weights: CalibratedWeights | None = None,
) -> RiskProfile:
    """
    Compute a calibrated RiskProfile for one address.

    Args:
        address: Subject wallet.
        account_info_provider: Balance lookup capability.
        transaction_history: AccountTransactions or getTransaction-style dicts.
        existing_profile: Returned (re-stamped) if calibration fails.
        reference_lists: Known-address snapshot; bundled examples when None.
        weights: Calibrated weights; defaults when None.

    Returns:
        Profile with all ten factors in detector order.

    Raises:
        InvalidAddressError: address is empty or not a string.
    """
    address = require_address(address)
    log = bind_wallet(address, __name__)
    lists = reference_lists if reference_lists is not None else DEFAULT_REFERENCE_LISTS
    active = weights if weights is not None else DEFAULT_WEIGHTS
    try:
        lookup = account_info_provider.get_balance(address)
        if not lookup.ok:
            log.error(
                "risk_calibration_failed",
                error=lookup.error or "balance unavailable",
                has_existing_profile=existing_profile is not None,
            )
            return fallback_profile(address, existing_profile)
        ctx = FactorContext(
            address=address,
            transactions=_as_account_transactions(transaction_history),
            balance_sol=float(lookup.balance_sol),
            reference_lists=lists,
            weights=active,
        )
        factors = tuple(detector(ctx) for detector in FACTOR_DETECTORS)
        score = min(100.0, max(0.0, sum(f.score for f in factors) * 100))
        category = categorize_score(score, active.thresholds)
    except Exception as e:
        log.error(
            "risk_calibration_failed",
            error=str(e),
            has_existing_profile=existing_profile is not None,
        )
        return fallback_profile(address, existing_profile)

    profile = RiskProfile(
        address=address,
        score=score,
        category=category,
        factors=factors,
        last_updated=_now(),
    )
    log.info(
        "risk_calibrated",
        score=round(score, 2),
        category=category.value,
        tx_count=len(ctx.transactions),
        active_factors=[f.type.value for f in factors if f.score > 0],
    )
    return profile


def top_risk_factors(profile: RiskProfile, n: int = 3) -> list[RiskFactor]:
    """The n highest-scoring factors, descending."""
    return sorted_by_score(profile.factors)[: max(0, n)]


def mitigation_recommendations(profile: RiskProfile) -> list[str]:
    """Advice for every non-zero factor, deduplicated in order; plus a review note for high risk."""
    recommendations: list[str] = []
    for factor in profile.factors:
        if factor.score == 0:
            continue
        advice = MITIGATION_ADVICE.get(factor.type)
        if advice and advice not in recommendations:
            recommendations.append(advice)
    if profile.category == RiskCategory.HIGH and HIGH_RISK_REVIEW_ADVICE not in recommendations:
        recommendations.append(HIGH_RISK_REVIEW_ADVICE)
    return recommendations


@dataclass(frozen=True)
class FeedbackRecord:
    """Analyst verdict on a predicted profile; the caller persists it."""

    address: str
    actual_category: RiskCategory
    predicted_category: RiskCategory
    predicted_score: float
    created_at: datetime

    @property
    def agrees(self) -> bool:
        return self.actual_category == self.predicted_category

    def to_dict(self) -> dict[str, Any]:
        return {
            "address": self.address,
            "actualCategory": self.actual_category.value,
            "predictedCategory": self.predicted_category.value,
            "predictedScore": self.predicted_score,
            "agrees": self.agrees,
            "createdAt": self.created_at.isoformat(),
        }


def apply_risk_scoring_feedback(
    address: str,
    actual_category: RiskCategory | str,
    predicted_profile: RiskProfile,
) -> FeedbackRecord:
    """Record analyst feedback on a prediction. Logs the record and returns it."""
    address = require_address(address)
    record = FeedbackRecord(
        address=address,
        actual_category=RiskCategory(actual_category),
        predicted_category=predicted_profile.category,
        predicted_score=predicted_profile.score,
        created_at=_now(),
    )
    logger.info(
        "risk_scoring_feedback",
        wallet=short_wallet(address),
        actual=record.actual_category.value,
        predicted=record.predicted_category.value,
        agrees=record.agrees,
    )
    return record


class RiskCalibrationEngine:
    """
    Stateful wrapper around calibrate_risk_score.

    Reference lists and weights are replaced as a pair under a lock; a
    calibration in flight keeps using the pair it started with.
    """

    def __init__(
        self,
        account_info_provider: AccountInfoProvider,
        reference_lists: ReferenceLists | None = None,
        weights: CalibratedWeights | None = None,
        *,
        max_tx_history: int | None = None,
    ) -> None:
        self._provider = account_info_provider
        self._lock = threading.Lock()
        self._reference_lists = reference_lists if reference_lists is not None else DEFAULT_REFERENCE_LISTS
        self._weights = weights if weights is not None else DEFAULT_WEIGHTS
        self._max_tx_history = max_tx_history

    @classmethod
    def from_settings(cls, account_info_provider: AccountInfoProvider) -> "RiskCalibrationEngine":
        """Engine with reference lists and active weights loaded from configured files."""
        settings = get_settings()
        return cls(
            account_info_provider,
            reference_lists=load_reference_lists(settings.reference_list_paths),
            weights=load_active_weights(CalibrationStore(settings.calibration_store_path)),
            max_tx_history=settings.max_tx_history,
        )

    def snapshot(self) -> tuple[ReferenceLists, CalibratedWeights]:
        with self._lock:
            return self._reference_lists, self._weights

    def refresh(
        self,
        reference_lists: ReferenceLists | None = None,
        weights: CalibratedWeights | None = None,
    ) -> None:
        """Swap in new reference lists and/or weights; None keeps the current value."""
        with self._lock:
            if reference_lists is not None:
                self._reference_lists = reference_lists
            if weights is not None:
                self._weights = weights
            counts = self._reference_lists.counts()
        logger.info("risk_engine_refreshed", **counts)

    def calibrate(
        self,
        address: str,
        transaction_history: Sequence[HistoryEntry],
        existing_profile: RiskProfile | None = None,
    ) -> RiskProfile:
        """
        Calibrate with the current snapshot. When max_tx_history is set only
        the first entries are used (RPC history is newest first).
        """
        lists, weights = self.snapshot()
        history = list(transaction_history or ())
        if self._max_tx_history is not None:
            history = history[: self._max_tx_history]
        return calibrate_risk_score(
            address,
            self._provider,
            history,
            existing_profile,
            reference_lists=lists,
            weights=weights,
        )
