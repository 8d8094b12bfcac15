"""
Tests for the risk calibration engine (risk.calibration): scoring, fallback
on failure, recommendations, feedback and the stateful engine wrapper.
"""

from __future__ import annotations

from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest

from backend_riskcore.core.exceptions import InvalidAddressError
from backend_riskcore.patterns.models import Severity
from backend_riskcore.risk import calibration
from backend_riskcore.risk.account_info import (
    BalanceLookup,
    CallableAccountInfoProvider,
    StaticAccountInfoProvider,
)
from backend_riskcore.risk.calibration import (
    HIGH_RISK_REVIEW_ADVICE,
    MITIGATION_ADVICE,
    RiskCalibrationEngine,
    apply_risk_scoring_feedback,
    calibrate_risk_score,
    mitigation_recommendations,
    top_risk_factors,
)
from backend_riskcore.risk.models import (
    CalibratedWeights,
    CategoryThresholds,
    FactorType,
    RiskCategory,
    RiskProfile,
)
from backend_riskcore.risk.reference_data import ReferenceLists
from tests.conftest import SUBJECT, make_account_tx

SANCTIONED = "58oPyQpn7QXvYfGrX3KKzP4Eq9uPNXtKjEkpoLH5TQjY"
EARLIER = datetime(2024, 1, 1, tzinfo=timezone.utc)


def _provider(balance: float = 0.0) -> StaticAccountInfoProvider:
    return StaticAccountInfoProvider({SUBJECT: balance})


def _existing() -> RiskProfile:
    return RiskProfile(
        address=SUBJECT,
        score=42.0,
        category=RiskCategory.MEDIUM,
        factors=(),
        last_updated=EARLIER,
    )


def _comparable(profile: RiskProfile) -> dict:
    data = profile.to_dict()
    data.pop("lastUpdated")
    return data


def test_empty_history_is_low_with_all_factors_zero():
    """No history and zero balance gives score 0 and ten zeroed factors in order."""
    profile = calibrate_risk_score(SUBJECT, _provider(), [])
    assert profile.score == 0
    assert profile.category == RiskCategory.LOW
    assert [f.type for f in profile.factors] == list(FactorType)
    assert all(f.score == 0 for f in profile.factors)
    assert mitigation_recommendations(profile) == []


def test_single_sanctioned_interaction_dominates():
    """One sanctioned counterparty puts the wallet in the high category."""
    profile = calibrate_risk_score(SUBJECT, _provider(1.0), [make_account_tx((SUBJECT, SANCTIONED))])
    assert profile.score == pytest.approx(95)
    assert profile.category == RiskCategory.HIGH
    top = top_risk_factors(profile)
    assert top[0].type == FactorType.HIGH_RISK_INTERACTION
    assert top[0].severity == Severity.CRITICAL
    assert len(top) == 3


def test_sanctioned_recommendations_include_review_note():
    """High profiles get the factor advice and the full review note."""
    profile = calibrate_risk_score(SUBJECT, _provider(1.0), [make_account_tx((SUBJECT, SANCTIONED))])
    assert mitigation_recommendations(profile) == [
        MITIGATION_ADVICE[FactorType.HIGH_RISK_INTERACTION],
        HIGH_RISK_REVIEW_ADVICE,
    ]


def test_rpc_dict_history_is_accepted():
    """getTransaction-style dicts are parsed into account transactions."""
    raw = {
        "blockTime": 1709553600,
        "transaction": {
            "signatures": ["sigA"],
            "message": {"accountKeys": [{"pubkey": SUBJECT}, {"pubkey": SANCTIONED}]},
        },
        "meta": {"err": None, "preBalances": [10, 0], "postBalances": [5, 5], "logMessages": []},
    }
    profile = calibrate_risk_score(SUBJECT, _provider(1.0), [raw])
    assert profile.factor(FactorType.HIGH_RISK_INTERACTION).score == pytest.approx(0.95)


def test_custom_lists_and_weights():
    """Injected lists and weights replace the bundled ones."""
    lists = ReferenceLists.from_iterables(sanctioned=["Sanctioned1"])
    weights = CalibratedWeights(sanctioned_interaction=0.5)
    profile = calibrate_risk_score(
        SUBJECT,
        _provider(1.0),
        [make_account_tx((SUBJECT, "Sanctioned1"))],
        reference_lists=lists,
        weights=weights,
    )
    assert profile.score == pytest.approx(50)
    assert profile.category == RiskCategory.MEDIUM


def test_thresholds_come_from_weights():
    """Category cut-offs are read from the active weight table."""
    weights = CalibratedWeights(sanctioned_interaction=0.5, thresholds=CategoryThresholds(high=45, medium=20))
    lists = ReferenceLists.from_iterables(sanctioned=["Sanctioned1"])
    profile = calibrate_risk_score(
        SUBJECT,
        _provider(1.0),
        [make_account_tx((SUBJECT, "Sanctioned1"))],
        reference_lists=lists,
        weights=weights,
    )
    assert profile.category == RiskCategory.HIGH


def test_failed_lookup_returns_existing_profile_restamped():
    """A failed balance lookup returns the previous profile with a new timestamp."""
    provider = StaticAccountInfoProvider({}, default=None)
    existing = _existing()
    profile = calibrate_risk_score(SUBJECT, provider, [make_account_tx()], existing)
    assert profile.score == 42.0
    assert profile.category == RiskCategory.MEDIUM
    assert profile.last_updated > EARLIER


def test_failed_lookup_without_existing_profile_is_zero_low():
    """Without a previous profile the fallback is a zero low profile with no factors."""
    provider = CallableAccountInfoProvider(MagicMock(side_effect=ConnectionError("rpc down")))
    profile = calibrate_risk_score(SUBJECT, provider, [make_account_tx((SUBJECT, SANCTIONED))])
    assert profile.score == 0
    assert profile.category == RiskCategory.LOW
    assert profile.factors == ()


def test_provider_raising_does_not_escape():
    """A provider that raises directly is caught and the fallback returned."""
    provider = MagicMock()
    provider.get_balance.side_effect = RuntimeError("boom")
    profile = calibrate_risk_score(SUBJECT, provider, [], _existing())
    assert profile.score == 42.0


def test_detector_error_returns_fallback(monkeypatch):
    """An exception inside a factor detector falls back instead of raising."""

    def broken(ctx):
        raise ZeroDivisionError("bad data")

    monkeypatch.setattr(calibration, "FACTOR_DETECTORS", (broken,))
    profile = calibrate_risk_score(SUBJECT, _provider(), [make_account_tx()], _existing())
    assert profile.score == 42.0


@pytest.mark.parametrize("address", ["", "  ", None])
def test_invalid_address_raises(address):
    """The only error calibrate_risk_score raises is an invalid subject."""
    with pytest.raises(InvalidAddressError):
        calibrate_risk_score(address, _provider(), [])


def test_calibration_is_idempotent():
    """Same inputs give the same profile apart from the timestamp."""
    history = [make_account_tx((SUBJECT, SANCTIONED), seconds=i * 3) for i in range(25)]
    first = calibrate_risk_score(SUBJECT, _provider(0.05), history)
    second = calibrate_risk_score(SUBJECT, _provider(0.05), history)
    assert _comparable(first) == _comparable(second)
    assert 0 <= first.score <= 100


def test_score_is_capped_at_100():
    """Many simultaneous factors cannot push the score past 100."""
    history = [make_account_tx((SUBJECT, SANCTIONED, "B", "C"), seconds=0, err="x") for _ in range(25)]
    profile = calibrate_risk_score(SUBJECT, _provider(0.0), history)
    assert profile.score == 100
    assert profile.category == RiskCategory.HIGH


def test_top_risk_factors_bounds():
    """n larger than the factor count returns all; n <= 0 returns none."""
    profile = calibrate_risk_score(SUBJECT, _provider(), [])
    assert len(top_risk_factors(profile, n=50)) == 10
    assert top_risk_factors(profile, n=0) == []


def test_feedback_record():
    """Feedback compares the analyst verdict with the prediction."""
    predicted = _existing()
    record = apply_risk_scoring_feedback(SUBJECT, "high", predicted)
    assert record.actual_category == RiskCategory.HIGH
    assert record.predicted_category == RiskCategory.MEDIUM
    assert record.agrees is False
    assert record.to_dict()["predictedScore"] == 42.0


def test_feedback_rejects_unknown_category():
    """Categories outside low/medium/high are rejected."""
    with pytest.raises(ValueError):
        apply_risk_scoring_feedback(SUBJECT, "extreme", _existing())


def test_engine_refresh_swaps_reference_lists():
    """A refreshed engine scores against the new lists."""
    engine = RiskCalibrationEngine(_provider(1.0), reference_lists=ReferenceLists())
    history = [make_account_tx((SUBJECT, "Sanctioned1"))]
    assert engine.calibrate(SUBJECT, history).category == RiskCategory.LOW

    engine.refresh(reference_lists=ReferenceLists.from_iterables(sanctioned=["Sanctioned1"]))
    assert engine.calibrate(SUBJECT, history).category == RiskCategory.HIGH


def test_engine_refresh_none_keeps_current():
    """refresh() with no arguments keeps the current snapshot."""
    lists = ReferenceLists.from_iterables(mixers=["MixerA"])
    weights = CalibratedWeights(mixer_interaction=0.1)
    engine = RiskCalibrationEngine(_provider(), reference_lists=lists, weights=weights)
    engine.refresh()
    assert engine.snapshot() == (lists, weights)


def test_engine_truncates_history():
    """Only the first max_tx_history entries are scored."""
    lists = ReferenceLists.from_iterables(sanctioned=["Sanctioned1"])
    engine = RiskCalibrationEngine(_provider(1.0), reference_lists=lists, max_tx_history=1)
    history = [make_account_tx(), make_account_tx((SUBJECT, "Sanctioned1"), seconds=1)]
    assert engine.calibrate(SUBJECT, history).score == 0


def test_engine_from_settings(monkeypatch, reference_dir, calibration_path, clean_settings):
    """from_settings loads lists from the configured directory and weights from the store."""
    monkeypatch.setenv("RISKCORE_REFERENCE_DIR", str(reference_dir))
    monkeypatch.setenv("RISK_CALIBRATION_PATH", str(calibration_path))
    monkeypatch.setenv("RISKCORE_MAX_TX_HISTORY", "50")
    for env_name in (
        "MIXER_ADDRESSES_PATH",
        "SANCTIONED_ADDRESSES_PATH",
        "SCAM_ADDRESSES_PATH",
        "MANIPULATION_ADDRESSES_PATH",
        "SUSPICIOUS_TOKENS_PATH",
    ):
        monkeypatch.delenv(env_name, raising=False)

    engine = RiskCalibrationEngine.from_settings(_provider(1.0))
    lists, weights = engine.snapshot()
    assert lists.sanctioned == frozenset({"Sanctioned1"})
    assert weights == CalibratedWeights()
    profile = engine.calibrate(SUBJECT, [make_account_tx((SUBJECT, "Sanctioned1"))])
    assert profile.category == RiskCategory.HIGH


def test_balance_lookup_ok():
    """A lookup with a balance and no error is ok."""
    assert BalanceLookup.success(0).ok
    assert not BalanceLookup.failure("x").ok
