"""
Pytest fixtures for RiskCore tests. Transaction factories, a subject wallet,
and tmp_path-backed reference lists and calibration store.
"""

from __future__ import annotations

import itertools
import json
from datetime import datetime, timedelta, timezone

import pytest

from backend_riskcore.config.settings import get_settings
from backend_riskcore.patterns.models import Transaction
from backend_riskcore.risk.models import AccountTransaction

SUBJECT = "Subj1111111111111111111111111111111111111111"
COUNTERPARTY = "Cpty2222222222222222222222222222222222222222"

# Monday noon UTC: outside the unusual-hour window
BASE_TIME = datetime(2024, 3, 4, 12, 0, tzinfo=timezone.utc)
BASE_EPOCH = BASE_TIME.timestamp()

_sig_counter = itertools.count(1)


def make_tx(
    sender: str = SUBJECT,
    receiver: str = COUNTERPARTY,
    amount: float = 1.2345,
    at: datetime | None = None,
    *,
    seconds: float = 0,
    signature: str | None = None,
) -> Transaction:
    """Transaction at `at` (default BASE_TIME) shifted by `seconds`."""
    when = (at or BASE_TIME) + timedelta(seconds=seconds)
    return Transaction(
        signature=signature or f"sig{next(_sig_counter)}",
        sender=sender,
        receiver=receiver,
        amount=amount,
        timestamp=when,
    )


def make_account_tx(
    account_keys: tuple[str, ...] = (SUBJECT, COUNTERPARTY),
    *,
    seconds: float = 0,
    block_time: float | None = None,
    pre: tuple[int, ...] = (),
    post: tuple[int, ...] = (),
    err: object = None,
    logs: tuple[str, ...] = (),
    has_meta: bool = True,
) -> AccountTransaction:
    """AccountTransaction at BASE_EPOCH + seconds unless block_time is given."""
    return AccountTransaction(
        signature=f"acct{next(_sig_counter)}",
        block_time=BASE_EPOCH + seconds if block_time is None else block_time,
        account_keys=account_keys,
        pre_balances=pre,
        post_balances=post,
        err=err,
        log_messages=logs,
        has_meta=has_meta,
    )


@pytest.fixture
def subject() -> str:
    return SUBJECT


@pytest.fixture
def reference_dir(tmp_path):
    """Directory with one JSON list per reference category."""
    ref = tmp_path / "reference"
    ref.mkdir()
    (ref / "mixers.json").write_text(json.dumps(["MixerA", "MixerB"]), encoding="utf-8")
    (ref / "sanctioned.json").write_text(json.dumps(["Sanctioned1"]), encoding="utf-8")
    (ref / "scams.json").write_text(json.dumps(["Scam1", "", "  Scam2  "]), encoding="utf-8")
    (ref / "market_manipulation.json").write_text(json.dumps(["Manip1"]), encoding="utf-8")
    (ref / "suspicious_tokens.json").write_text(json.dumps(["TokenBad1"]), encoding="utf-8")
    return ref


@pytest.fixture
def calibration_path(tmp_path):
    return tmp_path / "calibration" / "risk_calibration.json"


@pytest.fixture
def clean_settings():
    """Clear cached settings before and after a test that changes the environment."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()
