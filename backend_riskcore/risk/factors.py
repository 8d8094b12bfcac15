"""
Risk factor detectors for the calibration engine.

Each detector reads one FactorContext and returns a RiskFactor for its type,
with score 0 when nothing was found. Scores are already weighted: a raw signal
normalized to [0, 1] times the factor's calibrated weight. Detectors never
mutate the context; the context holds immutable snapshots only.
"""

from __future__ import annotations

import math
from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Sequence

from backend_riskcore.patterns.models import SECONDS_PER_DAY, Severity
from backend_riskcore.patterns.time_patterns import UNUSUAL_HOUR_END, UNUSUAL_HOUR_START
from backend_riskcore.risk.models import (
    AccountTransaction,
    CalibratedWeights,
    FactorType,
    RiskFactor,
)
from backend_riskcore.risk.reference_data import ReferenceLists

VELOCITY_WINDOW_COUNT = 20
VELOCITY_WINDOW_SECONDS = 5 * 60
VELOCITY_MAX_TX_PER_MINUTE = 100

UNUSUAL_TIMING_MIN_RATIO = 0.5
UNUSUAL_TIMING_MIN_COUNT = 5
UNUSUAL_TIMING_MEDIUM_RATIO = 0.7

NEW_ACCOUNT_MAX_AGE_SECONDS = 7 * SECONDS_PER_DAY
NEW_ACCOUNT_MIN_TRANSACTIONS = 20
NEW_ACCOUNT_MAX_TX_PER_DAY = 50

LOW_BALANCE_SOL = 0.1
HIGH_THROUGHPUT_SOL = 10
ZERO_BALANCE_FLOOR_SOL = 0.001
THROUGHPUT_RATIO_SCALE = 1000

COMPLEX_MIN_ACCOUNTS = 4
COMPLEX_SCALE = 10

MANIPULATION_SATURATION = 5

WASH_TRADING_MIN_PAIRS = 3
WASH_TRADING_SATURATION = 10

FAILED_MIN_COUNT = 5

SUSPICIOUS_TOKEN_SATURATION = 3


@dataclass(frozen=True)
class FactorContext:
    address: str
    transactions: tuple[AccountTransaction, ...]
    balance_sol: float
    reference_lists: ReferenceLists
    weights: CalibratedWeights


def _hour_utc(block_time: float) -> int:
    return datetime.fromtimestamp(block_time, tz=timezone.utc).hour


def _timed(transactions: Sequence[AccountTransaction]) -> list[float]:
    """Sorted block times, skipping transactions without one."""
    return sorted(tx.block_time for tx in transactions if tx.block_time is not None)


def _none(factor_type: FactorType, name: str, description: str) -> RiskFactor:
    return RiskFactor(
        type=factor_type,
        name=name,
        score=0.0,
        severity=Severity.LOW,
        description=description,
    )


def high_risk_interaction(ctx: FactorContext) -> RiskFactor:
    """Maximum matching list weight over all hits; not summed."""
    lists = ctx.reference_lists
    w = ctx.weights
    checks = (
        (lists.mixers, w.mixer_interaction, "Interaction with known mixer service detected"),
        (lists.sanctioned, w.sanctioned_interaction, "Interaction with sanctioned address detected"),
        (lists.scams, w.scam_interaction, "Interaction with known scam address detected"),
        (
            lists.market_manipulation,
            w.market_manipulation,
            "Interaction with address known for market manipulation detected",
        ),
    )
    hits = 0
    highest = 0.0
    description = ""
    for tx in ctx.transactions:
        accounts = set(tx.account_keys)
        for listed, weight, label in checks:
            if accounts & listed:
                hits += 1
                if weight >= highest:
                    highest = weight
                    description = label

    name = "High Risk Interaction"
    if hits == 0:
        return _none(
            FactorType.HIGH_RISK_INTERACTION,
            name,
            "No interactions with high-risk addresses detected",
        )
    return RiskFactor(
        type=FactorType.HIGH_RISK_INTERACTION,
        name=name,
        score=highest,
        severity=Severity.CRITICAL if highest > 0.8 else Severity.HIGH,
        description=f"{description} ({hits} interactions)",
    )


def high_velocity(ctx: FactorContext) -> RiskFactor:
    """Fastest run of 20 consecutive transactions completed within 5 minutes."""
    name = "Transaction Velocity"
    times = _timed(ctx.transactions)
    fastest = 0.0
    fastest_window = 0.0
    for i in range(len(times) - VELOCITY_WINDOW_COUNT + 1):
        window = times[i + VELOCITY_WINDOW_COUNT - 1] - times[i]
        if window > VELOCITY_WINDOW_SECONDS:
            continue
        per_minute = math.inf if window <= 0 else VELOCITY_WINDOW_COUNT / (window / 60)
        if per_minute > fastest:
            fastest = per_minute
            fastest_window = window

    if fastest <= 0:
        return _none(FactorType.HIGH_VELOCITY, name, "Normal transaction velocity")
    score = min(1.0, fastest / VELOCITY_MAX_TX_PER_MINUTE) * ctx.weights.high_velocity
    rate = "same block time" if math.isinf(fastest) else f"{fastest:.2f} tx/min"
    return RiskFactor(
        type=FactorType.HIGH_VELOCITY,
        name=name,
        score=score,
        severity=Severity.HIGH if score > 0.5 else Severity.MEDIUM,
        description=(
            f"Unusually high transaction velocity: {VELOCITY_WINDOW_COUNT} transactions "
            f"in {fastest_window / 60:.2f} minutes ({rate})"
        ),
    )


def unusual_timing(ctx: FactorContext) -> RiskFactor:
    name = "Unusual Transaction Timing"
    total = len(ctx.transactions)
    count = sum(
        1
        for tx in ctx.transactions
        if tx.block_time is not None
        and UNUSUAL_HOUR_START <= _hour_utc(tx.block_time) <= UNUSUAL_HOUR_END
    )
    ratio = count / total if total else 0.0
    if ratio <= UNUSUAL_TIMING_MIN_RATIO or count < UNUSUAL_TIMING_MIN_COUNT:
        return _none(FactorType.UNUSUAL_TIMING, name, "Normal transaction timing patterns")
    return RiskFactor(
        type=FactorType.UNUSUAL_TIMING,
        name=name,
        score=ctx.weights.unusual_hours * ratio,
        severity=Severity.MEDIUM if ratio > UNUSUAL_TIMING_MEDIUM_RATIO else Severity.LOW,
        description=(
            f"{count} transactions ({ratio * 100:.1f}%) occurred during unusual hours "
            f"({UNUSUAL_HOUR_START}-{UNUSUAL_HOUR_END} AM UTC)"
        ),
    )


def new_account_high_activity(ctx: FactorContext) -> RiskFactor:
    """History spanning under 7 days with more than 20 timestamped transactions."""
    name = "New Account High Activity"
    times = _timed(ctx.transactions)
    # age and rate both come from timestamped entries only
    total = len(times)
    if not times:
        return _none(FactorType.NEW_ACCOUNT_HIGH_ACTIVITY, name, "No transaction history available")
    age = times[-1] - times[0]
    if age >= NEW_ACCOUNT_MAX_AGE_SECONDS or total <= NEW_ACCOUNT_MIN_TRANSACTIONS:
        return _none(
            FactorType.NEW_ACCOUNT_HIGH_ACTIVITY,
            name,
            "Normal account age and activity pattern",
        )
    age_days = age / SECONDS_PER_DAY
    per_day = math.inf if age_days <= 0 else total / age_days
    score = min(1.0, per_day / NEW_ACCOUNT_MAX_TX_PER_DAY) * ctx.weights.new_account
    rate = "all in one block time" if math.isinf(per_day) else f"{per_day:.1f} tx/day"
    return RiskFactor(
        type=FactorType.NEW_ACCOUNT_HIGH_ACTIVITY,
        name=name,
        score=score,
        severity=Severity.MEDIUM if score > 0.5 else Severity.LOW,
        description=f"New account ({age_days:.1f} days old) with high activity ({rate})",
    )


def low_balance_high_throughput(ctx: FactorContext) -> RiskFactor:
    name = "Low Balance High Throughput"
    if ctx.balance_sol > LOW_BALANCE_SOL:
        return _none(FactorType.LOW_BALANCE_HIGH_THROUGHPUT, name, "Normal balance for transaction volume")
    # sum of |post - pre| over all balances; approximate, ignores token transfers
    total_value = sum(tx.balance_delta_sol for tx in ctx.transactions)
    if total_value <= HIGH_THROUGHPUT_SOL:
        return _none(FactorType.LOW_BALANCE_HIGH_THROUGHPUT, name, "Normal balance for transaction volume")
    ratio = total_value / (ctx.balance_sol or ZERO_BALANCE_FLOOR_SOL)
    score = min(1.0, ratio / THROUGHPUT_RATIO_SCALE) * ctx.weights.low_balance_high_throughput
    return RiskFactor(
        type=FactorType.LOW_BALANCE_HIGH_THROUGHPUT,
        name=name,
        score=score,
        severity=Severity.HIGH if score > 0.6 else Severity.MEDIUM,
        description=(
            f"Low balance ({ctx.balance_sol:.3f} SOL) with high transaction throughput "
            f"({total_value:.2f} SOL)"
        ),
    )


def complex_patterns(ctx: FactorContext) -> RiskFactor:
    """Transactions touching 4 or more distinct accounts."""
    name = "Complex Transaction Patterns"
    complex_count = 0
    max_accounts = 0
    for tx in ctx.transactions:
        unique = len(set(tx.account_keys))
        if unique >= COMPLEX_MIN_ACCOUNTS:
            complex_count += 1
            max_accounts = max(max_accounts, unique)
    if complex_count == 0:
        return _none(FactorType.COMPLEX_PATTERNS, name, "No complex transaction patterns detected")
    ratio = complex_count / len(ctx.transactions)
    score = min(1.0, ratio * max_accounts / COMPLEX_SCALE) * ctx.weights.complex_patterns
    return RiskFactor(
        type=FactorType.COMPLEX_PATTERNS,
        name=name,
        score=score,
        severity=Severity.HIGH if score > 0.6 else Severity.MEDIUM,
        description=(
            f"{complex_count} complex transactions detected "
            f"(max {max_accounts} accounts in a single tx)"
        ),
    )


def market_manipulation(ctx: FactorContext) -> RiskFactor:
    name = "Market Manipulation"
    listed = ctx.reference_lists.market_manipulation
    count = sum(1 for tx in ctx.transactions if listed.intersection(tx.account_keys))
    if count == 0:
        return _none(FactorType.MARKET_MANIPULATION, name, "No market manipulation patterns detected")
    score = min(1.0, count / MANIPULATION_SATURATION) * ctx.weights.market_manipulation
    return RiskFactor(
        type=FactorType.MARKET_MANIPULATION,
        name=name,
        score=score,
        severity=Severity.HIGH if score > 0.7 else Severity.MEDIUM,
        description=f"{count} interactions with addresses known for market manipulation",
    )


def wash_trading(ctx: FactorContext) -> RiskFactor:
    """
    Approximate: the first account key is taken as sender and the second as
    receiver, which can misattribute direction on multi-account transactions.
    Fires on the first pair seen going both ways at least 3 times.
    """
    name = "Wash Trading"
    pairs: dict[tuple[str, str], int] = defaultdict(int)
    for tx in ctx.transactions:
        if not tx.has_meta or len(tx.account_keys) < 2:
            continue
        sender, receiver = tx.account_keys[0], tx.account_keys[1]
        pairs[(sender, receiver)] += 1
        reverse = pairs.get((receiver, sender), 0)
        bidirectional = min(pairs[(sender, receiver)], reverse)
        if bidirectional >= WASH_TRADING_MIN_PAIRS:
            score = min(1.0, bidirectional / WASH_TRADING_SATURATION) * ctx.weights.wash_trading
            return RiskFactor(
                type=FactorType.WASH_TRADING,
                name=name,
                score=score,
                severity=Severity.HIGH if score > 0.6 else Severity.MEDIUM,
                description=(
                    f"Potential wash trading detected: {bidirectional} bidirectional "
                    "transactions between the same addresses"
                ),
            )
    return _none(FactorType.WASH_TRADING, name, "No wash trading patterns detected")


def failed_transactions(ctx: FactorContext) -> RiskFactor:
    name = "Failed Transactions"
    failed = sum(1 for tx in ctx.transactions if tx.failed)
    if failed < FAILED_MIN_COUNT:
        return _none(FactorType.FAILED_TRANSACTIONS, name, "Normal transaction success rate")
    ratio = failed / len(ctx.transactions)
    score = min(1.0, ratio * 2) * ctx.weights.failed_transactions
    return RiskFactor(
        type=FactorType.FAILED_TRANSACTIONS,
        name=name,
        score=score,
        severity=Severity.MEDIUM if score > 0.5 else Severity.LOW,
        description=f"{failed} failed transactions ({ratio * 100:.1f}% failure rate)",
    )


def _has_transfer_log(tx: AccountTransaction) -> bool:
    return any("transfer" in line.lower() for line in tx.log_messages)


def unusual_token_transfers(ctx: FactorContext) -> RiskFactor:
    """Distinct denylisted tokens among the accounts of transfer transactions."""
    name = "Unusual Token Transfers"
    denylist = ctx.reference_lists.suspicious_tokens
    suspicious: set[str] = set()
    for tx in ctx.transactions:
        if tx.has_meta and _has_transfer_log(tx):
            suspicious.update(denylist.intersection(tx.account_keys))
    if not suspicious:
        return _none(
            FactorType.UNUSUAL_TOKEN_TRANSFERS,
            name,
            "No unusual token transfer patterns detected",
        )
    score = min(1.0, len(suspicious) / SUSPICIOUS_TOKEN_SATURATION) * ctx.weights.unusual_token_transfers
    return RiskFactor(
        type=FactorType.UNUSUAL_TOKEN_TRANSFERS,
        name=name,
        score=score,
        severity=Severity.HIGH if score > 0.6 else Severity.MEDIUM,
        description=f"Unusual token transfers detected involving {len(suspicious)} suspicious tokens",
    )


FACTOR_DETECTORS: tuple[Callable[[FactorContext], RiskFactor], ...] = (
    high_risk_interaction,
    high_velocity,
    unusual_timing,
    new_account_high_activity,
    low_balance_high_throughput,
    complex_patterns,
    market_manipulation,
    wash_trading,
    failed_transactions,
    unusual_token_transfers,
)
