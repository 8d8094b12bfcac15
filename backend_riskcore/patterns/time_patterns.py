"""
Time-based pattern detection.

Rapid-succession runs, periodic cadence, unusual-hour concentration and
burst days. Input is sorted by timestamp first; metadata carries the
thresholds and observed values.
"""

from __future__ import annotations

from collections import defaultdict
from typing import Sequence

from backend_riskcore.patterns.models import (
    PatternResult,
    PatternType,
    Severity,
    Transaction,
    consecutive_deltas,
    day_key,
    mean,
    pstdev,
    signatures,
    sort_chronologically,
)
from backend_riskcore.patterns.rules import run_rules
from backend_riskcore.riskcore_logging import get_logger

logger = get_logger(__name__)

MIN_TRANSACTIONS = 3

RAPID_SUCCESSION_SECONDS = 30
RAPID_SUCCESSION_MIN_COUNT = 3

PERIODIC_MIN_COUNT = 5
PERIODIC_VARIANCE_THRESHOLD = 0.2

# Inclusive UTC hour range considered unusual (1-5 AM)
UNUSUAL_HOUR_START = 1
UNUSUAL_HOUR_END = 5
UNUSUAL_HOUR_MIN_TOTAL = 5
UNUSUAL_HOUR_MIN_COUNT = 3
UNUSUAL_HOUR_RATIO = 0.4
UNUSUAL_HOUR_HIGH_RATIO = 0.7

BURST_MIN_TRANSACTIONS = 10
BURST_STDDEV_MULTIPLIER = 2


def is_unusual_hour(tx: Transaction) -> bool:
    return UNUSUAL_HOUR_START <= tx.utc.hour <= UNUSUAL_HOUR_END


def detect_rapid_succession(transactions: Sequence[Transaction]) -> list[PatternResult]:
    """
    Runs of >= 3 transactions each within 30s of the run's first transaction.
    The scan resumes after a found run so overlapping runs are reported once.
    """
    patterns: list[PatternResult] = []
    n = len(transactions)
    i = 0
    while i <= n - RAPID_SUCCESSION_MIN_COUNT:
        start = transactions[i].epoch
        cluster = [transactions[i]]
        for tx in transactions[i + 1:]:
            if tx.epoch - start <= RAPID_SUCCESSION_SECONDS:
                cluster.append(tx)
            else:
                break
        if len(cluster) >= RAPID_SUCCESSION_MIN_COUNT:
            count = len(cluster)
            patterns.append(
                PatternResult(
                    type=PatternType.RAPID_SUCCESSION,
                    name="Rapid Succession Transactions",
                    description=f"{count} transactions within {RAPID_SUCCESSION_SECONDS} seconds",
                    severity=Severity.HIGH if count > 5 else Severity.MEDIUM,
                    score=min(100, count * 10),
                    transactions=signatures(cluster),
                    metadata={"timespan": RAPID_SUCCESSION_SECONDS, "count": count},
                )
            )
            i += count
        else:
            i += 1
    return patterns


def detect_periodic_transactions(transactions: Sequence[Transaction]) -> list[PatternResult]:
    """Consecutive gaps whose stddev/mean is at most 0.2 (clock-like cadence)."""
    if len(transactions) < PERIODIC_MIN_COUNT:
        return []
    deltas = consecutive_deltas(transactions)
    avg = mean(deltas)
    if avg <= 0:
        return []
    variance_ratio = pstdev(deltas) / avg
    if variance_ratio > PERIODIC_VARIANCE_THRESHOLD:
        return []
    return [
        PatternResult(
            type=PatternType.PERIODIC_TRANSACTIONS,
            name="Periodic Transactions",
            description=(
                f"{len(transactions)} transactions at regular intervals of "
                f"~{round(avg / 60)} minutes"
            ),
            severity=Severity.MEDIUM,
            score=min(100, 50 + (1 - variance_ratio) * 50),
            transactions=signatures(transactions),
            metadata={"averageIntervalSeconds": avg, "varianceRatio": variance_ratio},
        )
    ]


def detect_unusual_hours(transactions: Sequence[Transaction]) -> list[PatternResult]:
    """At least 40% (and 3) of transactions between 01:00 and 05:59 UTC."""
    if len(transactions) < UNUSUAL_HOUR_MIN_TOTAL:
        return []
    unusual = [tx for tx in transactions if is_unusual_hour(tx)]
    ratio = len(unusual) / len(transactions)
    if ratio < UNUSUAL_HOUR_RATIO or len(unusual) < UNUSUAL_HOUR_MIN_COUNT:
        return []
    return [
        PatternResult(
            type=PatternType.UNUSUAL_HOURS,
            name="Unusual Hour Transactions",
            description=(
                f"{len(unusual)} transactions ({round(ratio * 100)}%) during unusual hours "
                f"({UNUSUAL_HOUR_START}-{UNUSUAL_HOUR_END} AM UTC)"
            ),
            severity=Severity.HIGH if ratio > UNUSUAL_HOUR_HIGH_RATIO else Severity.MEDIUM,
            score=min(100, ratio * 100),
            transactions=signatures(unusual),
            metadata={
                "unusualHourCount": len(unusual),
                "totalCount": len(transactions),
                "ratio": ratio,
            },
        )
    ]


def detect_activity_bursts(transactions: Sequence[Transaction]) -> list[PatternResult]:
    """UTC days whose count exceeds mean + 2*stddev of daily counts."""
    if len(transactions) < BURST_MIN_TRANSACTIONS:
        return []
    by_day: dict[str, list[Transaction]] = defaultdict(list)
    for tx in transactions:
        by_day[day_key(tx)].append(tx)

    days = sorted(by_day)
    counts = [len(by_day[d]) for d in days]
    avg = mean(counts)
    std = pstdev(counts)
    burst_days = [d for d in days if len(by_day[d]) > avg + BURST_STDDEV_MULTIPLIER * std]
    if not burst_days:
        return []

    burst_txs = [tx for d in burst_days for tx in by_day[d]]
    return [
        PatternResult(
            type=PatternType.ACTIVITY_BURSTS,
            name="Activity Burst Pattern",
            description=f"{len(burst_days)} days with abnormally high transaction activity",
            severity=Severity.HIGH if len(burst_days) > 2 else Severity.MEDIUM,
            score=min(100, 50 + len(burst_days) * 10),
            transactions=signatures(burst_txs),
            metadata={
                "burstDays": burst_days,
                "averageDailyCount": avg,
                "standardDeviation": std,
            },
        )
    ]


TIME_RULES = (
    detect_rapid_succession,
    detect_periodic_transactions,
    detect_unusual_hours,
    detect_activity_bursts,
)


def detect_time_patterns(transactions: Sequence[Transaction]) -> list[PatternResult]:
    """
    Run all time-based rules over the history.

    Fewer than 3 transactions, or a history that cannot be ordered, yields [].
    """
    if len(transactions) < MIN_TRANSACTIONS:
        return []
    try:
        ordered = sort_chronologically(transactions)
    except (AttributeError, TypeError, ValueError, OverflowError) as e:
        logger.warning("time_patterns_unsortable", tx_count=len(transactions), error=str(e))
        return []
    return run_rules(TIME_RULES, ordered)
