"""
Behavioral pattern detection: composites of the time, amount and flow primitives.

Wash trading (balanced round trips with one counterparty), smurfing (a day of
similar small outgoing transfers), automated cadence (repeated exact
intervals) and abnormal hourly activity spikes.
"""

from __future__ import annotations

from collections import Counter, defaultdict
from dataclasses import dataclass, field
from typing import Sequence

from backend_riskcore.patterns.models import (
    PatternResult,
    PatternType,
    Severity,
    Transaction,
    consecutive_deltas,
    day_key,
    hour_key,
    mean,
    pstdev,
    signatures,
    sort_chronologically,
)
from backend_riskcore.patterns.rules import run_rules
from backend_riskcore.riskcore_logging import get_logger

logger = get_logger(__name__)

MIN_TRANSACTIONS = 5

WASH_TRADING_MIN_CYCLES = 2
WASH_TRADING_MIN_AMOUNT_RATIO = 0.8
WASH_TRADING_HIGH_CYCLES = 5

SMURFING_MIN_DAILY_COUNT = 5
SMURFING_MAX_VARIANCE_RATIO = 0.3
SMURFING_MAX_MEAN_AMOUNT = 100

AUTOMATED_INTERVAL_TOLERANCE = 0.01
AUTOMATED_MIN_MATCHES = 3
AUTOMATED_MIN_EXACT_INTERVALS = 3

SPIKE_MIN_TRANSACTIONS = 10
SPIKE_STDDEV_MULTIPLIER = 3


@dataclass
class _CounterpartyFlows:
    outgoing: list[Transaction] = field(default_factory=list)
    incoming: list[Transaction] = field(default_factory=list)


def detect_wash_trading(transactions: Sequence[Transaction], address: str) -> list[PatternResult]:
    """
    Counterparties with >= 2 round trips whose total amounts in each
    direction are within 20% of each other.
    """
    flows: dict[str, _CounterpartyFlows] = defaultdict(_CounterpartyFlows)
    for tx in transactions:
        if tx.sender == address:
            flows[tx.receiver].outgoing.append(tx)
        elif tx.receiver == address:
            flows[tx.sender].incoming.append(tx)

    patterns: list[PatternResult] = []
    for counterparty, flow in flows.items():
        if not flow.outgoing or not flow.incoming:
            continue
        cycles = min(len(flow.outgoing), len(flow.incoming))
        if cycles < WASH_TRADING_MIN_CYCLES:
            continue
        out_amount = sum(tx.amount for tx in flow.outgoing)
        in_amount = sum(tx.amount for tx in flow.incoming)
        larger = max(out_amount, in_amount)
        if larger <= 0:
            continue
        ratio = min(out_amount, in_amount) / larger
        if ratio <= WASH_TRADING_MIN_AMOUNT_RATIO:
            continue
        all_txs = sort_chronologically([*flow.outgoing, *flow.incoming])
        patterns.append(
            PatternResult(
                type=PatternType.WASH_TRADING,
                name="Wash Trading Pattern",
                description=f"{cycles} cycles of funds between the same two addresses",
                severity=Severity.HIGH if cycles > WASH_TRADING_HIGH_CYCLES else Severity.MEDIUM,
                score=min(100, 70 + cycles * 5),
                transactions=signatures(all_txs),
                metadata={
                    "counterparty": counterparty,
                    "cycleCount": cycles,
                    "outgoingAmount": out_amount,
                    "incomingAmount": in_amount,
                    "ratio": ratio,
                },
            )
        )
    return patterns


def detect_smurfing(transactions: Sequence[Transaction], address: str) -> list[PatternResult]:
    """UTC days with >= 5 similar (cv < 0.3) small (mean < 100) outgoing transfers."""
    by_day: dict[str, list[Transaction]] = defaultdict(list)
    for tx in sort_chronologically(transactions):
        if tx.sender == address:
            by_day[day_key(tx)].append(tx)

    patterns: list[PatternResult] = []
    for day, txs in by_day.items():
        if len(txs) < SMURFING_MIN_DAILY_COUNT:
            continue
        amounts = [tx.amount for tx in txs]
        avg = mean(amounts)
        if avg <= 0:
            continue
        std = pstdev(amounts)
        variance_ratio = std / avg
        if variance_ratio >= SMURFING_MAX_VARIANCE_RATIO or avg >= SMURFING_MAX_MEAN_AMOUNT:
            continue
        patterns.append(
            PatternResult(
                type=PatternType.SMURFING_PATTERN,
                name="Smurfing Pattern",
                description=f"{len(txs)} similar small transactions on {day}",
                severity=Severity.HIGH if len(txs) > 10 else Severity.MEDIUM,
                score=min(100, 60 + len(txs) * 3),
                transactions=signatures(txs),
                metadata={
                    "day": day,
                    "transactionCount": len(txs),
                    "averageAmount": avg,
                    "standardDeviation": std,
                    "varianceRatio": variance_ratio,
                },
            )
        )
    return patterns


def detect_automated_cadence(transactions: Sequence[Transaction], address: str) -> list[PatternResult]:
    """
    An interval is exact when at least 3 intervals (itself included) fall
    within 1% of it; 3 or more exact intervals indicate a scripted sender.
    """
    ordered = sort_chronologically(transactions)
    deltas = consecutive_deltas(ordered)
    exact = [
        d
        for d in deltas
        if sum(1 for other in deltas if abs(d - other) < d * AUTOMATED_INTERVAL_TOLERANCE)
        >= AUTOMATED_MIN_MATCHES
    ]
    if len(exact) < AUTOMATED_MIN_EXACT_INTERVALS:
        return []
    interval, _ = Counter(round(d) for d in exact).most_common(1)[0]
    return [
        PatternResult(
            type=PatternType.AUTOMATED_TRANSACTIONS,
            name="Automated Transaction Pattern",
            description=f"{len(exact)} transactions with precise time intervals",
            severity=Severity.HIGH if len(exact) > 10 else Severity.MEDIUM,
            score=min(100, 50 + len(exact) * 5),
            transactions=signatures(ordered),
            metadata={
                "intervalSeconds": interval,
                "intervalCount": len(exact),
                "totalCount": len(transactions),
            },
        )
    ]


def detect_activity_spikes(transactions: Sequence[Transaction], address: str) -> list[PatternResult]:
    """(day, hour) buckets above mean + 3*stddev of all hour buckets."""
    if len(transactions) < SPIKE_MIN_TRANSACTIONS:
        return []
    by_hour: dict[str, list[Transaction]] = defaultdict(list)
    for tx in transactions:
        by_hour[hour_key(tx)].append(tx)

    hours = sorted(by_hour)
    counts = [len(by_hour[h]) for h in hours]
    avg = mean(counts)
    std = pstdev(counts)
    spike_hours = [h for h in hours if len(by_hour[h]) > avg + SPIKE_STDDEV_MULTIPLIER * std]
    if not spike_hours:
        return []
    spike_txs = [tx for h in spike_hours for tx in by_hour[h]]
    return [
        PatternResult(
            type=PatternType.ACTIVITY_SPIKE,
            name="Abnormal Activity Spike",
            description=f"{len(spike_hours)} hours with abnormally high transaction activity",
            severity=Severity.HIGH if len(spike_hours) > 1 else Severity.MEDIUM,
            score=min(100, 60 + len(spike_hours) * 10),
            transactions=signatures(spike_txs),
            metadata={
                "spikeHours": spike_hours,
                "averageHourlyCount": avg,
                "standardDeviation": std,
            },
        )
    ]


BEHAVIORAL_RULES = (
    detect_wash_trading,
    detect_smurfing,
    detect_automated_cadence,
    detect_activity_spikes,
)


def detect_behavioral_patterns(transactions: Sequence[Transaction], address: str) -> list[PatternResult]:
    """Run all behavioral rules for the subject; fewer than 5 transactions yields []."""
    if len(transactions) < MIN_TRANSACTIONS:
        return []
    return run_rules(BEHAVIORAL_RULES, list(transactions), address)
