"""
Flow-based pattern detection over the transfer graph.

Circular flows returning to the subject, long layering chains, funnels
(many -> one within 7 days) and fan-outs (one -> many within 24 hours).
The graph is built once per call and shared by the DFS rules.
"""

from __future__ import annotations

from collections import defaultdict
from typing import Callable, Sequence

from backend_riskcore.patterns.graph import MAX_DFS_DEPTH, TransactionGraph
from backend_riskcore.patterns.models import (
    SECONDS_PER_DAY,
    SECONDS_PER_HOUR,
    PatternResult,
    PatternType,
    Severity,
    Transaction,
    signatures,
)
from backend_riskcore.patterns.rules import run_rules
from backend_riskcore.riskcore_logging import get_logger

logger = get_logger(__name__)

MIN_TRANSACTIONS = 3

CIRCULAR_MIN_HOPS = 3
LAYERING_MIN_HOPS = 4
FUNNEL_MIN_INPUTS = 3
FUNNEL_WINDOW_DAYS = 7
FAN_OUT_MIN_OUTPUTS = 3
FAN_OUT_WINDOW_HOURS = 24


def detect_circular_transactions(
    graph: TransactionGraph,
    transactions: Sequence[Transaction],
    address: str,
) -> list[PatternResult]:
    """Paths of >= 3 hops that leave the subject and come back to it."""
    patterns: list[PatternResult] = []
    for path in graph.cycles_from(address, min_nodes=CIRCULAR_MIN_HOPS, max_depth=MAX_DFS_DEPTH):
        path_txs = graph.path_transactions(path)
        if len(path_txs) < CIRCULAR_MIN_HOPS:
            continue
        hops = len(path)
        patterns.append(
            PatternResult(
                type=PatternType.CIRCULAR_TRANSACTIONS,
                name="Circular Transaction Pattern",
                description=f"Circular flow of funds through {hops} addresses",
                severity=Severity.HIGH,
                score=min(100, 70 + hops * 5),
                transactions=signatures(path_txs),
                metadata={"path": path, "hopCount": hops},
            )
        )
    return patterns


def detect_layering(
    graph: TransactionGraph,
    transactions: Sequence[Transaction],
    address: str,
) -> list[PatternResult]:
    """Chains from the subject to a dead end passing through >= 4 addresses."""
    patterns: list[PatternResult] = []
    for path in graph.chains_from(address, min_nodes=LAYERING_MIN_HOPS, max_depth=MAX_DFS_DEPTH):
        path_txs = graph.path_transactions(path)
        if len(path_txs) < LAYERING_MIN_HOPS - 1:
            continue
        hops = len(path)
        patterns.append(
            PatternResult(
                type=PatternType.LAYERING_PATTERN,
                name="Transaction Layering",
                description=f"Funds moved through {hops} addresses in sequence",
                severity=Severity.HIGH if hops > 6 else Severity.MEDIUM,
                score=min(100, 60 + hops * 5),
                transactions=signatures(path_txs),
                metadata={"path": path, "hopCount": hops},
            )
        )
    return patterns


def _group_by(
    transactions: Sequence[Transaction],
    key: Callable[[Transaction], str],
) -> dict[str, list[Transaction]]:
    groups: dict[str, list[Transaction]] = defaultdict(list)
    for tx in transactions:
        groups[key(tx)].append(tx)
    return groups


def _span_seconds(txs: Sequence[Transaction]) -> float:
    epochs = [tx.epoch for tx in txs]
    return max(epochs) - min(epochs)


def detect_funnels(
    graph: TransactionGraph,
    transactions: Sequence[Transaction],
    address: str,
) -> list[PatternResult]:
    """Destinations receiving >= 3 transfers inside a 7-day span."""
    patterns: list[PatternResult] = []
    for destination, txs in _group_by(transactions, lambda tx: tx.receiver).items():
        if len(txs) < FUNNEL_MIN_INPUTS:
            continue
        span_days = _span_seconds(txs) / SECONDS_PER_DAY
        if span_days > FUNNEL_WINDOW_DAYS:
            continue
        source_count = len(txs)
        patterns.append(
            PatternResult(
                type=PatternType.FUNNEL_PATTERN,
                name="Transaction Funnel",
                description=f"{source_count} transactions from different sources to the same destination",
                severity=Severity.HIGH if source_count > 10 else Severity.MEDIUM,
                score=min(100, 50 + source_count * 5),
                transactions=signatures(txs),
                metadata={
                    "destination": destination,
                    "sourceCount": source_count,
                    "distinctSources": len({tx.sender for tx in txs}),
                    "totalAmount": sum(tx.amount for tx in txs),
                    "timespanDays": span_days,
                },
            )
        )
    return patterns


def detect_fan_outs(
    graph: TransactionGraph,
    transactions: Sequence[Transaction],
    address: str,
) -> list[PatternResult]:
    """Sources sending to >= 3 distinct destinations inside 24 hours."""
    patterns: list[PatternResult] = []
    for source, txs in _group_by(transactions, lambda tx: tx.sender).items():
        if len(txs) < FAN_OUT_MIN_OUTPUTS:
            continue
        span_hours = _span_seconds(txs) / SECONDS_PER_HOUR
        if span_hours > FAN_OUT_WINDOW_HOURS:
            continue
        destinations = {tx.receiver for tx in txs}
        if len(destinations) < FAN_OUT_MIN_OUTPUTS:
            continue
        patterns.append(
            PatternResult(
                type=PatternType.FAN_OUT_PATTERN,
                name="Transaction Fan-Out",
                description=(
                    f"{len(txs)} transactions from the same source to "
                    f"{len(destinations)} different destinations"
                ),
                severity=Severity.HIGH if len(destinations) > 10 else Severity.MEDIUM,
                score=min(100, 50 + len(destinations) * 5),
                transactions=signatures(txs),
                metadata={
                    "source": source,
                    "destinationCount": len(destinations),
                    "totalAmount": sum(tx.amount for tx in txs),
                    "timespanHours": span_hours,
                },
            )
        )
    return patterns


FLOW_RULES = (
    detect_circular_transactions,
    detect_layering,
    detect_funnels,
    detect_fan_outs,
)


def detect_flow_patterns(
    transactions: Sequence[Transaction],
    address: str,
    graph: TransactionGraph | None = None,
) -> list[PatternResult]:
    """
    Run all flow-based rules for the subject address.

    A prebuilt graph may be passed in; otherwise one is built from the
    transactions. Fewer than 3 transactions yields [].
    """
    if len(transactions) < MIN_TRANSACTIONS:
        return []
    txs = list(transactions)
    if graph is None:
        graph = TransactionGraph(txs)
    return run_rules(FLOW_RULES, graph, txs, address)
