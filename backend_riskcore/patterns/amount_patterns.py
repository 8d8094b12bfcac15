"""
Amount-based pattern detection.

Round amounts, structuring just below reporting thresholds, repeating
identical amounts, and one large transfer split into many smaller ones.
Amounts are in native SOL.
"""

from __future__ import annotations

from typing import Sequence

from backend_riskcore.patterns.models import (
    SECONDS_PER_HOUR,
    PatternResult,
    PatternType,
    Severity,
    Transaction,
    signatures,
    sort_chronologically,
)
from backend_riskcore.patterns.rules import run_rules
from backend_riskcore.riskcore_logging import get_logger

logger = get_logger(__name__)

MIN_TRANSACTIONS = 3

ROUND_AMOUNT_TOLERANCE = 0.001
ROUND_NUMBERS = (1, 5, 10, 50, 100, 500, 1000, 5000, 10000)
ROUND_NUMBER_SCALES = (1, 0.1, 0.01)
ROUND_AMOUNT_MIN_COUNT = 3
ROUND_AMOUNT_HIGH_RATIO = 0.7

# Common reporting thresholds in SOL (approximate USD equivalents)
STRUCTURING_THRESHOLDS = (1000, 3000, 5000, 10000)
STRUCTURING_MARGIN = 0.05
STRUCTURING_MIN_COUNT = 2

REPEATING_DECIMALS = 4
REPEATING_MIN_COUNT = 3
REPEATING_HIGH_SHARE = 0.5

SPLITTING_MIN_PARENT = 100
SPLITTING_WINDOW_HOURS = 24
SPLITTING_CHILD_FRACTION = 0.5
SPLITTING_MIN_OUTPUTS = 3
SPLITTING_SUM_LOW = 0.8
SPLITTING_SUM_HIGH = 1.2


def is_round_amount(amount: float) -> bool:
    """Whole number, or one of the canonical round values at 1x/0.1x/0.01x scale."""
    if abs(amount - round(amount)) < ROUND_AMOUNT_TOLERANCE:
        return True
    return any(
        abs(amount - n * scale) < ROUND_AMOUNT_TOLERANCE
        for n in ROUND_NUMBERS
        for scale in ROUND_NUMBER_SCALES
    )


def is_structured_amount(amount: float) -> bool:
    """Strictly below a reporting threshold by less than 5% of it."""
    for threshold in STRUCTURING_THRESHOLDS:
        diff = threshold - amount
        if 0 < diff < threshold * STRUCTURING_MARGIN:
            return True
    return False


def detect_round_amounts(transactions: Sequence[Transaction]) -> list[PatternResult]:
    round_txs = [tx for tx in transactions if is_round_amount(tx.amount)]
    if len(round_txs) < ROUND_AMOUNT_MIN_COUNT:
        return []
    count = len(round_txs)
    ratio = count / len(transactions)
    return [
        PatternResult(
            type=PatternType.ROUND_AMOUNTS,
            name="Round Amount Transactions",
            description=f"{count} transactions ({round(ratio * 100)}%) with round amounts",
            severity=Severity.HIGH if ratio > ROUND_AMOUNT_HIGH_RATIO else Severity.MEDIUM,
            score=min(100, 40 + count * 5),
            transactions=signatures(round_txs),
            metadata={"roundAmountCount": count, "totalCount": len(transactions), "ratio": ratio},
        )
    ]


def detect_structured_amounts(transactions: Sequence[Transaction]) -> list[PatternResult]:
    structured = [tx for tx in transactions if is_structured_amount(tx.amount)]
    if len(structured) < STRUCTURING_MIN_COUNT:
        return []
    count = len(structured)
    return [
        PatternResult(
            type=PatternType.STRUCTURED_AMOUNTS,
            name="Structured Amounts",
            description=f"{count} transactions with amounts just below reporting thresholds",
            severity=Severity.HIGH if count > 4 else Severity.MEDIUM,
            score=min(100, 60 + count * 10),
            transactions=signatures(structured),
            metadata={
                "structuredCount": count,
                "totalCount": len(transactions),
                "thresholds": list(STRUCTURING_THRESHOLDS),
            },
        )
    ]


def detect_repeating_amounts(transactions: Sequence[Transaction]) -> list[PatternResult]:
    """Largest bucket of identical (4-decimal) amounts with at least 3 members."""
    buckets: dict[float, list[Transaction]] = {}
    for tx in transactions:
        buckets.setdefault(round(tx.amount, REPEATING_DECIMALS), []).append(tx)

    repeating = [(amount, txs) for amount, txs in buckets.items() if len(txs) >= REPEATING_MIN_COUNT]
    if not repeating:
        return []
    # stable: ties keep first-seen bucket
    amount, txs = sorted(repeating, key=lambda item: -len(item[1]))[0]
    share = len(txs) / len(transactions)
    return [
        PatternResult(
            type=PatternType.REPEATING_AMOUNTS,
            name="Repeating Amount Pattern",
            description=f"{len(txs)} transactions with identical amount of {amount} SOL",
            severity=Severity.HIGH if share > REPEATING_HIGH_SHARE else Severity.MEDIUM,
            score=min(100, 40 + len(txs) * 5),
            transactions=signatures(txs),
            metadata={
                "amount": amount,
                "count": len(txs),
                "totalCount": len(transactions),
                "ratio": share,
            },
        )
    ]


def detect_splitting(transactions: Sequence[Transaction]) -> list[PatternResult]:
    """
    A transfer >= 100 SOL followed within 24h by >= 3 transfers each below half
    of it, whose sum lands within 20% of the parent amount.
    """
    ordered = sort_chronologically(transactions)
    window = SPLITTING_WINDOW_HOURS * SECONDS_PER_HOUR
    patterns: list[PatternResult] = []
    i = 0
    while i < len(ordered):
        parent = ordered[i]
        if parent.amount < SPLITTING_MIN_PARENT:
            i += 1
            continue
        children = [
            tx
            for tx in ordered[i + 1:]
            if tx.epoch - parent.epoch <= window
            and tx.amount < parent.amount * SPLITTING_CHILD_FRACTION
        ]
        if len(children) >= SPLITTING_MIN_OUTPUTS:
            split_sum = sum(tx.amount for tx in children)
            ratio = split_sum / parent.amount
            if SPLITTING_SUM_LOW < ratio < SPLITTING_SUM_HIGH:
                patterns.append(
                    PatternResult(
                        type=PatternType.SPLITTING_PATTERN,
                        name="Transaction Splitting",
                        description=(
                            f"Large transaction of {parent.amount} SOL split into "
                            f"{len(children)} smaller transactions"
                        ),
                        severity=Severity.HIGH,
                        score=min(100, 70 + len(children) * 2),
                        transactions=(parent.signature, *signatures(children)),
                        metadata={
                            "largeAmount": parent.amount,
                            "splitCount": len(children),
                            "splitSum": split_sum,
                            "ratio": ratio,
                        },
                    )
                )
                i += len(children) + 1
                continue
        i += 1
    return patterns


AMOUNT_RULES = (
    detect_round_amounts,
    detect_structured_amounts,
    detect_repeating_amounts,
    detect_splitting,
)


def detect_amount_patterns(transactions: Sequence[Transaction]) -> list[PatternResult]:
    """Run all amount-based rules; fewer than 3 transactions yields []."""
    if len(transactions) < MIN_TRANSACTIONS:
        return []
    return run_rules(AMOUNT_RULES, list(transactions))
