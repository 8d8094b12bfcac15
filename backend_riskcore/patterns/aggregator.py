"""
Pattern aggregation: run the four detector families and merge per category.

Single entrypoint for callers: detect_transaction_patterns returns exactly one
TransactionPattern per category (time, amount, flow, behavioral), zeroed when
nothing fired. Families share no state, so they may run on an executor.
"""

from __future__ import annotations

from concurrent.futures import Executor, ThreadPoolExecutor
from typing import Callable, Sequence

from backend_riskcore.config.settings import get_settings
from backend_riskcore.core.exceptions import require_address
from backend_riskcore.patterns.amount_patterns import detect_amount_patterns
from backend_riskcore.patterns.behavioral_patterns import detect_behavioral_patterns
from backend_riskcore.patterns.flow_patterns import detect_flow_patterns
from backend_riskcore.patterns.models import (
    PatternCategory,
    PatternResult,
    Severity,
    Transaction,
    TransactionPattern,
    mean,
)
from backend_riskcore.patterns.time_patterns import detect_time_patterns
from backend_riskcore.riskcore_logging import get_logger, short_wallet

logger = get_logger(__name__)

CATEGORY_ORDER = (
    PatternCategory.TIME_BASED,
    PatternCategory.AMOUNT_BASED,
    PatternCategory.FLOW_BASED,
    PatternCategory.BEHAVIORAL,
)


def aggregate_patterns(
    category: PatternCategory,
    results: Sequence[PatternResult],
) -> TransactionPattern:
    """Merge one category's results: count, mean score, affected signatures, high-severity tally."""
    affected: set[str] = set()
    for result in results:
        affected.update(result.transactions)
    return TransactionPattern(
        type=category,
        pattern_count=len(results),
        total_risk_score=mean([r.score for r in results]),
        affected_transactions=len(affected),
        high_severity_count=sum(1 for r in results if r.severity == Severity.HIGH),
        patterns=tuple(results),
    )


def _category_runners(
    transactions: list[Transaction],
    address: str,
) -> dict[PatternCategory, Callable[[], list[PatternResult]]]:
    return {
        PatternCategory.TIME_BASED: lambda: detect_time_patterns(transactions),
        PatternCategory.AMOUNT_BASED: lambda: detect_amount_patterns(transactions),
        PatternCategory.FLOW_BASED: lambda: detect_flow_patterns(transactions, address),
        PatternCategory.BEHAVIORAL: lambda: detect_behavioral_patterns(transactions, address),
    }


def detect_transaction_patterns(
    transactions: Sequence[Transaction],
    address: str,
    *,
    executor: Executor | None = None,
) -> list[TransactionPattern]:
    """
    Detect all patterns in a wallet's history and aggregate them per category.

    Args:
        transactions: Transfer history; never mutated.
        address: Subject wallet; must be a non-empty string.
        executor: Optional executor to run the four families concurrently.

    Returns:
        Four TransactionPatterns in the order time, amount, flow, behavioral.

    Raises:
        InvalidAddressError: address is empty or not a string.
    """
    address = require_address(address)
    txs = list(transactions or ())
    runners = _category_runners(txs, address)

    if executor is None:
        by_category = {category: runners[category]() for category in CATEGORY_ORDER}
    else:
        futures = {category: executor.submit(runners[category]) for category in CATEGORY_ORDER}
        by_category = {category: future.result() for category, future in futures.items()}

    aggregates = [aggregate_patterns(category, by_category[category]) for category in CATEGORY_ORDER]
    logger.info(
        "transaction_patterns_detected",
        wallet=short_wallet(address),
        tx_count=len(txs),
        pattern_counts={a.type.value: a.pattern_count for a in aggregates},
    )
    return aggregates


def detect_with_configured_workers(
    transactions: Sequence[Transaction],
    address: str,
) -> list[TransactionPattern]:
    """detect_transaction_patterns on a thread pool sized by RISKCORE_PATTERN_WORKERS (0 = sequential)."""
    workers = get_settings().pattern_workers
    if workers <= 0:
        return detect_transaction_patterns(transactions, address)
    with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="riskcore-patterns") as pool:
        return detect_transaction_patterns(transactions, address, executor=pool)
