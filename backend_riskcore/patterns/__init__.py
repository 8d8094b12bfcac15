"""
Pattern detection package: time, amount, flow and behavioral detectors.

Each family is a pure function over a wallet's transfer history returning
PatternResults; the aggregator merges them into one TransactionPattern per
category. The fraud pattern catalog maps detector output to known typologies.
"""

from backend_riskcore.patterns.models import (
    PatternCategory,
    PatternResult,
    PatternType,
    Severity,
    Transaction,
    TransactionPattern,
)
from backend_riskcore.patterns.time_patterns import detect_time_patterns
from backend_riskcore.patterns.amount_patterns import detect_amount_patterns
from backend_riskcore.patterns.flow_patterns import detect_flow_patterns
from backend_riskcore.patterns.behavioral_patterns import detect_behavioral_patterns
from backend_riskcore.patterns.graph import TransactionGraph
from backend_riskcore.patterns.aggregator import (
    aggregate_patterns,
    detect_transaction_patterns,
    detect_with_configured_workers,
)
from backend_riskcore.patterns.catalog import (
    FraudCategory,
    FraudPattern,
    PatternCatalog,
)

__all__ = [
    "FraudCategory",
    "FraudPattern",
    "PatternCatalog",
    "PatternCategory",
    "PatternResult",
    "PatternType",
    "Severity",
    "Transaction",
    "TransactionGraph",
    "TransactionPattern",
    "aggregate_patterns",
    "detect_amount_patterns",
    "detect_behavioral_patterns",
    "detect_flow_patterns",
    "detect_time_patterns",
    "detect_transaction_patterns",
    "detect_with_configured_workers",
]
