"""
Data models for pattern detection input and output.

Transaction is the canonical, immutable transfer record every detector reads.
PatternResult is one detector firing; TransactionPattern is the per-category
aggregate returned to callers. Shared statistics and UTC bucketing helpers
live here so every detector groups and measures the same way.
"""

from __future__ import annotations

import math
import statistics
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Iterable, Sequence

SECONDS_PER_HOUR = 3600
SECONDS_PER_DAY = 86400

SCORE_MIN = 0.0
SCORE_MAX = 100.0


class Severity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class PatternCategory(str, Enum):
    """The four detector families; one TransactionPattern per member."""

    TIME_BASED = "time_based"
    AMOUNT_BASED = "amount_based"
    FLOW_BASED = "flow_based"
    BEHAVIORAL = "behavioral"


class PatternType(str, Enum):
    # time_based
    RAPID_SUCCESSION = "rapid_succession"
    PERIODIC_TRANSACTIONS = "periodic_transactions"
    UNUSUAL_HOURS = "unusual_hours"
    ACTIVITY_BURSTS = "activity_bursts"
    # amount_based
    ROUND_AMOUNTS = "round_amounts"
    STRUCTURED_AMOUNTS = "structured_amounts"
    REPEATING_AMOUNTS = "repeating_amounts"
    SPLITTING_PATTERN = "splitting_pattern"
    # flow_based
    CIRCULAR_TRANSACTIONS = "circular_transactions"
    LAYERING_PATTERN = "layering_pattern"
    FUNNEL_PATTERN = "funnel_pattern"
    FAN_OUT_PATTERN = "fan_out_pattern"
    # behavioral
    WASH_TRADING = "wash_trading"
    SMURFING_PATTERN = "smurfing_pattern"
    AUTOMATED_TRANSACTIONS = "automated_transactions"
    ACTIVITY_SPIKE = "activity_spike"

    @property
    def category(self) -> PatternCategory:
        return PATTERN_CATEGORIES[self]


PATTERN_CATEGORIES: dict[PatternType, PatternCategory] = {
    PatternType.RAPID_SUCCESSION: PatternCategory.TIME_BASED,
    PatternType.PERIODIC_TRANSACTIONS: PatternCategory.TIME_BASED,
    PatternType.UNUSUAL_HOURS: PatternCategory.TIME_BASED,
    PatternType.ACTIVITY_BURSTS: PatternCategory.TIME_BASED,
    PatternType.ROUND_AMOUNTS: PatternCategory.AMOUNT_BASED,
    PatternType.STRUCTURED_AMOUNTS: PatternCategory.AMOUNT_BASED,
    PatternType.REPEATING_AMOUNTS: PatternCategory.AMOUNT_BASED,
    PatternType.SPLITTING_PATTERN: PatternCategory.AMOUNT_BASED,
    PatternType.CIRCULAR_TRANSACTIONS: PatternCategory.FLOW_BASED,
    PatternType.LAYERING_PATTERN: PatternCategory.FLOW_BASED,
    PatternType.FUNNEL_PATTERN: PatternCategory.FLOW_BASED,
    PatternType.FAN_OUT_PATTERN: PatternCategory.FLOW_BASED,
    PatternType.WASH_TRADING: PatternCategory.BEHAVIORAL,
    PatternType.SMURFING_PATTERN: PatternCategory.BEHAVIORAL,
    PatternType.AUTOMATED_TRANSACTIONS: PatternCategory.BEHAVIORAL,
    PatternType.ACTIVITY_SPIKE: PatternCategory.BEHAVIORAL,
}


def to_utc(value: datetime) -> datetime:
    """Naive datetimes are taken as UTC; aware ones are converted."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_timestamp(value: Any) -> datetime:
    """
    Coerce a timestamp to an aware UTC datetime.

    Accepts datetime, epoch seconds (int/float) and ISO-8601 strings
    (a trailing 'Z' is accepted). Raises ValueError/TypeError otherwise.
    """
    if isinstance(value, datetime):
        return to_utc(value)
    if isinstance(value, bool):
        raise TypeError(f"unsupported timestamp: {value!r}")
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(float(value), tz=timezone.utc)
    if isinstance(value, str):
        raw = value.strip()
        if raw.endswith("Z"):
            raw = raw[:-1] + "+00:00"
        return to_utc(datetime.fromisoformat(raw))
    raise TypeError(f"unsupported timestamp: {value!r}")


@dataclass(frozen=True)
class Transaction:
    """
    One transfer event, as supplied by the caller.

    sender/receiver correspond to the on-chain from/to accounts.
    """

    signature: str
    sender: str
    receiver: str
    amount: float
    """Native-unit amount (SOL); never negative."""
    timestamp: datetime
    """Block time; naive values are treated as UTC."""

    @property
    def epoch(self) -> float:
        """Seconds since epoch (UTC)."""
        return to_utc(self.timestamp).timestamp()

    @property
    def utc(self) -> datetime:
        return to_utc(self.timestamp)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Transaction":
        """
        Build from a loose mapping: from/to or sender/receiver, amount,
        timestamp (datetime, epoch seconds or ISO string) or blockTime.
        """
        sender = data.get("from", data.get("sender"))
        receiver = data.get("to", data.get("receiver"))
        raw_ts = data.get("timestamp")
        if raw_ts is None:
            raw_ts = data.get("blockTime", data.get("block_time"))
        amount = float(data.get("amount") or 0.0)
        if amount < 0:
            raise ValueError(f"negative amount: {amount}")
        return cls(
            signature=str(data["signature"]),
            sender=str(sender or ""),
            receiver=str(receiver or ""),
            amount=amount,
            timestamp=parse_timestamp(raw_ts),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "signature": self.signature,
            "from": self.sender,
            "to": self.receiver,
            "amount": self.amount,
            "timestamp": self.utc.isoformat(),
        }


@dataclass(frozen=True)
class PatternResult:
    """
    A single detector firing.

    transactions is never empty; score is clamped to [0, 100] on construction.
    metadata carries explanatory values for display and audit only.
    """

    type: PatternType
    name: str
    description: str
    severity: Severity
    score: float
    transactions: tuple[str, ...]
    metadata: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not self.transactions:
            raise ValueError(f"{self.type.value}: pattern must implicate at least one transaction")
        object.__setattr__(self, "transactions", tuple(self.transactions))
        object.__setattr__(self, "score", clamp_score(self.score))

    @property
    def category(self) -> PatternCategory:
        return self.type.category

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type.value,
            "name": self.name,
            "description": self.description,
            "severity": self.severity.value,
            "score": self.score,
            "transactions": list(self.transactions),
            "metadata": self.metadata,
        }


@dataclass(frozen=True)
class TransactionPattern:
    """Aggregate of one category's PatternResults."""

    type: PatternCategory
    pattern_count: int
    total_risk_score: float
    """Mean of constituent pattern scores; 0 when the category is empty."""
    affected_transactions: int
    """Size of the union of implicated signatures."""
    high_severity_count: int
    patterns: tuple[PatternResult, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type.value,
            "patternCount": self.pattern_count,
            "totalRiskScore": self.total_risk_score,
            "affectedTransactions": self.affected_transactions,
            "highSeverityCount": self.high_severity_count,
            "patterns": [p.to_dict() for p in self.patterns],
        }


def clamp_score(score: float, low: float = SCORE_MIN, high: float = SCORE_MAX) -> float:
    if math.isnan(score):
        return low
    return max(low, min(high, float(score)))


def mean(values: Sequence[float]) -> float:
    """Arithmetic mean; 0.0 for an empty sequence."""
    if not values:
        return 0.0
    return statistics.fmean(values)


def pstdev(values: Sequence[float]) -> float:
    """Population standard deviation; 0.0 for fewer than 2 values."""
    if len(values) < 2:
        return 0.0
    return statistics.pstdev(values)


def sort_chronologically(transactions: Iterable[Transaction]) -> list[Transaction]:
    """Stable sort by timestamp; ties keep input order."""
    return sorted(transactions, key=lambda tx: tx.epoch)


def day_key(tx: Transaction) -> str:
    """UTC calendar day, sortable (YYYY-MM-DD)."""
    return tx.utc.strftime("%Y-%m-%d")


def hour_key(tx: Transaction) -> str:
    """UTC (day, hour) bucket, sortable (YYYY-MM-DDTHH)."""
    return tx.utc.strftime("%Y-%m-%dT%H")


def consecutive_deltas(transactions: Sequence[Transaction]) -> list[float]:
    """Seconds between consecutive (already sorted) transactions."""
    return [
        transactions[i].epoch - transactions[i - 1].epoch
        for i in range(1, len(transactions))
    ]


def signatures(transactions: Iterable[Transaction]) -> tuple[str, ...]:
    return tuple(tx.signature for tx in transactions)
