"""
Fraud pattern catalog: known typologies, their indicators and detection rules.

An explicit value the caller constructs once and passes around; nothing is
loaded implicitly. seed() installs the built-in typologies, load() reads an
exported catalog file. related_to() links a detected PatternType to the
typologies it is evidence for, so a UI can explain a PatternResult.
"""

from __future__ import annotations

import json
import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Iterable

from backend_riskcore.core.exceptions import CatalogFormatError
from backend_riskcore.patterns.models import PatternType, Severity
from backend_riskcore.riskcore_logging import get_logger

logger = get_logger(__name__)

CATALOG_FORMAT_VERSION = "1.0"
CATALOG_SOURCE = "backend_riskcore"
REQUIRED_PATTERN_FIELDS = ("name", "description", "category", "severity")


class FraudCategory(str, Enum):
    WASH_TRADING = "wash_trading"
    LAYERING = "layering"
    SPOOFING = "spoofing"
    PUMP_AND_DUMP = "pump_and_dump"
    RUG_PULL = "rug_pull"
    PHISHING = "phishing"
    PONZI = "ponzi"
    MIXER = "mixer"
    MARKET_MANIPULATION = "market_manipulation"
    FRONT_RUNNING = "front_running"
    FLASH_LOAN_ATTACK = "flash_loan_attack"
    EXIT_SCAM = "exit_scam"
    DUSTING_ATTACK = "dusting_attack"
    OTHER = "other"


@dataclass(frozen=True)
class FraudIndicator:
    name: str
    description: str
    weight: int
    """0-100."""


@dataclass(frozen=True)
class DetectionRule:
    type: str
    """simple | complex | ml"""
    condition: str
    threshold: float | None = None
    parameters: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class FraudPattern:
    """One known fraud typology."""

    id: str
    name: str
    description: str
    category: FraudCategory
    severity: Severity
    indicators: tuple[FraudIndicator, ...] = ()
    detection_rules: tuple[DetectionRule, ...] = ()
    detected_by: tuple[PatternType, ...] = ()
    """Detector outputs that count as evidence for this typology."""
    tags: tuple[str, ...] = ()
    source: str = "internal"
    created_at: str = ""
    updated_at: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "category": self.category.value,
            "severity": self.severity.value,
            "indicators": [
                {"name": i.name, "description": i.description, "weight": i.weight}
                for i in self.indicators
            ],
            "detectionRules": [
                {
                    "type": r.type,
                    "condition": r.condition,
                    "threshold": r.threshold,
                    "parameters": r.parameters,
                }
                for r in self.detection_rules
            ],
            "detectedBy": [t.value for t in self.detected_by],
            "tags": list(self.tags),
            "source": self.source,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "FraudPattern":
        """Parse an exported pattern; raises KeyError/ValueError on bad fields."""
        return cls(
            id=str(data.get("id") or _new_pattern_id()),
            name=str(data["name"]),
            description=str(data["description"]),
            category=FraudCategory(data["category"]),
            severity=Severity(data["severity"]),
            indicators=tuple(
                FraudIndicator(
                    name=str(i["name"]),
                    description=str(i.get("description", "")),
                    weight=int(i.get("weight", 0)),
                )
                for i in data.get("indicators") or []
            ),
            detection_rules=tuple(
                DetectionRule(
                    type=str(r.get("type", "simple")),
                    condition=str(r.get("condition", "")),
                    threshold=r.get("threshold"),
                    parameters=dict(r.get("parameters") or {}),
                )
                for r in data.get("detectionRules") or []
            ),
            detected_by=tuple(PatternType(t) for t in data.get("detectedBy") or []),
            tags=tuple(str(t) for t in data.get("tags") or []),
            source=str(data.get("source") or "internal"),
            created_at=str(data.get("createdAt") or ""),
            updated_at=str(data.get("updatedAt") or ""),
        )


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _new_pattern_id() -> str:
    return f"pattern-{uuid.uuid4().hex[:12]}"


BUILTIN_PATTERNS: tuple[FraudPattern, ...] = (
    FraudPattern(
        id="wash-trading-basic",
        name="Basic Wash Trading",
        description="Trading between wallets controlled by the same entity to create artificial volume",
        category=FraudCategory.WASH_TRADING,
        severity=Severity.HIGH,
        indicators=(
            FraudIndicator("circular_transfers", "Funds moving in a circular pattern between related wallets", 80),
            FraudIndicator("same_amounts", "Transfers of identical or very similar amounts", 60),
            FraudIndicator("high_frequency", "High frequency of trades between the same wallets", 70),
        ),
        detection_rules=(
            DetectionRule("simple", "At least 3 transfers between the same set of wallets within 24 hours", 3),
        ),
        detected_by=(
            PatternType.WASH_TRADING,
            PatternType.CIRCULAR_TRANSACTIONS,
            PatternType.REPEATING_AMOUNTS,
        ),
        tags=("defi", "market_manipulation", "volume_inflation"),
        created_at="2023-01-15T00:00:00Z",
        updated_at="2023-01-15T00:00:00Z",
    ),
    FraudPattern(
        id="layering-attack",
        name="Layering Attack",
        description="Creating multiple orders at different price levels to give the impression of market depth",
        category=FraudCategory.LAYERING,
        severity=Severity.HIGH,
        indicators=(
            FraudIndicator("multiple_orders", "Multiple orders placed at different price levels", 75),
            FraudIndicator("quick_cancellation", "Orders quickly cancelled after market moves", 85),
            FraudIndicator("price_impact", "Significant price impact from the orders", 65),
        ),
        detection_rules=(
            DetectionRule(
                "complex",
                "Multiple orders placed and cancelled within short time frames",
                5,
                {"timeWindow": 300, "minOrders": 5},
            ),
        ),
        detected_by=(PatternType.LAYERING_PATTERN, PatternType.RAPID_SUCCESSION),
        tags=("market_manipulation", "order_book"),
        source="regulatory",
        created_at="2023-02-10T00:00:00Z",
        updated_at="2023-02-10T00:00:00Z",
    ),
    FraudPattern(
        id="pump-and-dump",
        name="Pump and Dump Scheme",
        description="Artificially inflating the price of an asset before selling large holdings",
        category=FraudCategory.PUMP_AND_DUMP,
        severity=Severity.CRITICAL,
        indicators=(
            FraudIndicator("price_spike", "Sudden significant price increase", 70),
            FraudIndicator("social_promotion", "Coordinated social media promotion", 60),
            FraudIndicator("large_sell_off", "Large sell-off shortly after price spike", 90),
        ),
        detection_rules=(
            DetectionRule(
                "complex",
                "Price increase of >50% followed by large sell-offs within 48 hours",
                parameters={"priceIncreaseThreshold": 50, "timeWindow": 172800, "sellOffThreshold": 30},
            ),
        ),
        detected_by=(PatternType.ACTIVITY_SPIKE, PatternType.ACTIVITY_BURSTS),
        tags=("market_manipulation", "social_coordination"),
        source="community",
        created_at="2023-03-05T00:00:00Z",
        updated_at="2023-03-05T00:00:00Z",
    ),
    FraudPattern(
        id="rug-pull-basic",
        name="Basic Rug Pull",
        description="Project creators abandoning the project and withdrawing all liquidity",
        category=FraudCategory.RUG_PULL,
        severity=Severity.CRITICAL,
        indicators=(
            FraudIndicator("liquidity_removal", "Sudden removal of a large percentage of liquidity", 95),
            FraudIndicator("dev_wallet_emptying", "Developer wallets emptied shortly after liquidity removal", 90),
        ),
        detection_rules=(
            DetectionRule("simple", "Removal of >80% of liquidity within a short time period", 80),
        ),
        detected_by=(PatternType.FAN_OUT_PATTERN, PatternType.SPLITTING_PATTERN),
        tags=("exit_scam", "liquidity"),
        created_at="2023-03-20T00:00:00Z",
        updated_at="2023-03-20T00:00:00Z",
    ),
    FraudPattern(
        id="mixer-usage",
        name="Cryptocurrency Mixer Usage",
        description="Using mixing services to obscure the source of funds",
        category=FraudCategory.MIXER,
        severity=Severity.HIGH,
        indicators=(
            FraudIndicator("known_mixer_interaction", "Interaction with known mixing service addresses", 85),
            FraudIndicator("multiple_small_transfers", "Funds split into multiple small transfers", 70),
            FraudIndicator("timing_patterns", "Specific timing patterns associated with mixer services", 60),
        ),
        detection_rules=(DetectionRule("simple", "Direct interaction with known mixer addresses"),),
        detected_by=(PatternType.LAYERING_PATTERN, PatternType.SPLITTING_PATTERN),
        tags=("privacy", "money_laundering"),
        source="regulatory",
        created_at="2023-04-01T00:00:00Z",
        updated_at="2023-04-01T00:00:00Z",
    ),
    FraudPattern(
        id="front-running",
        name="Front-Running Attack",
        description="Executing trades ahead of known future transactions to profit from price movements",
        category=FraudCategory.FRONT_RUNNING,
        severity=Severity.HIGH,
        indicators=(
            FraudIndicator("transaction_timing", "Transactions executed just before large known transactions", 85),
            FraudIndicator("mev_bot_pattern", "Transaction patterns matching known MEV bot behavior", 80),
        ),
        detection_rules=(
            DetectionRule(
                "complex",
                "Transaction executed within 2 blocks before a large transaction affecting the same asset",
            ),
        ),
        detected_by=(PatternType.RAPID_SUCCESSION, PatternType.AUTOMATED_TRANSACTIONS),
        tags=("mev", "defi"),
        created_at="2023-04-15T00:00:00Z",
        updated_at="2023-04-15T00:00:00Z",
    ),
    FraudPattern(
        id="flash-loan-attack",
        name="Flash Loan Attack",
        description="Using flash loans to manipulate markets or exploit protocol vulnerabilities",
        category=FraudCategory.FLASH_LOAN_ATTACK,
        severity=Severity.CRITICAL,
        indicators=(
            FraudIndicator("large_flash_loan", "Taking out a large flash loan", 70),
            FraudIndicator("multiple_protocol_interaction", "Interacting with multiple protocols in a single transaction", 80),
            FraudIndicator("large_profit", "Generating large profit from the transaction", 85),
        ),
        detection_rules=(
            DetectionRule(
                "complex",
                "Flash loan followed by multiple protocol interactions and large profit",
                parameters={"minLoanSize": 10000, "minProfitPercentage": 5},
            ),
        ),
        tags=("defi", "exploit", "vulnerability"),
        created_at="2023-07-15T00:00:00Z",
        updated_at="2023-07-15T00:00:00Z",
    ),
    FraudPattern(
        id="dusting-attack",
        name="Dusting Attack",
        description="Sending tiny amounts of cryptocurrency to break privacy by tracking address movements",
        category=FraudCategory.DUSTING_ATTACK,
        severity=Severity.MEDIUM,
        indicators=(
            FraudIndicator("tiny_transfers", "Very small amounts sent to multiple addresses", 75),
            FraudIndicator("wide_distribution", "Distribution to many addresses in a short time", 80),
        ),
        detection_rules=(
            DetectionRule(
                "simple",
                "Multiple tiny transfers (<0.001 SOL) to different addresses from the same source",
                20,
            ),
        ),
        detected_by=(PatternType.FAN_OUT_PATTERN,),
        tags=("privacy", "tracking"),
        created_at="2023-05-10T00:00:00Z",
        updated_at="2023-05-10T00:00:00Z",
    ),
    FraudPattern(
        id="smurfing-pattern",
        name="Smurfing Pattern",
        description="Breaking down large transactions into multiple smaller ones to avoid detection",
        category=FraudCategory.OTHER,
        severity=Severity.MEDIUM,
        indicators=(
            FraudIndicator("transaction_splitting", "Large amount split into multiple smaller transactions", 70),
            FraudIndicator("consistent_amounts", "Transactions of similar or consistent amounts", 65),
            FraudIndicator("timing_consistency", "Transactions executed at regular intervals", 60),
        ),
        detection_rules=(
            DetectionRule(
                "simple",
                "Multiple transactions of similar amounts to the same destination within a short time period",
            ),
        ),
        detected_by=(
            PatternType.SMURFING_PATTERN,
            PatternType.STRUCTURED_AMOUNTS,
            PatternType.SPLITTING_PATTERN,
        ),
        tags=("money_laundering", "structuring"),
        created_at="2023-05-20T00:00:00Z",
        updated_at="2023-05-20T00:00:00Z",
    ),
    FraudPattern(
        id="ponzi-scheme",
        name="Ponzi Scheme Pattern",
        description="Using new investor funds to pay returns to existing investors",
        category=FraudCategory.PONZI,
        severity=Severity.CRITICAL,
        indicators=(
            FraudIndicator("inflow_outflow_pattern", "New inflows immediately used for outflows to earlier participants", 90),
            FraudIndicator("consistent_returns", "Unusually consistent returns regardless of market conditions", 75),
        ),
        detection_rules=(
            DetectionRule("complex", "New inflows followed by proportional outflows to earlier participants"),
        ),
        detected_by=(PatternType.FUNNEL_PATTERN, PatternType.PERIODIC_TRANSACTIONS),
        tags=("investment_fraud",),
        created_at="2023-06-01T00:00:00Z",
        updated_at="2023-06-01T00:00:00Z",
    ),
)


class PatternCatalog:
    """In-memory fraud pattern catalog. Empty until seed() or load() is called."""

    def __init__(self, patterns: Iterable[FraudPattern] = ()) -> None:
        self._patterns: dict[str, FraudPattern] = {}
        for pattern in patterns:
            self._patterns[pattern.id] = pattern

    def __len__(self) -> int:
        return len(self._patterns)

    def __contains__(self, pattern_id: str) -> bool:
        return pattern_id in self._patterns

    def seed(self) -> int:
        """Install built-in typologies that are not already present. Returns how many were added."""
        added = 0
        for pattern in BUILTIN_PATTERNS:
            if pattern.id not in self._patterns:
                self._patterns[pattern.id] = pattern
                added += 1
        logger.debug("pattern_catalog_seeded", added=added, total=len(self._patterns))
        return added

    def load(self, path: str | Path) -> int:
        """Import an exported catalog file. Returns number of patterns imported."""
        with open(path, encoding="utf-8") as f:
            return self.import_json(f.read())

    def all(self) -> list[FraudPattern]:
        return list(self._patterns.values())

    def get(self, pattern_id: str) -> FraudPattern | None:
        return self._patterns.get(pattern_id)

    def by_category(self, category: FraudCategory) -> list[FraudPattern]:
        return [p for p in self._patterns.values() if p.category == category]

    def by_severity(self, severity: Severity) -> list[FraudPattern]:
        return [p for p in self._patterns.values() if p.severity == severity]

    def related_to(self, pattern_type: PatternType) -> list[FraudPattern]:
        """Typologies for which a detected pattern of this type is evidence."""
        return [p for p in self._patterns.values() if pattern_type in p.detected_by]

    def search(self, keyword: str) -> list[FraudPattern]:
        """Case-insensitive match on name, description or any tag."""
        needle = (keyword or "").lower()
        return [
            p
            for p in self._patterns.values()
            if needle in p.name.lower()
            or needle in p.description.lower()
            or any(needle in tag.lower() for tag in p.tags)
        ]

    def add(self, pattern: FraudPattern) -> FraudPattern:
        """Add a pattern, assigning a fresh id and timestamps."""
        now = _now_iso()
        stored = replace(pattern, id=_new_pattern_id(), created_at=now, updated_at=now)
        self._patterns[stored.id] = stored
        logger.info("pattern_catalog_added", pattern_id=stored.id, category=stored.category.value)
        return stored

    def update(self, pattern_id: str, **changes: Any) -> FraudPattern | None:
        """Replace fields of an existing pattern; None when the id is unknown."""
        current = self._patterns.get(pattern_id)
        if current is None:
            return None
        changes.pop("id", None)
        changes.pop("created_at", None)
        changes.pop("updated_at", None)
        updated = replace(current, **changes, updated_at=_now_iso())
        self._patterns[pattern_id] = updated
        return updated

    def delete(self, pattern_id: str) -> bool:
        return self._patterns.pop(pattern_id, None) is not None

    def export_json(self) -> str:
        return json.dumps(
            {
                "patterns": [p.to_dict() for p in self._patterns.values()],
                "version": CATALOG_FORMAT_VERSION,
                "lastUpdated": _now_iso(),
                "source": CATALOG_SOURCE,
            },
            indent=2,
        )

    def import_json(self, payload: str) -> int:
        """
        Import patterns from export-format JSON. Entries missing name,
        description, category or severity (or with unknown enum values) are
        skipped. Existing ids are replaced, others added as-is.

        Raises:
            CatalogFormatError: payload is not JSON or has no patterns array.
        """
        try:
            data = json.loads(payload)
        except json.JSONDecodeError as e:
            raise CatalogFormatError(f"catalog is not valid JSON: {e}") from e
        if not isinstance(data, dict) or not isinstance(data.get("patterns"), list):
            raise CatalogFormatError("catalog must be an object with a 'patterns' array")

        imported = 0
        for raw in data["patterns"]:
            if not isinstance(raw, dict):
                logger.warning("pattern_catalog_skip_invalid", entry_type=type(raw).__name__)
                continue
            if not all(raw.get(k) for k in REQUIRED_PATTERN_FIELDS):
                logger.warning("pattern_catalog_skip_invalid", pattern_id=raw.get("id"))
                continue
            try:
                pattern = FraudPattern.from_dict(raw)
            except (KeyError, TypeError, ValueError) as e:
                logger.warning("pattern_catalog_skip_invalid", pattern_id=raw.get("id"), error=str(e))
                continue
            if not pattern.updated_at:
                pattern = replace(pattern, updated_at=_now_iso())
            self._patterns[pattern.id] = pattern
            imported += 1
        logger.info("pattern_catalog_imported", imported=imported, total=len(self._patterns))
        return imported
