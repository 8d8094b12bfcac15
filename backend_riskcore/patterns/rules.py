"""
Rule runner shared by the four detector families.

Each family is a tuple of independent rules. A rule that raises on odd input
(malformed timestamps, NaN amounts) is logged and skipped; the rest still run,
so a family never fails as a whole.
"""

from __future__ import annotations

from typing import Any, Callable, Sequence

from backend_riskcore.patterns.models import PatternResult
from backend_riskcore.riskcore_logging import get_logger

logger = get_logger(__name__)

Rule = Callable[..., list[PatternResult]]


def run_rules(rules: Sequence[Rule], *args: Any) -> list[PatternResult]:
    """Run every rule with the same arguments; concatenate results in rule order."""
    results: list[PatternResult] = []
    for rule in rules:
        try:
            found = rule(*args)
        except Exception as e:
            logger.warning(
                "pattern_rule_failed",
                rule=rule.__name__,
                error=str(e),
            )
            continue
        if found:
            logger.debug(
                "pattern_rule_fired",
                rule=rule.__name__,
                pattern_count=len(found),
                pattern_types=[p.type.value for p in found],
            )
            results.extend(found)
    return results
