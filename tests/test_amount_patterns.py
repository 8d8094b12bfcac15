"""
Tests for amount-based pattern detection (amount_patterns).
"""

from __future__ import annotations

from backend_riskcore.patterns.amount_patterns import (
    detect_amount_patterns,
    detect_repeating_amounts,
    detect_round_amounts,
    detect_splitting,
    detect_structured_amounts,
    is_round_amount,
    is_structured_amount,
)
from backend_riskcore.patterns.models import PatternType, Severity
from tests.conftest import make_tx


def _txs(amounts, spacing=3600):
    return [make_tx(amount=a, seconds=i * spacing) for i, a in enumerate(amounts)]


def test_round_amount_helper():
    """Whole numbers and scaled canonical values are round; odd decimals are not."""
    assert is_round_amount(10)
    assert is_round_amount(0.5)
    assert is_round_amount(0.05)
    assert not is_round_amount(33.333)
    assert not is_round_amount(47.21)


def test_round_amounts_fire_on_three_of_four():
    """[10, 50, 100, 33.333]: the first three are round and the pattern fires."""
    txs = _txs([10, 50, 100, 33.333])
    found = detect_round_amounts(txs)
    assert len(found) == 1
    result = found[0]
    assert result.type == PatternType.ROUND_AMOUNTS
    assert result.metadata["roundAmountCount"] == 3
    assert result.transactions == tuple(tx.signature for tx in txs[:3])
    assert result.severity == Severity.HIGH
    assert result.score == 55


def test_round_amounts_silent_on_odd_amounts():
    """[33.333, 47.21, 12.9] has no round amounts."""
    assert detect_round_amounts(_txs([33.333, 47.21, 12.9])) == []


def test_structured_amount_helper():
    """Just below a threshold is structured; at or far below it is not."""
    assert is_structured_amount(990)
    assert is_structured_amount(9999)
    assert not is_structured_amount(1000)
    assert not is_structured_amount(900)


def test_structured_amounts_fire_on_two():
    """Two amounts just under reporting thresholds fire."""
    found = detect_structured_amounts(_txs([990, 2950, 1.5]))
    assert len(found) == 1
    assert found[0].metadata["structuredCount"] == 2
    assert found[0].score == 80
    assert found[0].severity == Severity.MEDIUM


def test_repeating_amounts_pick_largest_bucket():
    """Three identical amounts out of five repeat with high severity."""
    found = detect_repeating_amounts(_txs([7.5, 3.25, 7.5, 3.25, 7.5]))
    assert len(found) == 1
    assert found[0].metadata["amount"] == 7.5
    assert found[0].metadata["count"] == 3
    assert found[0].severity == Severity.HIGH


def test_repeating_amounts_tie_keeps_first_seen():
    """Equal-size buckets resolve to the amount seen first."""
    found = detect_repeating_amounts(_txs([2.5, 4.75, 2.5, 4.75, 2.5, 4.75]))
    assert found[0].metadata["amount"] == 2.5


def test_splitting_large_transfer():
    """200 SOL followed by three smaller transfers summing near 200 is splitting."""
    parent = make_tx(amount=200, seconds=0)
    children = [make_tx(amount=a, seconds=600 * (i + 1)) for i, a in enumerate((60, 70, 75))]
    found = detect_splitting([parent, *children])
    assert len(found) == 1
    result = found[0]
    assert result.type == PatternType.SPLITTING_PATTERN
    assert result.transactions[0] == parent.signature
    assert result.metadata["splitCount"] == 3
    assert result.score == 76


def test_splitting_requires_matching_sum():
    """Children summing far below the parent are not a split."""
    parent = make_tx(amount=200, seconds=0)
    children = [make_tx(amount=10, seconds=60 * (i + 1)) for i in range(3)]
    assert detect_splitting([parent, *children]) == []


def test_splitting_ignores_children_after_window():
    """Transfers more than 24h later are not children."""
    parent = make_tx(amount=200, seconds=0)
    children = [make_tx(amount=a, seconds=90000 + i) for i, a in enumerate((60, 70, 75))]
    assert detect_splitting([parent, *children]) == []


def test_amount_patterns_need_three_transactions():
    """Two transactions never produce amount patterns."""
    assert detect_amount_patterns(_txs([10, 50])) == []


def test_amount_patterns_combine_rules():
    """Round and repeating amounts are both reported for [10, 10, 10]."""
    types = {p.type for p in detect_amount_patterns(_txs([10, 10, 10]))}
    assert types == {PatternType.ROUND_AMOUNTS, PatternType.REPEATING_AMOUNTS}
