"""
Tests for time-based pattern detection (time_patterns).
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from backend_riskcore.patterns.models import PatternType, Severity
from backend_riskcore.patterns.time_patterns import (
    detect_activity_bursts,
    detect_periodic_transactions,
    detect_rapid_succession,
    detect_time_patterns,
    detect_unusual_hours,
    is_unusual_hour,
)
from tests.conftest import BASE_TIME, make_tx


def test_fewer_than_three_transactions_yields_nothing():
    """0-2 transactions never produce a time pattern."""
    assert detect_time_patterns([]) == []
    assert detect_time_patterns([make_tx(), make_tx(seconds=1)]) == []


def test_rapid_succession_cluster():
    """Four transactions inside 30 seconds form one cluster."""
    txs = [make_tx(seconds=s) for s in (0, 5, 10, 20)] + [make_tx(seconds=3600)]
    found = detect_rapid_succession(txs)
    assert len(found) == 1
    assert found[0].type == PatternType.RAPID_SUCCESSION
    assert found[0].metadata["count"] == 4
    assert found[0].score == 40
    assert found[0].severity == Severity.MEDIUM
    assert len(found[0].transactions) == 4


def test_rapid_succession_needs_three():
    """Two close transactions followed by distant ones do not fire."""
    txs = [make_tx(seconds=0), make_tx(seconds=10), make_tx(seconds=600), make_tx(seconds=1200)]
    assert detect_rapid_succession(txs) == []


def test_rapid_succession_high_severity_above_five():
    """More than five transactions in the window is high severity."""
    txs = [make_tx(seconds=s) for s in range(0, 30, 4)]
    found = detect_rapid_succession(txs)
    assert len(found) == 1
    assert found[0].severity == Severity.HIGH


def test_periodic_transactions_fire_on_fixed_interval():
    """Hourly transfers are periodic with full score."""
    txs = [make_tx(seconds=i * 3600) for i in range(6)]
    found = detect_periodic_transactions(txs)
    assert len(found) == 1
    assert found[0].score == 100
    assert found[0].metadata["averageIntervalSeconds"] == 3600


def test_periodic_transactions_irregular_do_not_fire():
    """Highly irregular gaps are not periodic."""
    offsets = [0, 60, 4000, 4100, 90000, 90030]
    txs = [make_tx(seconds=s) for s in offsets]
    assert detect_periodic_transactions(txs) == []


def test_unusual_hour_window_is_inclusive():
    """01:00 and 05:59 UTC are unusual; 00:59 and 06:00 are not."""
    day = datetime(2024, 3, 4, tzinfo=timezone.utc)
    assert is_unusual_hour(make_tx(at=day.replace(hour=1)))
    assert is_unusual_hour(make_tx(at=day.replace(hour=5, minute=59)))
    assert not is_unusual_hour(make_tx(at=day.replace(hour=0, minute=59)))
    assert not is_unusual_hour(make_tx(at=day.replace(hour=6)))


def test_unusual_hours_fire_at_forty_percent():
    """Two of five at night is below the count floor; three of five fires."""
    night = datetime(2024, 3, 4, 2, tzinfo=timezone.utc)
    two = [make_tx(at=night, seconds=i * 60) for i in range(2)] + [
        make_tx(seconds=i * 60) for i in range(3)
    ]
    assert detect_unusual_hours(two) == []

    three = [make_tx(at=night, seconds=i * 60) for i in range(3)] + [
        make_tx(seconds=i * 60) for i in range(2)
    ]
    found = detect_unusual_hours(three)
    assert len(found) == 1
    assert found[0].metadata["unusualHourCount"] == 3
    assert found[0].score == pytest.approx(60)


def test_activity_burst_day():
    """One day with 10 transactions against six quiet days is a burst."""
    quiet = [make_tx(at=BASE_TIME + timedelta(days=d)) for d in range(6)]
    burst_day = BASE_TIME + timedelta(days=6)
    burst = [make_tx(at=burst_day, seconds=i * 600) for i in range(10)]
    found = detect_activity_bursts(quiet + burst)
    assert len(found) == 1
    assert found[0].metadata["burstDays"] == [burst_day.strftime("%Y-%m-%d")]
    assert len(found[0].transactions) == 10


def test_even_activity_has_no_burst():
    """Equal daily counts never exceed mean + 2 stddev."""
    txs = [make_tx(at=BASE_TIME + timedelta(days=d), seconds=s) for d in range(5) for s in (0, 60)]
    assert detect_activity_bursts(txs) == []


def test_unsorted_input_is_ordered_first():
    """Rapid succession is found even when input is shuffled."""
    txs = [make_tx(seconds=s) for s in (20, 0, 5000, 10)]
    found = detect_time_patterns(txs)
    assert any(p.type == PatternType.RAPID_SUCCESSION for p in found)


def test_scores_clamped_and_transactions_non_empty():
    """Every returned result has a score in [0, 100] and implicates transactions."""
    txs = [make_tx(seconds=s) for s in range(0, 25)]
    for result in detect_time_patterns(txs):
        assert 0 <= result.score <= 100
        assert result.transactions
