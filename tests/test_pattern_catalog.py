"""
Tests for the fraud pattern catalog (patterns.catalog.PatternCatalog).
"""

from __future__ import annotations

import json

import pytest

from backend_riskcore.core.exceptions import CatalogFormatError
from backend_riskcore.patterns.catalog import (
    BUILTIN_PATTERNS,
    FraudCategory,
    FraudPattern,
    PatternCatalog,
)
from backend_riskcore.patterns.models import PatternType, Severity


def test_catalog_is_empty_until_seeded():
    """Nothing is loaded implicitly."""
    catalog = PatternCatalog()
    assert len(catalog) == 0
    assert catalog.get("wash-trading-basic") is None


def test_seed_installs_builtins_once():
    """seed() adds every built-in typology; a second call adds nothing."""
    catalog = PatternCatalog()
    assert catalog.seed() == len(BUILTIN_PATTERNS)
    assert catalog.seed() == 0
    assert "wash-trading-basic" in catalog
    assert "ponzi-scheme" in catalog


def test_filters_by_category_and_severity():
    """by_category and by_severity select matching entries."""
    catalog = PatternCatalog()
    catalog.seed()
    assert [p.id for p in catalog.by_category(FraudCategory.RUG_PULL)] == ["rug-pull-basic"]
    critical = {p.id for p in catalog.by_severity(Severity.CRITICAL)}
    assert {"pump-and-dump", "rug-pull-basic", "ponzi-scheme"} <= critical


def test_related_to_links_detector_output():
    """A detected wash trading pattern maps to the wash trading typology."""
    catalog = PatternCatalog()
    catalog.seed()
    related = {p.id for p in catalog.related_to(PatternType.WASH_TRADING)}
    assert "wash-trading-basic" in related
    smurfing = {p.id for p in catalog.related_to(PatternType.SMURFING_PATTERN)}
    assert smurfing == {"smurfing-pattern"}


def test_search_matches_name_description_and_tags():
    """Keyword search is case-insensitive over name, description and tags."""
    catalog = PatternCatalog()
    catalog.seed()
    assert "mixer-usage" in {p.id for p in catalog.search("MIXING")}
    assert "front-running" in {p.id for p in catalog.search("mev")}
    assert catalog.search("no-such-keyword") == []


def test_add_update_delete():
    """add assigns a fresh id, update changes fields, delete removes."""
    catalog = PatternCatalog()
    added = catalog.add(
        FraudPattern(
            id="ignored",
            name="Airdrop Bait",
            description="Unsolicited token airdrops linking to drainer sites",
            category=FraudCategory.PHISHING,
            severity=Severity.MEDIUM,
        )
    )
    assert added.id != "ignored"
    assert added.id.startswith("pattern-")
    assert added.created_at

    updated = catalog.update(added.id, severity=Severity.HIGH)
    assert updated is not None
    assert updated.severity == Severity.HIGH
    assert updated.id == added.id
    assert catalog.update("missing", severity=Severity.LOW) is None

    assert catalog.delete(added.id) is True
    assert catalog.delete(added.id) is False


def test_export_then_import_into_empty_catalog():
    """An exported catalog imports back with the same ids."""
    source = PatternCatalog()
    source.seed()
    exported = source.export_json()
    payload = json.loads(exported)
    assert payload["version"] == "1.0"

    target = PatternCatalog()
    assert target.import_json(exported) == len(BUILTIN_PATTERNS)
    assert {p.id for p in target.all()} == {p.id for p in source.all()}
    assert target.get("wash-trading-basic").detected_by == source.get("wash-trading-basic").detected_by


def test_import_skips_incomplete_entries():
    """Entries missing required fields or with unknown enums are skipped."""
    payload = json.dumps(
        {
            "patterns": [
                {"id": "ok", "name": "Ok", "description": "d", "category": "other", "severity": "low"},
                {"id": "no-name", "description": "d", "category": "other", "severity": "low"},
                {"id": "bad-cat", "name": "B", "description": "d", "category": "nope", "severity": "low"},
                "not-a-dict",
            ]
        }
    )
    catalog = PatternCatalog()
    assert catalog.import_json(payload) == 1
    assert catalog.get("ok") is not None


@pytest.mark.parametrize("payload", ["not json", "[]", json.dumps({"patterns": {}})])
def test_import_rejects_bad_format(payload):
    """Non-JSON or a missing patterns array is a format error."""
    with pytest.raises(CatalogFormatError):
        PatternCatalog().import_json(payload)


def test_load_from_file(tmp_path):
    """load() reads an exported catalog file."""
    source = PatternCatalog()
    source.seed()
    path = tmp_path / "catalog.json"
    path.write_text(source.export_json(), encoding="utf-8")
    catalog = PatternCatalog()
    assert catalog.load(path) == len(BUILTIN_PATTERNS)
