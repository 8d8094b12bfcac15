"""
Tests for the injected account-info providers (risk.account_info).
"""

from __future__ import annotations

import pytest

from backend_riskcore.risk.account_info import (
    AccountInfoProvider,
    CallableAccountInfoProvider,
    StaticAccountInfoProvider,
)
from tests.conftest import SUBJECT


def test_static_provider_known_and_unknown():
    """Known addresses return their balance; unknown default to 0."""
    provider = StaticAccountInfoProvider({SUBJECT: 2.5})
    assert provider.get_balance(SUBJECT).balance_sol == 2.5
    assert provider.get_balance("other").balance_sol == 0.0


def test_static_provider_without_default_fails_unknown():
    """default=None turns unknown addresses into failed lookups."""
    provider = StaticAccountInfoProvider({}, default=None)
    lookup = provider.get_balance(SUBJECT)
    assert not lookup.ok
    assert lookup.error
    provider.set_balance(SUBJECT, 1.0)
    assert provider.get_balance(SUBJECT).ok


def test_callable_provider_converts_lamports():
    """Lamports are converted to SOL; None is a missing account with 0 SOL."""
    balances = {SUBJECT: 1_500_000_000}
    provider = CallableAccountInfoProvider(balances.get)
    assert provider.get_balance(SUBJECT).balance_sol == pytest.approx(1.5)
    assert provider.get_balance("missing").balance_sol == 0.0


def test_callable_provider_wraps_exceptions():
    """An exception from the callable becomes a failed lookup with its message."""

    def fetch(address):
        raise TimeoutError("rpc timeout")

    lookup = CallableAccountInfoProvider(fetch).get_balance(SUBJECT)
    assert not lookup.ok
    assert lookup.error == "rpc timeout"


def test_providers_satisfy_protocol():
    """Both providers are AccountInfoProviders."""
    assert isinstance(StaticAccountInfoProvider(), AccountInfoProvider)
    assert isinstance(CallableAccountInfoProvider(lambda a: 0), AccountInfoProvider)
