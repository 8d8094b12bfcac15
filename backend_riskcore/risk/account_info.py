"""
Account-info capability injected into the calibration engine.

The engine never talks to an RPC node itself. Callers hand it something with
get_balance(address) -> BalanceLookup; a failed lookup is a value with
error set, not an exception.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Mapping, Protocol, runtime_checkable

from backend_riskcore.risk.models import LAMPORTS_PER_SOL
from backend_riskcore.riskcore_logging import get_logger, short_wallet

logger = get_logger(__name__)


@dataclass(frozen=True)
class BalanceLookup:
    balance_sol: float | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.balance_sol is not None

    @classmethod
    def success(cls, balance_sol: float) -> "BalanceLookup":
        return cls(balance_sol=float(balance_sol))

    @classmethod
    def failure(cls, error: str) -> "BalanceLookup":
        return cls(error=error)


@runtime_checkable
class AccountInfoProvider(Protocol):
    def get_balance(self, address: str) -> BalanceLookup:
        ...


class StaticAccountInfoProvider:
    """Dict-backed provider (SOL balances). Unknown addresses have balance 0, as a missing account does on-chain."""

    def __init__(self, balances: Mapping[str, float] | None = None, *, default: float | None = 0.0) -> None:
        self._balances = dict(balances or {})
        self._default = default

    def set_balance(self, address: str, balance_sol: float) -> None:
        self._balances[address] = balance_sol

    def get_balance(self, address: str) -> BalanceLookup:
        if address in self._balances:
            return BalanceLookup.success(self._balances[address])
        if self._default is None:
            return BalanceLookup.failure(f"no balance for {short_wallet(address)}")
        return BalanceLookup.success(self._default)


class CallableAccountInfoProvider:
    """
    Wrap a callable returning lamports (None for a missing account).
    Exceptions from the callable become failed lookups.
    """

    def __init__(self, fetch_lamports: Callable[[str], int | None]) -> None:
        self._fetch = fetch_lamports

    def get_balance(self, address: str) -> BalanceLookup:
        try:
            lamports = self._fetch(address)
        except Exception as e:
            logger.warning("account_info_lookup_failed", wallet=short_wallet(address), error=str(e))
            return BalanceLookup.failure(str(e))
        if lamports is None:
            return BalanceLookup.success(0.0)
        return BalanceLookup.success(lamports / LAMPORTS_PER_SOL)
