"""Named signals and the bus that serves them to checks.

A check asks for e.g. ``"cost:budgets"`` for one subscription and gets a
``SignalResult`` back; it never talks to Azure itself.
"""
from __future__ import annotations

import logging
import threading
from typing import Callable, Mapping

from signals.types import SignalResult, SignalStatus
from signals.cache import SignalCache

# ── Provider imports ──────────────────────────────────────────────
from signals.providers.resource_graph import RG_QUERIES, rg_provider
from signals.providers.defender import fetch_defender_pricings, fetch_secure_score
from signals.providers.policy import fetch_policy_assignments, fetch_policy_compliance
from signals.providers.cost_management import fetch_budgets

_log = logging.getLogger(__name__)

# Type: (subscription_id) -> SignalResult
ProviderFn = Callable[[str], SignalResult]


# ── Master registry ──────────────────────────────────────────────
SIGNAL_PROVIDERS: dict[str, ProviderFn] = {
    # Resource Graph (Advisor recommendations are queried through it too)
    **{name: rg_provider(name) for name in RG_QUERIES},

    # Defender
    "defender:pricings":          fetch_defender_pricings,
    "defender:secure_score":      fetch_secure_score,

    # Policy
    "policy:assignments":         fetch_policy_assignments,
    "policy:compliance_summary":  fetch_policy_compliance,

    # Cost Management
    "cost:budgets":               fetch_budgets,
}


class SignalBus:
    """Resolves signal names to providers and memoises non-error results per subscription."""

    def __init__(
        self,
        cache: SignalCache | None = None,
        providers: Mapping[str, ProviderFn] | None = None,
    ):
        self.cache = cache or SignalCache()
        self.providers = dict(SIGNAL_PROVIDERS if providers is None else providers)
        # one in-flight fetch per (signal, subscription); other callers wait for its result
        self._key_locks: dict[tuple[str, str], threading.Lock] = {}
        self._key_locks_guard = threading.Lock()

    def _lock_for(self, signal_name: str, subscription_id: str) -> threading.Lock:
        key = (signal_name, subscription_id.lower())
        with self._key_locks_guard:
            return self._key_locks.setdefault(key, threading.Lock())

    def fetch(
        self,
        signal_name: str,
        subscription_id: str,
        *,
        freshness_seconds: int | None = None,
    ) -> SignalResult:
        with self._lock_for(signal_name, subscription_id):
            return self._fetch(signal_name, subscription_id, freshness_seconds)

    def _fetch(self, signal_name: str, subscription_id: str, freshness_seconds: int | None) -> SignalResult:
        cached = self.cache.get(signal_name, subscription_id, freshness_seconds=freshness_seconds)
        if cached is not None:
            _log.debug("signal %s [%s] cache hit", signal_name, subscription_id)
            return cached

        provider = self.providers.get(signal_name)
        if provider is None:
            return SignalResult(
                signal_name=signal_name,
                status=SignalStatus.ERROR,
                error_msg=f"Unknown signal: {signal_name}",
            )

        result = provider(subscription_id)
        result.signal_name = signal_name  # ensure consistent naming

        # Errors are not cached so a retry can succeed
        if result.status != SignalStatus.ERROR:
            self.cache.put(signal_name, subscription_id, result)
        _log.debug("signal %s [%s] %s in %dms", signal_name, subscription_id,
                   result.status.value, result.duration_ms)
        return result


# ── Shared bus ────────────────────────────────────────────────────
_bus_lock = threading.Lock()
_shared_bus: SignalBus | None = None


def get_shared_bus() -> SignalBus:
    """Process-wide bus used by catalog checks that were not given one."""
    global _shared_bus
    if _shared_bus is None:
        with _bus_lock:
            if _shared_bus is None:
                _shared_bus = SignalBus()
    return _shared_bus


def set_shared_bus(bus: SignalBus | None) -> None:
    """Replace (or with ``None``, reset) the process-wide bus."""
    global _shared_bus
    with _bus_lock:
        _shared_bus = bus
