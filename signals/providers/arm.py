"""Shared wrapper for providers backed by an ARM REST collector.

A collector is ``(client, subscription_id) -> dict``.  The wrapper builds
the client, times the call and turns the outcome into a ``SignalResult``:

    dict without "status", or "status": "OK"   → OK
    dict with any other "status"                → NotAvailable (its "reason" is the message)
    HTTP error with a code in *unavailable_on*  → NotAvailable
    anything else raised                        → Error
"""
from __future__ import annotations

import logging
import time
from typing import Any, Callable, Iterable

import requests

from collectors.azure_client import AzureClient, build_client
from signals.types import SignalResult, SignalStatus, elapsed_ms

_log = logging.getLogger(__name__)

CollectorFn = Callable[[AzureClient, str], dict[str, Any]]
ItemsFn = Callable[[dict[str, Any]], list[dict[str, Any]]]


def arm_signal(
    signal_name: str,
    collect: CollectorFn,
    items: ItemsFn,
    *,
    unavailable_on: Iterable[int] = (),
) -> Callable[[str], SignalResult]:
    unavailable_codes = frozenset(unavailable_on)

    def provider(subscription_id: str) -> SignalResult:
        start = time.perf_counter_ns()
        try:
            data = collect(build_client(subscription_id=subscription_id), subscription_id)
        except requests.HTTPError as e:
            code = e.response.status_code if e.response is not None else None
            status = SignalStatus.NOT_AVAILABLE if code in unavailable_codes else SignalStatus.ERROR
            _log.debug("%s [%s] HTTP %s", signal_name, subscription_id, code)
            return SignalResult(signal_name=signal_name, status=status,
                                error_msg=str(e), duration_ms=elapsed_ms(start))
        except Exception as e:
            return SignalResult(signal_name=signal_name, status=SignalStatus.ERROR,
                                error_msg=f"{type(e).__name__}: {e}", duration_ms=elapsed_ms(start))

        available = data.get("status", "OK") == "OK"
        return SignalResult(
            signal_name=signal_name,
            status=SignalStatus.OK if available else SignalStatus.NOT_AVAILABLE,
            items=items(data),
            raw=data,
            error_msg="" if available else (data.get("reason") or ""),
            duration_ms=elapsed_ms(start),
        )

    provider.__name__ = f"fetch_{signal_name.replace(':', '_')}"
    return provider
