"""Execution dispatcher: runs registered checks against subscriptions.

This is the failure-isolation layer.  Every probe call goes through
``CheckDispatcher.guard()``, which returns a ``ProbeOutcome``:

    Ok(result)       the probe reported a verdict
    Skipped(id)      the probe abstained, or the batch was cancelled first
    Err(id, error)   the probe raised, returned garbage, or timed out

Nothing a probe does can escape ``guard()``.  ``Err`` outcomes become
ordinary ``Error`` rows via ``CheckDefinition.error_result``.

Concurrency:
    Checks for one subscription run on a pool of ``max_workers`` threads;
    ``run_portfolio`` runs up to ``max_subscriptions`` subscriptions at
    once, so at most ``max_workers * max_subscriptions`` probes are in
    flight.  With a timeout set, each probe runs on its own daemon thread
    and is abandoned (left to finish in the background) once the timeout
    passes; an abandoned probe never keeps the process alive.

Selection:
    With no filters every registered check runs.  Otherwise a check runs
    if its pillar is in ``pillars`` **or** its id is in ``check_ids``
    (union, not intersection).  Checks run, and results come back, in
    identifier order.
"""
from __future__ import annotations

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FuturesTimeout
from typing import Callable, Iterable

from checks.registry import CheckRegistry
from schemas.domain import CheckDefinition, CheckResult, Err, Ok, ProbeOutcome, Skipped
from schemas.taxonomy import Pillar

_log = logging.getLogger(__name__)

DEFAULT_MAX_WORKERS = 8
DEFAULT_MAX_SUBSCRIPTIONS = 2
DEFAULT_TIMEOUT = 120.0

ProgressFn = Callable[[CheckResult], None]


class CheckDispatcher:
    def __init__(
        self,
        registry: CheckRegistry,
        *,
        max_workers: int = DEFAULT_MAX_WORKERS,
        max_subscriptions: int = DEFAULT_MAX_SUBSCRIPTIONS,
        timeout: float | None = DEFAULT_TIMEOUT,
        progress: ProgressFn | None = None,
    ):
        self.registry = registry
        self.max_workers = max(1, int(max_workers))
        self.max_subscriptions = max(1, int(max_subscriptions))
        self.timeout = timeout if timeout and timeout > 0 else None
        self.progress = progress
        self._cancel = threading.Event()

    # ── Cancellation ──────────────────────────────────────────────

    def cancel(self) -> None:
        """Stop starting new checks.  In-flight probes are left to finish."""
        self._cancel.set()

    @property
    def cancelled(self) -> bool:
        return self._cancel.is_set()

    def reset(self) -> None:
        self._cancel.clear()

    # ── Selection ─────────────────────────────────────────────────

    def select(
        self,
        pillars: Iterable[Pillar | str] | None = None,
        check_ids: Iterable[str] | None = None,
    ) -> list[CheckDefinition]:
        """Checks matching the pillar filter OR the id filter; all if both are empty."""
        pillar_set = {Pillar.parse(p) for p in (pillars or ())}
        id_set = set(check_ids or ())

        for unknown in sorted(cid for cid in id_set if cid not in self.registry):
            _log.warning("Check %s is not registered; ignoring", unknown)

        checks = self.registry.get_all()
        if not pillar_set and not id_set:
            return checks
        return [c for c in checks if c.pillar in pillar_set or c.identifier in id_set]

    # ── Single probe ──────────────────────────────────────────────

    def _call(self, definition: CheckDefinition, subscription_id: str) -> Future:
        """Start the probe on its own daemon thread.

        A probe that never returns is abandoned there and does not hold
        the interpreter open at exit.
        """
        call: Future = Future()

        def _target() -> None:
            if not call.set_running_or_notify_cancel():
                return
            try:
                call.set_result(definition.probe(subscription_id))
            except BaseException as e:  # handed to guard() through the future
                call.set_exception(e)

        threading.Thread(
            target=_target,
            name=f"probe-{definition.identifier}",
            daemon=True,
        ).start()
        return call

    def guard(self, definition: CheckDefinition, subscription_id: str) -> ProbeOutcome:
        """Run one probe and classify what happened.  Never raises.

        ``SystemExit`` from a probe is isolated like any exception;
        ``KeyboardInterrupt`` is not.
        """
        if self._cancel.is_set():
            return Skipped(definition.identifier, reason="cancelled")

        try:
            if self.timeout is None:
                value = definition.probe(subscription_id)
            else:
                call = self._call(definition, subscription_id)
                try:
                    value = call.result(timeout=self.timeout)
                except FuturesTimeout:
                    if call.done():
                        raise
                    _log.warning("Check %s timed out on %s after %gs",
                                 definition.identifier, subscription_id, self.timeout)
                    return Err(definition.identifier, f"Check timed out after {self.timeout:g}s",
                               timed_out=True)
        except (Exception, SystemExit) as e:
            _log.warning("Check %s failed on %s: %s: %s",
                         definition.identifier, subscription_id, type(e).__name__, e)
            return Err(definition.identifier, f"{type(e).__name__}: {e}")

        if value is None:
            return Skipped(definition.identifier)
        if not isinstance(value, CheckResult):
            return Err(definition.identifier,
                       f"Probe returned {type(value).__name__}, expected CheckResult or None")
        if value.check_id != definition.identifier:
            return Err(definition.identifier,
                       f"Probe reported check {value.check_id!r}, expected {definition.identifier!r}")
        if (value.subscription_id or "").lower() != subscription_id.lower():
            return Err(definition.identifier,
                       f"Probe reported subscription {value.subscription_id!r}, expected {subscription_id!r}")
        return Ok(value)

    def _run_one(self, definition: CheckDefinition, subscription_id: str) -> CheckResult | None:
        outcome = self.guard(definition, subscription_id)
        result = outcome_to_result(definition, subscription_id, outcome)
        if result is not None:
            _log.debug("Check %s on %s: %s", definition.identifier, subscription_id, result.status)
            if self.progress is not None:
                self.progress(result)
        return result

    # ── Batches ───────────────────────────────────────────────────

    def _collect(self, futures: list) -> list:
        """Wait for *futures* in submission order.

        Ctrl-C cancels the batch and keeps waiting, so in-flight checks
        finish and the partial result list is still returned.  A second
        Ctrl-C propagates.
        """
        out = []
        for fut in futures:
            try:
                out.append(fut.result())
            except KeyboardInterrupt:
                if self._cancel.is_set():
                    raise
                _log.warning("Interrupted; letting in-flight checks finish")
                self.cancel()
                out.append(fut.result())
        return out

    def run(
        self,
        subscription_id: str,
        pillars: Iterable[Pillar | str] | None = None,
        check_ids: Iterable[str] | None = None,
    ) -> list[CheckResult]:
        """Run the selected checks against one subscription."""
        if not subscription_id or not str(subscription_id).strip():
            raise ValueError("subscription_id is required")

        selected = self.select(pillars, check_ids)
        if not selected:
            return []

        with ThreadPoolExecutor(max_workers=self.max_workers, thread_name_prefix="check") as pool:
            futures = [pool.submit(self._run_one, d, subscription_id) for d in selected]
            results = self._collect(futures)
        return [r for r in results if r is not None]

    def run_portfolio(
        self,
        subscription_ids: Iterable[str],
        pillars: Iterable[Pillar | str] | None = None,
        check_ids: Iterable[str] | None = None,
    ) -> list[CheckResult]:
        """Run the selected checks against every subscription.

        Results are grouped by subscription in input order, then by check id.
        """
        subs = list(dict.fromkeys(s for s in subscription_ids if s))
        pillars = list(pillars or ())
        check_ids = list(check_ids or ())

        with ThreadPoolExecutor(max_workers=self.max_subscriptions, thread_name_prefix="subscription") as pool:
            futures = [pool.submit(self.run, sub, pillars, check_ids) for sub in subs]
            per_sub = self._collect(futures)
        return [r for batch in per_sub for r in batch]


def outcome_to_result(
    definition: CheckDefinition,
    subscription_id: str,
    outcome: ProbeOutcome,
) -> CheckResult | None:
    if isinstance(outcome, Ok):
        return outcome.result
    if isinstance(outcome, Err):
        return definition.error_result(subscription_id, outcome.error)
    return None
