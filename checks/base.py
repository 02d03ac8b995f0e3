"""Base class for catalog checks.

A check is a small class: metadata as class attributes, one ``evaluate``
method, and a Markdown ``remediation`` template.  An instance *is* the
probe: calling it with a subscription id runs ``evaluate``.

    class StorageRedundancyCheck(BaseCheck):
        identifier = "RE03"
        pillar = Pillar.RELIABILITY
        ...
        def evaluate(self, subscription_id): ...

    def register(registry):
        register_checks(registry, StorageRedundancyCheck)
"""
from __future__ import annotations

from typing import Any, Iterable

from schemas.domain import CheckDefinition, CheckResult
from schemas.taxonomy import CheckStatus, Pillar, RemediationEffort, Severity
from signals.registry import SignalBus, get_shared_bus
from signals.types import SignalResult, SignalStatus, SignalUnavailableError

MAX_AFFECTED = 50


class BaseCheck:
    identifier: str = ""
    pillar: Pillar = Pillar.RELIABILITY
    title: str = ""
    description: str = ""
    severity: Severity = Severity.MEDIUM
    remediation_effort: RemediationEffort = RemediationEffort.MEDIUM
    documentation_url: str = ""
    tags: tuple[str, ...] = ()
    remediation: str = ""

    def __init__(self, bus: SignalBus | None = None):
        self._bus = bus

    @property
    def bus(self) -> SignalBus:
        return self._bus or get_shared_bus()

    def __call__(self, subscription_id: str) -> CheckResult | None:
        return self.evaluate(subscription_id)

    def evaluate(self, subscription_id: str) -> CheckResult | None:
        raise NotImplementedError

    # ── Helpers for subclasses ────────────────────────────────────

    def signal(self, name: str, subscription_id: str) -> SignalResult:
        """Fetch a signal; a failed signal fails the check.

        NotAvailable comes back to the caller, which usually answers
        with ``self.manual(...)``.
        """
        sig = self.bus.fetch(name, subscription_id)
        if sig.status == SignalStatus.ERROR:
            raise SignalUnavailableError(sig)
        return sig

    def result(
        self,
        subscription_id: str,
        status: CheckStatus,
        message: str,
        recommendation: str | None = None,
        *,
        affected_resources: Iterable[str] = (),
        estimated_roi: str = "",
        metadata: dict[str, Any] | None = None,
    ) -> CheckResult:
        if recommendation is None:
            recommendation = self.remediation if status not in (CheckStatus.PASS, CheckStatus.NOT_APPLICABLE) else ""
        return CheckResult(
            check_id=self.identifier,
            pillar=self.pillar,
            subscription_id=subscription_id,
            status=status,
            message=message,
            recommendation=recommendation,
            title=self.title,
            severity=self.severity.value,
            remediation_effort=self.remediation_effort.value,
            documentation_url=self.documentation_url,
            affected_resources=tuple(affected_resources)[:MAX_AFFECTED],
            estimated_roi=estimated_roi,
            metadata=metadata or {},
        )

    def manual(self, subscription_id: str, sig: SignalResult) -> CheckResult:
        return self.result(
            subscription_id, CheckStatus.MANUAL,
            sig.error_msg or f"{sig.signal_name} returned no data; verify manually.",
        )

    def definition(self) -> CheckDefinition:
        return CheckDefinition(
            identifier=self.identifier,
            pillar=self.pillar,
            title=self.title,
            probe=self,
            description=self.description,
            severity=self.severity.value,
            remediation_effort=self.remediation_effort.value,
            documentation_url=self.documentation_url,
            tags=frozenset(self.tags),
        )


def coverage_status(compliant: int, total: int, *, warn_at: float = 0.8) -> CheckStatus:
    """Pass at 100% coverage, Warning from *warn_at*, Fail below."""
    if total <= 0 or compliant >= total:
        return CheckStatus.PASS
    if compliant / total >= warn_at:
        return CheckStatus.WARNING
    return CheckStatus.FAIL


def count_status(count: int, *, warn_above: int = 0, fail_above: int = 5) -> CheckStatus:
    """Pass at or below *warn_above* findings, Fail above *fail_above*, Warning between."""
    if count <= warn_above:
        return CheckStatus.PASS
    if count > fail_above:
        return CheckStatus.FAIL
    return CheckStatus.WARNING


def truthy(value: Any) -> bool:
    """Resource Graph returns booleans as 'true' / 'True' / True depending on the projection."""
    return str(value).strip().lower() in ("true", "1", "enabled")


def resource_ids(items: Iterable[dict[str, Any]], key: str = "id") -> list[str]:
    return [i[key] for i in items if i.get(key)]


def register_checks(registry, *check_classes: type[BaseCheck], bus: SignalBus | None = None) -> None:
    for cls in check_classes:
        registry.register(cls(bus).definition())
