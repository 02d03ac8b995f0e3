"""Core domain types: shared contracts used across the entire scanner.

These are the canonical shapes that cross layer boundaries: the check
registry stores ``CheckDefinition``, probes return ``CheckResult``, the
dispatcher wraps every probe call in a ``ProbeOutcome`` and the aggregator
produces ``SubscriptionSummary`` / ``PortfolioSummary``.

All of them are frozen.  Nothing downstream of a probe mutates a result.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Optional, Union

from engine.scoring import score_of
from schemas.taxonomy import CheckStatus, Pillar, status_value


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


# ── Check result: one probe run against one subscription ─────────
@dataclass(frozen=True)
class CheckResult:
    """Immutable outcome of running one check against one subscription.

    ``status`` is normalised to its string form so results re-read from a
    JSON export compare equal to the originals.  ``score`` is derived from
    ``status`` and cannot be passed in.
    """

    # ── Identity ──────────────────────────────────────────────────
    check_id: str
    pillar: Pillar
    subscription_id: str
    status: str

    # ── Verdict ───────────────────────────────────────────────────
    message: str = ""                 # evidence supporting the verdict
    recommendation: str = ""          # Markdown remediation guidance

    # ── Check metadata carried for reporting ──────────────────────
    title: str = ""
    severity: str = "Medium"
    remediation_effort: str = "Medium"
    documentation_url: str = ""

    # ── Optional detail ───────────────────────────────────────────
    affected_resources: tuple[str, ...] = ()
    estimated_roi: str = ""
    metadata: dict[str, Any] = field(default_factory=dict, compare=False)
    timestamp: str = field(default_factory=utc_now_iso)

    # ── Computed ──────────────────────────────────────────────────
    score: int = field(init=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "status", status_value(self.status))
        object.__setattr__(self, "pillar", Pillar.parse(self.pillar))
        object.__setattr__(self, "affected_resources", tuple(self.affected_resources or ()))
        object.__setattr__(self, "score", score_of(self.status))

    def to_dict(self) -> dict[str, Any]:
        return {
            "check_id": self.check_id,
            "pillar": self.pillar.value,
            "subscription_id": self.subscription_id,
            "title": self.title,
            "status": self.status,
            "score": self.score,
            "severity": self.severity,
            "remediation_effort": self.remediation_effort,
            "message": self.message,
            "recommendation": self.recommendation,
            "affected_resources": list(self.affected_resources),
            "estimated_roi": self.estimated_roi,
            "documentation_url": self.documentation_url,
            "metadata": dict(self.metadata),
            "timestamp": self.timestamp,
        }

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "CheckResult":
        """Rebuild a result from ``to_dict`` output.  ``score`` is re-derived."""
        return cls(
            check_id=raw["check_id"],
            pillar=Pillar.parse(raw["pillar"]),
            subscription_id=raw.get("subscription_id") or "",
            status=raw["status"],
            message=raw.get("message", ""),
            recommendation=raw.get("recommendation", ""),
            title=raw.get("title", ""),
            severity=raw.get("severity", "Medium"),
            remediation_effort=raw.get("remediation_effort", "Medium"),
            documentation_url=raw.get("documentation_url", ""),
            affected_resources=tuple(raw.get("affected_resources") or ()),
            estimated_roi=raw.get("estimated_roi", ""),
            metadata=dict(raw.get("metadata") or {}),
            timestamp=raw.get("timestamp") or utc_now_iso(),
        )


# Type: (subscription_id) -> CheckResult | None
ProbeFn = Callable[[str], Optional[CheckResult]]


# ── Check definition: registered once, immutable thereafter ──────
@dataclass(frozen=True)
class CheckDefinition:
    """A registered check: metadata plus the probe that evaluates it."""

    identifier: str
    pillar: Pillar
    title: str
    probe: ProbeFn = field(repr=False, compare=False)
    description: str = ""
    severity: str = "Medium"
    remediation_effort: str = "Medium"
    documentation_url: str = ""
    tags: frozenset[str] = frozenset()

    def __post_init__(self) -> None:
        if not self.identifier or not isinstance(self.identifier, str):
            raise ValueError(f"Check identifier must be a non-empty string, got {self.identifier!r}")
        if not callable(self.probe):
            raise ValueError(f"[{self.identifier}] probe is not callable")
        object.__setattr__(self, "pillar", Pillar.parse(self.pillar))
        object.__setattr__(self, "tags", frozenset(self.tags))

    def error_result(self, subscription_id: str, error: str) -> CheckResult:
        """Synthetic Error result used when the probe raised or timed out."""
        return CheckResult(
            check_id=self.identifier,
            pillar=self.pillar,
            subscription_id=subscription_id,
            status=CheckStatus.ERROR,
            message=error,
            recommendation=(
                "Retry the check with the required permissions and modules. "
                "Reader access on the subscription plus Security Reader and "
                "Cost Management Reader cover every built-in check."
            ),
            title=self.title,
            severity=self.severity,
            remediation_effort=self.remediation_effort,
            documentation_url=self.documentation_url,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "identifier": self.identifier,
            "pillar": self.pillar.value,
            "title": self.title,
            "description": self.description,
            "severity": self.severity,
            "remediation_effort": self.remediation_effort,
            "documentation_url": self.documentation_url,
            "tags": sorted(self.tags),
        }


# ── Probe outcome: what the dispatcher's guard returns ───────────
@dataclass(frozen=True)
class Ok:
    result: CheckResult


@dataclass(frozen=True)
class Err:
    check_id: str
    error: str
    timed_out: bool = False


@dataclass(frozen=True)
class Skipped:
    """The probe abstained (returned nothing) or was never started."""
    check_id: str
    reason: str = "abstained"


ProbeOutcome = Union[Ok, Err, Skipped]


# ── Aggregates ────────────────────────────────────────────────────
@dataclass(frozen=True)
class SubscriptionSummary:
    subscription_id: str
    pillar_scores: dict[str, int]     # canonical pillar id → 0-100
    overall_score: int
    check_count: int
    generated_at: str = field(default_factory=utc_now_iso, compare=False)

    def to_dict(self) -> dict[str, Any]:
        return {
            "subscription_id": self.subscription_id,
            "pillar_scores": dict(self.pillar_scores),
            "overall_score": self.overall_score,
            "check_count": self.check_count,
            "generated_at": self.generated_at,
        }


@dataclass(frozen=True)
class PortfolioSummary:
    portfolio_score: int
    subscription_count: int
    total_checks: int
    subscriptions: tuple[SubscriptionSummary, ...] = ()
    generated_at: str = field(default_factory=utc_now_iso, compare=False)

    def to_dict(self) -> dict[str, Any]:
        return {
            "portfolio_score": self.portfolio_score,
            "subscription_count": self.subscription_count,
            "total_checks": self.total_checks,
            "subscriptions": [s.to_dict() for s in self.subscriptions],
            "generated_at": self.generated_at,
        }
