# schemas/taxonomy.py: Single authoritative taxonomy for WAF checks.
"""Centralised taxonomy for the Well-Architected Framework scanner.

Every check is assigned exactly one pillar, one severity and one
remediation-effort class from the enumerations below.  Statuses are the
closed set a probe may report; anything outside it is scored through the
"unknown" row of the score table (see ``engine/scoring.py``).

Canonical sources defined here:
  - ``Pillar``: 5 Well-Architected Framework pillars
  - ``CheckStatus``: Pass | Fail | Warning | NotApplicable | Error | Manual
  - ``Severity``: Critical | High | Medium | Low | Info
  - ``RemediationEffort``: Low | Medium | High
  - ``PILLAR_DISPLAY_NAME``: pillar → report label
  - ``FAILING_STATUSES``: statuses that make a scan exit non-zero
"""
from __future__ import annotations

from enum import Enum


class Pillar(str, Enum):
    RELIABILITY = "Reliability"
    SECURITY = "Security"
    COST_OPTIMIZATION = "CostOptimization"
    OPERATIONAL_EXCELLENCE = "OperationalExcellence"
    PERFORMANCE_EFFICIENCY = "PerformanceEfficiency"

    @classmethod
    def parse(cls, value: "str | Pillar") -> "Pillar":
        """Accept the canonical identifier, the display name, or any casing.

        ``"Cost Optimization"``, ``"costoptimization"`` and
        ``Pillar.COST_OPTIMIZATION`` all resolve to the same member.
        Raises ``ValueError`` for anything else.
        """
        if isinstance(value, cls):
            return value
        key = str(value).replace(" ", "").replace("_", "").lower()
        for member in cls:
            if member.value.lower() == key:
                return member
        raise ValueError(f"Unknown pillar: {value!r}")

    @property
    def display_name(self) -> str:
        return PILLAR_DISPLAY_NAME[self]


PILLAR_DISPLAY_NAME: dict[Pillar, str] = {
    Pillar.RELIABILITY: "Reliability",
    Pillar.SECURITY: "Security",
    Pillar.COST_OPTIMIZATION: "Cost Optimization",
    Pillar.OPERATIONAL_EXCELLENCE: "Operational Excellence",
    Pillar.PERFORMANCE_EFFICIENCY: "Performance Efficiency",
}

ALL_PILLARS: tuple[Pillar, ...] = tuple(Pillar)


class CheckStatus(str, Enum):
    PASS = "Pass"
    FAIL = "Fail"
    WARNING = "Warning"
    NOT_APPLICABLE = "NotApplicable"
    ERROR = "Error"
    MANUAL = "Manual"


ALL_CHECK_STATUSES: tuple[str, ...] = tuple(s.value for s in CheckStatus)

# A scan containing any of these exits non-zero.
FAILING_STATUSES: frozenset[str] = frozenset({"Fail", "Error"})


class Severity(str, Enum):
    CRITICAL = "Critical"
    HIGH = "High"
    MEDIUM = "Medium"
    LOW = "Low"
    INFO = "Info"


class RemediationEffort(str, Enum):
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"


def status_value(status: "str | CheckStatus") -> str:
    """Plain string form of a status, whatever the caller passed."""
    if isinstance(status, CheckStatus):
        return status.value
    return str(status)
