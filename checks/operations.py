"""Operational Excellence checks: governance, alerting, tagging, delivery."""
from __future__ import annotations

from checks.base import BaseCheck, coverage_status, register_checks, truthy
from schemas.domain import CheckResult
from schemas.taxonomy import CheckStatus, Pillar, RemediationEffort, Severity
from signals.types import SignalStatus

# Activity-log categories worth alerting on at subscription scope
_ALERT_CATEGORIES = ("servicehealth", "administrative", "resourcehealth")


# ── OE01 Policy assignments ───────────────────────────────────────
class PolicyAssignmentCheck(BaseCheck):
    identifier = "OE01"
    pillar = Pillar.OPERATIONAL_EXCELLENCE
    title = "Azure Policy initiatives are assigned"
    severity = Severity.MEDIUM
    remediation_effort = RemediationEffort.MEDIUM
    documentation_url = "https://learn.microsoft.com/azure/governance/policy/overview"
    tags = ("policy", "governance")
    remediation = (
        "### Assign a governance baseline\n"
        "- Assign the **Microsoft cloud security benchmark** initiative and your organisation's "
        "tagging / location policies at management-group scope so they inherit to this subscription."
    )

    def evaluate(self, subscription_id: str) -> CheckResult | None:
        raw = self.signal("policy:assignments", subscription_id).raw or {}
        total = raw.get("total", 0)
        initiatives = raw.get("initiatives", 0)
        if total == 0:
            status = CheckStatus.FAIL
        elif initiatives == 0:
            status = CheckStatus.WARNING
        else:
            status = CheckStatus.PASS
        return self.result(subscription_id, status,
                           f"{total} policy assignment(s) in effect, {initiatives} initiative(s).")


# ── OE02 Policy compliance ────────────────────────────────────────
class PolicyComplianceCheck(BaseCheck):
    identifier = "OE02"
    pillar = Pillar.OPERATIONAL_EXCELLENCE
    title = "Resources are at least 80% compliant with assigned policy"
    severity = Severity.MEDIUM
    remediation_effort = RemediationEffort.HIGH
    documentation_url = "https://learn.microsoft.com/azure/governance/policy/how-to/get-compliance-data"
    tags = ("policy", "governance")
    remediation = (
        "### Drive policy compliance\n"
        "- Review **Policy → Compliance**, create remediation tasks for *deployIfNotExists* / *modify* policies.\n"
        "- Record exemptions for accepted deviations instead of leaving them non-compliant."
    )

    def evaluate(self, subscription_id: str) -> CheckResult | None:
        sig = self.signal("policy:compliance_summary", subscription_id)
        if sig.status == SignalStatus.NOT_AVAILABLE:
            return self.manual(subscription_id, sig)
        raw = sig.raw or {}
        pct = raw.get("compliance_percent")
        if pct is None:
            return self.manual(subscription_id, sig)
        if pct >= 95:
            status = CheckStatus.PASS
        elif pct >= 80:
            status = CheckStatus.WARNING
        else:
            status = CheckStatus.FAIL
        return self.result(
            subscription_id, status,
            f"{pct}% compliant ({raw.get('noncompliant_resources', 0)} of "
            f"{raw.get('total_resources', 0)} resource(s) non-compliant).",
        )


# ── OE03 Activity log alerts ──────────────────────────────────────
class ActivityLogAlertCheck(BaseCheck):
    identifier = "OE03"
    pillar = Pillar.OPERATIONAL_EXCELLENCE
    title = "Service Health and administrative activity-log alerts exist"
    severity = Severity.MEDIUM
    remediation_effort = RemediationEffort.LOW
    documentation_url = "https://learn.microsoft.com/azure/service-health/alerts-activity-log-service-notifications-portal"
    tags = ("monitoring",)
    remediation = (
        "### Alert on platform events\n"
        "- Create a **Service Health** alert for the regions and services in use.\n"
        "- Alert on administrative operations such as policy, NSG and role-assignment changes."
    )

    def evaluate(self, subscription_id: str) -> CheckResult | None:
        alerts = [a for a in self.signal("resource_graph:activity_log_alerts", subscription_id).items
                  if truthy(a.get("enabled"))]
        covered = set()
        for alert in alerts:
            for condition in alert.get("conditions") or []:
                if (condition.get("field") or "").lower() == "category":
                    covered.add((condition.get("equals") or "").lower())
        matched = sorted(c for c in _ALERT_CATEGORIES if c in covered)
        return self.result(
            subscription_id,
            coverage_status(len(matched), len(_ALERT_CATEGORIES), warn_at=0.3),
            f"{len(alerts)} enabled activity-log alert(s) covering "
            f"{', '.join(matched) if matched else 'no tracked categories'}.",
            metadata={"categories": matched},
        )


# ── OE04 Tagging ──────────────────────────────────────────────────
class TagCoverageCheck(BaseCheck):
    identifier = "OE04"
    pillar = Pillar.OPERATIONAL_EXCELLENCE
    title = "Resources carry ownership and cost tags"
    severity = Severity.LOW
    remediation_effort = RemediationEffort.MEDIUM
    documentation_url = "https://learn.microsoft.com/azure/cloud-adoption-framework/ready/azure-best-practices/resource-tagging"
    tags = ("governance",)
    remediation = (
        "### Enforce a tagging standard\n"
        "- Define required tags (owner, cost centre, environment).\n"
        "- Assign *Require a tag on resources* and *Inherit a tag from the resource group* policies."
    )

    def evaluate(self, subscription_id: str) -> CheckResult | None:
        rows = self.signal("resource_graph:tag_coverage", subscription_id).items
        row = rows[0] if rows else {}
        total = int(row.get("total") or 0)
        if total == 0:
            return None
        tagged = total - int(row.get("untagged") or 0)
        return self.result(
            subscription_id,
            coverage_status(tagged, total, warn_at=0.8),
            f"{tagged}/{total} resource(s) have at least one tag.",
        )


# ── OE05 Infrastructure as code ───────────────────────────────────
class InfrastructureAsCodeCheck(BaseCheck):
    identifier = "OE05"
    pillar = Pillar.OPERATIONAL_EXCELLENCE
    title = "Deployments are automated through infrastructure as code"
    severity = Severity.MEDIUM
    remediation_effort = RemediationEffort.HIGH
    documentation_url = "https://learn.microsoft.com/azure/well-architected/operational-excellence/infrastructure-as-code-design"
    tags = ("devops", "manual")
    remediation = (
        "### Confirm deployment automation\n"
        "- Verify production changes flow through Bicep/Terraform in a CI/CD pipeline.\n"
        "- Restrict direct portal writes with RBAC and monitor drift."
    )

    def evaluate(self, subscription_id: str) -> CheckResult | None:
        return self.result(
            subscription_id, CheckStatus.MANUAL,
            "Deployment practices cannot be inferred from resource state; confirm with the workload team.",
        )


def register(registry) -> None:
    register_checks(
        registry,
        PolicyAssignmentCheck,
        PolicyComplianceCheck,
        ActivityLogAlertCheck,
        TagCoverageCheck,
        InfrastructureAsCodeCheck,
    )
