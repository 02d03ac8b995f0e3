"""Performance Efficiency checks: autoscale, disk tiers, plan sizing."""
from __future__ import annotations

from checks.base import BaseCheck, count_status, coverage_status, register_checks, resource_ids
from schemas.domain import CheckResult
from schemas.taxonomy import CheckStatus, Pillar, RemediationEffort, Severity


# ── PE01 Advisor performance recommendations ──────────────────────
class AdvisorPerformanceCheck(BaseCheck):
    identifier = "PE01"
    pillar = Pillar.PERFORMANCE_EFFICIENCY
    title = "No open Azure Advisor performance recommendations"
    severity = Severity.MEDIUM
    remediation_effort = RemediationEffort.MEDIUM
    documentation_url = "https://learn.microsoft.com/azure/advisor/advisor-performance-recommendations"
    tags = ("advisor",)
    remediation = (
        "### Resolve Advisor performance recommendations\n"
        "- Review **Advisor → Performance** and apply the suggested SKU, caching or configuration changes."
    )

    def evaluate(self, subscription_id: str) -> CheckResult | None:
        recs = [r for r in self.signal("advisor:recommendations", subscription_id).items
                if (r.get("category") or "").lower() == "performance"]
        return self.result(
            subscription_id,
            count_status(len(recs), warn_above=0, fail_above=10),
            f"{len(recs)} open performance recommendation(s).",
            affected_resources=sorted({r["resourceId"] for r in recs if r.get("resourceId")}),
        )


# ── PE02 Scale set autoscale ──────────────────────────────────────
class ScaleSetAutoscaleCheck(BaseCheck):
    identifier = "PE02"
    pillar = Pillar.PERFORMANCE_EFFICIENCY
    title = "Virtual machine scale sets have autoscale enabled"
    severity = Severity.MEDIUM
    remediation_effort = RemediationEffort.LOW
    documentation_url = "https://learn.microsoft.com/azure/virtual-machine-scale-sets/virtual-machine-scale-sets-autoscale-overview"
    tags = ("compute", "scaling")
    remediation = (
        "### Configure autoscale\n"
        "- Add an autoscale setting with scale-out and scale-in rules on CPU or queue depth.\n"
        "- Set sensible minimum and maximum instance counts."
    )

    def evaluate(self, subscription_id: str) -> CheckResult | None:
        scale_sets = self.signal("resource_graph:scale_sets", subscription_id).items
        if not scale_sets:
            return None
        manual = [s for s in scale_sets if not s.get("autoscale")]
        scaled = len(scale_sets) - len(manual)
        return self.result(
            subscription_id,
            coverage_status(scaled, len(scale_sets), warn_at=0.5),
            f"{scaled}/{len(scale_sets)} scale set(s) have an enabled autoscale setting.",
            affected_resources=resource_ids(manual),
        )


# ── PE03 OS disk tier ─────────────────────────────────────────────
class PremiumOsDiskCheck(BaseCheck):
    identifier = "PE03"
    pillar = Pillar.PERFORMANCE_EFFICIENCY
    title = "VM OS disks use SSD storage"
    severity = Severity.LOW
    remediation_effort = RemediationEffort.LOW
    documentation_url = "https://learn.microsoft.com/azure/virtual-machines/disks-types"
    tags = ("compute", "storage")
    remediation = (
        "### Move OS disks off Standard HDD\n"
        "- Change the disk SKU to **Standard SSD** or **Premium SSD** while the VM is deallocated."
    )

    def evaluate(self, subscription_id: str) -> CheckResult | None:
        vms = [vm for vm in self.signal("resource_graph:vms", subscription_id).items if vm.get("osDiskSku")]
        if not vms:
            return None
        hdd = [vm for vm in vms if vm["osDiskSku"].lower() == "standard_lrs"]
        ssd = len(vms) - len(hdd)
        return self.result(
            subscription_id,
            coverage_status(ssd, len(vms), warn_at=0.5),
            f"{ssd}/{len(vms)} VM OS disk(s) are SSD-backed.",
            affected_resources=resource_ids(hdd),
        )


# ── PE04 App Service plan tier ────────────────────────────────────
_SHARED_TIERS = ("free", "shared")


class AppServicePlanTierCheck(BaseCheck):
    identifier = "PE04"
    pillar = Pillar.PERFORMANCE_EFFICIENCY
    title = "App Service plans hosting sites run on dedicated tiers"
    severity = Severity.LOW
    remediation_effort = RemediationEffort.LOW
    documentation_url = "https://learn.microsoft.com/azure/app-service/overview-hosting-plans"
    tags = ("app-service",)
    remediation = (
        "### Scale up shared App Service plans\n"
        "- Free and Shared tiers run on shared compute with CPU quotas; move production sites to "
        "**Premium v3** (or Basic for low-traffic sites)."
    )

    def evaluate(self, subscription_id: str) -> CheckResult | None:
        plans = [p for p in self.signal("resource_graph:app_service_plans", subscription_id).items
                 if int(p.get("sites") or 0) > 0]
        if not plans:
            return None
        shared = [p for p in plans if (p.get("tier") or "").lower() in _SHARED_TIERS]
        return self.result(
            subscription_id,
            CheckStatus.WARNING if shared else CheckStatus.PASS,
            f"{len(shared)}/{len(plans)} App Service plan(s) with sites are on Free/Shared tiers.",
            affected_resources=resource_ids(shared),
        )


def register(registry) -> None:
    register_checks(
        registry,
        AdvisorPerformanceCheck,
        ScaleSetAutoscaleCheck,
        PremiumOsDiskCheck,
        AppServicePlanTierCheck,
    )
