"""Cost Optimization checks: budgets, idle resources, Advisor savings."""
from __future__ import annotations

from checks.base import BaseCheck, count_status, register_checks, resource_ids
from schemas.domain import CheckResult
from schemas.taxonomy import CheckStatus, Pillar, RemediationEffort, Severity
from signals.types import SignalStatus


# ── CO01 Budgets ──────────────────────────────────────────────────
class BudgetCheck(BaseCheck):
    identifier = "CO01"
    pillar = Pillar.COST_OPTIMIZATION
    title = "A budget with alerts is defined on the subscription"
    severity = Severity.MEDIUM
    remediation_effort = RemediationEffort.LOW
    documentation_url = "https://learn.microsoft.com/azure/cost-management-billing/costs/tutorial-acm-create-budgets"
    tags = ("cost-management",)
    remediation = (
        "### Create a subscription budget\n"
        "- In **Cost Management → Budgets**, add a monthly budget sized to the expected spend.\n"
        "- Add alert conditions at 80%, 100% and forecasted 110% routed to the owning team."
    )

    def evaluate(self, subscription_id: str) -> CheckResult | None:
        sig = self.signal("cost:budgets", subscription_id)
        if sig.status == SignalStatus.NOT_AVAILABLE:
            return self.manual(subscription_id, sig)
        raw = sig.raw or {}
        count = raw.get("budget_count", 0)
        alerting = raw.get("budgets_with_notifications", 0)
        if count == 0:
            status = CheckStatus.FAIL
        elif alerting == 0:
            status = CheckStatus.WARNING
        else:
            status = CheckStatus.PASS
        return self.result(subscription_id, status,
                           f"{count} budget(s) defined, {alerting} with alert notifications.")


# ── CO02 Unattached disks ─────────────────────────────────────────
class UnattachedDiskCheck(BaseCheck):
    identifier = "CO02"
    pillar = Pillar.COST_OPTIMIZATION
    title = "No unattached managed disks"
    severity = Severity.LOW
    remediation_effort = RemediationEffort.LOW
    documentation_url = "https://learn.microsoft.com/azure/virtual-machines/disks-find-unattached-portal"
    tags = ("compute", "waste")
    remediation = (
        "### Remove orphaned disks\n"
        "- Snapshot (if needed) and delete managed disks with state **Unattached**.\n"
        "- Review VM deletion runbooks so OS/data disks are deleted with the VM."
    )

    def evaluate(self, subscription_id: str) -> CheckResult | None:
        disks = self.signal("resource_graph:unattached_disks", subscription_id).items
        total_gb = sum(int(d.get("sizeGb") or 0) for d in disks)
        return self.result(
            subscription_id,
            count_status(len(disks), warn_above=0, fail_above=10),
            f"{len(disks)} unattached disk(s) totalling {total_gb} GiB.",
            affected_resources=resource_ids(disks),
            metadata={"total_gb": total_gb},
        )


# ── CO03 Orphaned public IPs ──────────────────────────────────────
class OrphanPublicIpCheck(BaseCheck):
    identifier = "CO03"
    pillar = Pillar.COST_OPTIMIZATION
    title = "No unassociated public IP addresses"
    severity = Severity.LOW
    remediation_effort = RemediationEffort.LOW
    documentation_url = "https://learn.microsoft.com/azure/virtual-network/ip-services/public-ip-addresses"
    tags = ("network", "waste")
    remediation = (
        "### Release unused public IPs\n"
        "- Delete Standard SKU public IPs that are not attached to a NIC, load balancer or NAT gateway; "
        "they are billed while idle."
    )

    def evaluate(self, subscription_id: str) -> CheckResult | None:
        ips = self.signal("resource_graph:orphan_public_ips", subscription_id).items
        return self.result(
            subscription_id,
            count_status(len(ips), warn_above=0, fail_above=5),
            f"{len(ips)} public IP address(es) are not associated with any resource.",
            affected_resources=resource_ids(ips),
        )


# ── CO04 Advisor cost recommendations ─────────────────────────────
class AdvisorCostCheck(BaseCheck):
    identifier = "CO04"
    pillar = Pillar.COST_OPTIMIZATION
    title = "No open Azure Advisor cost recommendations"
    severity = Severity.MEDIUM
    remediation_effort = RemediationEffort.MEDIUM
    documentation_url = "https://learn.microsoft.com/azure/advisor/advisor-cost-recommendations"
    tags = ("advisor",)
    remediation = (
        "### Act on Advisor savings\n"
        "- Right-size or shut down under-utilised resources flagged by Advisor.\n"
        "- Evaluate reservations and savings plans for steady-state compute."
    )

    def evaluate(self, subscription_id: str) -> CheckResult | None:
        recs = [r for r in self.signal("advisor:recommendations", subscription_id).items
                if (r.get("category") or "").lower() == "cost"]
        savings = sum(float(r.get("annualSavings") or 0) for r in recs)
        currency = next((r["currency"] for r in recs if r.get("currency")), "USD")
        roi = f"Estimated annual savings: {savings:,.0f} {currency}" if savings else ""
        if not recs:
            status = CheckStatus.PASS
        elif savings >= 10_000:
            status = CheckStatus.FAIL
        else:
            status = CheckStatus.WARNING
        return self.result(
            subscription_id, status,
            f"{len(recs)} open cost recommendation(s).",
            affected_resources=sorted({r["resourceId"] for r in recs if r.get("resourceId")}),
            estimated_roi=roi,
            metadata={"annual_savings": round(savings, 2), "currency": currency},
        )


# ── CO05 Stopped but allocated VMs ────────────────────────────────
class StoppedVmCheck(BaseCheck):
    identifier = "CO05"
    pillar = Pillar.COST_OPTIMIZATION
    title = "No VMs are stopped without being deallocated"
    severity = Severity.MEDIUM
    remediation_effort = RemediationEffort.LOW
    documentation_url = "https://learn.microsoft.com/azure/virtual-machines/states-billing"
    tags = ("compute", "waste")
    remediation = (
        "### Deallocate stopped VMs\n"
        "- A VM stopped from inside the guest OS still bills compute. "
        "Use **Stop (deallocate)** from the portal, CLI or an auto-shutdown schedule."
    )

    def evaluate(self, subscription_id: str) -> CheckResult | None:
        vms = self.signal("resource_graph:vms", subscription_id).items
        if not vms:
            return None
        stopped = [vm for vm in vms if (vm.get("powerState") or "").lower() == "powerstate/stopped"]
        return self.result(
            subscription_id,
            CheckStatus.WARNING if stopped else CheckStatus.PASS,
            f"{len(stopped)}/{len(vms)} VM(s) are stopped but still allocated.",
            affected_resources=resource_ids(stopped),
        )


def register(registry) -> None:
    register_checks(
        registry,
        BudgetCheck,
        UnattachedDiskCheck,
        OrphanPublicIpCheck,
        AdvisorCostCheck,
        StoppedVmCheck,
    )
