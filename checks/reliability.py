"""Reliability checks: zones, backup, storage and database redundancy."""
from __future__ import annotations

from checks.base import BaseCheck, coverage_status, count_status, register_checks, resource_ids, truthy
from schemas.domain import CheckResult
from schemas.taxonomy import CheckStatus, Pillar, RemediationEffort, Severity


# ── RE01 VM zone / availability set placement ─────────────────────
class VmAvailabilityCheck(BaseCheck):
    identifier = "RE01"
    pillar = Pillar.RELIABILITY
    title = "Virtual machines use availability zones or sets"
    description = "Single-instance VMs outside a zone or availability set have no SLA-backed redundancy."
    severity = Severity.HIGH
    remediation_effort = RemediationEffort.HIGH
    documentation_url = "https://learn.microsoft.com/azure/reliability/availability-zones-overview"
    tags = ("compute", "zones")
    remediation = (
        "### Place virtual machines across fault domains\n"
        "- Redeploy production VMs into **availability zones** (or an availability set where zones are unavailable).\n"
        "- Prefer Virtual Machine Scale Sets with zone balancing for stateless tiers."
    )

    def evaluate(self, subscription_id: str) -> CheckResult | None:
        sig = self.signal("resource_graph:vms", subscription_id)
        vms = sig.items
        if not vms:
            return None
        exposed = [vm for vm in vms if not vm.get("zones") and not vm.get("availabilitySet")]
        protected = len(vms) - len(exposed)
        return self.result(
            subscription_id,
            coverage_status(protected, len(vms)),
            f"{protected}/{len(vms)} VM(s) are zonal or in an availability set.",
            affected_resources=resource_ids(exposed),
        )


# ── RE02 VM backup coverage ───────────────────────────────────────
class VmBackupCheck(BaseCheck):
    identifier = "RE02"
    pillar = Pillar.RELIABILITY
    title = "Virtual machines are protected by Azure Backup"
    severity = Severity.HIGH
    remediation_effort = RemediationEffort.LOW
    documentation_url = "https://learn.microsoft.com/azure/backup/backup-azure-vms-introduction"
    tags = ("compute", "backup")
    remediation = (
        "### Enable VM backup\n"
        "- Add unprotected VMs to a Recovery Services vault backup policy.\n"
        "- Assign the built-in policy *Configure backup on virtual machines* to cover new VMs automatically."
    )

    def evaluate(self, subscription_id: str) -> CheckResult | None:
        vms = self.signal("resource_graph:vms", subscription_id).items
        if not vms:
            return None
        protected_ids = {
            (row.get("sourceId") or "").lower()
            for row in self.signal("resource_graph:backup_protected_items", subscription_id).items
        }
        unprotected = [vm for vm in vms if (vm.get("id") or "").lower() not in protected_ids]
        covered = len(vms) - len(unprotected)
        return self.result(
            subscription_id,
            coverage_status(covered, len(vms), warn_at=0.9),
            f"{covered}/{len(vms)} VM(s) have a backup protected item.",
            affected_resources=resource_ids(unprotected),
            metadata={"total_vms": len(vms), "protected_vms": covered},
        )


# ── RE03 Storage redundancy ───────────────────────────────────────
_REDUNDANT_SKUS = ("zrs", "grs", "gzrs", "ragrs", "ragzrs")


class StorageRedundancyCheck(BaseCheck):
    identifier = "RE03"
    pillar = Pillar.RELIABILITY
    title = "Storage accounts use zone or geo redundancy"
    severity = Severity.MEDIUM
    remediation_effort = RemediationEffort.LOW
    documentation_url = "https://learn.microsoft.com/azure/storage/common/storage-redundancy"
    tags = ("storage",)
    remediation = (
        "### Upgrade storage redundancy\n"
        "- Convert locally-redundant (LRS) accounts holding production data to **ZRS** or **GZRS**.\n"
        "- Use a live migration request where conversion is not self-service."
    )

    def evaluate(self, subscription_id: str) -> CheckResult | None:
        accounts = self.signal("resource_graph:storage_accounts", subscription_id).items
        if not accounts:
            return None
        lrs = [a for a in accounts
               if not (a.get("sku") or "").lower().replace("_", "").endswith(_REDUNDANT_SKUS)]
        redundant = len(accounts) - len(lrs)
        return self.result(
            subscription_id,
            coverage_status(redundant, len(accounts), warn_at=0.5),
            f"{redundant}/{len(accounts)} storage account(s) replicate beyond a single datacenter.",
            affected_resources=resource_ids(lrs),
        )


# ── RE04 SQL zone redundancy ──────────────────────────────────────
class SqlZoneRedundancyCheck(BaseCheck):
    identifier = "RE04"
    pillar = Pillar.RELIABILITY
    title = "SQL databases are zone redundant"
    severity = Severity.MEDIUM
    remediation_effort = RemediationEffort.MEDIUM
    documentation_url = "https://learn.microsoft.com/azure/azure-sql/database/high-availability-sla"
    tags = ("database",)
    remediation = (
        "### Enable zone redundancy for Azure SQL\n"
        "- Turn on *zone redundant* for General Purpose, Business Critical or Hyperscale databases.\n"
        "- Basic and Standard tiers need a tier change first."
    )

    def evaluate(self, subscription_id: str) -> CheckResult | None:
        dbs = self.signal("resource_graph:sql_databases", subscription_id).items
        if not dbs:
            return None
        single_zone = [db for db in dbs if not truthy(db.get("zoneRedundant"))]
        zonal = len(dbs) - len(single_zone)
        return self.result(
            subscription_id,
            coverage_status(zonal, len(dbs), warn_at=0.5),
            f"{zonal}/{len(dbs)} database(s) are zone redundant.",
            affected_resources=resource_ids(single_zone),
        )


# ── RE05 Advisor reliability recommendations ──────────────────────
class AdvisorReliabilityCheck(BaseCheck):
    identifier = "RE05"
    pillar = Pillar.RELIABILITY
    title = "No open Azure Advisor reliability recommendations"
    severity = Severity.MEDIUM
    remediation_effort = RemediationEffort.MEDIUM
    documentation_url = "https://learn.microsoft.com/azure/advisor/advisor-high-availability-recommendations"
    tags = ("advisor",)
    remediation = (
        "### Work through Advisor reliability recommendations\n"
        "- Open **Advisor → Reliability** and resolve High-impact items first.\n"
        "- Postpone or dismiss recommendations that do not apply, with a reason."
    )

    def evaluate(self, subscription_id: str) -> CheckResult | None:
        recs = [r for r in self.signal("advisor:recommendations", subscription_id).items
                if (r.get("category") or "").lower() == "highavailability"]
        high = sum(1 for r in recs if (r.get("impact") or "").lower() == "high")
        status = CheckStatus.FAIL if high else count_status(len(recs), fail_above=10)
        return self.result(
            subscription_id, status,
            f"{len(recs)} open reliability recommendation(s), {high} high impact.",
            affected_resources=sorted({r["resourceId"] for r in recs if r.get("resourceId")}),
        )


def register(registry) -> None:
    register_checks(
        registry,
        VmAvailabilityCheck,
        VmBackupCheck,
        StorageRedundancyCheck,
        SqlZoneRedundancyCheck,
        AdvisorReliabilityCheck,
    )
