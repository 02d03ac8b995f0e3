"""Security checks: Defender, secure score, data-plane exposure."""
from __future__ import annotations

from checks.base import BaseCheck, count_status, coverage_status, register_checks, resource_ids, truthy
from schemas.domain import CheckResult
from schemas.taxonomy import CheckStatus, Pillar, RemediationEffort, Severity
from signals.types import SignalStatus

# Plans whose absence matters for a typical workload subscription
_CORE_DEFENDER_PLANS = ("virtualmachines", "storageaccounts", "sqlservers", "keyvaults", "arm", "cloudposture")


# ── SE01 Defender plans ───────────────────────────────────────────
class DefenderPlansCheck(BaseCheck):
    identifier = "SE01"
    pillar = Pillar.SECURITY
    title = "Microsoft Defender for Cloud plans are enabled"
    severity = Severity.HIGH
    remediation_effort = RemediationEffort.LOW
    documentation_url = "https://learn.microsoft.com/azure/defender-for-cloud/defender-for-cloud-introduction"
    tags = ("defender",)
    remediation = (
        "### Enable Defender plans\n"
        "- In **Defender for Cloud → Environment settings**, set the core plans "
        "(Servers, Storage, SQL, Key Vault, Resource Manager, CSPM) to *On*.\n"
        "- Enforce with the *Configure Microsoft Defender for Cloud plans* initiative."
    )

    def evaluate(self, subscription_id: str) -> CheckResult | None:
        plans = self.signal("defender:pricings", subscription_id).items
        core = [p for p in plans if (p.get("name") or "").lower() in _CORE_DEFENDER_PLANS]
        if not core:
            return self.result(subscription_id, CheckStatus.FAIL, "No Defender pricing plans returned.")
        disabled = [p["name"] for p in core if (p.get("tier") or "").lower() not in ("standard", "premium")]
        enabled = len(core) - len(disabled)
        message = f"{enabled}/{len(core)} core Defender plan(s) enabled."
        if disabled:
            message += f" Disabled: {', '.join(sorted(disabled))}."
        return self.result(
            subscription_id,
            coverage_status(enabled, len(core), warn_at=0.5),
            message,
            metadata={"disabled_plans": sorted(disabled)},
        )


# ── SE02 Secure score ─────────────────────────────────────────────
class SecureScoreCheck(BaseCheck):
    identifier = "SE02"
    pillar = Pillar.SECURITY
    title = "Defender for Cloud secure score is at least 70%"
    severity = Severity.MEDIUM
    remediation_effort = RemediationEffort.MEDIUM
    documentation_url = "https://learn.microsoft.com/azure/defender-for-cloud/secure-score-security-controls"
    tags = ("defender",)
    remediation = (
        "### Raise the secure score\n"
        "- Sort **Recommendations** by *max score increase* and remediate the top controls.\n"
        "- Use *Fix* quick actions where offered; exempt false positives explicitly."
    )

    def evaluate(self, subscription_id: str) -> CheckResult | None:
        sig = self.signal("defender:secure_score", subscription_id)
        if sig.status == SignalStatus.NOT_AVAILABLE or not sig.items:
            return self.manual(subscription_id, sig)
        pct = sig.items[0].get("percentage")
        if pct is None:
            return self.manual(subscription_id, sig)
        if pct < 40:
            status = CheckStatus.FAIL
        elif pct < 70:
            status = CheckStatus.WARNING
        else:
            status = CheckStatus.PASS
        return self.result(subscription_id, status, f"Secure score is {pct:.0f}%.",
                           metadata={"percentage": pct})


# ── SE03 Storage data-plane hardening ─────────────────────────────
class StorageHardeningCheck(BaseCheck):
    identifier = "SE03"
    pillar = Pillar.SECURITY
    title = "Storage accounts enforce HTTPS, TLS 1.2 and no anonymous blob access"
    severity = Severity.HIGH
    remediation_effort = RemediationEffort.LOW
    documentation_url = "https://learn.microsoft.com/azure/storage/common/security-recommendations"
    tags = ("storage", "network")
    remediation = (
        "### Harden storage accounts\n"
        "- Set *Secure transfer required* to **Enabled** and *Minimum TLS version* to **1.2**.\n"
        "- Set *Allow Blob anonymous access* to **Disabled**."
    )

    def evaluate(self, subscription_id: str) -> CheckResult | None:
        accounts = self.signal("resource_graph:storage_accounts", subscription_id).items
        if not accounts:
            return None
        weak = [
            a for a in accounts
            if truthy(a.get("publicAccess"))
            or not truthy(a.get("httpsOnly"))
            or (a.get("minTls") or "").upper() not in ("TLS1_2", "TLS1_3")
        ]
        hardened = len(accounts) - len(weak)
        return self.result(
            subscription_id,
            coverage_status(hardened, len(accounts), warn_at=0.9),
            f"{hardened}/{len(accounts)} storage account(s) meet the transport and access baseline.",
            affected_resources=resource_ids(weak),
        )


# ── SE04 Key Vault recoverability ─────────────────────────────────
class KeyVaultRecoveryCheck(BaseCheck):
    identifier = "SE04"
    pillar = Pillar.SECURITY
    title = "Key vaults have soft delete and purge protection"
    severity = Severity.HIGH
    remediation_effort = RemediationEffort.LOW
    documentation_url = "https://learn.microsoft.com/azure/key-vault/general/soft-delete-overview"
    tags = ("keyvault",)
    remediation = (
        "### Protect key vault contents\n"
        "- Enable **purge protection** on every vault (it cannot be turned off afterwards).\n"
        "- Soft delete is on by default for new vaults; re-create legacy vaults without it."
    )

    def evaluate(self, subscription_id: str) -> CheckResult | None:
        vaults = self.signal("resource_graph:key_vaults", subscription_id).items
        if not vaults:
            return None
        # softDelete is null on vaults created after it became mandatory
        exposed = [
            v for v in vaults
            if (v.get("softDelete") not in (None, "") and not truthy(v.get("softDelete")))
            or not truthy(v.get("purgeProtection"))
        ]
        protected = len(vaults) - len(exposed)
        return self.result(
            subscription_id,
            coverage_status(protected, len(vaults), warn_at=0.5),
            f"{protected}/{len(vaults)} key vault(s) have purge protection.",
            affected_resources=resource_ids(exposed),
        )


# ── SE05 Management ports open to the internet ────────────────────
class OpenManagementPortsCheck(BaseCheck):
    identifier = "SE05"
    pillar = Pillar.SECURITY
    title = "No NSG allows SSH/RDP from the internet"
    severity = Severity.CRITICAL
    remediation_effort = RemediationEffort.LOW
    documentation_url = "https://learn.microsoft.com/azure/bastion/bastion-overview"
    tags = ("network",)
    remediation = (
        "### Close inbound management ports\n"
        "- Remove inbound *Allow* rules for ports 22/3389 (or `*`) from `Internet`/`*`.\n"
        "- Use **Azure Bastion** or **just-in-time VM access** for administration."
    )

    def evaluate(self, subscription_id: str) -> CheckResult | None:
        rules = self.signal("resource_graph:nsg_open_management", subscription_id).items
        if not rules:
            return self.result(subscription_id, CheckStatus.PASS,
                               "No inbound rule exposes SSH or RDP to the internet.")
        labels = sorted({f"{r.get('name')}/{r.get('ruleName')} ({r.get('port')})" for r in rules})
        return self.result(
            subscription_id, CheckStatus.FAIL,
            f"{len(rules)} rule(s) expose management ports: {', '.join(labels[:5])}"
            + (" ..." if len(labels) > 5 else ""),
            affected_resources=sorted({r["id"] for r in rules if r.get("id")}),
        )


# ── SE06 Advisor security recommendations ─────────────────────────
class AdvisorSecurityCheck(BaseCheck):
    identifier = "SE06"
    pillar = Pillar.SECURITY
    title = "No open Azure Advisor security recommendations"
    severity = Severity.MEDIUM
    remediation_effort = RemediationEffort.MEDIUM
    documentation_url = "https://learn.microsoft.com/azure/advisor/advisor-security-recommendations"
    tags = ("advisor",)
    remediation = (
        "### Resolve Advisor security recommendations\n"
        "- Advisor mirrors Defender for Cloud recommendations; triage them in Defender.\n"
        "- Start with High-impact items affecting internet-facing resources."
    )

    def evaluate(self, subscription_id: str) -> CheckResult | None:
        recs = [r for r in self.signal("advisor:recommendations", subscription_id).items
                if (r.get("category") or "").lower() == "security"]
        high = sum(1 for r in recs if (r.get("impact") or "").lower() == "high")
        return self.result(
            subscription_id,
            count_status(len(recs), warn_above=0, fail_above=10) if not high else CheckStatus.FAIL,
            f"{len(recs)} open security recommendation(s), {high} high impact.",
            affected_resources=sorted({r["resourceId"] for r in recs if r.get("resourceId")}),
        )


# ── SE07 SQL server exposure ──────────────────────────────────────
class SqlServerExposureCheck(BaseCheck):
    identifier = "SE07"
    pillar = Pillar.SECURITY
    title = "SQL servers disable public network access and enforce TLS 1.2"
    severity = Severity.HIGH
    remediation_effort = RemediationEffort.MEDIUM
    documentation_url = "https://learn.microsoft.com/azure/azure-sql/database/connectivity-settings"
    tags = ("database", "network")
    remediation = (
        "### Restrict SQL server connectivity\n"
        "- Reach the server through a **private endpoint** and set *Public network access* to **Disabled**.\n"
        "- Set *Minimum TLS version* to **1.2**."
    )

    def evaluate(self, subscription_id: str) -> CheckResult | None:
        servers = self.signal("resource_graph:sql_servers", subscription_id).items
        if not servers:
            return None
        exposed = [
            s for s in servers
            if (s.get("publicNetworkAccess") or "Enabled").lower() != "disabled"
            or (s.get("minTls") or "") not in ("1.2", "1.3")
        ]
        hardened = len(servers) - len(exposed)
        return self.result(
            subscription_id,
            coverage_status(hardened, len(servers), warn_at=0.5),
            f"{hardened}/{len(servers)} SQL server(s) are private with TLS 1.2+.",
            affected_resources=resource_ids(exposed),
        )


def register(registry) -> None:
    register_checks(
        registry,
        DefenderPlansCheck,
        SecureScoreCheck,
        StorageHardeningCheck,
        KeyVaultRecoveryCheck,
        OpenManagementPortsCheck,
        AdvisorSecurityCheck,
        SqlServerExposureCheck,
    )
