"""Resource Graph signal providers: one named query per signal.

Every query is scoped to a single subscription and returns flat rows;
checks interpret the rows, the provider only times and wraps them.
"""
from __future__ import annotations

import time

from collectors.resource_graph import query_resource_graph
from signals.types import SignalResult, SignalStatus, elapsed_ms


def _query_rg(query: str, subscription_id: str, *, signal_name: str = "") -> SignalResult:
    started = time.perf_counter_ns()
    try:
        rows = query_resource_graph(query, [subscription_id])
    except Exception as e:
        return SignalResult(signal_name=signal_name, status=SignalStatus.ERROR,
                            error_msg=f"{type(e).__name__}: {e}", duration_ms=elapsed_ms(started))
    return SignalResult(signal_name=signal_name, status=SignalStatus.OK, items=rows,
                        raw={"count": len(rows)}, duration_ms=elapsed_ms(started))


# ── Named queries ─────────────────────────────────────────────────
RG_QUERIES: dict[str, str] = {
    "resource_graph:vms": """
    Resources
    | where type =~ 'microsoft.compute/virtualmachines'
    | project id, name, resourceGroup, location, zones,
              availabilitySet=tostring(properties.availabilitySet.id),
              powerState=tostring(properties.extended.instanceView.powerState.code),
              osDiskSku=tostring(properties.storageProfile.osDisk.managedDisk.storageAccountType)
    """,
    "resource_graph:backup_protected_items": """
    RecoveryServicesResources
    | where type =~ 'microsoft.recoveryservices/vaults/backupfabrics/protectioncontainers/protecteditems'
    | extend sourceId = tolower(tostring(properties.sourceResourceId)),
             protectionStatus = tostring(properties.protectionStatus)
    | project sourceId, protectionStatus
    """,
    "resource_graph:storage_accounts": """
    Resources
    | where type =~ 'microsoft.storage/storageaccounts'
    | project id, name, resourceGroup,
              sku=tostring(sku.name),
              publicAccess=tostring(properties.allowBlobPublicAccess),
              httpsOnly=tostring(properties.supportsHttpsTrafficOnly),
              minTls=tostring(properties.minimumTlsVersion)
    """,
    "resource_graph:sql_databases": """
    Resources
    | where type =~ 'microsoft.sql/servers/databases' and name != 'master'
    | project id, name, resourceGroup,
              zoneRedundant=tostring(properties.zoneRedundant),
              sku=tostring(sku.tier)
    """,
    "resource_graph:sql_servers": """
    Resources
    | where type =~ 'microsoft.sql/servers'
    | project id, name, resourceGroup,
              publicNetworkAccess=tostring(properties.publicNetworkAccess),
              minTls=tostring(properties.minimalTlsVersion)
    """,
    "resource_graph:key_vaults": """
    Resources
    | where type =~ 'microsoft.keyvault/vaults'
    | project id, name, resourceGroup,
              softDelete=tostring(properties.enableSoftDelete),
              purgeProtection=tostring(properties.enablePurgeProtection)
    """,
    "resource_graph:nsg_open_management": """
    Resources
    | where type =~ 'microsoft.network/networksecuritygroups'
    | mv-expand rule = properties.securityRules
    | where rule.properties.direction =~ 'Inbound' and rule.properties.access =~ 'Allow'
    | where rule.properties.sourceAddressPrefix in ('*', 'Internet', '0.0.0.0/0')
    | extend port = tostring(rule.properties.destinationPortRange)
    | where port in ('*', '22', '3389')
    | project id, name, resourceGroup, ruleName=tostring(rule.name), port
    """,
    "resource_graph:unattached_disks": """
    Resources
    | where type =~ 'microsoft.compute/disks'
    | where properties.diskState =~ 'Unattached'
    | project id, name, resourceGroup, sku=tostring(sku.name),
              sizeGb=toint(properties.diskSizeGB)
    """,
    "resource_graph:orphan_public_ips": """
    Resources
    | where type =~ 'microsoft.network/publicipaddresses'
    | where isnull(properties.ipConfiguration) and isnull(properties.natGateway)
    | project id, name, resourceGroup, sku=tostring(sku.name)
    """,
    "resource_graph:activity_log_alerts": """
    Resources
    | where type =~ 'microsoft.insights/activitylogalerts'
    | project id, name, enabled=tostring(properties.enabled),
              conditions=properties.condition.allOf
    """,
    "resource_graph:tag_coverage": """
    Resources
    | summarize total = count(),
                untagged = countif(isnull(tags) or array_length(bag_keys(tags)) == 0)
    """,
    "resource_graph:scale_sets": """
    Resources
    | where type =~ 'microsoft.compute/virtualmachinescalesets'
    | project id=tolower(id), name, resourceGroup
    | join kind=leftouter (
        Resources
        | where type =~ 'microsoft.insights/autoscalesettings'
        | where properties.enabled == true
        | project id=tolower(tostring(properties.targetResourceUri)), autoscale=name
      ) on id
    | project id, name, resourceGroup, autoscale
    """,
    "resource_graph:app_service_plans": """
    Resources
    | where type =~ 'microsoft.web/serverfarms'
    | project id, name, resourceGroup, tier=tostring(sku.tier),
              sites=toint(properties.numberOfSites)
    """,
    "advisor:recommendations": """
    AdvisorResources
    | where type =~ 'microsoft.advisor/recommendations'
    | project id, category=tostring(properties.category),
              impact=tostring(properties.impact),
              problem=tostring(properties.shortDescription.problem),
              resourceId=tostring(properties.resourceMetadata.resourceId),
              annualSavings=todouble(properties.extendedProperties.annualSavingsAmount),
              currency=tostring(properties.extendedProperties.savingsCurrency)
    """,
}


def rg_provider(signal_name: str):
    """Build a ``(subscription_id) -> SignalResult`` provider for a named query."""
    query = RG_QUERIES[signal_name]

    def _inner(subscription_id: str) -> SignalResult:
        return _query_rg(query, subscription_id, signal_name=signal_name)
    return _inner
