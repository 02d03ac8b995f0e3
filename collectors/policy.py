"""Azure Policy: what is assigned to a subscription and how compliant it is."""
from __future__ import annotations

from typing import Any, Dict, Optional

from collectors.azure_client import AzureClient

ASSIGNMENTS_API = "2022-06-01"
POLICY_STATES_API = "2019-10-01"


def _assignment(entry: Dict[str, Any]) -> Dict[str, Any]:
    props = entry.get("properties") or {}
    definition = (props.get("policyDefinitionId") or "").lower()
    return {
        "name": props.get("displayName") or entry.get("name"),
        "id": entry.get("id"),
        "scope": props.get("scope"),
        "initiative": "/policysetdefinitions/" in definition,
        "enforcement": props.get("enforcementMode", "Default"),
    }


def collect_policy_assignments(client: AzureClient, subscription_id: str) -> Dict[str, Any]:
    """Assignments in effect on the subscription, including those inherited from management groups."""
    scope = f"/subscriptions/{subscription_id}"
    assignments = [
        _assignment(a)
        for a in client.get_all(f"{scope}/providers/Microsoft.Authorization/policyAssignments",
                                api_version=ASSIGNMENTS_API)
    ]
    initiatives = sum(1 for a in assignments if a["initiative"])
    return {
        "scope": scope,
        "total": len(assignments),
        "initiatives": initiatives,
        "policies": len(assignments) - initiatives,
        "assignments": assignments,
    }


def _summary_results(data: Dict[str, Any]) -> Dict[str, Any]:
    value = data.get("value") or []
    first: Optional[Dict[str, Any]] = value[0] if value and isinstance(value[0], dict) else None
    return (first or {}).get("results") or {}


def collect_policy_state_summary(client: AzureClient, subscription_id: str) -> Dict[str, Any]:
    """Latest Policy Insights summary.

    Subscriptions without the PolicyInsights provider registered answer
    with an empty summary, reported here as NotAvailable.
    """
    scope = f"/subscriptions/{subscription_id}"
    results = _summary_results(client.post(
        f"{scope}/providers/Microsoft.PolicyInsights/policyStates/latest/summarize",
        api_version=POLICY_STATES_API,
    ))
    evaluated = results.get("totalResources") or 0
    noncompliant = results.get("nonCompliantResources") or 0

    summary: Dict[str, Any] = {
        "scope": scope,
        "total_resources": evaluated,
        "noncompliant_resources": noncompliant,
    }
    if not evaluated:
        summary.update(status="NotAvailable", compliance_percent=None,
                       reason="Policy state summary returned zero evaluated resources.",
                       total_resources=0, noncompliant_resources=0)
        return summary

    summary.update(
        status="OK",
        reason=None,
        noncompliant_policies=results.get("nonCompliantPolicies") or 0,
        compliance_percent=round(100.0 * max(0, evaluated - noncompliant) / evaluated, 1),
    )
    return summary
