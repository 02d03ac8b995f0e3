"""Consumption budgets (Cost Management)."""
from __future__ import annotations
from typing import Any, Dict
from collectors.azure_client import AzureClient

BUDGET_API = "2023-11-01"


def collect_budgets(client: AzureClient, subscription_id: str) -> Dict[str, Any]:
    """Consumption budgets defined on the subscription and their alert rules."""
    items = client.get_all(
        f"/subscriptions/{subscription_id}/providers/Microsoft.Consumption/budgets",
        api_version=BUDGET_API,
    )

    budgets = []
    with_notifications = 0
    for b in items:
        props = b.get("properties", {}) or {}
        notifications = props.get("notifications", {}) or {}
        enabled = [n for n in notifications.values() if (n or {}).get("enabled", True)]
        if enabled:
            with_notifications += 1
        budgets.append({
            "name": b.get("name", ""),
            "amount": props.get("amount", 0),
            "time_grain": props.get("timeGrain", ""),
            "notification_count": len(enabled),
            "current_spend": (props.get("currentSpend") or {}).get("amount"),
        })

    return {
        "subscription_id": subscription_id,
        "budget_count": len(budgets),
        "budgets_with_notifications": with_notifications,
        "budgets": budgets,
    }
