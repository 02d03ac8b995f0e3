"""Microsoft Defender for Cloud: plan tiers and secure score."""
from __future__ import annotations

from typing import Any, Dict, List

from collectors.azure_client import AzureClient

PRICINGS_API = "2024-01-01"
SECURE_SCORE_API = "2020-01-01"

# "Standard" on current plans, "Premium" on a few legacy ones
PAID_TIERS = {"standard", "premium"}


def _security(subscription_id: str, resource: str) -> str:
    return f"/subscriptions/{subscription_id}/providers/Microsoft.Security/{resource}"


def _plan(entry: Dict[str, Any]) -> Dict[str, Any]:
    props = entry.get("properties") or {}
    return {
        "name": entry.get("name"),
        "tier": props.get("pricingTier") or "",
        "deprecated": bool(props.get("deprecated")),
    }


def collect_defender_pricings(client: AzureClient, subscription_id: str) -> Dict[str, Any]:
    raw = client.get(_security(subscription_id, "pricings"), api_version=PRICINGS_API)
    plans = [_plan(p) for p in raw.get("value") or []]
    return {
        "subscription_id": subscription_id,
        "plans_total": len(plans),
        "plans_enabled": sum(1 for p in plans if p["tier"].lower() in PAID_TIERS),
        "plans": plans,
    }


def _as_percent(value: float | None) -> float | None:
    # the API reports a 0-1 fraction
    if value is None:
        return None
    return value * 100 if value <= 1 else value


def collect_secure_score(client: AzureClient, subscription_id: str, *, limit: int = 5) -> Dict[str, Any]:
    raw = client.get(_security(subscription_id, "secureScores"), api_version=SECURE_SCORE_API)
    entries = raw.get("value") or []
    if not entries:
        return {"status": "NotAvailable", "reason": "No secureScores returned.", "scores": []}

    scores: List[Dict[str, Any]] = []
    for entry in entries[:limit]:
        score = (entry.get("properties") or {}).get("score") or {}
        scores.append({
            "name": entry.get("name"),
            "current": score.get("current"),
            "max": score.get("max"),
            "percentage": _as_percent(score.get("percentage")),
        })
    return {"status": "OK", "subscription_id": subscription_id, "scores": scores}
