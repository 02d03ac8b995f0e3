import json


def _canonical_results_map(run):
    """Return deterministic (subscription_id, check_id) -> result mapping for delta operations."""
    mapped = {}
    for item in sorted(
        run.get("results", []),
        key=lambda r: (
            r.get("subscription_id") or "",
            r["check_id"],
            json.dumps(r, sort_keys=True, separators=(",", ":")),
        ),
    ):
        mapped[(item.get("subscription_id") or "", item["check_id"])] = item
    return mapped


def compute_delta(prev, curr):
    """Compute deterministic status changes between two run snapshots.

    Checks that are new in *curr* are listed under ``new_checks``; checks
    that disappeared are not reported.
    """
    prev_map = _canonical_results_map(prev)
    curr_map = _canonical_results_map(curr)
    changes = []
    new_checks = []

    for key in sorted(curr_map):
        subscription_id, check_id = key
        old = prev_map.get(key)
        current = curr_map[key]
        if old is None:
            new_checks.append({"subscription_id": subscription_id, "check_id": check_id,
                               "current": current["status"]})
        elif old["status"] != current["status"]:
            changes.append({
                "subscription_id": subscription_id,
                "check_id": check_id,
                "previous": old["status"],
                "current": current["status"],
            })

    return {
        "has_previous": True,
        "changed_checks": changes,
        "new_checks": new_checks,
        "count": len(changes),
    }


def compute_trend(prev, curr):
    """Compute score trend between two run snapshots.

    Backwards-compatible: if either run lacks a summary the missing
    scores count as 0.

    Output:
        {
            "has_previous": true,
            "previous_generated_at": "...",
            "portfolio_delta": <int>,
            "subscription_deltas": { "<subscription_id>": <int>, ... }
        }
    """
    prev_summary = prev.get("summary") or {}
    curr_summary = curr.get("summary") or {}

    prev_score = prev_summary.get("portfolio_score") or 0
    curr_score = curr_summary.get("portfolio_score") or 0

    prev_subs = {
        s["subscription_id"]: (s.get("overall_score") or 0)
        for s in prev_summary.get("subscriptions", [])
        if "subscription_id" in s
    }
    curr_subs = {
        s["subscription_id"]: (s.get("overall_score") or 0)
        for s in curr_summary.get("subscriptions", [])
        if "subscription_id" in s
    }

    all_subs = sorted(set(prev_subs) | set(curr_subs))
    subscription_deltas = {
        s: (curr_subs.get(s) or 0) - (prev_subs.get(s) or 0)
        for s in all_subs
    }

    return {
        "has_previous": True,
        "previous_generated_at": prev_summary.get("generated_at", ""),
        "portfolio_delta": curr_score - prev_score,
        "subscription_deltas": subscription_deltas,
    }
