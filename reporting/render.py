from jinja2 import Environment, FileSystemLoader, select_autoescape
import os

from schemas.taxonomy import ALL_CHECK_STATUSES, PILLAR_DISPLAY_NAME, Pillar


# ── Finding order (locked) ───────────────────────────────────────
# Failing first, then the rows that need a human, passes last.
_STATUS_ORDER = {
    "Fail": 0,
    "Error": 1,
    "Warning": 2,
    "Manual": 3,
    "NotApplicable": 4,
    "Pass": 5,
}

_SEVERITY_ORDER = {"Critical": 0, "High": 1, "Medium": 2, "Low": 3, "Info": 4}


def _score_band(score) -> str:
    """CSS class for a 0-100 score."""
    if score is None:
        return "na"
    if score >= 80:
        return "good"
    if score >= 50:
        return "fair"
    return "poor"


def _finding_sort_key(r: dict):
    return (
        _STATUS_ORDER.get(r.get("status"), len(_STATUS_ORDER)),
        _SEVERITY_ORDER.get(r.get("severity"), len(_SEVERITY_ORDER)),
        r.get("subscription_id") or "",
        r.get("check_id") or "",
    )


# ═════════════════════════════════════════════════════════════════
#  REPORT CONTEXT BUILDER
# ═════════════════════════════════════════════════════════════════

def _build_report_context(payload: dict) -> dict:
    """
    Derive the template context from the JSON export payload.

    Sections:
      1. Portfolio headline (score, subscription and check counts)
      2. Pillar table, one row per subscription
      3. Status totals
      4. Findings, worst first
      5. Change since previous run (only with --compare)
    """
    results = payload.get("results", [])
    summary = payload.get("summary") or {}

    pillars = [{"id": p.value, "name": PILLAR_DISPLAY_NAME[p]} for p in Pillar]

    subscriptions = []
    for s in summary.get("subscriptions", []):
        scores = s.get("pillar_scores", {})
        subscriptions.append({
            "subscription_id": s.get("subscription_id"),
            "overall_score": s.get("overall_score", 0),
            "overall_band": _score_band(s.get("overall_score")),
            "check_count": s.get("check_count", 0),
            "cells": [
                {"score": scores.get(p["id"]), "band": _score_band(scores.get(p["id"]))}
                for p in pillars
            ],
        })

    status_counts = {status: 0 for status in ALL_CHECK_STATUSES}
    for r in results:
        status_counts[r.get("status")] = status_counts.get(r.get("status"), 0) + 1

    findings = []
    for r in sorted(results, key=_finding_sort_key):
        findings.append({
            **r,
            "pillar_name": PILLAR_DISPLAY_NAME.get(Pillar.parse(r["pillar"]), r["pillar"]),
            "status_class": (r.get("status") or "").lower(),
            "affected_count": len(r.get("affected_resources") or []),
        })

    delta = payload.get("delta") or {}

    return {
        "exported_at": payload.get("exported_at", ""),
        "portfolio_score": summary.get("portfolio_score", 0),
        "portfolio_band": _score_band(summary.get("portfolio_score")),
        "subscription_count": summary.get("subscription_count", 0),
        "total_checks": summary.get("total_checks", len(results)),
        "pillars": pillars,
        "subscriptions": subscriptions,
        "status_counts": status_counts,
        "findings": findings,
        "delta": delta,
    }


def generate_report(payload: dict, template_name: str = "report_template.html", out_path: str = None) -> str:
    base_dir = os.path.dirname(__file__)
    env = Environment(
        loader=FileSystemLoader(base_dir),
        autoescape=select_autoescape(["html", "xml"])
    )

    context = _build_report_context(payload)

    template = env.get_template(template_name)
    html = template.render(**context)

    if out_path is None:
        out_path = os.path.join(os.getcwd(), "report.html")
    parent = os.path.dirname(out_path)
    if parent:
        os.makedirs(parent, exist_ok=True)
    with open(out_path, "w", encoding="utf-8") as f:
        f.write(html)
    return out_path
