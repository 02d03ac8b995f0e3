"""JSON and CSV exporters for a scan's result set.

JSON layout::

    {
      "exported_at": "2026-01-01T00:00:00+00:00",
      "results": [ {CheckResult.to_dict()}, ... ],
      "summary": {PortfolioSummary.to_dict()},   # optional
      "delta": {...}                              # optional, with --compare
    }

CSV has one row per result, affected resources joined with ``"; "``.
"""
from __future__ import annotations

import csv
import json
import logging
import os
from typing import Any, Iterable

from schemas.domain import CheckResult, PortfolioSummary, utc_now_iso

_log = logging.getLogger(__name__)

CSV_COLUMNS = [
    "check_id",
    "pillar",
    "title",
    "status",
    "severity",
    "remediation_effort",
    "message",
    "recommendation",
    "affected_resource_count",
    "affected_resources",
    "documentation_url",
    "timestamp",
    "subscription_id",
]

AFFECTED_DELIMITER = "; "


def build_payload(
    results: Iterable[CheckResult],
    summary: PortfolioSummary | None = None,
    delta: dict[str, Any] | None = None,
) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "exported_at": utc_now_iso(),
        "results": [r.to_dict() for r in results],
    }
    if summary is not None:
        payload["summary"] = summary.to_dict()
    if delta is not None:
        payload["delta"] = delta
    return payload


def export_json(
    results: Iterable[CheckResult],
    out_path: str,
    summary: PortfolioSummary | None = None,
    delta: dict[str, Any] | None = None,
) -> str:
    payload = build_payload(results, summary, delta)
    _ensure_parent(out_path)
    with open(out_path, "w", encoding="utf-8") as f:
        json.dump(payload, f, indent=2)
    _log.info("Wrote %d result(s) to %s", len(payload["results"]), out_path)
    return out_path


def load_results_json(path: str) -> list[CheckResult]:
    """Re-read ``export_json`` output.  Raises on unreadable or malformed files."""
    with open(path, encoding="utf-8") as f:
        payload = json.load(f)
    return [CheckResult.from_dict(raw) for raw in payload.get("results", [])]


def csv_row(result: CheckResult) -> dict[str, Any]:
    return {
        "check_id": result.check_id,
        "pillar": result.pillar.value,
        "title": result.title,
        "status": result.status,
        "severity": result.severity,
        "remediation_effort": result.remediation_effort,
        "message": result.message,
        "recommendation": result.recommendation,
        "affected_resource_count": len(result.affected_resources),
        "affected_resources": AFFECTED_DELIMITER.join(result.affected_resources),
        "documentation_url": result.documentation_url,
        "timestamp": result.timestamp,
        "subscription_id": result.subscription_id,
    }


def export_csv(results: Iterable[CheckResult], out_path: str) -> str:
    _ensure_parent(out_path)
    count = 0
    with open(out_path, "w", newline="", encoding="utf-8") as f:
        writer = csv.DictWriter(f, fieldnames=CSV_COLUMNS)
        writer.writeheader()
        for r in results:
            writer.writerow(csv_row(r))
            count += 1
    _log.info("Wrote %d row(s) to %s", count, out_path)
    return out_path


def _ensure_parent(path: str) -> None:
    parent = os.path.dirname(path)
    if parent:
        os.makedirs(parent, exist_ok=True)
