"""JSON / CSV exporters."""
import csv
import json

import pytest

from engine.aggregation import aggregate
from reporting.export import CSV_COLUMNS, export_csv, export_json, load_results_json
from schemas.domain import CheckResult
from schemas.taxonomy import Pillar

SUB = "11111111-2222-3333-4444-555555555555"


@pytest.fixture
def results():
    return [
        CheckResult(
            check_id="SE05", pillar=Pillar.SECURITY, subscription_id=SUB, status="Fail",
            message="2 NSG rule(s) allow management ports from the internet.",
            recommendation="### Close management ports\n- Use Bastion.",
            title="No management ports open to the internet",
            severity="High", remediation_effort="Low",
            documentation_url="https://learn.microsoft.com/azure/bastion/bastion-overview",
            affected_resources=("/subscriptions/x/nsg/a", "/subscriptions/x/nsg/b"),
            metadata={"rules": 2},
            timestamp="2026-01-01T00:00:00+00:00",
        ),
        CheckResult(
            check_id="CO01", pillar=Pillar.COST_OPTIMIZATION, subscription_id=SUB, status="Pass",
            message="1 budget(s) defined, 1 with alert notifications.",
            title="A budget with alerts is defined on the subscription",
            timestamp="2026-01-01T00:00:01+00:00",
        ),
    ]


def test_json_export_round_trips(tmp_path, results):
    path = export_json(results, str(tmp_path / "out" / "results.json"))
    assert load_results_json(path) == results


def test_json_export_layout(tmp_path, results):
    summary = aggregate(results)
    path = export_json(results, str(tmp_path / "results.json"), summary, {"count": 0})
    with open(path, encoding="utf-8") as f:
        payload = json.load(f)

    assert set(payload) == {"exported_at", "results", "summary", "delta"}
    assert payload["summary"]["portfolio_score"] == summary.portfolio_score
    first = payload["results"][0]
    assert first["pillar"] == "Security"
    assert first["score"] == 0
    assert first["affected_resources"] == ["/subscriptions/x/nsg/a", "/subscriptions/x/nsg/b"]


def test_json_export_without_summary(tmp_path, results):
    path = export_json(results, str(tmp_path / "results.json"))
    with open(path, encoding="utf-8") as f:
        assert set(json.load(f)) == {"exported_at", "results"}


def test_csv_export_columns(tmp_path, results):
    path = export_csv(results, str(tmp_path / "results.csv"))
    with open(path, newline="", encoding="utf-8") as f:
        reader = csv.DictReader(f)
        rows = list(reader)

    assert reader.fieldnames == CSV_COLUMNS
    assert CSV_COLUMNS[:12] == [
        "check_id", "pillar", "title", "status", "severity", "remediation_effort",
        "message", "recommendation", "affected_resource_count", "affected_resources",
        "documentation_url", "timestamp",
    ]
    assert len(rows) == 2
    assert rows[0]["affected_resource_count"] == "2"
    assert rows[0]["affected_resources"] == "/subscriptions/x/nsg/a; /subscriptions/x/nsg/b"
    assert rows[0]["recommendation"].startswith("### Close management ports\n")
    assert rows[1]["affected_resource_count"] == "0"
    assert rows[1]["affected_resources"] == ""
    assert rows[1]["subscription_id"] == SUB


def test_empty_exports(tmp_path):
    assert load_results_json(export_json([], str(tmp_path / "e.json"))) == []
    with open(export_csv([], str(tmp_path / "e.csv")), encoding="utf-8") as f:
        assert f.read().strip() == ",".join(CSV_COLUMNS)
