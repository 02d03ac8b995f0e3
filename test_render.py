"""HTML report and Excel workbook rendering from a JSON export payload."""
import pytest
from openpyxl import load_workbook

from engine.aggregation import aggregate
from reporting.export import CSV_COLUMNS, build_payload
from reporting.render import _build_report_context, generate_report
from reporting.workbook import build_workbook
from schemas.domain import CheckResult
from schemas.taxonomy import Pillar

SUB = "12345678-0000-0000-0000-000000000000"


@pytest.fixture
def payload():
    results = [
        CheckResult(check_id="CO01", pillar=Pillar.COST_OPTIMIZATION, subscription_id=SUB,
                    status="Pass", title="Budget", severity="Medium"),
        CheckResult(check_id="SE05", pillar=Pillar.SECURITY, subscription_id=SUB,
                    status="Fail", title="<script>alert(1)</script>", severity="High",
                    affected_resources=("/nsg/1",), recommendation="### Close ports"),
        CheckResult(check_id="OE05", pillar=Pillar.OPERATIONAL_EXCELLENCE, subscription_id=SUB,
                    status="Manual", title="IaC", severity="Low"),
    ]
    return build_payload(results, aggregate(results))


def test_context_orders_findings_worst_first(payload):
    ctx = _build_report_context(payload)
    assert [f["check_id"] for f in ctx["findings"]] == ["SE05", "OE05", "CO01"]
    assert ctx["status_counts"]["Fail"] == 1
    assert ctx["status_counts"]["Error"] == 0
    assert ctx["findings"][0]["pillar_name"] == "Security"
    assert ctx["findings"][0]["affected_count"] == 1


def test_context_pillar_cells(payload):
    ctx = _build_report_context(payload)
    [sub] = ctx["subscriptions"]
    by_pillar = dict(zip([p["id"] for p in ctx["pillars"]], sub["cells"]))
    assert by_pillar["Security"] == {"score": 0, "band": "poor"}
    assert by_pillar["CostOptimization"] == {"score": 100, "band": "good"}
    assert by_pillar["Reliability"] == {"score": None, "band": "na"}


def test_html_report_is_escaped(tmp_path, payload):
    path = generate_report(payload, out_path=str(tmp_path / "html" / "report.html"))
    html = open(path, encoding="utf-8").read()
    assert "Portfolio score" in html
    assert "SE05" in html
    assert "<script>alert(1)</script>" not in html
    assert "&lt;script&gt;" in html


def test_html_report_with_delta(tmp_path, payload):
    payload["delta"] = {
        "has_previous": True, "count": 1, "new_checks": [],
        "changed_checks": [{"subscription_id": SUB, "check_id": "SE05", "previous": "Pass", "current": "Fail"}],
        "trend": {"portfolio_delta": -12},
    }
    html = open(generate_report(payload, out_path=str(tmp_path / "r.html")), encoding="utf-8").read()
    assert "Change since previous run" in html
    assert "-12" in html


def test_html_report_for_empty_scan(tmp_path):
    path = generate_report(build_payload([], aggregate([])), out_path=str(tmp_path / "empty.html"))
    assert "No subscriptions were scanned." in open(path, encoding="utf-8").read()


def test_workbook_sheets(tmp_path, payload):
    path = build_workbook(payload, str(tmp_path / "xlsx" / "report"))
    assert path.endswith(".xlsx")

    wb = load_workbook(path)
    assert wb.sheetnames == ["Summary", "Findings"]

    summary = wb["Summary"]
    assert summary["B1"].value == payload["summary"]["portfolio_score"]
    assert summary["A7"].value == SUB

    findings = wb["Findings"]
    headers = [c.value for c in findings[1]]
    assert headers == CSV_COLUMNS
    assert findings.max_row == 4
    assert findings.cell(row=3, column=CSV_COLUMNS.index("affected_resources") + 1).value == "/nsg/1"
