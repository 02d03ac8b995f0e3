"""Excel workbook writer: Summary and Findings sheets.

Built from scratch with openpyxl on every run (no template):

- ``Summary``: portfolio headline plus one row per subscription with
  its pillar scores and overall score
- ``Findings``: one row per result, same columns as the CSV export

Usage::

    from reporting.workbook import build_workbook
    build_workbook(payload, "out/waf_report.xlsx")
"""
from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import Any

from openpyxl import Workbook
from openpyxl.styles import Font, PatternFill
from openpyxl.utils import get_column_letter

from reporting.export import AFFECTED_DELIMITER, CSV_COLUMNS
from schemas.taxonomy import PILLAR_DISPLAY_NAME, Pillar

_SHEET_SUMMARY = "Summary"
_SHEET_FINDINGS = "Findings"

_HEADER_FONT = Font(bold=True, color="FFFFFF")
_HEADER_FILL = PatternFill("solid", fgColor="1F4E79")

# Status → cell fill.  Statuses without an entry stay unfilled.
_STATUS_FILL: dict[str, PatternFill] = {
    "Pass":    PatternFill("solid", fgColor="DAFBE1"),
    "Warning": PatternFill("solid", fgColor="FFF8C5"),
    "Fail":    PatternFill("solid", fgColor="FFEBE9"),
    "Error":   PatternFill("solid", fgColor="FFEBE9"),
}


def _write_header(ws, row: int, headers: list[str]) -> None:
    for col, hdr in enumerate(headers, start=1):
        cell = ws.cell(row=row, column=col, value=hdr)
        cell.font = _HEADER_FONT
        cell.fill = _HEADER_FILL


def _autosize(ws, max_width: int = 60) -> None:
    for col_cells in ws.columns:
        width = max((len(str(c.value)) for c in col_cells if c.value is not None), default=8)
        ws.column_dimensions[get_column_letter(col_cells[0].column)].width = min(width + 2, max_width)


def _populate_summary(ws, payload: dict[str, Any]) -> int:
    """Rows 1-4 = headline, row 6 = table header, row 7+ = subscriptions.

    Returns the number of subscription rows written.
    """
    summary = payload.get("summary") or {}
    ws.cell(row=1, column=1, value="Portfolio score").font = Font(bold=True)
    ws.cell(row=1, column=2, value=summary.get("portfolio_score", 0))
    ws.cell(row=2, column=1, value="Subscriptions").font = Font(bold=True)
    ws.cell(row=2, column=2, value=summary.get("subscription_count", 0))
    ws.cell(row=3, column=1, value="Checks").font = Font(bold=True)
    ws.cell(row=3, column=2, value=summary.get("total_checks", len(payload.get("results", []))))
    ws.cell(row=4, column=1, value="Exported").font = Font(bold=True)
    ws.cell(row=4, column=2, value=payload.get("exported_at", ""))

    headers = ["Subscription", *(PILLAR_DISPLAY_NAME[p] for p in Pillar), "Overall", "Checks"]
    _write_header(ws, 6, headers)

    row = 7
    for s in summary.get("subscriptions", []):
        scores = s.get("pillar_scores", {})
        ws.cell(row=row, column=1, value=s.get("subscription_id"))
        for col, pillar in enumerate(Pillar, start=2):
            ws.cell(row=row, column=col, value=scores.get(pillar.value))
        ws.cell(row=row, column=len(Pillar) + 2, value=s.get("overall_score", 0))
        ws.cell(row=row, column=len(Pillar) + 3, value=s.get("check_count", 0))
        row += 1
    return row - 7


def _populate_findings(ws, results: list[dict[str, Any]]) -> int:
    _write_header(ws, 1, CSV_COLUMNS)
    status_col = CSV_COLUMNS.index("status") + 1

    row = 2
    for r in results:
        affected = r.get("affected_resources") or []
        values = {
            **{k: r.get(k, "") for k in CSV_COLUMNS},
            "affected_resource_count": len(affected),
            "affected_resources": AFFECTED_DELIMITER.join(affected),
        }
        for col, key in enumerate(CSV_COLUMNS, start=1):
            ws.cell(row=row, column=col, value=values[key])
        fill = _STATUS_FILL.get(r.get("status"))
        if fill is not None:
            ws.cell(row=row, column=status_col).fill = fill
        row += 1

    ws.freeze_panes = "A2"
    return row - 2


def build_workbook(payload: dict[str, Any], output_path: str) -> str:
    """Write the JSON export *payload* as an ``.xlsx`` workbook; returns the path."""
    out = Path(output_path)
    if out.suffix.lower() != ".xlsx":
        out = out.with_suffix(".xlsx")
    out.parent.mkdir(parents=True, exist_ok=True)

    wb = Workbook()
    ws_summary = wb.active
    ws_summary.title = _SHEET_SUMMARY
    _populate_summary(ws_summary, payload)
    _autosize(ws_summary)

    ws_findings = wb.create_sheet(_SHEET_FINDINGS)
    _populate_findings(ws_findings, payload.get("results", []))
    _autosize(ws_findings)

    try:
        wb.save(str(out))
    except PermissionError:
        ts = datetime.now().strftime("%H%M%S")
        fallback = out.with_name(f"{out.stem}_{ts}.xlsx")
        wb.save(str(fallback))
        print(f"  ⚠ Saved as {fallback.name} (original locked)")
        out = fallback

    return str(out)
