#!/usr/bin/env python3
"""Azure Well-Architected posture scan.

    python scan.py --subscription <id> [--subscription <id> ...]
    python scan.py --all-subscriptions --pillar Security --check CO01
    python scan.py --list-checks

Exit codes:
    0    every result is Pass / Warning / Manual / NotApplicable
    1    at least one result is Fail or Error
    2    fatal: bad arguments, authentication failure, no subscriptions
    130  interrupted; partial results were still exported
"""
from __future__ import annotations

import argparse
import logging
import os
import sys
from typing import Iterable

import requests
from azure.core.exceptions import ClientAuthenticationError
from azure.identity import AzureCliCredential

from checks.registry import load_builtin_checks
from collectors.azure_client import ARM, set_shared_credential
from collectors.resource_graph import get_subscriptions
from engine.aggregation import aggregate
from engine.config import load_settings
from engine.delta import compute_delta, compute_trend
from engine.dispatcher import CheckDispatcher
from engine.run_store import get_last_run_data, save_run
from engine.weights import load_weights
from reporting.export import build_payload, export_csv, export_json
from reporting.render import generate_report
from reporting.workbook import build_workbook
from schemas.domain import CheckResult
from schemas.taxonomy import FAILING_STATUSES, Pillar
from signals.cache import SignalCache
from signals.registry import SignalBus, set_shared_bus

EXIT_OK = 0
EXIT_FINDINGS = 1
EXIT_FATAL = 2
EXIT_INTERRUPTED = 130

FORMATS = ("json", "csv", "html", "xlsx")

_STATUS_ICON = {
    "Pass": "✓",
    "Warning": "⚠",
    "Fail": "✗",
    "Error": "✗",
    "Manual": "?",
    "NotApplicable": "–",
}


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Scan Azure subscriptions against Well-Architected Framework checks."
    )
    scope = parser.add_argument_group("scope")
    scope.add_argument("--subscription", action="append", default=[], metavar="ID",
                       help="Subscription to scan (repeatable)")
    scope.add_argument("--all-subscriptions", action="store_true",
                       help="Scan every enabled subscription visible to the signed-in identity")
    scope.add_argument("--pillar", action="append", default=[],
                       help="Run checks of this pillar (repeatable; unioned with --check)")
    scope.add_argument("--check", action="append", default=[], metavar="ID",
                       help="Run this check (repeatable; unioned with --pillar)")
    scope.add_argument("--checks-path", action="append", default=[], metavar="PATH",
                       help="Extra check-definition module, file or directory (repeatable)")

    output = parser.add_argument_group("output")
    output.add_argument("--format", action="append", choices=FORMATS, dest="formats",
                        help="Report format (repeatable, default json)")
    output.add_argument("--out", help="Output directory (default $WAF_OUTPUT_DIR or ./out)")
    output.add_argument("--compare", action="store_true",
                        help="Compare with the previous run stored in the output directory")

    tuning = parser.add_argument_group("tuning")
    tuning.add_argument("--weights", help="Weight configuration JSON file")
    tuning.add_argument("--max-workers", type=int, help="Checks in flight per subscription")
    tuning.add_argument("--max-subscriptions", type=int, help="Subscriptions scanned at once")
    tuning.add_argument("--timeout", type=float, help="Seconds before a check is abandoned (0 = no limit)")

    parser.add_argument("--list-checks", action="store_true", help="List registered checks and exit")
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")
    return parser.parse_args(argv)


def exit_code_for(results: Iterable[CheckResult]) -> int:
    """1 if any result failed or errored, else 0."""
    return EXIT_FINDINGS if any(r.status in FAILING_STATUSES for r in results) else EXIT_OK


def _print_progress(result: CheckResult) -> None:
    icon = _STATUS_ICON.get(result.status, "•")
    print(f"    {icon} {result.check_id} [{result.subscription_id[:8]}] — {result.status}")


def _print_checks(registry) -> None:
    for d in registry.get_all():
        print(f"  {d.identifier:<6} {d.pillar.display_name:<26} {d.severity:<8} {d.title}")
    print(f"\n  {len(registry)} check(s)")


def _resolve_subscriptions(args: argparse.Namespace) -> list[str]:
    subs = list(dict.fromkeys(s.strip() for s in args.subscription if s.strip()))
    if args.all_subscriptions:
        for s in get_subscriptions():
            if s["subscription_id"] not in subs:
                subs.append(s["subscription_id"])
    return subs


def _print_delta(delta: dict) -> None:
    trend = delta.get("trend", {})
    print("  ┌─ Change since previous run ──────────┐")
    print(f"  │ portfolio score:        {trend.get('portfolio_delta', 0):+d}")
    print(f"  │ status changes:         {delta.get('count', 0)}")
    print(f"  │ new checks:             {len(delta.get('new_checks', []))}")
    print("  └─────────────────────────────────────────┘")
    for c in delta.get("changed_checks", [])[:10]:
        print(f"    {c['check_id']} [{c['subscription_id'][:8]}] {c['previous']} → {c['current']}")


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    settings = load_settings().override(
        max_workers=args.max_workers,
        max_subscriptions=args.max_subscriptions,
        check_timeout=args.timeout,
        weights_file=args.weights,
        output_dir=args.out,
    )

    # ── Checks ────────────────────────────────────────────────────
    registry, report = load_builtin_checks(args.checks_path)
    if not report.ok:
        for unit, err in report.failed.items():
            print(f"  ⚠ Check unit {unit} skipped: {err}")

    if args.list_checks:
        _print_checks(registry)
        return EXIT_OK

    try:
        pillars = [Pillar.parse(p) for p in args.pillar]
    except ValueError as e:
        print(f"  ✗ {e}", file=sys.stderr)
        return EXIT_FATAL

    # ── Azure sign-in ─────────────────────────────────────────────
    credential = AzureCliCredential(process_timeout=30)
    try:
        credential.get_token(f"{ARM}/.default")
    except ClientAuthenticationError as e:
        print(f"  ✗ Azure authentication failed — run 'az login' first ({e})", file=sys.stderr)
        return EXIT_FATAL
    set_shared_credential(credential)
    set_shared_bus(SignalBus(cache=SignalCache(default_ttl=settings.signal_ttl)))

    try:
        subscriptions = _resolve_subscriptions(args)
    except requests.RequestException as e:
        print(f"  ✗ Could not list subscriptions: {e}", file=sys.stderr)
        return EXIT_FATAL
    if not subscriptions:
        print("  ✗ No subscriptions to scan — pass --subscription or --all-subscriptions", file=sys.stderr)
        return EXIT_FATAL

    weights = load_weights(settings.weights_file)
    formats = args.formats or ["json"]

    print("  ┌─ WAF posture scan ───────────────────┐")
    print(f"  │ subscriptions:          {len(subscriptions)}")
    print(f"  │ checks registered:      {len(registry)}")
    print(f"  │ max workers:            {settings.max_workers} × {settings.max_subscriptions}")
    print(f"  │ check timeout:          {settings.check_timeout:g}s")
    print("  └─────────────────────────────────────────┘")

    # ── Run ───────────────────────────────────────────────────────
    dispatcher = CheckDispatcher(
        registry,
        max_workers=settings.max_workers,
        max_subscriptions=settings.max_subscriptions,
        timeout=settings.check_timeout,
        progress=_print_progress,
    )
    results = dispatcher.run_portfolio(subscriptions, pillars, args.check)
    if dispatcher.cancelled:
        print(f"  ⚠ Scan interrupted — {len(results)} result(s) collected")

    summary = aggregate(results, weights)
    payload = build_payload(results, summary)

    # ── History ───────────────────────────────────────────────────
    delta = None
    if args.compare:
        prev_path, prev = get_last_run_data(settings.output_dir)
        if prev is None:
            print("  ⚠ No previous run to compare with")
        else:
            delta = {**compute_delta(prev, payload), "trend": compute_trend(prev, payload)}
            delta["previous_run"] = os.path.basename(prev_path)
            payload["delta"] = delta
            _print_delta(delta)
    run_path = save_run(settings.output_dir, payload)

    # ── Reports ───────────────────────────────────────────────────
    out = settings.output_dir
    written = []
    if "json" in formats:
        written.append(export_json(results, os.path.join(out, "waf_results.json"), summary, delta))
    if "csv" in formats:
        written.append(export_csv(results, os.path.join(out, "waf_results.csv")))
    if "html" in formats:
        written.append(generate_report(payload, out_path=os.path.join(out, "waf_report.html")))
    if "xlsx" in formats:
        written.append(build_workbook(payload, os.path.join(out, "waf_report.xlsx")))

    print(f"\n  Portfolio score: {summary.portfolio_score}")
    for s in summary.subscriptions:
        print(f"    {s.subscription_id}: {s.overall_score} ({s.check_count} checks)")
    print(f"  ✓ Run saved → {run_path}")
    for path in written:
        print(f"  ✓ Report → {path}")

    if dispatcher.cancelled:
        return EXIT_INTERRUPTED
    return exit_code_for(results)


if __name__ == "__main__":
    raise SystemExit(main())
