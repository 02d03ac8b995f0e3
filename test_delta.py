import json
import logging
import random

from engine.delta import compute_delta, compute_trend
from engine.run_store import get_last_run, get_last_run_data, list_runs, save_run

SUB_A = "sub-a"
SUB_B = "sub-b"


def _run_with_results(results):
    return {"exported_at": "2026-01-01T00:00:00Z", "results": results}


def _row(check_id, status, sub=SUB_A):
    return {"subscription_id": sub, "check_id": check_id, "status": status}


def test_compute_delta_is_repeatable_for_identical_inputs():
    prev = _run_with_results([_row("RE01", "Fail"), _row("SE01", "Pass")])
    curr = _run_with_results([_row("RE01", "Pass"), _row("SE01", "Pass")])

    first = compute_delta(prev, curr)
    second = compute_delta(prev, curr)

    assert json.dumps(first, sort_keys=True) == json.dumps(second, sort_keys=True)
    assert first["changed_checks"] == [
        {"subscription_id": SUB_A, "check_id": "RE01", "previous": "Fail", "current": "Pass"},
    ]


def test_compute_delta_ignores_input_order():
    prev = _run_with_results([_row("RE01", "Fail"), _row("SE01", "Pass")])
    curr_one = _run_with_results([_row("RE01", "Pass"), _row("SE01", "Fail")])
    curr_two = _run_with_results([_row("SE01", "Fail"), _row("RE01", "Pass")])

    assert compute_delta(prev, curr_one) == compute_delta(prev, curr_two)


def test_compute_delta_keys_by_subscription():
    prev = _run_with_results([_row("RE01", "Pass", SUB_A), _row("RE01", "Pass", SUB_B)])
    curr = _run_with_results([_row("RE01", "Pass", SUB_A), _row("RE01", "Fail", SUB_B)])

    delta = compute_delta(prev, curr)

    assert delta["count"] == 1
    assert delta["changed_checks"][0]["subscription_id"] == SUB_B


def test_compute_delta_reports_new_checks():
    prev = _run_with_results([_row("RE01", "Pass")])
    curr = _run_with_results([_row("RE01", "Pass"), _row("SE01", "Warning")])

    delta = compute_delta(prev, curr)

    assert delta["count"] == 0
    assert delta["new_checks"] == [{"subscription_id": SUB_A, "check_id": "SE01", "current": "Warning"}]


def test_compute_delta_empty_inputs():
    result = compute_delta(_run_with_results([]), _run_with_results([]))
    assert result == {"has_previous": True, "changed_checks": [], "new_checks": [], "count": 0}


def test_compute_delta_large_input_is_stable():
    checks = [_row(f"C{i:05d}", "Fail") for i in range(1000)]
    prev = _run_with_results(checks)
    curr_checks = [_row(f"C{i:05d}", "Pass" if i % 10 == 0 else "Fail") for i in range(1000)]
    shuffled = curr_checks[:]
    random.Random(42).shuffle(shuffled)
    curr = _run_with_results(shuffled)

    delta = compute_delta(prev, curr)

    assert delta["count"] == 100
    assert delta["changed_checks"][0]["check_id"] == "C00000"
    assert delta["changed_checks"][-1]["check_id"] == "C00990"


def test_compute_trend_is_order_independent_for_subscriptions():
    prev = {
        "summary": {
            "portfolio_score": 55,
            "generated_at": "2026-01-01T00:00:00Z",
            "subscriptions": [
                {"subscription_id": SUB_A, "overall_score": 60},
                {"subscription_id": SUB_B, "overall_score": 50},
            ],
        },
    }
    curr_one = {
        "summary": {
            "portfolio_score": 59,
            "subscriptions": [
                {"subscription_id": SUB_B, "overall_score": 55},
                {"subscription_id": SUB_A, "overall_score": 62},
            ],
        }
    }
    curr_two = {
        "summary": {
            "portfolio_score": 59,
            "subscriptions": [
                {"subscription_id": SUB_A, "overall_score": 62},
                {"subscription_id": SUB_B, "overall_score": 55},
            ],
        }
    }

    trend = compute_trend(prev, curr_one)

    assert trend == compute_trend(prev, curr_two)
    assert trend["portfolio_delta"] == 4
    assert trend["subscription_deltas"] == {SUB_A: 2, SUB_B: 5}
    assert trend["previous_generated_at"] == "2026-01-01T00:00:00Z"


def test_compute_trend_handles_missing_summary():
    trend = compute_trend({}, {"summary": {"portfolio_score": 70,
                                           "subscriptions": [{"subscription_id": SUB_A, "overall_score": 70}]}})
    assert trend["portfolio_delta"] == 70
    assert trend["subscription_deltas"] == {SUB_A: 70}


def test_run_store_round_trip(tmp_path):
    out = str(tmp_path / "out")
    assert get_last_run(out) is None
    assert get_last_run_data(out) == (None, None)
    assert list_runs(out) == []

    first = save_run(out, {"results": [], "summary": {"portfolio_score": 40}})
    second = save_run(out, {"results": [], "summary": {"portfolio_score": 60}})

    assert first != second
    path, data = get_last_run_data(out)
    assert path == second
    assert data["summary"]["portfolio_score"] == 60
    assert [meta["portfolio_score"] for _, meta in list_runs(out)] == [40, 60]


def test_run_store_ignores_other_files(tmp_path):
    (tmp_path / "waf_results.json").write_text("{}")
    (tmp_path / "run-broken.json").write_text("{not json")
    assert get_last_run(str(tmp_path)).endswith("run-broken.json")
    assert list_runs(str(tmp_path)) == []


def test_last_run_data_skips_corrupt_newest_run(tmp_path, caplog):
    out = str(tmp_path)
    good = save_run(out, {"results": [], "summary": {"portfolio_score": 55}})
    (tmp_path / "run-20990101-000000.json").write_text("{not json")
    (tmp_path / "run-20990101-000001.json").write_text("[1, 2]")

    with caplog.at_level(logging.WARNING, logger="engine.run_store"):
        path, data = get_last_run_data(out)
    assert path == good
    assert data["summary"]["portfolio_score"] == 55
    assert "run-20990101-000000.json" in caplog.text
    assert [meta["portfolio_score"] for _, meta in list_runs(out)] == [55]


def test_last_run_data_with_only_corrupt_runs(tmp_path):
    (tmp_path / "run-20990101-000000.json").write_text("{not json")
    assert get_last_run_data(str(tmp_path)) == (None, None)
