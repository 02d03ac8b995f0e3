"""Three-level aggregation: pillar, subscription, portfolio."""
import random

from engine.aggregation import UNKNOWN_SUBSCRIPTION, aggregate
from engine.weights import WeightConfig
from schemas.domain import CheckResult
from schemas.taxonomy import Pillar

SUB_A = "aaaaaaaa-0000-0000-0000-000000000000"
SUB_B = "bbbbbbbb-0000-0000-0000-000000000000"


def _r(cid, status, pillar=Pillar.SECURITY, sub=SUB_A):
    return CheckResult(check_id=cid, pillar=pillar, subscription_id=sub, status=status,
                       timestamp="2026-01-01T00:00:00+00:00")


def test_empty_input_is_zero_summary():
    summary = aggregate([])
    assert summary.portfolio_score == 0
    assert summary.subscription_count == 0
    assert summary.total_checks == 0
    assert summary.subscriptions == ()


def test_single_pillar_plain_mean():
    summary = aggregate([_r("SE01", "Pass"), _r("SE02", "Warning")])
    [sub] = summary.subscriptions
    assert sub.pillar_scores == {"Security": 80}
    assert sub.overall_score == 80
    assert summary.portfolio_score == 80
    assert summary.total_checks == 2


def test_check_weight_override_rounds_half_up():
    weights = WeightConfig(check_weights={"SE01": 2.0})
    summary = aggregate([_r("SE01", "Pass"), _r("SE02", "Fail")], weights)
    # (100*2 + 0*1) / 3 = 66.67
    assert summary.subscriptions[0].pillar_scores["Security"] == 67


def test_exact_half_rounds_up():
    # Pass(100) + NotApplicable(50) + Warning(60) + Fail(0) = 210 / 4 = 52.5 → 53
    results = [_r("A", "Pass"), _r("B", "NotApplicable"), _r("C", "Warning"), _r("D", "Fail")]
    assert aggregate(results).subscriptions[0].pillar_scores["Security"] == 53


def test_pillar_weights_shape_overall_score():
    results = [
        _r("SE01", "Pass", Pillar.SECURITY),
        _r("CO01", "Fail", Pillar.COST_OPTIMIZATION),
    ]
    equal = aggregate(results).subscriptions[0]
    assert equal.overall_score == 50

    weighted = aggregate(results, WeightConfig(pillar_weights={Pillar.SECURITY: 3.0})).subscriptions[0]
    # (100*3 + 0*1) / 4 = 75
    assert weighted.overall_score == 75


def test_zero_pillar_weights_give_zero_overall():
    weights = WeightConfig(pillar_weights={p: 0.0 for p in Pillar})
    summary = aggregate([_r("SE01", "Pass")], weights)
    assert summary.subscriptions[0].pillar_scores == {"Security": 100}
    assert summary.subscriptions[0].overall_score == 0


def test_all_checks_weighted_out_of_a_pillar():
    weights = WeightConfig(check_weights={"CO01": 0})
    results = [_r("SE01", "Pass", Pillar.SECURITY), _r("CO01", "Fail", Pillar.COST_OPTIMIZATION)]
    sub = aggregate(results, weights).subscriptions[0]
    assert sub.pillar_scores == {"Security": 100, "CostOptimization": 0}
    assert sub.overall_score == 100
    assert sub.check_count == 2


def test_manual_and_error_statuses():
    sub = aggregate([_r("A", "Manual"), _r("B", "Error")]).subscriptions[0]
    # Manual → 50, Error → 0
    assert sub.pillar_scores["Security"] == 25


def test_portfolio_is_unweighted_mean_of_subscriptions():
    results = [
        _r("SE01", "Pass", sub=SUB_A),
        _r("SE01", "Fail", sub=SUB_B),
        _r("SE02", "Fail", sub=SUB_B),
        _r("SE03", "Warning", sub=SUB_B),
    ]
    summary = aggregate(results)
    assert [s.subscription_id for s in summary.subscriptions] == [SUB_A, SUB_B]
    assert [s.overall_score for s in summary.subscriptions] == [100, 20]
    assert summary.portfolio_score == 60
    assert summary.subscription_count == 2
    assert summary.total_checks == 4


def test_missing_subscription_grouped_as_unknown():
    summary = aggregate([_r("SE01", "Pass", sub="")])
    assert summary.subscriptions[0].subscription_id == UNKNOWN_SUBSCRIPTION


def test_aggregation_is_deterministic_and_order_independent():
    pillars = list(Pillar)
    statuses = ["Pass", "Fail", "Warning", "NotApplicable", "Error", "Manual"]
    rng = random.Random(7)
    results = [
        _r(f"C{i:03d}", rng.choice(statuses), rng.choice(pillars), rng.choice([SUB_A, SUB_B]))
        for i in range(200)
    ]
    weights = WeightConfig(pillar_weights={Pillar.SECURITY: 2.0}, check_weights={"C001": 3.0})

    first = aggregate(results, weights)
    second = aggregate(results, weights)
    shuffled = results[:]
    rng.shuffle(shuffled)
    third = aggregate(shuffled, weights)

    assert first == second == third
    for s in first.subscriptions:
        assert list(s.pillar_scores) == [p.value for p in Pillar if p.value in s.pillar_scores]


def test_summary_to_dict():
    d = aggregate([_r("SE01", "Pass")]).to_dict()
    assert d["portfolio_score"] == 100
    assert d["subscriptions"][0]["pillar_scores"] == {"Security": 100}
    assert "generated_at" in d
