# engine/aggregation.py
"""Three-level score fold: check → pillar → subscription → portfolio.

    pillar score        Σ(score × check weight) / Σ check weight
    subscription score  Σ(pillar score × pillar weight) / Σ pillar weight
    portfolio score     plain mean of subscription scores

Every level rounds half-up.  Only pillars that have at least one
weighted result take part in the subscription score; a pillar whose
checks were all weighted to 0 still reports 0 in ``pillar_scores``.

Pure and deterministic: the same results and weights always give equal
summaries (``generated_at`` is excluded from equality).
"""
from __future__ import annotations

from collections import defaultdict
from typing import Iterable

from engine.scoring import round_half_up, weighted_mean
from engine.weights import WeightConfig
from schemas.domain import CheckResult, PortfolioSummary, SubscriptionSummary
from schemas.taxonomy import Pillar

UNKNOWN_SUBSCRIPTION = "Unknown"


def pillar_score(results: Iterable[CheckResult], weights: WeightConfig) -> tuple[int, float]:
    """Score one pillar group; returns ``(score, total check weight)``."""
    pairs = [(r.score, weights.check_weight(r.check_id)) for r in results]
    total = sum(w for _, w in pairs)
    return weighted_mean(pairs), total


def summarize_subscription(
    subscription_id: str,
    results: list[CheckResult],
    weights: WeightConfig,
) -> SubscriptionSummary:
    by_pillar: dict[Pillar, list[CheckResult]] = defaultdict(list)
    for r in results:
        by_pillar[r.pillar].append(r)

    pillar_scores: dict[str, int] = {}
    overall_pairs: list[tuple[float, float]] = []
    # Pillar enum order keeps the mapping stable across runs
    for pillar in Pillar:
        group = by_pillar.get(pillar)
        if not group:
            continue
        score, check_weight_total = pillar_score(group, weights)
        pillar_scores[pillar.value] = score
        if check_weight_total > 0:
            overall_pairs.append((score, weights.pillar_weight(pillar)))

    return SubscriptionSummary(
        subscription_id=subscription_id,
        pillar_scores=pillar_scores,
        overall_score=weighted_mean(overall_pairs),
        check_count=len(results),
    )


def aggregate(
    results: Iterable[CheckResult],
    weights: WeightConfig | None = None,
) -> PortfolioSummary:
    """Fold a flat (possibly partial) result list into a ``PortfolioSummary``.

    Empty input gives a zero summary, never an exception.
    """
    weights = weights or WeightConfig.default()

    by_sub: dict[str, list[CheckResult]] = defaultdict(list)
    for r in results:
        by_sub[r.subscription_id or UNKNOWN_SUBSCRIPTION].append(r)

    subscriptions = tuple(
        summarize_subscription(sub, by_sub[sub], weights)
        for sub in sorted(by_sub)
    )

    if subscriptions:
        portfolio = round_half_up(sum(s.overall_score for s in subscriptions) / len(subscriptions))
    else:
        portfolio = 0

    return PortfolioSummary(
        portfolio_score=portfolio,
        subscription_count=len(subscriptions),
        total_checks=sum(s.check_count for s in subscriptions),
        subscriptions=subscriptions,
    )
