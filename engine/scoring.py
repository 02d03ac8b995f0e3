# engine/scoring.py
"""Deterministic scoring: status → 0-100 score, and the rounding policy.

Every canonical status has an explicit entry in ``STATUS_SCORE``.  Values
outside the taxonomy (including ``Manual``, which is a reportable status
but carries no score of its own) fall through to ``UNKNOWN_STATUS_SCORE``.
"""
from __future__ import annotations

import math
from typing import Any, Iterable

from schemas.taxonomy import CheckStatus

STATUS_SCORE: dict[str, int] = {
    "Pass":           100,
    "Warning":        60,   # partial credit, above the midpoint
    "Fail":           0,
    "NotApplicable":  50,
    "Error":          0,    # a broken check never scores above a failed one
}

UNKNOWN_STATUS_SCORE = 50

# Compile-time: every scored status is a canonical status
assert set(STATUS_SCORE) <= {s.value for s in CheckStatus}, \
    f"STATUS_SCORE has non-canonical keys: {set(STATUS_SCORE) - {s.value for s in CheckStatus}}"


def score_of(status: Any) -> int:
    """Map a status to its score.  Total: never raises, always in [0, 100]."""
    if isinstance(status, CheckStatus):
        status = status.value
    if not isinstance(status, str):
        return UNKNOWN_STATUS_SCORE
    return STATUS_SCORE.get(status, UNKNOWN_STATUS_SCORE)


def round_half_up(value: float) -> int:
    """Round to the nearest integer, .5 away from zero for positive values.

    Python's ``round`` is half-even (``round(66.5) == 66``); scores use
    half-up so 66.5 reports as 67.
    """
    return int(math.floor(value + 0.5))


def weighted_mean(pairs: Iterable[tuple[float, float]]) -> int:
    """Σ(value × weight) / Σweight, rounded half-up.  Zero total weight → 0.

    If the sums overflow (huge finite weights) they are recomputed with
    every weight scaled by the largest one.
    """
    pairs = [(v, w) for v, w in pairs if w > 0]
    if not pairs:
        return 0
    total_weight = sum(w for _, w in pairs)
    weighted_sum = sum(v * w for v, w in pairs)
    if not (math.isfinite(total_weight) and math.isfinite(weighted_sum)):
        top = max(w for _, w in pairs)
        total_weight = sum(w / top for _, w in pairs)
        weighted_sum = sum(v * (w / top) for v, w in pairs)
    return round_half_up(weighted_sum / total_weight)
