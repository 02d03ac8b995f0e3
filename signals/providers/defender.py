"""Defender for Cloud signals.

  defender:pricings      one item per Defender plan (name, tier, deprecated)
  defender:secure_score  one item per secure score, NotAvailable when none is published
"""
from __future__ import annotations

from collectors.defender import collect_defender_pricings, collect_secure_score
from signals.providers.arm import arm_signal

fetch_defender_pricings = arm_signal(
    "defender:pricings",
    collect_defender_pricings,
    lambda data: data.get("plans", []),
)

# 404 when the Microsoft.Security provider is not registered on the subscription
fetch_secure_score = arm_signal(
    "defender:secure_score",
    collect_secure_score,
    lambda data: data.get("scores", []),
    unavailable_on=(404,),
)
