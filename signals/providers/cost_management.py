"""Cost Management signals.

  cost:budgets  budgets on the subscription and whether they alert

Savings opportunities come from Advisor (``advisor:recommendations``),
not from here.
"""
from __future__ import annotations

from collectors.cost_management import collect_budgets
from signals.providers.arm import arm_signal

# Offer types without the Consumption API (e.g. sponsorships) answer 400 / 404
fetch_budgets = arm_signal(
    "cost:budgets",
    collect_budgets,
    lambda data: data.get("budgets", []),
    unavailable_on=(400, 404),
)
