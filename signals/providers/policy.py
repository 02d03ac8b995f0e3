"""Azure Policy signals.

  policy:assignments         one item per assignment; raw carries the totals
  policy:compliance_summary  a single item with the compliance percentage
"""
from __future__ import annotations

from collectors.policy import collect_policy_assignments, collect_policy_state_summary
from signals.providers.arm import arm_signal

fetch_policy_assignments = arm_signal(
    "policy:assignments",
    collect_policy_assignments,
    lambda data: data.get("assignments", []),
)

fetch_policy_compliance = arm_signal(
    "policy:compliance_summary",
    collect_policy_state_summary,
    lambda data: [data],
)
