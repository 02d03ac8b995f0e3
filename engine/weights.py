# engine/weights.py
"""Weight configuration: pillar multipliers and per-check overrides.

File format (JSON)::

    {
      "Security": 2.0,
      "Cost Optimization": 0.5,
      "controlOverrides": {"SE05": 3.0, "OE05": 0}
    }

Pillar keys accept the canonical id (``CostOptimization``) or the display
name.  Missing pillars weigh 1.0; checks without an override weigh 1.0.

A missing, unreadable or invalid file never fails a scan: the loader logs
a warning and returns ``WeightConfig.default()``.
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Annotated, Any, Mapping

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from schemas.taxonomy import Pillar

_log = logging.getLogger(__name__)

DEFAULT_WEIGHT = 1.0

# json.load reads 1e999 as inf
Weight = Annotated[float, Field(ge=0, allow_inf_nan=False)]


class WeightFile(BaseModel):
    """Validated shape of a weight file."""
    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    pillars: dict[Pillar, Weight] = Field(default_factory=dict)
    control_overrides: dict[str, Weight] = Field(default_factory=dict, alias="controlOverrides")

    @model_validator(mode="before")
    @classmethod
    def _collect_pillar_keys(cls, data: Any) -> Any:
        # Top-level pillar keys are folded into ``pillars``
        if not isinstance(data, Mapping):
            raise ValueError("weight file must be a JSON object")
        pillars: dict[Pillar, Any] = {}
        rest: dict[str, Any] = {}
        for key, value in data.items():
            if key in ("controlOverrides", "control_overrides"):
                rest["controlOverrides"] = value
            else:
                pillars[Pillar.parse(key)] = value
        return {**rest, "pillars": pillars}


@dataclass(frozen=True)
class WeightConfig:
    pillar_weights: dict[Pillar, float] = field(default_factory=dict)
    check_weights: dict[str, float] = field(default_factory=dict)

    @classmethod
    def default(cls) -> "WeightConfig":
        return cls()

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "WeightConfig":
        """Validate a parsed weight document.  Raises ``pydantic.ValidationError``."""
        parsed = WeightFile.model_validate(data)
        return cls(pillar_weights=dict(parsed.pillars), check_weights=dict(parsed.control_overrides))

    def pillar_weight(self, pillar: Pillar | str) -> float:
        return self.pillar_weights.get(Pillar.parse(pillar), DEFAULT_WEIGHT)

    def check_weight(self, check_id: str) -> float:
        return self.check_weights.get(check_id, DEFAULT_WEIGHT)

    def to_dict(self) -> dict[str, Any]:
        return {
            **{p.value: w for p, w in self.pillar_weights.items()},
            "controlOverrides": dict(self.check_weights),
        }


def load_weights(path: str | Path | None) -> WeightConfig:
    """Read a weight file; any problem falls back to equal weighting."""
    if not path:
        return WeightConfig.default()

    path = Path(path)
    try:
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
        config = WeightConfig.from_mapping(data)
    except FileNotFoundError:
        _log.warning("Weight file %s not found; using equal weights", path)
        return WeightConfig.default()
    except (OSError, json.JSONDecodeError, ValidationError, ValueError) as e:
        _log.warning("Weight file %s is invalid (%s); using equal weights", path, e)
        return WeightConfig.default()

    _log.debug("Loaded weights from %s: %s", path, config.to_dict())
    return config
