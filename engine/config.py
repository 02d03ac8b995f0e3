# engine/config.py
"""Scanner settings from the environment (and an optional ``.env`` file).

    WAF_MAX_WORKERS         checks in flight per subscription   (8)
    WAF_MAX_SUBSCRIPTIONS   subscriptions scanned at once       (2)
    WAF_CHECK_TIMEOUT       seconds before a probe is abandoned (120, 0 = none)
    WAF_WEIGHTS_FILE        weight file path                    (unset)
    WAF_OUTPUT_DIR          report / run history directory      (out)
    WAF_SIGNAL_TTL          signal cache TTL in seconds         (900)

Command-line flags override these values in ``scan.py``.
"""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass, replace
from typing import Any, Callable, Mapping

from dotenv import load_dotenv

_log = logging.getLogger(__name__)


@dataclass(frozen=True)
class ScannerSettings:
    max_workers: int = 8
    max_subscriptions: int = 2
    check_timeout: float = 120.0
    weights_file: str | None = None
    output_dir: str = "out"
    signal_ttl: int = 900

    def override(self, **values: Any) -> "ScannerSettings":
        """Copy with every non-None value applied."""
        return replace(self, **{k: v for k, v in values.items() if v is not None})


def _number(env: Mapping[str, str], name: str, default, cast: Callable, minimum: float):
    raw = env.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = cast(raw.strip())
    except ValueError:
        _log.warning("%s=%r is not a number; using %s", name, raw, default)
        return default
    if value < minimum:
        _log.warning("%s=%r is below %s; using %s", name, raw, minimum, default)
        return default
    return value


def load_settings(env: Mapping[str, str] | None = None, *, dotenv: bool = True) -> ScannerSettings:
    """Build settings from *env* (default ``os.environ``, after loading ``.env``)."""
    if env is None:
        if dotenv:
            load_dotenv()
        env = os.environ

    d = ScannerSettings()
    return ScannerSettings(
        max_workers=_number(env, "WAF_MAX_WORKERS", d.max_workers, int, 1),
        max_subscriptions=_number(env, "WAF_MAX_SUBSCRIPTIONS", d.max_subscriptions, int, 1),
        check_timeout=_number(env, "WAF_CHECK_TIMEOUT", d.check_timeout, float, 0),
        weights_file=env.get("WAF_WEIGHTS_FILE") or None,
        output_dir=env.get("WAF_OUTPUT_DIR") or d.output_dir,
        signal_ttl=_number(env, "WAF_SIGNAL_TTL", d.signal_ttl, int, 0),
    )
