"""What a signal provider hands back to the bus."""
from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class SignalStatus(str, Enum):
    OK = "OK"
    NOT_AVAILABLE = "NotAvailable"  # feature off / provider not registered; checks go Manual
    ERROR = "Error"


@dataclass
class SignalResult:
    signal_name: str
    status: SignalStatus
    items: list[dict[str, Any]] = field(default_factory=list)
    raw: dict[str, Any] | None = None
    error_msg: str = ""
    duration_ms: int = 0

    @property
    def ok(self) -> bool:
        return self.status is SignalStatus.OK


class SignalUnavailableError(Exception):
    """Raised inside a probe when a signal it depends on errored."""

    def __init__(self, signal: SignalResult):
        self.signal = signal
        reason = signal.error_msg or "unknown error"
        super().__init__(f"Signal {signal.signal_name} failed: {reason}")


def elapsed_ms(started_ns: int) -> int:
    """Milliseconds since a ``time.perf_counter_ns()`` reading."""
    return (time.perf_counter_ns() - started_ns) // 1_000_000
