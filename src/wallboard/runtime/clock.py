# src/wallboard/runtime/clock.py
from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Protocol


class Clock(Protocol):
    def unix_timestamp(self) -> int: ...


class SystemClock:
    """Wall-clock seconds, never moving backwards within a process."""

    def __init__(self) -> None:
        self._last = 0

    def unix_timestamp(self) -> int:
        now = int(time.time())
        if now < self._last:
            return self._last
        self._last = now
        return now


@dataclass
class FixedClock:
    now: int = 0

    def unix_timestamp(self) -> int:
        return int(self.now)

    def advance(self, seconds: int = 1) -> None:
        self.now = int(self.now) + int(seconds)
