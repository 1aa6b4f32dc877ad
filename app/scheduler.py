"""
Cooperative repeating-callback scheduler.

Nothing runs in the background: the poll loop calls run_pending() and every
tick that fell due since the previous call fires right there, oldest first.
A job that was cancelled (also from inside its own callback) stops firing
immediately.
"""

from __future__ import annotations
import itertools
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict

from playcount import Scheduler


@dataclass
class _Job:
    interval: float
    callback: Callable[[], Any]
    next_due: float


class PollingScheduler(Scheduler):
    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self.clock = clock
        self._jobs: Dict[int, _Job] = {}
        self._ids = itertools.count(1)

    def schedule_repeating(self, interval: float, callback: Callable[[], Any]) -> int:
        if interval <= 0:
            raise ValueError("interval must be positive")
        token = next(self._ids)
        self._jobs[token] = _Job(interval, callback, self.clock() + interval)
        return token

    def cancel(self, token) -> None:
        self._jobs.pop(token, None)

    def run_pending(self, now: float | None = None) -> int:
        """Fire every tick due at ``now``; returns how many callbacks ran."""
        if now is None:
            now = self.clock()
        fired = 0
        while True:
            due = [(job.next_due, token) for token, job in self._jobs.items() if job.next_due <= now]
            if not due:
                return fired
            _, token = min(due)
            job = self._jobs[token]
            job.next_due += job.interval
            job.callback()
            fired += 1
