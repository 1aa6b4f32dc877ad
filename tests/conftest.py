# tests/conftest.py
from __future__ import annotations

import pytest

from playcount import MediaSource, Scheduler


class FakeMedia(MediaSource):
    def __init__(self, duration=100.0, position=0.0):
        self.position = position
        self.length = duration

    def current_time(self):
        return self.position

    def duration(self):
        return self.length


class FakeScheduler(Scheduler):
    """Keeps jobs in a dict; tests fire them by hand with tick()."""

    def __init__(self):
        self.jobs: dict[int, tuple[float, object]] = {}
        self.scheduled = 0
        self.cancelled: list[int] = []

    def schedule_repeating(self, interval, callback):
        self.scheduled += 1
        self.jobs[self.scheduled] = (interval, callback)
        return self.scheduled

    def cancel(self, token):
        self.cancelled.append(token)
        self.jobs.pop(token, None)

    def tick(self, n: int = 1) -> None:
        for _ in range(n):
            for _, callback in list(self.jobs.values()):
                callback()


@pytest.fixture
def media():
    return FakeMedia()


@pytest.fixture
def scheduler():
    return FakeScheduler()
