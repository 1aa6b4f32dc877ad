"""
Play counting for a single media element.

A view counts as a play once the media has been playing for a cumulative
amount of time: either an absolute number of seconds (``play_timer``) or a
fraction of the media length (``play_timer_percent``, default 10%).

Time is counted in 0.5s ticks from a host-provided scheduler, so anything the
host can pause, resume or restart can be tracked.

Limitations: this is basic play counting. Anyone who controls the host can
inflate the count.
"""

from __future__ import annotations
import enum
import logging
import math
import os
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, Hashable

log = logging.getLogger("playcount")

TICK_SECONDS = 0.5
DEFAULT_PLAY_TIMER_PERCENT = 0.1


# -------------------------
# Host capabilities
# -------------------------
class MediaSource(ABC):
    """Read-only view of the media element being tracked."""

    @abstractmethod
    def current_time(self) -> float | None:
        """Current playback position in seconds."""

    @abstractmethod
    def duration(self) -> float | None:
        """Total length in seconds; None or NaN while unknown."""


class Scheduler(ABC):
    """Runs a callback repeatedly until the returned token is cancelled."""

    @abstractmethod
    def schedule_repeating(self, interval: float, callback: Callable[[], Any]) -> Hashable:
        pass

    @abstractmethod
    def cancel(self, token: Hashable) -> None:
        """Stop a job. Unknown or already-cancelled tokens are ignored."""


# -------------------------
# Configuration
# -------------------------
@dataclass(frozen=True)
class PlaycountOptions:
    play_timer: float | None = None          # seconds; wins over the percent
    play_timer_percent: float | None = None  # 0 < p <= 1; None means 10%

    @classmethod
    def from_env(cls) -> "PlaycountOptions":
        """Read PLAY_TIMER / PLAY_TIMER_PERCENT. Raises ValueError on junk."""
        options = cls(
            play_timer=_env_float("PLAY_TIMER"),
            play_timer_percent=_env_float("PLAY_TIMER_PERCENT"),
        )
        p = options.play_timer_percent
        if p is not None and not 0 < p <= 1:
            log.warning("PLAY_TIMER_PERCENT=%s is outside (0, 1]", p)
        return options


def _env_float(name: str) -> float | None:
    raw = os.getenv(name, "").strip()
    if not raw:
        return None
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}") from None


def compute_needed_playtime(duration: float | None, options: PlaycountOptions) -> float | None:
    """Seconds of playback needed for a play, or None if it can never happen."""
    if options.play_timer is not None:
        needed = float(options.play_timer)
    else:
        if duration is None:
            return None
        percent = options.play_timer_percent
        if percent is None:
            percent = DEFAULT_PLAY_TIMER_PERCENT
        needed = float(duration) * percent
    if not math.isfinite(needed) or needed <= 0:
        return None
    return needed


class TrackerState(enum.Enum):
    IDLE = "idle"
    ACCUMULATING = "accumulating"
    PLAYED = "played"


_UNSET = object()


class PlayThresholdTracker:
    """Decides when one media element has been watched long enough to count.

    The host calls :meth:`on_play` when playback starts (or the media was
    sought back to the start) and :meth:`on_pause` when it stops. While
    playing, a repeating 0.5s tick adds to the accumulated time; the first
    tick that reaches the threshold calls ``on_played`` and stops counting.

    Once played, the tracker stays played until ``on_play`` arrives with the
    position at exactly 0, which starts a new epoch with fresh counters.
    """

    def __init__(self, media: MediaSource, scheduler: Scheduler,
                 on_played: Callable[[], Any], options: PlaycountOptions | None = None):
        self.media = media
        self.scheduler = scheduler
        self.on_played = on_played
        self.options = options or PlaycountOptions()

        self._needed: Any = _UNSET
        self._playtime = 0.0
        self._played = False
        self._timer: Hashable | None = None

    # -------- inspection --------
    @property
    def needed_playtime(self) -> float | None:
        """Fixed threshold for this tracker; None until the first play or when unreachable."""
        return None if self._needed is _UNSET else self._needed

    @property
    def threshold_reachable(self) -> bool:
        return self._needed is not _UNSET and self._needed is not None

    @property
    def playtime(self) -> float:
        return self._playtime

    @property
    def played(self) -> bool:
        return self._played

    @property
    def active(self) -> bool:
        return self._timer is not None

    @property
    def state(self) -> TrackerState:
        if self._played:
            return TrackerState.PLAYED
        if self._timer is not None:
            return TrackerState.ACCUMULATING
        return TrackerState.IDLE

    # -------- events --------
    def on_play(self) -> None:
        if self._needed is _UNSET:
            self._needed = compute_needed_playtime(_known(self.media.duration()), self.options)
            if self._needed is None:
                log.info("No reachable play threshold (duration=%s, options=%s); plays will not be counted",
                         self.media.duration(), self.options)
            else:
                log.debug("Needed playtime fixed at %.1fs", self._needed)

        # Restarted from the very beginning after a counted play: new epoch
        if self._played and self.media.current_time() == 0:
            log.debug("Restart at 0 after a counted play; resetting counters")
            self._reset_interval()
            self._played = False
            self._playtime = 0.0

        if self._timer is None and not self._played:
            self._timer = self.scheduler.schedule_repeating(TICK_SECONDS, self._tick)

    def on_pause(self) -> None:
        if self._timer is not None:
            self._reset_interval()

    # -------- internals --------
    def _tick(self) -> None:
        self._playtime += TICK_SECONDS
        if self.threshold_reachable and self._playtime >= self._needed:
            self._played = True
            self._reset_interval()
            log.debug("Play counted after %.1fs", self._playtime)
            self.on_played()

    def _reset_interval(self) -> None:
        if self._timer is not None:
            self.scheduler.cancel(self._timer)
        self._timer = None

    def __repr__(self) -> str:
        return (f"PlayThresholdTracker(state={self.state.value}, playtime={self._playtime}, "
                f"needed={self.needed_playtime})")


def _known(duration: float | None) -> float | None:
    # NaN / inf / 0 all mean "metadata not loaded yet"
    if duration is None:
        return None
    try:
        d = float(duration)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(d) or d <= 0:
        return None
    return d
