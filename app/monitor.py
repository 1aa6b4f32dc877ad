from __future__ import annotations
import logging
from dataclasses import dataclass
from typing import Any, Callable

from bluos import BluOSStatus
from playcount import MediaSource, PlaycountOptions, PlayThresholdTracker, Scheduler

log = logging.getLogger("monitor")

# -------------------------
# Stateless identity for a track
# -------------------------
@dataclass(frozen=True)
class TrackIdentity:
    artist: str | None
    title: str | None
    album: str | None
    duration: float | None

    @classmethod
    def from_status(cls, status: BluOSStatus) -> "TrackIdentity":
        return cls(artist=status.artist, title=status.title,
                   album=status.album, duration=status.duration)

    def __str__(self) -> str:
        return f"{self.artist} — {self.title}" + (f" [{self.album}]" if self.album else "")


class StatusMedia(MediaSource):
    """MediaSource backed by the most recent /Status poll."""

    def __init__(self, status: BluOSStatus):
        self.status = status
        self.at_start = False  # set while delivering a seeked-to-start notification

    def current_time(self) -> float | None:
        if self.at_start:
            return 0.0
        return self.status.secs

    def duration(self) -> float | None:
        return self.status.duration


class PlaybackMonitor:
    """Turns polled player statuses into play/pause notifications.

    One PlayThresholdTracker per track: a new TrackIdentity detaches the old
    tracker and starts a fresh one. While playing, a backwards jump to within
    ``rewind_tolerance`` seconds of the start counts as "seeked to start"
    (repeat-one, replay button) and is delivered as another play at
    position 0.
    """

    def __init__(self, scheduler: Scheduler, options: PlaycountOptions,
                 on_played: Callable[[TrackIdentity], Any], rewind_tolerance: float = 4.0):
        self.scheduler = scheduler
        self.options = options
        self.on_played = on_played
        self.rewind_tolerance = rewind_tolerance

        self.current: TrackIdentity | None = None
        self.tracker: PlayThresholdTracker | None = None
        self._media: StatusMedia | None = None
        self._playing = False

    def observe(self, status: BluOSStatus) -> None:
        # Nothing meaningful loaded (or metadata gone): treat like a stop
        if not (status.artist and status.title):
            self._pause()
            return

        identity = TrackIdentity.from_status(status)
        if identity != self.current:
            self._attach(identity, status)
            prev_secs = None
        else:
            prev_secs = self._media.status.secs
            self._media.status = status

        if status.playing:
            if not self._playing:
                self._playing = True
                self._deliver_play(rewound=self._rewound(prev_secs, status.secs))
            elif self._rewound(prev_secs, status.secs):
                log.info("Seeked to start: %s", identity)
                self._deliver_play(rewound=True)
        else:
            self._pause()

    # -------- internals --------
    def _attach(self, identity: TrackIdentity, status: BluOSStatus) -> None:
        if self.tracker is not None:
            self.tracker.on_pause()
        log.info("Tracking %s (duration=%s)", identity, identity.duration)
        self.current = identity
        self._media = StatusMedia(status)
        self.tracker = PlayThresholdTracker(
            self._media, self.scheduler,
            on_played=lambda: self._emit(identity),
            options=self.options,
        )
        self._playing = False

    def _deliver_play(self, rewound: bool) -> None:
        self._media.at_start = rewound
        try:
            self.tracker.on_play()
        finally:
            self._media.at_start = False

    def _pause(self) -> None:
        if self._playing and self.tracker is not None:
            self.tracker.on_pause()
        self._playing = False

    def _rewound(self, prev: float | None, now: float | None) -> bool:
        if prev is None or now is None:
            return False
        return now < prev and now <= self.rewind_tolerance

    def _emit(self, identity: TrackIdentity) -> None:
        log.info("Play counted: %s", identity)
        try:
            self.on_played(identity)
        except Exception:
            # A broken listener must not stop polling
            log.exception("played listener failed for %s", identity)
