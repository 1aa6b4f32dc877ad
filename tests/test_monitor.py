# tests/test_monitor.py
from __future__ import annotations

import pytest

from bluos import BluOSStatus
from monitor import PlaybackMonitor, TrackIdentity
from playcount import PlaycountOptions, TrackerState


def status(state="play", secs=0.0, title="So What", artist="Miles Davis", album="Kind of Blue", duration=100.0):
    return BluOSStatus(title=title, artist=artist, album=album, duration=duration, secs=secs, state=state)


@pytest.fixture
def played():
    return []


@pytest.fixture
def monitor(scheduler, played):
    return PlaybackMonitor(scheduler, PlaycountOptions(), on_played=played.append, rewind_tolerance=3.0)


class TestPlaybackMonitor:
    def test_play_starts_counting(self, monitor, scheduler, played):
        monitor.observe(status())
        assert monitor.current == TrackIdentity("Miles Davis", "So What", "Kind of Blue", 100.0)
        assert monitor.tracker.state is TrackerState.ACCUMULATING
        scheduler.tick(20)
        assert played == [monitor.current]

    def test_polling_while_playing_keeps_single_timer(self, monitor, scheduler):
        for secs in (0, 3, 6, 9):
            monitor.observe(status(secs=secs))
        assert scheduler.scheduled == 1

    def test_pause_and_resume(self, monitor, scheduler, played):
        monitor.observe(status(secs=0))
        scheduler.tick(10)
        monitor.observe(status(state="pause", secs=5))
        assert monitor.tracker.state is TrackerState.IDLE
        assert monitor.tracker.playtime == 5.0
        scheduler.tick(50)
        monitor.observe(status(state="play", secs=5))
        scheduler.tick(9)
        assert played == []
        scheduler.tick()
        assert len(played) == 1

    def test_stop_pauses(self, monitor, scheduler):
        monitor.observe(status())
        monitor.observe(status(state="stop", secs=0))
        assert not monitor.tracker.active

    def test_track_change_detaches_old_tracker(self, monitor, scheduler, played):
        monitor.observe(status())
        old = monitor.tracker
        scheduler.tick(4)
        monitor.observe(status(title="Freddie Freeloader", secs=0, duration=60.0))
        assert monitor.tracker is not old
        assert not old.active
        assert old.playtime == 2.0
        assert monitor.tracker.playtime == 0
        scheduler.tick(12)
        assert [p.title for p in played] == ["Freddie Freeloader"]

    def test_missing_metadata_is_a_stop(self, monitor, scheduler):
        monitor.observe(status())
        monitor.observe(status(artist=None, title=None))
        assert not monitor.tracker.active
        monitor.observe(status(secs=1))
        assert monitor.tracker.active

    def test_repeat_one_counts_again(self, monitor, scheduler, played):
        monitor.observe(status(secs=0))
        scheduler.tick(20)
        assert len(played) == 1
        monitor.observe(status(secs=90))
        # wrapped around to the start between two polls
        monitor.observe(status(secs=2))
        assert monitor.tracker.state is TrackerState.ACCUMULATING
        assert monitor.tracker.playtime == 0
        scheduler.tick(20)
        assert len(played) == 2

    def test_rewind_exactly_at_tolerance_restarts(self, monitor, scheduler, played):
        monitor.observe(status(secs=0))
        scheduler.tick(20)
        monitor.observe(status(secs=95))
        monitor.observe(status(secs=3.0))
        assert monitor.tracker.state is TrackerState.ACCUMULATING
        assert monitor.tracker.playtime == 0

    def test_rewind_just_past_tolerance_is_not_a_restart(self, monitor, scheduler, played):
        monitor.observe(status(secs=0))
        scheduler.tick(20)
        monitor.observe(status(secs=95))
        monitor.observe(status(secs=3.5))
        assert monitor.tracker.played
        assert not monitor.tracker.active

    def test_default_tolerance_allows_a_slow_poll(self, scheduler, played):
        monitor = PlaybackMonitor(scheduler, PlaycountOptions(), on_played=played.append)
        monitor.observe(status(secs=0))
        scheduler.tick(20)
        monitor.observe(status(secs=95))
        monitor.observe(status(secs=4))
        assert monitor.tracker.state is TrackerState.ACCUMULATING

    def test_backward_seek_mid_track_is_not_a_restart(self, monitor, scheduler, played):
        monitor.observe(status(secs=0))
        scheduler.tick(20)
        monitor.observe(status(secs=80))
        monitor.observe(status(secs=30))
        assert monitor.tracker.played
        scheduler.tick(40)
        assert len(played) == 1

    def test_replay_from_zero_after_stop(self, monitor, scheduler, played):
        monitor.observe(status(secs=0))
        scheduler.tick(20)
        monitor.observe(status(state="stop", secs=0))
        monitor.observe(status(state="play", secs=0))
        scheduler.tick(20)
        assert len(played) == 2

    def test_unknown_duration_never_counts(self, monitor, scheduler, played):
        monitor.observe(status(duration=None))
        scheduler.tick(1000)
        assert played == []

    def test_listener_errors_are_contained(self, scheduler):
        def broken(identity):
            raise RuntimeError("listener down")

        monitor = PlaybackMonitor(scheduler, PlaycountOptions(play_timer=1), on_played=broken)
        monitor.observe(status())
        scheduler.tick(2)
        assert monitor.tracker.played
