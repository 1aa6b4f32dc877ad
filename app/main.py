import os
import time
import logging
from dataclasses import dataclass

from bluos import BluOSClient, BluOSStatus
from monitor import PlaybackMonitor, TrackIdentity
from notifier import NotifierGroup, from_env as notifiers_from_env
from playcount import PlaycountOptions
from scheduler import PollingScheduler

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# -------------------------
# Logging setup
# -------------------------
logging.basicConfig(
    level=getattr(logging, LOG_LEVEL, logging.INFO),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    force=True,  # ensure our config is used even if libs pre-configure logging
)
log = logging.getLogger("bluos-playcount")

# -------------------------
# Configuration via ENV VARS
# -------------------------
def _env_number(name: str, kind, default):
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return default
    try:
        return kind(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}") from None

@dataclass(frozen=True)
class Settings:
    bluos_host: str
    bluos_port: int
    poll_interval: int
    rewind_tolerance: float  # a backwards jump landing this close to 0 counts as "seeked to start"

    @classmethod
    def from_env(cls) -> "Settings":
        poll_interval = max(1, _env_number("POLL_INTERVAL", int, 3))
        return cls(
            bluos_host=os.getenv("BLUOS_HOST") or "127.0.0.1",
            bluos_port=_env_number("BLUOS_PORT", int, 11000),
            poll_interval=poll_interval,
            # one extra second covers the /Status round trip
            rewind_tolerance=_env_number("REWIND_TOLERANCE", float, float(poll_interval + 1)),
        )


class Poller:
    """One iteration of the bridge loop per poll_once() call."""

    def __init__(self, blu: BluOSClient, monitor: PlaybackMonitor, scheduler: PollingScheduler,
                 notifiers: NotifierGroup, settings: Settings):
        self.blu = blu
        self.monitor = monitor
        self.scheduler = scheduler
        self.notifiers = notifiers
        self.settings = settings
        self.unreachable = False

    def poll_once(self) -> BluOSStatus | None:
        # Credit the ticks that fell due while we slept, before the new status can pause them
        self.scheduler.run_pending()

        status = self.blu.get_status()
        if status is None:
            if not self.unreachable:
                where = f"{self.settings.bluos_host}:{self.settings.bluos_port}"
                log.warning("BluOS status unavailable (unreachable or XML parse failed)")
                self.notifiers.send("WARNING", "Player unreachable", f"{where} did not answer /Status.")
            self.unreachable = True
            return None
        if self.unreachable:
            log.info("BluOS status available again")
            self.unreachable = False

        log.debug("Parsed: state=%s artist=%s title=%s album=%s elapsed=%s duration=%s",
                  status.state, status.artist, status.title, status.album, status.secs, status.duration)
        self.monitor.observe(status)
        return status


def main():
    try:
        settings = Settings.from_env()
        options = PlaycountOptions.from_env()
        notifiers = notifiers_from_env()  # ok if nothing is configured
    except ValueError as e:
        raise SystemExit(f"Invalid configuration: {e}")

    blu = BluOSClient(settings.bluos_host, settings.bluos_port)
    scheduler = PollingScheduler()

    def played(identity: TrackIdentity):
        notifiers.played(identity)

    monitor = PlaybackMonitor(scheduler, options, on_played=played, rewind_tolerance=settings.rewind_tolerance)
    poller = Poller(blu, monitor, scheduler, notifiers, settings)

    log.info("Starting BluOS play counter. Poll interval: %ss", settings.poll_interval)
    log.info("BluOS device: %s:%s | play_timer=%s play_timer_percent=%s",
             settings.bluos_host, settings.bluos_port, options.play_timer, options.play_timer_percent)
    notifiers.send("INFO", "Play counter started", f"Polling {settings.bluos_host}:{settings.bluos_port}.")

    while True:
        poller.poll_once()
        time.sleep(settings.poll_interval)


def cli():
    try:
        main()
    except KeyboardInterrupt:
        log.info("Shutting down…")


if __name__ == "__main__":
    cli()
