"""
Outbound notifications: "played" broadcasts and operational alerts.

- WebhookNotifier: POST JSON body to NOTIFY_WEBHOOK_URL (Slack/Discord-style hooks work).
- GotifyNotifier: POST /message with an app token.
- Each respects its own minimum level; unconfigured notifiers do nothing.
- Best-effort: failures are logged at DEBUG and never raised.

Env:
- NOTIFY_WEBHOOK_URL, NOTIFY_MIN_LEVEL (default WARNING)
- GOTIFY_URL, GOTIFY_TOKEN, GOTIFY_PRIORITY (1..10; default 5), GOTIFY_MIN_LEVEL (default WARNING)
- PLAYED_NOTIFY_LEVEL (default INFO), APP_TAG
"""

from __future__ import annotations
import os
import logging
import requests

log = logging.getLogger("notifier")

_LEVELS = {"DEBUG": 10, "INFO": 20, "WARNING": 30, "ERROR": 40, "CRITICAL": 50}

DEFAULT_APP_TAG = "BluOS Playcount"


def _level(name: str | None, default: int = 30) -> int:
    return _LEVELS.get((name or "").upper(), default)


class WebhookNotifier:
    def __init__(self, webhook_url: str | None, min_level: str = "WARNING", app_tag: str = DEFAULT_APP_TAG):
        self.webhook_url = webhook_url.strip() if webhook_url else None
        self.min_level = _level(min_level)
        self.app_tag = app_tag

    @property
    def enabled(self) -> bool:
        return bool(self.webhook_url)

    def send(self, level: str, title: str, message: str, extra: dict | None = None) -> bool:
        if not self.enabled or _level(level) < self.min_level:
            return False

        payload = {
            "level": level.upper(),
            "title": f"{self.app_tag}: {title}",
            "message": message,
            "extra": extra or {},
        }
        try:
            requests.post(self.webhook_url, json=payload, timeout=5).raise_for_status()
        except requests.RequestException as e:
            log.debug("Webhook send failed: %s", e)
            return False
        return True


class GotifyNotifier:
    def __init__(self, url: str | None, token: str | None, min_level: str = "WARNING",
                 default_priority: int = 5, app_tag: str = DEFAULT_APP_TAG):
        self.url = url.rstrip("/") if url else None
        self.token = token.strip() if token else None
        self.min_level = _level(min_level)
        self.default_priority = default_priority
        self.app_tag = app_tag

    @property
    def enabled(self) -> bool:
        return bool(self.url and self.token)

    def send(self, level: str, title: str, message: str, extra: dict | None = None,
             priority: int | None = None) -> bool:
        if not self.enabled or _level(level) < self.min_level:
            return False

        body = {
            "title": f"{self.app_tag}: {title}",
            "message": message if not extra else f"{message}\n\n{extra}",
            "priority": priority if priority is not None else self.default_priority,
        }
        headers = {"X-Gotify-Key": self.token}
        try:
            requests.post(f"{self.url}/message", json=body, headers=headers, timeout=5).raise_for_status()
        except requests.RequestException as e:
            log.debug("Gotify send failed: %s", e)
            return False
        return True


class NotifierGroup:
    """Fans every message out to all notifiers; one failing never blocks the rest."""

    def __init__(self, notifiers, played_level: str = "INFO"):
        self.notifiers = list(notifiers)
        self.played_level = played_level.upper()

    def send(self, level: str, title: str, message: str, extra: dict | None = None) -> int:
        delivered = 0
        for n in self.notifiers:
            try:
                if n.send(level, title, message, extra):
                    delivered += 1
            except Exception as e:
                log.debug("%s failed: %s", type(n).__name__, e)
        return delivered

    def played(self, identity) -> int:
        """Broadcast that a play was counted for ``identity`` (a TrackIdentity)."""
        extra = {
            "event": "played",
            "artist": identity.artist,
            "title": identity.title,
            "album": identity.album,
            "duration": identity.duration,
        }
        return self.send(self.played_level, "Played", str(identity), extra)


def from_env() -> NotifierGroup:
    """Build the group from env. Raises ValueError when GOTIFY_PRIORITY is not an integer."""
    raw_priority = (os.getenv("GOTIFY_PRIORITY") or "5").strip()
    try:
        priority = int(raw_priority)
    except ValueError:
        raise ValueError(f"GOTIFY_PRIORITY must be an integer, got {raw_priority!r}") from None
    app_tag = os.getenv("APP_TAG") or DEFAULT_APP_TAG
    webhook = WebhookNotifier(
        webhook_url=os.getenv("NOTIFY_WEBHOOK_URL"),
        min_level=os.getenv("NOTIFY_MIN_LEVEL", "WARNING"),
        app_tag=app_tag,
    )
    gotify = GotifyNotifier(
        os.getenv("GOTIFY_URL"),
        os.getenv("GOTIFY_TOKEN"),
        min_level=os.getenv("GOTIFY_MIN_LEVEL", "WARNING"),
        default_priority=priority,
        app_tag=app_tag,
    )
    return NotifierGroup([webhook, gotify], played_level=os.getenv("PLAYED_NOTIFY_LEVEL") or "INFO")
