import logging
import math
import requests
import xml.etree.ElementTree as ET
from dataclasses import dataclass

log = logging.getLogger("bluos")

@dataclass
class BluOSStatus:
    title: str | None
    artist: str | None
    album: str | None
    duration: float | None  # seconds (totlen)
    secs: float | None      # elapsed seconds
    state: str | None       # 'play', 'pause', 'stop', 'stream', ...

    @property
    def playing(self) -> bool:
        # Radio streams report 'stream' while audio is flowing
        return self.state in ("play", "stream")

def _findtext_any(root: ET.Element, *tags: str):
    for t in tags:
        el = root.find(f".//{t}")
        if el is not None and el.text and el.text.strip():
            return el.text.strip()
    return None

def _to_float(s):
    if s is None: return None
    try:
        v = float(s)
    except ValueError:
        return None
    return v if math.isfinite(v) else None

def parse_status(xml_text: str) -> BluOSStatus | None:
    """Parse a /Status document. Tag fallbacks cover older firmware and streams."""
    try:
        root = ET.fromstring(xml_text)
    except ET.ParseError as e:
        log.debug("Status XML parse failed: %s", e)
        return None

    # title appears as <name> and also as <title1>
    title  = _findtext_any(root, "name", "title1", "title", "song")
    artist = _findtext_any(root, "artist", "title2")
    album  = _findtext_any(root, "album", "title3")

    secs     = _findtext_any(root, "secs", "elapsed", "position", "time")
    duration = _findtext_any(root, "totlen", "duration", "total", "trackLength", "length")

    state = _findtext_any(root, "state", "status", "mode")

    return BluOSStatus(
        title=title,
        artist=artist,
        album=album,
        duration=_to_float(duration),
        secs=_to_float(secs),
        state=state.lower() if state else None,
    )

class BluOSClient:
    """Fetches and parses the player's /Status (XML)."""

    def __init__(self, host: str, port: int = 11000, timeout: int = 5):
        self.base = f"http://{host}:{port}"
        self.timeout = timeout

    def get_status(self) -> BluOSStatus | None:
        """Current status, or None when the player is unreachable or the XML is bad."""
        try:
            resp = requests.get(f"{self.base}/Status", timeout=self.timeout)
            resp.raise_for_status()
        except requests.RequestException as e:
            log.debug("GET %s/Status failed: %s", self.base, e)
            return None
        return parse_status(resp.text)
