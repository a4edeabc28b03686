"""
Jellyfin / Emby REST client.

Implements ``SessionHost`` over the server's HTTP API:

  GET  /Sessions                → live session snapshot
  GET  /Users/{id}              → subtitle language preference
  POST /Sessions/{id}/Command   → SetSubtitleStreamIndex
"""
import logging
from typing import Any, Optional

import requests

from .config import JellyfinConfig
from .session import NO_SUBTITLE, SessionSample, SubtitleTrack

log = logging.getLogger("jellyfin")

__version__ = "0.1.0"


class JellyfinError(RuntimeError):
    pass


def _optional_int(value: Any) -> Optional[int]:
    if value is None:
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def parse_subtitle_tracks(item: Optional[dict]) -> tuple[SubtitleTrack, ...]:
    """Subtitle streams of a NowPlayingItem, in server order."""
    if not item:
        return ()
    tracks = []
    for stream in item.get("MediaStreams") or ():
        if stream.get("Type") != "Subtitle":
            continue
        index = _optional_int(stream.get("Index"))
        if index is None:
            continue
        tracks.append(SubtitleTrack(
            index=index,
            language=stream.get("Language"),
            is_default=bool(stream.get("IsDefault")),
        ))
    return tuple(tracks)


def parse_session(raw: dict) -> Optional[SessionSample]:
    """Convert one entry of GET /Sessions, or None if it carries no id."""
    session_id = raw.get("Id")
    if not session_id:
        return None
    play_state = raw.get("PlayState") or {}
    subtitle_index = _optional_int(play_state.get("SubtitleStreamIndex"))
    return SessionSample(
        session_id=str(session_id),
        user_id=raw.get("UserId") or None,
        is_paused=bool(play_state.get("IsPaused")),
        position_ticks=_optional_int(play_state.get("PositionTicks")),
        subtitle_index=NO_SUBTITLE if subtitle_index is None else subtitle_index,
        subtitle_tracks=parse_subtitle_tracks(raw.get("NowPlayingItem")),
    )


class JellyfinHost:
    def __init__(self, config: JellyfinConfig, http: Optional[requests.Session] = None):
        self.config = config
        self._http = http or requests.Session()
        self._http.headers.update(self._headers())

    def _headers(self) -> dict[str, str]:
        cfg = self.config
        return {
            "Accept": "application/json",
            "X-Emby-Token": cfg.api_key,
            "X-MediaBrowser-Token": cfg.api_key,
            "Authorization": (
                f'MediaBrowser Client="{cfg.client}", Device="{cfg.client}", '
                f'DeviceId="{cfg.device_id}", Version="{__version__}", Token="{cfg.api_key}"'
            ),
        }

    def _url(self, path: str) -> str:
        return f"{self.config.url}{path}"

    def _request(self, method: str, path: str, **kwargs: Any) -> requests.Response:
        return self._http.request(
            method,
            self._url(path),
            timeout=self.config.timeout,
            verify=self.config.verify_ssl,
            **kwargs,
        )

    # ── SessionHost ──────────────────────────────────────────────────────────

    def list_live_sessions(self) -> list[SessionSample]:
        try:
            resp = self._request("GET", "/Sessions")
            resp.raise_for_status()
            payload = resp.json()
        except (requests.RequestException, ValueError) as e:
            raise JellyfinError(f"could not list sessions from {self.config.url}: {e}") from e
        if not isinstance(payload, list):
            raise JellyfinError(f"unexpected /Sessions payload: {type(payload).__name__}")
        samples = []
        for raw in payload:
            sample = parse_session(raw) if isinstance(raw, dict) else None
            if sample is not None:
                samples.append(sample)
        return samples

    def get_user_language_preference(self, user_id: str) -> Optional[str]:
        try:
            resp = self._request("GET", f"/Users/{user_id}")
            if resp.status_code == 404:
                log.warning("user %s not found", user_id)
                return None
            resp.raise_for_status()
            user = resp.json()
        except (requests.RequestException, ValueError):
            log.warning("could not look up user %s", user_id, exc_info=True)
            return None
        if not isinstance(user, dict):
            return None
        configuration = user.get("Configuration") or {}
        return configuration.get("SubtitleLanguagePreference") or None

    def send_set_subtitle_track(self, session_id: str, index: int) -> None:
        body = {
            "Name": "SetSubtitleStreamIndex",
            "Arguments": {"Index": str(index)},
        }
        try:
            resp = self._request("POST", f"/Sessions/{session_id}/Command", json=body)
            resp.raise_for_status()
        except requests.RequestException:
            log.warning("SetSubtitleStreamIndex(%d) failed for session %s", index, session_id, exc_info=True)

    def close(self):
        self._http.close()
