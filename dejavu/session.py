"""
Playback session data model.

``SessionSample`` is the read-only snapshot of one live session taken on each
poll.  ``WatchedSession`` and ``ActivePeriod`` are the reconciler's own mutable
records, keyed by session id.
"""
from typing import Optional

from attr import dataclass, field

# Jellyfin/Emby positions are expressed in 100 ns ticks.
TICKS_PER_SECOND = 10_000_000

# Subtitle stream index meaning "subtitles off".
NO_SUBTITLE = -1


def ticks_to_seconds(ticks: int) -> float:
    return ticks / TICKS_PER_SECOND


def hms(ticks: Optional[int]) -> str:
    """Format a tick position as HH:MM:SS for log output."""
    if ticks is None:
        return "--:--:--"
    s = int(ticks_to_seconds(ticks))
    return f"{s // 3600:02d}:{s % 3600 // 60:02d}:{s % 60:02d}"


@dataclass(kw_only=True, frozen=True)
class SubtitleTrack:
    index: int
    language: Optional[str] = None
    is_default: bool = False


@dataclass(kw_only=True, frozen=True)
class SessionSample:
    session_id: str
    user_id: Optional[str] = None
    is_paused: bool = False
    position_ticks: Optional[int] = None
    subtitle_index: int = NO_SUBTITLE
    subtitle_tracks: tuple[SubtitleTrack, ...] = field(factory=tuple, converter=tuple)

    @property
    def subtitles_on(self) -> bool:
        return self.subtitle_index != NO_SUBTITLE


@dataclass(kw_only=True)
class WatchedSession:
    # Position seen on the previous poll
    last_position: Optional[int] = None
    # Last subtitle track the viewer had on, restored when we re-enable subtitles
    last_subtitle_index: Optional[int] = None


@dataclass(kw_only=True, frozen=True)
class ActivePeriod:
    # Track we turned on
    track_index: int
    # Position the viewer rewound from; subtitles go off once playback is back here
    end_position: int
