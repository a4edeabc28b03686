from __future__ import annotations

from typing import Optional

import pytest

from dejavu.config import WatcherConfig
from dejavu.reconciler import SessionReconciler
from dejavu.session import TICKS_PER_SECOND, SessionSample, SubtitleTrack

TRACKS = (
    SubtitleTrack(index=0, language="en"),
    SubtitleTrack(index=1, language="fr", is_default=True),
    SubtitleTrack(index=2, language="en"),
)


def secs(n: float) -> int:
    return int(n * TICKS_PER_SECOND)


def sample(session_id: str = "s1", position: Optional[float] = 0, subtitle_index: int = -1,
           paused: bool = False, tracks=TRACKS, user_id: Optional[str] = "u1") -> SessionSample:
    return SessionSample(
        session_id=session_id,
        user_id=user_id,
        is_paused=paused,
        position_ticks=None if position is None else secs(position),
        subtitle_index=subtitle_index,
        subtitle_tracks=tracks,
    )


class FakeHost:
    """In-memory media server: tests set ``sessions`` and read ``commands``."""

    def __init__(self):
        self.sessions: list[SessionSample] = []
        self.languages: dict[str, Optional[str]] = {}
        self.commands: list[tuple[str, int]] = []

    def list_live_sessions(self):
        return list(self.sessions)

    def get_user_language_preference(self, user_id: str) -> Optional[str]:
        return self.languages.get(user_id)

    def send_set_subtitle_track(self, session_id: str, index: int) -> None:
        self.commands.append((session_id, index))


class MutableConfig:
    def __init__(self, **kwargs):
        self.value = WatcherConfig(**kwargs)

    def __call__(self) -> WatcherConfig:
        return self.value


@pytest.fixture
def host() -> FakeHost:
    return FakeHost()


@pytest.fixture
def config() -> MutableConfig:
    return MutableConfig(max_skip_seconds=-1)


@pytest.fixture
def reconciler(host, config) -> SessionReconciler:
    return SessionReconciler(host, config)


@pytest.fixture
def play(host, reconciler):
    """Feed one sample per tick: ``play(sample(...), sample(...))``."""

    def _play(*samples: SessionSample):
        for s in samples:
            host.sessions = [s]
            reconciler.tick()

    return _play
