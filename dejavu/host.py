"""The media server as seen by the watcher."""
from typing import Optional, Protocol, Sequence

from .session import SessionSample


class SessionHost(Protocol):
    def list_live_sessions(self) -> Sequence[SessionSample]:
        """Snapshot of every session the server currently knows about."""
        ...

    def get_user_language_preference(self, user_id: str) -> Optional[str]:
        """Preferred subtitle language of *user_id*, or None if unset or unknown."""
        ...

    def send_set_subtitle_track(self, session_id: str, index: int) -> None:
        """Tell a session's client to switch subtitle track (-1 turns them off)."""
        ...
