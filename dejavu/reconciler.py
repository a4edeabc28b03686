"""
Session reconciler.

Called once per poll with no event stream to rely on, so a rewind has to be
inferred by comparing each session's position against the one seen on the
previous poll:

  position went back, subtitles off  → turn a subtitle track on and remember
                                       where the viewer rewound from
  position back at that point        → turn subtitles off again
  viewer picked another track        → leave their choice alone
  rewound further than the tolerance → ignore / give up
  session gone                       → forget it

Both tables are plain dicts guarded by one lock held for the whole pass, so
every session is updated as a unit and passes never overlap.
"""
import logging
import threading
from typing import Callable, Iterable, Optional

from .config import WatcherConfig
from .host import SessionHost
from .selector import select_subtitle_track
from .session import (
    NO_SUBTITLE,
    ActivePeriod,
    SessionSample,
    WatchedSession,
    hms,
    ticks_to_seconds,
)

log = logging.getLogger("reconciler")


def _beyond_tolerance(distance_ticks: int, max_skip_seconds: int) -> bool:
    if max_skip_seconds == -1:
        return False
    return ticks_to_seconds(distance_ticks) > max_skip_seconds


class SessionReconciler:
    def __init__(self, host: SessionHost, config: Callable[[], WatcherConfig] = WatcherConfig):
        """
        Args:
            host:   Session registry and command channel of the media server.
            config: Returns the current watcher settings; called once per tick
                    so changes apply without a restart.
        """
        self._host = host
        self._config = config
        self._lock = threading.Lock()
        self._watched: dict[str, WatchedSession] = {}
        self._active: dict[str, ActivePeriod] = {}

    # ── public API ───────────────────────────────────────────────────────────

    def tick(self):
        """Run one reconciliation pass over every live session."""
        with self._lock:
            max_skip = self._config().max_skip_seconds
            sessions = list(self._host.list_live_sessions())
            for sample in sessions:
                self._reconcile(sample, max_skip)
            self._collect_garbage(s.session_id for s in sessions)

    def watched_session(self, session_id: str) -> Optional[WatchedSession]:
        with self._lock:
            watched = self._watched.get(session_id)
            if watched is None:
                return None
            return WatchedSession(
                last_position=watched.last_position,
                last_subtitle_index=watched.last_subtitle_index,
            )

    def active_period(self, session_id: str) -> Optional[ActivePeriod]:
        with self._lock:
            return self._active.get(session_id)

    def tracked_sessions(self) -> set[str]:
        with self._lock:
            return set(self._watched) | set(self._active)

    def reset(self):
        """Forget every session."""
        with self._lock:
            self._watched.clear()
            self._active.clear()

    # ── internals ────────────────────────────────────────────────────────────

    def _reconcile(self, sample: SessionSample, max_skip: int):
        if sample.is_paused:
            return

        sid = sample.session_id
        position = sample.position_ticks
        log.debug("session %s tick (subtitle %d, position %s)", sid, sample.subtitle_index, hms(position))

        watched = self._watched.get(sid)
        if watched is None:
            watched = self._watched[sid] = WatchedSession(
                last_position=position,
                last_subtitle_index=sample.subtitle_index if sample.subtitles_on else None,
            )

        previous = watched.last_position
        if (
            position is not None
            and previous is not None
            and position < previous
            and not sample.subtitles_on
            and sid not in self._active
        ):
            if _beyond_tolerance(previous - position, max_skip):
                log.debug("session %s rewound %s → %s, beyond %ds, ignoring",
                          sid, hms(previous), hms(position), max_skip)
            else:
                self._enable(sample, watched, previous)

        watched.last_position = position
        if sample.subtitles_on:
            watched.last_subtitle_index = sample.subtitle_index

        period = self._active.get(sid)
        if period is not None and position is not None:
            caught_up = position >= period.end_position
            if caught_up or _beyond_tolerance(period.end_position - position, max_skip):
                self._finish(sample, period, caught_up, max_skip)

    def _enable(self, sample: SessionSample, watched: WatchedSession, rewound_from: int):
        sid = sample.session_id
        language = None
        if sample.user_id:
            language = self._host.get_user_language_preference(sample.user_id)
        index = select_subtitle_track(sample.subtitle_tracks, watched.last_subtitle_index, language)
        if index is None:
            log.error("failed to find subtitles for session %s", sid)
            return

        log.info("session %s rewound from %s to %s, enabling subtitle track %d until %s",
                 sid, hms(rewound_from), hms(sample.position_ticks), index, hms(rewound_from))
        self._active[sid] = ActivePeriod(track_index=index, end_position=rewound_from)
        self._host.send_set_subtitle_track(sid, index)

    def _finish(self, sample: SessionSample, period: ActivePeriod, caught_up: bool, max_skip: int):
        sid = sample.session_id
        del self._active[sid]

        if sample.subtitles_on and sample.subtitle_index != period.track_index:
            log.info("session %s switched subtitles during the rewind period (%d != %d), leaving them on",
                     sid, sample.subtitle_index, period.track_index)
            return

        if caught_up:
            log.info("session %s caught up to %s, disabling subtitles", sid, hms(period.end_position))
        else:
            log.info("session %s is more than %ds behind %s, disabling subtitles",
                     sid, max_skip, hms(period.end_position))
        self._host.send_set_subtitle_track(sid, NO_SUBTITLE)

    def _collect_garbage(self, live_ids: Iterable[str]):
        live = set(live_ids)
        for sid in (set(self._watched) | set(self._active)) - live:
            log.debug("session %s ended, dropping state", sid)
            self._watched.pop(sid, None)
            self._active.pop(sid, None)
