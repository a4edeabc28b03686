"""
Seek watcher.

Wires the media server, the reconciler and the poll loop together and exposes
the start/stop lifecycle the process drives:

  start  → begin polling the server every ``watcher.poll_interval`` seconds
  stop   → stop polling, wait for the in-flight pass, forget all sessions
  block  → run until ``shutdown`` is set (signal handler / caller)
"""
import logging
from threading import Event
from typing import Optional

from .config import ConfigStore
from .host import SessionHost
from .jellyfin import JellyfinHost
from .reconciler import SessionReconciler
from .scheduler import PollScheduler

log = logging.getLogger("watcher")


class SeekWatcher:
    def __init__(self, store: ConfigStore, host: Optional[SessionHost] = None):
        self.store = store
        self.shutdown = Event()
        # Only a host created here is closed here; a passed-in one belongs to the caller
        self._own_host: Optional[JellyfinHost] = None if host is not None else JellyfinHost(store.current().jellyfin)
        self.host: SessionHost = host if host is not None else self._own_host
        self.reconciler = SessionReconciler(self.host, store.watcher)
        self._scheduler = PollScheduler(
            self._tick,
            interval=store.current().watcher.poll_interval,
            name="seek-watcher",
        )

    @property
    def is_running(self) -> bool:
        return self._scheduler.is_running

    def start(self):
        log.info("starting seek watcher")
        self._scheduler.start()

    def stop(self):
        log.info("stopping seek watcher")
        self._scheduler.stop()
        self.reconciler.reset()

    def block(self):
        """Start if needed and run until ``shutdown`` is set."""
        if not self.is_running:
            self.start()
        try:
            self.shutdown.wait()
        finally:
            self.stop()
            if self._own_host is not None:
                self._own_host.close()

    # ── internals ────────────────────────────────────────────────────────────

    def _tick(self):
        self._scheduler.interval = self.store.watcher().poll_interval
        self.reconciler.tick()
