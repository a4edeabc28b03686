"""Fixed-interval poll loop that drives the reconciler."""
import logging
import threading
from typing import Callable, Optional

log = logging.getLogger("scheduler")


class PollScheduler:
    """Calls *tick* once per *interval* seconds on a background thread.

    Ticks run one at a time on the same thread, so they never overlap.  A tick
    that raises is logged and the loop carries on with the next interval.
    """

    def __init__(self, tick: Callable[[], None], interval: float = 1.0, name: str = "poll"):
        self._tick = tick
        self._interval = interval
        self._name = name
        self._stop: Optional[threading.Event] = None
        self._thread: Optional[threading.Thread] = None
        # Loop thread a timed-out stop() left behind, still finishing its tick
        self._orphan: Optional[threading.Thread] = None
        self._lock = threading.Lock()

    @property
    def interval(self) -> float:
        return self._interval

    @interval.setter
    def interval(self, value: float):
        """Takes effect from the next wait."""
        self._interval = value

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self):
        """Start polling; no-op when already running."""
        with self._lock:
            if self.is_running:
                return
            # Each loop owns its event so a loop left running by a timed-out
            # stop() still sees its own stop request.
            self._stop = threading.Event()
            orphan, self._orphan = self._orphan, None
            self._thread = threading.Thread(
                target=self._loop, args=(self._stop, orphan), daemon=True, name=self._name,
            )
            self._thread.start()
        log.debug("%s started (every %.2fs)", self._name, self._interval)

    def stop(self, timeout: Optional[float] = None):
        """Stop polling and wait for an in-flight tick to finish."""
        with self._lock:
            thread, self._thread = self._thread, None
            if self._stop is not None:
                self._stop.set()
        if thread is None:
            return
        # Called from inside a tick: the loop exits once the tick returns.
        if thread is threading.current_thread():
            self._orphan = thread
            return
        thread.join(timeout)
        if thread.is_alive():
            self._orphan = thread
            log.warning("%s did not stop within %.1fs", self._name, timeout)
        else:
            log.debug("%s stopped", self._name)

    # ── internals ────────────────────────────────────────────────────────────

    def _loop(self, stop: threading.Event, orphan: Optional[threading.Thread] = None):
        if orphan is not None:
            orphan.join()
        while not stop.wait(self._interval):
            try:
                self._tick()
            except Exception:
                log.exception("%s tick failed", self._name)
