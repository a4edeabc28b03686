"""Tests for watcher.py."""

from __future__ import annotations

import threading
import time
from unittest import mock

from conftest import FakeHost, sample

from dejavu.config import Config, ConfigStore, WatcherConfig
from dejavu.jellyfin import JellyfinHost
from dejavu.watcher import SeekWatcher


def _store(**kwargs) -> ConfigStore:
    return ConfigStore(config=Config(watcher=WatcherConfig(poll_interval=0.01, **kwargs)))


def _wait_for(predicate, timeout: float = 2.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.005)
    return predicate()


class TestSeekWatcher:
    def test_rewind_end_to_end(self):
        host = FakeHost()
        watcher = SeekWatcher(_store(), host=host)
        host.sessions = [sample(position=100)]
        watcher.start()
        try:
            assert _wait_for(lambda: watcher.reconciler.watched_session("s1") is not None)
            host.sessions = [sample(position=90)]
            assert _wait_for(lambda: host.commands == [("s1", 1)])
        finally:
            watcher.stop()
        assert not watcher.is_running
        assert watcher.reconciler.tracked_sessions() == set()

    def test_config_update_applies_live(self):
        host = FakeHost()
        store = _store(max_skip_seconds=5)
        watcher = SeekWatcher(store, host=host)
        host.sessions = [sample(position=100)]
        watcher.start()
        try:
            assert _wait_for(lambda: watcher.reconciler.watched_session("s1") is not None)
            store.update(Config(watcher=WatcherConfig(poll_interval=0.01, max_skip_seconds=60)))
            host.sessions = [sample(position=80)]
            assert _wait_for(lambda: host.commands == [("s1", 1)])
        finally:
            watcher.stop()

    def test_block_returns_on_shutdown(self):
        watcher = SeekWatcher(_store(), host=FakeHost())
        thread = threading.Thread(target=watcher.block, daemon=True)
        thread.start()
        assert _wait_for(lambda: watcher.is_running)
        watcher.shutdown.set()
        thread.join(2.0)
        assert not thread.is_alive()
        assert not watcher.is_running

    def _block_once(self, watcher: SeekWatcher):
        watcher.shutdown.set()
        watcher.block()

    def test_block_closes_host_it_created(self):
        with mock.patch.object(JellyfinHost, "close") as close:
            watcher = SeekWatcher(ConfigStore(config=Config(watcher=WatcherConfig(poll_interval=60))))
            self._block_once(watcher)
        assert isinstance(watcher.host, JellyfinHost)
        close.assert_called_once_with()

    def test_block_leaves_caller_host_open(self):
        host = FakeHost()
        host.close = mock.Mock()
        with mock.patch.object(JellyfinHost, "close") as jellyfin_close:
            self._block_once(SeekWatcher(_store(), host=host))
        host.close.assert_not_called()
        jellyfin_close.assert_not_called()
