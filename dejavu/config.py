import logging
import os.path
import pathlib
import threading
import tomllib as toml
from typing import Any, Optional

import cattrs
from attr import dataclass, field, validators

log = logging.getLogger("config")


def expand_path(path: str) -> pathlib.Path:
    return pathlib.Path(os.path.expandvars(os.path.expanduser(path)))


def _strip_slash(url: str) -> str:
    return url.strip().rstrip("/")


@dataclass(kw_only=True, frozen=True)
class JellyfinConfig:
    # Base URL of the Jellyfin (or Emby) server, e.g. "http://localhost:8096"
    url: str = field(default="http://localhost:8096", converter=_strip_slash)
    # API key created under Dashboard → API Keys
    api_key: str = ""
    # Identifies this watcher in the server's device list
    client: str = "DejaVu"
    device_id: str = "dejavu"
    # Seconds before an HTTP request to the server is abandoned
    timeout: float = 5.0
    verify_ssl: bool = True


@dataclass(kw_only=True, frozen=True)
class WatcherConfig:
    # How far back (seconds) a rewind may go and still turn subtitles on.
    # An armed period is abandoned once the viewer is further back than this.
    # -1 = no limit.
    max_skip_seconds: int = field(default=60, validator=validators.ge(-1))
    # Seconds between polls of the server's session list
    poll_interval: float = field(default=1.0, validator=validators.gt(0))


@dataclass(kw_only=True, frozen=True)
class Config:
    jellyfin: JellyfinConfig = field(factory=JellyfinConfig)
    watcher: WatcherConfig = field(factory=WatcherConfig)


def default_config_paths() -> list[pathlib.Path]:
    return [
        expand_path(".") / "dejavu.toml",
        expand_path("~/.config/dejavu") / "config.toml",
        expand_path(__file__).parent / "config.toml",
    ]


def get_config_path(*paths: pathlib.Path) -> Optional[pathlib.Path]:
    """Return the first existing configuration file, or None."""
    for p in paths or default_config_paths():
        if p.exists():
            return p
    return None


def load_config_file(path: pathlib.Path) -> Config:
    raw: Any = toml.loads(path.read_text(encoding="utf8"))
    conv = cattrs.GenConverter(forbid_extra_keys=True)
    return conv.structure(raw, Config)


class ConfigStore:
    """Holds the live configuration snapshot and reloads it when the file changes.

    Snapshots are immutable and swapped by reference, so a reader always sees
    either the old or the new configuration, never a mix of both.
    """

    def __init__(self, path: Optional[pathlib.Path] = None, config: Optional[Config] = None):
        self.path = path
        self._lock = threading.Lock()
        self._mtime: Optional[float] = None
        if config is None:
            if path is None:
                raise ValueError("ConfigStore needs a path or an initial config")
            self._mtime = path.stat().st_mtime
            config = load_config_file(path)
        self._config = config

    def current(self) -> Config:
        """Return the current snapshot, reloading first if the file was modified."""
        if self.path is not None:
            self._reload_if_changed(self.path)
        return self._config

    def watcher(self) -> WatcherConfig:
        return self.current().watcher

    def update(self, config: Config):
        """Replace the snapshot with one pushed by the host."""
        with self._lock:
            self._config = config
        log.info("configuration updated (max_skip_seconds=%d)", config.watcher.max_skip_seconds)

    def _reload_if_changed(self, path: pathlib.Path):
        try:
            mtime = path.stat().st_mtime
        except OSError:
            log.warning("configuration file %s is no longer readable, keeping previous values", path)
            return
        if mtime == self._mtime:
            return
        with self._lock:
            if mtime == self._mtime:
                return
            self._mtime = mtime
            try:
                config = load_config_file(path)
            except Exception:
                log.exception("failed to reload %s, keeping previous values", path)
                return
            self._config = config
        log.info("reloaded configuration from %s (max_skip_seconds=%d)",
                 path, config.watcher.max_skip_seconds)
