import logging
import pathlib
import signal
from typing import Optional

import click

from .config import ConfigStore, get_config_path
from .jellyfin import JellyfinError, JellyfinHost
from .session import hms
from .watcher import SeekWatcher


def _setup_logging(loglevel: str):
    logging.basicConfig(
        level=loglevel.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    for _noisy in ("urllib3", "requests"):
        logging.getLogger(_noisy).setLevel(logging.WARNING)


def _load_store(config_path: Optional[str]) -> ConfigStore:
    """Locate and load the configuration, turning failures into CLI errors."""
    path = pathlib.Path(config_path) if config_path else get_config_path()
    if path is None:
        raise click.ClickException(
            "could not find configuration file "
            "(looked for ./dejavu.toml and ~/.config/dejavu/config.toml)"
        )
    logging.getLogger("config").info("using configuration from %s", path)
    try:
        return ConfigStore(path)
    except Exception as e:
        raise click.ClickException(f"invalid configuration in {path}: {e}") from e


@click.command()
@click.option("--config", "config_path", type=click.Path(exists=True, dir_okay=False), default=None,
              help="Configuration file (default: ./dejavu.toml, ~/.config/dejavu/config.toml).")
@click.option("--loglevel", default="INFO", show_default=True)
def cli(config_path: Optional[str], loglevel: str):
    """
    dejavu: turn subtitles on when you rewind.

    Polls the Jellyfin server's active sessions once a second.  When a viewer
    seeks back with subtitles off, a subtitle track is enabled until playback
    returns to where the rewind started, then subtitles are turned off again.
    The configuration file is re-read whenever it changes.
    """
    _setup_logging(loglevel)
    store = _load_store(config_path)
    cfg = store.current()
    if not cfg.jellyfin.api_key:
        raise click.ClickException("jellyfin.api_key is not configured")

    watcher = SeekWatcher(store)

    def _on_signal(signum, _frame):
        logging.getLogger("cli").info("received signal %d, shutting down", signum)
        watcher.shutdown.set()

    signal.signal(signal.SIGINT, _on_signal)
    signal.signal(signal.SIGTERM, _on_signal)

    logging.getLogger("cli").info(
        "watching %s (max_skip_seconds=%d)", cfg.jellyfin.url, cfg.watcher.max_skip_seconds,
    )
    watcher.block()


@click.command()
@click.option("--config", "config_path", type=click.Path(exists=True, dir_okay=False), default=None)
@click.option("--loglevel", default="WARNING", show_default=True)
def sessions(config_path: Optional[str], loglevel: str):
    """Print the server's live sessions as the watcher sees them (for testing)."""
    _setup_logging(loglevel)
    store = _load_store(config_path)
    host = JellyfinHost(store.current().jellyfin)
    try:
        samples = host.list_live_sessions()
    except JellyfinError as e:
        raise click.ClickException(str(e)) from e
    finally:
        host.close()

    if not samples:
        click.echo("no sessions")
    for s in samples:
        state = "paused" if s.is_paused else "playing"
        tracks = ", ".join(
            f"{t.index}:{t.language or '?'}{'*' if t.is_default else ''}" for t in s.subtitle_tracks
        ) or "none"
        click.echo(
            f"{s.session_id} user={s.user_id or '-'} {state} @ {hms(s.position_ticks)} "
            f"subtitle={s.subtitle_index} tracks=[{tracks}]"
        )
