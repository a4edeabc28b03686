"""Choose which subtitle track to turn on after a rewind."""
from typing import Callable, Iterable, Optional

from .session import SubtitleTrack

TrackPredicate = Callable[[SubtitleTrack], bool]


def _first_match(tracks: Iterable[SubtitleTrack], predicate: TrackPredicate) -> Optional[int]:
    for track in tracks:
        if track.index >= 0 and predicate(track):
            return track.index
    return None


def select_subtitle_track(
    tracks: Iterable[SubtitleTrack],
    last_subtitle_index: Optional[int] = None,
    language: Optional[str] = None,
) -> Optional[int]:
    """Pick a subtitle track index, or None when the item has no usable track.

    Preference, first match wins (tracks are scanned in server order):

      1. the track the viewer last had loaded
      2. the item's default subtitle track
      3. a track in the viewer's preferred language; with no preference
         configured any track qualifies
    """
    tracks = list(tracks)
    preference = (language or "").strip()
    predicates: list[TrackPredicate] = [
        lambda t: last_subtitle_index is not None and t.index == last_subtitle_index,
        lambda t: t.is_default,
        lambda t: not preference or t.language == preference,
    ]
    for predicate in predicates:
        index = _first_match(tracks, predicate)
        if index is not None:
            return index
    return None
