"""Parsing of recognizer responses into songs."""

from __future__ import annotations

import json
from typing import Any, Optional

from ...data.models import RecognizedSong


def parse_recognition_result(payload: Optional[str], unknown_title: str = "Unknown") -> Optional[RecognizedSong]:
    """Read the first ``metadata.music`` entry of a response.

    Anything that does not have that shape, including an empty list, means
    no match. A matched entry without a title gets ``unknown_title``.
    """

    if not payload:
        return None
    try:
        data: Any = json.loads(payload)
    except (TypeError, ValueError):
        return None
    if not isinstance(data, dict):
        return None
    metadata = data.get("metadata")
    if not isinstance(metadata, dict):
        return None
    music = metadata.get("music")
    if not isinstance(music, list) or not music or not isinstance(music[0], dict):
        return None

    entry = music[0]
    title = entry.get("title")
    if not isinstance(title, str) or not title:
        title = unknown_title
    artists = entry.get("artists")
    names = []
    if isinstance(artists, list):
        names = [str(artist["name"]) for artist in artists if isinstance(artist, dict) and artist.get("name")]
    return RecognizedSong(title=title, artist=", ".join(names))


__all__ = ["parse_recognition_result"]
