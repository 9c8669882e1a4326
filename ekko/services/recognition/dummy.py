"""Dummy recognition service for testing or offline usage."""

from __future__ import annotations

import json
from typing import List, Optional, Sequence

from .base import RecognitionService


def music_response(title: str, artists: Sequence[str] = ()) -> str:
    """Build a response body shaped like a successful recognition."""

    return json.dumps(
        {
            "status": {"code": 0, "msg": "Success"},
            "metadata": {
                "music": [
                    {"title": title, "artists": [{"name": name} for name in artists]},
                ]
            },
        }
    )


NO_MATCH_RESPONSE = json.dumps({"status": {"code": 1001, "msg": "No result"}})


class DummyRecognitionService(RecognitionService):
    """Replay canned responses in order, then keep answering "no match"."""

    def __init__(self, responses: Optional[Sequence[Optional[str]]] = None) -> None:
        if responses is None:
            responses = [music_response("Offline Track", ["EKKO"])]
        self._responses: List[Optional[str]] = list(responses)
        self.calls: List[int] = []

    def recognize(self, audio: bytes) -> Optional[str]:
        self.calls.append(len(audio))
        if self._responses:
            return self._responses.pop(0)
        return NO_MATCH_RESPONSE


__all__ = ["DummyRecognitionService", "NO_MATCH_RESPONSE", "music_response"]
