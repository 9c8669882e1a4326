"""Ranking of scored windows into a short list worth sending for recognition."""

from __future__ import annotations

from typing import Iterable, List, Optional, Sequence

from ...config import Settings, get_settings
from ...data.models import PeakCandidate, ValidAudioRange
from ...logging import get_logger

LOGGER = get_logger(__name__)


def in_valid_audio(t: float, ranges: Iterable[ValidAudioRange]) -> bool:
    return any(audio_range.contains(t) for audio_range in ranges)


class CandidateSelector:
    """Pick the strongest, well-separated windows that have audio under them."""

    def __init__(
        self,
        window_seconds: float = 20.0,
        min_spacing: float = 60.0,
        max_candidates: int = 10,
    ) -> None:
        self.window_seconds = window_seconds
        self.min_spacing = min_spacing
        self.max_candidates = max_candidates

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "CandidateSelector":
        settings = settings or get_settings()
        return cls(
            window_seconds=settings.analysis_window_seconds,
            min_spacing=settings.min_time_between_peaks,
            max_candidates=settings.candidate_limit,
        )

    def select(
        self,
        candidates: Iterable[PeakCandidate],
        valid_ranges: Sequence[ValidAudioRange],
    ) -> List[PeakCandidate]:
        candidates = list(candidates)
        covered = [
            candidate
            for candidate in candidates
            if in_valid_audio(candidate.t + self.window_seconds / 2, valid_ranges)
        ]
        # Ties keep the earlier window so the result does not depend on input order.
        ranked = sorted(covered, key=lambda candidate: (-candidate.score, candidate.t))

        accepted: List[PeakCandidate] = []
        for candidate in ranked:
            if len(accepted) >= self.max_candidates:
                break
            if any(abs(kept.t - candidate.t) < self.min_spacing for kept in accepted):
                continue
            accepted.append(candidate)

        LOGGER.info(
            "Selected %d of %d windows (%d with audio coverage)",
            len(accepted),
            len(candidates),
            len(covered),
        )
        return sorted(accepted, key=lambda candidate: candidate.t)


__all__ = ["CandidateSelector", "in_valid_audio"]
