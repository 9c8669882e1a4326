"""Final trimming of recognized moments into the report."""

from __future__ import annotations

from typing import Iterable, List, Optional

from ...config import Settings, get_settings
from ...data.models import HighlightMoment


class MomentFilter:
    """Keep the best moment per song, as many as the session length earns."""

    def __init__(
        self,
        short_limit: float = 600.0,
        medium_limit: float = 1500.0,
        short_count: int = 1,
        medium_count: int = 3,
        long_count: int = 5,
    ) -> None:
        self.short_limit = short_limit
        self.medium_limit = medium_limit
        self.short_count = short_count
        self.medium_count = medium_count
        self.long_count = long_count

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "MomentFilter":
        settings = settings or get_settings()
        return cls(
            short_limit=settings.tier_short_limit,
            medium_limit=settings.tier_medium_limit,
            short_count=settings.tier_short_count,
            medium_count=settings.tier_medium_count,
            long_count=settings.tier_long_count,
        )

    def target_count(self, total_duration: float) -> int:
        if total_duration < self.short_limit:
            return self.short_count
        if total_duration < self.medium_limit:
            return self.medium_count
        return self.long_count

    def filter(self, moments: Iterable[HighlightMoment], total_duration: float) -> List[HighlightMoment]:
        target = self.target_count(total_duration)
        ranked = sorted(moments, key=lambda moment: moment.peak_score, reverse=True)

        accepted: List[HighlightMoment] = []
        seen_titles = set()
        for moment in ranked:
            if len(accepted) >= target:
                break
            # Unmatched moments share the ``None`` title, so at most one survives.
            if moment.title in seen_titles:
                continue
            seen_titles.add(moment.title)
            accepted.append(moment)
        return accepted


__all__ = ["MomentFilter"]
