"""Recognition of selected candidates against the merged audio timeline."""

from __future__ import annotations

import asyncio
from pathlib import Path
from threading import Event
from typing import Callable, List, Optional, Sequence

from ...config import Settings, get_settings
from ...data.models import HighlightMoment, PeakCandidate
from ...logging import get_logger
from ...services.recognition.base import RecognitionError, RecognitionService
from ...services.recognition.parsing import parse_recognition_result
from ...utils.audio import ExcerptError, extract_excerpt

LOGGER = get_logger(__name__)

ProgressCallback = Callable[[float], None]
ExcerptExtractor = Callable[[Path, float, float], bytes]


class AnalysisCancelled(RuntimeError):
    """Raised when an analysis run is stopped between candidates."""

    def __init__(self, completed: Optional[List[HighlightMoment]] = None) -> None:
        super().__init__("Analysis cancelled")
        self.completed = completed or []


class AnalysisControl:
    """Cancellation flag shared between a caller and a running analysis."""

    def __init__(self) -> None:
        self._stop = Event()

    def request_stop(self) -> None:
        self._stop.set()

    @property
    def should_stop(self) -> bool:
        return self._stop.is_set()


class RecognitionCoordinator:
    """Cut an excerpt at each candidate and ask the recognizer what is playing.

    Candidates are independent; up to ``concurrency`` of them are in flight
    at once. Excerpt or transport failures skip the candidate, and a
    response without a song drops it unless ``keep_unmatched`` is set.
    """

    def __init__(
        self,
        recognizer: RecognitionService,
        excerpt_seconds: float = 20.0,
        concurrency: int = 1,
        keep_unmatched: bool = False,
        unknown_title: str = "Unknown",
        extractor: ExcerptExtractor = extract_excerpt,
    ) -> None:
        self.recognizer = recognizer
        self.excerpt_seconds = excerpt_seconds
        self.concurrency = max(concurrency, 1)
        self.keep_unmatched = keep_unmatched
        self.unknown_title = unknown_title
        self.extractor = extractor

    @classmethod
    def from_settings(
        cls, recognizer: RecognitionService, settings: Optional[Settings] = None
    ) -> "RecognitionCoordinator":
        settings = settings or get_settings()
        return cls(
            recognizer,
            excerpt_seconds=settings.analysis_window_seconds,
            concurrency=settings.recognition_concurrency,
            keep_unmatched=settings.keep_unmatched_moments,
            unknown_title=settings.unknown_title,
        )

    async def _recognize_one(self, candidate: PeakCandidate, audio_path: Path) -> Optional[HighlightMoment]:
        try:
            excerpt = await asyncio.to_thread(self.extractor, audio_path, candidate.t, self.excerpt_seconds)
        except ExcerptError as exc:
            LOGGER.warning("Skipping candidate at %.0fs: %s", candidate.t, exc)
            return None

        try:
            payload = await asyncio.to_thread(self.recognizer.recognize, excerpt)
        except RecognitionError as exc:
            LOGGER.warning("Recognition failed at %.0fs: %s", candidate.t, exc)
            return None
        except Exception:  # pragma: no cover - third-party backends should not break the batch
            LOGGER.exception("Recognizer raised an unexpected error at %.0fs", candidate.t)
            return None

        song = parse_recognition_result(payload, self.unknown_title)
        if song is None:
            LOGGER.debug("No music recognized at %.0fs", candidate.t)
            if not self.keep_unmatched:
                return None
        else:
            LOGGER.info(
                "Recognized '%s' by %s at %.0fs (score %.1f, %d BPM)",
                song.title,
                song.artist or "unknown artist",
                candidate.t,
                candidate.score,
                candidate.bpm,
            )
        return HighlightMoment(
            timestamp=candidate.t,
            song=song,
            peak_score=candidate.score,
            user_bpm=candidate.bpm,
            music_bpm=0,
            average_db=candidate.db,
        )

    async def recognize_all(
        self,
        candidates: Sequence[PeakCandidate],
        audio_path: Path,
        on_progress: Optional[ProgressCallback] = None,
        control: Optional[AnalysisControl] = None,
    ) -> List[HighlightMoment]:
        total = len(candidates)
        results: List[Optional[HighlightMoment]] = [None] * total
        semaphore = asyncio.Semaphore(self.concurrency)
        progress_lock = asyncio.Lock()
        completed = 0
        cancelled = False

        def _report(fraction: float) -> None:
            if on_progress is None:
                return
            try:
                on_progress(fraction)
            except Exception:  # pragma: no cover - callbacks should not break pipeline
                LOGGER.exception("Progress callback raised an exception")

        async def _run(index: int, candidate: PeakCandidate) -> None:
            nonlocal completed, cancelled
            async with semaphore:
                if cancelled or (control is not None and control.should_stop):
                    cancelled = True
                    return
                results[index] = await self._recognize_one(candidate, Path(audio_path))
            async with progress_lock:
                completed += 1
                _report(completed / total)

        _report(0.0)
        await asyncio.gather(*(_run(index, candidate) for index, candidate in enumerate(candidates)))

        moments = [moment for moment in results if moment is not None]
        if cancelled:
            LOGGER.info("Analysis cancelled after %d of %d candidates", completed, total)
            raise AnalysisCancelled(moments)
        _report(1.0)
        return moments

    def run(
        self,
        candidates: Sequence[PeakCandidate],
        audio_path: Path,
        on_progress: Optional[ProgressCallback] = None,
        control: Optional[AnalysisControl] = None,
    ) -> List[HighlightMoment]:
        """Blocking wrapper around :meth:`recognize_all` for synchronous callers."""

        return asyncio.run(self.recognize_all(candidates, audio_path, on_progress=on_progress, control=control))


__all__ = [
    "AnalysisCancelled",
    "AnalysisControl",
    "RecognitionCoordinator",
]
