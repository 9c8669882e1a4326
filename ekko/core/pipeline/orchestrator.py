"""Analysis orchestrator turning a captured session into a highlight report."""

from __future__ import annotations

import time
import uuid
import wave
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional, Sequence

from ...config import Settings, get_settings
from ...data.archive import archive_session
from ...data.models import HighlightMoment, PartyReport, PeakCandidate
from ...data.storage import ReportStore
from ...logging import get_logger
from ...services.recognition.base import RecognitionService
from ...utils.audio import wave_info
from ..analysis.filtering import MomentFilter
from ..analysis.peaks import PeakDetector
from ..analysis.selection import CandidateSelector
from ..audio.timeline import MergeResult, MergeStatus, TimelineReconciler, segment_timestamp
from ..sensors.reader import SensorLogError, read_sensor_log
from .coordinator import AnalysisCancelled, AnalysisControl, ProgressCallback, RecognitionCoordinator

LOGGER = get_logger(__name__)

WARNING_NO_AUDIO = "no_audio"
WARNING_MERGE_DEGRADED = "merge_degraded"
WARNING_SEGMENTS_SKIPPED = "segments_skipped"
WARNING_SENSORS_UNREADABLE = "sensors_unreadable"
WARNING_SESSION_TOO_SHORT = "session_too_short"
WARNING_CANCELLED = "cancelled"


@dataclass
class AnalysisRequest:
    sensors_path: Path
    segments: Sequence[Path]
    archive: bool = False
    session_id: Optional[str] = None


@dataclass
class AnalysisOutcome:
    session_id: str
    merge: MergeResult
    duration: float = 0.0
    candidates: List[PeakCandidate] = field(default_factory=list)
    moments: List[HighlightMoment] = field(default_factory=list)
    report: Optional[PartyReport] = None
    report_path: Optional[Path] = None
    archive_path: Optional[Path] = None
    warnings: List[str] = field(default_factory=list)

    @property
    def cancelled(self) -> bool:
        return WARNING_CANCELLED in self.warnings


class AnalysisOrchestrator:
    """High-level coordinator for post-capture analysis.

    Every run builds fresh pipeline components from the settings it was
    given, so no analysis state is shared between runs.
    """

    def __init__(
        self,
        base_dir: Optional[Path] = None,
        store: Optional[ReportStore] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.base_dir = Path(base_dir or self.settings.base_dir)
        self.store = store or ReportStore(self.settings.database_path)
        self.store.initialize()

    def _create_session_dirs(self, session_id: str) -> Dict[str, Path]:
        base = self.base_dir / session_id
        processed = base / "processed"
        processed.mkdir(parents=True, exist_ok=True)
        return {"base": base, "processed": processed}

    def _session_duration(self, merge: MergeResult, sensor_duration: float) -> float:
        if merge.audio_path is not None:
            try:
                duration, _ = wave_info(merge.audio_path)
                return duration
            except (OSError, EOFError, ValueError, wave.Error) as exc:
                LOGGER.warning("Unable to read duration of %s: %s", merge.audio_path, exc)
        return sensor_duration

    def analyze(
        self,
        request: AnalysisRequest,
        recognizer: Optional[RecognitionService] = None,
        on_progress: Optional[ProgressCallback] = None,
        control: Optional[AnalysisControl] = None,
    ) -> AnalysisOutcome:
        """Run the full pipeline for one captured session.

        Without a recognizer only the raw files are reconciled (and archived
        when requested); no report is produced.
        """

        settings = self.settings
        session_id = request.session_id or f"party-{uuid.uuid4().hex[:8]}"
        dirs = self._create_session_dirs(session_id)
        LOGGER.info("Analysing session %s", session_id)

        reconciler = TimelineReconciler.from_settings(output_dir=dirs["processed"], settings=settings)
        merge = reconciler.merge(list(request.segments))
        outcome = AnalysisOutcome(session_id=session_id, merge=merge)
        if merge.status is MergeStatus.EMPTY or merge.audio_path is None:
            outcome.warnings.append(WARNING_NO_AUDIO)
        if merge.is_degraded:
            outcome.warnings.append(WARNING_MERGE_DEGRADED)
        if merge.skipped:
            outcome.warnings.append(WARNING_SEGMENTS_SKIPPED)

        try:
            sensor_log = read_sensor_log(request.sensors_path)
        except SensorLogError as exc:
            LOGGER.warning("%s", exc)
            outcome.warnings.append(WARNING_SENSORS_UNREADABLE)
            return outcome

        outcome.duration = self._session_duration(merge, sensor_log.duration)
        if outcome.duration < settings.min_session_duration:
            LOGGER.warning(
                "Session lasted %.1fs; at least %.0fs are needed",
                outcome.duration,
                settings.min_session_duration,
            )
            outcome.warnings.append(WARNING_SESSION_TOO_SHORT)
            return outcome

        if recognizer is not None and merge.audio_path is not None:
            windows = PeakDetector.from_settings(settings).detect(sensor_log.samples)
            outcome.candidates = CandidateSelector.from_settings(settings).select(windows, merge.valid_ranges)
            LOGGER.info("%d PartyPower candidates identified", len(outcome.candidates))

            coordinator = RecognitionCoordinator.from_settings(recognizer, settings)
            try:
                recognized = coordinator.run(
                    outcome.candidates, merge.audio_path, on_progress=on_progress, control=control
                )
            except AnalysisCancelled:
                outcome.warnings.append(WARNING_CANCELLED)
                return outcome

            outcome.moments = MomentFilter.from_settings(settings).filter(recognized, outcome.duration)
            outcome.report = PartyReport(
                duration=outcome.duration,
                moments=[moment.to_saved(settings.unknown_title) for moment in outcome.moments],
            )
            self.store.save_report(outcome.report)
            outcome.report_path = dirs["processed"] / f"report_{int(time.time())}.json"
            outcome.report_path.write_text(outcome.report.model_dump_json(indent=2))
            LOGGER.info("Saved report %s with %d moments", outcome.report.id, len(outcome.moments))

        if request.archive:
            outcome.archive_path = self._archive(request, outcome)
        return outcome

    def _archive(self, request: AnalysisRequest, outcome: AnalysisOutcome) -> Path:
        started = segment_timestamp(request.sensors_path)
        start = datetime.fromtimestamp(started) if started is not None else datetime.now()
        files = [request.sensors_path]
        if outcome.merge.audio_path is not None:
            files.insert(0, outcome.merge.audio_path)
        if outcome.report_path is not None:
            files.append(outcome.report_path)
        path = archive_session(files, self.base_dir, start, datetime.now())
        LOGGER.info("Archived session files to %s", path)
        return path


__all__ = [
    "AnalysisOrchestrator",
    "AnalysisOutcome",
    "AnalysisRequest",
]
