import csv
import zipfile
from pathlib import Path

import numpy as np
import pytest

from ekko.config import Settings
from ekko.core.audio.timeline import MergeExportError, MergeStatus, TimelineReconciler
from ekko.core.pipeline.coordinator import AnalysisControl
from ekko.core.pipeline.orchestrator import (
    WARNING_CANCELLED,
    WARNING_MERGE_DEGRADED,
    WARNING_NO_AUDIO,
    WARNING_SENSORS_UNREADABLE,
    WARNING_SESSION_TOO_SHORT,
    AnalysisOrchestrator,
    AnalysisRequest,
)
from ekko.data.models import SENSOR_COLUMNS
from ekko.data.storage import ReportStore
from ekko.services.recognition.dummy import DummyRecognitionService, music_response
from ekko.utils.audio import write_wave

RATE = 200
SENSOR_HZ = 10
SESSION_START = 1000


def _write_segment(directory: Path, start: int, seconds: float = 100.0) -> Path:
    path = directory / f"rec_seg_{start}.wav"
    t = np.arange(int(seconds * RATE)) / RATE
    write_wave(path, (0.3 * np.sin(2 * np.pi * 20 * t)).astype(np.float32), RATE)
    return path


def _write_sensors(directory: Path, seconds: int = 500) -> Path:
    """Quiet baseline with a strong burst at 160-200 s and a weaker one at 30-60 s."""

    path = directory / f"sensors_{SESSION_START}.csv"
    with open(path, "w", newline="") as handle:
        writer = csv.writer(handle)
        writer.writerow(SENSOR_COLUMNS)
        for index in range(seconds * SENSOR_HZ):
            t = SESSION_START + index / SENSOR_HZ
            gyro, bpm = 0.0, 0
            if 1600 <= index < 2000:
                gyro, bpm = 1.0, 120
            elif 300 <= index < 600:
                gyro = 0.5
            writer.writerow([t, 0, 0, 0.1, gyro, 0, 0, 0, 0, 0, 0, 0, -1, -20.0, 0, bpm])
    return path


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(
        sensor_frequency=SENSOR_HZ,
        base_dir=tmp_path / "sessions",
        database_path=tmp_path / "ekko.db",
    )


@pytest.fixture
def segments(tmp_path: Path) -> list[Path]:
    return [_write_segment(tmp_path, start) for start in (1000, 1150, 1400)]


def _recognizer() -> DummyRecognitionService:
    return DummyRecognitionService([music_response(f"Song {index}", ["DJ"]) for index in range(10)])


def test_full_analysis_produces_report(tmp_path: Path, settings: Settings, segments: list[Path]) -> None:
    orchestrator = AnalysisOrchestrator(settings=settings)
    recognizer = _recognizer()
    progress: list[float] = []

    outcome = orchestrator.analyze(
        AnalysisRequest(sensors_path=_write_sensors(tmp_path), segments=segments, session_id="party-test"),
        recognizer=recognizer,
        on_progress=progress.append,
    )

    assert outcome.warnings == []
    assert outcome.merge.status is MergeStatus.MERGED
    assert outcome.duration == pytest.approx(500.0)
    times = [round(c.t, 3) for c in outcome.candidates]
    assert 30.0 in times and 160.0 in times
    assert len(recognizer.calls) == len(outcome.candidates)
    assert progress[-1] == 1.0

    # A 500 s session keeps only its single strongest moment.
    assert len(outcome.moments) == 1
    moment = outcome.moments[0]
    assert moment.timestamp == pytest.approx(160.0)
    assert moment.peak_score == pytest.approx((0.1 + 15.0) * 1.2)
    assert moment.user_bpm == 120
    assert moment.song is not None and moment.title.startswith("Song ")

    assert outcome.report is not None
    assert outcome.report_path is not None and outcome.report_path.exists()
    assert outcome.report_path.parent == settings.base_dir / "party-test" / "processed"
    stored = ReportStore(settings.database_path).fetch_report(outcome.report.id)
    assert stored is not None
    assert [saved.title for saved in stored.moments] == [moment.title]
    assert stored.moments[0].artist == "DJ"


def test_candidates_fall_inside_recorded_audio(tmp_path: Path, settings: Settings, segments: list[Path]) -> None:
    outcome = AnalysisOrchestrator(settings=settings).analyze(
        AnalysisRequest(sensors_path=_write_sensors(tmp_path), segments=segments),
        recognizer=_recognizer(),
    )

    for candidate in outcome.candidates:
        midpoint = candidate.t + settings.analysis_window_seconds / 2
        assert any(r.contains(midpoint) for r in outcome.merge.valid_ranges)
    times = [c.t for c in outcome.candidates]
    assert all(later - earlier >= 60 for earlier, later in zip(times, times[1:]))


def test_short_session_is_rejected(tmp_path: Path, settings: Settings) -> None:
    outcome = AnalysisOrchestrator(settings=settings).analyze(
        AnalysisRequest(
            sensors_path=_write_sensors(tmp_path, seconds=20),
            segments=[_write_segment(tmp_path, SESSION_START, seconds=20)],
        ),
        recognizer=_recognizer(),
    )

    assert outcome.merge.status is MergeStatus.PASSTHROUGH
    assert outcome.warnings == [WARNING_SESSION_TOO_SHORT]
    assert outcome.report is None


def test_unreadable_sensor_log(tmp_path: Path, settings: Settings, segments: list[Path]) -> None:
    outcome = AnalysisOrchestrator(settings=settings).analyze(
        AnalysisRequest(sensors_path=tmp_path / "missing.csv", segments=segments),
        recognizer=_recognizer(),
    )

    assert WARNING_SENSORS_UNREADABLE in outcome.warnings
    assert outcome.report is None


def test_without_audio_no_report_is_made(tmp_path: Path, settings: Settings) -> None:
    recognizer = _recognizer()
    outcome = AnalysisOrchestrator(settings=settings).analyze(
        AnalysisRequest(sensors_path=_write_sensors(tmp_path), segments=[]),
        recognizer=recognizer,
    )

    assert outcome.warnings == [WARNING_NO_AUDIO]
    assert outcome.duration == pytest.approx(499.9)
    assert outcome.report is None
    assert recognizer.calls == []


def test_raw_only_run_archives_session(tmp_path: Path, settings: Settings, segments: list[Path]) -> None:
    outcome = AnalysisOrchestrator(settings=settings).analyze(
        AnalysisRequest(sensors_path=_write_sensors(tmp_path), segments=segments, archive=True),
        recognizer=None,
    )

    assert outcome.report is None
    assert outcome.candidates == []
    assert outcome.archive_path is not None
    assert outcome.archive_path.parent == settings.base_dir
    assert outcome.archive_path.name.startswith("EKKO_")
    with zipfile.ZipFile(outcome.archive_path) as archive:
        names = set(archive.namelist())
    assert f"sensors_{SESSION_START}.csv" in names
    assert outcome.merge.audio_path.name in names


def test_cancelled_run_saves_nothing(tmp_path: Path, settings: Settings, segments: list[Path]) -> None:
    control = AnalysisControl()
    control.request_stop()
    orchestrator = AnalysisOrchestrator(settings=settings)

    outcome = orchestrator.analyze(
        AnalysisRequest(sensors_path=_write_sensors(tmp_path), segments=segments),
        recognizer=_recognizer(),
        control=control,
    )

    assert outcome.cancelled
    assert outcome.warnings == [WARNING_CANCELLED]
    assert outcome.report is None
    assert orchestrator.store.list_reports() == []


def test_degraded_merge_uses_first_segment_length(
    tmp_path: Path, settings: Settings, segments: list[Path], monkeypatch
) -> None:
    def failing_export(self, timeline, sample_rate, output) -> None:
        raise MergeExportError("disk full")

    monkeypatch.setattr(TimelineReconciler, "_export", failing_export)

    outcome = AnalysisOrchestrator(settings=settings).analyze(
        AnalysisRequest(sensors_path=_write_sensors(tmp_path), segments=segments),
        recognizer=_recognizer(),
    )

    assert outcome.merge.status is MergeStatus.DEGRADED
    assert WARNING_MERGE_DEGRADED in outcome.warnings
    assert outcome.merge.audio_path == segments[0]
    assert outcome.duration == pytest.approx(100.0)
    assert all(c.t + settings.analysis_window_seconds / 2 <= 100.0 for c in outcome.candidates)
