from pathlib import Path

import numpy as np
import pytest

from ekko.core.audio.timeline import (
    MergeStatus,
    TimelineReconciler,
    load_segment,
    segment_timestamp,
)
from ekko.data.models import ValidAudioRange
from ekko.utils.audio import read_wave, wave_info, write_wave

RATE = 1000


def _write_segment(directory: Path, start: int, seconds: float = 100.0, rate: int = RATE, level: float = 0.5) -> Path:
    path = directory / f"rec_seg_{start}.wav"
    samples = int(seconds * rate)
    t = np.arange(samples) / rate
    write_wave(path, (level * np.sin(2 * np.pi * 50 * t)).astype(np.float32), rate)
    return path


def test_segment_timestamp_from_file_name() -> None:
    assert segment_timestamp(Path("rec_seg_1731592030.wav")) == 1731592030.0
    assert segment_timestamp(Path("sensors_12.5.csv")) == 12.5
    assert segment_timestamp(Path("recording.wav")) is None


def test_load_segment_reads_header(tmp_path: Path) -> None:
    segment = load_segment(_write_segment(tmp_path, 1000, seconds=2.5))
    assert segment.start_timestamp == 1000
    assert segment.duration == pytest.approx(2.5)
    assert segment.sample_rate == RATE


def test_single_segment_passes_through(tmp_path: Path) -> None:
    path = _write_segment(tmp_path, 1000)

    result = TimelineReconciler(output_dir=tmp_path / "out").merge([path])

    assert result.status is MergeStatus.PASSTHROUGH
    assert result.audio_path == path
    assert result.valid_ranges == [ValidAudioRange(0.0, 100.0)]
    assert wave_info(result.audio_path)[0] == pytest.approx(100.0)


def test_interrupted_capture_is_placed_on_one_clock(tmp_path: Path) -> None:
    paths = [_write_segment(tmp_path, start) for start in (1400, 1000, 1150)]

    result = TimelineReconciler(output_dir=tmp_path / "out").merge(paths)

    assert result.status is MergeStatus.MERGED
    assert result.valid_ranges == [
        ValidAudioRange(0.0, 100.0),
        ValidAudioRange(150.0, 250.0),
        ValidAudioRange(400.0, 500.0),
    ]
    data, rate = read_wave(result.audio_path)
    assert rate == RATE
    assert data.shape[0] == 500 * RATE
    assert np.abs(data[120 * RATE : 140 * RATE]).max() == 0.0
    assert np.abs(data[160 * RATE : 170 * RATE]).max() > 0.1


def test_unreadable_segment_is_skipped(tmp_path: Path) -> None:
    good = [_write_segment(tmp_path, 1000), _write_segment(tmp_path, 1200)]
    broken = tmp_path / "rec_seg_1100.wav"
    broken.write_bytes(b"not a wave file")
    unnamed = tmp_path / "rec_seg_latest.wav"
    unnamed.write_bytes(b"")

    result = TimelineReconciler(output_dir=tmp_path / "out").merge([good[0], broken, unnamed, good[1]])

    assert result.status is MergeStatus.MERGED
    assert set(result.skipped) == {broken, unnamed}
    assert result.valid_ranges == [ValidAudioRange(0.0, 100.0), ValidAudioRange(200.0, 300.0)]


def test_mixed_sample_rates_use_the_highest(tmp_path: Path) -> None:
    paths = [
        _write_segment(tmp_path, 1000, seconds=10, rate=800),
        _write_segment(tmp_path, 1020, seconds=10, rate=1600),
    ]

    result = TimelineReconciler(output_dir=tmp_path / "out").merge(paths)

    duration, rate = wave_info(result.audio_path)
    assert rate == 1600
    assert duration == pytest.approx(30.0)


def test_export_failure_falls_back_to_first_segment(tmp_path: Path) -> None:
    paths = [_write_segment(tmp_path, 1150), _write_segment(tmp_path, 1000, seconds=40)]
    blocked = tmp_path / "blocked"
    blocked.write_text("a file where the output directory should be")

    result = TimelineReconciler(output_dir=blocked).merge(paths)

    assert result.status is MergeStatus.DEGRADED
    assert result.is_degraded
    assert result.audio_path == paths[1]
    assert result.valid_ranges == [ValidAudioRange(0.0, 40.0)]


def test_nothing_readable_uses_sentinel_range(tmp_path: Path) -> None:
    first = tmp_path / "rec_seg_1000.wav"
    first.write_bytes(b"garbage")
    second = tmp_path / "rec_seg_1100.wav"
    second.write_bytes(b"garbage")

    result = TimelineReconciler(output_dir=tmp_path / "out", fallback_range_end=5000).merge([first, second])

    assert result.status is MergeStatus.DEGRADED
    assert result.audio_path == first
    assert result.valid_ranges == [ValidAudioRange(0.0, 5000.0)]


def test_failed_export_leaves_no_partial_file(tmp_path: Path, monkeypatch) -> None:
    paths = [_write_segment(tmp_path, 1000, seconds=5), _write_segment(tmp_path, 1010, seconds=5)]
    out = tmp_path / "out"

    def _fail(*_args, **_kwargs):
        raise OSError("disk full")

    monkeypatch.setattr("ekko.core.audio.timeline.write_wave", _fail)

    result = TimelineReconciler(output_dir=out).merge(paths)

    assert result.status is MergeStatus.DEGRADED
    assert list(out.iterdir()) == []


def test_no_segments() -> None:
    result = TimelineReconciler().merge([])
    assert result.status is MergeStatus.EMPTY
    assert result.audio_path is None
    assert result.valid_ranges == []
