"""Reconcile interrupted audio captures into one session timeline."""

from __future__ import annotations

import enum
import os
import tempfile
import time
import wave
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Sequence, Union

import numpy as np

from ...config import Settings, get_settings
from ...data.models import AudioSegment, ValidAudioRange
from ...logging import get_logger
from ...utils.audio import ensure_mono, read_wave, resample, wave_info, write_wave

LOGGER = get_logger(__name__)

SegmentSource = Union[AudioSegment, Path, str]


class SegmentMetadataError(RuntimeError):
    """Raised when a segment's duration or start timestamp cannot be read."""


class MergeExportError(RuntimeError):
    """Raised when the merged timeline cannot be written out."""


class MergeStatus(str, enum.Enum):
    EMPTY = "empty"
    PASSTHROUGH = "passthrough"
    MERGED = "merged"
    DEGRADED = "degraded"


@dataclass
class MergeResult:
    status: MergeStatus
    audio_path: Optional[Path] = None
    valid_ranges: List[ValidAudioRange] = field(default_factory=list)
    skipped: List[Path] = field(default_factory=list)

    @property
    def is_degraded(self) -> bool:
        return self.status is MergeStatus.DEGRADED


def segment_timestamp(path: Path) -> Optional[float]:
    """Read the capture start time encoded as the last ``_`` token of the file name."""

    token = Path(path).stem.split("_")[-1]
    try:
        return float(token)
    except ValueError:
        return None


def load_segment(path: Path) -> AudioSegment:
    path = Path(path)
    start = segment_timestamp(path)
    if start is None:
        raise SegmentMetadataError(f"No start timestamp in file name {path.name}")
    try:
        duration, sample_rate = wave_info(path)
    except (OSError, EOFError, ValueError, wave.Error) as exc:
        raise SegmentMetadataError(f"Unable to read audio metadata from {path.name}: {exc}") from exc
    return AudioSegment(source=path, start_timestamp=start, duration=duration, sample_rate=sample_rate)


class TimelineReconciler:
    """Splice audio segments onto a common clock.

    Each segment is placed at its start time relative to the earliest one,
    leaving silence where capture was interrupted. The positions that hold
    real audio are reported as :class:`ValidAudioRange` values.
    """

    def __init__(self, output_dir: Optional[Path] = None, fallback_range_end: float = 100_000.0) -> None:
        self.output_dir = Path(output_dir) if output_dir is not None else Path(tempfile.gettempdir())
        self.fallback_range_end = fallback_range_end

    @classmethod
    def from_settings(
        cls, output_dir: Optional[Path] = None, settings: Optional[Settings] = None
    ) -> "TimelineReconciler":
        settings = settings or get_settings()
        return cls(output_dir=output_dir, fallback_range_end=settings.fallback_range_end)

    def _resolve(self, sources: Sequence[SegmentSource]) -> tuple[List[AudioSegment], List[Path]]:
        segments: List[AudioSegment] = []
        skipped: List[Path] = []
        for source in sources:
            if isinstance(source, AudioSegment):
                segments.append(source)
                continue
            try:
                segments.append(load_segment(Path(source)))
            except SegmentMetadataError as exc:
                LOGGER.warning("Skipping audio segment: %s", exc)
                skipped.append(Path(source))
        return segments, skipped

    def merge(self, sources: Sequence[SegmentSource]) -> MergeResult:
        if not sources:
            return MergeResult(status=MergeStatus.EMPTY)

        segments, skipped = self._resolve(sources)
        if len(sources) == 1 and segments:
            only = segments[0]
            return MergeResult(
                status=MergeStatus.PASSTHROUGH,
                audio_path=Path(only.source),
                valid_ranges=[ValidAudioRange(0.0, only.duration)],
            )

        try:
            audio_path, valid_ranges, lost = self._splice(segments)
        except MergeExportError as exc:
            LOGGER.warning("Audio merge degraded: %s", exc)
            return self._degraded(sources, segments, skipped)

        skipped.extend(lost)
        if skipped:
            LOGGER.warning("Merged timeline is missing %d segment(s)", len(skipped))
        LOGGER.info(
            "Merged %d segments into %s (%d valid ranges)",
            len(segments) - len(lost),
            audio_path.name,
            len(valid_ranges),
        )
        return MergeResult(
            status=MergeStatus.MERGED,
            audio_path=audio_path,
            valid_ranges=valid_ranges,
            skipped=skipped,
        )

    def _splice(self, segments: List[AudioSegment]) -> tuple[Path, List[ValidAudioRange], List[Path]]:
        loaded = []
        lost: List[Path] = []
        for segment in sorted(segments, key=lambda s: s.start_timestamp):
            try:
                data, sample_rate = read_wave(Path(segment.source))
            except (OSError, EOFError, ValueError, wave.Error) as exc:
                LOGGER.warning("Skipping audio segment %s: %s", Path(segment.source).name, exc)
                lost.append(Path(segment.source))
                continue
            loaded.append((segment, ensure_mono(data), sample_rate))

        if not loaded:
            raise MergeExportError("no readable audio segments")

        target_rate = max(sample_rate for _, _, sample_rate in loaded)
        base = loaded[0][0].start_timestamp

        placed = []
        for segment, data, sample_rate in loaded:
            data = resample(data, sample_rate, target_rate)
            offset = segment.start_timestamp - base
            placed.append((int(round(offset * target_rate)), data[:, 0], offset, segment.duration))

        total = max(start + data.shape[0] for start, data, _, _ in placed)
        timeline = np.zeros(total, dtype=np.float32)
        valid_ranges: List[ValidAudioRange] = []
        for start, data, offset, duration in placed:
            timeline[start : start + data.shape[0]] = data
            # Overlapping captures (clock skew) are clipped so ranges stay disjoint.
            range_start = max(offset, valid_ranges[-1].end) if valid_ranges else offset
            range_end = offset + duration
            if range_end > range_start:
                valid_ranges.append(ValidAudioRange(range_start, range_end))

        output = self.output_dir / f"merged_session_{int(time.time())}.wav"
        self._export(timeline, target_rate, output)
        return output, valid_ranges, lost

    def _export(self, timeline: np.ndarray, sample_rate: int, output: Path) -> None:
        """Write to a sibling temporary file first so a failed export leaves nothing behind."""

        try:
            self.output_dir.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(suffix=".wav", dir=self.output_dir)
            os.close(fd)
        except OSError as exc:
            raise MergeExportError(str(exc)) from exc

        tmp_path = Path(tmp_name)
        try:
            write_wave(tmp_path, timeline, sample_rate)
            tmp_path.replace(output)
        except (OSError, ValueError) as exc:
            tmp_path.unlink(missing_ok=True)
            raise MergeExportError(str(exc)) from exc

    def _degraded(
        self,
        sources: Sequence[SegmentSource],
        segments: List[AudioSegment],
        skipped: List[Path],
    ) -> MergeResult:
        """Fall back to the first recorded segment alone.

        When its duration is known that span is the only valid range; when
        nothing could be read, a wide sentinel range lets analysis proceed
        with recognition quality unknown.
        """

        if segments:
            first = min(segments, key=lambda s: s.start_timestamp)
            return MergeResult(
                status=MergeStatus.DEGRADED,
                audio_path=Path(first.source),
                valid_ranges=[ValidAudioRange(0.0, first.duration)],
                skipped=skipped,
            )
        first_source = sources[0]
        path = Path(first_source.source) if isinstance(first_source, AudioSegment) else Path(first_source)
        return MergeResult(
            status=MergeStatus.DEGRADED,
            audio_path=path,
            valid_ranges=[ValidAudioRange(0.0, self.fallback_range_end)],
            skipped=skipped,
        )


__all__ = [
    "MergeExportError",
    "MergeResult",
    "MergeStatus",
    "SegmentMetadataError",
    "TimelineReconciler",
    "load_segment",
    "segment_timestamp",
]
