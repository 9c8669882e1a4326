"""PartyPower scoring and sliding-window aggregation."""

from __future__ import annotations

import math
from typing import List, Optional, Sequence

import numpy as np

from ...config import Settings, get_settings
from ...data.models import PeakCandidate, SensorSample
from ...logging import get_logger

LOGGER = get_logger(__name__)


def yaw_delta(previous: Optional[float], current: float, threshold: float = 3.0) -> float:
    """Absolute yaw change between two samples.

    Attitude yaw is normalised to ``[-π, π]``, so crossing the boundary shows
    up as a jump of almost 2π. Jumps above ``threshold`` are reported as 0.
    """

    if previous is None:
        return 0.0
    delta = abs(current - previous)
    if delta > threshold:
        return 0.0
    return delta


def _magnitude(vector: Sequence[float]) -> float:
    x, y, z = vector
    return math.sqrt(x * x + y * y + z * z)


class PeakDetector:
    """Score every sensor sample and average the scores over sliding windows."""

    def __init__(
        self,
        window_rows: int = 1000,
        stride_rows: Optional[int] = None,
        gyro_weight: float = 15.0,
        yaw_weight: float = 50.0,
        yaw_change_threshold: float = 3.0,
        bonus_bpm_min: float = 90.0,
        bonus_bpm_max: float = 175.0,
        rhythm_bonus_factor: float = 1.2,
    ) -> None:
        if window_rows <= 0:
            raise ValueError("window_rows must be positive")
        self.window_rows = window_rows
        self.stride_rows = stride_rows or max(window_rows // 4, 1)
        self.gyro_weight = gyro_weight
        self.yaw_weight = yaw_weight
        self.yaw_change_threshold = yaw_change_threshold
        self.bonus_bpm_min = bonus_bpm_min
        self.bonus_bpm_max = bonus_bpm_max
        self.rhythm_bonus_factor = rhythm_bonus_factor

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "PeakDetector":
        settings = settings or get_settings()
        return cls(
            window_rows=settings.window_size_in_rows,
            stride_rows=settings.stride_in_rows,
            gyro_weight=settings.gyro_weight,
            yaw_weight=settings.yaw_weight,
            yaw_change_threshold=settings.yaw_change_threshold,
            bonus_bpm_min=settings.bpm_bonus_min,
            bonus_bpm_max=settings.bpm_bonus_max,
            rhythm_bonus_factor=settings.rhythm_bonus_factor,
        )

    def party_power(self, sample: SensorSample, previous_yaw: Optional[float]) -> float:
        score = (
            _magnitude(sample.accel)
            + _magnitude(sample.gyro) * self.gyro_weight
            + yaw_delta(previous_yaw, sample.yaw, self.yaw_change_threshold) * self.yaw_weight
        )
        if self.bonus_bpm_min <= sample.recorded_bpm <= self.bonus_bpm_max:
            score *= self.rhythm_bonus_factor
        return score

    def score_samples(self, samples: Sequence[SensorSample]) -> np.ndarray:
        scores = np.empty(len(samples), dtype=np.float64)
        previous_yaw: Optional[float] = None
        for index, sample in enumerate(samples):
            scores[index] = self.party_power(sample, previous_yaw)
            previous_yaw = sample.yaw
        return scores

    def detect(self, samples: Sequence[SensorSample]) -> List[PeakCandidate]:
        """Return one candidate per full window, in time order.

        Windows hold exactly ``window_rows`` consecutive samples and start every
        ``stride_rows`` samples. Zero BPM readings are left out of a window's
        BPM average; windows without any positive score are dropped.
        """

        count = len(samples)
        if count < self.window_rows:
            LOGGER.debug("Only %d samples; a window needs %d", count, self.window_rows)
            return []

        scores = self.score_samples(samples)
        db = np.fromiter((s.audio_power_db for s in samples), dtype=np.float64, count=count)
        bpm = np.fromiter((s.recorded_bpm for s in samples), dtype=np.int64, count=count)
        positive = bpm > 0
        starts = np.arange(0, count - self.window_rows + 1, self.stride_rows)

        def _window_sums(values: np.ndarray) -> np.ndarray:
            # Each window sums its own samples so equal windows score equally.
            windows = np.lib.stride_tricks.sliding_window_view(values, self.window_rows)
            return windows[starts].sum(axis=1)

        mean_scores = _window_sums(scores) / self.window_rows
        mean_db = _window_sums(db) / self.window_rows
        bpm_totals = _window_sums(np.where(positive, bpm, 0))
        bpm_counts = _window_sums(positive.astype(np.int64))

        origin = samples[0].t
        candidates: List[PeakCandidate] = []
        for index, start in enumerate(starts):
            score = float(mean_scores[index])
            if not score > 0:
                continue
            bpm_count = int(bpm_counts[index])
            candidates.append(
                PeakCandidate(
                    t=samples[int(start)].t - origin,
                    score=score,
                    bpm=int(bpm_totals[index]) // bpm_count if bpm_count else 0,
                    db=float(mean_db[index]),
                )
            )
        LOGGER.debug("Scored %d windows over %d samples", len(candidates), count)
        return candidates


__all__ = ["PeakDetector", "yaw_delta"]
