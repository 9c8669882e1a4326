"""Rolling dance-tempo estimation from raw accelerometer readings."""

from __future__ import annotations

import math
from collections import deque
from typing import Deque, Optional

import numpy as np

from ...config import Settings, get_settings


class RhythmEstimator:
    """Estimate the wearer's BPM from the last few seconds of movement.

    Each call to :meth:`process` pushes the gravity-removed magnitude
    ``|‖a‖ - 1|`` into a fixed-size ring. Every ``frequency`` calls (about
    once per second) the ring is re-analysed, provided it is at least half
    full; in between the previous estimate is returned. ``0`` means no
    rhythm could be determined.
    """

    def __init__(
        self,
        frequency: float = 50.0,
        window_seconds: float = 20.0,
        min_movement: float = 0.05,
        threshold_ratio: float = 1.2,
        bpm_min: float = 60.0,
        bpm_max: float = 180.0,
    ) -> None:
        if frequency <= 0:
            raise ValueError("frequency must be positive")
        self.frequency = frequency
        self.capacity = max(int(window_seconds * frequency), 1)
        self.min_movement = min_movement
        self.threshold_ratio = threshold_ratio
        self.bpm_min = bpm_min
        self.bpm_max = bpm_max
        self._frames_per_update = max(int(frequency), 1)
        self._buffer: Deque[float] = deque(maxlen=self.capacity)
        self._frame_counter = 0
        self._last_bpm = 0

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "RhythmEstimator":
        settings = settings or get_settings()
        return cls(
            frequency=settings.sensor_frequency,
            window_seconds=settings.analysis_window_seconds,
            min_movement=settings.min_movement_threshold,
            threshold_ratio=settings.beat_threshold_ratio,
            bpm_min=settings.bpm_min,
            bpm_max=settings.bpm_max,
        )

    @property
    def bpm(self) -> int:
        return self._last_bpm

    def reset(self) -> None:
        self._buffer.clear()
        self._frame_counter = 0
        self._last_bpm = 0

    def process(self, ax: float, ay: float, az: float) -> int:
        magnitude = math.sqrt(ax * ax + ay * ay + az * az)
        self._buffer.append(abs(magnitude - 1.0))

        self._frame_counter += 1
        if self._frame_counter >= self._frames_per_update:
            self._frame_counter = 0
            if len(self._buffer) >= self.capacity // 2:
                self._last_bpm = self._estimate()
        return self._last_bpm

    def _estimate(self) -> int:
        energy = np.fromiter(self._buffer, dtype=np.float64, count=len(self._buffer))
        average = float(energy.mean())
        if average < self.min_movement:
            return 0

        above = energy > average * self.threshold_ratio
        # A beat is a rising edge; the first sample counts when it starts above.
        beats = int(above[0]) + int(np.count_nonzero(above[1:] & ~above[:-1]))

        duration = energy.size / self.frequency
        bpm = beats / duration * 60.0
        if bpm < self.bpm_min or bpm > self.bpm_max:
            return 0
        return int(bpm)


__all__ = ["RhythmEstimator"]
