"""Buffered CSV writer used while sensor data is being captured."""

from __future__ import annotations

import csv
from pathlib import Path
from typing import List, Optional

from ...config import Settings, get_settings
from ...data.models import SENSOR_COLUMNS, SILENCE_DB, SensorSample, Vector3
from ..analysis.rhythm import RhythmEstimator


class SensorLogWriter:
    """Append sensor rows to disk, stamping each one with the live BPM estimate.

    Rows are held in memory and flushed every ``buffer_rows`` rows so the
    capture loop does not hit the disk at sensor frequency.
    """

    def __init__(
        self,
        path: Path,
        estimator: Optional[RhythmEstimator] = None,
        buffer_rows: int = 250,
    ) -> None:
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.estimator = estimator or RhythmEstimator()
        self.buffer_rows = max(buffer_rows, 1)
        self._pending: List[SensorSample] = []
        self._rows_written = 0
        self._handle = open(self.path, "w", newline="", encoding="utf-8")
        self._writer = csv.writer(self._handle, lineterminator="\n")
        self._writer.writerow(SENSOR_COLUMNS)
        self._handle.flush()

    @classmethod
    def from_settings(cls, path: Path, settings: Optional[Settings] = None) -> "SensorLogWriter":
        settings = settings or get_settings()
        return cls(
            path,
            estimator=RhythmEstimator.from_settings(settings),
            buffer_rows=settings.sensor_buffer_rows,
        )

    def write(
        self,
        t: float,
        accel: Vector3,
        gyro: Vector3,
        attitude: Vector3,
        gravity: Vector3 = (0.0, 0.0, 0.0),
        audio_power_db: float = SILENCE_DB,
        proximity: bool = False,
    ) -> SensorSample:
        """Record one reading and return it with its BPM column filled in."""

        bpm = self.estimator.process(*accel)
        sample = SensorSample(
            t=t,
            accel=accel,
            gyro=gyro,
            attitude=attitude,
            gravity=gravity,
            audio_power_db=audio_power_db,
            proximity=proximity,
            recorded_bpm=bpm,
        )
        self._pending.append(sample)
        if len(self._pending) >= self.buffer_rows:
            self.flush()
        return sample

    def flush(self) -> None:
        if not self._pending:
            return
        self._writer.writerows(sample.to_row() for sample in self._pending)
        self._handle.flush()
        self._rows_written += len(self._pending)
        self._pending.clear()

    @property
    def rows_written(self) -> int:
        return self._rows_written

    @property
    def pending_rows(self) -> int:
        return len(self._pending)

    def close(self) -> None:
        if self._handle.closed:
            return
        self.flush()
        self._handle.close()

    def __enter__(self) -> "SensorLogWriter":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


__all__ = ["SensorLogWriter"]
