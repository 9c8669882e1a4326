"""Parsing of the delimited sensor log written during capture."""

from __future__ import annotations

import csv
import math
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, List, Optional, Sequence

from ...data.models import SENSOR_COLUMNS, SILENCE_DB, SensorSample
from ...logging import get_logger

LOGGER = get_logger(__name__)


class SensorLogError(RuntimeError):
    """Raised when the sensor log file itself cannot be read."""


@dataclass
class SensorLog:
    samples: List[SensorSample] = field(default_factory=list)
    skipped_rows: int = 0

    @property
    def duration(self) -> float:
        if len(self.samples) < 2:
            return 0.0
        return self.samples[-1].t - self.samples[0].t


def _optional_float(value: str, default: float) -> float:
    try:
        number = float(value)
    except ValueError:
        return default
    return number if math.isfinite(number) else default


def parse_sensor_row(cols: Sequence[str]) -> Optional[SensorSample]:
    """Return a sample for a well-formed row, ``None`` for a short or malformed one.

    Time, acceleration, rotation, attitude and BPM are required. Gravity,
    audio power and proximity fall back to neutral values when unreadable.
    """

    if len(cols) < len(SENSOR_COLUMNS):
        return None
    try:
        required = [float(cols[index]) for index in range(10)]
        bpm_value = float(cols[15])
    except ValueError:
        return None
    # nan and inf parse as floats but are as unusable as text.
    if not all(math.isfinite(value) for value in [*required, bpm_value]):
        return None

    t = required[0]
    accel = (required[1], required[2], required[3])
    gyro = (required[4], required[5], required[6])
    attitude = (required[7], required[8], required[9])
    bpm = int(bpm_value)

    gravity = (
        _optional_float(cols[10], 0.0),
        _optional_float(cols[11], 0.0),
        _optional_float(cols[12], 0.0),
    )
    return SensorSample(
        t=t,
        accel=accel,
        gyro=gyro,
        attitude=attitude,
        gravity=gravity,
        audio_power_db=_optional_float(cols[13], SILENCE_DB),
        proximity=cols[14].strip() in {"1", "true", "True"},
        recorded_bpm=bpm,
    )


def parse_sensor_rows(rows: Iterable[Sequence[str]]) -> SensorLog:
    log = SensorLog()
    for cols in rows:
        sample = parse_sensor_row(cols)
        if sample is None:
            log.skipped_rows += 1
            continue
        log.samples.append(sample)
    return log


def read_sensor_log(path: Path) -> SensorLog:
    """Read a sensor CSV, skipping the header row and any malformed rows."""

    try:
        with open(path, newline="", encoding="utf-8", errors="replace") as handle:
            reader = csv.reader(handle)
            next(reader, None)
            log = parse_sensor_rows(reader)
    except (OSError, csv.Error) as exc:
        raise SensorLogError(f"Unable to read sensor log {path}: {exc}") from exc

    if log.skipped_rows:
        LOGGER.warning("Skipped %d malformed rows in %s", log.skipped_rows, Path(path).name)
    LOGGER.info("Loaded %d sensor samples from %s", len(log.samples), Path(path).name)
    return log


__all__ = [
    "SensorLog",
    "SensorLogError",
    "parse_sensor_row",
    "parse_sensor_rows",
    "read_sensor_log",
]
