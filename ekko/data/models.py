"""Data models used by EKKO."""

from __future__ import annotations

import time
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

Vector3 = Tuple[float, float, float]

SENSOR_COLUMNS = (
    "timestamp",
    "accel_x",
    "accel_y",
    "accel_z",
    "gyro_x",
    "gyro_y",
    "gyro_z",
    "attitude_roll",
    "attitude_pitch",
    "attitude_yaw",
    "gravity_x",
    "gravity_y",
    "gravity_z",
    "audio_power_db",
    "proximity",
    "bpm",
)

SILENCE_DB = -160.0


@dataclass(frozen=True)
class SensorSample:
    """One row of the motion/audio-level log, captured at a fixed frequency."""

    t: float
    accel: Vector3
    gyro: Vector3
    attitude: Vector3
    gravity: Vector3 = (0.0, 0.0, 0.0)
    audio_power_db: float = SILENCE_DB
    proximity: bool = False
    recorded_bpm: int = 0

    @property
    def yaw(self) -> float:
        return self.attitude[2]

    def to_row(self) -> List[str]:
        return [
            repr(self.t),
            *(repr(value) for value in self.accel),
            *(repr(value) for value in self.gyro),
            *(repr(value) for value in self.attitude),
            *(repr(value) for value in self.gravity),
            repr(self.audio_power_db),
            "1" if self.proximity else "0",
            str(int(self.recorded_bpm)),
        ]


@dataclass(frozen=True)
class AudioSegment:
    """A recorded audio file and the wall-clock time it started at."""

    source: Path
    start_timestamp: float
    duration: float
    sample_rate: int = 0


@dataclass(frozen=True, order=True)
class ValidAudioRange:
    """Session-relative span of the merged timeline that holds real audio."""

    start: float
    end: float

    def contains(self, t: float) -> bool:
        return self.start <= t <= self.end

    @property
    def duration(self) -> float:
        return self.end - self.start


@dataclass(frozen=True)
class PeakCandidate:
    """Averaged PartyPower for one sliding window, keyed by its start offset."""

    t: float
    score: float
    bpm: int
    db: float


class RecognizedSong(BaseModel):
    model_config = ConfigDict(frozen=True)

    title: str
    artist: str = ""


class HighlightMoment(BaseModel):
    model_config = ConfigDict(frozen=True)

    timestamp: float
    peak_score: float
    song: Optional[RecognizedSong] = None
    user_bpm: int = 0
    music_bpm: int = 0
    average_db: float = SILENCE_DB

    @property
    def title(self) -> Optional[str]:
        return self.song.title if self.song else None

    def to_saved(self, unknown_title: str = "Unknown") -> "SavedMoment":
        return SavedMoment(
            timestamp=self.timestamp,
            title=self.song.title if self.song else unknown_title,
            artist=self.song.artist if self.song else "",
            user_bpm=self.user_bpm,
            music_bpm=self.music_bpm,
            average_db=self.average_db,
            score=self.peak_score,
        )


class SavedMoment(BaseModel):
    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    timestamp: float
    title: str
    artist: str = ""
    user_bpm: int = 0
    music_bpm: int = 0
    average_db: float = SILENCE_DB
    score: float = 0.0


class PartyReport(BaseModel):
    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    date: float = Field(default_factory=time.time)
    duration: float
    moments: List[SavedMoment] = Field(default_factory=list)


__all__ = [
    "AudioSegment",
    "HighlightMoment",
    "PartyReport",
    "PeakCandidate",
    "RecognizedSong",
    "SENSOR_COLUMNS",
    "SILENCE_DB",
    "SavedMoment",
    "SensorSample",
    "ValidAudioRange",
    "Vector3",
]
