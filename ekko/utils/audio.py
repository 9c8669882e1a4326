"""Audio processing utilities."""

from __future__ import annotations

import io
import wave
from pathlib import Path
from typing import Tuple

import numpy as np


class ExcerptError(RuntimeError):
    """Raised when an audio excerpt cannot be cut from a timeline."""


def read_wave(path: Path) -> Tuple[np.ndarray, int]:
    with wave.open(str(path), "rb") as wf:
        frames = wf.readframes(wf.getnframes())
        channels = wf.getnchannels()
        sample_rate = wf.getframerate()
    data = np.frombuffer(frames, dtype=np.int16).astype(np.float32)
    if channels > 1:
        data = data.reshape(-1, channels)
    else:
        data = data.reshape(-1, 1)
    data /= 32767.0
    return data, sample_rate


def write_wave(path: Path, data: np.ndarray, sample_rate: int) -> None:
    if data.ndim == 1:
        data = data[:, np.newaxis]
    data = np.clip(data, -1.0, 1.0)
    int16 = (data * 32767.0).astype(np.int16)
    with wave.open(str(path), "wb") as wf:
        wf.setnchannels(data.shape[1])
        wf.setsampwidth(2)
        wf.setframerate(sample_rate)
        wf.writeframes(int16.tobytes())


def wave_info(path: Path) -> Tuple[float, int]:
    """Return ``(duration_seconds, sample_rate)`` read from the WAV header."""

    with wave.open(str(path), "rb") as wf:
        frames = wf.getnframes()
        sample_rate = wf.getframerate()
    if sample_rate <= 0:
        raise ValueError(f"Invalid sample rate in {path}")
    return frames / float(sample_rate), sample_rate


def ensure_mono(data: np.ndarray) -> np.ndarray:
    if data.ndim == 1 or data.shape[1] == 1:
        return data.reshape(-1, 1)
    return data.mean(axis=1, keepdims=True)


def resample(array: np.ndarray, sr: int, target_sr: int) -> np.ndarray:
    if sr == target_sr:
        return array
    mono = array[:, 0]
    length = mono.shape[0]
    if length == 0:
        return mono.reshape(0, 1)
    target_length = max(int(round(length * target_sr / sr)), 1)
    if target_length == 1:
        return np.full((1, 1), mono[0], dtype=array.dtype)
    original_positions = np.linspace(0, length - 1, num=length)
    target_positions = np.linspace(0, length - 1, num=target_length)
    resampled = np.interp(target_positions, original_positions, mono).astype(array.dtype, copy=False)
    return resampled.reshape(-1, 1)


def extract_excerpt(path: Path, start: float, duration: float) -> bytes:
    """Cut ``duration`` seconds starting at ``start`` and return them as WAV bytes.

    Reads only the requested frames. The excerpt is shortened when it runs
    past the end of the file; an excerpt that would be empty is an error.
    """

    if duration <= 0:
        raise ExcerptError("Excerpt duration must be positive")
    try:
        with wave.open(str(path), "rb") as source:
            sample_rate = source.getframerate()
            total_frames = source.getnframes()
            first = int(max(0.0, start) * sample_rate)
            if first >= total_frames:
                raise ExcerptError(f"Excerpt at {start:.1f}s starts past the end of {path.name}")
            count = min(int(duration * sample_rate), total_frames - first)
            source.setpos(first)
            frames = source.readframes(count)
            params = source.getparams()
    except (OSError, EOFError, wave.Error) as exc:
        raise ExcerptError(f"Unable to read {path}: {exc}") from exc

    buffer = io.BytesIO()
    with wave.open(buffer, "wb") as target:
        target.setnchannels(params.nchannels)
        target.setsampwidth(params.sampwidth)
        target.setframerate(params.framerate)
        target.writeframes(frames)
    return buffer.getvalue()


__all__ = [
    "ExcerptError",
    "ensure_mono",
    "extract_excerpt",
    "read_wave",
    "resample",
    "wave_info",
    "write_wave",
]
