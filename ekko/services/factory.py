"""Factories for runtime service selection."""

from __future__ import annotations

from typing import Optional

from .recognition.base import RecognitionService, ServiceConfigurationError
from .recognition.dummy import DummyRecognitionService


def _normalise(name: Optional[str]) -> str:
    if not name:
        return "none"
    return name.strip().lower()


def resolve_recognition_backend(name: Optional[str]) -> Optional[RecognitionService]:
    backend = _normalise(name)
    if backend in {"", "none", "off"}:
        return None
    if backend == "dummy":
        return DummyRecognitionService()
    if backend == "acrcloud":
        from .recognition.acrcloud import ACRCloudRecognitionService

        return ACRCloudRecognitionService()
    raise ServiceConfigurationError(f"Unknown recognition backend: {name}")


__all__ = ["ServiceConfigurationError", "resolve_recognition_backend"]
