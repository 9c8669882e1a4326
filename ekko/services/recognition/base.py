"""Music recognition service abstractions."""

from __future__ import annotations

import abc
from typing import Optional


class RecognitionError(RuntimeError):
    """Raised when the recognition backend cannot be reached or rejects a request."""


class ServiceConfigurationError(ValueError):
    """Raised when a backend is unknown or missing its configuration."""


class RecognitionService(abc.ABC):
    """Identify the music playing in a short audio excerpt."""

    @abc.abstractmethod
    def recognize(self, audio: bytes) -> Optional[str]:
        """Return the raw JSON response text, or ``None`` when nothing came back."""
        raise NotImplementedError


__all__ = ["RecognitionError", "RecognitionService", "ServiceConfigurationError"]
