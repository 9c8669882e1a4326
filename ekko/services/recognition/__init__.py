"""Music recognition services."""

from .base import RecognitionError, RecognitionService, ServiceConfigurationError
from .dummy import DummyRecognitionService
from .parsing import parse_recognition_result

__all__ = [
    "DummyRecognitionService",
    "RecognitionError",
    "RecognitionService",
    "ServiceConfigurationError",
    "parse_recognition_result",
]
