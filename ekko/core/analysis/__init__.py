"""Scoring, selection and filtering of highlight candidates."""

from .filtering import MomentFilter
from .peaks import PeakDetector, yaw_delta
from .rhythm import RhythmEstimator
from .selection import CandidateSelector

__all__ = ["CandidateSelector", "MomentFilter", "PeakDetector", "RhythmEstimator", "yaw_delta"]
