"""Audio timeline package."""

from .timeline import MergeResult, MergeStatus, TimelineReconciler

__all__ = ["MergeResult", "MergeStatus", "TimelineReconciler"]
