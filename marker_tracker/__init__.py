"""Camera localization against an incrementally built ArUco marker graph."""

from .config import TrackerConfig
from .graph import TransformGraph, TransformLookupError
from .tracker import MarkerTracker
from .tracker_types import FrameResult, MarkerObservation, Pose
from .worker import TrackerWorker

__all__ = [
    "FrameResult",
    "MarkerObservation",
    "MarkerTracker",
    "Pose",
    "TrackerConfig",
    "TrackerWorker",
    "TransformGraph",
    "TransformLookupError",
]
