import numpy as np
import pytest

from marker_tracker.tracker_types import MarkerObservation
from marker_tracker.transforms import rvec_tvec_to_matrix


def observation(marker_id, tvec, rvec=(0.0, 0.0, 0.0)):
    """Detector hit with the marker at ``tvec`` (camera frame)."""
    return MarkerObservation(marker_id, rvec_tvec_to_matrix(np.array(rvec), np.array(tvec)))


@pytest.fixture
def make_obs():
    return observation


class ScriptedDetector:
    """Returns one canned observation list per detect() call."""

    def __init__(self, frames):
        self.frames = list(frames)
        self.images = []

    def detect(self, image):
        self.images.append(image)
        if self.frames:
            return self.frames.pop(0)
        return []


@pytest.fixture
def scripted_detector():
    return ScriptedDetector
