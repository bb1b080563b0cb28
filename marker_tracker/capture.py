import re
import time
from abc import ABC, abstractmethod
from typing import Any

import cv2
import numpy as np

from .tracker_types import Frame

_V4L2_NODE = re.compile(r"^/dev/video(\d+)$")


def open_video_source(device: int | str) -> Any:
    """cv2.VideoCapture for a camera index, a /dev/videoN node, or a file/stream URL."""
    if isinstance(device, int):
        return cv2.VideoCapture(device, cv2.CAP_V4L2)
    match = _V4L2_NODE.match(str(device))
    if match:
        return cv2.VideoCapture(int(match.group(1)), cv2.CAP_V4L2)
    return cv2.VideoCapture(str(device))


def to_gray(img: np.ndarray) -> np.ndarray:
    if img.ndim == 3:
        return cv2.cvtColor(img, cv2.COLOR_BGR2GRAY)
    return img


class BaseCapture(ABC):
    """Source of grayscale frames for the tracker, numbered from 1."""

    idx: int = 0

    @abstractmethod
    def start(self) -> None: ...

    @abstractmethod
    def next_frame(self) -> Frame | None: ...

    @abstractmethod
    def stop(self) -> None: ...

    def _stamp(self, img: np.ndarray) -> Frame:
        self.idx += 1
        return Frame(self.idx, time.strftime("%Y-%m-%dT%H:%M:%S"), img)


class USBOpenCVCapture(BaseCapture):
    def __init__(self, device: int | str, fps: int, width: int, height: int):
        self.device = device
        self.fps = fps
        self.width = width
        self.height = height
        self.cap: Any = None
        self.idx = 0

    def start(self) -> None:
        self.cap = open_video_source(self.device)
        self.cap.set(cv2.CAP_PROP_FRAME_WIDTH, self.width)
        self.cap.set(cv2.CAP_PROP_FRAME_HEIGHT, self.height)
        self.cap.set(cv2.CAP_PROP_FPS, self.fps)

        if not self.cap.isOpened():
            raise RuntimeError(f"Failed to open camera: {self.device}")

    def next_frame(self) -> Frame | None:
        ok, img = self.cap.read()
        if not ok:
            return None
        return self._stamp(to_gray(img))

    def stop(self) -> None:
        if self.cap is not None:
            self.cap.release()
            self.cap = None


class SyntheticCapture(BaseCapture):
    """Blank frames paced at ``fps`` (no pacing when fps <= 0), for dry runs."""

    def __init__(self, fps: int, width: int, height: int):
        self.fps = fps
        self.shape = (height, width)
        self.idx = 0
        self._due = 0.0

    def start(self) -> None:
        self._due = time.monotonic()

    def next_frame(self) -> Frame | None:
        if self.fps > 0:
            delay = self._due - time.monotonic()
            if delay > 0:
                time.sleep(delay)
            self._due = max(self._due, time.monotonic()) + 1.0 / self.fps
        return self._stamp(np.zeros(self.shape, dtype=np.uint8))

    def stop(self) -> None:
        return None
