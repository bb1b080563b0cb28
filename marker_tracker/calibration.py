"""Camera calibration loading.

Two on-disk formats are understood:

- OpenCV FileStorage (``.yml``/``.yaml``/``.xml``/``.json``) with the nodes
  ``camera_matrix``, ``dist_coeffs``, ``image_width`` and ``image_height``.
- ROS camera-calibration ``.ini`` files (``[image]`` width/height followed by
  ``camera matrix`` and ``distortion`` blocks).

Calibration problems never stop tracking: they are logged as warnings and a
degraded calibration is returned instead.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Tuple

import cv2
import numpy as np

logger = logging.getLogger(__name__)


@dataclass
class CameraCalibration:
    camera_matrix: np.ndarray  # (3,3)
    dist_coeffs: np.ndarray  # (5,1)
    image_size: Tuple[int, int]  # (width, height)
    valid: bool = True

    @classmethod
    def default(cls, width: int = 640, height: int = 480) -> "CameraCalibration":
        """Pinhole guess centred on the image, no distortion."""
        f = float(max(width, height))
        K = np.array([
            [f, 0.0, width / 2.0],
            [0.0, f, height / 2.0],
            [0.0, 0.0, 1.0],
        ])
        return cls(K, np.zeros((5, 1)), (int(width), int(height)), valid=False)


def check_calibration(calib: CameraCalibration) -> bool:
    """Simple check that the calibration data meets the expected values."""
    K = np.asarray(calib.camera_matrix, dtype=np.float64).reshape(3, 3)
    dist = np.asarray(calib.dist_coeffs, dtype=np.float64).reshape(-1)
    ok = K[2, 2] == 1 and dist.size >= 5 and dist[4] == 0
    if ok:
        logger.info("Calibration data loaded successfully")
    else:
        logger.warning("Wrong calibration data, check calibration file and filepath")
    return ok


def _as_calibration(K, dist, size) -> CameraCalibration:
    K = np.asarray(K, dtype=np.float64).reshape(3, 3)
    dist = np.asarray(dist, dtype=np.float64).reshape(-1)
    if dist.size < 5:
        dist = np.concatenate([dist, np.zeros(5 - dist.size)])
    return CameraCalibration(K, dist[:5].reshape(5, 1), (int(size[0]), int(size[1])))


def load_calib(path: str) -> Tuple[np.ndarray, np.ndarray, tuple[int, int]]:
    fs = cv2.FileStorage(path, cv2.FILE_STORAGE_READ)
    try:
        if not fs.isOpened():
            raise ValueError(f"cannot open calibration file: {path}")
        K = fs.getNode("camera_matrix").mat()
        dist = fs.getNode("dist_coeffs").mat()
        w = int(fs.getNode("image_width").real()); h = int(fs.getNode("image_height").real())
    finally:
        fs.release()
    if K is None or dist is None:
        raise ValueError(f"camera_matrix/dist_coeffs missing in {path}")
    return K, dist, (w, h)


def _floats(line: str) -> list[float]:
    out = []
    for tok in line.split():
        try:
            out.append(float(tok))
        except ValueError:
            return []
    return out


def parse_ros_ini(text: str) -> Tuple[np.ndarray, np.ndarray, tuple[int, int]]:
    """Parse the body of a ROS camera-calibration ``.ini`` file."""
    lines = [ln.split("#", 1)[0].strip() for ln in text.splitlines()]
    lines = [ln for ln in lines if ln]

    def block(key: str, count: int) -> list[float]:
        try:
            start = lines.index(key)
        except ValueError:
            raise ValueError(f"'{key}' block missing") from None
        values: list[float] = []
        for ln in lines[start + 1:]:
            nums = _floats(ln)
            if not nums:
                break
            values.extend(nums)
            if len(values) >= count:
                break
        if len(values) < count:
            raise ValueError(f"'{key}' block needs {count} values, found {len(values)}")
        return values[:count]

    width = int(block("width", 1)[0])
    height = int(block("height", 1)[0])
    K = np.array(block("camera matrix", 9)).reshape(3, 3)
    try:
        dist = np.array(block("distortion", 5))
    except ValueError:
        dist = np.array(block("distortion", 4))
    return K, dist, (width, height)


def load_calibration(path: str | Path | None, width: int = 640, height: int = 480) -> CameraCalibration:
    """Load calibration from ``path``; degrades to a default with a warning."""
    if not path:
        logger.warning("Calibration filename empty! Check the config file paths")
        return CameraCalibration.default(width, height)

    p = Path(path)
    if not p.exists():
        logger.warning("Calibration file not found: %s", p)
        return CameraCalibration.default(width, height)

    try:
        if p.suffix.lower() == ".ini":
            K, dist, size = parse_ros_ini(p.read_text(encoding="utf-8"))
        else:
            K, dist, size = load_calib(str(p))
        calib = _as_calibration(K, dist, size)
    except (ValueError, cv2.error) as exc:
        logger.warning("Not able to parse calibration file %s: %s", p, exc)
        return CameraCalibration.default(width, height)

    logger.info("Calibration file path: %s", p)
    logger.debug("Image width: %d height: %d", *calib.image_size)
    logger.debug("Intrinsics:\n%s", calib.camera_matrix)
    logger.debug("Distortion: %s", calib.dist_coeffs.ravel())
    calib.valid = check_calibration(calib)
    return calib
