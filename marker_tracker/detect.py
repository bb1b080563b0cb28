from __future__ import annotations

import logging
from typing import Optional

import cv2
import numpy as np

from .calibration import CameraCalibration
from .tracker_types import MarkerObservation
from .transforms import opencv_to_ros_axes, rvec_tvec_to_matrix

logger = logging.getLogger(__name__)


def get_dict(name: str):
    """
    ArUco dictionary resolver.
    Falls back to 4x4_50 if name not recognized.
    Works on OpenCV >= 4.7 (getPredefinedDictionary) and older (Dictionary_get).
    """
    key = (name or "").strip().lower()
    if key.startswith("dict_"):
        key = key[5:]
    table = {
        "4x4_50":  cv2.aruco.DICT_4X4_50,
        "4x4_100": cv2.aruco.DICT_4X4_100,
        "5x5_50":  cv2.aruco.DICT_5X5_50,
        "5x5_100": cv2.aruco.DICT_5X5_100,
        "6x6_50":  cv2.aruco.DICT_6X6_50,
        "6x6_100": cv2.aruco.DICT_6X6_100,
        "7x7_50":  cv2.aruco.DICT_7X7_50,
        "7x7_100": cv2.aruco.DICT_7X7_100,
        "original": cv2.aruco.DICT_ARUCO_ORIGINAL,
    }
    if key not in table:
        logger.warning("Unknown ArUco dictionary %r, using 4x4_50", name)
    code = table.get(key, cv2.aruco.DICT_4X4_50)

    if hasattr(cv2.aruco, "getPredefinedDictionary"):
        return cv2.aruco.getPredefinedDictionary(code)
    return cv2.aruco.Dictionary_get(code)


def _make_params():
    """Create detector parameters across OpenCV versions."""
    if hasattr(cv2.aruco, "DetectorParameters_create"):
        return cv2.aruco.DetectorParameters_create()
    return cv2.aruco.DetectorParameters()


def marker_object_points(marker_size_m: float) -> np.ndarray:
    """Marker corners in the marker frame, ArUco order TL, TR, BR, BL."""
    h = 0.5 * float(marker_size_m)
    return np.array(
        [
            [-h, h, 0.0],
            [h, h, 0.0],
            [h, -h, 0.0],
            [-h, -h, 0.0],
        ],
        dtype=np.float64,
    )


class ArucoPoseDetector:
    """
    Detects ArUco markers and estimates each marker's pose in the camera frame.

    Returns MarkerObservation objects carrying a float64 camera_T_marker. With
    axis_convention="ros" the marker axes are remapped the way the pose graph
    expects them.
    """

    def __init__(
        self,
        calibration: CameraCalibration,
        marker_size_m: float,
        dict_name: str = "4x4_50",
        axis_convention: str = "ros",
    ):
        if marker_size_m <= 0:
            raise ValueError("marker_size_m must be positive")
        self.calibration = calibration
        self.marker_size_m = float(marker_size_m)
        self.axis_convention = axis_convention
        self.dictionary = get_dict(dict_name)
        self.params = _make_params()
        self._detector = None
        # Prefer the newer ArucoDetector API if present
        if hasattr(cv2.aruco, "ArucoDetector"):
            self._detector = cv2.aruco.ArucoDetector(self.dictionary, self.params)

    def detect_corners(self, image):
        if self._detector is not None:
            corners, ids, _rej = self._detector.detectMarkers(image)
        else:
            corners, ids, _rej = cv2.aruco.detectMarkers(
                image, self.dictionary, parameters=self.params
            )
        return corners, ids

    def estimate_pose(self, corners) -> Optional[tuple[np.ndarray, np.ndarray]]:
        K = self.calibration.camera_matrix
        dist = self.calibration.dist_coeffs
        if hasattr(cv2.aruco, "estimatePoseSingleMarkers"):
            rvecs, tvecs, _ = cv2.aruco.estimatePoseSingleMarkers(
                [corners], self.marker_size_m, K, dist
            )
            return rvecs[0], tvecs[0]
        img_pts = np.asarray(corners, dtype=np.float64).reshape(4, 2)
        ok, rvec, tvec = cv2.solvePnP(
            marker_object_points(self.marker_size_m),
            img_pts,
            K,
            dist,
            flags=cv2.SOLVEPNP_IPPE_SQUARE,
        )
        if not ok:
            return None
        return rvec, tvec

    def detect(self, image) -> list[MarkerObservation]:
        corners, ids = self.detect_corners(image)

        observations: list[MarkerObservation] = []
        if ids is None or len(ids) == 0:
            return observations
        for i, mid in enumerate(np.asarray(ids).flatten()):
            pose = self.estimate_pose(corners[i])
            if pose is None:
                logger.debug("pose estimation failed for marker %d", int(mid))
                continue
            T = rvec_tvec_to_matrix(*pose)
            if self.axis_convention == "ros":
                T = opencv_to_ros_axes(T)
            observations.append(MarkerObservation(int(mid), T, corners[i]))
        return observations
