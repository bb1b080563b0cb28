from unittest.mock import MagicMock

import cv2
import numpy as np
import pytest

from marker_tracker.calibration import CameraCalibration
from marker_tracker.detect import ArucoPoseDetector, get_dict, marker_object_points


def _detector(axis_convention="ros"):
    return ArucoPoseDetector(CameraCalibration.default(640, 480), 0.1, "4x4_50", axis_convention)


def test_get_dict_accepts_prefixed_names():
    a = get_dict("DICT_5X5_100")
    b = get_dict("5x5_100")
    assert np.array_equal(a.bytesList, b.bytesList)


def test_get_dict_unknown_falls_back(caplog):
    d = get_dict("9x9_1")
    assert np.array_equal(d.bytesList, get_dict("4x4_50").bytesList)
    assert "Unknown ArUco dictionary" in caplog.text


def test_marker_object_points_order():
    pts = marker_object_points(0.2)
    assert pts.shape == (4, 3)
    assert pts[0].tolist() == [-0.1, 0.1, 0.0]
    assert pts[2].tolist() == [0.1, -0.1, 0.0]


def test_rejects_non_positive_marker_size():
    with pytest.raises(ValueError):
        ArucoPoseDetector(CameraCalibration.default(), 0.0)


def test_detect_builds_observations_with_axis_remap():
    det = _detector("ros")
    corners = [np.zeros((1, 4, 2), dtype=np.float32), np.ones((1, 4, 2), dtype=np.float32)]
    det.detect_corners = MagicMock(return_value=(corners, np.array([[7], [3]])))
    det.estimate_pose = MagicMock(side_effect=[
        (np.zeros(3), np.array([0.1, 0.2, 1.0])),
        None,
    ])

    obs = det.detect(np.zeros((480, 640), dtype=np.uint8))

    assert [o.marker_id for o in obs] == [7]
    T = obs[0].camera_T_marker
    assert T.dtype == np.float64
    assert np.allclose(T[:3, 3], [0.1, 0.2, 1.0])
    assert np.allclose(T[:3, :3], [[-1, 0, 0], [0, 0, 1], [0, 1, 0]])


def test_detect_opencv_convention_keeps_rotation():
    det = _detector("opencv")
    det.detect_corners = MagicMock(return_value=([np.zeros((1, 4, 2))], np.array([[1]])))
    det.estimate_pose = MagicMock(return_value=(np.zeros(3), np.array([0.0, 0.0, 2.0])))

    T = det.detect(None)[0].camera_T_marker

    assert np.allclose(T[:3, :3], np.eye(3))


def test_detect_no_markers():
    det = _detector()
    det.detect_corners = MagicMock(return_value=((), None))
    assert det.detect(None) == []


def test_detects_rendered_marker():
    side = 200
    marker = cv2.aruco.generateImageMarker(get_dict("4x4_50"), 5, side)
    image = np.full((480, 640), 255, dtype=np.uint8)
    image[140:140 + side, 220:220 + side] = marker

    obs = _detector("opencv").detect(image)

    assert [o.marker_id for o in obs] == [5]
    T = obs[0].camera_T_marker
    # f = 640 px, 0.1 m marker spanning 200 px
    assert T[2, 3] == pytest.approx(0.32, abs=0.02)
    assert abs(T[0, 3]) < 0.02 and abs(T[1, 3]) < 0.02
