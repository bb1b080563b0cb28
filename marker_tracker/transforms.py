"""SE(3) transformation utilities for marker pose handling.

All transforms are 4x4 homogeneous float64 matrices written ``T_parent_child``:
they map points expressed in the child frame into the parent frame.
"""

import warnings

import numpy as np
import cv2
from scipy.spatial.transform import Rotation
from typing import Tuple


# Remaps the OpenCV marker axes onto the ROS convention used by the pose graph.
OPENCV_TO_ROS = np.array(
    [
        [-1.0, 0.0, 0.0],
        [0.0, 0.0, 1.0],
        [0.0, 1.0, 0.0],
    ]
)


def identity_transform() -> np.ndarray:
    return np.eye(4, dtype=np.float64)


def as_transform(T) -> np.ndarray:
    """Upconvert to a float64 4x4 matrix, rejecting anything else."""
    T = np.asarray(T, dtype=np.float64)
    if T.shape != (4, 4):
        raise ValueError(f"transform must be (4, 4), got {T.shape}")
    return T


def make_transform(R: np.ndarray, t: np.ndarray) -> np.ndarray:
    T = np.eye(4, dtype=np.float64)
    T[:3, :3] = np.asarray(R, dtype=np.float64).reshape(3, 3)
    T[:3, 3] = np.asarray(t, dtype=np.float64).reshape(3)
    return T


def rvec_tvec_to_matrix(rvec: np.ndarray, tvec: np.ndarray) -> np.ndarray:
    """
    Convert rotation vector and translation vector to 4x4 transformation matrix.

    Args:
        rvec: Rotation vector (3,) or (3,1)
        tvec: Translation vector (3,) or (3,1)

    Returns:
        4x4 homogeneous transformation matrix (float64)
    """
    rvec = np.asarray(rvec, dtype=np.float64).reshape(3)
    tvec = np.asarray(tvec, dtype=np.float64).reshape(3)

    R, _ = cv2.Rodrigues(rvec)

    return make_transform(R, tvec)


def matrix_to_rvec_tvec(T: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """
    Convert 4x4 transformation matrix to rotation vector and translation vector.

    Returns:
        (rvec, tvec) where rvec is (3,1) and tvec is (3,1)
    """
    T = as_transform(T)
    R = T[:3, :3]
    tvec = T[:3, 3].reshape(3, 1)

    rvec, _ = cv2.Rodrigues(R)

    return rvec, tvec


def invert_transform(T: np.ndarray) -> np.ndarray:
    """
    Invert a 4x4 homogeneous transformation matrix.

    For SE(3): T^-1 = [R^T, -R^T * t; 0, 1]
    """
    T = as_transform(T)
    T_inv = np.eye(4, dtype=np.float64)
    R = T[:3, :3]
    t = T[:3, 3]

    R_T = R.T
    T_inv[:3, :3] = R_T
    T_inv[:3, 3] = -R_T @ t

    return T_inv


def compose_transforms(*transforms: np.ndarray) -> np.ndarray:
    """Chain transforms left to right: compose(T_a_b, T_b_c) == T_a_c."""
    out = identity_transform()
    for T in transforms:
        out = out @ as_transform(T)
    return out


def compute_relative_pose(T_cam_ref: np.ndarray, T_cam_target: np.ndarray) -> np.ndarray:
    """
    Compute pose of target relative to reference frame.

    Given:
        T_cam_ref: pose of reference marker in camera frame
        T_cam_target: pose of target marker in camera frame

    Compute:
        T_ref_target = inv(T_cam_ref) @ T_cam_target

    Both inputs must come from the same camera image.
    """
    T_ref_cam = invert_transform(T_cam_ref)
    return T_ref_cam @ as_transform(T_cam_target)


def opencv_to_ros_axes(T_cam_marker: np.ndarray) -> np.ndarray:
    """Re-express a detector marker frame with the ROS axis convention."""
    T = as_transform(T_cam_marker).copy()
    T[:3, :3] = T[:3, :3] @ OPENCV_TO_ROS
    return T


def quaternion_to_rotation_matrix(q) -> np.ndarray:
    """Quaternion ordered (x, y, z, w) to a 3x3 rotation matrix; normalized first."""
    return Rotation.from_quat(np.asarray(q, dtype=np.float64).reshape(4)).as_matrix()


def rotation_matrix_to_quaternion(R: np.ndarray) -> Tuple[float, float, float, float]:
    """3x3 rotation matrix to a unit quaternion (x, y, z, w) with w >= 0."""
    q = Rotation.from_matrix(np.asarray(R, dtype=np.float64).reshape(3, 3)).as_quat()
    if q[3] < 0:
        q = -q
    return float(q[0]), float(q[1]), float(q[2]), float(q[3])


def rpy_to_rotation_matrix(roll: float, pitch: float, yaw: float) -> np.ndarray:
    """Fixed-axis XYZ angles: R = Rz(yaw) @ Ry(pitch) @ Rx(roll)."""
    return Rotation.from_euler("ZYX", [yaw, pitch, roll]).as_matrix()


def rotation_matrix_to_rpy(R: np.ndarray) -> Tuple[float, float, float]:
    """
    Inverse of :func:`rpy_to_rotation_matrix`, returns (roll, pitch, yaw).

    At gimbal lock (pitch = +-pi/2) roll is reported as 0 and folded into yaw.
    """
    rot = Rotation.from_matrix(np.asarray(R, dtype=np.float64).reshape(3, 3))
    with warnings.catch_warnings():
        warnings.simplefilter("ignore", UserWarning)
        yaw, pitch, roll = rot.as_euler("ZYX")
    return float(roll), float(pitch), float(yaw)


def apply_planar_constraint(T: np.ndarray) -> np.ndarray:
    """
    Project a transform onto the horizontal plane.

    Roll, pitch and the vertical (z) translation are zeroed; yaw and the
    in-plane x/y translation are kept. Applying it twice equals applying it once.
    """
    T = as_transform(T)
    _roll, _pitch, yaw = rotation_matrix_to_rpy(T[:3, :3])
    t = T[:3, 3].copy()
    t[2] = 0.0
    return make_transform(rpy_to_rotation_matrix(0.0, 0.0, yaw), t)
