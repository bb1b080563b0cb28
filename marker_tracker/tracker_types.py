from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional

import numpy as np

from .transforms import (
    identity_transform,
    make_transform,
    quaternion_to_rotation_matrix,
    rotation_matrix_to_quaternion,
)

# parent_id sentinels
NO_PARENT = -1
ROOT = -2


@dataclass
class Frame:
    idx: int
    ts_iso: str
    image: Any  # numpy array


@dataclass(frozen=True)
class Pose:
    """Position + (x, y, z, w) orientation quaternion of a frame."""

    x: float = 0.0
    y: float = 0.0
    z: float = 0.0
    qx: float = 0.0
    qy: float = 0.0
    qz: float = 0.0
    qw: float = 1.0

    @classmethod
    def identity(cls) -> "Pose":
        return cls()

    @classmethod
    def from_matrix(cls, T: np.ndarray) -> "Pose":
        T = np.asarray(T, dtype=np.float64)
        qx, qy, qz, qw = rotation_matrix_to_quaternion(T[:3, :3])
        return cls(float(T[0, 3]), float(T[1, 3]), float(T[2, 3]), qx, qy, qz, qw)

    def to_matrix(self) -> np.ndarray:
        R = quaternion_to_rotation_matrix((self.qx, self.qy, self.qz, self.qw))
        return make_transform(R, self.position)

    @property
    def position(self) -> np.ndarray:
        return np.array([self.x, self.y, self.z], dtype=np.float64)

    @property
    def orientation(self) -> np.ndarray:
        return np.array([self.qx, self.qy, self.qz, self.qw], dtype=np.float64)

    def as_dict(self) -> dict[str, float]:
        return {
            "x": self.x, "y": self.y, "z": self.z,
            "qx": self.qx, "qy": self.qy, "qz": self.qz, "qw": self.qw,
        }


@dataclass
class MarkerObservation:
    """One detector hit: pose of the marker in the camera frame."""

    marker_id: int
    camera_T_marker: np.ndarray  # (4,4) float64
    corners: Any = None  # (4,2) ndarray, when the detector supplies it


@dataclass
class MarkerRecord:
    marker_id: int
    parent_id: int = NO_PARENT
    transform_to_parent: Optional[np.ndarray] = None
    transform_to_world: np.ndarray = field(default_factory=identity_transform)
    world_resolved: bool = False
    # T_marker_camera: where the camera sits, seen from this marker
    camera_pose_local: np.ndarray = field(default_factory=identity_transform)
    visible: bool = False

    @property
    def is_anchor(self) -> bool:
        return self.parent_id == ROOT

    @property
    def is_linked(self) -> bool:
        return self.parent_id != NO_PARENT

    @property
    def camera_distance(self) -> float:
        return float(np.linalg.norm(self.camera_pose_local[:3, 3]))

    @property
    def pose_to_world(self) -> Optional[Pose]:
        if not self.world_resolved:
            return None
        return Pose.from_matrix(self.transform_to_world)


@dataclass
class TrackerState:
    """Session-wide tracking state owned by the frame orchestrator."""

    anchor_id: Optional[int] = None
    closest_marker_id: Optional[int] = None
    camera_world_transform: np.ndarray = field(default_factory=identity_transform)
    camera_world_pose: Pose = field(default_factory=Pose.identity)
    frames_processed: int = 0


@dataclass
class CameraFix:
    any_visible: bool
    num_visible: int = 0
    closest_marker_id: Optional[int] = None
    resolved: bool = False


@dataclass
class FrameResult:
    frame_idx: int
    visible: bool
    num_visible: int
    camera_world_pose: Pose
    closest_marker_id: Optional[int] = None
    markers: list[tuple[int, Optional[Pose]]] = field(default_factory=list)
    lookup_failures: list[str] = field(default_factory=list)

    @property
    def marker_ids(self) -> list[int]:
        return [mid for mid, _ in self.markers]

    def marker_pose(self, marker_id: int) -> Optional[Pose]:
        for mid, pose in self.markers:
            if mid == marker_id:
                return pose
        raise KeyError(marker_id)
