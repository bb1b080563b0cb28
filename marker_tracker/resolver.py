from __future__ import annotations

import logging
from typing import Optional

from .graph import WORLD, TransformGraph, TransformLookupError, camera_label, marker_label
from .registry import MarkerRegistry
from .tracker_types import CameraFix, Pose, TrackerState

logger = logging.getLogger(__name__)


class GlobalPoseResolver:
    """Composes graph edges into world poses for markers and the camera."""

    def __init__(
        self,
        registry: MarkerRegistry,
        graph: TransformGraph,
        state: TrackerState,
        timeout: Optional[float] = None,
    ):
        self.registry = registry
        self.graph = graph
        self.state = state
        self.timeout = timeout

    def resolve_marker_world_pose(self, marker_id: int) -> bool:
        """
        Query world -> marker_<id> and cache it on the record.

        Returns False when the chain world -> anchor -> marker is not available
        within the timeout; the previously cached transform is left untouched.
        """
        rec = self.registry.get(marker_id)
        if rec is None:
            return False
        try:
            T = self.graph.query(WORLD, marker_label(marker_id), self.timeout)
        except TransformLookupError:
            return False
        rec.transform_to_world = T
        rec.world_resolved = True
        return True

    def select_closest_and_resolve_camera(self) -> CameraFix:
        """Pick the visible marker nearest the camera and use it as the camera pose path."""
        closest_id = None
        minimal_distance = float("inf")
        num_visible = 0
        for rec in self.registry.visible_records():
            num_visible += 1
            distance = rec.camera_distance
            if distance < minimal_distance:
                minimal_distance = distance
                closest_id = rec.marker_id

        if closest_id is None:
            return CameraFix(any_visible=False)

        self.state.closest_marker_id = closest_id
        fix = CameraFix(any_visible=True, num_visible=num_visible, closest_marker_id=closest_id)
        try:
            T = self.graph.query(WORLD, camera_label(closest_id), self.timeout)
        except TransformLookupError:
            return fix

        self.state.camera_world_transform = T
        self.state.camera_world_pose = Pose.from_matrix(T)
        fix.resolved = True
        logger.debug("camera resolved through marker %d (%.3f m)", closest_id, minimal_distance)
        return fix
