from __future__ import annotations

import logging
from typing import Optional

import numpy as np

from .graph import TransformGraph, marker_label
from .registry import MarkerRegistry
from .resolver import GlobalPoseResolver
from .tracker_types import NO_PARENT, TrackerState
from .transforms import apply_planar_constraint, compute_relative_pose, invert_transform

logger = logging.getLogger(__name__)


def relative_marker_transform(
    camera_pose_local_for_marker: np.ndarray,
    camera_pose_local_for_anchor: np.ndarray,
) -> np.ndarray:
    """
    T_anchor_marker from two camera poses taken in the same image.

    Each argument is T_<marker>_camera. The camera is the shared frame:
    T_anchor_marker = T_anchor_camera @ inv(T_marker_camera).
    """
    T_camera_anchor = invert_transform(camera_pose_local_for_anchor)
    T_camera_marker = invert_transform(camera_pose_local_for_marker)
    return compute_relative_pose(T_camera_anchor, T_camera_marker)


class PoseLinker:
    """Attaches newly seen markers to the anchor from a single shared image."""

    def __init__(
        self,
        registry: MarkerRegistry,
        graph: TransformGraph,
        state: TrackerState,
        resolver: GlobalPoseResolver,
    ):
        self.registry = registry
        self.graph = graph
        self.state = state
        self.resolver = resolver

    def try_link(
        self,
        marker_id: int,
        camera_pose_local_for_marker: np.ndarray,
        camera_pose_local_for_anchor: Optional[np.ndarray],
        anchor_visible_this_frame: bool,
        planar_mode: bool,
    ) -> bool:
        anchor_id = self.state.anchor_id
        if anchor_id is None:
            raise ValueError("cannot link markers before an anchor is designated")
        if marker_id == anchor_id:
            raise ValueError(f"marker {marker_id} is the anchor and cannot be linked")
        rec = self.registry.ensure_record(marker_id)
        if rec.parent_id != NO_PARENT:
            raise ValueError(f"marker {marker_id} is already linked to {rec.parent_id}")

        if not anchor_visible_this_frame or camera_pose_local_for_anchor is None:
            logger.debug("marker %d not co-visible with anchor %d; left unlinked", marker_id, anchor_id)
            return False

        T_anchor_marker = relative_marker_transform(
            camera_pose_local_for_marker, camera_pose_local_for_anchor
        )
        if planar_mode:
            T_anchor_marker = apply_planar_constraint(T_anchor_marker)

        rec.parent_id = anchor_id
        rec.transform_to_parent = T_anchor_marker
        self.graph.publish_edge(marker_label(anchor_id), marker_label(marker_id), T_anchor_marker)
        logger.info("Marker %d linked to anchor %d", marker_id, anchor_id)

        # lookup failures are reported by the frame orchestrator
        rec.world_resolved = False
        self.resolver.resolve_marker_world_pose(marker_id)
        return True
