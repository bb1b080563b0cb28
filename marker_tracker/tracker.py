"""Per-frame orchestration of the marker pose graph.

One call to :meth:`MarkerTracker.process_frame` runs a full detection cycle:
reset visibility, ingest detections, designate the anchor, link new markers,
resolve world poses, pick the camera path marker, emit the frame result and
finally drop every non-anchor record.
"""

from __future__ import annotations

import logging
from typing import Iterable, Optional, Protocol

import numpy as np

from .config import RoiConfig
from .graph import (
    CAMERA_POSITION,
    WORLD,
    TransformGraph,
    camera_label,
    marker_globe_label,
    marker_label,
)
from .linker import PoseLinker
from .registry import MarkerRegistry
from .resolver import GlobalPoseResolver
from .tracker_types import FrameResult, MarkerObservation, Pose, TrackerState
from .transforms import as_transform, identity_transform, invert_transform


class MarkerDetector(Protocol):
    def detect(self, image) -> list[MarkerObservation]: ...


class MarkerTracker:
    def __init__(
        self,
        planar_mode: bool = True,
        lookup_timeout: float = 0.0,
        graph: Optional[TransformGraph] = None,
        detector: Optional[MarkerDetector] = None,
        roi: Optional[RoiConfig] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.planar_mode = planar_mode
        self.graph = graph if graph is not None else TransformGraph(lookup_timeout)
        self.detector = detector
        self.roi = roi
        self.log = logger or logging.getLogger(__name__)

        self.state = TrackerState()
        self.registry = MarkerRegistry()
        self.resolver = GlobalPoseResolver(self.registry, self.graph, self.state, lookup_timeout)
        self.linker = PoseLinker(self.registry, self.graph, self.state, self.resolver)

    @property
    def anchor_id(self) -> Optional[int]:
        return self.state.anchor_id

    @property
    def closest_marker_id(self) -> Optional[int]:
        return self.state.closest_marker_id

    @property
    def camera_world_pose(self) -> Pose:
        return self.state.camera_world_pose

    def process_image(self, image, frame_idx: Optional[int] = None) -> FrameResult:
        if self.detector is None:
            raise RuntimeError("process_image needs a detector; use process_frame instead")
        if self.roi is not None:
            image = self.roi.apply(image)
        return self.process_frame(self.detector.detect(image), frame_idx)

    def process_frame(
        self,
        observations: Iterable[MarkerObservation],
        frame_idx: Optional[int] = None,
    ) -> FrameResult:
        if frame_idx is None:
            frame_idx = self.state.frames_processed
        self.state.frames_processed += 1
        failures: list[str] = []

        self.registry.reset_visibility()

        camera_poses = self._ingest(observations)
        if not camera_poses:
            self.log.debug("No marker found!")

        if self.state.anchor_id is None and camera_poses:
            self._designate_anchor(min(camera_poses))

        anchor_id = self.state.anchor_id
        anchor_visible = anchor_id in camera_poses
        anchor_camera_pose = camera_poses.get(anchor_id)

        for marker_id, camera_pose_local in camera_poses.items():
            rec = self.registry.ensure_record(marker_id)
            rec.camera_pose_local = camera_pose_local
            self.registry.mark_visible([marker_id])
            self.graph.publish_edge(marker_label(marker_id), camera_label(marker_id), camera_pose_local)

            if not rec.is_linked and marker_id != anchor_id:
                self.linker.try_link(
                    marker_id,
                    camera_pose_local,
                    anchor_camera_pose,
                    anchor_visible,
                    self.planar_mode,
                )

            if not self.resolver.resolve_marker_world_pose(marker_id):
                label = marker_label(marker_id)
                self.log.error("Not able to lookup transform world -> %s", label)
                failures.append(label)

        fix = self.resolver.select_closest_and_resolve_camera()
        if fix.any_visible and not fix.resolved:
            label = camera_label(fix.closest_marker_id)
            self.log.error("Not able to lookup transform world -> %s", label)
            failures.append(label)

        self._publish_world_edges()
        result = self._build_result(frame_idx, fix.any_visible, fix.num_visible, failures)

        for marker_id in self.registry.prune(anchor_id):
            self.graph.discard(marker_label(marker_id))
            self.graph.discard(camera_label(marker_id))
            self.graph.discard(marker_globe_label(marker_id))
        return result

    def _ingest(self, observations: Iterable[MarkerObservation]) -> dict[int, np.ndarray]:
        """marker id -> T_marker_camera for this frame, in detection order."""
        camera_poses: dict[int, np.ndarray] = {}
        for obs in observations:
            marker_id = int(obs.marker_id)
            if marker_id in camera_poses:
                self.log.debug("duplicate detection of marker %d ignored", marker_id)
                continue
            camera_poses[marker_id] = invert_transform(as_transform(obs.camera_T_marker))
        return camera_poses

    def _designate_anchor(self, marker_id: int) -> None:
        self.state.anchor_id = marker_id
        self.registry.designate_anchor(marker_id)
        self.graph.publish_edge(WORLD, marker_label(marker_id), identity_transform())
        self.log.info("First marker with ID: %d detected", marker_id)

    def _publish_world_edges(self) -> None:
        if self.state.anchor_id is None:
            return
        for rec in self.registry:
            if rec.world_resolved:
                self.graph.publish_edge(WORLD, marker_globe_label(rec.marker_id), rec.transform_to_world)
        self.graph.publish_edge(WORLD, CAMERA_POSITION, self.state.camera_world_transform)

    def _build_result(
        self,
        frame_idx: int,
        any_visible: bool,
        num_visible: int,
        failures: list[str],
    ) -> FrameResult:
        result = FrameResult(
            frame_idx=frame_idx,
            visible=any_visible,
            num_visible=num_visible,
            camera_world_pose=self.state.camera_world_pose,
            closest_marker_id=self.state.closest_marker_id if any_visible else None,
            lookup_failures=failures,
        )
        if any_visible:
            result.markers = [(rec.marker_id, rec.pose_to_world) for rec in self.registry.visible_records()]
        return result
