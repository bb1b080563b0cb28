from __future__ import annotations

import csv
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional

from .tracker_types import FrameResult, Pose


class OutputSink(ABC):
    @abstractmethod
    def open(self, session_dir: Path) -> None: ...

    @abstractmethod
    def write_result(self, ts_unix: float, result: FrameResult) -> None: ...

    @abstractmethod
    def close(self) -> None: ...


class CsvWriter:
    HEADER = [
        "recorded_at",
        "frame_idx", "kind", "id",
        "visible", "num_visible",
        "x", "y", "z",
        "qx", "qy", "qz", "qw",
    ]

    def __init__(self, csv_path: str):
        self.csv_path = csv_path
        self._fh = None
        self._w = None

    def open(self):
        self._fh = open(self.csv_path, "w", newline="", encoding="utf-8")
        self._w = csv.writer(self._fh)
        self._w.writerow(self.HEADER)

    @staticmethod
    def _pose(pose: Optional[Pose]) -> list[float]:
        if pose is None:
            return [float("nan")] * 7
        return [pose.x, pose.y, pose.z, pose.qx, pose.qy, pose.qz, pose.qw]

    def append(self, ts_unix: float, frame_idx: int, kind: str, ident, visible: bool,
               num_visible: int, pose: Optional[Pose]):
        self._w.writerow([
            f"{ts_unix:.6f}",
            frame_idx, kind, "" if ident is None else ident,
            int(visible), num_visible,
            *self._pose(pose),
        ])

    def close(self):
        if self._fh is not None:
            self._fh.close()
            self._fh = None
            self._w = None


class CsvOutput(OutputSink):
    """One camera row per frame, then one row per visible marker."""

    def __init__(self, filename: str = "poses.csv"):
        self.filename = filename
        self.path: Optional[Path] = None
        self._writer: Optional[CsvWriter] = None

    def open(self, session_dir: Path) -> None:
        self.path = session_dir / self.filename
        self._writer = CsvWriter(str(self.path))
        self._writer.open()

    def write_result(self, ts_unix: float, result: FrameResult) -> None:
        if self._writer is None:
            return
        self._writer.append(
            ts_unix, result.frame_idx, "camera", result.closest_marker_id,
            result.visible, result.num_visible, result.camera_world_pose,
        )
        for marker_id, pose in result.markers:
            self._writer.append(
                ts_unix, result.frame_idx, "marker", marker_id,
                True, result.num_visible, pose,
            )

    def close(self) -> None:
        if self._writer is not None:
            self._writer.close()
            self._writer = None


class NullOutput(OutputSink):
    def open(self, session_dir: Path) -> None:
        return None

    def write_result(self, ts_unix: float, result: FrameResult) -> None:
        return None

    def close(self) -> None:
        return None
