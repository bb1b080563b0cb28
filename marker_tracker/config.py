from __future__ import annotations

import json
from dataclasses import dataclass, asdict
from pathlib import Path
from typing import Any, Optional

AXIS_CONVENTIONS = ("ros", "opencv")


@dataclass
class RoiConfig:
    """Rectangular region of interest applied to each image before detection."""

    enabled: bool = False
    x: int = 0
    y: int = 0
    width: int = 0
    height: int = 0

    def as_dict(self) -> dict[str, Any]:
        return asdict(self)

    def apply(self, image):
        if not self.enabled or image is None:
            return image
        h, w = image.shape[:2]
        x0 = min(max(0, self.x), w)
        y0 = min(max(0, self.y), h)
        x1 = min(w, x0 + max(0, self.width))
        y1 = min(h, y0 + max(0, self.height))
        return image[y0:y1, x0:x1]


@dataclass
class TrackerConfig:
    camera_name: str = "cam"
    device: int | str = 0
    fps: int = 15
    width: int = 640
    height: int = 480
    calibration_path: str = ""
    session_root: str = "data/sessions"
    duration_sec: float = 0.0
    max_frames: Optional[int] = None
    aruco_dict: str = "4x4_50"
    marker_size_m: float = 0.1
    num_of_markers: int = 10  # advisory only
    planar_mode: bool = True
    axis_convention: str = "ros"
    lookup_timeout_s: float = 0.0
    max_missed_frames: int = 30  # consecutive empty reads before the session ends; 0 disables
    roi: Optional[RoiConfig] = None
    dry_run: bool = False
    log_level: str = "INFO"

    def as_dict(self) -> dict[str, Any]:
        return asdict(self)

    def apply_overrides(self, **kwargs: Any) -> "TrackerConfig":
        for key, value in kwargs.items():
            if value is not None and hasattr(self, key):
                setattr(self, key, value)
        return self


def _load_yaml(path: Path) -> dict[str, Any]:
    try:
        import yaml  # type: ignore
    except Exception as exc:  # pragma: no cover - optional dependency
        raise RuntimeError(
            "YAML config requested but PyYAML is not installed. "
            "Install with: pip install pyyaml"
        ) from exc
    with path.open("r", encoding="utf-8") as fp:
        data = yaml.safe_load(fp) or {}
    if not isinstance(data, dict):
        raise ValueError("YAML config root must be a mapping")
    return data


def _parse_planar(raw: dict[str, Any], default: bool) -> bool:
    if "planar_mode" in raw:
        return bool(raw["planar_mode"])
    space_type = raw.get("space_type")
    if space_type is None:
        return default
    space_type = str(space_type).strip().lower()
    if space_type not in {"plane", "space"}:
        raise ValueError(f"space_type must be 'plane' or 'space', got {space_type!r}")
    return space_type == "plane"


def _parse_roi(raw: Any) -> Optional[RoiConfig]:
    if raw is None:
        return None
    if not isinstance(raw, dict):
        raise ValueError("roi must be a mapping with x, y, width, height")
    roi = RoiConfig()
    roi.enabled = bool(raw.get("enabled", True))
    roi.x = int(raw.get("x", roi.x))
    roi.y = int(raw.get("y", roi.y))
    roi.width = int(raw.get("width", raw.get("w", roi.width)))
    roi.height = int(raw.get("height", raw.get("h", roi.height)))
    if roi.enabled and (roi.width <= 0 or roi.height <= 0):
        raise ValueError("roi width and height must be positive")
    return roi


def load_config(path: str | Path) -> TrackerConfig:
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(f"Config not found: {p}")

    if p.suffix.lower() in {".yaml", ".yml"}:
        raw = _load_yaml(p)
    else:
        with p.open("r", encoding="utf-8") as fp:
            raw = json.load(fp)

    if not isinstance(raw, dict):
        raise ValueError("Config root must be a JSON/YAML object")

    cfg = TrackerConfig()
    cfg.camera_name = str(raw.get("camera_name", cfg.camera_name))
    cfg.device = raw.get("device", cfg.device)
    cfg.fps = int(raw.get("fps", cfg.fps))
    cfg.width = int(raw.get("width", cfg.width))
    cfg.height = int(raw.get("height", cfg.height))
    cfg.calibration_path = str(raw.get("calibration_path", cfg.calibration_path))
    cfg.session_root = str(raw.get("session_root", cfg.session_root))
    cfg.duration_sec = float(raw.get("duration_sec", cfg.duration_sec))
    cfg.max_frames = raw.get("max_frames", cfg.max_frames)
    if cfg.max_frames is not None:
        cfg.max_frames = int(cfg.max_frames)
    cfg.aruco_dict = str(raw.get("aruco_dict", cfg.aruco_dict))
    cfg.marker_size_m = float(raw.get("marker_size_m", cfg.marker_size_m))
    if cfg.marker_size_m <= 0:
        raise ValueError("marker_size_m must be positive")
    cfg.num_of_markers = int(raw.get("num_of_markers", cfg.num_of_markers))
    cfg.planar_mode = _parse_planar(raw, cfg.planar_mode)
    cfg.axis_convention = str(raw.get("axis_convention", cfg.axis_convention)).lower()
    if cfg.axis_convention not in AXIS_CONVENTIONS:
        raise ValueError(f"axis_convention must be one of {AXIS_CONVENTIONS}")
    cfg.lookup_timeout_s = float(raw.get("lookup_timeout_s", cfg.lookup_timeout_s))
    cfg.max_missed_frames = int(raw.get("max_missed_frames", cfg.max_missed_frames))
    cfg.roi = _parse_roi(raw.get("roi"))
    cfg.dry_run = bool(raw.get("dry_run", cfg.dry_run))
    cfg.log_level = str(raw.get("log_level", cfg.log_level)).upper()

    return cfg
