import json

import pytest

from marker_tracker.config import RoiConfig, TrackerConfig, load_config


def _write_json(tmp_path, data, name="cfg.json"):
    p = tmp_path / name
    p.write_text(json.dumps(data), encoding="utf-8")
    return p


def test_defaults():
    cfg = TrackerConfig()
    assert cfg.planar_mode is True
    assert cfg.aruco_dict == "4x4_50"
    assert cfg.lookup_timeout_s == 0.0
    assert cfg.roi is None


def test_load_json(tmp_path):
    p = _write_json(tmp_path, {
        "camera_name": "ceiling",
        "device": 2,
        "fps": 30,
        "calibration_path": "calib/ceiling.ini",
        "marker_size_m": 0.15,
        "max_frames": "100",
        "log_level": "debug",
        "max_missed_frames": 5,
    })

    cfg = load_config(p)

    assert cfg.camera_name == "ceiling"
    assert cfg.device == 2
    assert cfg.fps == 30
    assert cfg.calibration_path == "calib/ceiling.ini"
    assert cfg.marker_size_m == pytest.approx(0.15)
    assert cfg.max_frames == 100
    assert cfg.log_level == "DEBUG"
    assert cfg.max_missed_frames == 5


def test_load_yaml(tmp_path):
    p = tmp_path / "cfg.yaml"
    p.write_text(
        "camera_name: floor\n"
        "space_type: space\n"
        "axis_convention: OpenCV\n"
        "roi:\n"
        "  x: 10\n"
        "  y: 20\n"
        "  w: 300\n"
        "  h: 200\n",
        encoding="utf-8",
    )

    cfg = load_config(p)

    assert cfg.camera_name == "floor"
    assert cfg.planar_mode is False
    assert cfg.axis_convention == "opencv"
    assert cfg.roi == RoiConfig(enabled=True, x=10, y=20, width=300, height=200)


@pytest.mark.parametrize("raw, expected", [
    ({"space_type": "plane"}, True),
    ({"space_type": " Space "}, False),
    ({"planar_mode": False, "space_type": "plane"}, False),
    ({}, True),
])
def test_planar_mode_parsing(tmp_path, raw, expected):
    assert load_config(_write_json(tmp_path, raw)).planar_mode is expected


@pytest.mark.parametrize("raw", [
    {"space_type": "volume"},
    {"axis_convention": "unity"},
    {"marker_size_m": 0},
    {"roi": {"x": 0, "y": 0, "width": 0, "height": 10}},
    {"roi": [0, 0, 10, 10]},
])
def test_invalid_values_rejected(tmp_path, raw):
    with pytest.raises(ValueError):
        load_config(_write_json(tmp_path, raw))


def test_disabled_roi_may_be_empty(tmp_path):
    cfg = load_config(_write_json(tmp_path, {"roi": {"enabled": False}}))
    assert cfg.roi is not None and cfg.roi.enabled is False


def test_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_config(tmp_path / "nope.json")


def test_non_mapping_root(tmp_path):
    p = tmp_path / "cfg.json"
    p.write_text("[1, 2, 3]", encoding="utf-8")
    with pytest.raises(ValueError):
        load_config(p)


def test_apply_overrides_skips_none_and_unknown():
    cfg = TrackerConfig()
    cfg.apply_overrides(fps=5, camera_name=None, nonsense=1)
    assert cfg.fps == 5
    assert cfg.camera_name == "cam"
    assert not hasattr(cfg, "nonsense")


def test_roi_apply_crops_and_clamps():
    import numpy as np

    img = np.arange(100).reshape(10, 10)
    roi = RoiConfig(enabled=True, x=8, y=7, width=5, height=5)
    assert roi.apply(img).shape == (3, 2)
    assert RoiConfig().apply(img) is img
