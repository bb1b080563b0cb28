import json
from unittest.mock import MagicMock, patch

from marker_tracker.run import main


def test_main_builds_worker_from_flags():
    fake_worker = MagicMock()
    fake_worker.run.return_value = "summary"

    with patch("marker_tracker.run.TrackerWorker", return_value=fake_worker) as mock_worker, \
            patch("marker_tracker.run.signal.signal"):
        rc = main([
            "--device", "2",
            "--fps", "10",
            "--space-type", "space",
            "--roi", "1", "2", "30", "40",
            "--log-level", "debug",
            "--dry-run",
            "--max-missed-frames", "0",
        ])

    assert rc == 0
    cfg = mock_worker.call_args.args[0]
    assert cfg.device == 2
    assert cfg.fps == 10
    assert cfg.planar_mode is False
    assert (cfg.roi.x, cfg.roi.y, cfg.roi.width, cfg.roi.height) == (1, 2, 30, 40)
    assert cfg.log_level == "DEBUG"
    assert cfg.dry_run is True
    assert cfg.max_missed_frames == 0
    fake_worker.run.assert_called_once()


def test_flags_override_config_file(tmp_path):
    p = tmp_path / "cfg.json"
    p.write_text(json.dumps({"camera_name": "ceiling", "fps": 5, "marker_size_m": 0.2}), encoding="utf-8")

    with patch("marker_tracker.run.TrackerWorker") as mock_worker, \
            patch("marker_tracker.run.signal.signal"):
        main(["--config", str(p), "--fps", "20", "--device", "/dev/video1"])

    cfg = mock_worker.call_args.args[0]
    assert cfg.camera_name == "ceiling"
    assert cfg.fps == 20
    assert cfg.marker_size_m == 0.2
    assert cfg.device == "/dev/video1"
    assert cfg.dry_run is False
