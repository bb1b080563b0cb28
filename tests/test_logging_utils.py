import logging
from pathlib import Path

from marker_tracker.config import TrackerConfig
from marker_tracker.logging_utils import PACKAGE_LOGGER, SessionContextFilter, bind_session, setup_logger
from marker_tracker.output import NullOutput
from marker_tracker.worker import TrackerWorker


def _record(**extra):
    record = logging.LogRecord("marker_tracker.x", logging.INFO, __file__, 1, "hello", None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def _package_filters():
    return [
        flt
        for handler in logging.getLogger(PACKAGE_LOGGER).handlers
        for flt in handler.filters
        if isinstance(flt, SessionContextFilter)
    ]


def test_filter_stamps_camera_and_session():
    flt = SessionContextFilter("ceiling", "s1")
    record = _record()

    assert flt.filter(record) is True
    assert record.camera == "ceiling"
    assert record.session == "s1"


def test_filter_keeps_explicit_camera():
    record = _record(camera="other")
    SessionContextFilter("ceiling").filter(record)
    assert record.camera == "other"


def test_setup_logger_rebinds_camera_and_session():
    logger = setup_logger("first")
    assert logger.name == "marker_tracker.first"

    setup_logger("second")
    bind_session("sess_42")

    filters = _package_filters()
    assert filters
    assert all(f.camera_name == "second" for f in filters)
    assert all(f.session_id == "sess_42" for f in filters)


def test_session_log_carries_camera_and_session(tmp_path: Path):
    cfg = TrackerConfig(camera_name="cam5", session_root=str(tmp_path), dry_run=True, fps=0, max_frames=1)

    summary = TrackerWorker(cfg, outputs=[NullOutput()]).run()

    session_id = Path(summary.session_path).name
    text = Path(summary.log_path).read_text(encoding="utf-8")
    assert f"[cam5 {session_id}]" in text
    assert "session started" in text
