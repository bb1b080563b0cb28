from __future__ import annotations

import logging
import time
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from .calibration import load_calibration
from .capture import BaseCapture, SyntheticCapture, USBOpenCVCapture
from .config import TrackerConfig
from .detect import ArucoPoseDetector
from .logging_utils import PACKAGE_LOGGER, add_file_handler, bind_session, setup_logger
from .output import CsvOutput, OutputSink
from .storage import SessionStorage
from .tracker import MarkerDetector, MarkerTracker


@dataclass
class SessionSummary:
    session_path: str
    frames_processed: int
    frames_with_markers: int
    csv_path: str
    log_path: str
    avg_fps: float
    errors: int
    anchor_id: Optional[int] = None


class NoDetect:
    def detect(self, image) -> list:
        return []


class TrackerWorker:
    def __init__(
        self,
        config: TrackerConfig,
        logger=None,
        outputs: Optional[list[OutputSink]] = None,
        capture: Optional[BaseCapture] = None,
        detector: Optional[MarkerDetector] = None,
    ):
        self.config = config
        self.logger = logger or setup_logger(config.camera_name, config.log_level)
        self.outputs = outputs if outputs is not None else [CsvOutput()]
        self.capture = capture
        self.detector = detector
        self.tracker: Optional[MarkerTracker] = None
        self._stop_event = threading.Event()

    def stop(self) -> None:
        self._stop_event.set()

    def _build_capture(self) -> BaseCapture:
        if self.capture is not None:
            return self.capture
        if self.config.dry_run:
            return SyntheticCapture(self.config.fps, self.config.width, self.config.height)
        return USBOpenCVCapture(
            self.config.device,
            self.config.fps,
            self.config.width,
            self.config.height,
        )

    def _build_detector(self) -> MarkerDetector:
        if self.detector is not None:
            return self.detector
        if self.config.dry_run:
            return NoDetect()
        calib = load_calibration(self.config.calibration_path, self.config.width, self.config.height)
        return ArucoPoseDetector(
            calib,
            self.config.marker_size_m,
            self.config.aruco_dict,
            self.config.axis_convention,
        )

    def _log_config(self) -> None:
        cfg = self.config
        self.logger.info("Calibration file path: %s", cfg.calibration_path or "<none>")
        self.logger.info("Number of markers: %d", cfg.num_of_markers)
        self.logger.info("Marker size: %.3f m", cfg.marker_size_m)
        self.logger.info("Type of space: %s", "plane" if cfg.planar_mode else "space")
        if cfg.roi is not None and cfg.roi.enabled:
            self.logger.info(
                "ROI x=%d y=%d width=%d height=%d",
                cfg.roi.x, cfg.roi.y, cfg.roi.width, cfg.roi.height,
            )
        else:
            self.logger.info("ROI allowed: False")

    def run(self) -> SessionSummary:
        storage = SessionStorage(self.config.session_root, name=f"{self.config.camera_name}_session")
        session_path = storage.begin()
        storage.write_manifest(self.config.as_dict())

        session_id = Path(session_path).name
        bind_session(session_id)
        log_file = str(Path(storage.logs_dir) / "session.log")
        file_handler = add_file_handler(self.config.camera_name, log_file, session_id)

        for out in self.outputs:
            out.open(Path(storage.session_dir))

        self.logger.info("session started: %s", session_path)
        self._log_config()

        self.tracker = MarkerTracker(
            planar_mode=self.config.planar_mode,
            lookup_timeout=self.config.lookup_timeout_s,
            detector=self._build_detector(),
            roi=self.config.roi,
            logger=self.logger,
        )

        cap = self._build_capture()
        cap.start()
        t0 = time.time()
        frames = 0
        frames_with_markers = 0
        errors = 0
        missed = 0

        try:
            while True:
                if self._stop_event.is_set():
                    break
                if self.config.duration_sec and (time.time() - t0) >= self.config.duration_sec:
                    break
                if self.config.max_frames and frames >= self.config.max_frames:
                    break

                f = cap.next_frame()
                if f is None:
                    errors += 1
                    missed += 1
                    if self.config.max_missed_frames > 0 and missed >= self.config.max_missed_frames:
                        self.logger.warning("no frame from capture %d times in a row, stopping", missed)
                        break
                    continue
                missed = 0

                result = self.tracker.process_image(f.image, f.idx)
                errors += len(result.lookup_failures)
                if result.visible:
                    frames_with_markers += 1

                ts_unix = time.time()
                for out in self.outputs:
                    out.write_result(ts_unix, result)

                self.logger.debug(
                    "frame=%d visible=%d closest=%s",
                    f.idx,
                    result.num_visible,
                    result.closest_marker_id,
                )
                frames += 1

        finally:
            try:
                cap.stop()
            except Exception as exc:
                self.logger.warning("capture stop failed: %s", exc)

            for out in self.outputs:
                out.close()

        avg = frames / max(1e-6, (time.time() - t0))
        self.logger.info("summary frames=%d avg_fps=%.2f errors=%d", frames, avg, errors)
        file_handler.close()
        logging.getLogger(PACKAGE_LOGGER).removeHandler(file_handler)

        csv_path = ""
        for out in self.outputs:
            if isinstance(out, CsvOutput) and out.path is not None:
                csv_path = str(out.path)
                break
        return SessionSummary(
            str(session_path),
            frames,
            frames_with_markers,
            csv_path,
            log_file,
            avg,
            errors,
            self.tracker.anchor_id,
        )
