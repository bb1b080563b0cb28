import argparse
import signal
import sys

from .config import RoiConfig, TrackerConfig, load_config
from .worker import TrackerWorker


def _build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(description="Track a camera against an incrementally built ArUco marker graph")
    ap.add_argument("--config", help="Path to JSON/YAML config")

    ap.add_argument("--camera-name")
    ap.add_argument("--device")
    ap.add_argument("--fps", type=int)
    ap.add_argument("--width", type=int)
    ap.add_argument("--height", type=int)
    ap.add_argument("--calib")
    ap.add_argument("--out")
    ap.add_argument("--duration", type=float)
    ap.add_argument("--max-frames", type=int)
    ap.add_argument("--dict")
    ap.add_argument("--marker-size-m", type=float)
    ap.add_argument("--num-markers", type=int)
    ap.add_argument("--space-type", choices=["plane", "space"])
    ap.add_argument("--roi", nargs=4, type=int, metavar=("X", "Y", "W", "H"))
    ap.add_argument("--lookup-timeout", type=float)
    ap.add_argument("--max-missed-frames", type=int)
    ap.add_argument("--log-level")
    ap.add_argument("--dry-run", action="store_true")

    return ap


def _apply_args(cfg: TrackerConfig, args: argparse.Namespace) -> TrackerConfig:
    device = args.device
    if isinstance(device, str) and device.isdigit():
        device = int(device)

    planar_mode = None
    if args.space_type is not None:
        planar_mode = args.space_type == "plane"

    roi = None
    if args.roi is not None:
        x, y, w, h = args.roi
        roi = RoiConfig(enabled=True, x=x, y=y, width=w, height=h)

    cfg.apply_overrides(
        camera_name=args.camera_name,
        device=device,
        fps=args.fps,
        width=args.width,
        height=args.height,
        calibration_path=args.calib,
        session_root=args.out,
        duration_sec=args.duration,
        max_frames=args.max_frames,
        aruco_dict=args.dict,
        marker_size_m=args.marker_size_m,
        num_of_markers=args.num_markers,
        planar_mode=planar_mode,
        roi=roi,
        lookup_timeout_s=args.lookup_timeout,
        max_missed_frames=args.max_missed_frames,
        log_level=args.log_level.upper() if args.log_level else None,
        dry_run=args.dry_run if args.dry_run else None,
    )
    return cfg


def main(argv=None) -> int:
    ap = _build_parser()
    args = ap.parse_args(argv)

    cfg = load_config(args.config) if args.config else TrackerConfig()
    cfg = _apply_args(cfg, args)

    worker = TrackerWorker(cfg)

    def _handle_signal(_sig, _frame):
        worker.stop()

    signal.signal(signal.SIGINT, _handle_signal)
    if hasattr(signal, "SIGTERM"):
        signal.signal(signal.SIGTERM, _handle_signal)

    summary = worker.run()
    print(summary)
    return 0


if __name__ == "__main__":
    sys.exit(main())
