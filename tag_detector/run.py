import argparse
import logging
import signal
import sys

from .config import DetectorConfig, load_config
from .logging_utils import setup_logger
from .worker import TagDetectorWorker


def _build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(description="Run the AprilTag pose detector on one camera")
    ap.add_argument("--config", required=True, help="Path to JSON/YAML config")

    ap.add_argument("--camera-name")
    ap.add_argument("--device")
    ap.add_argument("--fps", type=int)
    ap.add_argument("--width", type=int)
    ap.add_argument("--height", type=int)
    ap.add_argument("--calib")
    ap.add_argument("--out")
    ap.add_argument("--duration", type=float)
    ap.add_argument("--family")
    ap.add_argument("--sensor-frame-id")
    ap.add_argument("--max-frames", type=int)
    ap.add_argument("--dry-run", action="store_true")
    ap.add_argument("--no-annotation", action="store_true")
    ap.add_argument("--verbose", "-v", action="store_true")

    return ap


def _apply_args(cfg: DetectorConfig, args: argparse.Namespace) -> DetectorConfig:
    device = args.device
    if isinstance(device, str) and device.isdigit():
        device = int(device)

    cfg.apply_overrides(
        camera_name=args.camera_name,
        device=device,
        fps=args.fps,
        width=args.width,
        height=args.height,
        calibration_path=args.calib,
        output_root=args.out,
        duration_sec=args.duration,
        tag_family=args.family,
        sensor_frame_id=args.sensor_frame_id,
        max_frames=args.max_frames,
        dry_run=True if args.dry_run else None,
        image_annotation_on=False if args.no_annotation else None,
    )
    return cfg


def main(argv=None) -> int:
    ap = _build_parser()
    args = ap.parse_args(argv)

    cfg = load_config(args.config)
    cfg = _apply_args(cfg, args)

    logger = setup_logger(cfg.camera_name, logging.DEBUG if args.verbose else logging.INFO)
    worker = TagDetectorWorker(cfg, logger=logger)

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
