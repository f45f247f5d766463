from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from tag_pipeline.correlator import FrameCorrelator
from tag_pipeline.errors import FrameDecodeError
from tag_pipeline.registry import load_registry
from tag_pipeline.services.broadcaster import FrameBroadcaster
from tag_pipeline.services.calib import load_calib
from tag_pipeline.strategies.detect_apriltag import AprilTagDetect
from tag_pipeline.strategies.preprocess import to_bgr, to_grayscale
from tag_pipeline.throttle import LogThrottle
from tag_pipeline.tp_types import Frame, FrameHeader, FrameOutputBundle

from .capture import BaseCapture, SyntheticCapture, USBOpenCVCapture
from .config import DetectorConfig
from .logging_utils import add_file_handler, remove_handler, setup_logger
from .output import OutputMultiplexer


@dataclass
class SessionSummary:
    session_path: str
    frames_processed: int
    frames_dropped: int
    tags_resolved: int
    log_path: str
    avg_fps: float
    publish_failures: int
    broadcast_failures: int = 0


class TagDetectorWorker:
    def __init__(
        self,
        config: DetectorConfig,
        logger=None,
        outputs: Optional[OutputMultiplexer] = None,
        capture: Optional[BaseCapture] = None,
        detector=None,
        broadcaster: Optional[FrameBroadcaster] = None,
        throttle: Optional[LogThrottle] = None,
    ):
        self.config = config
        self.logger = logger or setup_logger(config.camera_name)
        self.registry = load_registry(config.tag_descriptions, strict=config.strict_tag_descriptions)
        self.correlator = FrameCorrelator(
            self.registry,
            throttle=throttle or LogThrottle(config.warn_throttle_sec),
            logger=self.logger,
        )
        self.detector = detector or AprilTagDetect(config.tag_family)
        self.broadcaster = broadcaster or FrameBroadcaster()
        self.outputs = outputs or OutputMultiplexer.to_files(
            annotate=config.image_annotation_on, logger=self.logger
        )
        self.capture = capture
        self._stop_event = threading.Event()
        self.frames_dropped = 0
        self.tags_resolved = 0
        self.broadcast_failures = 0

    def stop(self) -> None:
        self._stop_event.set()

    def _build_capture(self) -> BaseCapture:
        if self.capture is not None:
            return self.capture
        cap_cfg = self.config.capture
        if self.config.dry_run:
            return SyntheticCapture(
                cap_cfg.fps, cap_cfg.width, cap_cfg.height, frame_id=self.config.image_frame_id
            )
        intrinsics, _size = load_calib(self.config.calibration_path)
        return USBOpenCVCapture(
            cap_cfg.device,
            cap_cfg.fps,
            cap_cfg.width,
            cap_cfg.height,
            intrinsics=intrinsics,
            frame_id=self.config.image_frame_id,
        )

    def handle_frame(self, frame: Frame) -> Optional[FrameOutputBundle]:
        """
        Run one frame through detection, pose resolution, broadcast and publish.

        Returns the published bundle, or None when the frame was dropped.
        """
        try:
            gray = to_grayscale(frame.image)
        except FrameDecodeError as e:
            self.frames_dropped += 1
            self.logger.error("Dropping frame %d, image conversion failed: %s", frame.idx, e)
            return None
        if frame.intrinsics is None:
            self.frames_dropped += 1
            self.logger.error("Dropping frame %d, no camera intrinsics", frame.idx)
            return None

        detections = self.detector.detect(gray)
        self.logger.debug("%d tag detected", len(detections))

        frame_id = self.config.sensor_frame_id or frame.header.frame_id
        header = FrameHeader(frame.header.stamp, frame_id)
        image = to_bgr(frame.image) if self.config.image_annotation_on else None

        bundle = self.correlator.process(detections, frame.intrinsics, header, image=image)
        self._broadcast(bundle)
        self.outputs.publish(bundle)
        self.tags_resolved += len(bundle.poses)
        return bundle

    def _broadcast(self, bundle: FrameOutputBundle) -> None:
        for pose in bundle.poses:
            try:
                self.broadcaster.broadcast(pose)
            except Exception as e:
                self.broadcast_failures += 1
                self.logger.warning("Broadcast of %s failed: %s", pose.source_frame, e)

    def run(self) -> SessionSummary:
        stamp = time.strftime("%Y%m%d_%H%M%S")
        session_dir = Path(self.config.output_root) / f"{self.config.camera_name}_session_{stamp}"
        (session_dir / "logs").mkdir(parents=True, exist_ok=True)

        log_file = str(session_dir / "logs" / "session.log")
        file_handler = add_file_handler(self.logger, self.config.camera_name, log_file)

        self.outputs.open(session_dir)
        cap = self._build_capture()

        self.logger.info("session started: %s", session_dir)
        self.logger.info("config: %s", self.config.as_dict())
        self.logger.info("registry: %d tag description(s)", len(self.registry))

        cap.start()
        t0 = time.time()
        frames = 0

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
                    self.frames_dropped += 1
                    continue

                bundle = self.handle_frame(f)
                if bundle is not None:
                    self.logger.info(
                        "frame=%d tags=%d poses=%d",
                        f.idx,
                        len(bundle.image_detections),
                        len(bundle.poses),
                    )
                frames += 1

        finally:
            try:
                cap.stop()
            finally:
                self.outputs.close()

            avg = frames / max(1e-6, (time.time() - t0))
            failures = sum(self.outputs.failures.values())
            self.logger.info(
                "summary frames=%d dropped=%d avg_fps=%.2f publish_failures=%d broadcast_failures=%d",
                frames, self.frames_dropped, avg, failures, self.broadcast_failures,
            )
            remove_handler(self.logger, file_handler)

        return SessionSummary(
            str(session_dir),
            frames,
            self.frames_dropped,
            self.tags_resolved,
            log_file,
            avg,
            failures,
            self.broadcast_failures,
        )
