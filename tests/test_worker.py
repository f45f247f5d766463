import json
import logging
from pathlib import Path

import numpy as np

from tag_detector.config import CaptureConfig, DetectorConfig
from tag_detector.output import OutputMultiplexer
from tag_detector.worker import TagDetectorWorker
from tag_pipeline.services.broadcaster import FrameBroadcaster, TransformBuffer
from tag_pipeline.tp_types import CameraIntrinsics, Frame, FrameHeader

from helpers import centered_detection


class FakeDetector:
    def __init__(self, batches):
        """Queue detection batches, one per frame."""
        self.batches = list(batches)
        self.images = []

    def detect(self, gray):
        self.images.append(gray)
        if self.batches:
            return self.batches.pop(0)
        return []


class RecordingChannel:
    def __init__(self):
        self.payloads = []

    def open(self, session_dir):
        return None

    def publish(self, payload):
        self.payloads.append(payload)

    def close(self):
        return None


class FakeCapture:
    """Emits a fixed number of black frames."""

    def __init__(self, count, intrinsics):
        self.count = count
        self.intrinsics = intrinsics
        self.idx = 0
        self.started = False
        self.stopped = False

    def start(self):
        self.started = True

    def next_frame(self):
        self.idx += 1
        img = np.zeros((480, 640, 3), dtype=np.uint8)
        return Frame(self.idx, FrameHeader(float(self.idx), "usb_cam"), img, self.intrinsics)

    def stop(self):
        self.stopped = True


def _logger():
    logger = logging.getLogger("test-tag-worker")
    logger.handlers.clear()
    logger.addHandler(logging.NullHandler())
    return logger


def _frame(idx=1, image=None, intrinsics=CameraIntrinsics(600.0, 600.0, 320.0, 240.0)):
    if image is None:
        image = np.zeros((480, 640, 3), dtype=np.uint8)
    return Frame(idx, FrameHeader(10.0 + idx, "usb_cam"), image, intrinsics)


def _worker(cfg, batches, annotate=True):
    channels = [RecordingChannel() for _ in range(4 if annotate else 3)]
    buf = TransformBuffer()
    worker = TagDetectorWorker(
        cfg,
        logger=_logger(),
        outputs=OutputMultiplexer(*channels),
        detector=FakeDetector(batches),
        broadcaster=FrameBroadcaster(buf),
    )
    return worker, channels, buf


def test_handle_frame_publishes_and_broadcasts():
    cfg = DetectorConfig(tag_descriptions=[{"id": 0, "size": 0.2}])
    worker, channels, buf = _worker(cfg, [[centered_detection(0), centered_detection(5, cx=500.0)]])

    bundle = worker.handle_frame(_frame())

    assert len(bundle.poses) == 1
    assert len(bundle.image_detections) == 2
    poses, dets, img_dets, image = channels
    assert poses.payloads[0]["header"]["frame_id"] == "usb_cam"
    assert [d["id"] for d in dets.payloads[0]["detections"]] == [0]
    assert [d["id"] for d in img_dets.payloads[0]["detections"]] == [0, 5]
    assert image.payloads[0].shape == (480, 640, 3)

    edge = buf.get("usb_cam", "tag_0")
    assert edge.header.stamp == 11.0
    assert np.allclose(edge.translation, [0.0, 0.0, 1.0], atol=1e-4)


def test_sensor_frame_override():
    cfg = DetectorConfig(tag_descriptions=[{"id": 0, "size": 0.2}], sensor_frame_id="optical")
    worker, channels, buf = _worker(cfg, [[centered_detection(0)]])

    bundle = worker.handle_frame(_frame())

    assert bundle.header.frame_id == "optical"
    assert bundle.poses[0].header.frame_id == "optical"
    assert buf.get("optical", "tag_0") is not None
    assert buf.get("usb_cam", "tag_0") is None


def test_annotation_disabled_publishes_three_channels():
    cfg = DetectorConfig(tag_descriptions=[{"id": 0, "size": 0.2}], image_annotation_on=False)
    worker, channels, _buf = _worker(cfg, [[centered_detection(0)]], annotate=False)

    bundle = worker.handle_frame(_frame())

    assert bundle.annotated_image is None
    assert all(len(ch.payloads) == 1 for ch in channels)


def test_annotation_does_not_touch_input_image():
    cfg = DetectorConfig(tag_descriptions=[{"id": 0, "size": 0.2}])
    worker, _channels, _buf = _worker(cfg, [[centered_detection(0)]])
    frame = _frame()

    bundle = worker.handle_frame(frame)

    assert not frame.image.any()
    assert bundle.annotated_image.any()


def test_undecodable_frame_is_dropped_and_next_frame_processed():
    cfg = DetectorConfig(tag_descriptions=[{"id": 0, "size": 0.2}])
    worker, channels, _buf = _worker(cfg, [[centered_detection(0)]])

    assert worker.handle_frame(_frame(image=np.zeros((4, 4), dtype=np.float64))) is None
    assert worker.frames_dropped == 1
    assert all(ch.payloads == [] for ch in channels)
    assert worker.detector.images == []

    bundle = worker.handle_frame(_frame(idx=2))
    assert len(bundle.poses) == 1


class FailingSink:
    def __init__(self):
        self.calls = 0

    def set_transform(self, transform):
        self.calls += 1
        raise RuntimeError("tf bus down")


def test_broadcast_failure_still_publishes_frame():
    cfg = DetectorConfig(tag_descriptions=[{"id": 0, "size": 0.2}, {"id": 5, "size": 0.2}])
    channels = [RecordingChannel() for _ in range(4)]
    sink = FailingSink()
    worker = TagDetectorWorker(
        cfg,
        logger=_logger(),
        outputs=OutputMultiplexer(*channels),
        detector=FakeDetector([[centered_detection(0), centered_detection(5, cx=500.0)]]),
        broadcaster=FrameBroadcaster(sink),
    )

    bundle = worker.handle_frame(_frame())

    assert len(bundle.poses) == 2
    assert sink.calls == 2
    assert worker.broadcast_failures == 2
    assert worker.tags_resolved == 2
    assert all(len(ch.payloads) == 1 for ch in channels)


def test_frame_without_intrinsics_is_dropped():
    worker, channels, _buf = _worker(DetectorConfig(), [])
    assert worker.handle_frame(_frame(intrinsics=None)) is None
    assert worker.frames_dropped == 1
    assert all(ch.payloads == [] for ch in channels)


def test_empty_registry_still_publishes_empty_outputs():
    worker, channels, _buf = _worker(DetectorConfig(), [[centered_detection(5)]])

    bundle = worker.handle_frame(_frame())

    assert bundle.poses == []
    poses, dets, img_dets, _image = channels
    assert poses.payloads[0]["poses"] == []
    assert dets.payloads[0]["detections"] == []
    assert len(img_dets.payloads[0]["detections"]) == 1


def test_run_with_injected_capture(tmp_path: Path):
    cfg = DetectorConfig(
        camera_name="unit",
        tag_descriptions=[{"id": 0, "size": 0.2}],
        output_root=str(tmp_path),
        max_frames=3,
    )
    intr = CameraIntrinsics(600.0, 600.0, 320.0, 240.0)
    capture = FakeCapture(3, intr)
    worker = TagDetectorWorker(
        cfg,
        logger=_logger(),
        capture=capture,
        detector=FakeDetector([[centered_detection(0)], [], [centered_detection(0)]]),
    )

    summary = worker.run()

    assert capture.started and capture.stopped
    assert summary.frames_processed == 3
    assert summary.tags_resolved == 2
    assert summary.frames_dropped == 0
    assert summary.publish_failures == 0
    assert summary.broadcast_failures == 0
    session = Path(summary.session_path)
    lines = (session / "tag_detections_pose.jsonl").read_text(encoding="utf-8").splitlines()
    assert [len(json.loads(line)["poses"]) for line in lines] == [1, 0, 1]
    assert len(list((session / "tag_detections_image").iterdir())) == 3
    assert Path(summary.log_path).exists()


def test_dry_run_uses_synthetic_capture(tmp_path: Path):
    cfg = DetectorConfig(
        camera_name="drycam",
        output_root=str(tmp_path),
        dry_run=True,
        max_frames=2,
        image_annotation_on=False,
        capture=CaptureConfig(fps=0, width=64, height=48),
    )

    summary = TagDetectorWorker(cfg, logger=_logger()).run()

    assert summary.frames_processed == 2
    session = Path(summary.session_path)
    assert (session / "tag_detections.csv").exists()
    assert not (session / "tag_detections_image").exists()
