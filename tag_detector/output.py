from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Optional

import cv2

from tag_pipeline import serialize
from tag_pipeline.services.csv_writer import CsvWriter
from tag_pipeline.tp_types import FrameOutputBundle

LOGGER = logging.getLogger(__name__)


class OutputChannel(ABC):
    @abstractmethod
    def open(self, session_dir: Path) -> None: ...

    @abstractmethod
    def publish(self, payload: Any) -> None: ...

    @abstractmethod
    def close(self) -> None: ...


class JsonlChannel(OutputChannel):
    """Appends one JSON document per frame to a file."""

    def __init__(self, filename: str):
        self.filename = filename
        self.path: Optional[Path] = None
        self._fh = None

    def open(self, session_dir: Path) -> None:
        self.path = session_dir / self.filename
        self._fh = self.path.open("w", encoding="utf-8")

    def publish(self, payload: Any) -> None:
        if self._fh is None:
            raise RuntimeError(f"channel {self.filename} is not open")
        self._fh.write(json.dumps(payload) + "\n")
        self._fh.flush()

    def close(self) -> None:
        if self._fh is not None:
            self._fh.close()
            self._fh = None


class CsvDetectionChannel(OutputChannel):
    """Writes every tag of a serialized detection array as a CSV row."""

    def __init__(self, filename: str = "tag_detections.csv"):
        self.filename = filename
        self.path: Optional[Path] = None
        self._writer: Optional[CsvWriter] = None

    def open(self, session_dir: Path) -> None:
        self.path = session_dir / self.filename
        self._writer = CsvWriter(str(self.path))
        self._writer.open()

    def publish(self, payload: Any) -> None:
        if self._writer is None:
            raise RuntimeError(f"channel {self.filename} is not open")
        for det in payload["detections"]:
            self._writer.append(det)
        self._writer.flush()

    def close(self) -> None:
        if self._writer is not None:
            self._writer.close()
            self._writer = None


class ImageChannel(OutputChannel):
    """Saves each published image as a numbered JPEG."""

    def __init__(self, dirname: str = "tag_detections_image"):
        self.dirname = dirname
        self.dir: Optional[Path] = None
        self.count = 0
        self.last_path: Optional[str] = None

    def open(self, session_dir: Path) -> None:
        self.dir = session_dir / self.dirname
        self.dir.mkdir(parents=True, exist_ok=True)

    def publish(self, payload: Any) -> None:
        if self.dir is None:
            raise RuntimeError(f"channel {self.dirname} is not open")
        self.count += 1
        p = self.dir / f"f{self.count:06d}.jpg"
        if not cv2.imwrite(str(p), payload):
            raise IOError(f"failed to write {p}")
        self.last_path = str(p)

    def close(self) -> None:
        return None


class PublisherChannel(OutputChannel):
    """Forwards JSON payloads to any client exposing ``publish(str)``."""

    def __init__(self, publisher):
        self.publisher = publisher

    def open(self, session_dir: Path) -> None:
        return None

    def publish(self, payload: Any) -> None:
        self.publisher.publish(json.dumps(payload))

    def close(self) -> None:
        close = getattr(self.publisher, "close", None)
        if close is not None:
            close()


class NullChannel(OutputChannel):
    def open(self, session_dir: Path) -> None:
        return None

    def publish(self, payload: Any) -> None:
        return None

    def close(self) -> None:
        return None


class OutputMultiplexer:
    """
    Fans a frame's output bundle out to independent channels.

    Each channel is attempted on its own; a failing channel is logged and
    counted but never retried, and never keeps the others from publishing.
    Without an image channel the annotated image is not published at all.
    """

    def __init__(
        self,
        poses: OutputChannel,
        detections: OutputChannel,
        image_detections: OutputChannel,
        image: Optional[OutputChannel] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.channels: dict[str, OutputChannel] = {
            "tag_detections_pose": poses,
            "tag_detections": detections,
            "tag_image_detections": image_detections,
        }
        if image is not None:
            self.channels["tag_detections_image"] = image
        self.failures: dict[str, int] = {name: 0 for name in self.channels}
        self.log = logger or LOGGER

    @classmethod
    def to_files(cls, annotate: bool = True, logger: Optional[logging.Logger] = None) -> "OutputMultiplexer":
        return cls(
            JsonlChannel("tag_detections_pose.jsonl"),
            CsvDetectionChannel("tag_detections.csv"),
            JsonlChannel("tag_image_detections.jsonl"),
            ImageChannel("tag_detections_image") if annotate else None,
            logger=logger,
        )

    def open(self, session_dir: Path) -> None:
        for ch in self.channels.values():
            ch.open(session_dir)

    def close(self) -> None:
        for name, ch in self.channels.items():
            try:
                ch.close()
            except Exception as e:
                self.log.warning("Closing channel %s failed: %s", name, e)

    def _payloads(self, bundle: FrameOutputBundle) -> dict[str, Any]:
        payloads = {
            "tag_detections_pose": serialize.pose_array(bundle.header, bundle.poses),
            "tag_detections": serialize.detection_array(bundle.detections),
            "tag_image_detections": serialize.image_detection_array(bundle.image_detections),
        }
        if "tag_detections_image" in self.channels and bundle.annotated_image is not None:
            payloads["tag_detections_image"] = bundle.annotated_image
        return payloads

    def publish(self, bundle: FrameOutputBundle) -> list[str]:
        """Publish one frame; returns the names of the channels that failed."""
        failed = []
        for name, payload in self._payloads(bundle).items():
            try:
                self.channels[name].publish(payload)
            except Exception as e:
                self.failures[name] += 1
                failed.append(name)
                self.log.warning("Publish on %s failed: %s", name, e)
        return failed
