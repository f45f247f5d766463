"""Single-camera AprilTag pose detection service."""

from .config import DetectorConfig
from .worker import TagDetectorWorker

__all__ = ["DetectorConfig", "TagDetectorWorker"]
