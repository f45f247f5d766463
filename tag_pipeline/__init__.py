"""AprilTag detection-to-pose pipeline."""

from .correlator import FrameCorrelator
from .registry import MarkerRegistry, load_registry

__all__ = ["FrameCorrelator", "MarkerRegistry", "load_registry"]
