from dataclasses import dataclass, field
from typing import Any, Optional

import numpy as np


@dataclass
class CameraIntrinsics:
    fx: float
    fy: float
    px: float
    py: float

    @classmethod
    def from_matrix(cls, K) -> "CameraIntrinsics":
        """Build from a 3x3 (or flat row-major 9-element) calibration matrix."""
        k = np.asarray(K, dtype=np.float64).reshape(-1)
        if k.size != 9:
            raise ValueError(f"camera matrix must have 9 entries, got {k.size}")
        return cls(float(k[0]), float(k[4]), float(k[2]), float(k[5]))

    def as_matrix(self) -> np.ndarray:
        return np.array(
            [[self.fx, 0.0, self.px], [0.0, self.fy, self.py], [0.0, 0.0, 1.0]],
            dtype=np.float64,
        )


@dataclass
class FrameHeader:
    stamp: float
    frame_id: str


@dataclass
class Frame:
    idx: int
    header: FrameHeader
    image: Any  # numpy array
    intrinsics: Optional[CameraIntrinsics] = None


@dataclass(frozen=True)
class MarkerDescription:
    id: int
    size: float
    frame_name: str


@dataclass
class RawDetection:
    id: int
    corners: Any  # (4,2) ndarray, pixel coordinates
    center: Any  # (2,) ndarray
    observed_perimeter: float
    hamming_distance: int = 0
    code: int = 0
    obs_code: int = 0


@dataclass
class ResolvedPose:
    translation: Any  # (3,) ndarray
    rotation: Any  # (4,) ndarray, quaternion x, y, z, w
    source_frame: str
    header: FrameHeader


@dataclass
class TagDetection:
    id: int
    size: float
    pose: ResolvedPose


@dataclass
class ImageDetection:
    id: int
    hamming_distance: int
    code: int
    obs_code: int
    px: list[float]
    py: list[float]
    cx: float
    cy: float
    observed_perimeter: float


@dataclass
class FrameOutputBundle:
    header: FrameHeader
    poses: list[ResolvedPose] = field(default_factory=list)
    detections: list[TagDetection] = field(default_factory=list)
    image_detections: list[ImageDetection] = field(default_factory=list)
    annotated_image: Any = None
