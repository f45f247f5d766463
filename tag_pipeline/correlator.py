import logging
from typing import Optional, Sequence

import numpy as np

from .errors import DegenerateGeometryError
from .registry import MarkerRegistry
from .strategies.annotate import draw_detection
from .strategies.resolve_homography import HomographyResolve
from .throttle import LogThrottle
from .tp_types import (
    CameraIntrinsics,
    FrameHeader,
    FrameOutputBundle,
    ImageDetection,
    RawDetection,
    ResolvedPose,
    TagDetection,
)

LOGGER = logging.getLogger(__name__)


def to_image_detection(det: RawDetection) -> ImageDetection:
    corners = np.asarray(det.corners, dtype=np.float64).reshape(4, 2)
    center = np.asarray(det.center, dtype=np.float64).reshape(2)
    return ImageDetection(
        id=int(det.id),
        hamming_distance=int(det.hamming_distance),
        code=int(det.code),
        obs_code=int(det.obs_code),
        px=[float(v) for v in corners[:, 0]],
        py=[float(v) for v in corners[:, 1]],
        cx=float(center[0]),
        cy=float(center[1]),
        observed_perimeter=float(det.observed_perimeter),
    )


class FrameCorrelator:
    """
    Joins raw detections with the marker registry and resolves their poses.

    One call to ``process`` builds the complete output bundle of a frame.
    """

    def __init__(
        self,
        registry: MarkerRegistry,
        resolver=None,
        throttle: Optional[LogThrottle] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.registry = registry
        self.resolver = resolver or HomographyResolve()
        self.throttle = throttle or LogThrottle(10.0)
        self.log = logger or LOGGER

    def process(
        self,
        detections: Sequence[RawDetection],
        intrinsics: CameraIntrinsics,
        header: FrameHeader,
        image=None,
    ) -> FrameOutputBundle:
        """
        Args:
            detections: raw detections of one frame, in detector order
            intrinsics: camera intrinsics of the frame
            header: stamp and reference frame applied to every pose
            image: BGR image to annotate in place; None disables annotation
        """
        bundle = FrameOutputBundle(header=header, annotated_image=image)

        for det in detections:
            bundle.image_detections.append(to_image_detection(det))

        for det in detections:
            description = self.registry.lookup(det.id)
            if description is None:
                if self.throttle.should_emit(det.id):
                    self.log.warning("Found tag: %d, but no description was found for it", det.id)
                continue

            if image is not None:
                draw_detection(image, det)

            try:
                translation, rotation = self.resolver.resolve(det.corners, description.size, intrinsics)
            except DegenerateGeometryError as exc:
                self.log.debug("Skipping tag %d: %s", det.id, exc)
                continue

            pose = ResolvedPose(
                translation=translation,
                rotation=rotation,
                source_frame=description.frame_name,
                header=FrameHeader(header.stamp, header.frame_id),
            )
            bundle.poses.append(pose)
            bundle.detections.append(TagDetection(description.id, description.size, pose))

        return bundle
