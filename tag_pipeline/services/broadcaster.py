import logging
import threading
from dataclasses import dataclass
from typing import Iterable, Optional

import numpy as np

from ..tp_types import FrameHeader, ResolvedPose
from ..transforms import invert_transform, pose_to_matrix

LOGGER = logging.getLogger(__name__)


@dataclass
class StampedTransform:
    header: FrameHeader  # frame_id is the parent frame
    child_frame_id: str
    translation: np.ndarray
    rotation: np.ndarray  # x, y, z, w

    def as_matrix(self) -> np.ndarray:
        return pose_to_matrix(self.translation, self.rotation)


class TransformBuffer:
    """
    In-process transform graph keyed by (parent, child) edges.

    Only the newest stamp of each edge is kept; an older registration never
    replaces a newer one. Entries do not expire.
    """

    def __init__(self):
        self._edges: dict[tuple[str, str], StampedTransform] = {}
        self._lock = threading.Lock()

    def set_transform(self, transform: StampedTransform) -> bool:
        key = (transform.header.frame_id, transform.child_frame_id)
        with self._lock:
            current = self._edges.get(key)
            if current is not None and current.header.stamp > transform.header.stamp:
                return False
            self._edges[key] = transform
            return True

    def get(self, parent: str, child: str) -> Optional[StampedTransform]:
        with self._lock:
            return self._edges.get((parent, child))

    def frames(self) -> set[str]:
        with self._lock:
            names = set()
            for parent, child in self._edges:
                names.add(parent)
                names.add(child)
            return names

    def lookup_transform(self, target_frame: str, source_frame: str) -> np.ndarray:
        """
        Return the 4x4 transform taking points in ``source_frame`` to ``target_frame``.

        Raises:
            LookupError: no direct edge links the two frames
        """
        if target_frame == source_frame:
            return np.eye(4)
        edge = self.get(target_frame, source_frame)
        if edge is not None:
            return edge.as_matrix()
        edge = self.get(source_frame, target_frame)
        if edge is not None:
            return invert_transform(edge.as_matrix())
        raise LookupError(f"No transform between {target_frame!r} and {source_frame!r}")


class FrameBroadcaster:
    """Registers each resolved tag pose as a named frame under the reference frame."""

    def __init__(self, sink=None):
        self.sink = sink if sink is not None else TransformBuffer()

    def broadcast(self, pose: ResolvedPose) -> None:
        transform = StampedTransform(
            header=FrameHeader(pose.header.stamp, pose.header.frame_id),
            child_frame_id=pose.source_frame,
            translation=np.asarray(pose.translation, dtype=np.float64).reshape(3),
            rotation=np.asarray(pose.rotation, dtype=np.float64).reshape(4),
        )
        self.sink.set_transform(transform)
        LOGGER.debug(
            "broadcast %s -> %s at %.6f",
            transform.header.frame_id, transform.child_frame_id, transform.header.stamp,
        )

    def broadcast_all(self, poses: Iterable[ResolvedPose]) -> None:
        for pose in poses:
            self.broadcast(pose)
