"""Plain-dict payloads for the per-frame output channels."""

from typing import Any

import numpy as np

from .tp_types import FrameHeader, ImageDetection, ResolvedPose, TagDetection


def header_dict(header: FrameHeader) -> dict[str, Any]:
    return {"stamp": float(header.stamp), "frame_id": header.frame_id}


def pose_dict(pose: ResolvedPose) -> dict[str, Any]:
    t = np.asarray(pose.translation, dtype=np.float64).reshape(3)
    q = np.asarray(pose.rotation, dtype=np.float64).reshape(4)
    return {
        "position": {"x": float(t[0]), "y": float(t[1]), "z": float(t[2])},
        "orientation": {"x": float(q[0]), "y": float(q[1]), "z": float(q[2]), "w": float(q[3])},
    }


def pose_array(header: FrameHeader, poses: list[ResolvedPose]) -> dict[str, Any]:
    return {"header": header_dict(header), "poses": [pose_dict(p) for p in poses]}


def detection_array(detections: list[TagDetection]) -> dict[str, Any]:
    return {
        "detections": [
            {
                "id": d.id,
                "size": d.size,
                "pose": {"header": header_dict(d.pose.header), "pose": pose_dict(d.pose)},
            }
            for d in detections
        ]
    }


def image_detection_array(detections: list[ImageDetection]) -> dict[str, Any]:
    return {
        "detections": [
            {
                "id": d.id,
                "hamming_distance": d.hamming_distance,
                "code": d.code,
                "obs_code": d.obs_code,
                "px": list(d.px),
                "py": list(d.py),
                "cx": d.cx,
                "cy": d.cy,
                "observed_perimeter": d.observed_perimeter,
            }
            for d in detections
        ]
    }
