"""
Metric tag pose from four image corners.

The tag is modelled as a square of edge ``size`` centred on the marker origin
in the z=0 plane. Corners are matched in detector order, counter-clockwise from
(-s/2, -s/2). The plane-to-image homography is decomposed into a rotation and a
translation expressed in the camera frame.
"""

import math
from typing import Tuple

import cv2
import numpy as np

from ..errors import DegenerateGeometryError
from ..tp_types import CameraIntrinsics
from ..transforms import matrix_to_quaternion

# enclosed corner area below this (px^2) is treated as collinear
MIN_CORNER_AREA_PX2 = 1e-6
_EPS = 1e-12


def marker_object_points(size: float) -> np.ndarray:
    h = size / 2.0
    return np.array([[-h, -h], [h, -h], [h, h], [-h, h]], dtype=np.float64)


def _turn_crosses(points: np.ndarray) -> list[float]:
    """Signed cross product of each pair of consecutive edges, walking the quad in order."""
    crosses = []
    for i in range(4):
        a, b, c = points[i], points[(i + 1) % 4], points[(i + 2) % 4]
        crosses.append(float((b[0] - a[0]) * (c[1] - b[1]) - (b[1] - a[1]) * (c[0] - b[0])))
    return crosses


def _check_inputs(corners, size: float, intrinsics: CameraIntrinsics) -> np.ndarray:
    pts = np.asarray(corners, dtype=np.float64)
    if pts.size != 8:
        raise DegenerateGeometryError(f"expected 4 corners, got array of shape {pts.shape}")
    pts = pts.reshape(4, 2)
    if not np.all(np.isfinite(pts)):
        raise DegenerateGeometryError("corners contain non-finite values")
    if not math.isfinite(size) or size <= 0.0:
        raise DegenerateGeometryError(f"tag size must be positive, got {size!r}")
    if not (intrinsics.fx > 0.0 and intrinsics.fy > 0.0):
        raise DegenerateGeometryError(
            f"focal lengths must be positive, got fx={intrinsics.fx}, fy={intrinsics.fy}"
        )
    crosses = _turn_crosses(pts)
    # any three corners on a line makes the homography rank deficient
    if min(abs(c) for c in crosses) < 2.0 * MIN_CORNER_AREA_PX2:
        raise DegenerateGeometryError("corners are collinear")
    # either winding is fine, but every turn must go the same way
    if not (all(c > 0 for c in crosses) or all(c < 0 for c in crosses)):
        raise DegenerateGeometryError("corners do not form a convex quadrilateral")
    return pts


def homography_from_corners(object_points: np.ndarray, image_points: np.ndarray) -> np.ndarray:
    H = cv2.getPerspectiveTransform(
        object_points.astype(np.float32), image_points.astype(np.float32)
    ).astype(np.float64)
    if not np.all(np.isfinite(H)) or abs(np.linalg.det(H)) < _EPS:
        raise DegenerateGeometryError("singular homography")
    return H


def decompose_homography(H: np.ndarray, intrinsics: CameraIntrinsics) -> Tuple[np.ndarray, np.ndarray]:
    """
    Split a metric plane-to-image homography into rotation and translation.

    Returns:
        (R, t): 3x3 rotation matrix and (3,) translation, camera frame
    """
    B = np.linalg.inv(intrinsics.as_matrix()) @ H
    b1, b2, b3 = B[:, 0], B[:, 1], B[:, 2]
    n1 = np.linalg.norm(b1)
    n2 = np.linalg.norm(b2)
    if n1 < _EPS or n2 < _EPS:
        raise DegenerateGeometryError("homography columns vanish")

    scale = 2.0 / (n1 + n2)
    # the tag must lie in front of the camera
    if b3[2] < 0:
        scale = -scale

    r1 = b1 * scale
    r2 = b2 * scale
    r3 = np.cross(r1, r2)
    t = b3 * scale
    if t[2] <= _EPS:
        raise DegenerateGeometryError("tag does not lie in front of the camera")

    U, _S, Vt = np.linalg.svd(np.column_stack((r1, r2, r3)))
    R = U @ Vt
    if np.linalg.det(R) < 0:
        U[:, 2] = -U[:, 2]
        R = U @ Vt

    if not (np.all(np.isfinite(R)) and np.all(np.isfinite(t))):
        raise DegenerateGeometryError("pose decomposition produced non-finite values")
    return R, t


def resolve_pose(corners, size: float, intrinsics: CameraIntrinsics) -> Tuple[np.ndarray, np.ndarray]:
    """
    Compute the marker-to-camera transform of one detection.

    Args:
        corners: (4,2) pixel corners in detector order
        size: physical tag edge length; the translation comes out in the same unit
        intrinsics: pinhole camera intrinsics

    Returns:
        (translation, quaternion): (3,) translation and (4,) unit quaternion (x, y, z, w)

    Raises:
        DegenerateGeometryError: the corners cannot be resolved to a valid pose
    """
    pts = _check_inputs(corners, float(size), intrinsics)
    H = homography_from_corners(marker_object_points(float(size)), pts)
    R, t = decompose_homography(H, intrinsics)
    return t, matrix_to_quaternion(R)


class HomographyResolve:
    """
    Strategy: resolve a tag pose from its corners using a planar homography.
    Stateless; the same inputs always give the same pose.
    """

    def resolve(self, corners, size: float, intrinsics: CameraIntrinsics) -> Tuple[np.ndarray, np.ndarray]:
        return resolve_pose(corners, size, intrinsics)
