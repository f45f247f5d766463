"""SE(3) and quaternion helpers for tag pose handling."""

import numpy as np
from scipy.spatial.transform import Rotation


def matrix_to_quaternion(R: np.ndarray) -> np.ndarray:
    """
    Convert a 3x3 rotation matrix to a unit quaternion.

    Args:
        R: 3x3 rotation matrix

    Returns:
        (4,) quaternion in (x, y, z, w) order with w >= 0
    """
    q = Rotation.from_matrix(np.asarray(R, dtype=np.float64)).as_quat()
    q = q / np.linalg.norm(q)
    if q[3] < 0:
        q = -q
    return q


def quaternion_to_matrix(q: np.ndarray) -> np.ndarray:
    """Convert an (x, y, z, w) quaternion to a 3x3 rotation matrix."""
    return Rotation.from_quat(np.asarray(q, dtype=np.float64).reshape(4)).as_matrix()


def pose_to_matrix(translation: np.ndarray, q: np.ndarray) -> np.ndarray:
    """
    Build a 4x4 homogeneous transform from a translation and a quaternion.

    Args:
        translation: (3,) translation
        q: (4,) quaternion, (x, y, z, w)

    Returns:
        4x4 homogeneous transformation matrix
    """
    T = np.eye(4)
    T[:3, :3] = quaternion_to_matrix(q)
    T[:3, 3] = np.asarray(translation, dtype=np.float64).reshape(3)
    return T


def invert_transform(T: np.ndarray) -> np.ndarray:
    """
    Invert a 4x4 homogeneous transformation matrix.

    For SE(3): T^-1 = [R^T, -R^T * t; 0, 1]
    """
    T_inv = np.eye(4)
    R = T[:3, :3]
    t = T[:3, 3]

    R_T = R.T
    T_inv[:3, :3] = R_T
    T_inv[:3, 3] = -R_T @ t

    return T_inv
