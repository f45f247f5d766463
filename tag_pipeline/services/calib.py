from pathlib import Path
from typing import Tuple

import cv2

from ..tp_types import CameraIntrinsics


def load_calib(path: str) -> Tuple[CameraIntrinsics, tuple[int, int]]:
    if not Path(path).exists():
        raise FileNotFoundError(f"Calibration not found: {path}")
    fs = cv2.FileStorage(path, cv2.FILE_STORAGE_READ)
    K = fs.getNode("camera_matrix").mat()
    w = int(fs.getNode("image_width").real()); h = int(fs.getNode("image_height").real())
    fs.release()
    if K is None:
        raise ValueError(f"camera_matrix missing from calibration: {path}")
    return CameraIntrinsics.from_matrix(K), (w, h)
