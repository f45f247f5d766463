import cv2
import numpy as np

from ..errors import FrameDecodeError


def to_grayscale(image) -> np.ndarray:
    """
    Convert a BGR, BGRA or single-channel 8-bit image to grayscale.

    Raises:
        FrameDecodeError: the image has an unsupported layout or dtype
    """
    if not isinstance(image, np.ndarray) or image.size == 0:
        raise FrameDecodeError(f"expected a non-empty ndarray, got {type(image).__name__}")
    if image.dtype != np.uint8:
        raise FrameDecodeError(f"expected 8-bit image, got dtype {image.dtype}")
    if image.ndim == 2:
        return image
    if image.ndim == 3 and image.shape[2] == 1:
        return image[:, :, 0]
    if image.ndim == 3 and image.shape[2] == 3:
        return cv2.cvtColor(image, cv2.COLOR_BGR2GRAY)
    if image.ndim == 3 and image.shape[2] == 4:
        return cv2.cvtColor(image, cv2.COLOR_BGRA2GRAY)
    raise FrameDecodeError(f"unsupported image shape {image.shape}")


def to_bgr(image) -> np.ndarray:
    """Return a 3-channel copy suitable for drawing."""
    if image.ndim == 2 or (image.ndim == 3 and image.shape[2] == 1):
        return cv2.cvtColor(image.reshape(image.shape[:2]), cv2.COLOR_GRAY2BGR)
    if image.ndim == 3 and image.shape[2] == 4:
        return cv2.cvtColor(image, cv2.COLOR_BGRA2BGR)
    return image.copy()
