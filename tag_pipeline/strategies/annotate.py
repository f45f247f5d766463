import cv2
import numpy as np

from ..tp_types import RawDetection

OUTLINE_COLOR = (0, 255, 0)
X_AXIS_COLOR = (0, 0, 255)
Y_AXIS_COLOR = (255, 0, 0)
TEXT_COLOR = (255, 0, 255)


def draw_detection(image: np.ndarray, det: RawDetection) -> None:
    """Draw the tag outline, its first two edges and its id in place."""
    pts = np.round(np.asarray(det.corners, dtype=np.float64)).astype(np.int32).reshape(4, 2)
    p = [tuple(int(v) for v in pt) for pt in pts]
    cv2.line(image, p[0], p[1], X_AXIS_COLOR, 2)
    cv2.line(image, p[0], p[3], Y_AXIS_COLOR, 2)
    cv2.line(image, p[1], p[2], OUTLINE_COLOR, 2)
    cv2.line(image, p[2], p[3], OUTLINE_COLOR, 2)
    cx, cy = (int(round(v)) for v in np.asarray(det.center).reshape(2))
    cv2.putText(
        image,
        str(det.id),
        (cx - 10, cy + 5),
        cv2.FONT_HERSHEY_SIMPLEX,
        0.6,
        TEXT_COLOR,
        2,
        cv2.LINE_AA,
    )
