import numpy as np

from tag_pipeline.tp_types import RawDetection
from tag_pipeline.strategies.detect_apriltag import make_raw_detection
from tag_pipeline.strategies.resolve_homography import marker_object_points


def project_square(size, R, t, intrinsics):
    """Project the tag corners posed by (R, t) into pixel coordinates."""
    obj = marker_object_points(size)
    pts3 = np.column_stack((obj, np.zeros(4))) @ np.asarray(R).T + np.asarray(t)
    u = intrinsics.fx * pts3[:, 0] / pts3[:, 2] + intrinsics.px
    v = intrinsics.fy * pts3[:, 1] / pts3[:, 2] + intrinsics.py
    return np.column_stack((u, v))


def centered_detection(tag_id: int, half: float = 60.0, cx: float = 320.0, cy: float = 240.0) -> RawDetection:
    corners = [
        [cx - half, cy - half],
        [cx + half, cy - half],
        [cx + half, cy + half],
        [cx - half, cy + half],
    ]
    return make_raw_detection(tag_id, corners)


def collinear_detection(tag_id: int) -> RawDetection:
    return make_raw_detection(tag_id, [[100, 100], [150, 100], [200, 100], [250, 100]])


class FakeClock:
    def __init__(self, now: float = 0.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, dt: float) -> None:
        self.now += dt
