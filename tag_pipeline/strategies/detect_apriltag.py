import cv2
import numpy as np

from ..tp_types import RawDetection


def get_dict(family: str):
    """
    AprilTag dictionary resolver.
    Accepts "36h11", "tag36h11" or "DICT_APRILTAG_36h11"; raises ValueError
    for unknown families.
    """
    key = (family or "").strip().lower()
    for prefix in ("dict_apriltag_", "tag"):
        if key.startswith(prefix):
            key = key[len(prefix):]
    table = {
        "16h5": cv2.aruco.DICT_APRILTAG_16h5,
        "25h9": cv2.aruco.DICT_APRILTAG_25h9,
        "36h10": cv2.aruco.DICT_APRILTAG_36h10,
        "36h11": cv2.aruco.DICT_APRILTAG_36h11,
    }
    if key not in table:
        raise ValueError(f"Unknown AprilTag family: {family!r}")
    return cv2.aruco.getPredefinedDictionary(table[key])


def tag_center(corners: np.ndarray) -> np.ndarray:
    """Intersection of the tag diagonals, or the corner mean when they are parallel."""
    p0, p1, p2, p3 = corners
    d1 = p2 - p0
    d2 = p3 - p1
    denom = d1[0] * d2[1] - d1[1] * d2[0]
    if abs(denom) < 1e-12:
        return corners.mean(axis=0)
    s = ((p1[0] - p0[0]) * d2[1] - (p1[1] - p0[1]) * d2[0]) / denom
    return p0 + s * d1


def perimeter(corners: np.ndarray) -> float:
    return float(np.linalg.norm(corners - np.roll(corners, -1, axis=0), axis=1).sum())


def _bits_to_int(bits) -> int:
    value = 0
    for bit in np.asarray(bits, dtype=bool).reshape(-1):
        value = (value << 1) | int(bit)
    return value


def marker_code(dictionary, tag_id: int) -> int:
    """Code word of a dictionary marker, row-major over its data cells, white = 1."""
    side = dictionary.markerSize + 2
    img = cv2.aruco.generateImageMarker(dictionary, int(tag_id), side)
    return _bits_to_int(img[1:-1, 1:-1] > 127)


def observed_code(gray: np.ndarray, corners: np.ndarray, marker_size: int, cell_px: int = 8) -> int:
    """
    Read the data cells back out of the image. The corners must already be in
    the marker's canonical order, as the detector returns them, so the result
    compares bit for bit with marker_code().
    """
    cells = marker_size + 2
    side = cells * cell_px
    dst = np.array([[0, 0], [side, 0], [side, side], [0, side]], dtype=np.float32)
    M = cv2.getPerspectiveTransform(np.asarray(corners, dtype=np.float32).reshape(4, 2), dst)
    patch = cv2.warpPerspective(gray, M, (side, side), flags=cv2.INTER_LINEAR)
    _t, binary = cv2.threshold(patch, 0, 255, cv2.THRESH_BINARY + cv2.THRESH_OTSU)
    means = binary.reshape(cells, cell_px, cells, cell_px).mean(axis=(1, 3))
    return _bits_to_int(means[1:-1, 1:-1] > 127)


def make_raw_detection(
    tag_id: int, corners, hamming_distance: int = 0, code: int = 0, obs_code: int = 0
) -> RawDetection:
    pts = np.asarray(corners, dtype=np.float64).reshape(4, 2)
    return RawDetection(
        id=int(tag_id),
        corners=pts,
        center=tag_center(pts),
        observed_perimeter=perimeter(pts),
        hamming_distance=hamming_distance,
        code=code,
        obs_code=obs_code,
    )


class AprilTagDetect:
    """
    Strategy: detect AprilTags in a grayscale image.
    Returns a list[RawDetection] with corners ordered counter-clockwise in the
    tag frame, starting from its (-1, -1) corner. Each detection carries the
    dictionary code word, the code actually read from the image and the
    number of bits in which they differ.
    """

    def __init__(self, family: str = "36h11"):
        self.dictionary = get_dict(family)
        self.params = cv2.aruco.DetectorParameters()
        self._detector = cv2.aruco.ArucoDetector(self.dictionary, self.params)
        self._codes: dict[int, int] = {}

    def _code(self, tag_id: int) -> int:
        if tag_id not in self._codes:
            self._codes[tag_id] = marker_code(self.dictionary, tag_id)
        return self._codes[tag_id]

    def detect(self, gray) -> list[RawDetection]:
        corners, ids, _rej = self._detector.detectMarkers(gray)
        dets: list[RawDetection] = []
        if ids is not None and len(ids) > 0:
            for i, tid in enumerate(ids.flatten()):
                tag_id = int(tid)
                code = self._code(tag_id)
                obs = observed_code(gray, corners[i], self.dictionary.markerSize)
                dets.append(
                    make_raw_detection(
                        tag_id,
                        corners[i],
                        hamming_distance=bin(code ^ obs).count("1"),
                        code=code,
                        obs_code=obs,
                    )
                )
        return dets
