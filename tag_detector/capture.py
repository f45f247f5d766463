import re
import time
from abc import ABC, abstractmethod
from typing import Any, Optional

import cv2
import numpy as np

from tag_pipeline.tp_types import CameraIntrinsics, Frame, FrameHeader


class BaseCapture(ABC):
    @abstractmethod
    def start(self) -> None: ...

    @abstractmethod
    def next_frame(self) -> Frame | None: ...

    @abstractmethod
    def stop(self) -> None: ...


class USBOpenCVCapture(BaseCapture):
    def __init__(
        self,
        device: int | str,
        fps: int,
        width: int,
        height: int,
        intrinsics: Optional[CameraIntrinsics] = None,
        frame_id: str = "camera",
    ):
        self.device = device
        self.fps = fps
        self.width = width
        self.height = height
        self.intrinsics = intrinsics
        self.frame_id = frame_id
        self.cap: Any = None
        self.idx = 0

    def start(self) -> None:
        if isinstance(self.device, int):
            self.cap = cv2.VideoCapture(self.device, cv2.CAP_V4L2)
        else:
            dev_str = str(self.device)
            match = re.match(r"^/dev/video(\d+)$", dev_str)
            if match:
                self.cap = cv2.VideoCapture(int(match.group(1)), cv2.CAP_V4L2)
            else:
                self.cap = cv2.VideoCapture(dev_str)

        self.cap.set(cv2.CAP_PROP_FRAME_WIDTH, self.width)
        self.cap.set(cv2.CAP_PROP_FRAME_HEIGHT, self.height)
        self.cap.set(cv2.CAP_PROP_FPS, self.fps)

        if not self.cap.isOpened():
            raise RuntimeError(f"Failed to open camera: {self.device}")

    def next_frame(self) -> Frame | None:
        ok, img = self.cap.read()
        if not ok:
            return None
        self.idx += 1
        return Frame(self.idx, FrameHeader(time.time(), self.frame_id), img, self.intrinsics)

    def stop(self) -> None:
        if self.cap is not None:
            self.cap.release()


class SyntheticCapture(BaseCapture):
    """Blank frames at a fixed rate, for dry runs without a camera."""

    def __init__(
        self,
        fps: int,
        width: int,
        height: int,
        intrinsics: Optional[CameraIntrinsics] = None,
        frame_id: str = "camera",
    ):
        self.fps = fps
        self.width = width
        self.height = height
        self.intrinsics = intrinsics or CameraIntrinsics(
            float(width), float(width), width / 2.0, height / 2.0
        )
        self.frame_id = frame_id
        self.idx = 0
        self._last = 0.0

    def start(self) -> None:
        self._last = time.time()

    def next_frame(self) -> Frame | None:
        now = time.time()
        if self.fps > 0:
            wait = max(0.0, (1.0 / self.fps) - (now - self._last))
            if wait > 0:
                time.sleep(wait)
        self._last = time.time()
        self.idx += 1
        img = np.zeros((self.height, self.width, 3), dtype=np.uint8)
        return Frame(self.idx, FrameHeader(self._last, self.frame_id), img, self.intrinsics)

    def stop(self) -> None:
        return None
