import pytest

from tag_pipeline.tp_types import CameraIntrinsics

from helpers import FakeClock


@pytest.fixture
def intrinsics():
    return CameraIntrinsics(fx=600.0, fy=600.0, px=320.0, py=240.0)


@pytest.fixture
def clock():
    return FakeClock(100.0)
