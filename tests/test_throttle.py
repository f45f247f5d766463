import pytest

from tag_pipeline.throttle import LogThrottle

from helpers import FakeClock


def test_first_event_is_emitted():
    assert LogThrottle(10.0, clock=FakeClock(0.0)).should_emit(1) is True


def test_repeat_within_window_is_suppressed():
    clock = FakeClock(0.0)
    throttle = LogThrottle(10.0, clock=clock)

    assert throttle.should_emit(1)
    clock.advance(9.5)
    assert not throttle.should_emit(1)
    clock.advance(0.5)
    assert throttle.should_emit(1)


def test_keys_are_independent():
    throttle = LogThrottle(10.0, clock=FakeClock(0.0))
    assert throttle.should_emit(1)
    assert throttle.should_emit(2)
    assert not throttle.should_emit(1)


def test_suppressed_events_do_not_extend_window():
    clock = FakeClock(0.0)
    throttle = LogThrottle(10.0, clock=clock)
    throttle.should_emit("k")
    for _ in range(9):
        clock.advance(1.0)
        assert not throttle.should_emit("k")
    clock.advance(1.0)
    assert throttle.should_emit("k")


def test_reset_forgets_history():
    throttle = LogThrottle(10.0, clock=FakeClock(0.0))
    throttle.should_emit(1)
    throttle.reset()
    assert throttle.should_emit(1)


def test_negative_window_rejected():
    with pytest.raises(ValueError):
        LogThrottle(-1.0)
