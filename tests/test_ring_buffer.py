"""Tests for the per-channel sample buffer."""

import pytest

from serial_monitor_lib.ring_buffer import SampleBuffer


class FakeClock:
    """Manually advanced time source."""

    def __init__(self, start: float = 100.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def test_first_push_starts_at_zero() -> None:
    clock = FakeClock()
    buffer = SampleBuffer(clock=clock)

    buffer.push(5.0, 100)
    clock.advance(0.5)
    buffer.push(6.0, 100)

    assert buffer.snapshot() == [(0.0, 5.0), (0.5, 6.0)]
    assert buffer.t0 == 100.0


def test_length_is_capped_and_keeps_most_recent() -> None:
    """Length after each push is min(pushes, max_points); newest values kept in order."""
    buffer = SampleBuffer(clock=FakeClock())
    max_points = 100

    for i in range(250):
        buffer.push(float(i), max_points)
        assert len(buffer) == min(i + 1, max_points)

    assert buffer.values == [float(i) for i in range(150, 250)]
    assert len(buffer.times) == len(buffer.values)


def test_eviction_keeps_timestamps_aligned() -> None:
    clock = FakeClock()
    buffer = SampleBuffer(clock=clock)

    for i in range(5):
        buffer.push(float(i), 3)
        clock.advance(1.0)

    assert buffer.snapshot() == [(2.0, 2.0), (3.0, 3.0), (4.0, 4.0)]


def test_clear_then_push_restarts_clock() -> None:
    clock = FakeClock()
    buffer = SampleBuffer(clock=clock)
    buffer.push(1.0, 100)
    clock.advance(10.0)
    buffer.push(2.0, 100)

    buffer.clear()
    assert len(buffer) == 0
    assert buffer.t0 is None

    clock.advance(3.0)
    buffer.push(3.0, 100)
    assert buffer.snapshot() == [(0.0, 3.0)]


def test_clear_then_push_with_real_clock() -> None:
    buffer = SampleBuffer()
    buffer.push(1.0, 100)
    buffer.clear()
    buffer.push(2.0, 100)

    points = buffer.snapshot()
    assert len(points) == 1
    assert points[0][0] == pytest.approx(0.0, abs=1e-3)


def test_shrinking_capacity_trims_to_new_size() -> None:
    buffer = SampleBuffer(clock=FakeClock())
    for i in range(10):
        buffer.push(float(i), 10)

    buffer.push(10.0, 4)

    assert buffer.values == [7.0, 8.0, 9.0, 10.0]


def test_snapshot_is_a_copy() -> None:
    buffer = SampleBuffer(clock=FakeClock())
    buffer.push(1.0, 100)

    snap = buffer.snapshot()
    buffer.push(2.0, 100)

    assert snap == [(0.0, 1.0)]
    assert buffer.latest() == (0.0, 2.0)


def test_latest_on_empty_buffer() -> None:
    assert SampleBuffer().latest() is None


def test_invalid_max_points() -> None:
    with pytest.raises(ValueError):
        SampleBuffer().push(1.0, 0)
