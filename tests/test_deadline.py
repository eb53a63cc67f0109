"""
Unit tests for the RunDeadline.
"""
import math

from collection_schedule.deadline import RunDeadline


class FakeClock:
    def __init__(self):
        self.now = 100.0

    def __call__(self):
        return self.now


def test_unbounded_deadline_never_expires():
    deadline = RunDeadline()
    assert deadline.remaining() == math.inf
    assert deadline.expired() is False
    assert deadline.clamp(30) == 30


def test_deadline_counts_down_and_clamps():
    """Tests that waits are cut to the remaining budget."""
    clock = FakeClock()
    deadline = RunDeadline(60, clock=clock)

    assert deadline.clamp(90) == 60
    clock.now += 50
    assert deadline.remaining() == 10
    assert deadline.clamp(90) == 10
    assert deadline.clamp(5) == 5

    clock.now += 20
    assert deadline.remaining() == 0
    assert deadline.expired() is True
    assert deadline.clamp(90) == 0
