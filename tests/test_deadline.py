import pytest

from releaseget.deadline import Deadline
from releaseget.errors import DeadlineExceeded


def test_zero_timeout_never_expires(clock):
    d = Deadline(0)
    clock.advance(10**6)
    assert not d.enabled
    assert d.remaining() is None
    assert d.request_timeout() is None
    d.check()


def test_remaining_counts_down(clock):
    d = Deadline(30)
    clock.advance(10)
    assert d.remaining() == pytest.approx(20)
    assert d.request_timeout() == pytest.approx(20)


def test_expiry_raises(clock):
    d = Deadline(5)
    clock.advance(5)
    assert d.expired()
    with pytest.raises(DeadlineExceeded, match="timed out after 5s"):
        d.check()
    with pytest.raises(DeadlineExceeded):
        d.request_timeout()


def test_explicit_clock():
    now = [0.0]
    d = Deadline(1.5, clock=lambda: now[0])
    now[0] = 1.0
    assert not d.expired()
    now[0] = 2.0
    assert d.expired()
