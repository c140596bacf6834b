import time

from deltalog.clock import SystemClock


def test_wait_till():
    clock = SystemClock()
    now = clock.now_in_millis()

    result = clock.wait_till(now + 5000)

    diff = (result - now) // 1000
    assert 5 <= diff <= 6


def test_wait_till_past_target_returns_immediately():
    clock = SystemClock()
    now = clock.now_in_millis()
    start = time.monotonic()

    result = clock.wait_till(now - 1000)

    assert result >= now
    assert time.monotonic() - start < 1


def test_nanos_agree_with_millis():
    clock = SystemClock()
    before = clock.now_in_millis()
    nanos = clock.now_in_nanos()
    after = clock.now_in_millis()
    assert before <= nanos // 1_000_000 <= after