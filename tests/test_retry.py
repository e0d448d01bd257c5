import pytest

from srtforge.core.retry import RetryPolicy


def test_retries_until_success():
    sleeps = []
    calls = {"n": 0}

    def flaky():
        calls["n"] += 1
        if calls["n"] < 3:
            raise ConnectionError("down")
        return "ok"

    policy = RetryPolicy(max_attempts=3, base_delay=1.0, jitter=False, sleep=sleeps.append)
    assert policy.call(flaky, retry_on=(ConnectionError,)) == "ok"
    assert sleeps == [1.0, 2.0]


def test_reraises_last_error():
    policy = RetryPolicy(max_attempts=2, sleep=lambda s: None)

    def always_fails():
        raise TimeoutError("slow")

    with pytest.raises(TimeoutError):
        policy.call(always_fails, retry_on=(TimeoutError,))


def test_unlisted_errors_are_not_retried():
    calls = {"n": 0}

    def boom():
        calls["n"] += 1
        raise KeyError("x")

    with pytest.raises(KeyError):
        RetryPolicy(sleep=lambda s: None).call(boom, retry_on=(ConnectionError,))
    assert calls["n"] == 1


def test_delay_is_capped_and_jittered():
    policy = RetryPolicy(base_delay=1.0, max_delay=5.0)
    for attempt in range(6):
        delay = policy.delay_for(attempt)
        assert 0.0 <= delay <= 5.0 * 1.25
    assert RetryPolicy(jitter=False, max_delay=5.0).delay_for(10) == 5.0
