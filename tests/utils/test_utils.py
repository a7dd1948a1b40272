from pytest import raises

from eth_validator_consolidator.errors import RateLimitedError, UpstreamError
from eth_validator_consolidator.utils import RetryPolicy, chunks, remove_0x_prefix


def test_remove_0x_prefix() -> None:
    assert remove_0x_prefix("0xabcd") == "abcd"
    assert remove_0x_prefix("abcd") == "abcd"


def test_chunks() -> None:
    assert list(chunks(list(range(250)), 100)) == [
        list(range(0, 100)),
        list(range(100, 200)),
        list(range(200, 250)),
    ]
    assert list(chunks([], 100)) == []


def test_chunks_invalid_size() -> None:
    with raises(ValueError):
        list(chunks([1, 2, 3], 0))


class Flaky:
    """Raises the given errors, then returns ok."""

    def __init__(self, *errors: Exception) -> None:
        self.errors = list(errors)
        self.calls = 0

    def __call__(self) -> str:
        self.calls += 1
        if self.errors:
            raise self.errors.pop(0)
        return "ok"


def test_retry_policy_retries_rate_limits() -> None:
    sleeps: list[float] = []
    policy = RetryPolicy(backoff_sec=5, sleep=sleeps.append)
    fn = Flaky(*[RateLimitedError("http://api") for _ in range(10)])

    assert policy.call(fn) == "ok"
    assert fn.calls == 11
    assert sleeps == [5] * 10


def test_retry_policy_ceiling() -> None:
    policy = RetryPolicy(backoff_sec=1, max_attempts=3, sleep=lambda _: None)
    fn = Flaky(*[RateLimitedError("http://api") for _ in range(5)])

    with raises(RateLimitedError, match="Rate limited by http://api"):
        policy.call(fn)

    assert fn.calls == 3


def test_retry_policy_other_errors() -> None:
    policy = RetryPolicy(backoff_sec=1, sleep=lambda _: None)
    fn = Flaky(UpstreamError("boom"))

    with raises(UpstreamError):
        policy.call(fn)

    assert fn.calls == 1
