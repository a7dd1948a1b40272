import logging
import time

from dataclasses import dataclass, field
from typing import Callable, Iterator, Optional, Sequence, TypeVar

from tenacity import (
    RetryCallState,
    Retrying,
    retry_if_exception_type,
    stop_after_attempt,
    stop_never,
    wait_fixed,
)

from .errors import RateLimitedError


T = TypeVar('T')

# Supported networks.
NETWORK_MAINNET = 'mainnet'
NETWORK_HOODI = 'hoodi'
SUPPORTED_NETWORKS = (NETWORK_MAINNET, NETWORK_HOODI)

# EIP-7251 predeploy, identical on every network.
CONSOLIDATION_CONTRACT_ADDRESS = '0x0000BBdDc7CE488642fb579F8B00f3a590007251'

DEFAULT_SHARD_COMMITTEE_PERIOD = 256
DEFAULT_RATE_LIMIT_BACKOFF_SEC = 5.0
DEFAULT_GAS_LIMIT = 91000
DEFAULT_GAS_PRICE_MULTIPLIER_PCT = 120


def remove_0x_prefix(value: str) -> str:
    """Strip a leading 0x from an hex string, if any."""
    return value[2:] if value.startswith('0x') else value


def chunks(items: Sequence[T], size: int) -> Iterator[Sequence[T]]:
    """Yield successive slices of at most size elements.

    Args:
        items: Sequence[T]
            Items to split.
        size: int
            Maximum size of each slice.

    Returns:
        Iterator[Sequence[T]]
            The slices, in input order.
    """
    if size <= 0:
        raise ValueError('chunk size must be positive')
    for i in range(0, len(items), size):
        yield items[i:i + size]


def _log_rate_limited(state: RetryCallState) -> None:
    exc = state.outcome.exception() if state.outcome else None
    logging.warning(
        f'🐢 Rate limit exceeded ({exc}), attempt {state.attempt_number}, '
        f'waiting {state.next_action.sleep if state.next_action else 0:.1f}s before retrying'
    )


@dataclass
class RetryPolicy:
    """How HTTP 429 answers from the validator data API are retried.

    The default retries forever with a fixed delay: a rate limit is a
    transient condition and the data is needed to make progress. A
    finite max_attempts makes the last RateLimitedError propagate.

    Args:
        None

    Returns:
        None
    """
    backoff_sec: float = DEFAULT_RATE_LIMIT_BACKOFF_SEC
    max_attempts: Optional[int] = None
    sleep: Callable[[float], None] = field(default=time.sleep)

    def retrying(self) -> Retrying:
        """Build a tenacity controller implementing this policy.

        Args:
            None

        Returns:
            Retrying
                Controller retrying RateLimitedError only.
        """
        return Retrying(
            retry=retry_if_exception_type(RateLimitedError),
            wait=wait_fixed(self.backoff_sec),
            stop=stop_never if self.max_attempts is None else stop_after_attempt(self.max_attempts),
            sleep=self.sleep,
            before_sleep=_log_rate_limited,
            reraise=True,
        )

    def call(self, fn: Callable[..., T], *args, **kwargs) -> T:
        """Invoke fn, retrying it according to this policy."""
        return self.retrying()(fn, *args, **kwargs)
