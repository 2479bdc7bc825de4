"""
Async retry utility with exponential backoff

Plan steps that talk to the network can fail transiently (RPC timeouts,
a slow near CLI). AsyncRetry re-runs such steps with exponential backoff.
Only exception types listed in ``retry_on`` are retried: a near call that
exited non-zero is never retried, since contract calls are not idempotent.

Usage:
    retry = AsyncRetry(max_retries=3, base_delay=2.0)
    result = await retry.execute(cli.deploy, wasm, account_id, label="deploy")
"""

import asyncio
import functools
import logging
import random
from dataclasses import dataclass, field
from typing import Awaitable, Callable, List, Optional, Tuple, Type, TypeVar

from .exceptions import CommandTimeoutError, RpcError

T = TypeVar('T')
LOG = logging.getLogger(__name__)

DEFAULT_RETRY_ON: Tuple[Type[Exception], ...] = (CommandTimeoutError, RpcError, TimeoutError)

OnRetry = Callable[[int, Exception, float], Awaitable[None]]


@dataclass
class AsyncRetry:
    """
    Retry policy for async callables.

    ``max_retries`` is the total number of attempts: with ``max_retries=2``
    the operation runs at most twice. ``stop_on`` wins over ``retry_on``.
    ``on_retry(attempt, exception, delay)`` is awaited before each sleep.
    """
    max_retries: int = 3
    base_delay: float = 1.0
    max_delay: float = 60.0
    exponential_base: float = 2.0
    jitter: bool = True
    retry_on: Tuple[Type[Exception], ...] = DEFAULT_RETRY_ON
    stop_on: Tuple[Type[Exception], ...] = ()
    on_retry: Optional[OnRetry] = None

    def is_retryable(self, exception: Exception) -> bool:
        if isinstance(exception, self.stop_on):
            return False
        return isinstance(exception, self.retry_on)

    async def execute(
        self,
        func: Callable[..., Awaitable[T]],
        *args,
        label: Optional[str] = None,
        **kwargs
    ) -> T:
        """
        Await ``func(*args, **kwargs)`` until it succeeds or attempts run out.

        Raises:
            The last exception once it is not retryable or attempts are exhausted
        """
        label = label or getattr(func, "__name__", "operation")
        state = RetryState(self)

        while True:
            try:
                result = await func(*args, **kwargs)
            except Exception as e:
                if not self.is_retryable(e):
                    if isinstance(e, self.stop_on):
                        LOG.error(f"{label}: {type(e).__name__} is not retried")
                    raise

                state.record_attempt(e)
                if not state.should_retry():
                    LOG.error(f"{label}: giving up after {state.attempt} attempts: {e}")
                    raise

                delay = state.next_delay()
                LOG.warning(
                    f"{label}: attempt {state.attempt}/{self.max_retries} failed "
                    f"({type(e).__name__}: {e}), retrying in {delay:.2f}s"
                )
                if self.on_retry:
                    await self.on_retry(state.attempt, e, delay)
                await asyncio.sleep(delay)
                continue

            if state.attempt:
                LOG.info(f"{label}: succeeded after {state.attempt} retries ({state.total_delay:.2f}s waiting)")
            return result

    def __call__(self, func: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
        """Decorator form: ``@AsyncRetry(max_retries=3)``"""
        @functools.wraps(func)
        async def wrapper(*args, **kwargs):
            return await self.execute(func, *args, **kwargs)

        return wrapper


@dataclass
class RetryState:
    """Attempt bookkeeping for one execution of a retry policy"""
    policy: AsyncRetry
    attempt: int = 0
    total_delay: float = 0.0
    errors: List[Exception] = field(default_factory=list)

    @property
    def last_exception(self) -> Optional[Exception]:
        return self.errors[-1] if self.errors else None

    def should_retry(self) -> bool:
        return self.attempt < self.policy.max_retries

    def next_delay(self) -> float:
        """Backoff for the upcoming attempt, capped at max_delay"""
        policy = self.policy
        delay = policy.base_delay * (policy.exponential_base ** self.attempt)
        if policy.jitter:
            delay *= random.uniform(0.75, 1.25)
        delay = min(delay, policy.max_delay)
        self.total_delay += delay
        return delay

    def record_attempt(self, exception: Exception) -> None:
        self.attempt += 1
        self.errors.append(exception)


def build_step_retry(retries: int) -> Optional[AsyncRetry]:
    """Retry policy for plan steps; ``retries`` extra attempts after the first"""
    if retries <= 0:
        return None
    return AsyncRetry(max_retries=retries + 1, base_delay=2.0, max_delay=30.0)
