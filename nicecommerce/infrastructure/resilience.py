"""
  Retry, circuit breaker and time limit around outbound calls.

  Layering (outermost first):

    retry (tenacity)  →  circuit breaker (aiobreaker)  →  time limit (asyncio.wait_for)  →  call

  Only I/O style failures are retried. An open circuit raises
  CircuitBreakerError straight away and is not retried.
"""
import asyncio
import logging
from datetime import timedelta
from typing import Any, Awaitable, Callable

from aiobreaker import CircuitBreaker, CircuitBreakerError, CircuitBreakerListener
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_fixed

from nicecommerce.config import PaymentSettings

logger = logging.getLogger(__name__)

RETRYABLE_ERRORS = (OSError, ConnectionError, TimeoutError, asyncio.TimeoutError)

__all__ = ["CircuitBreakerError", "ResilientCaller", "RETRYABLE_ERRORS"]


def _state_name(state) -> str:
    state = getattr(state, "state", state)
    return getattr(state, "name", str(state))


class _StateLogger(CircuitBreakerListener):
    def state_change(self, breaker, old, new):
        logger.warning("Circuit breaker '%s' changed state: %s -> %s",
                       breaker.name, _state_name(old), _state_name(new))


class ResilientCaller:
    def __init__(self, settings: PaymentSettings, name: str = "paymentService"):
        self.settings = settings
        self.name = name
        self.breaker = CircuitBreaker(
            fail_max=settings.breaker_fail_max,
            timeout_duration=timedelta(seconds=settings.breaker_reset_seconds),
            listeners=[_StateLogger()],
            name=name,
        )

    @property
    def state(self) -> str:
        return _state_name(self.breaker.current_state)

    async def _time_limited(self, fn: Callable[..., Awaitable[Any]], *args) -> Any:
        return await asyncio.wait_for(fn(*args), timeout=self.settings.timeout_seconds)

    async def call(self, fn: Callable[..., Awaitable[Any]], *args) -> Any:
        """
        Run `fn(*args)` under retry, breaker and time limit.

        Raises:
            CircuitBreakerError: the circuit is open
            Exception: the last failure once retries are exhausted
        """
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.settings.max_attempts),
            wait=wait_fixed(self.settings.retry_wait_seconds),
            retry=retry_if_exception_type(RETRYABLE_ERRORS),
            before_sleep=lambda state: logger.warning(
                "%s attempt %s failed: %s", self.name, state.attempt_number, state.outcome.exception()
            ),
            reraise=True,
        )
        async for attempt in retrying:
            with attempt:
                return await self.breaker.call_async(self._time_limited, fn, *args)
