"""
Condition-based waiting.

Instead of sleeping for a fixed number of seconds after an action, checks
poll a predicate until it returns something truthy. Polls back off
exponentially and the whole wait is bounded by a timeout.
"""

import asyncio
import inspect
import logging
from typing import Any, Awaitable, Callable, Optional, Tuple, Type, Union

from tenacity import (
    AsyncRetrying,
    RetryError,
    Retrying,
    retry_if_exception_type,
    retry_if_result,
    stop_after_attempt,
    stop_after_delay,
    wait_exponential,
)

from .config import WaitConfig
from .exceptions import WaitTimeoutError

logger = logging.getLogger(__name__)

ExceptionTypes = Union[Type[BaseException], Tuple[Type[BaseException], ...]]


def _is_falsy(value: Any) -> bool:
    return not value


def _build_policy(timeout: float, interval: float, max_interval: float,
                  max_attempts: Optional[int], retry_on: ExceptionTypes) -> dict:
    stop = stop_after_delay(timeout)
    if max_attempts is not None:
        stop = stop | stop_after_attempt(max_attempts)

    retry = retry_if_result(_is_falsy)
    if retry_on:
        retry = retry | retry_if_exception_type(retry_on)

    return {
        'stop': stop,
        'wait': wait_exponential(multiplier=interval, min=interval, max=max_interval),
        'retry': retry,
        'reraise': False,
    }


def _last_value(error: RetryError) -> Any:
    attempt = error.last_attempt
    if attempt.failed:
        return attempt.exception()
    return attempt.result()


def wait_until(predicate: Callable[[], Any], timeout: float = 30.0, interval: float = 0.5,
               max_interval: float = 5.0, description: str = "condition",
               max_attempts: Optional[int] = None, retry_on: ExceptionTypes = (),
               sleep: Optional[Callable[[float], None]] = None) -> Any:
    """Poll ``predicate`` until it returns a truthy value.

    Args:
        predicate: Zero-argument callable polled on each attempt
        timeout: Overall deadline in seconds
        interval: First delay between polls; later delays double up to max_interval
        max_interval: Upper bound for the delay between polls
        description: Human-readable name used in logs and the timeout error
        max_attempts: Optional cap on the number of polls
        retry_on: Exception types treated like a falsy poll instead of aborting
        sleep: Replacement sleep function

    Returns:
        The first truthy value returned by the predicate

    Raises:
        WaitTimeoutError: If the deadline or attempt cap is reached first
    """
    policy = _build_policy(timeout, interval, max_interval, max_attempts, retry_on)
    if sleep is not None:
        policy['sleep'] = sleep

    logger.debug(f"Waiting up to {timeout}s for {description}")
    try:
        return Retrying(**policy)(predicate)
    except RetryError as e:
        logger.warning(f"Gave up waiting for {description} after {e.last_attempt.attempt_number} attempts")
        raise WaitTimeoutError(description, timeout, _last_value(e)) from e


async def async_wait_until(predicate: Callable[[], Union[Any, Awaitable[Any]]], timeout: float = 30.0,
                           interval: float = 0.5, max_interval: float = 5.0,
                           description: str = "condition", max_attempts: Optional[int] = None,
                           retry_on: ExceptionTypes = (),
                           sleep: Optional[Callable[[float], Awaitable[None]]] = None) -> Any:
    """Async variant of :func:`wait_until`; the predicate may be sync or async."""
    policy = _build_policy(timeout, interval, max_interval, max_attempts, retry_on)
    policy['sleep'] = sleep or asyncio.sleep

    async def poll():
        value = predicate()
        if inspect.isawaitable(value):
            value = await value
        return value

    logger.debug(f"Waiting up to {timeout}s for {description}")
    try:
        return await AsyncRetrying(**policy)(poll)
    except RetryError as e:
        logger.warning(f"Gave up waiting for {description} after {e.last_attempt.attempt_number} attempts")
        raise WaitTimeoutError(description, timeout, _last_value(e)) from e


def wait_from_config(predicate: Callable[[], Any], wait_config: WaitConfig,
                     description: str = "condition", timeout: Optional[float] = None,
                     **kwargs) -> Any:
    """Run :func:`wait_until` with defaults taken from a ``WaitConfig``."""
    return wait_until(
        predicate,
        timeout=timeout if timeout is not None else wait_config.timeout,
        interval=wait_config.interval,
        max_interval=wait_config.max_interval,
        description=description,
        **kwargs,
    )
