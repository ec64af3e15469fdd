"""Bounded retry for calls into the order/driver store and notification gateway."""

import logging
import time
from typing import Callable, Tuple, Type, TypeVar

from django.db import DatabaseError

logger = logging.getLogger(__name__)

T = TypeVar("T")


def call_with_retry(
    func: Callable[..., T],
    *args,
    attempts: int = 2,
    delay: float = 0.0,
    retry_on: Tuple[Type[BaseException], ...] = (DatabaseError,),
    label: str = "",
    **kwargs,
) -> T:
    """
    Call ``func`` and retry it on transient failures.

    Args:
        func: Callable to invoke
        attempts: Total number of tries (2 = one retry)
        delay: Seconds to sleep between tries
        retry_on: Exception types considered transient
        label: Name used in log messages

    Returns:
        Whatever ``func`` returns

    Raises:
        The last exception once every attempt has failed.
    """
    attempts = max(1, attempts)
    name = label or getattr(func, "__name__", repr(func))

    for attempt in range(1, attempts + 1):
        try:
            return func(*args, **kwargs)
        except retry_on as exc:
            if attempt >= attempts:
                logger.error("%s failed after %d attempt(s): %s", name, attempt, exc)
                raise
            logger.warning("%s failed (attempt %d/%d), retrying: %s", name, attempt, attempts, exc)
            if delay:
                time.sleep(delay)

    raise RuntimeError("unreachable")  # pragma: no cover
