"""Retry classification and exponential backoff computation.

This module provides pure functions used by the transports and the
retry executor:

* :func:`is_retryable_status` / :func:`is_retryable_exception` --
  classify an outcome as transient or structural.
* :func:`compute_backoff` -- compute the delay before the next attempt.
"""

from __future__ import annotations

import random

import httpx

# HTTP status codes that signal overload or a timeout.  Any other 5xx
# is retryable as well; see :func:`is_retryable_status`.
_RETRYABLE_STATUSES: frozenset[int] = frozenset({408, 429, 500, 502, 503, 504})

# Network-level exceptions that warrant a retry.
_RETRYABLE_EXCEPTIONS: tuple[type[Exception], ...] = (
    httpx.TimeoutException,
    httpx.NetworkError,
    httpx.RemoteProtocolError,
)


def is_retryable_status(status_code: int) -> bool:
    """Return ``True`` for timeout/overload-class HTTP statuses."""
    return status_code in _RETRYABLE_STATUSES or status_code >= 500


def is_retryable_exception(exc: Exception) -> bool:
    """Return ``True`` for network and timeout exceptions."""
    return isinstance(exc, _RETRYABLE_EXCEPTIONS)


def compute_backoff(
    attempt: int,
    base: float = 1.0,
    maximum: float = 60.0,
    jitter: bool = False,
) -> float:
    """Compute the delay before the next attempt.

    The delay after failed attempt *attempt* (0-indexed) is
    ``base * 2 ** attempt``, i.e. ``base * 2 ** (n - 1)`` before retry
    *n*, capped at *maximum*.

    When *jitter* is enabled the delay is randomly scaled to between
    50 % and 100 % of its value.

    Returns
    -------
    float
        Delay in seconds.
    """
    delay = min(base * (2 ** attempt), maximum)

    if jitter:
        delay *= 0.5 + random.random() * 0.5

    return delay
