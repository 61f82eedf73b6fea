"""Retry-and-escalate driver for the transport fallback chain.

The fallback order and per-transport retry budgets are data: an ordered
sequence of ``(TransportPolicy, UploadTransport)`` pairs.  One driver,
:func:`upload_with_fallback`, walks that sequence and hands each entry
to :func:`run_with_retry`.

Ordering guarantees:

* attempts on one transport are strictly sequential with growing delay;
* transport N+1 only starts after transport N exhausted its attempts
  with retryable failures;
* a :class:`FatalTransportError` stops everything immediately.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Sequence
from datetime import datetime, timezone
from typing import Any

from photobooth.config import PhotoboothConfig
from photobooth.errors import FatalTransportError, RetryableTransportError
from photobooth.models import (
    AttemptOutcome,
    SelectedFile,
    TransportKind,
    TransportPolicy,
    UploadAttempt,
)
from photobooth.observability import get_logger, resolve_metrics

from .retries import compute_backoff
from .transports import ProgressCallback, UploadTransport

log = get_logger("photobooth.transport")

SleepFn = Callable[[float], Awaitable[Any]]
RetryCallback = Callable[[TransportKind, int], None]

TransportChain = Sequence[tuple[TransportPolicy, UploadTransport]]


async def run_with_retry(
    transport: UploadTransport,
    policy: TransportPolicy,
    upload: SelectedFile,
    *,
    config: PhotoboothConfig,
    attempts: list[UploadAttempt],
    on_progress: ProgressCallback | None = None,
    on_retry: RetryCallback | None = None,
    sleep: SleepFn = asyncio.sleep,
    metrics: Any | None = None,
) -> dict:
    """Send *upload* over *transport*, retrying per *policy*.

    Every try is appended to *attempts* as an :class:`UploadAttempt`
    whose outcome is filled in when the try ends.

    Returns
    -------
    dict
        The parsed success body of the first successful attempt.

    Raises
    ------
    FatalTransportError
        On the first structural rejection; no further attempts are made.
    RetryableTransportError
        The last failure, once ``policy.max_attempts`` tries are used up.
    """
    metrics = resolve_metrics(metrics)
    kind = policy.kind
    last_error: RetryableTransportError | None = None

    for attempt in range(policy.max_attempts):
        if attempt > 0:
            delay = compute_backoff(
                attempt - 1,
                base=policy.base_delay,
                maximum=config.retry_max_delay,
                jitter=config.retry_jitter,
            )
            metrics.increment(
                "photobooth.retries_total",
                tags={"transport": kind.value},
            )
            log.info(
                "Retrying upload",
                extra={
                    "extra_fields": {
                        "op": "upload",
                        "transport": kind.value,
                        "attempt": attempt + 1,
                        "max_attempts": policy.max_attempts,
                        "delay_s": delay,
                    }
                },
            )
            await sleep(delay)
            if on_retry is not None:
                on_retry(kind, attempt)

        record = UploadAttempt(
            transport=kind,
            attempt_number=attempt + 1,
            started_at=datetime.now(timezone.utc),
        )
        attempts.append(record)
        metrics.increment(
            "photobooth.upload_attempts_total",
            tags={"transport": kind.value},
        )

        try:
            body = await transport.send(upload, on_progress)
        except FatalTransportError as exc:
            record.outcome = AttemptOutcome.FATAL_FAILURE
            record.error_message = exc.message
            exc.context.setdefault("attempt", attempt + 1)
            raise
        except RetryableTransportError as exc:
            record.outcome = AttemptOutcome.RETRYABLE_FAILURE
            record.error_message = exc.message
            exc.context.setdefault("attempt", attempt + 1)
            last_error = exc
            continue

        record.outcome = AttemptOutcome.SUCCESS
        return body

    if last_error is None:
        raise ValueError(
            f"{kind.value}: max_attempts must be >= 1, got {policy.max_attempts}"
        )
    log.warning(
        "Transport exhausted its attempts",
        extra={
            "extra_fields": {
                "op": "upload",
                "transport": kind.value,
                "attempts": policy.max_attempts,
                "error": last_error.message,
            }
        },
    )
    raise last_error


async def upload_with_fallback(
    chain: TransportChain,
    upload: SelectedFile,
    *,
    config: PhotoboothConfig,
    attempts: list[UploadAttempt],
    on_progress: ProgressCallback | None = None,
    on_retry: RetryCallback | None = None,
    sleep: SleepFn = asyncio.sleep,
    metrics: Any | None = None,
) -> tuple[TransportKind, dict]:
    """Try each transport of *chain* in order until one succeeds.

    Progress is reset to 0 whenever a transport starts.

    Returns
    -------
    tuple[TransportKind, dict]
        The transport that succeeded and its parsed response body.

    Raises
    ------
    FatalTransportError
        As soon as any attempt is structurally rejected.
    RetryableTransportError
        The last transport's final failure when every transport is
        exhausted.
    """
    if not chain:
        raise ValueError("Transport chain is empty")

    metrics = resolve_metrics(metrics)
    last_error: RetryableTransportError | None = None
    previous: TransportKind | None = None

    for policy, transport in chain:
        if previous is not None:
            metrics.increment(
                "photobooth.fallbacks_total",
                tags={"from": previous.value, "to": policy.kind.value},
            )
            log.warning(
                "Falling back to next transport",
                extra={
                    "extra_fields": {
                        "op": "upload",
                        "from": previous.value,
                        "to": policy.kind.value,
                        "error": last_error.message if last_error else None,
                    }
                },
            )
        if on_progress is not None:
            on_progress(0)

        try:
            body = await run_with_retry(
                transport,
                policy,
                upload,
                config=config,
                attempts=attempts,
                on_progress=on_progress,
                on_retry=on_retry,
                sleep=sleep,
                metrics=metrics,
            )
        except RetryableTransportError as exc:
            last_error = exc
            previous = policy.kind
            continue
        return policy.kind, body

    if last_error is None:
        raise ValueError("Transport chain produced neither a result nor an error")
    raise last_error
