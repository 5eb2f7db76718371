"""Bounded waiting for the provisioned service to answer over HTTP."""

from __future__ import annotations

import enum
import time
from typing import Callable, Protocol

import httpx
from loguru import logger

log = logger

DEFAULT_MAX_ATTEMPTS = 60
DEFAULT_INTERVAL_S = 2.0


class WaitResult(str, enum.Enum):
    READY = 'ready'
    TIMED_OUT = 'timed_out'
    CANCELLED = 'cancelled'


class CancelSignal(Protocol):
    def is_set(self) -> bool: ...


def wait_until(
    predicate: Callable[[], bool],
    *,
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    interval_s: float = DEFAULT_INTERVAL_S,
    cancel: CancelSignal | None = None,
    sleep: Callable[[float], None] = time.sleep,
) -> WaitResult:
    """Call ``predicate`` up to ``max_attempts`` times, sleeping in between.

    ``cancel`` (e.g. a :class:`threading.Event`) is checked before every
    attempt. A ``KeyboardInterrupt`` while waiting also yields ``CANCELLED``.
    """
    try:
        for attempt in range(1, max_attempts + 1):
            if cancel is not None and cancel.is_set():
                return WaitResult.CANCELLED
            if predicate():
                log.debug('Condition met after {} attempt(s)', attempt)
                return WaitResult.READY
            if attempt < max_attempts:
                sleep(interval_s)
    except KeyboardInterrupt:
        log.warning('Wait interrupted')
        return WaitResult.CANCELLED
    return WaitResult.TIMED_OUT


def http_ready(url: str, *, timeout_s: float = 5.0) -> bool:
    try:
        resp = httpx.get(url, timeout=timeout_s, follow_redirects=True)
    except httpx.HTTPError as ex:
        log.trace('Probe {} not ready: {}', url, ex)
        return False
    return resp.is_success


def poll(
    url: str,
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    interval_s: float = DEFAULT_INTERVAL_S,
    *,
    cancel: CancelSignal | None = None,
    sleep: Callable[[float], None] = time.sleep,
) -> WaitResult:
    log.info('Waiting for OpenGrok to start at {}', url)
    return wait_until(
        lambda: http_ready(url),
        max_attempts=max_attempts,
        interval_s=interval_s,
        cancel=cancel,
        sleep=sleep,
    )
