"""Shared helpers for inference providers."""

from __future__ import annotations

import logging
from typing import Any

from tenacity import before_sleep_log, retry_if_exception_type, stop_after_attempt, wait_exponential

logger = logging.getLogger(__name__)


def default_retry_kwargs(exception_types: tuple[type[Exception], ...]) -> dict[str, Any]:
    """Retry policy for opening a model stream.

    Only the request that opens a stream is retried; once deltas have been
    forwarded to a client the stream is never replayed.
    """
    return {
        "retry": retry_if_exception_type(exception_types),
        "wait": wait_exponential(multiplier=1, min=1, max=20),
        "stop": stop_after_attempt(3),
        "before_sleep": before_sleep_log(logger, logging.WARNING),
        "reraise": True,
    }
