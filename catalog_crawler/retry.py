"""Generic retry helper with multiplicative backoff."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional, TypeVar

from .errors import RetryExhaustedError

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryConfig:
    max_attempts: int = 3
    delay_ms: float = 500.0
    backoff_factor: float = 1.5


def retry(
    operation: Callable[[], T],
    config: RetryConfig,
    context: str,
    sleep: Callable[[float], None] = time.sleep,
    log: Optional[logging.Logger] = None,
) -> T:
    """Call ``operation`` until it succeeds or ``config.max_attempts`` is reached.

    Args:
        operation: Callable to retry (takes no arguments)
        config: Attempt count and delay schedule
        context: Identifier for error messages, usually the URL
        sleep: Sleep function, injectable for tests
        log: Logger for per-attempt warnings

    Returns:
        The operation's result

    Raises:
        RetryExhaustedError: After the last attempt fails; chained to that failure
    """
    log = log or logger
    attempts = max(1, config.max_attempts)
    delay_ms = config.delay_ms

    for attempt in range(1, attempts + 1):
        try:
            return operation()
        except Exception as exc:  # noqa: BLE001
            if attempt == attempts:
                raise RetryExhaustedError(context, attempt, exc) from exc
            log.warning(
                "Attempt %d/%d failed: %s. Retrying in %.0fms... (%s)",
                attempt,
                attempts,
                context,
                delay_ms,
                exc,
            )
            sleep(delay_ms / 1000.0)
            delay_ms *= config.backoff_factor

    raise RuntimeError("Retry loop completed without result or exception")
