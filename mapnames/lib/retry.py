from __future__ import annotations

import logging
import time
from typing import Callable, Optional, Tuple, Type, TypeVar

from ..errors import TransientIOFailure

logger = logging.getLogger(__name__)

T = TypeVar("T")


def with_retries(
    fn: Callable[[], T],
    *,
    attempts: int = 3,
    backoff_s: float = 2.0,
    retry_on: Tuple[Type[BaseException], ...] = (TransientIOFailure,),
    what: str = "operation",
    sleep: Optional[Callable[[float], None]] = None,
) -> T:
    """Call *fn* up to *attempts* times, sleeping ``backoff_s * n`` after failure n.

    Only use this for idempotent operations; the last error is re-raised.
    """

    pause = sleep or time.sleep
    attempts = max(1, attempts)
    for n in range(1, attempts + 1):
        try:
            return fn()
        except retry_on as e:
            if n == attempts:
                logger.error("%s failed after %d attempts: %s", what, attempts, e)
                raise
            delay = backoff_s * n
            logger.warning("%s failed (attempt %d/%d): %s; retrying in %.1fs", what, n, attempts, e, delay)
            pause(delay)
    raise AssertionError("unreachable")
