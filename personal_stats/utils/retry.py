import functools
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Optional

import requests

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RetryPolicy:
    """How often and on what to retry a call.

    Delays: delay * backoff^attempt, so backoff=1.0 gives a fixed delay and
    backoff=2.0 doubles it each time (e.g. 1s, 2s, 4s).

    A call is retried when it raises one of `exceptions`, or when `retry_if`
    returns True for its result. Once retries run out, the last exception is
    re-raised; a result that still matches `retry_if` is returned as is.
    """

    max_retries: int = 3
    delay: float = 1.0
    backoff: float = 2.0
    exceptions: tuple = (Exception,)
    retry_if: Optional[Callable[[Any], bool]] = None

    def call(self, func: Callable, *args, **kwargs):
        name = getattr(func, "__name__", repr(func))
        result = None
        for attempt in range(self.max_retries + 1):
            wait = self.delay * (self.backoff ** attempt)
            try:
                result = func(*args, **kwargs)
            except self.exceptions as e:
                if attempt < self.max_retries:
                    logger.warning(
                        "%s attempt %d failed: %s. Retrying in %.1fs...",
                        name, attempt + 1, e, wait,
                    )
                    time.sleep(wait)
                    continue
                logger.error(
                    "%s failed after %d attempts: %s",
                    name, self.max_retries + 1, e,
                )
                raise

            if self.retry_if is None or not self.retry_if(result):
                return result
            if attempt < self.max_retries:
                logger.info(
                    "%s attempt %d not ready yet. Retrying in %.1fs...",
                    name, attempt + 1, wait,
                )
                time.sleep(wait)

        logger.warning("%s still pending after %d attempts", name, self.max_retries + 1)
        return result

    def __call__(self, func: Callable) -> Callable:
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            return self.call(func, *args, **kwargs)

        return wrapper


def with_retry(
    max_retries: int = 3,
    base_delay: float = 1.0,
    exceptions: tuple = (Exception,),
    backoff: float = 2.0,
    retry_if: Optional[Callable[[Any], bool]] = None,
) -> RetryPolicy:
    """Decorator that retries a function with exponential backoff."""
    return RetryPolicy(
        max_retries=max_retries,
        delay=base_delay,
        backoff=backoff,
        exceptions=exceptions,
        retry_if=retry_if,
    )


def is_pending(response: requests.Response) -> bool:
    """True while WakaTime is still computing a stats range."""
    if response.status_code == 202:
        return True
    try:
        body = response.json()
    except ValueError:
        return False
    data = body.get("data") if isinstance(body, dict) else None
    if not isinstance(data, dict):
        return False
    return data.get("status", "ok") != "ok"


# Fixed 5s delay, 5 attempts in total.
retry_on_error = RetryPolicy(
    max_retries=4,
    delay=5.0,
    backoff=1.0,
    exceptions=(requests.RequestException,),
)

retry_while_pending = RetryPolicy(
    max_retries=4,
    delay=5.0,
    backoff=1.0,
    exceptions=(requests.RequestException,),
    retry_if=is_pending,
)
