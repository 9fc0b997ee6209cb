"""
Retry decorator for establishing SSH sessions
"""
import functools
import time

from .logging import log, warn
from ..config import RETRY_MAX, RETRY_BASE_DELAY


def retried(*, giveup=()):
    """
    Decorator: retry fn up to RETRY_MAX times with exponential back-off.
    Exceptions listed in *giveup* are re-raised immediately (auth failures
    won't fix themselves).
    """

    def decorate(fn):
        @functools.wraps(fn)
        def wrapper(*args, **kwargs):
            delay = RETRY_BASE_DELAY
            for attempt in range(1, RETRY_MAX + 1):
                try:
                    return fn(*args, **kwargs)
                except giveup:
                    raise
                except Exception as exc:
                    if attempt == RETRY_MAX:
                        raise
                    warn(f"{fn.__name__} failed (attempt {attempt}/{RETRY_MAX}): {exc}")
                    log(f"  retrying in {delay:.0f}s …")
                    time.sleep(delay)
                    delay = min(delay * 2, 60)

        return wrapper

    return decorate
