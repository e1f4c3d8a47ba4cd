import functools
import logging
import time

logger = logging.getLogger("yb_news.timing")

SLOW_CALL_MS = 1000.0


def timeit(label: str = None, slow_ms: float = SLOW_CALL_MS):
    """
    Log the wall time of an async service call.

    Normal calls are logged at DEBUG; calls slower than ``slow_ms`` at WARNING
    (usually a saturated DB pool or a slow SMTP relay).

    Usage:
        @timeit("login_user")
        async def login_user(...):
            ...
    """

    def _decorate(func):
        name = label or func.__qualname__

        @functools.wraps(func)
        async def _timed(*args, **kwargs):
            start = time.perf_counter()
            try:
                return await func(*args, **kwargs)
            finally:
                elapsed_ms = (time.perf_counter() - start) * 1000.0
                level = logging.WARNING if elapsed_ms >= slow_ms else logging.DEBUG
                logger.log(level, f"[timing] {name} took {elapsed_ms:.2f} ms")

        return _timed

    return _decorate
