import functools
import logging
import time

from memory_game.errors import TransientStoreError

logger = logging.getLogger(__name__)


def call_with_retries(operation, *, attempts, delay, retry_on, name, on_retry=None):
    """Run ``operation`` up to ``attempts`` times with a fixed pause between tries.

    Only exceptions listed in ``retry_on`` are retried; the last one is
    surfaced as TransientStoreError. ``on_retry`` runs after every failed
    attempt (e.g. to roll back a broken DB session).
    """
    attempts = max(1, int(attempts))
    last_exc = None
    for attempt in range(1, attempts + 1):
        try:
            return operation()
        except retry_on as exc:
            last_exc = exc
            if on_retry is not None:
                on_retry()
            if attempt < attempts:
                logger.warning(f"[retry] {name} failed (attempt {attempt}/{attempts}): {exc}")
                if delay:
                    time.sleep(delay)
            else:
                logger.error(f"[retry] {name} giving up after {attempts} attempts: {exc}")
    raise TransientStoreError(f'{name} failed: {last_exc}') from last_exc


def retrying(name, retry_on, on_retry=None):
    """Decorator form of call_with_retries for methods of objects that expose
    ``retry_attempts`` and ``retry_delay``."""
    def decorator(func):
        @functools.wraps(func)
        def wrapper(self, *args, **kwargs):
            return call_with_retries(
                lambda: func(self, *args, **kwargs),
                attempts=self.retry_attempts,
                delay=self.retry_delay,
                retry_on=retry_on,
                name=name,
                on_retry=on_retry,
            )
        return wrapper
    return decorator
