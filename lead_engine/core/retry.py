"""
Bounded retry for calls into the external store.
"""
import asyncio
import logging
from typing import Awaitable, Callable, Optional, TypeVar

from lead_engine.config import settings
from lead_engine.core.exceptions import StoreUnavailableError

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def retry_async(
    operation: Callable[[], Awaitable[T]],
    *,
    attempts: Optional[int] = None,
    backoff: Optional[float] = None,
    timeout: Optional[float] = None,
    description: str = "store call",
) -> T:
    """
    Await ``operation()`` with a per-attempt timeout, retrying transient failures.

    Timeouts and transient StoreUnavailableError are retried with delays of
    ``backoff * 2**n``. A non-transient failure is raised immediately, and the
    last transient failure is raised once attempts are used up. Any other
    exception propagates unchanged.
    """
    attempts = max(1, attempts if attempts is not None else settings.STORE_RETRY_ATTEMPTS)
    backoff = backoff if backoff is not None else settings.STORE_RETRY_BACKOFF_SECONDS
    timeout = timeout if timeout is not None else settings.STORE_TIMEOUT_SECONDS

    last_error: Optional[StoreUnavailableError] = None
    for attempt in range(attempts):
        try:
            return await asyncio.wait_for(operation(), timeout=timeout)
        except asyncio.TimeoutError:
            last_error = StoreUnavailableError(f"{description} timed out after {timeout}s")
        except StoreUnavailableError as e:
            if not e.transient:
                raise
            last_error = e

        if attempt + 1 < attempts:
            delay = backoff * (2 ** attempt)
            logger.warning(
                f"{description} failed ({last_error.message}); "
                f"retrying in {delay:.2f}s ({attempt + 1}/{attempts})"
            )
            await asyncio.sleep(delay)

    logger.error(f"{description} failed after {attempts} attempts: {last_error.message}")
    raise last_error
