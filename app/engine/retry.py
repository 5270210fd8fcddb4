"""
Caller-side retry for payment creation.

Only transport failures (no response from the gateway) are retried. Every
request carries the caller's external id as idempotency key, so the gateway
collapses a retried request into the original one. Rejections (4xx/5xx with
a body) are never retried.
"""

import asyncio
import logging
from typing import Any, Callable

from app.engine.errors import GatewayUnreachable

logger = logging.getLogger("payment_router.retry")

BASE_DELAY = 1.0
MAX_DELAY = 10.0


async def with_retry(
    func: Callable[..., Any],
    *args: Any,
    max_retries: int = 1,
    base_delay: float = BASE_DELAY,
    **kwargs: Any,
) -> Any:
    """
    Execute an async function, retrying GatewayUnreachable with exponential backoff.

    Args:
        func: Async callable to execute.
        max_retries: Maximum number of retry attempts after the first call.
        base_delay: Initial sleep between attempts, doubled each time.

    Returns:
        The result of the function call.

    Raises:
        GatewayUnreachable: When every attempt failed at the transport level.
        EngineError: Any other error, raised from the first attempt that hit it.
    """
    delay = base_delay

    for attempt in range(max_retries + 1):
        try:
            return await func(*args, **kwargs)
        except GatewayUnreachable as e:
            if attempt >= max_retries:
                logger.error("Gateway unreachable after %d attempts: %s", attempt + 1, e)
                raise

            sleep_for = min(delay, MAX_DELAY)
            logger.warning(
                "Gateway unreachable on attempt %d/%d: %s, sleeping %.1fs",
                attempt + 1,
                max_retries + 1,
                e,
                sleep_for,
            )
            await asyncio.sleep(sleep_for)
            delay = min(delay * 2, MAX_DELAY)

    raise GatewayUnreachable("No attempts made")
