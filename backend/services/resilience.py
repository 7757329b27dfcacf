"""
Per-call timeout budget that degrades to a default value instead of raising.
"""

import asyncio
import logging
from collections.abc import Awaitable
from typing import TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _consume_outcome(task: asyncio.Task) -> None:
    """Retrieve an abandoned task's exception so asyncio does not report it as unhandled."""
    if not task.cancelled():
        exc = task.exception()
        if exc is not None:
            logger.debug("Abandoned task %s finished with error: %s", task.get_name(), exc)


async def with_timeout(
    operation: Awaitable[T],
    timeout_seconds: float,
    default: T,
    *,
    name: str | None = None,
) -> T:
    """
    Await *operation* for at most *timeout_seconds*.

    Returns the operation's result when it finishes in time, otherwise
    *default*. On timeout the operation is cancelled, but this function
    returns without waiting for the cancellation to be acknowledged, so the
    caller always gets control back within the budget even if the
    operation ignores cancellation.

    Exceptions raised by the operation itself propagate unchanged.
    """
    label = name or "operation"
    task = asyncio.ensure_future(operation)

    try:
        done, _ = await asyncio.wait({task}, timeout=timeout_seconds)
    except asyncio.CancelledError:
        task.cancel()
        raise

    if task in done:
        return task.result()

    task.cancel()
    task.add_done_callback(_consume_outcome)
    logger.warning(
        "%s timed out after %.1fs, using default value %r",
        label,
        timeout_seconds,
        default,
        extra={"metric": label},
    )
    return default
