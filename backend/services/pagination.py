"""
Cursor pagination over Stripe list endpoints.

Walks every page of a collection: totals such as MRR and revenue are only
correct when the whole collection has been seen, so there is no page cap.
"""

import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from typing import Any, Protocol, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class _Page(Protocol[T]):
    data: list[T]
    has_more: bool


ListPageFn = Callable[..., Awaitable[_Page[T]]]


async def iterate_all(
    list_page: ListPageFn[T],
    *,
    page_size: int = 100,
    stop_when: Callable[[T], bool] | None = None,
    **filters: Any,
) -> AsyncIterator[T]:
    """
    Yield every item of a cursor-paginated collection.

    Args:
        list_page: Coroutine function returning one page; called with
            ``limit``, ``starting_after`` and ``filters``.
        page_size: Items requested per page.
        stop_when: Early-stop predicate for newest-first listings, checked
            against the last item of each page once the whole page has been
            yielded. When it returns True no further page is fetched. Items
            within a page are always yielded, so callers still filter them.
        **filters: Passed through unchanged to every ``list_page`` call.

    Items carry an ``id`` attribute; the last id of a page is the cursor
    for the next one.
    """
    cursor: str | None = None
    pages = 0

    while True:
        page = await list_page(limit=page_size, starting_after=cursor, **filters)
        pages += 1

        for item in page.data:
            yield item

        if not page.has_more or not page.data:
            break
        if stop_when is not None and stop_when(page.data[-1]):
            logger.debug("Pagination stopped early after %d page(s)", pages)
            return
        cursor = page.data[-1].id

    logger.debug("Pagination finished after %d page(s)", pages)


async def collect_all(
    list_page: ListPageFn[T],
    *,
    page_size: int = 100,
    stop_when: Callable[[T], bool] | None = None,
    **filters: Any,
) -> list[T]:
    """Collect every item of a cursor-paginated collection into a list."""
    return [
        item
        async for item in iterate_all(
            list_page, page_size=page_size, stop_when=stop_when, **filters
        )
    ]
