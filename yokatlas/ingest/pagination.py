from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass

from yokatlas.ingest.base import CategoryPager, PageCursor, PageResult
from yokatlas.ingest.errors import PageFetchExhaustedError, TransientPageError
from yokatlas.normalize.schema import Category, DepartmentRecord

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class RetryPolicy:
    max_attempts: int = 5
    base_delay_seconds: float = 0.5
    max_delay_seconds: float = 8.0
    multiplier: float = 2.0

    def delay_for(self, attempt: int) -> float:
        """Seconds to wait after failed attempt number ``attempt`` (1-based)."""
        delay = self.base_delay_seconds * (self.multiplier ** (attempt - 1))
        return max(0.0, min(delay, self.max_delay_seconds))


@dataclass(slots=True)
class CategoryCollection:
    category: Category
    page_count: int
    records: list[DepartmentRecord]


async def fetch_page_with_retry(
    pager: CategoryPager,
    cursor: PageCursor,
    *,
    retry_policy: RetryPolicy,
) -> PageResult:
    attempts = max(1, retry_policy.max_attempts)
    last_error: TransientPageError | None = None
    for attempt in range(1, attempts + 1):
        try:
            return await pager.fetch_page(cursor)
        except TransientPageError as exc:
            last_error = exc
            if attempt == attempts:
                break
            delay = retry_policy.delay_for(attempt)
            logger.warning(
                "Transient failure on %s page %d (attempt %d/%d): %s; retrying in %.2fs",
                cursor.category,
                cursor.index,
                attempt,
                attempts,
                exc,
                delay,
            )
            await asyncio.sleep(delay)

    raise PageFetchExhaustedError(
        f"Page {cursor.index} of {cursor.category} still failing after {attempts} attempts: {last_error}",
        category=str(cursor.category),
        page_index=cursor.index,
        attempts=attempts,
    ) from last_error


async def collect_category(
    pager: CategoryPager,
    category: Category,
    *,
    retry_policy: RetryPolicy | None = None,
) -> CategoryCollection:
    """Walk every page of ``category`` in order and normalize the rows.

    Count-determination failures and exhausted retries propagate to the caller.
    """

    policy = retry_policy or RetryPolicy()
    page_count = await pager.read_page_count(category)
    records: list[DepartmentRecord] = []

    first = pager.first_page_index
    for index in range(first, first + page_count):
        cursor = PageCursor(category=category, index=index, size=pager.page_size)
        result = await fetch_page_with_retry(pager, cursor, retry_policy=policy)
        records.extend(pager.normalize(row, category.value) for row in result.rows)
        logger.info(
            "Category=%s page=%d/%d rows=%d total=%d",
            category,
            index - first + 1,
            page_count,
            len(result.rows),
            len(records),
        )
        if not result.has_more:
            break

    return CategoryCollection(category=category, page_count=page_count, records=records)
