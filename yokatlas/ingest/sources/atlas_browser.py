from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

from playwright.async_api import Error as PlaywrightError

from yokatlas.ingest.base import PageCursor, PageResult
from yokatlas.ingest.errors import CountDeterminationError, PaginationAdvanceError, TransientPageError
from yokatlas.ingest.sources.atlas_api import listing_url
from yokatlas.normalize.rows import normalize_browser_row
from yokatlas.normalize.schema import Category

logger = logging.getLogger(__name__)

PAGINATION_SELECTOR = "#mydata_paginate"
PAGE_BUTTON_SELECTOR = f"{PAGINATION_SELECTOR} a.paginate_button"
CURRENT_PAGE_SELECTOR = f"{PAGINATION_SELECTOR} a.paginate_button.current"
NEXT_PAGE_SELECTOR = "#mydata_next"
ROW_SELECTOR = "#mydata tbody tr"

_READ_PAGE_LABELS_JS = "buttons => buttons.map(button => (button.textContent || '').trim())"
_READ_ROWS_JS = """
rows => rows.map(row => Array.from(row.querySelectorAll('td')).map(
    cell => (cell.innerText || '').split('\\n').map(part => part.trim()).filter(Boolean)
))
"""
_PAGE_IS_ACTIVE_JS = """
([selector, target]) => {
    const current = document.querySelector(selector);
    return current !== null && current.textContent.trim() === String(target);
}
"""


def _max_page_number(labels: list[Any]) -> int | None:
    numbers = [int(label) for label in labels if isinstance(label, str) and label.strip().isdigit()]
    return max(numbers) if numbers else None


class _BrowserCategoryPager:
    first_page_index = 1
    # rows per page are decided by the listing UI
    page_size = 0

    def __init__(self, page: Any, category: Category, *, timeout_ms: float) -> None:
        self._page = page
        self._category = category
        self._timeout_ms = timeout_ms
        self._current_page = 0
        self._page_count = 0
        self.normalize = normalize_browser_row

    async def read_page_count(self, category: Category) -> int:
        try:
            await self._page.goto(listing_url(category), wait_until="domcontentloaded", timeout=self._timeout_ms)
            await self._page.wait_for_selector(PAGINATION_SELECTOR, state="attached", timeout=self._timeout_ms)
            labels = await self._page.eval_on_selector_all(PAGE_BUTTON_SELECTOR, _READ_PAGE_LABELS_JS)
        except PlaywrightError as exc:
            raise CountDeterminationError(
                f"Pagination control never appeared for {category}: {exc}", category=str(category)
            ) from exc

        page_count = _max_page_number(labels)
        if page_count is None:
            raise CountDeterminationError(
                f"Pagination control for {category} shows no page numbers", category=str(category)
            )
        self._current_page = 1
        self._page_count = page_count
        logger.info("Category=%s pages=%d", category, page_count)
        return page_count

    async def fetch_page(self, cursor: PageCursor) -> PageResult:
        while self._current_page < cursor.index:
            await self._advance(self._current_page + 1)

        category = str(cursor.category)
        try:
            raw_rows = await self._page.eval_on_selector_all(ROW_SELECTOR, _READ_ROWS_JS)
        except PlaywrightError as exc:
            raise TransientPageError(
                f"Reading rows of page {cursor.index} of {category} failed: {exc}",
                category=category,
                page_index=cursor.index,
            ) from exc

        # DataTables renders a single placeholder cell while loading or when empty
        rows = [row for row in raw_rows or [] if isinstance(row, list) and len(row) > 1]
        if not rows and cursor.index <= self._page_count:
            raise TransientPageError(
                f"Page {cursor.index} of {category} rendered no rows",
                category=category,
                page_index=cursor.index,
            )
        return PageResult(rows=rows, has_more=cursor.index < self._page_count)

    async def _advance(self, target: int) -> None:
        try:
            await self._click_next(target)
        except PlaywrightError as exc:
            logger.warning(
                "Advance to page %d of %s failed (%s); waiting for network idle and retrying.",
                target,
                self._category,
                exc,
            )
            try:
                await self._page.wait_for_load_state("networkidle", timeout=self._timeout_ms)
                if not await self._is_active(target):
                    await self._click_next(target)
            except PlaywrightError as retry_exc:
                raise PaginationAdvanceError(
                    f"Could not advance {self._category} to page {target}: {retry_exc}",
                    category=str(self._category),
                ) from retry_exc
        self._current_page = target

    async def _click_next(self, target: int) -> None:
        await self._page.click(NEXT_PAGE_SELECTOR, timeout=self._timeout_ms)
        await self._page.wait_for_function(
            _PAGE_IS_ACTIVE_JS,
            arg=[CURRENT_PAGE_SELECTOR, target],
            timeout=self._timeout_ms,
        )

    async def _is_active(self, target: int) -> bool:
        text = await self._page.text_content(CURRENT_PAGE_SELECTOR, timeout=self._timeout_ms)
        return (text or "").strip() == str(target)


class AtlasBrowserSource:
    """Browser-automation strategy; every category works in its own tab of one shared browser."""

    name = "browser"

    def __init__(self, browser: Any, *, timeout_ms: float = 30_000) -> None:
        self.browser = browser
        self.timeout_ms = timeout_ms

    @asynccontextmanager
    async def open_category(self, category: Category) -> AsyncIterator[_BrowserCategoryPager]:
        page = await self.browser.new_page()
        try:
            yield _BrowserCategoryPager(page, category, timeout_ms=self.timeout_ms)
        finally:
            await page.close()
