from __future__ import annotations

import asyncio
import logging
import math
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

import requests

from yokatlas.ingest.base import PageCursor, PageResult
from yokatlas.ingest.errors import CountDeterminationError, TransientPageError
from yokatlas.normalize.rows import normalize_api_row
from yokatlas.normalize.schema import Category

logger = logging.getLogger(__name__)

API_URL = "https://yokatlas.yok.gov.tr/server_side/server_processing-atlas2016-TS-t4.php"
LISTING_URL = "https://yokatlas.yok.gov.tr/tercih-sihirbazi-t4-tablo.php"
PAGE_SIZE = 100

_COLUMN_COUNT = 45
_UNORDERABLE_COLUMNS = frozenset({0, 1, 2, 4, 6, 7, 8, 9, 10, 14, 15})
# base score desc, then university name and program name asc
_ORDERING = ((37, "desc"), (41, "asc"), (42, "asc"))

# Mirrors the listing page's own XHR request.
_XHR_HEADERS = {
    "User-Agent": "Mozilla/5.0 (X11; Linux x86_64; rv:135.0) Gecko/20100101 Firefox/135.0",
    "Accept-Language": "en-US,en;q=0.5",
    "Accept": "application/json, text/javascript, */*; q=0.01",
    "Content-Type": "application/x-www-form-urlencoded; charset=UTF-8",
    "X-Requested-With": "XMLHttpRequest",
    "Sec-Fetch-Dest": "empty",
    "Sec-Fetch-Mode": "cors",
    "Sec-Fetch-Site": "same-origin",
}


def listing_url(category: Category | str) -> str:
    return f"{LISTING_URL}?p={Category(category).value}"


def build_query_form(category: Category | str, start: int, length: int) -> list[tuple[str, str]]:
    """Build the DataTables server-side paging form for one category window."""

    length = max(1, min(int(length), PAGE_SIZE))
    form: list[tuple[str, str]] = [("draw", "2")]
    for index in range(_COLUMN_COUNT):
        prefix = f"columns[{index}]"
        orderable = "false" if index in _UNORDERABLE_COLUMNS else "true"
        form.extend(
            [
                (f"{prefix}[data]", str(index)),
                (f"{prefix}[name]", ""),
                (f"{prefix}[searchable]", "true"),
                (f"{prefix}[orderable]", orderable),
                (f"{prefix}[search][value]", ""),
                (f"{prefix}[search][regex]", "false"),
            ]
        )
    for position, (column, direction) in enumerate(_ORDERING):
        form.append((f"order[{position}][column]", str(column)))
        form.append((f"order[{position}][dir]", direction))
    form.extend(
        [
            ("start", str(max(0, int(start)))),
            ("length", str(length)),
            ("search[value]", ""),
            ("search[regex]", "false"),
            ("puan_turu", Category(category).value),
            ("ust_bs", ""),
            ("alt_bs", ""),
            ("yeniler", "1"),
        ]
    )
    return form


def _parse_records_filtered(payload: Any) -> int | None:
    if not isinstance(payload, dict):
        return None
    value = payload.get("recordsFiltered")
    if isinstance(value, bool):
        return None
    try:
        count = int(value)
    except (TypeError, ValueError):
        return None
    return count if count >= 0 else None


class _ApiCategoryPager:
    first_page_index = 0
    page_size = PAGE_SIZE

    def __init__(self, http_client: Any, category: Category) -> None:
        self._http_client = http_client
        self._category = category
        self._records_filtered: int | None = None
        self.normalize = normalize_api_row

    def _query(self, start: int, length: int) -> Any:
        return self._http_client.post_form_json(
            API_URL,
            data=build_query_form(self._category, start, length),
            headers={**_XHR_HEADERS, "Referer": listing_url(self._category)},
        )

    async def read_page_count(self, category: Category) -> int:
        try:
            payload = await asyncio.to_thread(self._query, 0, 1)
        except (requests.RequestException, ValueError) as exc:
            raise CountDeterminationError(
                f"Count probe failed for {category}: {exc}", category=str(category)
            ) from exc

        count = _parse_records_filtered(payload)
        if count is None:
            raise CountDeterminationError(
                f"Count probe for {category} returned no usable recordsFiltered", category=str(category)
            )
        self._records_filtered = count
        pages = math.ceil(count / self.page_size)
        logger.info("Category=%s records=%d pages=%d", category, count, pages)
        return pages

    async def fetch_page(self, cursor: PageCursor) -> PageResult:
        category = str(cursor.category)
        try:
            payload = await asyncio.to_thread(self._query, cursor.offset, cursor.size)
        except (requests.RequestException, ValueError) as exc:
            raise TransientPageError(
                f"Page {cursor.index} of {category} failed: {exc}",
                category=category,
                page_index=cursor.index,
            ) from exc

        rows = payload.get("data") if isinstance(payload, dict) else None
        if not isinstance(rows, list):
            raise TransientPageError(
                f"Page {cursor.index} of {category} has no data array",
                category=category,
                page_index=cursor.index,
            )

        records_filtered = _parse_records_filtered(payload)
        if records_filtered is None:
            records_filtered = self._records_filtered or 0

        if not rows and cursor.offset < records_filtered:
            raise TransientPageError(
                f"Page {cursor.index} of {category} came back empty "
                f"(offset {cursor.offset} of {records_filtered})",
                category=category,
                page_index=cursor.index,
            )

        logger.debug("Category=%s page=%d rows=%d", category, cursor.index, len(rows))
        return PageResult(rows=rows, has_more=cursor.offset + len(rows) < records_filtered)


class AtlasApiSource:
    """Direct-query strategy against the YOK-ATLAS server-side table endpoint."""

    name = "api"

    def __init__(self, http_client: Any) -> None:
        self.http_client = http_client

    @asynccontextmanager
    async def open_category(self, category: Category) -> AsyncIterator[_ApiCategoryPager]:
        yield _ApiCategoryPager(self.http_client, category)
