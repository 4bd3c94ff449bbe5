from __future__ import annotations

from .base import CategoryPager, PageCursor, PageResult, PageSource
from .errors import (
    AcquisitionError,
    CountDeterminationError,
    PageFetchExhaustedError,
    PaginationAdvanceError,
    TransientPageError,
)
from .http import PoliteHttpClient
from .orchestrator import AcquisitionResult, CategoryReport, collect_records, fetch_department_data
from .pagination import RetryPolicy, collect_category
from .session import AcquisitionSession, SessionSettings, acquire, open_session, release

__all__ = [
    "AcquisitionError",
    "AcquisitionResult",
    "AcquisitionSession",
    "CategoryPager",
    "CategoryReport",
    "CountDeterminationError",
    "PageCursor",
    "PageFetchExhaustedError",
    "PageResult",
    "PageSource",
    "PaginationAdvanceError",
    "PoliteHttpClient",
    "RetryPolicy",
    "SessionSettings",
    "TransientPageError",
    "acquire",
    "collect_category",
    "collect_records",
    "fetch_department_data",
    "open_session",
    "release",
]
