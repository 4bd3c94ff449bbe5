from __future__ import annotations


class AcquisitionError(Exception):
    """Base class for failures while acquiring a category's pages."""

    def __init__(self, message: str, *, category: str | None = None) -> None:
        super().__init__(message)
        self.category = category


class CountDeterminationError(AcquisitionError):
    """The number of pages for a category could not be determined."""


class TransientPageError(AcquisitionError):
    """A page came back empty or unreadable and should be fetched again."""

    def __init__(self, message: str, *, category: str | None = None, page_index: int | None = None) -> None:
        super().__init__(message, category=category)
        self.page_index = page_index


class PageFetchExhaustedError(AcquisitionError):
    """A page kept failing transiently until the retry budget ran out."""

    def __init__(
        self,
        message: str,
        *,
        category: str | None = None,
        page_index: int | None = None,
        attempts: int = 0,
    ) -> None:
        super().__init__(message, category=category)
        self.page_index = page_index
        self.attempts = attempts


class PaginationAdvanceError(AcquisitionError):
    """Moving the listing UI to the next page failed after one recovery attempt."""
