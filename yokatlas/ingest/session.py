from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Callable

from playwright.async_api import async_playwright

from yokatlas.ingest.base import PageSource
from yokatlas.ingest.http import PoliteHttpClient
from yokatlas.ingest.sources.atlas_api import AtlasApiSource
from yokatlas.ingest.sources.atlas_browser import AtlasBrowserSource

logger = logging.getLogger(__name__)

STRATEGIES = ("api", "browser")


@dataclass(frozen=True, slots=True)
class SessionSettings:
    strategy: str = "api"
    requests_per_second: float = 2.0
    request_timeout_seconds: float = 30.0
    http_max_retries: int = 3
    headless: bool = True
    browser_timeout_seconds: float = 30.0

    def __post_init__(self) -> None:
        if self.strategy not in STRATEGIES:
            raise ValueError(f"Unknown strategy {self.strategy!r}; expected one of: {', '.join(STRATEGIES)}")


@dataclass(slots=True)
class AcquisitionSession:
    """The run's long-lived fetch resource plus the strategy bound to it."""

    strategy: str
    source: PageSource
    closers: list[Callable[[], Any]] = field(default_factory=list, repr=False)
    closed: bool = False


async def _acquire_api(settings: SessionSettings) -> AcquisitionSession:
    client = PoliteHttpClient(
        requests_per_second=settings.requests_per_second,
        timeout_seconds=settings.request_timeout_seconds,
        max_retries=settings.http_max_retries,
    )
    return AcquisitionSession(
        strategy="api",
        source=AtlasApiSource(client),
        closers=[lambda: asyncio.to_thread(client.close)],
    )


async def _acquire_browser(settings: SessionSettings) -> AcquisitionSession:
    playwright = await async_playwright().start()
    try:
        browser = await playwright.chromium.launch(headless=settings.headless)
    except Exception:
        await playwright.stop()
        raise
    return AcquisitionSession(
        strategy="browser",
        source=AtlasBrowserSource(browser, timeout_ms=settings.browser_timeout_seconds * 1000),
        # closed in order: browser first, then the driver
        closers=[browser.close, playwright.stop],
    )


async def acquire(settings: SessionSettings | None = None) -> AcquisitionSession:
    resolved = settings or SessionSettings()
    if resolved.strategy == "browser":
        session = await _acquire_browser(resolved)
    else:
        session = await _acquire_api(resolved)
    logger.info("Acquired %s session", session.strategy)
    return session


async def release(session: AcquisitionSession) -> None:
    """Close the session's resources; calling it again is a no-op."""
    if session.closed:
        return
    session.closed = True
    first_error: BaseException | None = None
    for closer in session.closers:
        try:
            await closer()
        except Exception as exc:
            logger.exception("Failed to close %s session resource", session.strategy)
            first_error = first_error or exc
    logger.info("Released %s session", session.strategy)
    if first_error is not None:
        raise first_error


@asynccontextmanager
async def open_session(settings: SessionSettings | None = None) -> AsyncIterator[AcquisitionSession]:
    session = await acquire(settings)
    try:
        yield session
    finally:
        await release(session)
