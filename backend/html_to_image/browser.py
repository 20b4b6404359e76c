"""
Per-request browser sessions.

Every capture gets its own Playwright driver, Chromium process, context
and page. Nothing is pooled or shared between requests, so a hung or
crashed page can only ever take down the request that opened it.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, AsyncIterator, Optional

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError
from playwright.async_api import async_playwright

from .config import Settings, settings as default_settings
from .errors import BrowserLaunchError, CaptureError, NavigationError, NavigationTimeout
from .models import WaitPolicy

log = logging.getLogger(__name__)

USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)


@dataclass
class BrowserSession:
    """Driver, browser, context and page owned by a single request."""

    playwright: Any = None
    browser: Any = None
    context: Any = None
    page: Any = None
    released: bool = False


class BrowserSessionManager:
    """Acquires, drives and releases isolated browser sessions."""

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or default_settings

    async def acquire(self, width: int, height: int) -> BrowserSession:
        session = BrowserSession()
        try:
            session.playwright = await async_playwright().start()
            session.browser = await session.playwright.chromium.launch(
                headless=True,
                args=list(self.settings.BROWSER_ARGS),
            )
            session.context = await session.browser.new_context(
                viewport={"width": width, "height": height},
                user_agent=USER_AGENT,
                java_script_enabled=True,
                accept_downloads=False,
                locale="en-US",
                timezone_id="UTC",
            )
            session.page = await session.context.new_page()
        except asyncio.CancelledError:
            await self.release(session)
            raise
        except Exception as exc:
            log.error("Failed to launch browser: %s", exc)
            await self.release(session)
            raise BrowserLaunchError(f"Failed to launch browser: {exc}") from exc
        return session

    async def navigate(self, session: BrowserSession, url: str, wait_policy: WaitPolicy, timeout_ms: int) -> None:
        try:
            await session.page.goto(url, wait_until=wait_policy.wait_until, timeout=timeout_ms)
        except PlaywrightTimeoutError as exc:
            raise NavigationTimeout(
                f"Navigation to {url} timed out after {timeout_ms}ms waiting for {wait_policy.value}: {exc}"
            ) from exc
        except PlaywrightError as exc:
            raise NavigationError(f"Navigation to {url} failed: {exc}") from exc

    async def capture(self, session: BrowserSession, full_page: bool, width: int, height: int) -> bytes:
        """Screenshot the page as PNG, clipped to the viewport unless full_page."""
        options = {"type": "png", "animations": "disabled"}
        if full_page:
            options["full_page"] = True
        else:
            options["clip"] = {"x": 0, "y": 0, "width": width, "height": height}
        try:
            data = await session.page.screenshot(**options)
        except PlaywrightError as exc:
            raise CaptureError(f"Screenshot capture failed: {exc}") from exc
        if not data:
            raise CaptureError("Screenshot capture returned empty data")
        return data

    async def release(self, session: BrowserSession) -> None:
        """Close page, context, browser and driver. Safe to call twice.

        Teardown errors are logged and swallowed. A cancellation that lands
        mid-teardown is held until every step has run, then re-raised.
        """
        if session.released:
            return
        session.released = True
        steps = (
            ("page", session.page, "close"),
            ("context", session.context, "close"),
            ("browser", session.browser, "close"),
            ("playwright", session.playwright, "stop"),
        )
        cancelled = None
        for name, resource, method in steps:
            if resource is None:
                continue
            try:
                await getattr(resource, method)()
            except asyncio.CancelledError as exc:
                log.warning("Teardown of %s interrupted by cancellation, closing the rest", name)
                cancelled = exc
            except Exception as exc:
                log.warning("Error closing %s during session teardown: %s", name, exc)
        if cancelled is not None:
            raise cancelled

    @asynccontextmanager
    async def session(self, width: int, height: int) -> AsyncIterator[BrowserSession]:
        session = await self.acquire(width, height)
        try:
            yield session
        finally:
            await self.release(session)
