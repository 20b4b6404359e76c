"""Shared test fixtures and configuration."""

import asyncio
import io
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from PIL import Image, ImageDraw

from html_to_image.browser import BrowserSession, BrowserSessionManager
from html_to_image.config import Settings
from html_to_image.models import CaptureRequest, CompressedImage


def make_png(width: int = 800, height: int = 600) -> bytes:
    """Render a small test card as PNG bytes."""
    image = Image.new('RGB', (width, height), (240, 240, 240))
    draw = ImageDraw.Draw(image)
    draw.rectangle([(20, 20), (width // 2, height // 2)], fill=(200, 30, 30))
    draw.ellipse([(width // 2, height // 3), (width - 20, height - 20)], fill=(30, 90, 200))
    buffered = io.BytesIO()
    image.save(buffered, format='PNG')
    return buffered.getvalue()


class FakeSessionManager(BrowserSessionManager):
    """Session manager that records lifecycle calls instead of launching Chromium."""

    def __init__(self, raw=None, launch_error=None, navigate_error=None, capture_error=None,
                 navigate_delay=0.0):
        super().__init__(Settings())
        self.raw = raw if raw is not None else make_png()
        self.launch_error = launch_error
        self.navigate_error = navigate_error
        self.capture_error = capture_error
        self.navigate_delay = navigate_delay
        self.calls = []
        self.acquired = 0
        self.released = 0

    async def acquire(self, width, height):
        self.calls.append('acquire')
        if self.launch_error:
            raise self.launch_error
        self.acquired += 1
        return BrowserSession(page=MagicMock())

    async def navigate(self, session, url, wait_policy, timeout_ms):
        self.calls.append('navigate')
        if self.navigate_delay:
            await asyncio.sleep(self.navigate_delay)
        if self.navigate_error:
            raise self.navigate_error

    async def capture(self, session, full_page, width, height):
        self.calls.append('capture')
        if self.capture_error:
            raise self.capture_error
        return self.raw

    async def release(self, session):
        self.calls.append('release')
        self.released += 1


@pytest.fixture
def settings():
    """Settings built from the default environment."""
    return Settings()


@pytest.fixture
def png_bytes():
    return make_png()


@pytest.fixture
def capture_request():
    return CaptureRequest(url='https://example.com', width=800, height=600, quality=80)


@pytest.fixture
def fake_sessions():
    """Factory for FakeSessionManager instances."""
    return FakeSessionManager


@pytest.fixture
def sample_image():
    return CompressedImage(data=b'RIFF\x00\x00\x00\x00WEBPVP8 ', format='webp', width=800, height=600,
                           source_size=4096)


@pytest.fixture
def stub_service(sample_image):
    """Stand-in for the module-level screenshot service."""
    service = MagicMock()
    service.capture = AsyncMock(return_value=sample_image)
    service.shutdown = AsyncMock()
    return service


@pytest.fixture
def pw():
    """Mocked Playwright driver, browser, context and page."""
    page = MagicMock()
    page.goto = AsyncMock()
    page.screenshot = AsyncMock(return_value=b'\x89PNG fake')
    page.close = AsyncMock()

    context = MagicMock()
    context.new_page = AsyncMock(return_value=page)
    context.close = AsyncMock()

    browser = MagicMock()
    browser.new_context = AsyncMock(return_value=context)
    browser.close = AsyncMock()

    driver = MagicMock()
    driver.chromium.launch = AsyncMock(return_value=browser)
    driver.stop = AsyncMock()

    factory = MagicMock()
    factory.return_value.start = AsyncMock(return_value=driver)

    with patch('html_to_image.browser.async_playwright', factory):
        yield SimpleNamespace(factory=factory, driver=driver, browser=browser, context=context, page=page)
