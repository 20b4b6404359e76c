"""Tests for the capture orchestrator."""

import asyncio
import io

import pytest
from PIL import Image

from html_to_image.browser import BrowserSessionManager
from html_to_image.errors import (
    BrowserLaunchError,
    CaptureError,
    EncodingError,
    NavigationTimeout,
    OverallTimeout,
)
from html_to_image.models import CaptureRequest
from html_to_image.screenshot_service import ScreenshotService


class TestCapture:
    """Successful and failing pipelines."""

    def test_success(self, settings, fake_sessions, capture_request):
        sessions = fake_sessions()
        service = ScreenshotService(settings, sessions)

        image = asyncio.run(service.capture(capture_request))

        assert image.content_type == 'image/webp'
        assert Image.open(io.BytesIO(image.data)).size == (800, 600)
        assert sessions.calls == ['acquire', 'navigate', 'capture', 'release']
        assert sessions.released == 1

    def test_navigation_timeout_releases_session(self, settings, fake_sessions, capture_request):
        sessions = fake_sessions(navigate_error=NavigationTimeout('Timeout 30000ms exceeded'))
        service = ScreenshotService(settings, sessions)

        with pytest.raises(NavigationTimeout) as exc_info:
            asyncio.run(service.capture(capture_request))

        assert exc_info.value.status_code == 500
        assert sessions.calls == ['acquire', 'navigate', 'release']
        assert sessions.released == 1

    def test_capture_error_releases_session(self, settings, fake_sessions, capture_request):
        sessions = fake_sessions(capture_error=CaptureError('page crashed'))
        service = ScreenshotService(settings, sessions)

        with pytest.raises(CaptureError):
            asyncio.run(service.capture(capture_request))

        assert sessions.released == 1

    def test_launch_error_has_nothing_to_release(self, settings, fake_sessions, capture_request):
        sessions = fake_sessions(launch_error=BrowserLaunchError('chromium missing'))
        service = ScreenshotService(settings, sessions)

        with pytest.raises(BrowserLaunchError):
            asyncio.run(service.capture(capture_request))

        assert sessions.calls == ['acquire']
        assert sessions.released == 0

    def test_encoding_error_after_release(self, settings, fake_sessions, capture_request):
        sessions = fake_sessions(raw=b'not a png')
        service = ScreenshotService(settings, sessions)

        with pytest.raises(EncodingError):
            asyncio.run(service.capture(capture_request))

        assert sessions.calls[-1] == 'release'
        assert sessions.released == 1

    def test_unexpected_error_becomes_capture_error(self, settings, fake_sessions, capture_request):
        sessions = fake_sessions(navigate_error=RuntimeError('driver went away'))
        service = ScreenshotService(settings, sessions)

        with pytest.raises(CaptureError) as exc_info:
            asyncio.run(service.capture(capture_request))

        assert 'driver went away' in str(exc_info.value)
        assert sessions.released == 1

    def test_no_retries(self, settings, fake_sessions, capture_request):
        sessions = fake_sessions(navigate_error=NavigationTimeout('slow'))
        service = ScreenshotService(settings, sessions)

        with pytest.raises(NavigationTimeout):
            asyncio.run(service.capture(capture_request))

        assert sessions.calls.count('navigate') == 1
        assert sessions.acquired == 1


class TestOverallTimeout:
    """The wall-clock ceiling wins over a stalled pipeline."""

    def test_timeout_abandons_and_releases(self, settings, fake_sessions):
        sessions = fake_sessions(navigate_delay=5.0)
        service = ScreenshotService(settings, sessions)
        request = CaptureRequest(url='https://example.com', width=800, height=600,
                                 navigation_timeout_ms=50, overall_timeout_ms=50)

        async def scenario():
            with pytest.raises(OverallTimeout) as exc_info:
                await service.capture(request)
            await service.shutdown()
            return exc_info.value

        error = asyncio.run(scenario())

        assert error.code == 'CAPTURE_TIMEOUT'
        assert error.status_code == 500
        assert 'capture' not in sessions.calls
        assert sessions.released == 1
        assert service.pending_cleanups == 0

    def test_returns_before_cleanup_finishes(self, settings, fake_sessions):
        sessions = fake_sessions(navigate_delay=5.0)
        service = ScreenshotService(settings, sessions)
        request = CaptureRequest(url='https://example.com', overall_timeout_ms=20)

        async def scenario():
            loop = asyncio.get_running_loop()
            started = loop.time()
            with pytest.raises(OverallTimeout):
                await service.capture(request)
            elapsed = loop.time() - started
            await service.shutdown()
            return elapsed

        assert asyncio.run(scenario()) < 1.0
        assert sessions.released == 1

    def test_caller_cancellation_releases_session(self, settings, fake_sessions, capture_request):
        sessions = fake_sessions(navigate_delay=5.0)
        service = ScreenshotService(settings, sessions)

        async def scenario():
            task = asyncio.create_task(service.capture(capture_request))
            await asyncio.sleep(0.05)
            task.cancel()
            with pytest.raises(asyncio.CancelledError):
                await task
            await service.shutdown()

        asyncio.run(scenario())

        assert sessions.released == 1

    def test_timeout_during_teardown_still_closes_browser(self, settings, pw):
        async def hang():
            await asyncio.sleep(1)

        pw.page.close.side_effect = hang
        service = ScreenshotService(settings, BrowserSessionManager(settings))
        request = CaptureRequest(url='https://example.com', width=800, height=600, overall_timeout_ms=100)

        async def scenario():
            with pytest.raises(OverallTimeout):
                await service.capture(request)
            await service.shutdown()

        asyncio.run(scenario())

        pw.page.close.assert_awaited_once()
        pw.context.close.assert_awaited_once()
        pw.browser.close.assert_awaited_once()
        pw.driver.stop.assert_awaited_once()
        assert service.pending_cleanups == 0
