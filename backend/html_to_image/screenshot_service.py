"""
Screenshot service: runs one capture pipeline per request under a
wall-clock ceiling.

acquire -> navigate -> capture -> release -> encode, with the session
released on every exit path. No retries; callers retry with a new request.
"""

import asyncio
import logging
import time
from typing import Optional, Set

from .browser import BrowserSessionManager
from .config import Settings, settings as default_settings
from .errors import CaptureError, CaptureFailure, OverallTimeout
from .imaging import encode
from .models import CaptureRequest, CompressedImage

log = logging.getLogger(__name__)


class ScreenshotService:
    """Composes browser sessions and image encoding for single captures."""

    def __init__(self, settings: Optional[Settings] = None, sessions: Optional[BrowserSessionManager] = None):
        self.settings = settings or default_settings
        self.sessions = sessions or BrowserSessionManager(self.settings)
        self._abandoned: Set[asyncio.Task] = set()

    async def capture(self, request: CaptureRequest) -> CompressedImage:
        """Capture and encode ``request.url`` or raise a CaptureFailure."""
        start_time = time.monotonic()
        log.info("Capturing %s (%dx%d, fullPage=%s, waitUntil=%s)", request.url, request.width,
                 request.height, request.full_page, request.wait_policy.value)

        pipeline = asyncio.create_task(self._run_pipeline(request))
        try:
            done, _ = await asyncio.wait({pipeline}, timeout=request.overall_timeout_ms / 1000)
        except asyncio.CancelledError:
            self._abandon(pipeline)
            raise

        if pipeline not in done:
            self._abandon(pipeline)
            log.error("Capture of %s exceeded %dms, abandoning session", request.url, request.overall_timeout_ms)
            raise OverallTimeout(f"Screenshot generation exceeded {request.overall_timeout_ms}ms")

        try:
            image = pipeline.result()
        except CaptureFailure as exc:
            log.warning("Capture of %s failed (%s): %s", request.url, exc.code, exc)
            raise
        except Exception as exc:
            log.exception("Unexpected error capturing %s", request.url)
            raise CaptureError(str(exc)) from exc

        log.info("Captured %s: %dx%d, %d -> %d bytes in %.2fs", request.url, image.width, image.height,
                 image.source_size, image.size, time.monotonic() - start_time)
        return image

    async def _run_pipeline(self, request: CaptureRequest) -> CompressedImage:
        async with self.sessions.session(request.width, request.height) as session:
            await self.sessions.navigate(session, request.url, request.wait_policy, request.navigation_timeout_ms)
            raw = await self.sessions.capture(session, request.full_page, request.width, request.height)
        return await asyncio.to_thread(encode, raw, request.quality, self.settings.OUTPUT_FORMAT)

    def _abandon(self, task: asyncio.Task) -> None:
        """Cancel a timed-out pipeline and let its cleanup finish in the background."""
        task.cancel()
        self._abandoned.add(task)
        task.add_done_callback(self._forget)

    def _forget(self, task: asyncio.Task) -> None:
        self._abandoned.discard(task)
        if not task.cancelled() and task.exception() is not None:
            log.debug("Abandoned capture finished with error: %s", task.exception())

    @property
    def pending_cleanups(self) -> int:
        return len(self._abandoned)

    async def shutdown(self) -> None:
        """Wait for abandoned captures to finish releasing their sessions."""
        if self._abandoned:
            log.info("Waiting for %d abandoned capture(s) to clean up", len(self._abandoned))
            await asyncio.gather(*self._abandoned, return_exceptions=True)
