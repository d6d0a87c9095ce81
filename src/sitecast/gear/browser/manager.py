"""
Browser Manager - Playwright Rendering Engine

Launches one headless Chromium and serves every capture from a fresh,
isolated browser context on top of it.
"""

import asyncio
import logging
import time
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, AsyncIterator, Dict, Optional, Protocol

from playwright.async_api import Browser, Error as PlaywrightError, Page, Playwright, async_playwright

from ...errors import CaptureFailure, EngineUnavailable
from ..blackbox.recorder import ConsoleBlackbox, ConsoleCaptureResult
from ..policy import ScreenshotPlan, decide_screenshot_plan
from ..requests import ConsoleRequest, MAX_DIMENSION, ScreencastRequest, ScreenshotRequest, Viewport, WaitUntil
from ..visual.freezer import TILE_SIZE, ScreencastResult, Screenshot, VisualFreezer

logger = logging.getLogger("sitecast.browser")

CHROMIUM_ARGS = ["--no-sandbox", "--disable-dev-shm-usage"]


@dataclass
class EngineHandle:
    """A running Playwright driver and its browser."""

    playwright: Playwright
    browser: Browser
    started_at: float
    pages_opened: int = 0
    closed: bool = False


class RenderingEngine(Protocol):
    """Capabilities the capture pipeline needs from a page renderer."""

    async def start(self) -> Any: ...

    async def stop(self, handle: Any) -> None: ...

    async def render_and_capture(self, handle: Any, request: ScreenshotRequest) -> Screenshot: ...

    async def render_and_capture_series(
        self, handle: Any, request: ScreencastRequest, interval: float
    ) -> ScreencastResult: ...

    async def observe_console(self, handle: Any, request: ConsoleRequest) -> ConsoleCaptureResult: ...

    def stats(self, handle: Any) -> Dict[str, Any]: ...


class PlaywrightEngine:
    """
    Chromium via Playwright.

    Each capture opens its own BrowserContext, so concurrent captures share the
    browser process without sharing cookies, viewport or listeners.
    """

    def __init__(self, config: Dict[str, Any] | None = None):
        self.config = config or {}
        self.headless = self.config.get("browser.headless", True)
        self.timeout_ms = self.config.get("browser.navigation_timeout_ms", 30000)
        self.freezer = VisualFreezer()

    async def start(self) -> EngineHandle:
        """Start Playwright and launch Chromium."""
        playwright: Optional[Playwright] = None
        try:
            playwright = await async_playwright().start()
            browser = await playwright.chromium.launch(headless=self.headless, args=CHROMIUM_ARGS)
        except Exception as e:
            logger.error(f"Failed to start chromium: {e}")
            if playwright is not None:
                await playwright.stop()
            raise EngineUnavailable(f"Browser failed to start: {e}") from e

        logger.info(f"Chromium {browser.version} launched (headless={self.headless})")
        return EngineHandle(playwright=playwright, browser=browser, started_at=time.time())

    async def stop(self, handle: EngineHandle) -> None:
        """Close the browser and the driver. Safe to call more than once."""
        if handle.closed:
            return
        handle.closed = True
        try:
            await handle.browser.close()
        finally:
            await handle.playwright.stop()
        logger.info("Chromium closed")

    def is_alive(self, handle: EngineHandle) -> bool:
        return not handle.closed and handle.browser.is_connected()

    @asynccontextmanager
    async def _page(self, handle: EngineHandle, viewport: Viewport) -> AsyncIterator[Page]:
        context = await handle.browser.new_context(
            viewport={"width": viewport.width, "height": viewport.height},
            ignore_https_errors=True,
        )
        handle.pages_opened += 1
        try:
            page = await context.new_page()
            page.set_default_timeout(self.timeout_ms)
            yield page
        finally:
            await context.close()

    async def _navigate(self, page: Page, url: str, wait_until: WaitUntil) -> None:
        start_time = time.time()
        try:
            await page.goto(url, wait_until=wait_until.playwright_state, timeout=self.timeout_ms)
        except PlaywrightError as e:
            raise CaptureFailure(url, f"Navigation failed: {e.message}") from e
        logger.debug(f"Navigated to {url} in {time.time() - start_time:.2f}s")

    async def _evaluate(self, page: Page, url: str, script: str) -> None:
        try:
            await page.evaluate(script)
        except PlaywrightError as e:
            raise CaptureFailure(url, f"Script evaluation failed: {e.message}") from e

    async def render_and_capture(self, handle: EngineHandle, request: ScreenshotRequest) -> Screenshot:
        """Load the page and capture the viewport, or every tile of the full page."""
        async with self._page(handle, request.viewport) as page:
            await self._navigate(page, request.url, request.wait_until)
            if request.wait_for_ms:
                await page.wait_for_timeout(request.wait_for_ms)

            try:
                _, page_height = await self.freezer.measure_page(page)
                plan = decide_screenshot_plan(request.full_page, page_height, request.viewport.height)
                if plan is ScreenshotPlan.TILED:
                    return await self.freezer.capture_tiles(
                        page, request.viewport.width, page_height, TILE_SIZE
                    )
                return await self.freezer.capture_viewport(page)
            except PlaywrightError as e:
                raise CaptureFailure(request.url, f"Screenshot failed: {e.message}") from e

    async def render_and_capture_series(
        self, handle: EngineHandle, request: ScreencastRequest, interval: float
    ) -> ScreencastResult:
        """
        Capture one frame every ``interval`` seconds for ``request.duration``.

        Pending jsEvaluate instructions run one per tick, each right after that
        tick's frame. The series is extended until every instruction has run and
        a frame has been taken after the last one.
        """
        loop = asyncio.get_running_loop()
        pending = list(request.js_evaluate)
        scheduled = max(1, int(round(request.duration / interval)))
        ticks = max(scheduled, len(pending) + 1) if pending else scheduled
        if ticks > scheduled:
            logger.debug(f"Extending screencast to {ticks} frames for {len(pending)} jsEvaluate instructions")
        frames = []

        async with self._page(handle, request.viewport) as page:
            await self._navigate(page, request.url, request.wait_until)
            start = loop.time()
            for index in range(ticks):
                delay = start + index * interval - loop.time()
                if delay > 0:
                    await asyncio.sleep(delay)
                try:
                    frames.append(await self.freezer.capture_frame(page, index))
                except PlaywrightError as e:
                    raise CaptureFailure(request.url, f"Frame {index + 1} failed: {e.message}") from e
                if pending:
                    await self._evaluate(page, request.url, pending.pop(0))

        return ScreencastResult(frames=tuple(frames), duration=request.duration, interval=interval)

    async def observe_console(self, handle: EngineHandle, request: ConsoleRequest) -> ConsoleCaptureResult:
        """Record console output while the page loads, runs jsCommand, and idles."""
        blackbox = ConsoleBlackbox()
        viewport = Viewport(width=MAX_DIMENSION, height=MAX_DIMENSION)

        async with self._page(handle, viewport) as page:
            blackbox.attach(page)
            await self._navigate(page, request.url, request.wait_until)
            if request.js_command:
                await self._evaluate(page, request.url, request.js_command)
            await asyncio.sleep(request.duration)
            blackbox.detach(page)

        return ConsoleCaptureResult(
            url=request.url,
            duration=request.duration,
            messages=blackbox.get_logs(),
            executed_command=request.js_command,
        )

    def stats(self, handle: EngineHandle) -> Dict[str, Any]:
        """Usage snapshot of a running browser."""
        return {
            "connected": handle.browser.is_connected(),
            "open_contexts": len(handle.browser.contexts),
            "pages_opened": handle.pages_opened,
            "uptime_seconds": round(time.time() - handle.started_at, 1),
        }
