"""
Action execution pipeline.

Every page action runs inside the same envelope:

1. console and page-error listeners are attached to collect log lines;
2. the action runs; failures other than timeouts are recorded in the log
   instead of being raised, so the caller still gets a usable result;
3. the pipeline waits until the console has been silent for a while;
4. a screenshot is taken (WebP, falling back to PNG once);
5. exactly the listeners attached in step 1 are removed again.

Inspection operations use the same envelope without the screenshot.
"""

import asyncio
import base64
import logging
import time
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Awaitable, Callable, List, Optional, Tuple, TypeVar

from playwright.async_api import Page
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from webpilot.action_result import ActionResult
from webpilot.config import BrowserSessionConfig
from webpilot.exceptions import ScreenshotError
from webpilot.fallback import first_successful

logger = logging.getLogger(__name__)

T = TypeVar("T")

PageAction = Callable[[Page], Awaitable[None]]


class PageLogCollector:
    """Accumulates formatted console output and page errors for one action."""

    def __init__(self) -> None:
        self.lines: List[str] = []
        self.last_log_ts = time.monotonic()

    def on_console(self, msg) -> None:
        if msg.type == "log":
            self.lines.append(msg.text)
        else:
            self.lines.append(f"[{msg.type}] {msg.text}")
        self.last_log_ts = time.monotonic()

    def on_page_error(self, error) -> None:
        self.lines.append(f"[Page Error] {error}")
        self.last_log_ts = time.monotonic()

    def append_error(self, error: BaseException) -> None:
        # Not a page event, so it does not move the quiescence timestamp
        self.lines.append(f"[Error] {type(error).__name__}: {error}")

    def silent_for(self) -> float:
        """Milliseconds since the last console or page-error event."""
        return (time.monotonic() - self.last_log_ts) * 1000

    @property
    def text(self) -> str:
        return "\n".join(self.lines)


@asynccontextmanager
async def capture_page_logs(page: Page) -> AsyncIterator[PageLogCollector]:
    """
    Collect console messages and page errors while the block runs.

    Only the two listeners registered here are removed on exit, on every exit
    path. Listeners registered by others stay attached.
    """
    collector = PageLogCollector()
    console_listener = collector.on_console
    error_listener = collector.on_page_error

    page.on("console", console_listener)
    page.on("pageerror", error_listener)
    try:
        yield collector
    finally:
        page.remove_listener("console", console_listener)
        page.remove_listener("pageerror", error_listener)


class ActionExecutor:
    """
    Runs page actions and inspections inside the log-capture envelope.

    Parameters:
        screenshot_quality (int): WebP quality, 1-100.
        quiescence_silence_ms (int): Console silence that counts as settled.
        quiescence_timeout_ms (int): Cap on the silence wait.
        quiescence_poll_ms (int): Poll interval of the silence wait.
    """

    def __init__(
        self,
        screenshot_quality: int = 75,
        quiescence_silence_ms: int = 500,
        quiescence_timeout_ms: int = 3_000,
        quiescence_poll_ms: int = 100,
    ) -> None:
        self.screenshot_quality = screenshot_quality
        self.quiescence_silence_ms = quiescence_silence_ms
        self.quiescence_timeout_ms = quiescence_timeout_ms
        self.quiescence_poll_ms = quiescence_poll_ms

    @classmethod
    def from_config(cls, config: BrowserSessionConfig) -> "ActionExecutor":
        return cls(
            screenshot_quality=config.screenshot_quality,
            quiescence_silence_ms=config.quiescence_silence_ms,
            quiescence_timeout_ms=config.quiescence_timeout_ms,
            quiescence_poll_ms=config.quiescence_poll_ms,
        )

    async def run(
        self,
        page: Page,
        action: PageAction,
        full_page: bool = False,
        mouse_position: Callable[[], Optional[str]] = lambda: None,
    ) -> ActionResult:
        """
        Run action against page and package the outcome.

        Parameters:
            page (Page): The active page.
            action (PageAction): Coroutine function receiving the page.
            full_page (bool): Capture the whole scrollable page instead of the viewport.
            mouse_position (Callable): Returns the last mouse position once the action is done.

        Returns:
            ActionResult: Screenshot, logs, current URL and mouse position.

        Raises:
            ScreenshotError: If neither WebP nor PNG capture produced data.
        """
        async with capture_page_logs(page) as logs:
            try:
                await action(page)
            except PlaywrightTimeoutError as e:
                logger.debug(f"Action timed out, continuing with current page state: {e}")
            except Exception as e:
                logger.debug(f"Action failed, recording error in logs: {e}")
                logs.append_error(e)

            await self.wait_for_quiescence(logs)
            screenshot = await self.capture_screenshot(page, full_page=full_page)

        return ActionResult(
            screenshot=screenshot,
            logs=logs.text,
            current_url=page.url,
            current_mouse_position=mouse_position(),
        )

    async def inspect(self, page: Page, operation: Callable[[Page], Awaitable[T]]) -> Tuple[T, str]:
        """
        Run a read-only operation inside the log-capture envelope.

        Errors raised by the operation propagate after the listeners are removed.

        Returns:
            Tuple of the operation's payload and the collected log text.
        """
        async with capture_page_logs(page) as logs:
            payload = await operation(page)
            await self.wait_for_quiescence(logs)
        return payload, logs.text

    async def wait_for_quiescence(self, logs: PageLogCollector) -> bool:
        """
        Wait until no log line arrived for quiescence_silence_ms.

        Returns:
            bool: False if the cap was reached first. Not an error either way.
        """
        deadline = time.monotonic() + self.quiescence_timeout_ms / 1000
        while logs.silent_for() < self.quiescence_silence_ms:
            if time.monotonic() >= deadline:
                logger.debug("Console still active, continuing without quiescence")
                return False
            await asyncio.sleep(self.quiescence_poll_ms / 1000)
        return True

    async def capture_screenshot(self, page: Page, full_page: bool = False) -> str:
        """
        Capture page as a data URI, preferring compact WebP over PNG.

        Raises:
            ScreenshotError: If both formats came back empty.
        """
        screenshot = await first_successful(
            [
                ("webp", lambda: self._capture_webp(page, full_page)),
                ("png", lambda: self._capture_png(page, full_page)),
            ],
            label="screenshot",
        )
        if not screenshot:
            raise ScreenshotError(formats=["webp", "png"])
        return screenshot

    async def _capture_webp(self, page: Page, full_page: bool) -> Optional[str]:
        # Playwright's page.screenshot() has no WebP support, so use DevTools directly
        client = await page.context.new_cdp_session(page)
        try:
            params: dict = {"format": "webp", "quality": self.screenshot_quality}
            if full_page:
                metrics = await client.send("Page.getLayoutMetrics")
                size = metrics.get("cssContentSize") or metrics["contentSize"]
                params["clip"] = {
                    "x": 0,
                    "y": 0,
                    "width": size["width"],
                    "height": size["height"],
                    "scale": 1,
                }
                params["captureBeyondViewport"] = True
            result = await client.send("Page.captureScreenshot", params)
        finally:
            await client.detach()

        data = (result or {}).get("data")
        if not data:
            return None
        return f"data:image/webp;base64,{data}"

    async def _capture_png(self, page: Page, full_page: bool) -> Optional[str]:
        logger.warning("webp screenshot failed, trying png")
        raw = await page.screenshot(type="png", full_page=full_page)
        if not raw:
            return None
        return f"data:image/png;base64,{base64.b64encode(raw).decode('ascii')}"
