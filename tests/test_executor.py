"""
Tests for the action execution pipeline.

Tests cover:
- Console and page-error collection
- Listener cleanup on every exit path
- Error and timeout handling inside actions
- Console quiescence
- WebP capture with PNG fallback
"""

import base64
import time

import pytest
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from webpilot.exceptions import ScreenshotError
from webpilot.executor import ActionExecutor, PageLogCollector, capture_page_logs

from .fakes import PNG_BYTES, WEBP_DATA, FakeConsoleMessage, FakeContext


@pytest.fixture
def page():
    return FakeContext(pages=1).pages[0]


@pytest.fixture
def executor():
    return ActionExecutor(
        screenshot_quality=60,
        quiescence_silence_ms=10,
        quiescence_timeout_ms=200,
        quiescence_poll_ms=5,
    )


# ==============================================================================
# Log collection
# ==============================================================================


class TestPageLogCollector:
    """Tests for console formatting."""

    def test_log_messages_verbatim(self):
        """Test plain console.log output is kept as is."""
        logs = PageLogCollector()
        logs.on_console(FakeConsoleMessage("log", "hello"))

        assert logs.text == "hello"

    def test_other_types_bracketed(self):
        """Test other console types are prefixed with their type."""
        logs = PageLogCollector()
        logs.on_console(FakeConsoleMessage("error", "boom"))
        logs.on_console(FakeConsoleMessage("warning", "careful"))

        assert logs.text == "[error] boom\n[warning] careful"

    def test_page_error(self):
        """Test uncaught page errors."""
        logs = PageLogCollector()
        logs.on_page_error(Exception("x is not defined"))

        assert logs.text == "[Page Error] x is not defined"

    def test_append_error_keeps_timestamp(self):
        """Test recorded action errors do not count as console activity."""
        logs = PageLogCollector()
        before = logs.last_log_ts
        logs.append_error(ValueError("bad"))

        assert logs.text == "[Error] ValueError: bad"
        assert logs.last_log_ts == before

    def test_console_updates_timestamp(self):
        """Test console activity resets the silence timer."""
        logs = PageLogCollector()
        logs.last_log_ts = time.monotonic() - 10
        logs.on_console(FakeConsoleMessage("info", "tick"))

        assert logs.silent_for() < 1000


class TestCapturePageLogs:
    """Tests for listener attach and detach."""

    @pytest.mark.asyncio
    async def test_listeners_removed(self, page):
        """Test exactly the attached listeners are removed."""
        async with capture_page_logs(page) as logs:
            assert len(page.listeners["console"]) == 1
            assert len(page.listeners["pageerror"]) == 1
            page.emit("console", FakeConsoleMessage("log", "inside"))

        assert page.listener_count() == 0
        page.emit("console", FakeConsoleMessage("log", "after"))
        assert logs.text == "inside"

    @pytest.mark.asyncio
    async def test_foreign_listeners_kept(self, page):
        """Test listeners registered by others survive."""
        def other(msg):
            pass

        page.on("console", other)
        async with capture_page_logs(page):
            pass

        assert page.listeners["console"] == [other]

    @pytest.mark.asyncio
    async def test_listeners_removed_on_error(self, page):
        """Test cleanup also happens when the block raises."""
        with pytest.raises(RuntimeError):
            async with capture_page_logs(page):
                raise RuntimeError("fail")

        assert page.listener_count() == 0


# ==============================================================================
# run()
# ==============================================================================


class TestRun:
    """Tests for ActionExecutor.run."""

    @pytest.mark.asyncio
    async def test_result_fields(self, page, executor):
        """Test a successful action yields screenshot, logs, URL and mouse position."""
        page.url = "https://example.com/"

        async def action(p):
            p.emit("console", FakeConsoleMessage("log", "clicked"))

        result = await executor.run(page, action, mouse_position=lambda: "10,20")

        assert result.screenshot == f"data:image/webp;base64,{WEBP_DATA}"
        assert result.screenshot_format == "webp"
        assert result.logs == "clicked"
        assert result.current_url == "https://example.com/"
        assert result.current_mouse_position == "10,20"
        assert page.listener_count() == 0

    @pytest.mark.asyncio
    async def test_action_error_recorded(self, page, executor):
        """Test action failures end up in the logs instead of being raised."""
        async def action(p):
            raise ValueError("element detached")

        result = await executor.run(page, action)

        assert "[Error] ValueError: element detached" in result.logs
        assert result.screenshot is not None
        assert page.listener_count() == 0

    @pytest.mark.asyncio
    async def test_timeout_dropped(self, page, executor):
        """Test navigation timeouts are neither raised nor logged."""
        async def action(p):
            raise PlaywrightTimeoutError("Timeout 15000ms exceeded")

        result = await executor.run(page, action)

        assert result.logs == ""
        assert result.screenshot is not None

    @pytest.mark.asyncio
    async def test_webp_quality(self, page, executor):
        """Test the configured quality is passed to the capture."""
        await executor.run(page, lambda p: p.keyboard.type("a"))

        method, params = page.cdp.sent[-1]
        assert method == "Page.captureScreenshot"
        assert params == {"format": "webp", "quality": 60}
        assert page.cdp.detached is True

    @pytest.mark.asyncio
    async def test_full_page_clip(self, page, executor):
        """Test full page capture clips to the content size."""
        await executor.run(page, lambda p: p.keyboard.type("a"), full_page=True)

        method, params = page.cdp.sent[-1]
        assert params["clip"]["height"] == 2400
        assert params["captureBeyondViewport"] is True


# ==============================================================================
# Screenshots
# ==============================================================================


class TestCaptureScreenshot:
    """Tests for the WebP to PNG fallback."""

    @pytest.mark.asyncio
    async def test_png_fallback_on_empty_webp(self, page, executor, caplog):
        """Test an empty WebP capture falls back to PNG once."""
        page.cdp.responses["Page.captureScreenshot"] = {"data": ""}

        screenshot = await executor.capture_screenshot(page)

        expected = base64.b64encode(PNG_BYTES).decode("ascii")
        assert screenshot == f"data:image/png;base64,{expected}"
        page.screenshot.assert_awaited_once_with(type="png", full_page=False)
        assert "webp screenshot failed, trying png" in caplog.text

    @pytest.mark.asyncio
    async def test_png_fallback_on_cdp_error(self, page, executor):
        """Test a failing DevTools capture falls back to PNG."""
        page.cdp.responses["Page.captureScreenshot"] = RuntimeError("Target closed")

        screenshot = await executor.capture_screenshot(page)

        assert screenshot.startswith("data:image/png;base64,")
        assert page.cdp.detached is True

    @pytest.mark.asyncio
    async def test_both_formats_empty(self, page, executor):
        """Test a fatal error when neither format produced data."""
        page.cdp.responses["Page.captureScreenshot"] = {"data": ""}
        page.screenshot.return_value = b""

        with pytest.raises(ScreenshotError) as exc_info:
            await executor.capture_screenshot(page)

        assert exc_info.value.formats == ["webp", "png"]

    @pytest.mark.asyncio
    async def test_run_raises_screenshot_error(self, page, executor):
        """Test screenshot failures are not folded into the logs."""
        page.cdp.responses["Page.captureScreenshot"] = {}
        page.screenshot.return_value = b""

        with pytest.raises(ScreenshotError):
            await executor.run(page, lambda p: p.keyboard.type("a"))

        assert page.listener_count() == 0


# ==============================================================================
# Quiescence and inspection
# ==============================================================================


class TestQuiescence:
    """Tests for the console silence wait."""

    @pytest.mark.asyncio
    async def test_quiet_console_settles(self, executor):
        """Test a silent console settles."""
        assert await executor.wait_for_quiescence(PageLogCollector()) is True

    @pytest.mark.asyncio
    async def test_noisy_console_capped(self):
        """Test the wait gives up at the cap without raising."""
        executor = ActionExecutor(quiescence_silence_ms=1_000, quiescence_timeout_ms=30, quiescence_poll_ms=5)

        start = time.monotonic()
        assert await executor.wait_for_quiescence(PageLogCollector()) is False
        assert time.monotonic() - start < 0.5


class TestInspect:
    """Tests for ActionExecutor.inspect."""

    @pytest.mark.asyncio
    async def test_returns_payload_and_logs(self, page, executor):
        """Test the payload and the collected logs are returned."""
        async def operation(p):
            p.emit("console", FakeConsoleMessage("debug", "reading"))
            return "payload"

        payload, logs = await executor.inspect(page, operation)

        assert payload == "payload"
        assert logs == "[debug] reading"
        assert page.cdp.sent == []

    @pytest.mark.asyncio
    async def test_errors_propagate(self, page, executor):
        """Test inspection errors are raised after cleanup."""
        async def operation(p):
            raise RuntimeError("evaluate failed")

        with pytest.raises(RuntimeError, match="evaluate failed"):
            await executor.inspect(page, operation)

        assert page.listener_count() == 0
