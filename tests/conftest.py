from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from webpilot.config import BrowserSessionConfig

from .fakes import FakeBrowser, FakeContext


@pytest.fixture
def fast_config(tmp_path):
    """Configuration with short timings so tests do not sleep for seconds."""
    return BrowserSessionConfig(
        storage_path=tmp_path / ".browser-automation",
        headless=True,
        quiescence_silence_ms=10,
        quiescence_timeout_ms=100,
        quiescence_poll_ms=5,
        stability_timeout_ms=100,
        stability_interval_ms=5,
        navigation_timeout_ms=1_000,
    )


@pytest.fixture
def fake_playwright():
    """
    Patch async_playwright() in the connection module.

    Yields the fake Playwright object; its persistent context is available as
    fake_playwright.local_context.
    """
    local_context = FakeContext(pages=1)

    playwright = MagicMock()
    playwright.local_context = local_context
    playwright.chromium.launch_persistent_context = AsyncMock(return_value=local_context)
    playwright.chromium.connect_over_cdp = AsyncMock(return_value=FakeBrowser())
    playwright.stop = AsyncMock()

    with patch("webpilot.connection.async_playwright") as factory:
        factory.return_value.start = AsyncMock(return_value=playwright)
        yield playwright
