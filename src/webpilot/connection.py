"""
Browser connection management.

The ConnectionManager owns the Playwright runtime and the driver handle: either
a persistent context of a locally launched Chromium, or a browser attached over
the DevTools protocol. It moves through these states:

    IDLE -> LAUNCHING -> LOCAL_ACTIVE | REMOTE_ACTIVE -> CLOSING -> IDLE

With remote connections enabled, launching tries the operator host, then host
discovery, and finally falls back to a local browser. Launching while active
closes the previous browser first.
"""

import asyncio
import logging
from enum import Enum
from typing import Awaitable, Callable, List, Optional

import aiohttp
from playwright.async_api import Browser, BrowserContext, Page, Playwright, async_playwright
from playwright.async_api import Error as PlaywrightError

from webpilot.config import BrowserSessionConfig
from webpilot.discovery.host_discovery import HostDiscovery
from webpilot.discovery.probes import fetch_version_info, try_chrome_host_url
from webpilot.exceptions import BrowserConnectionError, BrowserNotInitializedError
from webpilot.fallback import first_successful

logger = logging.getLogger(__name__)

VERSION_INFO_TIMEOUT = 5.0

_CONNECT_ERRORS = (PlaywrightError, aiohttp.ClientError, asyncio.TimeoutError, OSError, ValueError)


class ConnectionState(str, Enum):
    IDLE = "idle"
    LAUNCHING = "launching"
    LOCAL_ACTIVE = "local_active"
    REMOTE_ACTIVE = "remote_active"
    CLOSING = "closing"


def default_discovery_factory(config: BrowserSessionConfig) -> HostDiscovery:
    return HostDiscovery(
        port=config.remote_debugging_port,
        operator_host=config.remote_browser_host,
        probe_timeout=config.probe_timeout,
    )


class ConnectionManager:
    """
    Owns the driver handle and the active page.

    Parameters:
        discovery_factory (Callable): Builds the HostDiscovery used for remote
            connections from the launch configuration.
    """

    def __init__(
        self,
        discovery_factory: Callable[[BrowserSessionConfig], HostDiscovery] = default_discovery_factory,
    ) -> None:
        self.discovery_factory = discovery_factory
        self.state = ConnectionState.IDLE
        self.is_using_remote_browser = False

        self._playwright: Optional[Playwright] = None
        self._browser: Optional[Browser] = None
        self._context: Optional[BrowserContext] = None
        self._page: Optional[Page] = None

    # ------------------------------------------------------------------
    # Handles
    # ------------------------------------------------------------------

    @property
    def is_active(self) -> bool:
        return self.state in (ConnectionState.LOCAL_ACTIVE, ConnectionState.REMOTE_ACTIVE)

    @property
    def has_driver(self) -> bool:
        return self._context is not None or self._browser is not None

    @property
    def active_page(self) -> Optional[Page]:
        """The active page, or None if there is none or it was closed from outside."""
        if self._page is None or self._page.is_closed():
            return None
        return self._page

    def require_page(self, operation: Optional[str] = None) -> Page:
        page = self.active_page
        if page is None:
            raise BrowserNotInitializedError(operation)
        return page

    def pages(self) -> List[Page]:
        """All pages open in the driver, across contexts for attached browsers."""
        if self._browser is not None:
            return [page for context in self._browser.contexts for page in context.pages]
        if self._context is not None:
            return list(self._context.pages)
        return []

    def set_active_page(self, page: Page) -> None:
        if not self.has_driver:
            raise BrowserNotInitializedError("set_active_page")
        self._page = page

    async def new_page(self) -> Page:
        """Open a page in the driver's context and make it the active one."""
        if self._context is None:
            raise BrowserNotInitializedError("new_page")
        page = await self._context.new_page()
        self._page = page
        return page

    # ------------------------------------------------------------------
    # Launch
    # ------------------------------------------------------------------

    async def launch(self, config: BrowserSessionConfig) -> None:
        """
        Start or attach to a browser according to config.

        Raises:
            BrowserConnectionError: If the local browser cannot be launched.
        """
        if self.has_driver or self._playwright is not None:
            # The model may launch again after having used the browser already
            await self.close()
        else:
            self._reset()

        self.state = ConnectionState.LAUNCHING

        if config.remote_browser_enabled:
            logger.info("Connecting to remote browser")
            connected = await first_successful(
                self._remote_strategies(config), label="remote browser connection"
            )
            if connected:
                return
            logger.info("All remote connection attempts failed, falling back to local browser")

        await self._launch_local_browser(config)

    def _remote_strategies(self, config: BrowserSessionConfig) -> List[tuple]:
        strategies = []
        if config.remote_browser_host:
            strategies.append(("operator host", lambda: self._connect_operator_host(config)))
        strategies.append(("auto-discovery", lambda: self._connect_discovered_host(config)))
        return strategies

    async def _connect_operator_host(self, config: BrowserSessionConfig) -> bool:
        host_url = config.remote_browser_host.rstrip("/")
        logger.info(f"Attempting to connect to remote browser at {host_url}")
        if not await try_chrome_host_url(host_url, timeout=config.probe_timeout):
            logger.info(f"Remote browser host {host_url} did not answer")
            return False
        return await self.connect_with_chrome_host_url(host_url)

    async def _connect_discovered_host(self, config: BrowserSessionConfig) -> bool:
        discovery = self.discovery_factory(config)
        host_url = await discovery.discover(include_operator_host=False)
        if not host_url:
            return False
        logger.info(f"Auto-discovered Chrome at: {host_url}")
        return await self.connect_with_chrome_host_url(host_url)

    async def connect_with_chrome_host_url(self, host_url: str) -> bool:
        """
        Attach to the browser behind a validated DevTools host URL.

        The websocket endpoint is read from the host's version info. A missing
        endpoint or any connection error counts as failure.

        Returns:
            bool: True if the session is now attached to the remote browser.
        """
        try:
            version_info = await fetch_version_info(host_url, timeout=VERSION_INFO_TIMEOUT)
            ws_endpoint = version_info.get("webSocketDebuggerUrl") if isinstance(version_info, dict) else None
            if not ws_endpoint:
                logger.warning(f"No WebSocket debugger URL found in response from {host_url}")
                return False

            logger.debug(f"WebSocket URL: {ws_endpoint}")
            playwright = await self._ensure_playwright()
            browser = await playwright.chromium.connect_over_cdp(ws_endpoint)
        except _CONNECT_ERRORS as e:
            logger.warning(f"Failed to connect to remote browser at {host_url}: {e}")
            return False

        try:
            context = browser.contexts[0] if browser.contexts else await browser.new_context()
            page = context.pages[0] if context.pages else await context.new_page()
        except PlaywrightError as e:
            logger.warning(f"Connected to {host_url} but could not open a page: {e}")
            await self._quietly(browser.close(), "disconnect from remote browser")
            return False

        self._browser = browser
        self._context = context
        self._page = page
        self.is_using_remote_browser = True
        self.state = ConnectionState.REMOTE_ACTIVE
        logger.info(f"Connected to remote browser at {host_url}")
        return True

    async def _launch_local_browser(self, config: BrowserSessionConfig) -> None:
        logger.info("Launching local browser")
        try:
            config.profile_dir.mkdir(parents=True, exist_ok=True)
            playwright = await self._ensure_playwright()
            context = await playwright.chromium.launch_persistent_context(
                user_data_dir=str(config.profile_dir),
                headless=config.headless,
                viewport=config.viewport,
                user_agent=config.user_agent,
                args=list(config.launch_args),
            )
            # A persistent context starts with a blank page, use it instead of opening another
            page = context.pages[0] if context.pages else await context.new_page()
        except Exception as e:
            await self._stop_playwright()
            self._reset()
            raise BrowserConnectionError(
                f"Failed to launch local browser: {e}",
                browser_type="chromium",
                install_command="playwright install chromium",
            ) from e

        self._context = context
        self._page = page
        self.is_using_remote_browser = False
        self.state = ConnectionState.LOCAL_ACTIVE

    async def _ensure_playwright(self) -> Playwright:
        if self._playwright is None:
            self._playwright = await async_playwright().start()
        return self._playwright

    # ------------------------------------------------------------------
    # Close
    # ------------------------------------------------------------------

    async def close(self) -> None:
        """Disconnect (remote) or terminate (local) the browser. Idempotent."""
        if not self.has_driver and self._playwright is None:
            self._reset()
            return

        logger.info("Closing browser...")
        self.state = ConnectionState.CLOSING

        if self.is_using_remote_browser and self._browser is not None:
            # Leaves the remote browser running
            await self._quietly(self._browser.close(), "disconnect from remote browser")
        elif self._context is not None:
            await self._quietly(self._context.close(), "close local browser")

        await self._stop_playwright()
        self._reset()

    async def _stop_playwright(self) -> None:
        if self._playwright is not None:
            playwright, self._playwright = self._playwright, None
            await self._quietly(playwright.stop(), "stop playwright")

    @staticmethod
    async def _quietly(awaitable: Awaitable, what: str) -> None:
        try:
            await awaitable
        except (PlaywrightError, OSError) as e:
            logger.warning(f"Failed to {what}: {e}")

    def _reset(self) -> None:
        self._browser = None
        self._context = None
        self._page = None
        self.is_using_remote_browser = False
        self.state = ConnectionState.IDLE
