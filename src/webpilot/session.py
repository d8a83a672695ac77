import asyncio
import dataclasses
import logging
from pathlib import Path
from typing import Awaitable, Callable, Optional, Union

from playwright.async_api import Page
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from webpilot import inspection
from webpilot.action_result import ActionResult
from webpilot.config import BrowserSessionConfig
from webpilot.connection import ConnectionManager, ConnectionState
from webpilot.exceptions import BrowserNotInitializedError
from webpilot.executor import ActionExecutor, PageAction
from webpilot.stability import wait_till_html_stable
from webpilot.tabs import RouteAction, TabRouter
from webpilot.utils import parse_coordinate, parse_size

logger = logging.getLogger(__name__)

# Pause after a mouse action before checking whether it triggered network activity
MOUSE_ACTION_SETTLE_SECONDS = 0.1
HOVER_EFFECT_SECONDS = 0.3
SCROLL_SETTLE_SECONDS = 0.3

SCROLL_BY_JS = "(top) => window.scrollBy({ top, behavior: 'auto' })"


class BrowserSession:
    """
    One automatable browser session for an external controller.

    Every public action returns an ActionResult with a screenshot, the console
    output the action produced, the current URL and the last mouse position.
    Inspection operations return their payload instead of a screenshot.

    The session is not safe for concurrent use: await each call before issuing
    the next one.

    Parameters:
        storage_path (Optional[Union[str, Path]]): Directory owned by the session.
            Overrides the configured storage path.
        config (Optional[BrowserSessionConfig]): Fixed configuration. When None,
            the configuration is read from the environment on every launch.
        connection (Optional[ConnectionManager]): Connection manager to use.
    """

    def __init__(
        self,
        storage_path: Optional[Union[str, Path]] = None,
        config: Optional[BrowserSessionConfig] = None,
        connection: Optional[ConnectionManager] = None,
    ) -> None:
        self.storage_path = Path(storage_path) if storage_path else None
        self._config_override = config
        self.config: BrowserSessionConfig = self._load_config()
        self.connection = connection or ConnectionManager()
        self.tabs = TabRouter(self.connection)
        self.executor = ActionExecutor.from_config(self.config)
        self.current_mouse_position: Optional[str] = None

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def page(self) -> Optional[Page]:
        return self.connection.active_page

    @property
    def is_launched(self) -> bool:
        return self.connection.active_page is not None

    @property
    def is_using_remote_browser(self) -> bool:
        return self.connection.is_using_remote_browser

    @property
    def state(self) -> ConnectionState:
        return self.connection.state

    def _load_config(self) -> BrowserSessionConfig:
        config = self._config_override or BrowserSessionConfig.from_env()
        if self.storage_path is not None:
            config = dataclasses.replace(config, storage_path=self.storage_path)
        return config

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def launch_browser(self) -> None:
        """
        Launch a local browser or attach to a remote one.

        Any browser from a previous launch is closed first.

        Raises:
            BrowserConnectionError: If no browser could be started at all.
        """
        logger.info("Launch browser called")
        self.config = self._load_config()
        self.executor = ActionExecutor.from_config(self.config)
        self.current_mouse_position = None
        await self.connection.launch(self.config)

    async def close_browser(self) -> ActionResult:
        """Close the browser and reset the session. Safe to call repeatedly."""
        await self.connection.close()
        self.current_mouse_position = None
        return ActionResult()

    # ------------------------------------------------------------------
    # Action envelope
    # ------------------------------------------------------------------

    async def do_action(self, action: PageAction) -> ActionResult:
        return await self.do_action_with_options(action, full_page=False)

    async def do_action_with_options(self, action: PageAction, full_page: bool = False) -> ActionResult:
        """
        Run action against the active page inside the log/screenshot envelope.

        Parameters:
            action (PageAction): Coroutine function receiving the active page.
            full_page (bool): Capture the whole scrollable page.

        Raises:
            BrowserNotInitializedError: If there is no active page.
            ScreenshotError: If the page could not be captured.
        """
        page = self.connection.require_page("do_action")
        return await self.executor.run(
            page,
            action,
            full_page=full_page,
            mouse_position=lambda: self.current_mouse_position,
        )

    async def _inspect(self, operation: Callable[[Page], Awaitable], operation_name: str):
        page = self.connection.require_page(operation_name)
        payload, logs = await self.executor.inspect(page, operation)
        return page, payload, logs

    # ------------------------------------------------------------------
    # Navigation
    # ------------------------------------------------------------------

    async def navigate_to_url(self, url: str) -> ActionResult:
        """
        Navigate to url, reusing an open tab of the same root domain.

        A matching tab is navigated if its URL differs and reloaded otherwise;
        without a match a new tab is opened.
        """
        if not self.connection.has_driver:
            raise BrowserNotInitializedError("navigate_to_url")

        route = await self.tabs.route(url)
        if route.action is RouteAction.RELOAD:
            logger.info(f"Reloading page: {route.url}")
            return await self.do_action(self._reload_page)

        logger.info(f"Navigating to: {route.url}")
        return await self.do_action(lambda page: self._navigate_page_to_url(page, route.url))

    async def _navigate_page_to_url(self, page: Page, url: str) -> None:
        await page.goto(url, timeout=self.config.navigation_timeout_ms, wait_until="domcontentloaded")
        await self._wait_for_load_state(page, "networkidle")
        await self._wait_till_html_stable(page)

    async def _reload_page(self, page: Page) -> None:
        await page.reload(timeout=self.config.navigation_timeout_ms, wait_until="domcontentloaded")
        await self._wait_for_load_state(page, "networkidle")
        await self._wait_till_html_stable(page)

    async def _wait_for_load_state(self, page: Page, state: str) -> None:
        try:
            await page.wait_for_load_state(state, timeout=self.config.navigation_timeout_ms)
        except PlaywrightTimeoutError:
            logger.debug(f"Page did not reach {state}, continuing")

    async def _wait_till_html_stable(self, page: Page) -> int:
        return await wait_till_html_stable(
            page,
            timeout_ms=self.config.stability_timeout_ms,
            interval_ms=self.config.stability_interval_ms,
            min_stable_iterations=self.config.stability_min_iterations,
        )

    # ------------------------------------------------------------------
    # Mouse and keyboard
    # ------------------------------------------------------------------

    async def _handle_mouse_interaction(
        self,
        page: Page,
        coordinate: str,
        x: float,
        y: float,
        action: Callable[[float, float], Awaitable[None]],
    ) -> None:
        """
        Perform a mouse action and wait for the page only if it loaded something.

        Clicks that do not trigger any request skip the navigation wait.
        """
        request_observed = False

        def on_request(request) -> None:
            nonlocal request_observed
            request_observed = True

        page.on("request", on_request)
        try:
            await action(x, y)
            self.current_mouse_position = coordinate

            await asyncio.sleep(MOUSE_ACTION_SETTLE_SECONDS)

            if request_observed:
                await self._wait_for_load_state(page, "domcontentloaded")
                await self._wait_for_load_state(page, "networkidle")
                await self._wait_till_html_stable(page)
        finally:
            page.remove_listener("request", on_request)

    async def click(self, coordinate: str) -> ActionResult:
        """
        Click at an "x,y" viewport coordinate.

        Raises:
            ActionValidationError: If coordinate is malformed.
        """
        x, y = parse_coordinate(coordinate, action="click")

        async def click_at(page: Page) -> None:
            await self._handle_mouse_interaction(page, coordinate, x, y, page.mouse.click)

        return await self.do_action(click_at)

    async def hover(self, coordinate: str) -> ActionResult:
        """
        Move the mouse to an "x,y" viewport coordinate.

        Raises:
            ActionValidationError: If coordinate is malformed.
        """
        x, y = parse_coordinate(coordinate, action="hover")

        async def hover_at(page: Page) -> None:
            async def move(x: float, y: float) -> None:
                await page.mouse.move(x, y)
                await asyncio.sleep(HOVER_EFFECT_SECONDS)

            await self._handle_mouse_interaction(page, coordinate, x, y, move)

        return await self.do_action(hover_at)

    async def type(self, text: str) -> ActionResult:
        """Type literal text into the focused element."""
        return await self.do_action(lambda page: page.keyboard.type(text))

    async def _scroll_page(self, page: Page, direction: str) -> None:
        height = self.config.viewport_height
        scroll_amount = height if direction == "down" else -height
        await page.evaluate(SCROLL_BY_JS, scroll_amount)
        await asyncio.sleep(SCROLL_SETTLE_SECONDS)

    async def scroll_down(self) -> ActionResult:
        return await self.do_action(lambda page: self._scroll_page(page, "down"))

    async def scroll_up(self) -> ActionResult:
        return await self.do_action(lambda page: self._scroll_page(page, "up"))

    async def resize(self, size: str) -> ActionResult:
        """
        Resize the viewport and, for headed browsers, the window to "width,height".

        Raises:
            ActionValidationError: If size is malformed.
        """
        width, height = parse_size(size)

        async def resize_window(page: Page) -> None:
            client = await page.context.new_cdp_session(page)
            try:
                await page.set_viewport_size({"width": width, "height": height})
                # The viewport alone does not change the size of a headed window
                window = await client.send("Browser.getWindowForTarget")
                await client.send(
                    "Browser.setWindowBounds",
                    {"windowId": window["windowId"], "bounds": {"width": width, "height": height}},
                )
            finally:
                await client.detach()

        return await self.do_action(resize_window)

    # ------------------------------------------------------------------
    # Inspection
    # ------------------------------------------------------------------

    async def get_page_source(self, include_comments: bool = True) -> ActionResult:
        """Return the page markup, optionally without HTML comments, and both lengths."""
        page, (html_source, original_length, processed_length), logs = await self._inspect(
            lambda page: inspection.get_page_source(page, include_comments), "get_page_source"
        )
        return ActionResult(
            logs=logs,
            current_url=page.url,
            current_mouse_position=self.current_mouse_position,
            html_source=html_source,
            original_length=original_length,
            processed_length=processed_length,
        )

    async def get_page_title(self) -> ActionResult:
        page, title, logs = await self._inspect(lambda page: page.title(), "get_page_title")
        return ActionResult(
            logs=logs,
            current_url=page.url,
            current_mouse_position=self.current_mouse_position,
            page_title=title,
        )

    async def get_page_meta(self, include_all_meta: bool = False) -> ActionResult:
        """Return description, keywords, Open Graph and Twitter card tags of the page."""
        page, meta_data, logs = await self._inspect(
            lambda page: inspection.get_page_metadata(page, include_all_meta), "get_page_meta"
        )
        return ActionResult(
            logs=logs,
            current_url=page.url,
            current_mouse_position=self.current_mouse_position,
            meta_data=meta_data,
        )

    async def inspect_element(self, coordinates: str, include_children: bool = False) -> ActionResult:
        """
        Describe the element at an "x,y" viewport coordinate.

        Raises:
            ActionValidationError: If coordinates are malformed.
            ElementNotFoundError: If there is no element at the coordinate.
        """
        x, y = parse_coordinate(coordinates, action="inspect_element")
        page, element_info, logs = await self._inspect(
            lambda page: inspection.get_element_info(page, x, y, coordinates, include_children),
            "inspect_element",
        )
        return ActionResult(
            logs=logs,
            current_url=page.url,
            current_mouse_position=self.current_mouse_position,
            element_info=element_info,
        )
