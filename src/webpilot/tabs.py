"""
Tab reuse by root domain.

Repeated automation against the same site keeps working in one tab instead of
opening a new one per request: a request is routed to the first open page that
shares the requested URL's root domain, which is then navigated (different
URL) or reloaded (same URL).
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Optional
from urllib.parse import urlsplit

from playwright.async_api import Page

if TYPE_CHECKING:
    from webpilot.connection import ConnectionManager

logger = logging.getLogger(__name__)

_DEFAULT_PORTS = {"http": 80, "https": 443}


def normalize_url(url: str) -> str:
    """Strip one trailing slash so "https://a.com/" and "https://a.com" compare equal."""
    return url[:-1] if url.endswith("/") else url


def get_root_domain(url: str) -> str:
    """
    Extract the root domain from a URL.

    e.g. http://localhost:3000/path -> localhost:3000
    e.g. https://www.example.com/path -> example.com

    Strings that do not parse as a URL with a host are returned unchanged, so
    they only match themselves.
    """
    try:
        parts = urlsplit(url)
        hostname = parts.hostname
        port = parts.port
    except ValueError:
        return url
    if not parts.netloc or not hostname:
        return url

    host = f"[{hostname}]" if ":" in hostname else hostname
    if port is not None and _DEFAULT_PORTS.get(parts.scheme) != port:
        host = f"{host}:{port}"

    return host[4:] if host.startswith("www.") else host


class RouteAction(str, Enum):
    NAVIGATE = "navigate"
    RELOAD = "reload"
    NEW_TAB = "new_tab"


@dataclass
class TabRoute:
    """Where and how a navigation request will be carried out."""

    page: Page
    action: RouteAction
    url: str


class TabRouter:
    """
    Picks the page a navigation request runs in and makes it active.

    Parameters:
        connection (ConnectionManager): Owner of the open pages and the active page.
    """

    def __init__(self, connection: "ConnectionManager") -> None:
        self.connection = connection

    def find_page_for_domain(self, root_domain: str) -> Optional[Page]:
        for page in self.connection.pages():
            try:
                if page.is_closed():
                    continue
                page_url = page.url
            except Exception as e:
                # Pages can disappear between listing and inspection
                logger.debug(f"Error checking page URL: {e}")
                continue
            if page_url and get_root_domain(normalize_url(page_url)) == root_domain:
                return page
        return None

    async def route(self, url: str) -> TabRoute:
        """
        Select, activate and if needed create the page for url.

        Returns:
            TabRoute: The page now active and whether it must be navigated,
            reloaded, or is a fresh tab awaiting its first navigation.
        """
        normalized_url = normalize_url(url)
        root_domain = get_root_domain(normalized_url)

        existing_page = self.find_page_for_domain(root_domain)
        if existing_page is None:
            logger.info(f"No tab with domain {root_domain} exists, creating a new one")
            new_page = await self.connection.new_page()
            return TabRoute(page=new_page, action=RouteAction.NEW_TAB, url=url)

        logger.info(f"Tab with domain {root_domain} already exists, switching to it")
        self.connection.set_active_page(existing_page)
        await existing_page.bring_to_front()

        current_url = normalize_url(existing_page.url)
        if current_url != normalized_url:
            logger.debug(f"Navigating from {current_url} to {normalized_url}")
            return TabRoute(page=existing_page, action=RouteAction.NAVIGATE, url=url)

        logger.debug(f"URL is unchanged, reloading {normalized_url}")
        return TabRoute(page=existing_page, action=RouteAction.RELOAD, url=url)
