"""
WebPilot - browser sessions for AI agents

Drives one Chromium browser on behalf of an external controller and returns
what the controller needs to see after every action: a screenshot, the console
output, and the page state. Attaches to an already running browser when asked
to, discovering it on the local machine or the container host.

License: Apache-2.0
"""

__version__ = "0.1.0"

from .action_result import ActionResult, ElementInfo, PageMetadata
from .config import BrowserSessionConfig
from .connection import ConnectionManager, ConnectionState
from .discovery import HostDiscovery, discover_chrome_host_url, is_port_open, try_chrome_host_url
from .exceptions import (
    ActionValidationError,
    BrowserConnectionError,
    BrowserError,
    BrowserNotInitializedError,
    ElementNotFoundError,
    ScreenshotError,
    WebPilotError,
)
from .session import BrowserSession

__all__ = [
    # Version
    "__version__",
    # Session
    "BrowserSession",
    "BrowserSessionConfig",
    "ConnectionManager",
    "ConnectionState",
    # Results
    "ActionResult",
    "ElementInfo",
    "PageMetadata",
    # Discovery
    "HostDiscovery",
    "discover_chrome_host_url",
    "is_port_open",
    "try_chrome_host_url",
    # Errors
    "WebPilotError",
    "BrowserError",
    "BrowserNotInitializedError",
    "BrowserConnectionError",
    "ActionValidationError",
    "ScreenshotError",
    "ElementNotFoundError",
]
