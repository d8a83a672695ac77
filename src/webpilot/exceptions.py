"""
WebPilot Exception Hierarchy

This module defines the exceptions raised by the browser session, with rich
context and a standardized error format so callers can tell apart errors that
need a relaunch, errors caused by malformed input and fatal capture failures.

Recoverable in-page problems (script exceptions, navigation timeouts) are never
raised; they are folded into the ``logs`` field of the action result instead.
"""

from typing import Any, Dict, Optional


class WebPilotError(Exception):
    """
    Base exception class for all webpilot errors.

    Attributes:
        error_code: Unique error code for programmatic handling
        context: Additional context information
        user_message: User-friendly error message
        developer_message: Detailed technical error message
        suggestion: Suggested fix or next steps (if applicable)
    """

    def __init__(
        self,
        message: str,
        error_code: str = "WEBPILOT_ERROR",
        context: Optional[Dict[str, Any]] = None,
        user_message: Optional[str] = None,
        suggestion: Optional[str] = None,
    ):
        """
        Initialize error with rich context.

        Args:
            message: Technical error message for developers
            error_code: Unique error code for programmatic handling
            context: Additional context information
            user_message: User-friendly error message
            suggestion: Suggested fix or next steps
        """
        super().__init__(message)
        self.error_code = error_code
        self.context = context or {}
        self.user_message = user_message or message
        self.developer_message = message
        self.suggestion = suggestion

    def __str__(self) -> str:
        return f"[{self.error_code}] {self.developer_message}"


# =============================================================================
# BROWSER ERRORS
# =============================================================================

class BrowserError(WebPilotError):
    """Base class for browser-related errors."""

    def __init__(self, message: str, **kwargs):
        # Extract error_code to avoid duplicate parameter
        error_code = kwargs.pop("error_code", "BROWSER_ERROR")
        super().__init__(
            message,
            error_code=error_code,
            **kwargs
        )


class BrowserNotInitializedError(BrowserError):
    """
    Raised when a page operation is attempted without an active page.

    This happens before the first launch, after close, or when the browser
    (or the active tab) was closed from outside the session.
    """

    def __init__(self, operation: Optional[str] = None, **kwargs):
        self.operation = operation

        context = kwargs.pop("context", {})
        if operation:
            context["attempted_operation"] = operation

        message = (
            "Browser is not launched. This may occur if the browser was automatically closed."
        )
        if operation:
            message = f"{message} (operation: {operation})"

        super().__init__(
            message,
            error_code="BROWSER_NOT_INITIALIZED_ERROR",
            context=context,
            user_message="The browser must be relaunched before it can be used.",
            suggestion="Call launch_browser() and retry the operation.",
            **kwargs
        )


class BrowserConnectionError(BrowserError):
    """
    Raised when the browser cannot be started or attached to.

    Remote connection problems never surface as this error on their own because
    the session falls back to a local browser; it is raised when even the local
    launch fails.

    Examples:
    - Browser executable not found
    - Missing browser dependencies
    - Browser launch failures
    """

    def __init__(
        self,
        message: str,
        browser_type: Optional[str] = None,
        install_command: Optional[str] = None,
        **kwargs
    ):
        self.browser_type = browser_type
        self.install_command = install_command

        context = kwargs.pop("context", {})
        if browser_type:
            context["browser_type"] = browser_type
        if install_command:
            context["install_command"] = install_command

        super().__init__(
            message,
            error_code="BROWSER_CONNECTION_ERROR",
            context=context,
            user_message="Failed to connect or initialize browser.",
            suggestion=f"Try running: {install_command}" if install_command else "Check browser installation and dependencies.",
            **kwargs
        )


class ActionValidationError(BrowserError):
    """
    Raised when action input is malformed.

    Examples:
    - Coordinates that are not "x,y"
    - Sizes that are not "width,height"
    - Non-numeric or missing components
    """

    def __init__(
        self,
        message: str,
        action: Optional[str] = None,
        invalid_params: Optional[Dict[str, Any]] = None,
        expected_format: Optional[str] = None,
        **kwargs
    ):
        self.action = action
        self.invalid_params = invalid_params
        self.expected_format = expected_format

        context = kwargs.pop("context", {})
        if action:
            context["action"] = action
        if invalid_params:
            context["invalid_params"] = invalid_params
        if expected_format:
            context["expected_format"] = expected_format

        super().__init__(
            message,
            error_code="ACTION_VALIDATION_ERROR",
            context=context,
            user_message="The action input is invalid.",
            suggestion=f'Use the format "{expected_format}".' if expected_format else "Check the action input.",
            **kwargs
        )


class ScreenshotError(BrowserError):
    """Raised when neither the primary nor the fallback screenshot format produced data."""

    def __init__(self, message: str = "Failed to take screenshot.", formats: Optional[list] = None, **kwargs):
        self.formats = formats or []

        context = kwargs.pop("context", {})
        if self.formats:
            context["attempted_formats"] = self.formats

        super().__init__(
            message,
            error_code="SCREENSHOT_ERROR",
            context=context,
            user_message="The page could not be captured.",
            suggestion="Relaunch the browser if the page has crashed.",
            **kwargs
        )


class ElementNotFoundError(BrowserError):
    """Raised when an inspected coordinate does not resolve to any element."""

    def __init__(self, coordinates: str, **kwargs):
        self.coordinates = coordinates

        context = kwargs.pop("context", {})
        context["coordinates"] = coordinates

        super().__init__(
            f"No element found at coordinates {coordinates}",
            error_code="ELEMENT_NOT_FOUND_ERROR",
            context=context,
            user_message="There is no element at the requested position.",
            suggestion="Take a fresh screenshot and pick coordinates inside the viewport.",
            **kwargs
        )
