"""
Configuration for the browser session.

This module defines the configuration class for the viewport, screenshot
encoding, remote browser connection, and the timing heuristics used by the
action pipeline.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Tuple

logger = logging.getLogger(__name__)


DEFAULT_VIEWPORT = (900, 600)

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/128.0.0.0 Safari/537.36"
)

DEFAULT_LAUNCH_ARGS = [
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
    "--disable-accelerated-2d-canvas",
    "--no-first-run",
    "--no-zygote",
    "--disable-gpu",
]

# Environment variables read by BrowserSessionConfig.from_env()
ENV_VIEWPORT_SIZE = "BROWSER_VIEWPORT_SIZE"
ENV_SCREENSHOT_QUALITY = "SCREENSHOT_QUALITY"
ENV_REMOTE_ENABLED = "REMOTE_BROWSER_ENABLED"
ENV_REMOTE_HOST = "REMOTE_BROWSER_HOST"
ENV_REMOTE_PORT = "REMOTE_BROWSER_PORT"
ENV_STORAGE_PATH = "BROWSER_STORAGE_PATH"
ENV_HEADLESS = "BROWSER_HEADLESS"


def parse_viewport_size(size: Optional[str]) -> Tuple[int, int]:
    """
    Parse a "WxH" viewport string.

    Missing, zero or unparsable components fall back to the default for that
    component, so "1280x" yields (1280, 600).
    """
    default_width, default_height = DEFAULT_VIEWPORT
    if not size:
        return default_width, default_height

    parts = size.lower().split("x")
    values = []
    for index, default in enumerate((default_width, default_height)):
        try:
            value = int(parts[index].strip())
        except (IndexError, ValueError):
            value = 0
        values.append(value if value > 0 else default)
    return values[0], values[1]


def _env_flag(value: Optional[str]) -> bool:
    return (value or "").strip().lower() == "true"


@dataclass
class BrowserSessionConfig:
    """
    Configuration for a browser session.

    The session reads this once per launch; changing it afterwards only
    affects the next launch.
    """

    # === Page ===

    viewport_width: int = DEFAULT_VIEWPORT[0]
    """Viewport width in CSS pixels. Also the basis for the local window size."""

    viewport_height: int = DEFAULT_VIEWPORT[1]
    """Viewport height in CSS pixels. Scrolling moves by this amount."""

    screenshot_quality: int = 75
    """Quality (1-100) of the lossy WebP screenshot."""

    # === Connection ===

    remote_browser_enabled: bool = False
    """When True, attach to an already-running browser before falling back to a local one."""

    remote_browser_host: Optional[str] = None
    """Operator supplied DevTools endpoint, e.g. "http://192.168.1.5:9222". Tried first."""

    remote_debugging_port: int = 9222
    """Debugging port probed on discovered hosts."""

    storage_path: Path = field(default_factory=lambda: Path.cwd() / ".browser-automation")
    """Directory owned by the session; the local browser profile lives below it."""

    headless: bool = False
    """Launch the local browser without a window. Headed by default so the session is visible."""

    user_agent: str = DEFAULT_USER_AGENT

    launch_args: List[str] = field(default_factory=lambda: DEFAULT_LAUNCH_ARGS.copy())

    # === Timing ===

    navigation_timeout_ms: int = 15_000
    """Upper bound for goto/reload and for the post-click network idle wait."""

    probe_timeout: float = 1.0
    """Per-probe timeout in seconds used during remote host discovery."""

    quiescence_silence_ms: int = 500
    """An action has settled once no console output arrived for this long."""

    quiescence_timeout_ms: int = 3_000
    """Give up waiting for console silence after this long."""

    quiescence_poll_ms: int = 100

    stability_timeout_ms: int = 5_000
    """Maximum time spent polling the page markup size after a navigation."""

    stability_interval_ms: int = 500

    stability_min_iterations: int = 3
    """Number of consecutive equal markup sizes that count as a stable page."""

    def __post_init__(self) -> None:
        """Validate configuration after dataclass init."""
        if isinstance(self.storage_path, str):
            self.storage_path = Path(self.storage_path)

        if not 1 <= self.screenshot_quality <= 100:
            raise ValueError(
                f"screenshot_quality must be between 1 and 100, got {self.screenshot_quality}"
            )
        if self.viewport_width <= 0 or self.viewport_height <= 0:
            raise ValueError(
                f"viewport must be positive, got {self.viewport_width}x{self.viewport_height}"
            )
        if self.probe_timeout <= 0 or self.probe_timeout > 1.0:
            raise ValueError(f"probe_timeout must be in (0, 1] seconds, got {self.probe_timeout}")

        for name in (
            "navigation_timeout_ms",
            "quiescence_silence_ms",
            "quiescence_timeout_ms",
            "quiescence_poll_ms",
            "stability_timeout_ms",
            "stability_interval_ms",
            "stability_min_iterations",
        ):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be positive, got {getattr(self, name)}")

    @property
    def viewport(self) -> Dict[str, int]:
        return {"width": self.viewport_width, "height": self.viewport_height}

    @property
    def profile_dir(self) -> Path:
        """Persistent profile directory handed to the local browser."""
        return self.storage_path / "browser-profile"

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None, **overrides) -> "BrowserSessionConfig":
        """
        Build a configuration from environment variables.

        Unparsable values fall back to the defaults with a warning. Keyword
        overrides win over the environment.

        Args:
            environ: Mapping to read from. Defaults to os.environ.
            **overrides: Explicit field values.

        Returns:
            BrowserSessionConfig
        """
        env = os.environ if environ is None else environ
        values = {}

        width, height = parse_viewport_size(env.get(ENV_VIEWPORT_SIZE))
        values["viewport_width"] = width
        values["viewport_height"] = height

        raw_quality = env.get(ENV_SCREENSHOT_QUALITY)
        if raw_quality:
            try:
                quality = int(raw_quality)
                if not 1 <= quality <= 100:
                    raise ValueError(quality)
                values["screenshot_quality"] = quality
            except ValueError:
                logger.warning(f"Ignoring invalid {ENV_SCREENSHOT_QUALITY}={raw_quality!r}, using default")

        values["remote_browser_enabled"] = _env_flag(env.get(ENV_REMOTE_ENABLED))
        values["headless"] = _env_flag(env.get(ENV_HEADLESS))

        remote_host = (env.get(ENV_REMOTE_HOST) or "").strip()
        if remote_host:
            values["remote_browser_host"] = remote_host.rstrip("/")

        raw_port = env.get(ENV_REMOTE_PORT)
        if raw_port:
            try:
                values["remote_debugging_port"] = int(raw_port)
            except ValueError:
                logger.warning(f"Ignoring invalid {ENV_REMOTE_PORT}={raw_port!r}, using default")

        storage_path = env.get(ENV_STORAGE_PATH)
        if storage_path:
            values["storage_path"] = Path(storage_path).expanduser()

        values.update(overrides)
        return cls(**values)

    def __repr__(self) -> str:
        return (
            f"BrowserSessionConfig("
            f"viewport={self.viewport_width}x{self.viewport_height}, "
            f"quality={self.screenshot_quality}, "
            f"remote={'enabled' if self.remote_browser_enabled else 'disabled'}, "
            f"remote_host={self.remote_browser_host}, "
            f"storage={self.storage_path})"
        )
