"""
Low-level probes used to find a browser's DevTools endpoint.

Every probe is bounded by an explicit timeout and tried exactly once.
"""

import asyncio
import logging
from typing import Any, Dict

import aiohttp

logger = logging.getLogger(__name__)

VERSION_INFO_PATH = "/json/version"


def version_info_url(host_url: str) -> str:
    return f"{host_url.rstrip('/')}{VERSION_INFO_PATH}"


async def is_port_open(host: str, port: int, timeout: float = 1.0) -> bool:
    """
    Check whether a TCP connection to host:port completes within timeout.

    The connection is opened once and closed immediately. Refusals, timeouts
    and resolution errors all resolve to False; this never raises.

    Parameters:
        host (str): Hostname or IP address.
        port (int): TCP port.
        timeout (float): Seconds to wait for the connection.

    Returns:
        bool: True if the connection was established.
    """
    try:
        _, writer = await asyncio.wait_for(asyncio.open_connection(host, port), timeout=timeout)
    except (OSError, asyncio.TimeoutError, ValueError):
        return False

    writer.close()
    try:
        await writer.wait_closed()
    except OSError:
        pass
    return True


async def try_chrome_host_url(host_url: str, timeout: float = 1.0) -> bool:
    """
    Check whether host_url answers its DevTools version-info path.

    Parameters:
        host_url (str): Base URL such as "http://localhost:9222".
        timeout (float): Total request timeout in seconds.

    Returns:
        bool: True only on a non-error HTTP response. The body is not inspected.
    """
    url = version_info_url(host_url)
    logger.debug(f"Trying to connect to Chrome at: {url}")
    try:
        async with aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=timeout)) as session:
            async with session.get(url) as response:
                return response.status < 400
    except (aiohttp.ClientError, asyncio.TimeoutError, OSError, ValueError) as e:
        logger.debug(f"Failed to connect to {url}: {e}")
        return False


async def fetch_version_info(host_url: str, timeout: float = 5.0) -> Dict[str, Any]:
    """
    Fetch and parse the DevTools version info of host_url.

    The response carries "webSocketDebuggerUrl", the live automation channel.

    Raises:
        aiohttp.ClientError: On network or HTTP errors.
        asyncio.TimeoutError: When the request exceeds timeout.
    """
    async with aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=timeout)) as session:
        async with session.get(version_info_url(host_url)) as response:
            response.raise_for_status()
            # DevTools serves the JSON without a strict content type on some builds
            return await response.json(content_type=None)
