"""
Tests for the DevTools reachability probes.

These run against real sockets on 127.0.0.1: a plain TCP server for the port
probe and a small aiohttp application standing in for the DevTools HTTP
endpoint.
"""

import asyncio
import socket
from contextlib import asynccontextmanager
from unittest.mock import patch

import aiohttp
import pytest
from aiohttp import web

from webpilot.discovery.probes import (
    fetch_version_info,
    is_port_open,
    try_chrome_host_url,
    version_info_url,
)


def unused_port():
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


@asynccontextmanager
async def devtools_server(payload=None, status=200):
    """Serve /json/version on an ephemeral port and yield its host URL."""
    async def version(request):
        if status >= 400:
            return web.Response(status=status, text="nope")
        return web.json_response(payload or {})

    app = web.Application()
    app.router.add_get("/json/version", version)
    runner = web.AppRunner(app)
    await runner.setup()
    site = web.TCPSite(runner, "127.0.0.1", 0)
    await site.start()
    try:
        port = runner.addresses[0][1]
        yield f"http://127.0.0.1:{port}"
    finally:
        await runner.cleanup()


# ==============================================================================
# Port probe
# ==============================================================================


class TestIsPortOpen:
    """Tests for is_port_open."""

    @pytest.mark.asyncio
    async def test_open_port(self):
        """Test a listening port is reported open."""
        server = await asyncio.start_server(lambda reader, writer: writer.close(), "127.0.0.1", 0)
        port = server.sockets[0].getsockname()[1]
        try:
            assert await is_port_open("127.0.0.1", port, timeout=1.0) is True
        finally:
            server.close()
            await server.wait_closed()

    @pytest.mark.asyncio
    async def test_closed_port(self):
        """Test a refused connection is reported closed."""
        assert await is_port_open("127.0.0.1", unused_port(), timeout=1.0) is False

    @pytest.mark.asyncio
    async def test_timeout(self):
        """Test a connection that never completes resolves to False."""
        async def hang(*args, **kwargs):
            await asyncio.sleep(10)

        with patch("webpilot.discovery.probes.asyncio.open_connection", hang):
            assert await is_port_open("192.0.2.1", 9222, timeout=0.05) is False

    @pytest.mark.asyncio
    async def test_unresolvable_host(self):
        """Test resolution errors never raise."""
        assert await is_port_open("no-such-host.invalid", 9222, timeout=1.0) is False


# ==============================================================================
# HTTP probes
# ==============================================================================


class TestTryChromeHostUrl:
    """Tests for try_chrome_host_url."""

    def test_version_info_url(self):
        """Test the version path is appended once."""
        assert version_info_url("http://localhost:9222/") == "http://localhost:9222/json/version"

    @pytest.mark.asyncio
    async def test_success(self):
        """Test a 200 response validates the host."""
        async with devtools_server({"Browser": "Chrome/128"}) as host_url:
            assert await try_chrome_host_url(host_url) is True

    @pytest.mark.asyncio
    async def test_body_not_inspected(self):
        """Test any successful response counts, even without a websocket URL."""
        async with devtools_server({}) as host_url:
            assert await try_chrome_host_url(host_url) is True

    @pytest.mark.asyncio
    async def test_error_status(self):
        """Test an HTTP error status fails validation."""
        async with devtools_server(status=404) as host_url:
            assert await try_chrome_host_url(host_url) is False

    @pytest.mark.asyncio
    async def test_connection_refused(self):
        """Test nothing listening fails validation."""
        assert await try_chrome_host_url(f"http://127.0.0.1:{unused_port()}") is False

    @pytest.mark.asyncio
    async def test_invalid_url(self):
        """Test a malformed URL fails validation instead of raising."""
        assert await try_chrome_host_url("not a url") is False


class TestFetchVersionInfo:
    """Tests for fetch_version_info."""

    @pytest.mark.asyncio
    async def test_returns_parsed_json(self):
        """Test the version info is parsed."""
        payload = {"webSocketDebuggerUrl": "ws://127.0.0.1:9222/devtools/browser/abc"}
        async with devtools_server(payload) as host_url:
            info = await fetch_version_info(host_url)

        assert info == payload

    @pytest.mark.asyncio
    async def test_error_status_raises(self):
        """Test HTTP errors propagate."""
        async with devtools_server(status=500) as host_url:
            with pytest.raises(aiohttp.ClientResponseError):
                await fetch_version_info(host_url)
