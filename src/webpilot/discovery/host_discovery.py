"""
Remote browser discovery.

Finds a running Chromium that exposes its DevTools endpoint, trying hosts in a
fixed priority order:

1. the operator-specified host, if any;
2. well-known local and container-host names;
3. heuristics: the container host's IP (DNS aliases, the hosts file, common
   gateway addresses) plus every non-loopback local interface, and finally the
   usual gateway addresses of each interface's subnet.

Discovery is strictly sequential and every probe is bounded by the probe
timeout, so the total run time is bounded by the number of candidates.
"""

import asyncio
import logging
import re
import socket
from pathlib import Path
from typing import List, Optional, Sequence

import psutil

from webpilot.discovery.probes import is_port_open, try_chrome_host_url
from webpilot.fallback import first_successful

logger = logging.getLogger(__name__)

DEFAULT_DEBUGGING_PORT = 9222

CONTAINER_HOST_ALIASES = ["host.docker.internal", "gateway.docker.internal"]

WELL_KNOWN_HOSTS = ["localhost", "127.0.0.1", *CONTAINER_HOST_ALIASES]

COMMON_GATEWAY_IPS = [
    "172.17.0.1",  # Docker default bridge
    "172.18.0.1",  # Docker custom bridge
    "192.168.65.1",  # Docker Desktop for Mac
    "192.168.1.1",  # Common router
    "10.0.0.1",  # Common router
]

# Host suffixes probed inside an interface's /24 network
SUBNET_PRIORITY_SUFFIXES = ["1", "2", "254"]

HOSTS_FILE = Path("/etc/hosts")

_IPV4_RE = re.compile(r"^\d+\.\d+\.\d+\.\d+$")


def get_network_interfaces() -> List[str]:
    """Return the IPv4 addresses of all non-loopback network interfaces."""
    addresses = []
    try:
        for name, addrs in psutil.net_if_addrs().items():
            for addr in addrs:
                if addr.family == socket.AF_INET and not addr.address.startswith("127."):
                    addresses.append(addr.address)
    except (OSError, RuntimeError) as e:
        logger.warning(f"Could not get network interfaces: {e}")
    return addresses


def read_hosts_file_ip(hosts_file: Path = HOSTS_FILE, alias: str = "host.docker.internal") -> Optional[str]:
    """Return the IPv4 address recorded for alias in a hosts file, if any."""
    try:
        content = hosts_file.read_text(encoding="utf-8", errors="replace")
    except OSError:
        return None

    for line in content.splitlines():
        if alias not in line:
            continue
        parts = line.strip().split()
        if parts and _IPV4_RE.match(parts[0]):
            return parts[0]
    return None


def dedupe(items: Sequence[str]) -> List[str]:
    seen = set()
    unique = []
    for item in items:
        if item not in seen:
            seen.add(item)
            unique.append(item)
    return unique


class HostDiscovery:
    """
    Locates a remote browser's DevTools endpoint.

    Parameters:
        port (int): Debugging port to probe on every candidate host.
        operator_host (Optional[str]): Host URL configured by the operator, tried first.
        probe_timeout (float): Per-probe timeout in seconds (at most 1s).
        hosts_file (Path): Hosts file scanned for the container host's address.
    """

    def __init__(
        self,
        port: int = DEFAULT_DEBUGGING_PORT,
        operator_host: Optional[str] = None,
        probe_timeout: float = 1.0,
        hosts_file: Path = HOSTS_FILE,
    ) -> None:
        self.port = port
        self.operator_host = operator_host.rstrip("/") if operator_host else None
        self.probe_timeout = min(probe_timeout, 1.0)
        self.hosts_file = hosts_file

    def host_url(self, host: str) -> str:
        return f"http://{host}:{self.port}"

    async def discover(self, include_operator_host: bool = True) -> Optional[str]:
        """
        Find one validated host URL.

        Parameters:
            include_operator_host (bool): Try the operator host first. The
                connection manager disables this when it already tried it.

        Returns:
            Optional[str]: A host URL such as "http://localhost:9222", or None.
        """
        strategies = []
        if include_operator_host and self.operator_host:
            strategies.append(("operator host", self._try_operator_host))
        strategies.append(("well-known hosts", self._try_well_known_hosts))
        strategies.append(("auto-discovery", self._try_heuristic_discovery))

        host_url = await first_successful(strategies, label="remote browser discovery")
        if host_url:
            logger.info(f"Found Chrome at {host_url}")
        else:
            logger.info("No browser instances discovered on network")
        return host_url

    async def _validate(self, host_url: str) -> Optional[str]:
        if await try_chrome_host_url(host_url, timeout=self.probe_timeout):
            return host_url
        return None

    async def _try_operator_host(self) -> Optional[str]:
        return await self._validate(self.operator_host)

    async def _try_candidates(self, host_urls: Sequence[str]) -> Optional[str]:
        for host_url in host_urls:
            logger.debug(f"Trying to connect to: {host_url}")
            if await self._validate(host_url):
                return host_url
        return None

    async def _try_well_known_hosts(self) -> Optional[str]:
        return await self._try_candidates([self.host_url(host) for host in WELL_KNOWN_HOSTS])

    async def _try_heuristic_discovery(self) -> Optional[str]:
        logger.debug("Direct connections failed. Attempting auto-discovery...")
        interfaces = get_network_interfaces()

        candidates = []
        docker_host_ip = await self.get_docker_host_ip()
        if docker_host_ip:
            candidates.append(docker_host_ip)
        candidates.extend(interfaces)
        candidates = dedupe(candidates)
        logger.debug(f"IP addresses to try: {candidates}")

        found = await self._try_candidates([self.host_url(ip) for ip in candidates])
        if found:
            return found

        for ip in interfaces:
            scanned = await self.scan_network_for_chrome(ip)
            if scanned and scanned not in candidates:
                found = await self._validate(self.host_url(scanned))
                if found:
                    return found
        return None

    # ------------------------------------------------------------------
    # Container host heuristics
    # ------------------------------------------------------------------

    async def get_docker_host_ip(self) -> Optional[str]:
        """Return the container host's IP using the first method that yields one."""
        strategies = [
            (f"resolve {alias}", lambda alias=alias: self._resolve(alias))
            for alias in CONTAINER_HOST_ALIASES
        ]
        strategies.append(("hosts file", self._hosts_file_ip))
        strategies.append(("common gateway IPs", self._probe_common_gateways))

        ip = await first_successful(strategies, label="container host lookup")
        if ip:
            logger.debug(f"Found Docker host IP: {ip}")
        return ip

    async def _resolve(self, hostname: str) -> Optional[str]:
        loop = asyncio.get_running_loop()
        try:
            infos = await asyncio.wait_for(
                loop.getaddrinfo(hostname, None, family=socket.AF_INET, type=socket.SOCK_STREAM),
                timeout=self.probe_timeout,
            )
        except (OSError, asyncio.TimeoutError):
            return None
        return infos[0][4][0] if infos else None

    async def _hosts_file_ip(self) -> Optional[str]:
        return read_hosts_file_ip(self.hosts_file)

    async def _probe_common_gateways(self) -> Optional[str]:
        for ip in COMMON_GATEWAY_IPS:
            if await is_port_open(ip, self.port, timeout=min(self.probe_timeout, 0.5)):
                return ip
        return None

    async def scan_network_for_chrome(self, base_ip: str) -> Optional[str]:
        """
        Probe the usual gateway/host addresses of base_ip's /24 network.

        Returns:
            Optional[str]: The first address with the debugging port open.
        """
        if not base_ip or not re.match(r"^\d+\.\d+\.\d+\.", base_ip):
            return None

        network_prefix = ".".join(base_ip.split(".")[:3]) + "."
        logger.debug(f"Scanning priority IPs in network {network_prefix}*")

        for suffix in SUBNET_PRIORITY_SUFFIXES:
            ip = network_prefix + suffix
            if await is_port_open(ip, self.port, timeout=self.probe_timeout):
                logger.debug(f"Found Chrome debugging port open on {ip}")
                return ip
        return None


async def discover_chrome_host_url(
    port: int = DEFAULT_DEBUGGING_PORT,
    operator_host: Optional[str] = None,
    probe_timeout: float = 1.0,
) -> Optional[str]:
    """Convenience wrapper running a one-off HostDiscovery."""
    discovery = HostDiscovery(port=port, operator_host=operator_host, probe_timeout=probe_timeout)
    return await discovery.discover()
