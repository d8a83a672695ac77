"""Remote browser discovery: reachability probes and prioritized host search."""

from .host_discovery import HostDiscovery, discover_chrome_host_url, get_network_interfaces
from .probes import fetch_version_info, is_port_open, try_chrome_host_url

__all__ = [
    "HostDiscovery",
    "discover_chrome_host_url",
    "fetch_version_info",
    "get_network_interfaces",
    "is_port_open",
    "try_chrome_host_url",
]
