from __future__ import annotations

import logging
import socket

log = logging.getLogger("padrelay.netinfo")

# Any routable address works; connect() on a UDP socket sends nothing, it only
# makes the kernel pick the outbound interface.
_PROBE_ADDR = ("8.8.8.8", 80)


def discover_host_ip(advertised_host: str | None = None) -> str:
    """Best guess at the address clients should use to reach this host."""
    if advertised_host:
        return str(advertised_host)

    try:
        with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as s:
            s.connect(_PROBE_ADDR)
            ip = s.getsockname()[0]
            if ip and not ip.startswith("0."):
                return ip
    except OSError as e:
        log.debug("Outbound interface probe failed: %s", e)

    try:
        ip = socket.gethostbyname(socket.gethostname())
        if ip:
            return ip
    except OSError as e:
        log.debug("Hostname lookup failed: %s", e)

    return "127.0.0.1"
