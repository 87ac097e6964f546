"""
prober.py — Bind-probe port availability check.

A port is available when a fresh TCP socket can bind it and enter the
listening state.  The probe socket is always closed before returning, so
consecutive probes see the same OS state.  Nothing is cached: every call
asks the kernel again.
"""

from __future__ import annotations

import errno
import logging
import os
import socket

from .config import MAX_PORT, MIN_PORT, settings

logger = logging.getLogger(__name__)

# "Address already in use": macOS 48, Linux 98, Windows 10048
_ADDR_IN_USE_ERRNOS: frozenset = frozenset({errno.EADDRINUSE, 48, 98, 10048})


def validate_port(port: int) -> int:
    """Return `port` unchanged or raise ValueError when it is not a TCP/UDP port."""
    if isinstance(port, bool) or not isinstance(port, int):
        raise ValueError(f"Port must be an integer, got {port!r}")
    if not MIN_PORT <= port <= MAX_PORT:
        raise ValueError(f"Port {port} is out of range ({MIN_PORT}-{MAX_PORT})")
    return port


def _family_for(host: str) -> socket.AddressFamily:
    return socket.AF_INET6 if ":" in host else socket.AF_INET


def is_port_available(port: int, host: str | None = None) -> bool:
    """True if a listening socket can be bound to (host, port) right now.

    Any bind/listen failure, not only EADDRINUSE, counts as "not available".
    """
    validate_port(port)
    host = host or settings.probe_host
    try:
        with socket.socket(_family_for(host), socket.SOCK_STREAM) as sock:
            if os.name != "nt":
                # POSIX: lets TIME_WAIT leftovers bind, still refuses a live listener
                sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            sock.bind((host, port))
            sock.listen(1)
    except OSError as exc:
        if exc.errno in _ADDR_IN_USE_ERRNOS:
            logger.debug("Port %d on %s is in use", port, host)
        else:
            logger.debug("Probe of port %d on %s failed: %s", port, host, exc)
        return False
    return True
