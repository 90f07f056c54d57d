"""TCP port helpers for dev and preview servers."""

import logging
import socket

from kiln.engine.base import EngineError

logger = logging.getLogger(__name__)


def is_port_available(host: str, port: int) -> bool:
    """Return True if ``host:port`` can be bound right now."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        try:
            sock.bind((host, port))
        except OSError:
            return False
    return True


def find_available_port(host: str, start: int, attempts: int = 100) -> int:
    """
    Return the first bindable port at or after ``start``.

    Raises:
        EngineError: If none of ``attempts`` consecutive ports is free
    """
    for port in range(start, min(start + attempts, 65536)):
        if is_port_available(host, port):
            return port
    raise EngineError(f"No free port in {start}..{start + attempts - 1} on {host}")


def choose_port(host: str, port: int, strict: bool = False) -> int:
    """
    Return ``port`` if free, otherwise the next free one.

    Raises:
        EngineError: If ``strict`` and the port is taken
    """
    bind_host = "0.0.0.0" if host in ("localhost", "") else host
    if is_port_available(bind_host, port):
        return port
    if strict:
        raise EngineError(f"Port {port} is already in use")

    chosen = find_available_port(bind_host, port + 1)
    logger.warning("Port %d is in use, using %d instead", port, chosen)
    return chosen
