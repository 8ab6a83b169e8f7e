"""Free port discovery.

Availability is checked with a transient bind that is released at once;
nothing is reserved. Another process may take a port between the check
and its use, so callers should bind it immediately.
"""

import socket

import structlog

from ..models.errors import ErrorDetail, NotFoundError

logger = structlog.get_logger(__name__)

MAX_PORT = 65535
WILDCARD_ADDRESS = "0.0.0.0"


def is_port_available(port: int, host: str = WILDCARD_ADDRESS) -> bool:
    """Whether a TCP listener could bind ``port`` on ``host`` right now."""
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    try:
        # Match what a server would do, so TIME_WAIT leftovers don't count
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        sock.bind((host, port))
        return True
    except OSError:
        return False
    finally:
        sock.close()


def _window(start: int, window_size: int) -> range:
    if not 1 <= start <= MAX_PORT:
        raise ValueError(f"start port must be within 1..{MAX_PORT}, got {start}")
    if window_size < 0:
        raise ValueError(f"window size must not be negative, got {window_size}")
    return range(start, min(start + window_size, MAX_PORT + 1))


def _exhausted(start: int, window_size: int, count: int = 1) -> NotFoundError:
    logger.warning(
        "No available ports in window",
        start=start,
        window=window_size,
        count=count,
    )
    return NotFoundError(
        "Ran out of ports to search; none is available",
        details=[
            ErrorDetail(field="start", message=str(start)),
            ErrorDetail(field="window", message=str(window_size)),
            ErrorDetail(field="count", message=str(count)),
        ],
    )


def find_available_port(start: int, window_size: int) -> int:
    """First available port in ``[start, start + window_size)``.

    Raises:
        NotFoundError: If every port in the window is taken
    """
    for port in _window(start, window_size):
        if is_port_available(port):
            logger.debug("Found available port", port=port)
            return port
    raise _exhausted(start, window_size)


def find_available_ports(start: int, window_size: int, count: int) -> int:
    """First port ``p`` in the window such that ``[p, p + count)`` are all free.

    Only the first port of the range has to lie inside the window.

    Raises:
        NotFoundError: If no candidate start in the window works
    """
    if count < 1:
        raise ValueError(f"count must be at least 1, got {count}")

    for candidate in _window(start, window_size):
        if candidate + count - 1 > MAX_PORT:
            break
        if all(is_port_available(candidate + i) for i in range(count)):
            logger.debug("Found available port range", start=candidate, count=count)
            return candidate
    raise _exhausted(start, window_size, count)
