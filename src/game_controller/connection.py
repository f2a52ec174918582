"""Wait for a freshly spawned engine to open its control port."""

from __future__ import annotations

import logging
import socket
import time

from src.game_controller.base import StateError, UnreachableError
from src.game_controller.launcher import ProcessHandle

logger = logging.getLogger(__name__)


def probe(endpoint: tuple[str, int], timeout_s: float) -> bool:
    """Return ``True`` if ``endpoint`` accepts a TCP connection."""
    try:
        with socket.create_connection(endpoint, timeout=timeout_s):
            return True
    except OSError:
        return False


class ConnectionSupervisor:
    """Bounded-retry TCP handshake against an engine's control port.

    Parameters
    ----------
    retry_delay_s : float
        Pause between a failed attempt and the next one.  ``0`` retries
        immediately.
    """

    def __init__(self, retry_delay_s: float = 0.0) -> None:
        self.retry_delay_s = retry_delay_s
        self.retry_count = 0

    def await_ready(
        self,
        endpoint: tuple[str, int],
        handle: ProcessHandle | None,
        max_retries: int,
        timeout_ms: int,
    ) -> None:
        """Block until ``endpoint`` accepts a connection.

        Makes at most ``max_retries + 1`` attempts.  The process is
        checked before every attempt; a dead process is never retried.

        Raises
        ------
        StateError
            If ``handle`` is missing or its process has exited.
        UnreachableError
            If every attempt failed.
        """
        host, port = endpoint
        timeout_s = timeout_ms / 1000.0
        try:
            while True:
                if handle is None or not handle.is_alive():
                    raise StateError(f"Game is not running (endpoint {host}:{port})")

                if probe(endpoint, timeout_s):
                    logger.info("Control port %s:%d is accepting connections", host, port)
                    return

                self.retry_count += 1
                if self.retry_count > max_retries:
                    raise UnreachableError(
                        f"Game is unreachable at {host}:{port} after {self.retry_count} attempts"
                    )

                logger.debug(
                    "Connection to %s:%d failed, retry %d/%d",
                    host,
                    port,
                    self.retry_count,
                    max_retries,
                )
                if self.retry_delay_s > 0:
                    time.sleep(self.retry_delay_s)
        finally:
            self.retry_count = 0
