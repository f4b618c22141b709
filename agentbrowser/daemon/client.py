"""Lightweight client for daemon communication.

Sends exactly one request line per connection and reads exactly one
response line back. Transient transport failures (daemon still starting,
busy, or restarting) are retried with linear backoff; everything else is
surfaced on the first attempt.

Usage:
    client = DaemonClient(resolve_session("default"))
    response = client.send({"id": gen_id(), "action": "url"})
"""

import errno
import json
import logging
import socket
import time
from typing import Any, Callable, Dict, Optional

from agentbrowser.daemon.paths import SessionPaths
from agentbrowser.daemon.protocol import Response, deserialize_response, serialize_request
from agentbrowser.daemon.transport import (
    DEFAULT_READ_TIMEOUT,
    DEFAULT_WRITE_TIMEOUT,
    connect,
)
from agentbrowser.errors import (
    ProtocolError,
    RetryExhaustedError,
    TransientTransportError,
    TransportError,
)

logger = logging.getLogger(__name__)

MAX_RETRIES = 5
RETRY_DELAY = 0.2  # seconds, multiplied by the attempt index

# errno values treated as transient, POSIX names plus the raw numbers used
# on macOS (35, 54, 61), Linux (11, 104, 111) and Winsock (100xx).
TRANSIENT_ERRNOS = frozenset(
    code for code in (
        errno.EAGAIN,
        errno.EWOULDBLOCK,
        errno.ECONNRESET,
        errno.EPIPE,
        errno.ENOENT,
        errno.ECONNREFUSED,
        11, 35,             # EAGAIN (Linux, macOS)
        54, 104,            # ECONNRESET (macOS, Linux)
        61, 111,            # ECONNREFUSED (macOS, Linux)
        2, 32,              # ENOENT, EPIPE
        10035,              # WSAEWOULDBLOCK
        10054,              # WSAECONNRESET
        10061,              # WSAECONNREFUSED
    )
)

# Message signatures for errors that arrive already stringified.
TRANSIENT_SIGNATURES = (
    "os error 35",
    "os error 11",
    "WouldBlock",
    "Resource temporarily unavailable",
    "EOF",
    "line 1 column 1 (char 0)",
    "line 1 column 0",
    "Connection reset",
    "Broken pipe",
    "os error 54",
    "os error 104",
    "os error 2)",
    "No such file or directory",
    "os error 61",
    "os error 111",
    "Connection refused",
)


def is_transient_error(error: BaseException) -> bool:
    """
    Check if an error is transient and worth retrying.

    Transient errors include:
    - EAGAIN/EWOULDBLOCK, and read timeouts which surface the same way
    - EOF before a complete response line (empty, or cut off mid-line)
    - Connection reset / broken pipe (daemon crashed or restarting)
    - Connection refused / socket not found (daemon still starting)
    """
    if isinstance(error, TransientTransportError):
        return True
    if isinstance(error, ProtocolError):
        return False
    if isinstance(error, TransportError) and error.cause is not None:
        return is_transient_error(error.cause)
    if isinstance(error, (BlockingIOError, ConnectionResetError, BrokenPipeError,
                          ConnectionRefusedError, FileNotFoundError, socket.timeout)):
        return True
    if isinstance(error, OSError) and error.errno in TRANSIENT_ERRNOS:
        return True
    if isinstance(error, OSError) and getattr(error, "winerror", None) in TRANSIENT_ERRNOS:
        return True
    return is_transient_message(str(error))


def is_transient_message(message: str) -> bool:
    """Match a stringified error against the transient signature set."""
    return any(signature in message for signature in TRANSIENT_SIGNATURES)


class DaemonClient:
    """
    Client for one session's worker.

    Designed for minimal overhead:
    - Uses stdlib socket (no external deps)
    - One JSON line each way
    - Bounded retry for transient failures only
    """

    def __init__(
        self,
        paths: SessionPaths,
        read_timeout: float = DEFAULT_READ_TIMEOUT,
        write_timeout: float = DEFAULT_WRITE_TIMEOUT,
        max_retries: int = MAX_RETRIES,
        retry_delay: float = RETRY_DELAY,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """
        Initialize client.

        Args:
            paths: Resolved session paths
            read_timeout: Deadline for reading the response line
            write_timeout: Deadline for writing the request line
            max_retries: Total attempts before giving up
            retry_delay: Base delay for linear backoff
            sleep: Sleep function (injectable for tests)
        """
        self.paths = paths
        self.read_timeout = read_timeout
        self.write_timeout = write_timeout
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self._sleep = sleep

    def send(self, request: Dict[str, Any]) -> Response:
        """
        Send one request and return the worker's response.

        Retries transient failures up to ``max_retries`` attempts, sleeping
        ``attempt * retry_delay`` before each retry.

        Raises:
            RetryExhaustedError: All attempts failed transiently
            TransportError: Non-transient socket failure
            ProtocolError: Malformed (non-empty) response
        """
        last_error: Optional[TransportError] = None

        for attempt in range(self.max_retries):
            if attempt > 0:
                delay = self.retry_delay * attempt
                logger.debug(f"Retrying {request.get('action')} in {delay:.1f}s (attempt {attempt + 1})")
                self._sleep(delay)

            try:
                return self._send_once(request)
            except TransportError as e:
                if not is_transient_error(e):
                    raise
                logger.debug(f"Transient error talking to daemon: {e}")
                last_error = e

        raise RetryExhaustedError(last_error, self.max_retries)

    def _send_once(self, request: Dict[str, Any]) -> Response:
        payload = serialize_request(request)

        try:
            conn = connect(self.paths, timeout=self.write_timeout)
        except OSError as e:
            raise self._wrap("Failed to connect", e) from e

        with conn:
            conn.set_write_timeout(self.write_timeout)
            conn.set_read_timeout(self.read_timeout)

            try:
                conn.write_line(payload)
            except OSError as e:
                raise self._wrap("Failed to send", e) from e

            try:
                line = conn.read_line()
            except OSError as e:
                raise self._wrap("Failed to read", e) from e

        if not line.strip():
            raise TransientTransportError("Invalid response: EOF while reading response")
        if not line.endswith(b"\n"):
            raise TransientTransportError(
                f"Invalid response: EOF while parsing response ({len(line)} bytes, no line terminator)"
            )

        try:
            return deserialize_response(line)
        except json.JSONDecodeError as e:
            raise ProtocolError(f"Invalid response: {e}") from e
        except UnicodeDecodeError as e:
            raise ProtocolError(f"Invalid response: {e}") from e

    @staticmethod
    def _wrap(context: str, error: OSError) -> TransportError:
        message = f"{context}: {error}"
        if is_transient_error(error):
            return TransientTransportError(message, cause=error)
        return TransportError(message, cause=error)
