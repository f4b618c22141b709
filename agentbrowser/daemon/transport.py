"""Byte-stream transport to the worker.

A Connection wraps either a Unix domain socket (POSIX) or a TCP socket to
the session's derived loopback port (Windows). Both expose the same line
oriented read/write API with independent read and write deadlines.
"""

import socket
from typing import Optional

from agentbrowser.daemon.paths import SessionPaths, uses_unix_sockets

DEFAULT_WRITE_TIMEOUT = 5.0
DEFAULT_READ_TIMEOUT = 30.0
REACHABILITY_TIMEOUT = 0.25

# Upper bound for a single response line (64MB covers base64 screenshots).
MAX_LINE_BYTES = 64 * 1024 * 1024


class Connection:
    """
    Stream connection with independent read/write deadlines.

    Python sockets carry a single timeout, so the relevant deadline is
    applied right before each read or write.
    """

    def __init__(self, sock: socket.socket):
        self._sock = sock
        self._buffer = b""
        self.read_timeout: Optional[float] = DEFAULT_READ_TIMEOUT
        self.write_timeout: Optional[float] = DEFAULT_WRITE_TIMEOUT

    def set_read_timeout(self, timeout: Optional[float]) -> None:
        self.read_timeout = timeout

    def set_write_timeout(self, timeout: Optional[float]) -> None:
        self.write_timeout = timeout

    def write_line(self, data: bytes) -> None:
        self._sock.settimeout(self.write_timeout)
        self._sock.sendall(data)

    def read_line(self) -> bytes:
        """
        Read up to and including the next newline.

        Returns the bytes read. Data without a trailing newline means the
        peer closed the connection mid-line; empty bytes mean it closed
        before sending anything.
        """
        self._sock.settimeout(self.read_timeout)
        data = bytearray(self._buffer)
        self._buffer = b""
        newline = data.find(b"\n")

        while newline < 0:
            if len(data) > MAX_LINE_BYTES:
                raise OSError(f"Response line exceeds {MAX_LINE_BYTES} bytes")
            chunk = self._sock.recv(65536)
            if not chunk:
                return bytes(data)
            offset = chunk.find(b"\n")
            if offset >= 0:
                newline = len(data) + offset
            data += chunk

        self._buffer = bytes(data[newline + 1:])
        return bytes(data[:newline + 1])

    def close(self) -> None:
        try:
            self._sock.close()
        except OSError:
            pass

    def __enter__(self) -> "Connection":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


def connect(paths: SessionPaths, timeout: Optional[float] = DEFAULT_WRITE_TIMEOUT) -> Connection:
    """
    Open a connection to the session's worker.

    Raises:
        OSError: Any connect failure (FileNotFoundError, ConnectionRefusedError, ...)
    """
    if uses_unix_sockets():
        sock = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
        sock.settimeout(timeout)
        try:
            sock.connect(str(paths.socket_path))
        except BaseException:
            sock.close()
            raise
        return Connection(sock)

    sock = socket.create_connection(("127.0.0.1", paths.port), timeout=timeout)
    return Connection(sock)


def endpoint_reachable(paths: SessionPaths, timeout: float = REACHABILITY_TIMEOUT) -> bool:
    """Return True if a connection to the session endpoint succeeds."""
    try:
        conn = connect(paths, timeout=timeout)
    except OSError:
        return False
    conn.close()
    return True
