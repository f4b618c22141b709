"""Daemon supervision and IPC for agent-browser.

The browser worker is a long-running per-session process. This package
keeps the CLI side of that arrangement:

- paths: where a session's pid file and socket live (and its TCP port on Windows)
- supervisor: start the worker if needed and wait until it is reachable
- transport: Unix socket / loopback TCP connection with read/write deadlines
- client: one JSON line out, one JSON line back, with transient retry
"""

from agentbrowser.daemon.client import DaemonClient, is_transient_error
from agentbrowser.daemon.paths import SessionPaths, get_socket_dir, resolve_session
from agentbrowser.daemon.protocol import (
    Response,
    gen_id,
    serialize_request,
    deserialize_response,
)
from agentbrowser.daemon.supervisor import DaemonOptions, DaemonResult, ensure_daemon

__all__ = [
    "DaemonClient",
    "DaemonOptions",
    "DaemonResult",
    "Response",
    "SessionPaths",
    "deserialize_response",
    "ensure_daemon",
    "gen_id",
    "get_socket_dir",
    "is_transient_error",
    "resolve_session",
    "serialize_request",
]
