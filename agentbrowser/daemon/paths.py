"""Session artifact locations.

All per-session files live in one base directory:

    <base>/<session>.pid    decimal pid of the worker (liveness marker)
    <base>/<session>.sock   Unix domain socket (POSIX only)
    <base>/<session>.port   port marker (Windows only, informational)

On Windows the worker listens on a loopback TCP port derived from the
session name, so the CLI never needs to read a file to know where to dial.
"""

import os
import sys
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from agentbrowser.errors import SessionValidationError

# sockaddr_un.sun_path is 104 bytes on macOS including the terminator.
MAX_SOCKET_PATH_BYTES = 103

# Dynamic/private port range used for the derived Windows endpoint.
PORT_RANGE_START = 49152
PORT_RANGE_SIZE = 16383


def uses_unix_sockets() -> bool:
    return sys.platform != "win32"


def get_socket_dir() -> Path:
    """
    Get the base directory for socket and pid files.

    Priority (first non-empty wins):
    AGENT_BROWSER_SOCKET_DIR > XDG_RUNTIME_DIR > ~/.agent-browser > tmpdir
    """
    override = os.environ.get("AGENT_BROWSER_SOCKET_DIR", "")
    if override:
        return Path(override)

    runtime_dir = os.environ.get("XDG_RUNTIME_DIR", "")
    if runtime_dir:
        return Path(runtime_dir) / "agent-browser"

    try:
        home = Path.home()
    except RuntimeError:
        home = None
    if home is not None and str(home):
        return home / ".agent-browser"

    return Path(tempfile.gettempdir()) / "agent-browser"


def port_for_session(session: str) -> int:
    """
    Derive the loopback TCP port for a session.

    Uses a 32-bit signed ``h * 31 + c`` string hash reduced into the
    dynamic port range, so every process computes the same port.
    """
    value = 0
    for ch in session:
        value = (value * 31 + ord(ch)) & 0xFFFFFFFF
    if value >= 0x80000000:
        value -= 0x100000000
    return PORT_RANGE_START + abs(value) % PORT_RANGE_SIZE


@dataclass(frozen=True)
class SessionPaths:
    """Resolved artifact locations for one session."""
    name: str
    base_dir: Path
    pid_path: Path
    socket_path: Path
    port_path: Path
    port: int
    lock_path: Path

    @property
    def endpoint(self) -> str:
        """Human-readable endpoint used in diagnostics."""
        if uses_unix_sockets():
            return str(self.socket_path)
        return f"127.0.0.1:{self.port}"


def resolve_session(session: str, base_dir: Optional[Path] = None) -> SessionPaths:
    """
    Compute every artifact path for a session.

    Args:
        session: Session name
        base_dir: Override for the base directory (defaults to get_socket_dir())
    """
    base = base_dir if base_dir is not None else get_socket_dir()
    return SessionPaths(
        name=session,
        base_dir=base,
        pid_path=base / f"{session}.pid",
        socket_path=base / f"{session}.sock",
        port_path=base / f"{session}.port",
        port=port_for_session(session),
        lock_path=base / f"{session}.lock",
    )


def validate_socket_path(paths: SessionPaths) -> None:
    """
    Reject sessions whose socket path exceeds the domain socket limit.

    Only applies where filesystem sockets are used.

    Raises:
        SessionValidationError: If the encoded path is longer than 103 bytes
    """
    if not uses_unix_sockets():
        return

    path_len = len(os.fsencode(paths.socket_path))
    if path_len > MAX_SOCKET_PATH_BYTES:
        raise SessionValidationError(
            f"Session name '{paths.name}' is too long. Socket path would be "
            f"{path_len} bytes (max {MAX_SOCKET_PATH_BYTES}). Use a shorter session "
            "name or set AGENT_BROWSER_SOCKET_DIR to a shorter path."
        )
