"""Daemon supervisor: make sure a worker for a session is running.

State machine:

    check ──► already running (re-verified after a short delay)
      │
      └─► clean stale files ─► preflight ─► spawn ─► poll ─► ready | failed

The worker itself (``daemon.js``) is an external program; this module only
finds it, launches it fully detached, and waits until its endpoint accepts
connections.
"""

import logging
import os
import subprocess
import sys
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, List, Mapping, Optional, Sequence, Tuple

from agentbrowser.daemon.paths import (
    SessionPaths,
    get_socket_dir,
    resolve_session,
    uses_unix_sockets,
    validate_socket_path,
)
from agentbrowser.daemon.transport import endpoint_reachable
from agentbrowser.errors import SupervisorError

logger = logging.getLogger(__name__)

# The worker waits 100ms before closing its listener on shutdown, so a
# positive check is re-checked after a slightly longer delay.
RECHECK_DELAY = 0.15
POLL_ATTEMPTS = 50
POLL_INTERVAL = 0.1
LOCK_TIMEOUT = 10.0

DAEMON_SCRIPT = "daemon.js"
HOME_ENV = "AGENT_BROWSER_HOME"

# Windows process creation flags
CREATE_NEW_PROCESS_GROUP = 0x00000200
DETACHED_PROCESS = 0x00000008


@dataclass(frozen=True)
class DaemonOptions:
    """
    Launch options captured at spawn time.

    Forwarded to the worker as environment variables. A running worker
    never re-reads them; a second invocation with different options is a
    no-op on the already running worker.
    """
    headed: bool = False
    executable_path: Optional[str] = None
    extensions: Tuple[str, ...] = ()
    args: Optional[str] = None
    user_agent: Optional[str] = None
    proxy: Optional[str] = None
    proxy_bypass: Optional[str] = None
    ignore_https_errors: bool = False
    allow_file_access: bool = False
    profile: Optional[str] = None
    state: Optional[str] = None
    provider: Optional[str] = None
    device: Optional[str] = None
    session_name: Optional[str] = None
    download_path: Optional[str] = None
    allowed_domains: Optional[Tuple[str, ...]] = None
    action_policy: Optional[str] = None
    confirm_actions: Optional[str] = None


@dataclass(frozen=True)
class DaemonResult:
    """Outcome of ensure_daemon."""
    # True if an existing worker was reused, False if a new one was started
    already_running: bool
    pid: Optional[int] = None


def build_spawn_env(
    session: str,
    options: DaemonOptions,
    base_env: Optional[Mapping[str, str]] = None,
) -> Dict[str, str]:
    """
    Build the worker environment: parent env plus one variable per option.

    Variables are only set for options that deviate from their default.
    ``AGENT_BROWSER_DAEMON`` and ``AGENT_BROWSER_SESSION`` are always set.
    """
    env = dict(os.environ if base_env is None else base_env)
    env["AGENT_BROWSER_DAEMON"] = "1"
    env["AGENT_BROWSER_SESSION"] = session

    flags = {
        "AGENT_BROWSER_HEADED": options.headed,
        "AGENT_BROWSER_IGNORE_HTTPS_ERRORS": options.ignore_https_errors,
        "AGENT_BROWSER_ALLOW_FILE_ACCESS": options.allow_file_access,
    }
    for name, enabled in flags.items():
        if enabled:
            env[name] = "1"

    values = {
        "AGENT_BROWSER_EXECUTABLE_PATH": options.executable_path,
        "AGENT_BROWSER_ARGS": options.args,
        "AGENT_BROWSER_USER_AGENT": options.user_agent,
        "AGENT_BROWSER_PROXY": options.proxy,
        "AGENT_BROWSER_PROXY_BYPASS": options.proxy_bypass,
        "AGENT_BROWSER_PROFILE": options.profile,
        "AGENT_BROWSER_STATE": options.state,
        "AGENT_BROWSER_PROVIDER": options.provider,
        "AGENT_BROWSER_IOS_DEVICE": options.device,
        "AGENT_BROWSER_SESSION_NAME": options.session_name,
        "AGENT_BROWSER_DOWNLOAD_PATH": options.download_path,
        "AGENT_BROWSER_ACTION_POLICY": options.action_policy,
        "AGENT_BROWSER_CONFIRM_ACTIONS": options.confirm_actions,
    }
    for name, value in values.items():
        if value is not None:
            env[name] = value

    if options.extensions:
        env["AGENT_BROWSER_EXTENSIONS"] = ",".join(options.extensions)
    if options.allowed_domains is not None:
        env["AGENT_BROWSER_ALLOWED_DOMAINS"] = ",".join(options.allowed_domains)

    return env


# ============================================================================
# Spawning
# ============================================================================

def find_daemon_script(
    env: Optional[Mapping[str, str]] = None,
    program_path: Optional[Path] = None,
) -> Path:
    """
    Locate the worker script.

    Search order: $AGENT_BROWSER_HOME/dist, $AGENT_BROWSER_HOME, the directory
    of the running program, its ../dist, and ./dist. First existing path wins.

    Raises:
        SupervisorError: If no candidate exists
    """
    env = os.environ if env is None else env
    if program_path is None:
        program_path = Path(sys.argv[0] or ".").resolve()
    program_dir = program_path.parent

    candidates: List[Path] = []
    home = env.get(HOME_ENV, "")
    if home:
        candidates.append(Path(home) / "dist" / DAEMON_SCRIPT)
        candidates.append(Path(home) / DAEMON_SCRIPT)
    candidates.extend([
        program_dir / DAEMON_SCRIPT,
        program_dir.parent / "dist" / DAEMON_SCRIPT,
        Path("dist") / DAEMON_SCRIPT,
    ])

    for candidate in candidates:
        if candidate.exists():
            return candidate

    raise SupervisorError(
        f"Daemon not found. Set {HOME_ENV} environment variable or run from project directory."
    )


def _spawn_posix(command: Sequence[str], env: Mapping[str, str]) -> subprocess.Popen:
    # New session: no controlling terminal, immune to the parent's signals
    return subprocess.Popen(
        list(command),
        env=dict(env),
        stdin=subprocess.DEVNULL,
        stdout=subprocess.DEVNULL,
        stderr=subprocess.DEVNULL,
        start_new_session=True,
    )


def _spawn_windows(command: Sequence[str], env: Mapping[str, str]) -> subprocess.Popen:
    return subprocess.Popen(
        list(command),
        env=dict(env),
        stdin=subprocess.DEVNULL,
        stdout=subprocess.DEVNULL,
        stderr=subprocess.DEVNULL,
        creationflags=CREATE_NEW_PROCESS_GROUP | DETACHED_PROCESS,
    )


def spawn_detached_worker(command: Sequence[str], env: Mapping[str, str]) -> subprocess.Popen:
    """
    Launch the worker as a fully detached background process.

    Raises:
        SupervisorError: If the process cannot be started
    """
    strategy = _spawn_posix if uses_unix_sockets() else _spawn_windows
    try:
        return strategy(command, env)
    except OSError as e:
        raise SupervisorError(f"Failed to start daemon: {e}") from e


# ============================================================================
# Liveness checks and cleanup
# ============================================================================

def read_pid(paths: SessionPaths) -> Optional[int]:
    try:
        return int(paths.pid_path.read_text().strip())
    except (OSError, ValueError):
        return None


def pid_alive(pid: int) -> bool:
    """Check whether a process exists (POSIX signal 0)."""
    if not uses_unix_sockets():
        return True
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        # Exists, owned by someone else
        return True
    except OSError:
        return False
    return True


def is_daemon_running(paths: SessionPaths) -> bool:
    """Liveness marker exists and names a live process."""
    if not paths.pid_path.exists():
        return False
    pid = read_pid(paths)
    if pid is None:
        return False
    return pid_alive(pid)


def active_sessions(base_dir: Optional[Path] = None) -> List[str]:
    """
    Names of sessions whose pid file names a live process.

    Args:
        base_dir: Directory to scan (defaults to get_socket_dir())
    """
    base = base_dir if base_dir is not None else get_socket_dir()
    if not base.is_dir():
        return []

    sessions = []
    for pid_file in sorted(base.glob("*.pid")):
        if is_daemon_running(resolve_session(pid_file.stem, base_dir=base)):
            sessions.append(pid_file.stem)
    return sessions


def daemon_ready(paths: SessionPaths) -> bool:
    """The endpoint accepts connections."""
    return endpoint_reachable(paths)


def cleanup_stale_files(paths: SessionPaths) -> None:
    """Remove pid, socket and port files; missing files are ignored."""
    for path in (paths.pid_path, paths.socket_path, paths.port_path):
        try:
            path.unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.debug(f"Could not remove {path}: {e}")


def preflight(paths: SessionPaths) -> None:
    """
    Checks run before spawning, in order:
    1. base directory exists or can be created
    2. socket path fits the domain socket limit
    3. base directory is writable

    Raises:
        SupervisorError: Directory cannot be created or written
        SessionValidationError: Socket path too long
    """
    try:
        paths.base_dir.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise SupervisorError(f"Failed to create socket directory: {e}") from e

    validate_socket_path(paths)

    test_file = paths.base_dir / ".write_test"
    try:
        test_file.write_bytes(b"")
    except OSError as e:
        raise SupervisorError(
            f"Socket directory '{paths.base_dir}' is not writable: {e}"
        ) from e
    try:
        test_file.unlink()
    except OSError:
        pass


class _StartupLock:
    """
    Advisory lock around check → spawn → poll (POSIX only).

    Serializes concurrent CLI invocations for the same session. The lock
    file is removed on release; a waiter that wins the lock on a file that
    was unlinked meanwhile reopens the path and tries again, so two
    processes never hold locks on different inodes. On platforms without
    fcntl this is a no-op.
    """

    def __init__(self, path: Path, timeout: float, sleep: Callable[[float], None]):
        self.path = path
        self.timeout = timeout
        self._sleep = sleep
        self._fd: Optional[int] = None

    def _holds_current_file(self) -> bool:
        try:
            return os.stat(self.path).st_ino == os.fstat(self._fd).st_ino
        except FileNotFoundError:
            return False

    def __enter__(self) -> "_StartupLock":
        try:
            import fcntl
        except ImportError:
            return self

        deadline = time.monotonic() + self.timeout
        while True:
            try:
                self._fd = os.open(str(self.path), os.O_RDWR | os.O_CREAT, 0o600)
            except OSError as e:
                logger.debug(f"Startup lock unavailable ({e}), continuing without it")
                return self

            try:
                fcntl.flock(self._fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
            except BlockingIOError:
                os.close(self._fd)
                self._fd = None
                if time.monotonic() >= deadline:
                    raise SupervisorError(
                        f"Timed out waiting for another process to start the daemon (lock: {self.path})"
                    )
                self._sleep(POLL_INTERVAL)
                continue

            if self._holds_current_file():
                return self
            # Previous holder removed the file while we waited
            os.close(self._fd)
            self._fd = None

    def __exit__(self, exc_type, exc, tb) -> None:
        if self._fd is None:
            return
        import fcntl
        try:
            self.path.unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.debug(f"Could not remove {self.path}: {e}")
        fcntl.flock(self._fd, fcntl.LOCK_UN)
        os.close(self._fd)
        self._fd = None


# ============================================================================
# Supervisor
# ============================================================================

@dataclass
class DaemonSupervisor:
    """
    Ensures a worker is running for a session.

    Collaborators are injectable so the state machine can be exercised
    without real processes.
    """
    paths: SessionPaths
    node_path: str = "node"
    spawn: Callable[[Sequence[str], Mapping[str, str]], subprocess.Popen] = spawn_detached_worker
    sleep: Callable[[float], None] = time.sleep
    is_running: Callable[[SessionPaths], bool] = is_daemon_running
    is_ready: Callable[[SessionPaths], bool] = daemon_ready
    locate_script: Callable[[], Path] = find_daemon_script
    poll_attempts: int = POLL_ATTEMPTS
    poll_interval: float = POLL_INTERVAL
    lock_timeout: float = LOCK_TIMEOUT

    def worker_alive(self) -> bool:
        """
        Is a worker already running and reachable?

        A positive result is re-verified after RECHECK_DELAY so a worker in
        the middle of shutting down is not reported as running.
        """
        if not (self.is_running(self.paths) and self.is_ready(self.paths)):
            return False
        self.sleep(RECHECK_DELAY)
        if self.is_ready(self.paths):
            return True
        logger.debug(f"Daemon for session '{self.paths.name}' went away during recheck")
        return False

    def ensure(self, options: DaemonOptions) -> DaemonResult:
        """
        Return once a worker for the session is reachable.

        Raises:
            SessionValidationError: Socket path too long
            SupervisorError: Preflight, spawn or startup failure
        """
        # Before any file is created for the session
        validate_socket_path(self.paths)

        if self.worker_alive():
            return DaemonResult(already_running=True, pid=read_pid(self.paths))

        try:
            self.paths.base_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            # preflight reports the failure
            logger.debug(f"Could not create {self.paths.base_dir}: {e}")

        with _StartupLock(self.paths.lock_path, self.lock_timeout, self.sleep):
            # Another invocation may have finished starting it while we waited
            if self.worker_alive():
                return DaemonResult(already_running=True, pid=read_pid(self.paths))

            cleanup_stale_files(self.paths)
            preflight(self.paths)

            script = self.locate_script()
            env = build_spawn_env(self.paths.name, options)
            command = [self.node_path, str(script)]
            logger.debug(f"Starting daemon for session '{self.paths.name}': {' '.join(command)}")
            process = self.spawn(command, env)

            for _ in range(self.poll_attempts):
                if self.is_ready(self.paths):
                    logger.debug(f"Daemon ready on {self.paths.endpoint}")
                    return DaemonResult(already_running=False, pid=getattr(process, "pid", None))
                self.sleep(self.poll_interval)

        raise SupervisorError(f"Daemon failed to start (socket: {self.paths.endpoint})")


def ensure_daemon(
    paths: SessionPaths,
    options: Optional[DaemonOptions] = None,
    node_path: str = "node",
) -> DaemonResult:
    """Ensure a worker is running for the session (see DaemonSupervisor)."""
    supervisor = DaemonSupervisor(paths=paths, node_path=node_path)
    return supervisor.ensure(options or DaemonOptions())
