"""
Tests for session artifact resolution.
"""

import os
import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch

from agentbrowser.daemon.paths import (
    MAX_SOCKET_PATH_BYTES,
    PORT_RANGE_SIZE,
    PORT_RANGE_START,
    get_socket_dir,
    port_for_session,
    resolve_session,
    validate_socket_path,
)
from agentbrowser.errors import SessionValidationError


class TestSocketDir(unittest.TestCase):
    """Base directory precedence."""

    def test_explicit_override_wins(self):
        env = {"AGENT_BROWSER_SOCKET_DIR": "/custom/sockets", "XDG_RUNTIME_DIR": "/run/user/1000"}
        with patch.dict(os.environ, env, clear=True):
            self.assertEqual(get_socket_dir(), Path("/custom/sockets"))

    def test_empty_override_is_ignored(self):
        env = {"AGENT_BROWSER_SOCKET_DIR": "", "XDG_RUNTIME_DIR": "/run/user/1000"}
        with patch.dict(os.environ, env, clear=True):
            self.assertEqual(get_socket_dir(), Path("/run/user/1000/agent-browser"))

    def test_home_fallback(self):
        with patch.dict(os.environ, {"XDG_RUNTIME_DIR": ""}, clear=True), \
                patch("agentbrowser.daemon.paths.Path.home", return_value=Path("/home/alex")):
            self.assertEqual(get_socket_dir(), Path("/home/alex/.agent-browser"))

    def test_tempdir_fallback(self):
        with patch.dict(os.environ, {}, clear=True), \
                patch("agentbrowser.daemon.paths.Path.home", side_effect=RuntimeError("no home")):
            self.assertEqual(get_socket_dir(), Path(tempfile.gettempdir()) / "agent-browser")


class TestResolveSession(unittest.TestCase):

    def test_artifact_names(self):
        paths = resolve_session("work", base_dir=Path("/tmp/ab"))
        self.assertEqual(paths.pid_path, Path("/tmp/ab/work.pid"))
        self.assertEqual(paths.socket_path, Path("/tmp/ab/work.sock"))
        self.assertEqual(paths.port_path, Path("/tmp/ab/work.port"))
        self.assertEqual(paths.port, port_for_session("work"))

    def test_port_is_stable_and_in_range(self):
        for name in ("default", "work", "a" * 200, "x-y_z"):
            port = port_for_session(name)
            self.assertEqual(port, port_for_session(name))
            self.assertGreaterEqual(port, PORT_RANGE_START)
            self.assertLess(port, PORT_RANGE_START + PORT_RANGE_SIZE)

    def test_port_known_value(self):
        # "default".hashCode() == 1544803905
        self.assertEqual(port_for_session("default"), PORT_RANGE_START + 1544803905 % PORT_RANGE_SIZE)


@unittest.skipIf(os.name == "nt", "socket path limit applies to Unix domain sockets")
class TestSocketPathLimit(unittest.TestCase):

    def setUp(self):
        self.base = Path("/tmp/ab")
        # base + "/" + name + ".sock"
        self.overhead = len(os.fsencode(self.base)) + 1 + len(".sock")

    def test_at_limit_is_accepted(self):
        name = "s" * (MAX_SOCKET_PATH_BYTES - self.overhead)
        validate_socket_path(resolve_session(name, base_dir=self.base))

    def test_every_length_over_limit_is_rejected(self):
        for extra in range(1, 40):
            name = "s" * (MAX_SOCKET_PATH_BYTES - self.overhead + extra)
            with self.assertRaises(SessionValidationError) as ctx:
                validate_socket_path(resolve_session(name, base_dir=self.base))
            message = str(ctx.exception)
            self.assertIn(str(MAX_SOCKET_PATH_BYTES + extra), message)
            self.assertIn(str(MAX_SOCKET_PATH_BYTES), message)


if __name__ == "__main__":
    unittest.main()
