"""
Minimal in-process worker used by transport and client tests.

Listens on a Unix domain socket (or a loopback TCP port), records every
request line it receives and answers with whatever the handler returns
(nothing means close the connection without replying).
"""

import socket
import threading
from typing import Callable, List, Optional


class StubWorker(threading.Thread):

    def __init__(
        self,
        address,
        handler: Callable[[bytes], Optional[bytes]],
        family: int = socket.AF_UNIX,
        send_timeout: float = 10.0,
    ):
        super().__init__(daemon=True)
        self.handler = handler
        self.send_timeout = send_timeout
        self.received: List[bytes] = []
        self._stopping = threading.Event()
        self.server = socket.socket(family, socket.SOCK_STREAM)
        self.server.bind(address)
        self.server.listen(8)
        self.server.settimeout(0.05)
        # Bound address, e.g. the port picked for ("127.0.0.1", 0)
        self.address = self.server.getsockname()

    def run(self) -> None:
        while not self._stopping.is_set():
            try:
                conn, _ = self.server.accept()
            except socket.timeout:
                continue
            except OSError:
                return
            with conn:
                conn.settimeout(self.send_timeout)
                data = b""
                while not data.endswith(b"\n"):
                    chunk = conn.recv(65536)
                    if not chunk:
                        break
                    data += chunk
                if not data:
                    # Reachability check, nothing to answer
                    continue
                self.received.append(data)
                reply = self.handler(data)
                if reply:
                    conn.sendall(reply)

    def stop(self) -> None:
        self._stopping.set()
        self.join(timeout=2)
        self.server.close()
