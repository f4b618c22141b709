"""JSON line protocol for daemon IPC.

One request and one response are exchanged per connection, each encoded as
a single line of UTF-8 JSON terminated by ``\\n``.

Request format:
    {
        "id": str,          # Short process-local correlation token
        "action": str,      # Selects the worker-side handler
        ...                 # Action-specific fields
    }

Response format:
    {
        "success": bool,
        "data": Any | None,     # Action result
        "error": str | None,    # Failure description if success is false
    }
"""

import json
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional

from agentbrowser.errors import ProtocolError, WorkerReportedError


def gen_id() -> str:
    """Generate a short correlation id (``r`` + microseconds mod 1e6)."""
    return f"r{time.time_ns() // 1000 % 1000000}"


@dataclass
class Response:
    """Parsed worker response."""
    success: bool
    data: Any = None
    error: Optional[str] = None

    def raise_for_error(self, action: Optional[str] = None) -> None:
        """Raise WorkerReportedError when the worker reported a failure."""
        if not self.success:
            fallback = f"{action} failed" if action else "Unknown error"
            raise WorkerReportedError(self.error or fallback, action=action)

    def to_dict(self) -> Dict[str, Any]:
        return {"success": self.success, "data": self.data, "error": self.error}


def serialize_request(request: Dict[str, Any]) -> bytes:
    """
    Serialize a request to one newline-terminated JSON line.

    Args:
        request: Flat request mapping; must carry ``id`` and ``action``

    Returns:
        UTF-8 encoded JSON bytes ending in ``\\n``

    Raises:
        ProtocolError: If ``id`` or ``action`` is missing
    """
    if "id" not in request or "action" not in request:
        raise ProtocolError("Request must contain 'id' and 'action'")
    return (json.dumps(request, separators=(",", ":")) + "\n").encode("utf-8")


def deserialize_request(data: bytes) -> Dict[str, Any]:
    """
    Deserialize a request line.

    Raises:
        json.JSONDecodeError: If data is not valid JSON
    """
    return json.loads(data.decode("utf-8"))


def serialize_response(
    success: bool,
    data: Any = None,
    error: Optional[str] = None,
) -> bytes:
    """Serialize a response to one newline-terminated JSON line."""
    response = {"success": success, "data": data, "error": error}
    return (json.dumps(response) + "\n").encode("utf-8")


def deserialize_response(data: bytes) -> Response:
    """
    Deserialize a response line.

    Args:
        data: UTF-8 encoded JSON bytes

    Returns:
        Response value

    Raises:
        json.JSONDecodeError: If data is not valid JSON (including empty input)
        ProtocolError: If the JSON is well formed but not a response object
    """
    payload = json.loads(data.decode("utf-8"))
    if not isinstance(payload, dict) or not isinstance(payload.get("success"), bool):
        raise ProtocolError(f"Invalid response: expected an object with a boolean 'success', got {payload!r}")
    error = payload.get("error")
    return Response(
        success=payload["success"],
        data=payload.get("data"),
        error=None if error is None else str(error),
    )
