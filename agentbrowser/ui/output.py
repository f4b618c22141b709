"""
UI output management with color-coded terminal output.

Renders worker responses for humans, or as raw JSON lines with --json.
"""

import json
import secrets
import sys
from dataclasses import dataclass
from typing import Any, Dict, Optional, TextIO

from agentbrowser.daemon.protocol import Response


TEXT_COLOR_MAPPING = {
    "blue": "36;1",
    "yellow": "33;1",
    "green": "32;1",
    "red": "31;1",
    "cyan": "96;1",
    "gray": "90",
}

SUCCESS_INDICATOR = "✓"
ERROR_INDICATOR = "✗"
WARNING_INDICATOR = "⚠"

_boundary_nonce: Optional[str] = None


def get_colored_text(text: str, color: str) -> str:
    """
    Get colored text.

    Args:
        text: The text to color
        color: The color to use

    Returns:
        Colored text string

    Raises:
        ValueError: If the specified color is not supported
    """
    if color not in TEXT_COLOR_MAPPING:
        raise ValueError(
            f"Unsupported color: {color}. Available colors: {', '.join(TEXT_COLOR_MAPPING.keys())}"
        )

    color_str = TEXT_COLOR_MAPPING[color]
    return f"\u001b[{color_str}m{text}\u001b[0m"


def boundary_nonce() -> str:
    """Per-process random nonce for page content boundary markers."""
    global _boundary_nonce
    if _boundary_nonce is None:
        _boundary_nonce = secrets.token_hex(16)
    return _boundary_nonce


def truncate_output(content: str, limit: Optional[int]) -> str:
    """Cut content to ``limit`` characters and say so."""
    if limit is None or len(content) <= limit:
        return content
    return (
        f"{content[:limit]}\n"
        f"[truncated: showing {limit} of {len(content)} chars. Use --max-output to adjust]"
    )


@dataclass
class OutputOptions:
    json: bool = False
    content_boundaries: bool = False
    max_output: Optional[int] = None


class UIManager:
    """Manages colored terminal output for agent-browser."""

    def __init__(self, stream: Optional[TextIO] = None, err_stream: Optional[TextIO] = None):
        self.stream = stream
        self.err_stream = err_stream

    def _out(self) -> TextIO:
        return self.stream or sys.stdout

    def _err(self) -> TextIO:
        return self.err_stream or sys.stderr

    def success(self, message: str) -> None:
        """Print success message in green."""
        self._print_colored(f"{SUCCESS_INDICATOR} {message}", "green")

    def error(self, message: str) -> None:
        """Print error message in red on stderr."""
        self._print_colored(f"{ERROR_INDICATOR} {message}", "red", file=self._err())

    def warning(self, message: str) -> None:
        """Print warning message in yellow on stderr."""
        self._print_colored(f"{WARNING_INDICATOR} {message}", "yellow", file=self._err())

    def dim(self, text: str) -> None:
        self._print_colored(text, "gray")

    def plain(self, text: str) -> None:
        print(text, file=self._out())

    def _print_colored(
        self,
        text: str,
        color: str,
        end: str = "\n",
        file: Optional[TextIO] = None
    ) -> None:
        """
        Print text with color highlighting.

        Colors are only emitted when the target stream is a terminal.
        """
        file = file or self._out()
        colored_text = text
        if file.isatty():
            try:
                colored_text = get_colored_text(text, color)
            except ValueError:
                colored_text = text

        print(colored_text, end=end, file=file)
        file.flush()

    # ------------------------------------------------------------------
    # Responses
    # ------------------------------------------------------------------

    def print_json(self, payload: Dict[str, Any]) -> None:
        print(json.dumps(payload, separators=(",", ":"), ensure_ascii=False), file=self._out())

    def print_error(self, message: str, opts: OutputOptions, kind: Optional[str] = None) -> None:
        """Single-line diagnostic: a JSON object in --json mode, red text otherwise."""
        message = message.replace("\n", " ")
        if opts.json:
            payload: Dict[str, Any] = {"success": False, "error": message}
            if kind:
                payload["type"] = kind
            self.print_json(payload)
        else:
            self.error(message)

    def print_page_content(self, content: str, origin: Optional[str], opts: OutputOptions) -> None:
        content = truncate_output(content, opts.max_output)
        if not opts.content_boundaries:
            self.plain(content)
            return
        nonce = boundary_nonce()
        self.plain(f"--- AGENT_BROWSER_PAGE_CONTENT nonce={nonce} origin={origin or 'unknown'} ---")
        self.plain(content)
        self.plain(f"--- END_AGENT_BROWSER_PAGE_CONTENT nonce={nonce} ---")

    def print_response(self, response: Response, action: Optional[str], opts: OutputOptions) -> None:
        """
        Print a worker response.

        JSON mode writes the response object on one line (plus a
        ``_boundary`` marker when content boundaries are on). Human mode
        picks a compact rendering from the shape of ``data``.
        """
        if opts.json:
            payload = response.to_dict()
            if opts.content_boundaries:
                origin = response.data.get("origin") if isinstance(response.data, dict) else None
                payload["_boundary"] = {"nonce": boundary_nonce(), "origin": origin or "unknown"}
            self.print_json(payload)
            return

        if not response.success:
            self.error(response.error or "Unknown error")
            return

        data = response.data
        if data is None:
            self.success("Done")
            return
        if not isinstance(data, dict):
            self.plain(data if isinstance(data, str) else json.dumps(data, indent=2))
            return

        origin = data.get("origin")

        if isinstance(data.get("url"), str) and action in ("navigate", "url", "tab_new"):
            if isinstance(data.get("title"), str):
                self.success(data["title"])
                self.dim(f"  {data['url']}")
            else:
                self.plain(data["url"])
            return

        if isinstance(data.get("snapshot"), str):
            self.print_page_content(data["snapshot"], origin, opts)
            return

        if isinstance(data.get("tabs"), list):
            for i, tab in enumerate(data["tabs"]):
                marker = "→" if tab.get("active") else " "
                self.plain(f"{marker} [{i}] {tab.get('title') or 'Untitled'} - {tab.get('url', '')}")
            return

        if isinstance(data.get("messages"), list):
            lines = [f"[{m.get('type', 'log')}] {m.get('text', '')}" for m in data["messages"]]
            self.print_page_content("\n".join(lines), origin, opts)
            return

        if isinstance(data.get("errors"), list):
            for err in data["errors"]:
                self.error(err.get("message", ""))
            return

        if isinstance(data.get("cookies"), list):
            for cookie in data["cookies"]:
                self.plain(f"{cookie.get('name', '')}={cookie.get('value', '')}")
            return

        for key in ("text", "html", "value", "result", "title", "url"):
            if key in data:
                value = data[key]
                text = value if isinstance(value, str) else json.dumps(value)
                self.print_page_content(text, origin, opts)
                return

        if isinstance(data.get("path"), str):
            self.success(f"Saved to {data['path']}")
            return

        self.plain(json.dumps(data, indent=2, ensure_ascii=False))
