"""
Interactive approval for actions gated by the worker's action policy.

When the worker answers with ``confirmation_required``, the user is asked
on the terminal. Anything other than an explicit yes is a denial, and a
non-interactive stdin always denies.
"""

import sys
from typing import Any, Dict, Optional, TextIO

YES_RESPONSES = {"yes", "y"}


def pending_confirmation(data: Any) -> Optional[Dict[str, str]]:
    """
    Extract a pending confirmation from response data.

    Returns:
        {"id", "category", "description"} or None when nothing is pending
    """
    if not isinstance(data, dict) or data.get("confirmation_required") is not True:
        return None
    return {
        "id": str(data.get("confirmation_id") or ""),
        "category": str(data.get("category") or ""),
        "description": str(data.get("description") or "unknown action"),
    }


def prompt_user_confirmation(
    pending: Dict[str, str],
    stdin: Optional[TextIO] = None,
    stderr: Optional[TextIO] = None,
) -> bool:
    """
    Ask the user to allow a pending action.

    Args:
        pending: Result of pending_confirmation()
        stdin: Input stream (defaults to sys.stdin)
        stderr: Prompt stream (defaults to sys.stderr)

    Returns:
        True only for an explicit yes on an interactive terminal
    """
    stdin = stdin or sys.stdin
    stderr = stderr or sys.stderr

    print("[agent-browser] Action requires confirmation:", file=stderr)
    print(f"  {pending['category']}: {pending['description']}", file=stderr)
    print("  Allow? [y/N]: ", end="", file=stderr)
    stderr.flush()

    if not stdin.isatty():
        print("", file=stderr)
        return False

    try:
        response = stdin.readline()
    except (EOFError, KeyboardInterrupt):
        print("\n\nAborted by user.", file=stderr)
        return False

    return response.strip().lower() in YES_RESPONSES
