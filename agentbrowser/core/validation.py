"""Input validation shared by the CLI and the command translator."""

import re

from agentbrowser.errors import InvalidSessionName

SESSION_NAME_RE = re.compile(r"^[a-zA-Z0-9_-]+$")


def is_valid_session_name(name: str) -> bool:
    return bool(SESSION_NAME_RE.fullmatch(name))


def validate_session_name(name: str) -> str:
    """
    Return the name unchanged, or raise InvalidSessionName.

    Session names end up in file names and environment variables, so only
    letters, digits, hyphens and underscores are accepted.
    """
    if not is_valid_session_name(name):
        raise InvalidSessionName(name)
    return name
