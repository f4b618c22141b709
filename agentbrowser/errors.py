"""Error taxonomy for the agent-browser CLI.

Every failure the front-end can report is one of these classes:

- ParseError: malformed CLI input. Never retried, never starts a worker.
- SessionValidationError: bad session name or socket path. Checked before
  any process I/O.
- ConfigError: unreadable config file or a mistyped setting.
- SupervisorError: preflight, spawn, or startup timeout failures.
- TransportError: socket level failures. TransientTransportError marks the
  subset the dispatcher is allowed to retry; RetryExhaustedError is raised
  once the retry budget is spent.
- ProtocolError: the worker answered, but not with a valid response.
- WorkerReportedError: the worker answered ``success: false``.
"""

from typing import Optional, Sequence


class AgentBrowserError(Exception):
    """Base class for all agent-browser errors."""

    kind = "error"


# ============================================================================
# Parse errors
# ============================================================================

class ParseError(AgentBrowserError):
    """Raised by the command translator for malformed input."""

    kind = "parse_error"


class UnknownCommand(ParseError):
    kind = "unknown_command"

    def __init__(self, verb: str):
        self.verb = verb
        super().__init__(f"Unknown command: {verb}")


class UnknownSubcommand(ParseError):
    kind = "unknown_subcommand"

    def __init__(self, verb: str, sub: str, valid: Sequence[str] = ()):
        self.verb = verb
        self.sub = sub
        self.valid = list(valid)
        message = f"Unknown subcommand '{sub}' for '{verb}'"
        if self.valid:
            message += f". Valid options: {', '.join(self.valid)}"
        super().__init__(message)


class MissingArguments(ParseError):
    kind = "missing_arguments"

    def __init__(self, verb: str, expected: str):
        self.verb = verb
        self.expected = expected
        super().__init__(f"Missing arguments for '{verb}'. Usage: agent-browser {expected}")


class InvalidValue(ParseError):
    kind = "invalid_value"

    def __init__(self, field: str, reason: str):
        self.field = field
        self.reason = reason
        super().__init__(f"Invalid value for {field}: {reason}")


class InvalidSessionName(ParseError):
    kind = "invalid_session_name"

    def __init__(self, name: str):
        self.name = name
        super().__init__(
            f"Invalid session name '{name}'. "
            "Use only letters, digits, hyphens and underscores."
        )


# ============================================================================
# Session, supervisor and transport errors
# ============================================================================

class SessionValidationError(AgentBrowserError):
    kind = "invalid_session"


class ConfigError(AgentBrowserError):
    """Unreadable config file or a setting with the wrong type."""

    kind = "config_error"


class SupervisorError(AgentBrowserError):
    kind = "daemon_error"


class TransportError(AgentBrowserError):
    """A socket level failure talking to the worker."""

    kind = "transport_error"

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.cause = cause


class TransientTransportError(TransportError):
    """A transport failure that is likely to clear up on retry."""


class RetryExhaustedError(TransportError):
    def __init__(self, last_error: TransportError, attempts: int):
        self.last_error = last_error
        self.attempts = attempts
        super().__init__(
            f"{last_error} (after {attempts} retries - daemon may be busy or unresponsive)",
            cause=last_error,
        )


class ProtocolError(AgentBrowserError):
    kind = "protocol_error"


class WorkerReportedError(AgentBrowserError):
    """The worker executed the request and reported a domain failure."""

    kind = "command_error"

    def __init__(self, message: str, action: Optional[str] = None):
        self.action = action
        super().__init__(message)
