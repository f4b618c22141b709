"""agent-browser: command-line front-end for a per-session browser automation worker."""

__version__ = "0.1.0"
