"""Configuration management for agent-browser.

Global options are resolved from several layers, lowest precedence first:

1. User config      ~/.config/agent-browser/config.cfg
2. Project config   ./agent-browser.cfg (or the file named by --config)
3. .env file        AGENT_BROWSER_* keys in ./.env
4. Environment      AGENT_BROWSER_* variables
5. CLI flags

Config files use a single [DEFAULT] section with lower-case option names:

    [DEFAULT]
    session = work
    headed = true
    extensions = ./ext-a, ./ext-b
"""

import configparser
import os
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

from dotenv import dotenv_values

from agentbrowser.core.flags import Flags
from agentbrowser.errors import ConfigError

USER_CONFIG_PATH = Path.home() / ".config" / "agent-browser" / "config.cfg"
PROJECT_CONFIG_NAME = "agent-browser.cfg"
DOTENV_NAME = ".env"
ENV_PREFIX = "AGENT_BROWSER_"

BOOL_OPTIONS = frozenset({
    "json",
    "full",
    "annotate",
    "headed",
    "debug",
    "ignore_https_errors",
    "allow_file_access",
    "auto_connect",
    "confirm_interactive",
    "content_boundaries",
})
INT_OPTIONS = frozenset({"max_output"})
LIST_OPTIONS = frozenset({"extensions", "allowed_domains"})
STR_OPTIONS = frozenset({
    "session",
    "headers",
    "executable_path",
    "cdp",
    "profile",
    "state",
    "proxy",
    "proxy_bypass",
    "args",
    "user_agent",
    "provider",
    "device",
    "session_name",
    "download_path",
    "action_policy",
    "confirm_actions",
    "color_scheme",
    "node_path",
})
KNOWN_OPTIONS = BOOL_OPTIONS | INT_OPTIONS | LIST_OPTIONS | STR_OPTIONS

# Alternate spellings accepted in config files and the environment
ALIASES = {
    "extension": "extensions",
    "node": "node_path",
    "ios_device": "device",
}


def _normalize_key(key: str) -> str:
    key = key.strip().lower().replace("-", "_")
    return ALIASES.get(key, key)


def _get_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in {"1", "true", "yes", "y", "on"}


def _split_list(value: Any) -> List[str]:
    if isinstance(value, (list, tuple)):
        return [str(v) for v in value if str(v).strip()]
    return [part.strip() for part in str(value).split(",") if part.strip()]


def load_config_file(path: Path) -> Dict[str, str]:
    """
    Read the [DEFAULT] section of a config file.

    Returns an empty dict when the file does not exist. Keys are
    normalized to option names; unknown keys are dropped.

    Raises:
        ConfigError: File exists but cannot be parsed
    """
    cfg = configparser.ConfigParser()
    data: Dict[str, str] = {}

    if not path.exists():
        return data

    try:
        cfg.read(path)
    except configparser.Error as e:
        raise ConfigError(f"Error loading config from {path}: {e}") from e

    if "DEFAULT" in cfg:
        for key, value in cfg["DEFAULT"].items():
            name = _normalize_key(key)
            if name in KNOWN_OPTIONS:
                data[name] = value
    return data


def options_from_env(env: Mapping[str, Optional[str]]) -> Dict[str, str]:
    """Pick AGENT_BROWSER_* entries out of an environment-like mapping."""
    data: Dict[str, str] = {}
    for key, value in env.items():
        if not key.startswith(ENV_PREFIX) or value is None or value == "":
            continue
        name = _normalize_key(key[len(ENV_PREFIX):])
        if name in KNOWN_OPTIONS:
            data[name] = value
    return data


def load_layers(
    config_path: Optional[Path] = None,
    cwd: Optional[Path] = None,
    environ: Optional[Mapping[str, str]] = None,
    user_config: Optional[Path] = None,
) -> List[Dict[str, Any]]:
    """
    Load every non-CLI layer, lowest precedence first.

    Args:
        config_path: Explicit --config file; replaces the project config
        cwd: Directory holding the project config and .env (defaults to the cwd)
        environ: Process environment (defaults to os.environ)
        user_config: User config path (defaults to USER_CONFIG_PATH)

    Raises:
        ConfigError: --config names a missing or malformed file
    """
    cwd = cwd or Path.cwd()
    environ = os.environ if environ is None else environ
    user_config = user_config or USER_CONFIG_PATH

    layers: List[Dict[str, Any]] = [load_config_file(user_config)]

    if config_path is not None:
        if not config_path.exists():
            raise ConfigError(f"Config file not found: {config_path}")
        layers.append(load_config_file(config_path))
    else:
        layers.append(load_config_file(cwd / PROJECT_CONFIG_NAME))

    dotenv_path = cwd / DOTENV_NAME
    if dotenv_path.exists():
        layers.append(options_from_env(dotenv_values(dotenv_path)))

    layers.append(options_from_env(environ))
    return layers


def _coerce(name: str, value: Any) -> Any:
    if name in BOOL_OPTIONS:
        return _get_bool(value)
    if name in LIST_OPTIONS:
        return _split_list(value)
    if name in INT_OPTIONS:
        try:
            return int(value)
        except (TypeError, ValueError):
            raise ConfigError(f"Invalid value for {name}: '{value}' is not an integer") from None
    return str(value)


def merge_layers(layers: List[Mapping[str, Any]], cli: Optional[Mapping[str, Any]] = None) -> Flags:
    """
    Fold layers into Flags; later layers win.

    Extensions accumulate across layers instead of replacing each other.
    Options present in ``cli`` are recorded in ``Flags.cli_provided``.
    """
    cli = {k: v for k, v in (cli or {}).items() if v is not None}
    values: Dict[str, Any] = {}
    extensions: List[str] = []

    for layer in list(layers) + [cli]:
        for key, raw in layer.items():
            name = _normalize_key(key)
            if name not in KNOWN_OPTIONS:
                continue
            value = _coerce(name, raw)
            if name == "extensions":
                extensions.extend(e for e in value if e not in extensions)
            else:
                values[name] = value

    if extensions:
        values["extensions"] = extensions
    return Flags(cli_provided=frozenset(_normalize_key(k) for k in cli), **values)


def load_flags(
    cli: Optional[Mapping[str, Any]] = None,
    config_path: Optional[Path] = None,
    cwd: Optional[Path] = None,
    environ: Optional[Mapping[str, str]] = None,
    user_config: Optional[Path] = None,
) -> Flags:
    """Resolve global options from config files, .env, environment and CLI."""
    layers = load_layers(config_path=config_path, cwd=cwd, environ=environ, user_config=user_config)
    return merge_layers(layers, cli)
