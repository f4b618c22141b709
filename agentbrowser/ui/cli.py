"""Main CLI entry point.

    agent-browser [global options] <command> [args...]

Every invocation is linear: resolve options → translate the command →
make sure the session's worker is running → (optional launch request) →
send the command → print the response.
"""

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import click
import typer
from typer.core import TyperCommand

from agentbrowser import __version__
from agentbrowser.commands import confirmation_request, parse_command
from agentbrowser.core.configs import load_flags
from agentbrowser.core.confirmation import pending_confirmation, prompt_user_confirmation
from agentbrowser.core.flags import (
    Flags,
    build_launch_request,
    daemon_options,
    ignored_launch_flags,
    validate_exclusive,
)
from agentbrowser.core.validation import validate_session_name
from agentbrowser.daemon.client import DaemonClient
from agentbrowser.daemon.paths import resolve_session
from agentbrowser.daemon.protocol import Response
from agentbrowser.daemon.supervisor import active_sessions, ensure_daemon
from agentbrowser.errors import AgentBrowserError, ParseError
from agentbrowser.ui.output import OutputOptions, UIManager

logger = logging.getLogger(__name__)

app = typer.Typer(
    add_completion=False,
    help="agent-browser - browser automation from the command line.",
)


# ============================================================================
# Shared setup
# ============================================================================

def _configure_logging(debug: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.WARNING,
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"agent-browser {__version__}")
        raise typer.Exit()


def _output_options(flags: Flags) -> OutputOptions:
    return OutputOptions(
        json=flags.json,
        content_boundaries=flags.content_boundaries,
        max_output=flags.max_output,
    )


def _fail(ui: UIManager, opts: OutputOptions, error: Exception) -> None:
    """Report a fatal error on one line and exit 1."""
    kind = error.kind if isinstance(error, ParseError) else None
    ui.print_error(str(error), opts, kind=kind)
    raise typer.Exit(1)


# ============================================================================
# Local commands (no worker needed)
# ============================================================================

def run_session(tokens: List[str], flags: Flags, ui: UIManager, opts: OutputOptions) -> None:
    """``session`` prints the current session; ``session list`` the live ones."""
    if tokens[1:2] == ["list"]:
        sessions = active_sessions()
        if opts.json:
            ui.print_json({"success": True, "data": {"sessions": sessions}})
        elif not sessions:
            ui.plain("No active sessions")
        else:
            ui.plain("Active sessions:")
            for name in sessions:
                marker = "→" if name == flags.session else " "
                ui.plain(f"{marker} {name}")
        return

    if opts.json:
        ui.print_json({"success": True, "data": {"session": flags.session}})
    else:
        ui.plain(flags.session)


# ============================================================================
# Worker round trip
# ============================================================================

def _send_launch(client: DaemonClient, launch: Dict[str, Any]) -> None:
    client.send(launch).raise_for_error(action="launch")


def _resolve_confirmation(
    client: DaemonClient,
    response: Response,
    ui: UIManager,
    opts: OutputOptions,
) -> Optional[Response]:
    """
    Answer a pending confirmation, if the response carries one.

    Returns the follow-up response, or None when nothing was pending.
    A denied action exits 1.
    """
    pending = pending_confirmation(response.data)
    if pending is None:
        return None

    approved = prompt_user_confirmation(pending)
    follow_up = client.send(confirmation_request(pending["id"], approved))
    if not approved:
        ui.print_error("Action denied", opts)
        raise typer.Exit(1)
    return follow_up


def execute(
    tokens: List[str], flags: Flags, ui: UIManager, opts: OutputOptions
) -> Tuple[Optional[str], Response]:
    """
    Translate and deliver one command.

    Returns:
        (action, response) for the request that produced the final answer

    Raises:
        AgentBrowserError: Any failure before a response is available
    """
    request = parse_command(tokens, flags)

    validate_session_name(flags.session)
    if flags.session_name:
        validate_session_name(flags.session_name)
    validate_exclusive(flags)
    launch = build_launch_request(flags)

    paths = resolve_session(flags.session)
    result = ensure_daemon(paths, daemon_options(flags), node_path=flags.node_path)

    if result.already_running:
        ignored = ignored_launch_flags(flags)
        if ignored and not opts.json:
            ui.warning(
                f"{', '.join(ignored)} ignored: daemon already running. "
                "Use 'agent-browser close' first to restart with new options."
            )

    client = DaemonClient(paths)
    if launch is not None:
        _send_launch(client, launch)

    logger.debug(f"Sending {request['action']} to session '{flags.session}'")
    response = client.send(request)

    if flags.confirm_interactive:
        follow_up = _resolve_confirmation(client, response, ui, opts)
        if follow_up is not None:
            return None, follow_up
    return request["action"], response


# ============================================================================
# Entry command
# ============================================================================

def hoist_global_options(args: List[str], options: List[click.Parameter]) -> List[str]:
    """
    Move global options to the front and protect everything else.

    Options are matched by exact spelling (``--name value`` or
    ``--name=value``) anywhere in the line. The remaining tokens follow a
    ``--`` so Click never splits them into bundled short flags: in
    ``fill #q -pizza`` the text ``-pizza`` stays a single token.
    """
    lookup: Dict[str, click.Option] = {}
    for param in options:
        if isinstance(param, click.Option):
            for spelling in param.opts + param.secondary_opts:
                lookup[spelling] = param

    hoisted: List[str] = []
    rest: List[str] = []
    i = 0
    while i < len(args):
        token = args[i]
        if token == "--":
            rest.extend(args[i + 1:])
            break

        name = token.split("=", 1)[0] if token.startswith("--") else token
        param = lookup.get(name)
        if param is None:
            rest.append(token)
        elif param.is_flag or name != token:
            hoisted.append(token)
        else:
            hoisted.extend(args[i:i + 2])
            i += 1
        i += 1

    return hoisted + ["--"] + rest


class GlobalOptionsCommand(TyperCommand):
    """Entry command whose options may appear before or after the verb."""

    def parse_args(self, ctx: click.Context, args: List[str]) -> List[str]:
        options = list(self.get_params(ctx))
        return super().parse_args(ctx, hoist_global_options(list(args), options))


@app.command(
    cls=GlobalOptionsCommand,
    context_settings={"allow_extra_args": True, "ignore_unknown_options": True},
)
def main(
    ctx: typer.Context,
    session: Optional[str] = typer.Option(None, "--session", help="Isolated session name"),
    json_output: bool = typer.Option(False, "--json", help="Print responses as JSON"),
    full: bool = typer.Option(False, "--full", "-f", help="Full page screenshot"),
    annotate: bool = typer.Option(False, "--annotate", help="Annotate screenshots with element labels"),
    headed: bool = typer.Option(False, "--headed", help="Show the browser window"),
    debug: bool = typer.Option(False, "--debug", help="Debug logging on stderr"),
    headers: Optional[str] = typer.Option(None, "--headers", help="HTTP headers as a JSON object (open only)"),
    executable_path: Optional[str] = typer.Option(None, "--executable-path", help="Custom browser executable"),
    extension: Optional[List[str]] = typer.Option(None, "--extension", help="Browser extension to load (repeatable)"),
    args: Optional[str] = typer.Option(None, "--args", help="Browser launch args, comma separated"),
    user_agent: Optional[str] = typer.Option(None, "--user-agent", help="Custom User-Agent"),
    proxy: Optional[str] = typer.Option(None, "--proxy", help="Proxy server URL"),
    proxy_bypass: Optional[str] = typer.Option(None, "--proxy-bypass", help="Hosts that bypass the proxy"),
    ignore_https_errors: bool = typer.Option(False, "--ignore-https-errors", help="Ignore HTTPS certificate errors"),
    allow_file_access: bool = typer.Option(False, "--allow-file-access", help="Allow file:// URLs to read local files"),
    profile: Optional[str] = typer.Option(None, "--profile", help="Persistent browser profile directory"),
    state: Optional[str] = typer.Option(None, "--state", help="Storage state file to load"),
    provider: Optional[str] = typer.Option(None, "--provider", "-p", help="Cloud browser provider"),
    device: Optional[str] = typer.Option(None, "--device", help="Device name (iOS provider)"),
    cdp: Optional[str] = typer.Option(None, "--cdp", help="Connect over CDP (port or URL)"),
    auto_connect: bool = typer.Option(False, "--auto-connect", help="Connect to a running browser"),
    session_name: Optional[str] = typer.Option(None, "--session-name", help="Persist session state under this name"),
    download_path: Optional[str] = typer.Option(None, "--download-path", help="Default download directory"),
    allowed_domains: Optional[str] = typer.Option(None, "--allowed-domains", help="Comma separated domain allowlist"),
    action_policy: Optional[str] = typer.Option(None, "--action-policy", help="Action policy file"),
    confirm_actions: Optional[str] = typer.Option(None, "--confirm-actions", help="Action categories needing confirmation"),
    confirm_interactive: bool = typer.Option(False, "--confirm-interactive", help="Prompt for confirmations on the terminal"),
    color_scheme: Optional[str] = typer.Option(None, "--color-scheme", help="dark, light or no-preference"),
    content_boundaries: bool = typer.Option(False, "--content-boundaries", help="Wrap page output in boundary markers"),
    max_output: Optional[int] = typer.Option(None, "--max-output", help="Truncate page output to N characters"),
    config: Optional[Path] = typer.Option(None, "--config", help="Config file replacing ./agent-browser.cfg"),
    version: bool = typer.Option(
        False, "--version", "-V", callback=_version_callback, is_eager=True, help="Show version and exit"
    ),
) -> None:
    """
    Run a browser command against a session's worker.

    Example: agent-browser open example.com
    """
    _configure_logging(debug)

    cli_values = {
        "session": session,
        "json": json_output,
        "full": full,
        "annotate": annotate,
        "headed": headed,
        "debug": debug,
        "headers": headers,
        "executable_path": executable_path,
        "extensions": extension,
        "args": args,
        "user_agent": user_agent,
        "proxy": proxy,
        "proxy_bypass": proxy_bypass,
        "ignore_https_errors": ignore_https_errors,
        "allow_file_access": allow_file_access,
        "profile": profile,
        "state": state,
        "provider": provider,
        "device": device,
        "cdp": cdp,
        "auto_connect": auto_connect,
        "session_name": session_name,
        "download_path": download_path,
        "allowed_domains": allowed_domains,
        "action_policy": action_policy,
        "confirm_actions": confirm_actions,
        "confirm_interactive": confirm_interactive,
        "color_scheme": color_scheme,
        "content_boundaries": content_boundaries,
        "max_output": max_output,
    }
    # Unset CLI options must not shadow lower layers
    cli_values = {k: v for k, v in cli_values.items() if v is not None and v is not False and v != []}

    ui = UIManager()
    try:
        flags = load_flags(cli_values, config_path=config)
    except AgentBrowserError as e:
        _fail(ui, OutputOptions(json=json_output), e)

    if flags.debug and not debug:
        logging.getLogger().setLevel(logging.DEBUG)

    opts = _output_options(flags)
    tokens = list(ctx.args)

    if not tokens:
        typer.echo(ctx.get_help())
        raise typer.Exit(0)

    if tokens[0] == "session":
        run_session(tokens, flags, ui, opts)
        return

    try:
        action, response = execute(tokens, flags, ui, opts)
    except AgentBrowserError as e:
        _fail(ui, opts, e)

    ui.print_response(response, action, opts)
    if not response.success:
        raise typer.Exit(1)


def run() -> None:
    """Entry point for console script mapping."""
    app()


if __name__ == "__main__":
    run()
