"""Command translator: CLI tokens to worker action requests.

The first token selects a verb; the verb's handler turns the remaining
tokens into a flat request mapping. Verbs and sub-verbs live in
``Registry`` tables so every entry carries its canonical action and its
usage line (used verbatim in MissingArguments errors).

Translation is pure apart from the request id:

    >>> parse_command(["open", "example.com"], Flags())["url"]
    'https://example.com'
"""

import json
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from agentbrowser.core.flags import Flags, parse_cdp_target
from agentbrowser.daemon.protocol import gen_id
from agentbrowser.errors import (
    InvalidValue,
    MissingArguments,
    UnknownCommand,
    UnknownSubcommand,
)

Request = Dict[str, Any]

URL_SCHEMES = (
    "http://",
    "https://",
    "about:",
    "data:",
    "file:",
    "chrome:",
    "chrome-extension:",
)

SCROLL_DIRECTIONS = ("up", "down", "left", "right")
LOAD_STATES = ("load", "domcontentloaded", "networkidle")
STORAGE_TYPES = ("local", "session")
DEFAULT_SCROLL_AMOUNT = 300
DEFAULT_WHEEL_DELTA_Y = 100


class Tokens:
    """
    Arguments following a verb, with declared flags pulled out.

    Switches are boolean flags; options take the next token as their value
    unless that token is itself a declared flag. Neither shifts the
    positions of the remaining arguments.
    """

    def __init__(
        self,
        verb: str,
        args: Sequence[str],
        usage: str,
        switches: Iterable[str] = (),
        options: Iterable[str] = (),
    ):
        self.verb = verb
        self.usage = usage
        self.raw = list(args)
        self.positional: List[str] = []
        self.switches = set()
        self.options: Dict[str, Optional[str]] = {}

        switches = set(switches)
        options = set(options)
        known = switches | options

        i = 0
        while i < len(self.raw):
            token = self.raw[i]
            if token in options:
                following = self.raw[i + 1] if i + 1 < len(self.raw) else None
                if following is not None and following not in known:
                    self.options[token] = following
                    i += 2
                    continue
                self.options[token] = None
            elif token in switches:
                self.switches.add(token)
            else:
                self.positional.append(token)
            i += 1

    def __len__(self) -> int:
        return len(self.positional)

    def get(self, index: int, default: Optional[str] = None) -> Optional[str]:
        if index < len(self.positional):
            return self.positional[index]
        return default

    def require(self, index: int) -> str:
        """Return the positional at index, or raise MissingArguments."""
        value = self.get(index)
        if value is None:
            raise MissingArguments(self.verb, self.usage)
        return value

    def tail(self, index: int) -> str:
        """Join every positional from index onwards with single spaces."""
        return " ".join(self.positional[index:])

    def require_tail(self, index: int) -> str:
        value = self.tail(index)
        if not value:
            raise MissingArguments(self.verb, self.usage)
        return value

    def has(self, *names: str) -> bool:
        return any(name in self.switches for name in names)

    def has_option(self, *names: str) -> bool:
        return any(name in self.options for name in names)

    def option(self, *names: str) -> Optional[str]:
        for name in names:
            if self.options.get(name) is not None:
                return self.options[name]
        return None


Handler = Callable[[Tokens, Flags], Request]


@dataclass(frozen=True)
class Verb:
    action: str
    usage: str
    handler: Handler
    switches: Tuple[str, ...] = ()
    options: Tuple[str, ...] = ()


class Registry:
    """Name to Verb table for one level of the command grammar."""

    def __init__(self, name: Optional[str] = None, default: Optional[str] = None):
        self.name = name
        self.default = default
        self.verbs: Dict[str, Verb] = {}

    def register(
        self,
        *names: str,
        action: str,
        usage: str,
        switches: Sequence[str] = (),
        options: Sequence[str] = (),
    ) -> Callable[[Handler], Handler]:
        def decorator(handler: Handler) -> Handler:
            verb = Verb(action, usage, handler, tuple(switches), tuple(options))
            for name in names:
                self.verbs[name] = verb
            return handler
        return decorator

    def names(self) -> List[str]:
        return list(self.verbs)

    def __contains__(self, name: str) -> bool:
        return name in self.verbs

    def translate(self, name: str, args: Sequence[str], flags: Flags) -> Request:
        verb = self.verbs[name]
        label = f"{self.name} {name}" if self.name else name
        tokens = Tokens(label, args, verb.usage, verb.switches, verb.options)
        return verb.handler(tokens, flags)

    def dispatch(self, tokens: Tokens, flags: Flags) -> Request:
        """Select a sub-verb from the first raw token and translate the rest."""
        if tokens.raw:
            sub, rest = tokens.raw[0], tokens.raw[1:]
        elif self.default is not None:
            sub, rest = self.default, []
        else:
            raise MissingArguments(tokens.verb, tokens.usage)

        if sub not in self.verbs:
            raise UnknownSubcommand(tokens.verb, sub, self.names())
        return self.translate(sub, rest, flags)


VERBS = Registry()


def parse_command(tokens: Sequence[str], flags: Optional[Flags] = None) -> Request:
    """
    Translate CLI tokens into an action request.

    Args:
        tokens: Verb followed by its arguments (global options already removed)
        flags: Global options that influence some requests (--full, --annotate, --headers)

    Returns:
        Request mapping with ``id`` and ``action`` first

    Raises:
        MissingArguments: No tokens, or a required argument is absent
        UnknownCommand: First token is not a known verb
        UnknownSubcommand: Known verb with an unknown sub-verb
        InvalidValue: A present argument has the wrong shape
    """
    flags = flags or Flags()
    if not tokens:
        raise MissingArguments("", "<command> [args...]")

    verb, args = tokens[0], tokens[1:]
    if verb not in VERBS:
        raise UnknownCommand(verb)

    body = VERBS.translate(verb, args, flags)
    request: Request = {"id": gen_id(), "action": body.pop("action")}
    request.update(body)
    return request


# ============================================================================
# Value helpers
# ============================================================================

def normalize_url(url: str) -> str:
    """Prefix ``https://`` unless the target already carries a known scheme."""
    if url.lower().startswith(URL_SCHEMES):
        return url
    return f"https://{url}"


def parse_int(value: str, field: str) -> int:
    try:
        return int(value)
    except ValueError:
        raise InvalidValue(field, f"'{value}' is not an integer") from None


def parse_float(value: str, field: str) -> float:
    try:
        return float(value)
    except ValueError:
        raise InvalidValue(field, f"'{value}' is not a number") from None


def parse_json_object(value: str, field: str) -> Dict[str, Any]:
    try:
        parsed = json.loads(value)
    except json.JSONDecodeError as e:
        raise InvalidValue(field, f"not valid JSON ({e.msg})") from None
    if not isinstance(parsed, dict):
        raise InvalidValue(field, "expected a JSON object")
    return parsed


def _choice(value: str, field: str, choices: Sequence[str]) -> str:
    if value not in choices:
        raise InvalidValue(field, f"'{value}' must be one of: {', '.join(choices)}")
    return value


def _is_unsigned_int(value: str) -> bool:
    return value.isascii() and value.isdigit()


def _selector_action(action: str) -> Handler:
    def handler(tokens: Tokens, flags: Flags) -> Request:
        return {"action": action, "selector": tokens.require(0)}
    return handler


def _bare_action(action: str) -> Handler:
    def handler(tokens: Tokens, flags: Flags) -> Request:
        return {"action": action}
    return handler


def _clear_action(action: str) -> Handler:
    def handler(tokens: Tokens, flags: Flags) -> Request:
        return {"action": action, "clear": tokens.has("--clear")}
    return handler


# ============================================================================
# Navigation
# ============================================================================

@VERBS.register("open", "goto", "navigate", action="navigate", usage="open <url>")
def _navigate(tokens: Tokens, flags: Flags) -> Request:
    request: Request = {"action": "navigate", "url": normalize_url(tokens.require(0))}
    if flags.headers:
        request["headers"] = parse_json_object(flags.headers, "--headers")
    return request


for _name in ("back", "forward", "reload"):
    VERBS.register(_name, action=_name, usage=_name)(_bare_action(_name))


# ============================================================================
# Interaction
# ============================================================================

for _name in ("click", "dblclick", "hover", "focus", "check", "uncheck", "highlight"):
    VERBS.register(_name, action=_name, usage=f"{_name} <selector>")(_selector_action(_name))


@VERBS.register("fill", action="fill", usage="fill <selector> <text>")
def _fill(tokens: Tokens, flags: Flags) -> Request:
    return {"action": "fill", "selector": tokens.require(0), "value": tokens.tail(1)}


@VERBS.register("type", action="type", usage="type <selector> <text>")
def _type(tokens: Tokens, flags: Flags) -> Request:
    return {"action": "type", "selector": tokens.require(0), "text": tokens.tail(1)}


@VERBS.register("select", action="select", usage="select <selector> <value...>")
def _select(tokens: Tokens, flags: Flags) -> Request:
    selector = tokens.require(0)
    tokens.require(1)
    return {"action": "select", "selector": selector, "values": tokens.positional[1:]}


@VERBS.register("drag", action="drag", usage="drag <source> <target>")
def _drag(tokens: Tokens, flags: Flags) -> Request:
    return {"action": "drag", "source": tokens.require(0), "target": tokens.require(1)}


@VERBS.register("upload", action="upload", usage="upload <selector> <files...>")
def _upload(tokens: Tokens, flags: Flags) -> Request:
    selector = tokens.require(0)
    tokens.require(1)
    return {"action": "upload", "selector": selector, "files": tokens.positional[1:]}


@VERBS.register("download", action="download", usage="download <selector> <path>")
def _download(tokens: Tokens, flags: Flags) -> Request:
    return {"action": "download", "selector": tokens.require(0), "path": tokens.require(1)}


@VERBS.register("scrollintoview", "scrollinto", action="scrollintoview", usage="scrollintoview <selector>")
def _scroll_into_view(tokens: Tokens, flags: Flags) -> Request:
    return {"action": "scrollintoview", "selector": tokens.require(0)}


@VERBS.register("scroll", action="scroll", usage="scroll [up|down|left|right] [px]")
def _scroll(tokens: Tokens, flags: Flags) -> Request:
    direction = _choice(tokens.get(0, "down"), "direction", SCROLL_DIRECTIONS)
    amount = tokens.get(1)
    return {
        "action": "scroll",
        "direction": direction,
        "amount": parse_int(amount, "amount") if amount is not None else DEFAULT_SCROLL_AMOUNT,
    }


# ============================================================================
# Keyboard
# ============================================================================

@VERBS.register("press", "key", action="press", usage="press <key>")
def _press(tokens: Tokens, flags: Flags) -> Request:
    return {"action": "press", "key": tokens.require(0)}


def _key_action(action: str) -> Handler:
    def handler(tokens: Tokens, flags: Flags) -> Request:
        return {"action": action, "key": tokens.require(0)}
    return handler


for _name in ("keydown", "keyup"):
    VERBS.register(_name, action=_name, usage=f"{_name} <key>")(_key_action(_name))


KEYBOARD = Registry("keyboard")


@KEYBOARD.register("type", action="keyboard", usage="keyboard type <text>")
def _keyboard_type(tokens: Tokens, flags: Flags) -> Request:
    return {"action": "keyboard", "subaction": "type", "text": tokens.require_tail(0)}


@KEYBOARD.register("inserttext", action="keyboard", usage="keyboard inserttext <text>")
def _keyboard_insert_text(tokens: Tokens, flags: Flags) -> Request:
    return {"action": "keyboard", "subaction": "insertText", "text": tokens.require_tail(0)}


@VERBS.register("keyboard", action="keyboard", usage="keyboard <type|inserttext> <text>")
def _keyboard(tokens: Tokens, flags: Flags) -> Request:
    return KEYBOARD.dispatch(tokens, flags)


# ============================================================================
# Wait
# ============================================================================

@VERBS.register(
    "wait",
    action="wait",
    usage="wait <ms|selector> | wait --url <pattern> | wait --load <state> | "
          "wait --fn <expression> | wait --text <text> | wait --download [path]",
    options=("--url", "-u", "--load", "-l", "--fn", "--text", "-t", "--download", "--timeout"),
)
def _wait(tokens: Tokens, flags: Flags) -> Request:
    if tokens.has_option("--url", "-u"):
        pattern = tokens.option("--url", "-u")
        if pattern is None:
            raise MissingArguments(tokens.verb, "wait --url <pattern>")
        return {"action": "waitforurl", "url": pattern}

    if tokens.has_option("--load", "-l"):
        state = tokens.option("--load", "-l")
        if state is None:
            raise MissingArguments(tokens.verb, "wait --load <load|domcontentloaded|networkidle>")
        return {"action": "waitforloadstate", "state": _choice(state, "state", LOAD_STATES)}

    if tokens.has_option("--fn"):
        expression = " ".join(filter(None, [tokens.option("--fn"), tokens.tail(0)]))
        if not expression:
            raise MissingArguments(tokens.verb, "wait --fn <expression>")
        return {"action": "waitforfunction", "expression": expression}

    if tokens.has_option("--text", "-t"):
        text = " ".join(filter(None, [tokens.option("--text", "-t"), tokens.tail(0)]))
        if not text:
            raise MissingArguments(tokens.verb, "wait --text <text>")
        return {"action": "wait", "text": text}

    if tokens.has_option("--download"):
        request: Request = {"action": "waitfordownload"}
        path = tokens.option("--download") or tokens.get(0)
        if path is not None:
            request["path"] = path
        timeout = tokens.option("--timeout")
        if timeout is not None:
            request["timeout"] = parse_int(timeout, "timeout")
        return request

    target = tokens.require(0)
    if _is_unsigned_int(target):
        return {"action": "wait", "timeout": int(target)}
    return {"action": "wait", "selector": target}


# ============================================================================
# Capture
# ============================================================================

@VERBS.register("screenshot", action="screenshot", usage="screenshot [path]")
def _screenshot(tokens: Tokens, flags: Flags) -> Request:
    request: Request = {"action": "screenshot", "path": tokens.get(0), "fullPage": flags.full}
    if flags.annotate:
        request["annotate"] = True
    return request


@VERBS.register("pdf", action="pdf", usage="pdf <path>")
def _pdf(tokens: Tokens, flags: Flags) -> Request:
    return {"action": "pdf", "path": tokens.require(0)}


@VERBS.register(
    "snapshot",
    action="snapshot",
    usage="snapshot [-i] [-c] [-d <depth>] [-s <selector>]",
    switches=("-i", "--interactive", "-c", "--compact"),
    options=("-d", "--depth", "-s", "--selector"),
)
def _snapshot(tokens: Tokens, flags: Flags) -> Request:
    request: Request = {"action": "snapshot"}
    if tokens.has("-i", "--interactive"):
        request["interactive"] = True
    if tokens.has("-c", "--compact"):
        request["compact"] = True
    depth = tokens.option("-d", "--depth")
    if depth is not None:
        request["maxDepth"] = parse_int(depth, "depth")
    selector = tokens.option("-s", "--selector")
    if selector is not None:
        request["selector"] = selector
    return request


@VERBS.register("eval", action="evaluate", usage="eval <script>")
def _eval(tokens: Tokens, flags: Flags) -> Request:
    return {"action": "evaluate", "script": tokens.require_tail(0)}


@VERBS.register("close", "quit", "exit", action="close", usage="close")
def _close(tokens: Tokens, flags: Flags) -> Request:
    return {"action": "close"}


@VERBS.register("connect", action="launch", usage="connect <port|url>")
def _connect(tokens: Tokens, flags: Flags) -> Request:
    return {"action": "launch", **parse_cdp_target(tokens.require(0))}


# ============================================================================
# Get / Is
# ============================================================================

GET = Registry("get")

for _name, _action in (
    ("text", "gettext"),
    ("html", "innerhtml"),
    ("value", "inputvalue"),
    ("count", "count"),
    ("box", "boundingbox"),
    ("styles", "styles"),
):
    GET.register(_name, action=_action, usage=f"get {_name} <selector>")(_selector_action(_action))

for _name in ("url", "title"):
    GET.register(_name, action=_name, usage=f"get {_name}")(_bare_action(_name))


@GET.register("attr", action="getattribute", usage="get attr <selector> <attribute>")
def _get_attribute(tokens: Tokens, flags: Flags) -> Request:
    return {"action": "getattribute", "selector": tokens.require(0), "attribute": tokens.require(1)}


@VERBS.register("get", action="get", usage="get <text|html|value|attr|url|title|count|box|styles> [selector]")
def _get(tokens: Tokens, flags: Flags) -> Request:
    return GET.dispatch(tokens, flags)


IS = Registry("is")

for _name in ("visible", "enabled", "checked"):
    IS.register(_name, action=f"is{_name}", usage=f"is {_name} <selector>")(_selector_action(f"is{_name}"))


@VERBS.register("is", action="is", usage="is <visible|enabled|checked> <selector>")
def _is(tokens: Tokens, flags: Flags) -> Request:
    return IS.dispatch(tokens, flags)


# ============================================================================
# Find (semantic locators)
# ============================================================================

FIND_LOCATORS = {
    "role": ("getbyrole", "role"),
    "text": ("getbytext", "text"),
    "label": ("getbylabel", "label"),
    "placeholder": ("getbyplaceholder", "placeholder"),
    "alt": ("getbyalttext", "text"),
    "title": ("getbytitle", "text"),
    "testid": ("getbytestid", "testId"),
}
FIND_USAGE = "find <role|text|label|placeholder|alt|title|testid|first|last|nth> <value> [action] [text]"


@VERBS.register("find", action="find", usage=FIND_USAGE, switches=("--exact",), options=("--name",))
def _find(tokens: Tokens, flags: Flags) -> Request:
    locator = tokens.require(0)
    valid = list(FIND_LOCATORS) + ["first", "last", "nth"]
    if locator not in valid:
        raise UnknownSubcommand("find", locator, valid)

    if locator == "nth":
        index = parse_int(tokens.require(1), "index")
        selector = tokens.require(2)
        rest = 3
        request: Request = {"action": "nth", "selector": selector, "index": index}
    elif locator in ("first", "last"):
        request = {"action": "nth", "selector": tokens.require(1), "index": 0 if locator == "first" else -1}
        rest = 2
    else:
        action, field = FIND_LOCATORS[locator]
        request = {"action": action, field: tokens.require(1)}
        rest = 2

    request["subaction"] = tokens.get(rest, "click")
    value = tokens.tail(rest + 1)
    if value:
        request["value"] = value
    name = tokens.option("--name")
    if name is not None:
        request["name"] = name
    if tokens.has("--exact"):
        request["exact"] = True
    return request


# ============================================================================
# Mouse
# ============================================================================

MOUSE = Registry("mouse")


@MOUSE.register("move", action="mousemove", usage="mouse move <x> <y>")
def _mouse_move(tokens: Tokens, flags: Flags) -> Request:
    return {
        "action": "mousemove",
        "x": parse_int(tokens.require(0), "x"),
        "y": parse_int(tokens.require(1), "y"),
    }


@MOUSE.register("down", action="mousedown", usage="mouse down [button]")
def _mouse_down(tokens: Tokens, flags: Flags) -> Request:
    return {"action": "mousedown", "button": tokens.get(0, "left")}


@MOUSE.register("up", action="mouseup", usage="mouse up [button]")
def _mouse_up(tokens: Tokens, flags: Flags) -> Request:
    return {"action": "mouseup", "button": tokens.get(0, "left")}


@MOUSE.register("wheel", action="wheel", usage="mouse wheel [dy] [dx]")
def _mouse_wheel(tokens: Tokens, flags: Flags) -> Request:
    dy = tokens.get(0)
    dx = tokens.get(1)
    return {
        "action": "wheel",
        "deltaX": parse_int(dx, "dx") if dx is not None else 0,
        "deltaY": parse_int(dy, "dy") if dy is not None else DEFAULT_WHEEL_DELTA_Y,
    }


@VERBS.register("mouse", action="mouse", usage="mouse <move|down|up|wheel> [args]")
def _mouse(tokens: Tokens, flags: Flags) -> Request:
    return MOUSE.dispatch(tokens, flags)


# ============================================================================
# Set (browser settings)
# ============================================================================

SET = Registry("set")


@SET.register("viewport", action="viewport", usage="set viewport <width> <height>")
def _set_viewport(tokens: Tokens, flags: Flags) -> Request:
    return {
        "action": "viewport",
        "width": parse_int(tokens.require(0), "width"),
        "height": parse_int(tokens.require(1), "height"),
    }


@SET.register("device", action="device", usage="set device <name>")
def _set_device(tokens: Tokens, flags: Flags) -> Request:
    return {"action": "device", "device": tokens.require_tail(0)}


@SET.register("geo", "geolocation", action="geolocation", usage="set geo <latitude> <longitude>")
def _set_geolocation(tokens: Tokens, flags: Flags) -> Request:
    return {
        "action": "geolocation",
        "latitude": parse_float(tokens.require(0), "latitude"),
        "longitude": parse_float(tokens.require(1), "longitude"),
    }


@SET.register("offline", action="offline", usage="set offline [on|off]")
def _set_offline(tokens: Tokens, flags: Flags) -> Request:
    value = tokens.get(0)
    return {"action": "offline", "offline": value not in ("off", "false")}


@SET.register("headers", action="headers", usage="set headers <json>")
def _set_headers(tokens: Tokens, flags: Flags) -> Request:
    return {"action": "headers", "headers": parse_json_object(tokens.require_tail(0), "headers")}


@SET.register("credentials", "auth", action="credentials", usage="set credentials <username> <password>")
def _set_credentials(tokens: Tokens, flags: Flags) -> Request:
    return {"action": "credentials", "username": tokens.require(0), "password": tokens.require(1)}


@SET.register("media", action="media", usage="set media [dark|light] [reduced-motion]")
def _set_media(tokens: Tokens, flags: Flags) -> Request:
    if "dark" in tokens.positional:
        scheme = "dark"
    elif "light" in tokens.positional:
        scheme = "light"
    else:
        scheme = "no-preference"
    return {"action": "media", "colorScheme": scheme, "reducedMotion": "reduced-motion" in tokens.positional}


@VERBS.register("set", action="set", usage="set <viewport|device|geo|offline|headers|credentials|media> [args]")
def _set(tokens: Tokens, flags: Flags) -> Request:
    return SET.dispatch(tokens, flags)


# ============================================================================
# Network
# ============================================================================

NETWORK = Registry("network")


@NETWORK.register(
    "route",
    action="route",
    usage="network route <url> [--abort] [--body <json>]",
    switches=("--abort",),
    options=("--body",),
)
def _network_route(tokens: Tokens, flags: Flags) -> Request:
    request: Request = {"action": "route", "url": tokens.require(0), "abort": tokens.has("--abort")}
    body = tokens.option("--body")
    if body is not None:
        request["body"] = body
    return request


@NETWORK.register("unroute", action="unroute", usage="network unroute [url]")
def _network_unroute(tokens: Tokens, flags: Flags) -> Request:
    request: Request = {"action": "unroute"}
    if tokens.get(0) is not None:
        request["url"] = tokens.get(0)
    return request


@NETWORK.register(
    "requests",
    action="requests",
    usage="network requests [--clear] [--filter <pattern>]",
    switches=("--clear",),
    options=("--filter",),
)
def _network_requests(tokens: Tokens, flags: Flags) -> Request:
    request: Request = {"action": "requests", "clear": tokens.has("--clear")}
    pattern = tokens.option("--filter")
    if pattern is not None:
        request["filter"] = pattern
    return request


@VERBS.register("network", action="network", usage="network <route|unroute|requests> [args]")
def _network(tokens: Tokens, flags: Flags) -> Request:
    return NETWORK.dispatch(tokens, flags)


# ============================================================================
# Storage / cookies
# ============================================================================

STORAGE_USAGE = "storage <local|session> [get [key] | set <key> <value> | clear]"


@VERBS.register("storage", action="storage_get", usage=STORAGE_USAGE)
def _storage(tokens: Tokens, flags: Flags) -> Request:
    storage_type = tokens.require(0)
    if storage_type not in STORAGE_TYPES:
        raise UnknownSubcommand("storage", storage_type, STORAGE_TYPES)

    op = tokens.get(1, "get")
    if op == "get":
        request: Request = {"action": "storage_get", "type": storage_type}
        if tokens.get(2) is not None:
            request["key"] = tokens.get(2)
        return request
    if op == "set":
        return {
            "action": "storage_set",
            "type": storage_type,
            "key": tokens.require(2),
            "value": tokens.require(3),
        }
    if op == "clear":
        return {"action": "storage_clear", "type": storage_type}
    raise UnknownSubcommand(f"storage {storage_type}", op, ("get", "set", "clear"))


COOKIES = Registry("cookies", default="get")
COOKIE_OPTIONS = ("--url", "--domain", "--path", "--sameSite", "--expires")
COOKIE_SWITCHES = ("--httpOnly", "--secure")


@COOKIES.register("get", action="cookies_get", usage="cookies get")
def _cookies_get(tokens: Tokens, flags: Flags) -> Request:
    return {"action": "cookies_get"}


@COOKIES.register(
    "set",
    action="cookies_set",
    usage="cookies set <name> <value> [--url <url>] [--domain <domain>] [--path <path>] "
          "[--httpOnly] [--secure] [--sameSite <Strict|Lax|None>] [--expires <timestamp>]",
    switches=COOKIE_SWITCHES,
    options=COOKIE_OPTIONS,
)
def _cookies_set(tokens: Tokens, flags: Flags) -> Request:
    cookie: Dict[str, Any] = {"name": tokens.require(0), "value": tokens.require(1)}
    for option in ("--url", "--domain", "--path"):
        value = tokens.option(option)
        if value is not None:
            cookie[option[2:]] = value
    if tokens.has("--httpOnly"):
        cookie["httpOnly"] = True
    if tokens.has("--secure"):
        cookie["secure"] = True
    same_site = tokens.option("--sameSite")
    if same_site is not None:
        cookie["sameSite"] = _choice(same_site, "sameSite", ("Strict", "Lax", "None"))
    expires = tokens.option("--expires")
    if expires is not None:
        cookie["expires"] = parse_int(expires, "expires")
    return {"action": "cookies_set", "cookies": [cookie]}


@COOKIES.register("clear", action="cookies_clear", usage="cookies clear")
def _cookies_clear(tokens: Tokens, flags: Flags) -> Request:
    return {"action": "cookies_clear"}


@VERBS.register("cookies", action="cookies_get", usage="cookies [get|set|clear]")
def _cookies(tokens: Tokens, flags: Flags) -> Request:
    return COOKIES.dispatch(tokens, flags)


# ============================================================================
# Tabs, windows, frames, dialogs
# ============================================================================

TAB = Registry("tab", default="list")


@TAB.register("new", action="tab_new", usage="tab new [url]")
def _tab_new(tokens: Tokens, flags: Flags) -> Request:
    request: Request = {"action": "tab_new"}
    if tokens.get(0) is not None:
        request["url"] = normalize_url(tokens.get(0))
    return request


@TAB.register("list", action="tab_list", usage="tab list")
def _tab_list(tokens: Tokens, flags: Flags) -> Request:
    return {"action": "tab_list"}


@TAB.register("close", action="tab_close", usage="tab close [index]")
def _tab_close(tokens: Tokens, flags: Flags) -> Request:
    request: Request = {"action": "tab_close"}
    if tokens.get(0) is not None:
        request["index"] = parse_int(tokens.get(0), "index")
    return request


@VERBS.register("tab", action="tab_list", usage="tab [new [url] | list | close [index] | <index>]")
def _tab(tokens: Tokens, flags: Flags) -> Request:
    if tokens.raw and _is_unsigned_int(tokens.raw[0]):
        return {"action": "tab_switch", "index": int(tokens.raw[0])}
    return TAB.dispatch(tokens, flags)


WINDOW = Registry("window")
WINDOW.register("new", action="window_new", usage="window new")(_bare_action("window_new"))


@VERBS.register("window", action="window_new", usage="window new")
def _window(tokens: Tokens, flags: Flags) -> Request:
    return WINDOW.dispatch(tokens, flags)


@VERBS.register("frame", action="frame", usage="frame <selector|main>")
def _frame(tokens: Tokens, flags: Flags) -> Request:
    target = tokens.require(0)
    if target == "main":
        return {"action": "mainframe"}
    return {"action": "frame", "selector": target}


DIALOG = Registry("dialog")


@DIALOG.register("accept", action="dialog", usage="dialog accept [text]")
def _dialog_accept(tokens: Tokens, flags: Flags) -> Request:
    request: Request = {"action": "dialog", "response": "accept"}
    if tokens.tail(0):
        request["promptText"] = tokens.tail(0)
    return request


@DIALOG.register("dismiss", action="dialog", usage="dialog dismiss")
def _dialog_dismiss(tokens: Tokens, flags: Flags) -> Request:
    return {"action": "dialog", "response": "dismiss"}


@VERBS.register("dialog", action="dialog", usage="dialog <accept [text]|dismiss>")
def _dialog(tokens: Tokens, flags: Flags) -> Request:
    return DIALOG.dispatch(tokens, flags)


# ============================================================================
# Debug: trace, profiler, recording, console
# ============================================================================

def _optional_path(action: str) -> Handler:
    def handler(tokens: Tokens, flags: Flags) -> Request:
        request: Request = {"action": action}
        if tokens.get(0) is not None:
            request["path"] = tokens.get(0)
        return request
    return handler


TRACE = Registry("trace")
TRACE.register("start", action="trace_start", usage="trace start [path]")(_optional_path("trace_start"))
TRACE.register("stop", action="trace_stop", usage="trace stop [path]")(_optional_path("trace_stop"))


@VERBS.register("trace", action="trace", usage="trace <start|stop> [path]")
def _trace(tokens: Tokens, flags: Flags) -> Request:
    return TRACE.dispatch(tokens, flags)


PROFILER = Registry("profiler")


@PROFILER.register("start", action="profiler_start", usage="profiler start [--categories <list>]", options=("--categories",))
def _profiler_start(tokens: Tokens, flags: Flags) -> Request:
    request: Request = {"action": "profiler_start"}
    categories = tokens.option("--categories")
    if categories is not None:
        request["categories"] = [c.strip() for c in categories.split(",") if c.strip()]
    return request


PROFILER.register("stop", action="profiler_stop", usage="profiler stop [path]")(_optional_path("profiler_stop"))


@VERBS.register("profiler", action="profiler", usage="profiler <start|stop> [args]")
def _profiler(tokens: Tokens, flags: Flags) -> Request:
    return PROFILER.dispatch(tokens, flags)


RECORD = Registry("record")


def _recording(action: str) -> Handler:
    def handler(tokens: Tokens, flags: Flags) -> Request:
        request: Request = {"action": action, "path": tokens.require(0)}
        if tokens.get(1) is not None:
            request["url"] = normalize_url(tokens.get(1))
        return request
    return handler


RECORD.register("start", action="recording_start", usage="record start <path.webm> [url]")(
    _recording("recording_start")
)
RECORD.register("restart", action="recording_restart", usage="record restart <path.webm> [url]")(
    _recording("recording_restart")
)
RECORD.register("stop", action="recording_stop", usage="record stop")(_bare_action("recording_stop"))


@VERBS.register("record", action="recording", usage="record <start|stop|restart> [path] [url]")
def _record(tokens: Tokens, flags: Flags) -> Request:
    return RECORD.dispatch(tokens, flags)


VERBS.register("console", action="console", usage="console [--clear]", switches=("--clear",))(
    _clear_action("console")
)
VERBS.register("errors", action="errors", usage="errors [--clear]", switches=("--clear",))(
    _clear_action("errors")
)


# ============================================================================
# Diff
# ============================================================================

DIFF = Registry("diff")


@DIFF.register(
    "snapshot",
    action="diff_snapshot",
    usage="diff snapshot [-b <baseline>] [-s <selector>] [-c] [-d <depth>]",
    switches=("-c", "--compact"),
    options=("-b", "--baseline", "-s", "--selector", "-d", "--depth"),
)
def _diff_snapshot(tokens: Tokens, flags: Flags) -> Request:
    request: Request = {"action": "diff_snapshot"}
    baseline = tokens.option("-b", "--baseline")
    if baseline is not None:
        request["baseline"] = baseline
    selector = tokens.option("-s", "--selector")
    if selector is not None:
        request["selector"] = selector
    if tokens.has("-c", "--compact"):
        request["compact"] = True
    depth = tokens.option("-d", "--depth")
    if depth is not None:
        request["maxDepth"] = parse_int(depth, "depth")
    return request


@DIFF.register(
    "screenshot",
    action="diff_screenshot",
    usage="diff screenshot --baseline <file> [-o <output>] [-t <threshold>] [-s <selector>]",
    options=("-b", "--baseline", "-o", "--output", "-t", "--threshold", "-s", "--selector"),
)
def _diff_screenshot(tokens: Tokens, flags: Flags) -> Request:
    baseline = tokens.option("-b", "--baseline")
    if baseline is None:
        raise MissingArguments(tokens.verb, tokens.usage)
    request: Request = {"action": "diff_screenshot", "baseline": baseline}
    output = tokens.option("-o", "--output")
    if output is not None:
        request["output"] = output
    threshold = tokens.option("-t", "--threshold")
    if threshold is not None:
        value = parse_float(threshold, "threshold")
        if not 0 <= value <= 1:
            raise InvalidValue("threshold", f"{threshold} must be between 0 and 1")
        request["threshold"] = value
    selector = tokens.option("-s", "--selector")
    if selector is not None:
        request["selector"] = selector
    return request


@DIFF.register("url", action="diff_url", usage="diff url <url1> <url2>")
def _diff_url(tokens: Tokens, flags: Flags) -> Request:
    return {
        "action": "diff_url",
        "url1": normalize_url(tokens.require(0)),
        "url2": normalize_url(tokens.require(1)),
    }


@VERBS.register("diff", action="diff", usage="diff <snapshot|screenshot|url> [args]")
def _diff(tokens: Tokens, flags: Flags) -> Request:
    return DIFF.dispatch(tokens, flags)


# ============================================================================
# State and confirmation
# ============================================================================

STATE = Registry("state")


@STATE.register("save", action="state_save", usage="state save <path>")
def _state_save(tokens: Tokens, flags: Flags) -> Request:
    return {"action": "state_save", "path": tokens.require(0)}


@STATE.register("load", action="state_load", usage="state load <path>")
def _state_load(tokens: Tokens, flags: Flags) -> Request:
    return {"action": "state_load", "path": tokens.require(0)}


@VERBS.register("state", action="state", usage="state <save|load> <path>")
def _state(tokens: Tokens, flags: Flags) -> Request:
    return STATE.dispatch(tokens, flags)


def _confirmation_action(action: str) -> Handler:
    def handler(tokens: Tokens, flags: Flags) -> Request:
        return {"action": action, "confirmationId": tokens.require(0)}
    return handler


for _name in ("confirm", "deny"):
    VERBS.register(_name, action=_name, usage=f"{_name} <confirmation-id>")(_confirmation_action(_name))


def confirmation_request(confirmation_id: str, approved: bool) -> Request:
    """Build the follow-up request answering a pending confirmation."""
    return parse_command(["confirm" if approved else "deny", confirmation_id])
