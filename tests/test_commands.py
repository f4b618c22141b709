"""
Tests for commands.py - CLI token to action request translation.
"""

import unittest

from agentbrowser.commands import VERBS, confirmation_request, normalize_url, parse_command
from agentbrowser.core.flags import Flags
from agentbrowser.errors import (
    InvalidValue,
    MissingArguments,
    ParseError,
    UnknownCommand,
    UnknownSubcommand,
)


def parse(line: str, **flags):
    return parse_command(line.split(), Flags(**flags))


class TestRequestShape(unittest.TestCase):
    """Every request carries id and action."""

    def test_id_and_action_present(self):
        cmd = parse("back")
        self.assertTrue(cmd["id"].startswith("r"))
        self.assertEqual(cmd["action"], "back")

    def test_deterministic_except_id(self):
        first = parse("fill #input hello world")
        second = parse("fill #input hello world")
        first.pop("id")
        second.pop("id")
        self.assertEqual(first, second)

    def test_empty_tokens(self):
        with self.assertRaises(MissingArguments):
            parse_command([], Flags())

    def test_unknown_command(self):
        with self.assertRaises(UnknownCommand) as ctx:
            parse("unknowncommand")
        self.assertEqual(ctx.exception.kind, "unknown_command")
        self.assertIn("unknowncommand", str(ctx.exception))

    def test_all_errors_are_parse_errors(self):
        for line in ("unknowncommand", "click", "get nope", "scroll sideways"):
            with self.assertRaises(ParseError):
                parse(line)


class TestNavigation(unittest.TestCase):

    def test_navigate_with_https(self):
        cmd = parse("open https://example.com")
        self.assertEqual(cmd["action"], "navigate")
        self.assertEqual(cmd["url"], "https://example.com")

    def test_navigate_without_protocol(self):
        cmd = parse("open example.com")
        self.assertEqual(cmd["url"], "https://example.com")

    def test_navigate_aliases(self):
        self.assertEqual(parse("goto example.com")["action"], "navigate")
        self.assertEqual(parse("navigate example.com")["action"], "navigate")

    def test_known_schemes_pass_through(self):
        for url in ("http://localhost:3000", "about:blank", "data:text/html,hi",
                    "file:///tmp/a.html", "chrome://version", "chrome-extension://abc/page.html"):
            self.assertEqual(normalize_url(url), url)

    def test_missing_url(self):
        with self.assertRaises(MissingArguments) as ctx:
            parse("open")
        self.assertIn("open <url>", str(ctx.exception))

    def test_headers_attached_to_navigate(self):
        cmd = parse_command(["open", "example.com"], Flags(headers='{"X-Test": "1"}'))
        self.assertEqual(cmd["headers"], {"X-Test": "1"})

    def test_headers_must_be_object(self):
        with self.assertRaises(InvalidValue):
            parse_command(["open", "example.com"], Flags(headers="[1, 2]"))

    def test_back_forward_reload(self):
        for verb in ("back", "forward", "reload"):
            self.assertEqual(parse(verb)["action"], verb)


class TestInteraction(unittest.TestCase):

    def test_click(self):
        cmd = parse("click #button")
        self.assertEqual(cmd["action"], "click")
        self.assertEqual(cmd["selector"], "#button")

    def test_fill_joins_text(self):
        cmd = parse("fill #input hello world")
        self.assertEqual(cmd["selector"], "#input")
        self.assertEqual(cmd["value"], "hello world")

    def test_type_joins_text(self):
        cmd = parse("type #input some text")
        self.assertEqual(cmd["action"], "type")
        self.assertEqual(cmd["text"], "some text")

    def test_select_multiple_values(self):
        cmd = parse("select #colors red green")
        self.assertEqual(cmd["values"], ["red", "green"])

    def test_drag(self):
        cmd = parse("drag #a #b")
        self.assertEqual((cmd["source"], cmd["target"]), ("#a", "#b"))

    def test_drag_missing_target(self):
        with self.assertRaises(MissingArguments):
            parse("drag #a")

    def test_upload_files(self):
        cmd = parse("upload #file a.png b.png")
        self.assertEqual(cmd["files"], ["a.png", "b.png"])

    def test_download(self):
        cmd = parse("download #link ./out.pdf")
        self.assertEqual(cmd["action"], "download")
        self.assertEqual((cmd["selector"], cmd["path"]), ("#link", "./out.pdf"))

    def test_press_alias(self):
        self.assertEqual(parse("key Enter")["action"], "press")
        self.assertEqual(parse("key Enter")["key"], "Enter")

    def test_keyboard_subactions(self):
        self.assertEqual(parse("keyboard type hi there")["subaction"], "type")
        self.assertEqual(parse("keyboard type hi there")["text"], "hi there")
        self.assertEqual(parse("keyboard inserttext x")["subaction"], "insertText")

    def test_keyboard_unknown_subaction(self):
        with self.assertRaises(UnknownSubcommand):
            parse("keyboard shout x")


class TestScrollAndWait(unittest.TestCase):

    def test_scroll_defaults(self):
        cmd = parse("scroll")
        self.assertEqual((cmd["direction"], cmd["amount"]), ("down", 300))

    def test_scroll_explicit(self):
        cmd = parse("scroll up 500")
        self.assertEqual((cmd["direction"], cmd["amount"]), ("up", 500))

    def test_scroll_invalid_direction(self):
        with self.assertRaises(InvalidValue):
            parse("scroll sideways")

    def test_scroll_invalid_amount(self):
        with self.assertRaises(InvalidValue):
            parse("scroll down lots")

    def test_scrollinto_alias(self):
        self.assertEqual(parse("scrollinto #footer")["action"], "scrollintoview")

    def test_wait_timeout(self):
        cmd = parse("wait 1000")
        self.assertEqual(cmd["timeout"], 1000)
        self.assertNotIn("selector", cmd)

    def test_wait_selector(self):
        cmd = parse("wait #loaded")
        self.assertEqual(cmd["selector"], "#loaded")

    def test_wait_negative_number_is_selector(self):
        self.assertEqual(parse("wait -5")["selector"], "-5")

    def test_wait_url(self):
        cmd = parse("wait --url **/dashboard")
        self.assertEqual(cmd["action"], "waitforurl")
        self.assertEqual(cmd["url"], "**/dashboard")

    def test_wait_load_state(self):
        self.assertEqual(parse("wait --load networkidle")["state"], "networkidle")
        with self.assertRaises(InvalidValue):
            parse("wait --load sometime")

    def test_wait_function(self):
        cmd = parse("wait --fn window.ready === true")
        self.assertEqual(cmd["action"], "waitforfunction")
        self.assertEqual(cmd["expression"], "window.ready === true")

    def test_wait_text(self):
        cmd = parse("wait --text Welcome back")
        self.assertEqual((cmd["action"], cmd["text"]), ("wait", "Welcome back"))

    def test_wait_download(self):
        cmd = parse("wait --download ./file.pdf --timeout 3000")
        self.assertEqual(cmd["action"], "waitfordownload")
        self.assertEqual(cmd["path"], "./file.pdf")
        self.assertEqual(cmd["timeout"], 3000)

    def test_wait_download_flag_does_not_eat_next_flag(self):
        cmd = parse("wait --download --timeout 3000")
        self.assertNotIn("path", cmd)
        self.assertEqual(cmd["timeout"], 3000)

    def test_wait_missing_argument(self):
        with self.assertRaises(MissingArguments):
            parse("wait")


class TestCapture(unittest.TestCase):

    def test_screenshot(self):
        cmd = parse("screenshot")
        self.assertEqual(cmd["action"], "screenshot")
        self.assertIsNone(cmd["path"])
        self.assertFalse(cmd["fullPage"])

    def test_screenshot_full_page_and_annotate(self):
        cmd = parse("screenshot shot.png", full=True, annotate=True)
        self.assertTrue(cmd["fullPage"])
        self.assertTrue(cmd["annotate"])
        self.assertEqual(cmd["path"], "shot.png")

    def test_snapshot_flags(self):
        cmd = parse("snapshot -i -c -d 3 -s #main")
        self.assertTrue(cmd["interactive"])
        self.assertTrue(cmd["compact"])
        self.assertEqual(cmd["maxDepth"], 3)
        self.assertEqual(cmd["selector"], "#main")

    def test_snapshot_bare(self):
        cmd = parse("snapshot")
        self.assertEqual(set(cmd), {"id", "action"})

    def test_snapshot_bad_depth(self):
        with self.assertRaises(InvalidValue):
            parse("snapshot -d deep")

    def test_eval(self):
        self.assertEqual(parse("eval document.title.length")["script"], "document.title.length")

    def test_close_aliases(self):
        for verb in ("close", "quit", "exit"):
            self.assertEqual(parse(verb)["action"], "close")

    def test_connect_port(self):
        cmd = parse("connect 9222")
        self.assertEqual((cmd["action"], cmd["cdpPort"]), ("launch", 9222))

    def test_connect_url(self):
        self.assertEqual(parse("connect ws://localhost:9222/devtools")["cdpUrl"], "ws://localhost:9222/devtools")

    def test_connect_out_of_range(self):
        with self.assertRaises(InvalidValue):
            parse("connect 70000")


class TestQueries(unittest.TestCase):

    def test_get_actions(self):
        expected = {
            "text": "gettext",
            "html": "innerhtml",
            "value": "inputvalue",
            "count": "count",
            "box": "boundingbox",
            "styles": "styles",
        }
        for sub, action in expected.items():
            self.assertEqual(parse(f"get {sub} #el")["action"], action)

    def test_get_attr(self):
        cmd = parse("get attr #link href")
        self.assertEqual((cmd["action"], cmd["attribute"]), ("getattribute", "href"))

    def test_get_url_needs_no_selector(self):
        self.assertEqual(parse("get url")["action"], "url")

    def test_get_unknown(self):
        with self.assertRaises(UnknownSubcommand) as ctx:
            parse("get nope")
        self.assertIn("text", ctx.exception.valid)

    def test_get_missing_sub(self):
        with self.assertRaises(MissingArguments):
            parse("get")

    def test_is(self):
        self.assertEqual(parse("is visible #el")["action"], "isvisible")
        self.assertEqual(parse("is checked #el")["action"], "ischecked")

    def test_find_role(self):
        cmd = parse("find role button click --name Submit --exact")
        self.assertEqual(cmd["action"], "getbyrole")
        self.assertEqual(cmd["role"], "button")
        self.assertEqual(cmd["subaction"], "click")
        self.assertEqual(cmd["name"], "Submit")
        self.assertTrue(cmd["exact"])

    def test_find_label_fill(self):
        cmd = parse("find label Email fill test@test.com")
        self.assertEqual(cmd["action"], "getbylabel")
        self.assertEqual(cmd["subaction"], "fill")
        self.assertEqual(cmd["value"], "test@test.com")

    def test_find_default_subaction(self):
        self.assertEqual(parse("find text Sign")["subaction"], "click")

    def test_find_first_last_nth(self):
        self.assertEqual(parse("find first .item")["index"], 0)
        self.assertEqual(parse("find last .item")["index"], -1)
        cmd = parse("find nth 2 .item hover")
        self.assertEqual((cmd["action"], cmd["index"], cmd["selector"], cmd["subaction"]),
                         ("nth", 2, ".item", "hover"))

    def test_find_unknown_locator(self):
        with self.assertRaises(UnknownSubcommand):
            parse("find colour red")


class TestMouseAndSettings(unittest.TestCase):

    def test_mouse_move(self):
        cmd = parse("mouse move 10 20")
        self.assertEqual((cmd["action"], cmd["x"], cmd["y"]), ("mousemove", 10, 20))

    def test_mouse_move_invalid(self):
        with self.assertRaises(InvalidValue):
            parse("mouse move ten 20")

    def test_mouse_buttons(self):
        self.assertEqual(parse("mouse down")["button"], "left")
        self.assertEqual(parse("mouse up right")["button"], "right")

    def test_mouse_wheel(self):
        cmd = parse("mouse wheel")
        self.assertEqual((cmd["action"], cmd["deltaY"], cmd["deltaX"]), ("wheel", 100, 0))
        cmd = parse("mouse wheel -200 50")
        self.assertEqual((cmd["deltaY"], cmd["deltaX"]), (-200, 50))

    def test_set_viewport(self):
        cmd = parse("set viewport 1280 720")
        self.assertEqual((cmd["width"], cmd["height"]), (1280, 720))

    def test_set_geo(self):
        cmd = parse("set geo 37.7749 -122.4194")
        self.assertEqual(cmd["action"], "geolocation")
        self.assertAlmostEqual(cmd["longitude"], -122.4194)

    def test_set_offline(self):
        self.assertTrue(parse("set offline")["offline"])
        self.assertTrue(parse("set offline on")["offline"])
        self.assertFalse(parse("set offline off")["offline"])

    def test_set_headers(self):
        self.assertEqual(parse('set headers {"a":"b"}')["headers"], {"a": "b"})
        with self.assertRaises(InvalidValue):
            parse("set headers not-json")

    def test_set_credentials_alias(self):
        cmd = parse("set auth user pass")
        self.assertEqual((cmd["action"], cmd["username"], cmd["password"]), ("credentials", "user", "pass"))

    def test_set_media(self):
        cmd = parse("set media dark reduced-motion")
        self.assertEqual((cmd["colorScheme"], cmd["reducedMotion"]), ("dark", True))
        self.assertEqual(parse("set media")["colorScheme"], "no-preference")


class TestNetworkAndStorage(unittest.TestCase):

    def test_route(self):
        cmd = parse('network route **/api --body {"ok":true}')
        self.assertEqual(cmd["url"], "**/api")
        self.assertFalse(cmd["abort"])
        self.assertEqual(cmd["body"], '{"ok":true}')

    def test_route_abort(self):
        self.assertTrue(parse("network route **/ads --abort")["abort"])

    def test_requests(self):
        cmd = parse("network requests --filter api --clear")
        self.assertEqual((cmd["filter"], cmd["clear"]), ("api", True))

    def test_storage_local_get(self):
        cmd = parse("storage local")
        self.assertEqual((cmd["action"], cmd["type"]), ("storage_get", "local"))
        self.assertNotIn("key", cmd)

    def test_storage_local_get_key(self):
        self.assertEqual(parse("storage local get mykey")["key"], "mykey")

    def test_storage_session_set(self):
        cmd = parse("storage session set skey svalue")
        self.assertEqual((cmd["action"], cmd["type"], cmd["key"], cmd["value"]),
                         ("storage_set", "session", "skey", "svalue"))

    def test_storage_set_missing_value(self):
        with self.assertRaises(MissingArguments):
            parse("storage local set mykey")

    def test_storage_clear(self):
        self.assertEqual(parse("storage local clear")["action"], "storage_clear")

    def test_storage_invalid_type(self):
        with self.assertRaises(UnknownSubcommand):
            parse("storage invalid")

    def test_storage_requires_type(self):
        with self.assertRaises(MissingArguments):
            parse("storage")

    def test_cookies_default_get(self):
        self.assertEqual(parse("cookies")["action"], "cookies_get")
        self.assertEqual(parse("cookies get")["action"], "cookies_get")

    def test_cookies_set(self):
        cmd = parse("cookies set mycookie myvalue --domain example.com --httpOnly --sameSite Lax")
        cookie = cmd["cookies"][0]
        self.assertEqual((cookie["name"], cookie["value"]), ("mycookie", "myvalue"))
        self.assertEqual(cookie["domain"], "example.com")
        self.assertTrue(cookie["httpOnly"])
        self.assertEqual(cookie["sameSite"], "Lax")

    def test_cookies_set_missing_value(self):
        with self.assertRaises(MissingArguments):
            parse("cookies set mycookie")

    def test_cookies_unknown_op(self):
        with self.assertRaises(UnknownSubcommand):
            parse("cookies bake")


class TestTabsFramesDebug(unittest.TestCase):

    def test_tab_default_list(self):
        self.assertEqual(parse("tab")["action"], "tab_list")

    def test_tab_new(self):
        self.assertEqual(parse("tab new")["action"], "tab_new")
        self.assertEqual(parse("tab new example.com")["url"], "https://example.com")

    def test_tab_switch(self):
        cmd = parse("tab 2")
        self.assertEqual((cmd["action"], cmd["index"]), ("tab_switch", 2))

    def test_tab_close(self):
        self.assertEqual(parse("tab close")["action"], "tab_close")
        self.assertEqual(parse("tab close 1")["index"], 1)

    def test_window_new(self):
        self.assertEqual(parse("window new")["action"], "window_new")

    def test_frame(self):
        self.assertEqual(parse("frame main")["action"], "mainframe")
        self.assertEqual(parse("frame #iframe")["selector"], "#iframe")

    def test_dialog(self):
        cmd = parse("dialog accept my answer")
        self.assertEqual((cmd["response"], cmd["promptText"]), ("accept", "my answer"))
        self.assertEqual(parse("dialog dismiss")["response"], "dismiss")

    def test_trace(self):
        self.assertEqual(parse("trace start")["action"], "trace_start")
        self.assertEqual(parse("trace stop t.zip")["path"], "t.zip")

    def test_profiler(self):
        cmd = parse("profiler start --categories devtools.timeline,v8")
        self.assertEqual(cmd["categories"], ["devtools.timeline", "v8"])
        self.assertEqual(parse("profiler stop out.json")["path"], "out.json")

    def test_record(self):
        cmd = parse("record start demo.webm example.com")
        self.assertEqual((cmd["action"], cmd["path"], cmd["url"]),
                         ("recording_start", "demo.webm", "https://example.com"))
        self.assertEqual(parse("record stop")["action"], "recording_stop")
        with self.assertRaises(MissingArguments):
            parse("record restart")

    def test_console_and_errors(self):
        self.assertFalse(parse("console")["clear"])
        self.assertTrue(parse("errors --clear")["clear"])

    def test_highlight(self):
        self.assertEqual(parse("highlight #el")["selector"], "#el")

    def test_state(self):
        self.assertEqual(parse("state save auth.json")["action"], "state_save")
        self.assertEqual(parse("state load auth.json")["path"], "auth.json")


class TestDiffAndConfirmation(unittest.TestCase):

    def test_diff_snapshot(self):
        cmd = parse("diff snapshot -b before.txt -c -d 2")
        self.assertEqual(cmd["action"], "diff_snapshot")
        self.assertEqual(cmd["baseline"], "before.txt")
        self.assertEqual(cmd["maxDepth"], 2)

    def test_diff_screenshot_requires_baseline(self):
        with self.assertRaises(MissingArguments):
            parse("diff screenshot")

    def test_diff_screenshot_threshold(self):
        cmd = parse("diff screenshot --baseline a.png -t 0.2 -o diff.png")
        self.assertEqual((cmd["threshold"], cmd["output"]), (0.2, "diff.png"))
        with self.assertRaises(InvalidValue):
            parse("diff screenshot --baseline a.png -t 2")

    def test_diff_url(self):
        cmd = parse("diff url a.com b.com")
        self.assertEqual((cmd["url1"], cmd["url2"]), ("https://a.com", "https://b.com"))

    def test_confirm_deny(self):
        self.assertEqual(parse("confirm c1")["confirmationId"], "c1")
        self.assertEqual(parse("deny c1")["action"], "deny")

    def test_confirmation_request(self):
        self.assertEqual(confirmation_request("c9", True)["action"], "confirm")
        self.assertEqual(confirmation_request("c9", False)["action"], "deny")

    def test_registry_has_usage_for_every_verb(self):
        for name, verb in VERBS.verbs.items():
            self.assertTrue(verb.usage, f"{name} should have a usage line")
            self.assertTrue(verb.action, f"{name} should have an action")


if __name__ == "__main__":
    unittest.main()
