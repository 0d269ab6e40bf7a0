import json
import logging
import sqlite3
import threading
from datetime import timedelta
from http.server import BaseHTTPRequestHandler, HTTPServer

import pytest

from gator.commands import (
    Command,
    CommandError,
    Commands,
    State,
    default_commands,
    handler_agg,
    handler_login,
    handler_register,
    handler_reset,
    handler_users,
    parse_duration,
    scrape_feeds,
)
from gator.config import Config
from gator.database import NotFoundError, connect

SAMPLE = b"""<rss version="2.0"><channel><title>Blog</title>
<item><title>First</title></item><item><title>Second</title></item>
</channel></rss>"""


@pytest.fixture
def state(tmp_path):
    cfg = Config(db_url=":memory:", path=tmp_path / "gatorconfig.json")
    return State(cfg=cfg, db=connect(":memory:"))


@pytest.fixture
def cmds():
    return default_commands()


@pytest.fixture
def server():
    routes = {}

    class Handler(BaseHTTPRequestHandler):
        def do_GET(self):
            status, body = routes.get(self.path, (404, b"not found"))
            self.send_response(status)
            self.send_header("Content-Length", str(len(body)))
            self.end_headers()
            self.wfile.write(body)

        def log_message(self, *args):
            pass

    httpd = HTTPServer(("127.0.0.1", 0), Handler)
    thread = threading.Thread(target=httpd.serve_forever, daemon=True)
    thread.start()
    yield f"http://127.0.0.1:{httpd.server_address[1]}", routes
    httpd.shutdown()
    httpd.server_close()


def test_unknown_command(state):
    with pytest.raises(CommandError, match="command not found"):
        Commands().run(state, Command("missing"))


def test_register_sets_current_user(state, capsys, tmp_path):
    handler_register(state, Command("register", ["alice"]))
    assert "User saved successfully! alice" in capsys.readouterr().out
    assert state.db.get_user("alice").name == "alice"
    saved = json.loads((tmp_path / "gatorconfig.json").read_text())
    assert saved["current_user_name"] == "alice"


def test_register_duplicate(state):
    handler_register(state, Command("register", ["alice"]))
    with pytest.raises(CommandError, match="already exists"):
        handler_register(state, Command("register", ["alice"]))


def test_register_usage(state):
    with pytest.raises(CommandError, match="usage: register <name>"):
        handler_register(state, Command("register", []))


def test_login(state, capsys):
    handler_register(state, Command("register", ["alice"]))
    handler_register(state, Command("register", ["bob"]))
    handler_login(state, Command("login", ["alice"]))
    assert state.cfg.current_user_name == "alice"
    assert "User switched successfully!" in capsys.readouterr().out


def test_login_unknown_user(state):
    with pytest.raises(CommandError, match="user with name carol not exists"):
        handler_login(state, Command("login", ["carol"]))


def test_users_marks_current(state, capsys):
    handler_register(state, Command("register", ["bob"]))
    handler_register(state, Command("register", ["alice"]))
    capsys.readouterr()
    handler_users(state, Command("users"))
    assert capsys.readouterr().out.splitlines() == ["alice (current)", "bob"]


def test_reset(state):
    handler_register(state, Command("register", ["alice"]))
    handler_reset(state, Command("reset"))
    assert state.db.get_users() == []


def test_logged_in_requires_user(state, cmds):
    with pytest.raises(NotFoundError):
        cmds.run(state, Command("addfeed", ["Blog", "https://blog.example.com/rss"]))


def test_addfeed_follows_and_lists(state, cmds, capsys):
    cmds.run(state, Command("register", ["alice"]))
    cmds.run(state, Command("addfeed", ["Blog", "https://blog.example.com/rss"]))
    out = capsys.readouterr().out.splitlines()
    assert out[-2:] == ["Blog", "https://blog.example.com/rss"]

    cmds.run(state, Command("feeds"))
    assert capsys.readouterr().out.splitlines() == [
        "Blog",
        "https://blog.example.com/rss",
        "alice",
    ]

    cmds.run(state, Command("following"))
    lines = capsys.readouterr().out.splitlines()
    user = state.db.get_user("alice")
    assert lines == ["alice", str(user.id), "Blog", "alice"]


def test_addfeed_usage(state, cmds):
    cmds.run(state, Command("register", ["alice"]))
    with pytest.raises(CommandError, match="usage"):
        cmds.run(state, Command("addfeed", ["Blog"]))


def test_follow_and_unfollow(state, cmds, capsys):
    url = "https://blog.example.com/rss"
    cmds.run(state, Command("register", ["alice"]))
    cmds.run(state, Command("addfeed", ["Blog", url]))
    cmds.run(state, Command("register", ["bob"]))
    capsys.readouterr()

    cmds.run(state, Command("follow", [url]))
    assert capsys.readouterr().out.splitlines() == ["Blog", "bob"]
    bob = state.db.get_user("bob")
    assert [f.feed_name for f in state.db.get_feed_follows_for_user(bob.id)] == ["Blog"]

    with pytest.raises(sqlite3.IntegrityError):
        cmds.run(state, Command("follow", [url]))

    cmds.run(state, Command("unfollow", [url]))
    assert state.db.get_feed_follows_for_user(bob.id) == []


def test_follow_unknown_feed(state, cmds):
    cmds.run(state, Command("register", ["alice"]))
    with pytest.raises(NotFoundError):
        cmds.run(state, Command("follow", ["https://nowhere.example.com/rss"]))


def test_parse_duration_values():
    assert parse_duration("1m") == timedelta(minutes=1)
    assert parse_duration("300ms") == timedelta(milliseconds=300)
    assert parse_duration("0") == timedelta(0)


def test_parse_duration_equivalences():
    assert parse_duration("1h30m") == parse_duration("90m")
    assert parse_duration("1.5h") == parse_duration("90m")
    assert parse_duration("-1s") == -parse_duration("1s")
    assert parse_duration("1000us") == parse_duration("1ms")


@pytest.mark.parametrize("text", ["", "1", "abc", "1x", ".s", "-"])
def test_parse_duration_invalid(text):
    with pytest.raises(ValueError):
        parse_duration(text)


@pytest.mark.parametrize("args", [[], ["1s", "2", "3"]])
def test_agg_usage(state, args):
    with pytest.raises(CommandError, match="usage: agg"):
        handler_agg(state, Command("agg", args))


def test_agg_invalid_duration(state):
    with pytest.raises(CommandError, match="invalid duration"):
        handler_agg(state, Command("agg", ["soon"]))


def test_agg_non_positive_duration(state):
    with pytest.raises(CommandError):
        handler_agg(state, Command("agg", ["0"]))


def test_scrape_without_feeds(state, caplog):
    with caplog.at_level(logging.INFO, logger="gator"):
        assert scrape_feeds(state) is None
    assert "Couldn't get next feeds to fetch" in caplog.text


def test_scrape_feed_prints_posts(state, cmds, server, capsys):
    base, routes = server
    routes["/rss"] = (200, SAMPLE)
    cmds.run(state, Command("register", ["alice"]))
    cmds.run(state, Command("addfeed", ["Blog", base + "/rss"]))
    capsys.readouterr()

    data = scrape_feeds(state)
    assert [item.title for item in data.items] == ["First", "Second"]
    assert capsys.readouterr().out.splitlines() == ["Found post: First", "Found post: Second"]
    assert state.db.get_feed_by_url(base + "/rss").last_fetched_at is not None


def test_scrape_failed_fetch_still_marks(state, cmds, server):
    base, _ = server
    cmds.run(state, Command("register", ["alice"]))
    cmds.run(state, Command("addfeed", ["Gone", base + "/gone"]))
    assert state.db.get_feed_by_url(base + "/gone").last_fetched_at is None
    assert scrape_feeds(state) is None
    assert state.db.get_feed_by_url(base + "/gone").last_fetched_at is not None