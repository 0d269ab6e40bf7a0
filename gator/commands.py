"""The gator commands and the registry that dispatches them."""

from __future__ import annotations

import logging
import re
import sqlite3
import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from fractions import Fraction
from typing import Callable

from gator.config import Config
from gator.database import Feed, NotFoundError, Queries, User
from gator.rss import FeedFetchError, RSSFeed, fetch_feed

logger = logging.getLogger("gator")


class CommandError(Exception):
    """Raised when a command cannot be carried out."""


@dataclass
class Command:
    name: str
    args: list[str] = field(default_factory=list)


@dataclass
class State:
    cfg: Config
    db: Queries


Handler = Callable[[State, Command], None]
UserHandler = Callable[[State, Command, User], None]


class Commands:
    """A registry of named command handlers."""

    def __init__(self) -> None:
        self._handlers: dict[str, Handler] = {}

    def register(self, name: str, handler: Handler) -> None:
        self._handlers[name] = handler

    def run(self, state: State, cmd: Command) -> None:
        try:
            handler = self._handlers[cmd.name]
        except KeyError:
            raise CommandError("command not found") from None
        handler(state, cmd)


def logged_in(handler: UserHandler) -> Handler:
    """Wrap ``handler`` so that it receives the current user."""

    def wrapper(state: State, cmd: Command) -> None:
        user = state.db.get_user(state.cfg.current_user_name)
        handler(state, cmd, user)

    return wrapper


_UNITS = {
    "ns": 1,
    "us": 1_000,
    "µs": 1_000,
    "μs": 1_000,
    "ms": 1_000_000,
    "s": 1_000_000_000,
    "m": 60 * 1_000_000_000,
    "h": 3600 * 1_000_000_000,
}
_PART = re.compile(r"(\d*)(?:\.(\d*))?([^\d.]*)")


def parse_duration(text: str) -> timedelta:
    """Parse a duration such as ``"1m"``, ``"1h30m"`` or ``"300ms"``."""
    rest = text
    negative = False
    if rest[:1] in ("+", "-"):
        negative = rest[0] == "-"
        rest = rest[1:]
    if rest == "0":
        return timedelta(0)
    if not rest:
        raise ValueError(f"time: invalid duration {text!r}")

    total = Fraction(0)
    pos = 0
    while pos < len(rest):
        match = _PART.match(rest, pos)
        whole, frac, unit = match.group(1), match.group(2), match.group(3)
        if not whole and not frac:
            raise ValueError(f"time: invalid duration {text!r}")
        if not unit:
            raise ValueError(f"time: missing unit in duration {text!r}")
        if unit not in _UNITS:
            raise ValueError(f"time: unknown unit {unit!r} in duration {text!r}")
        value = Fraction(int(whole or "0"))
        if frac:
            value += Fraction(int(frac), 10 ** len(frac))
        total += value * _UNITS[unit]
        pos = match.end()

    delta = timedelta(microseconds=int(total) // 1000)
    return -delta if negative else delta


def _trim(value: int, scale: int) -> str:
    whole, frac = divmod(value, scale)
    if not frac:
        return str(whole)
    digits = str(frac).zfill(len(str(scale)) - 1).rstrip("0")
    return f"{whole}.{digits}"


def _format_duration(delta: timedelta) -> str:
    micros = delta // timedelta(microseconds=1)
    if micros == 0:
        return "0s"
    sign = "-" if micros < 0 else ""
    micros = abs(micros)
    if micros < 1000:
        return f"{sign}{micros}µs"
    if micros < 1_000_000:
        return f"{sign}{_trim(micros, 1000)}ms"
    hours, rem = divmod(micros, 3600 * 1_000_000)
    minutes, rem = divmod(rem, 60 * 1_000_000)
    seconds = _trim(rem, 1_000_000)
    if hours:
        return f"{sign}{hours}h{minutes}m{seconds}s"
    if minutes:
        return f"{sign}{minutes}m{seconds}s"
    return f"{sign}{seconds}s"


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _require_args(cmd: Command, count: int, usage: str) -> None:
    if len(cmd.args) < count:
        raise CommandError(f"usage: {cmd.name} {usage}")


# user commands


def handler_login(state: State, cmd: Command) -> None:
    if len(cmd.args) != 1:
        raise CommandError(f"usage: {cmd.name} <name>")
    name = cmd.args[0]
    try:
        state.db.get_user(name)
    except NotFoundError:
        raise CommandError(f"user with name {name} not exists") from None
    try:
        state.cfg.set_user(name)
    except OSError as exc:
        raise CommandError(f"couldn't set current user: {exc}") from exc
    print("User switched successfully!")


def handler_register(state: State, cmd: Command) -> None:
    if len(cmd.args) != 1:
        raise CommandError(f"usage: {cmd.name} <name>")
    name = cmd.args[0]
    try:
        state.db.get_user(name)
    except NotFoundError:
        pass
    else:
        raise CommandError(f"user with name {name} already exists")
    try:
        user = state.db.create_user(uuid.uuid4(), name)
    except sqlite3.Error as exc:
        raise CommandError(f"couldn't save user: {exc}") from exc
    try:
        state.cfg.set_user(name)
    except OSError as exc:
        raise CommandError(f"couldn't set current user: {exc}") from exc
    print("User saved successfully!", user.name)


def handler_users(state: State, cmd: Command) -> None:
    try:
        users = state.db.get_users()
    except sqlite3.Error as exc:
        raise CommandError(f"couldn't list users: {exc}") from exc
    for user in users:
        if user.name == state.cfg.current_user_name:
            print(f"{user.name} (current)")
        else:
            print(user.name)


def handler_reset(state: State, cmd: Command) -> None:
    try:
        state.db.delete_users()
    except sqlite3.Error as exc:
        raise CommandError(f"couldn't delete users: {exc}") from exc
    print("Users deleted successfully!")


# feed commands


def handler_agg(state: State, cmd: Command) -> None:
    """Scrape the next feed now and then once every interval, forever."""
    if not 1 <= len(cmd.args) <= 2:
        raise CommandError(f"usage: {cmd.name} <time_between_reqs>")
    try:
        interval = parse_duration(cmd.args[0])
    except ValueError as exc:
        raise CommandError(f"invalid duration: {exc}") from exc
    if interval <= timedelta(0):
        raise CommandError("non-positive interval between requests")

    logger.info("Collecting feeds every %s...", _format_duration(interval))
    seconds = interval.total_seconds()
    next_tick = time.monotonic()
    while True:
        scrape_feeds(state)
        next_tick += seconds
        now = time.monotonic()
        while next_tick <= now:
            next_tick += seconds
        time.sleep(next_tick - now)


def scrape_feeds(state: State) -> RSSFeed | None:
    """Fetch the feed that has waited longest; return its contents if fetched."""
    try:
        feed = state.db.get_next_feed_to_fetch()
    except (NotFoundError, sqlite3.Error) as exc:
        logger.info("Couldn't get next feeds to fetch %s", exc)
        return None
    logger.info("Found a feed to fetch!")
    return scrape_feed(state.db, feed)


def scrape_feed(queries: Queries, feed: Feed) -> RSSFeed | None:
    """Mark ``feed`` fetched, download it and print its post titles."""
    try:
        queries.mark_feed_fetched(feed.id)
    except (NotFoundError, sqlite3.Error) as exc:
        logger.info("Couldn't mark feed %s fetched: %s", feed.name, exc)
        return None
    try:
        data = fetch_feed(feed.url)
    except FeedFetchError as exc:
        logger.info("Couldn't collect feed %s: %s", feed.name, exc)
        return None
    for item in data.items:
        print(f"Found post: {item.title}")
    logger.info("Feed %s collected, %d posts found", feed.name, len(data.items))
    return data


def handler_feeds(state: State, cmd: Command) -> None:
    for listing in state.db.get_feeds():
        print(listing.name)
        print(listing.url)
        print(listing.user_name or "")


def handler_addfeed(state: State, cmd: Command, user: User) -> None:
    _require_args(cmd, 2, "<name> <url>")
    name, url = cmd.args[0], cmd.args[1]
    now = _now()
    feed = state.db.create_feed(uuid.uuid4(), name, url, user.id, now, now)
    now = _now()
    state.db.create_feed_follow(uuid.uuid4(), user.id, feed.id, now, now)
    print(feed.name)
    print(feed.url)


def handler_follow(state: State, cmd: Command, user: User) -> None:
    _require_args(cmd, 1, "<url>")
    feed = state.db.get_feed_by_url(cmd.args[0])
    now = _now()
    state.db.create_feed_follow(uuid.uuid4(), user.id, feed.id, now, now)
    print(feed.name)
    print(user.name)


def handler_unfollow(state: State, cmd: Command, user: User) -> None:
    _require_args(cmd, 1, "<url>")
    feed = state.db.get_feed_by_url(cmd.args[0])
    state.db.delete_feed_follow(user.id, feed.id)


def handler_following(state: State, cmd: Command, user: User) -> None:
    print(user.name)
    print(user.id)
    for followed in state.db.get_feed_follows_for_user(user.id):
        print(followed.feed_name)
        print(followed.user_name)


def default_commands() -> Commands:
    """Return a registry holding every gator command."""
    cmds = Commands()
    cmds.register("login", handler_login)
    cmds.register("register", handler_register)
    cmds.register("reset", handler_reset)
    cmds.register("users", handler_users)
    cmds.register("agg", handler_agg)
    cmds.register("addfeed", logged_in(handler_addfeed))
    cmds.register("feeds", handler_feeds)
    cmds.register("follow", logged_in(handler_follow))
    cmds.register("following", logged_in(handler_following))
    cmds.register("unfollow", logged_in(handler_unfollow))
    return cmds