"""SQLite storage for users, feeds and feed follows."""

from __future__ import annotations

import sqlite3
import uuid
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Iterator


class NotFoundError(LookupError):
    """Raised when a query that must return one row finds none."""


@dataclass(frozen=True)
class User:
    id: uuid.UUID
    created_at: datetime | None
    updated_at: datetime | None
    name: str


@dataclass(frozen=True)
class Feed:
    id: uuid.UUID
    created_at: datetime | None
    updated_at: datetime | None
    name: str
    url: str
    user_id: uuid.UUID
    last_fetched_at: datetime | None


@dataclass(frozen=True)
class FeedFollow:
    id: uuid.UUID
    created_at: datetime | None
    updated_at: datetime | None
    user_id: uuid.UUID
    feed_id: uuid.UUID


@dataclass(frozen=True)
class FeedListing:
    """A feed with the name of the user who added it."""

    name: str
    url: str
    user_name: str | None


@dataclass(frozen=True)
class FeedFollowDetails:
    """A newly created follow together with the feed and user names."""

    id: uuid.UUID
    created_at: datetime | None
    updated_at: datetime | None
    user_id: uuid.UUID
    feed_id: uuid.UUID
    feed_name: str | None
    user_name: str | None


@dataclass(frozen=True)
class FollowedFeed:
    feed_name: str | None
    user_name: str | None


_SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS users (
        id TEXT PRIMARY KEY,
        created_at TEXT,
        updated_at TEXT,
        name TEXT NOT NULL UNIQUE
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS feed (
        id TEXT PRIMARY KEY,
        created_at TEXT,
        updated_at TEXT,
        name TEXT NOT NULL,
        url TEXT NOT NULL UNIQUE,
        user_id TEXT NOT NULL REFERENCES users (id) ON DELETE CASCADE,
        last_fetched_at TEXT
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS feed_follows (
        id TEXT PRIMARY KEY,
        created_at TEXT,
        updated_at TEXT,
        user_id TEXT NOT NULL REFERENCES users (id) ON DELETE CASCADE,
        feed_id TEXT NOT NULL REFERENCES feed (id) ON DELETE CASCADE,
        UNIQUE (user_id, feed_id)
    )
    """,
)

_USER_COLUMNS = "id, created_at, updated_at, name"
_FEED_COLUMNS = "id, created_at, updated_at, name, url, user_id, last_fetched_at"


def _iso(value: datetime | None) -> str | None:
    return None if value is None else value.isoformat()


def _ts(value: str | None) -> datetime | None:
    return None if value is None else datetime.fromisoformat(value)


def _user(row: tuple) -> User:
    return User(uuid.UUID(row[0]), _ts(row[1]), _ts(row[2]), row[3])


def _feed(row: tuple) -> Feed:
    return Feed(
        id=uuid.UUID(row[0]),
        created_at=_ts(row[1]),
        updated_at=_ts(row[2]),
        name=row[3],
        url=row[4],
        user_id=uuid.UUID(row[5]),
        last_fetched_at=_ts(row[6]),
    )


def _sqlite_path(url: str) -> str:
    if "://" not in url:
        return url or ":memory:"
    scheme, rest = url.split("://", 1)
    if scheme != "sqlite":
        raise ValueError(f"unsupported database URL: {url}")
    if rest.startswith("/"):
        rest = rest[1:]
    return rest or ":memory:"


def connect(url: str) -> "Queries":
    """Open the database at ``url`` (a path or ``sqlite:///`` URL) and ensure the schema."""
    conn = sqlite3.connect(_sqlite_path(url), isolation_level=None)
    conn.execute("PRAGMA foreign_keys = ON")
    queries = Queries(conn)
    queries.create_schema()
    return queries


class Queries:
    """The queries the application runs against its database."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn
        self._in_tx = False

    def _commit(self) -> None:
        if not self._in_tx and self._conn.in_transaction:
            self._conn.commit()

    def _one(self, sql: str, params: tuple = ()) -> tuple:
        row = self._conn.execute(sql, params).fetchone()
        if row is None:
            raise NotFoundError("no rows in result set")
        return row

    def create_schema(self) -> None:
        """Create the tables if they do not exist yet."""
        for statement in _SCHEMA:
            self._conn.execute(statement)
        self._commit()

    @contextmanager
    def transaction(self) -> Iterator["Queries"]:
        """Run the block's queries in one transaction, rolled back on error."""
        began = not self._conn.in_transaction
        if began:
            self._conn.execute("BEGIN")
        tx = Queries(self._conn)
        tx._in_tx = True
        try:
            yield tx
        except BaseException:
            if began:
                self._conn.rollback()
            raise
        else:
            if began:
                self._conn.commit()

    # users

    def create_user(
        self,
        id: uuid.UUID,
        name: str,
        created_at: datetime | None = None,
        updated_at: datetime | None = None,
    ) -> User:
        self._conn.execute(
            "INSERT INTO users (id, created_at, updated_at, name) VALUES (?, ?, ?, ?)",
            (str(id), _iso(created_at), _iso(updated_at), name),
        )
        self._commit()
        return _user(self._one(f"SELECT {_USER_COLUMNS} FROM users WHERE id = ?", (str(id),)))

    def delete_users(self) -> None:
        self._conn.execute("DELETE FROM users")
        self._commit()

    def get_user(self, name: str) -> User:
        return _user(
            self._one(f"SELECT {_USER_COLUMNS} FROM users WHERE name = ? LIMIT 1", (name,))
        )

    def get_users(self) -> list[User]:
        rows = self._conn.execute(f"SELECT {_USER_COLUMNS} FROM users ORDER BY name ASC")
        return [_user(row) for row in rows]

    # feeds

    def create_feed(
        self,
        id: uuid.UUID,
        name: str,
        url: str,
        user_id: uuid.UUID,
        created_at: datetime | None = None,
        updated_at: datetime | None = None,
    ) -> Feed:
        self._conn.execute(
            "INSERT INTO feed (id, created_at, updated_at, name, url, user_id) "
            "VALUES (?, ?, ?, ?, ?, ?)",
            (str(id), _iso(created_at), _iso(updated_at), name, url, str(user_id)),
        )
        self._commit()
        return _feed(self._one(f"SELECT {_FEED_COLUMNS} FROM feed WHERE id = ?", (str(id),)))

    def get_feeds(self) -> list[FeedListing]:
        rows = self._conn.execute(
            "SELECT feed.name, feed.url, users.name FROM feed "
            "LEFT JOIN users ON feed.user_id = users.id "
            "ORDER BY feed.name ASC"
        )
        return [FeedListing(name, url, user_name) for name, url, user_name in rows]

    def get_feed_by_url(self, url: str) -> Feed:
        return _feed(
            self._one(f"SELECT {_FEED_COLUMNS} FROM feed WHERE url = ? LIMIT 1", (url,))
        )

    def get_next_feed_to_fetch(self) -> Feed:
        return _feed(
            self._one(
                f"SELECT {_FEED_COLUMNS} FROM feed "
                "ORDER BY last_fetched_at IS NOT NULL, last_fetched_at ASC LIMIT 1"
            )
        )

    def mark_feed_fetched(self, id: uuid.UUID) -> Feed:
        now = datetime.now(timezone.utc).isoformat()
        cursor = self._conn.execute(
            "UPDATE feed SET last_fetched_at = ?, updated_at = ? WHERE id = ?",
            (now, now, str(id)),
        )
        self._commit()
        if cursor.rowcount == 0:
            raise NotFoundError("no rows in result set")
        return _feed(self._one(f"SELECT {_FEED_COLUMNS} FROM feed WHERE id = ?", (str(id),)))

    # feed follows

    def create_feed_follow(
        self,
        id: uuid.UUID,
        user_id: uuid.UUID,
        feed_id: uuid.UUID,
        created_at: datetime | None = None,
        updated_at: datetime | None = None,
    ) -> FeedFollowDetails:
        self._conn.execute(
            "INSERT INTO feed_follows (id, created_at, updated_at, user_id, feed_id) "
            "VALUES (?, ?, ?, ?, ?)",
            (str(id), _iso(created_at), _iso(updated_at), str(user_id), str(feed_id)),
        )
        self._commit()
        row = self._one(
            "SELECT ff.id, ff.created_at, ff.updated_at, ff.user_id, ff.feed_id, "
            "feed.name, users.name FROM feed_follows AS ff "
            "LEFT JOIN feed ON feed.id = ff.feed_id "
            "LEFT JOIN users ON users.id = ff.user_id "
            "WHERE ff.id = ?",
            (str(id),),
        )
        return FeedFollowDetails(
            id=uuid.UUID(row[0]),
            created_at=_ts(row[1]),
            updated_at=_ts(row[2]),
            user_id=uuid.UUID(row[3]),
            feed_id=uuid.UUID(row[4]),
            feed_name=row[5],
            user_name=row[6],
        )

    def delete_feed_follow(self, user_id: uuid.UUID, feed_id: uuid.UUID) -> None:
        self._conn.execute(
            "DELETE FROM feed_follows WHERE user_id = ? AND feed_id = ?",
            (str(user_id), str(feed_id)),
        )
        self._commit()

    def get_feed_follows_for_user(self, user_id: uuid.UUID) -> list[FollowedFeed]:
        rows = self._conn.execute(
            "SELECT feed.name, users.name FROM feed_follows "
            "LEFT JOIN feed ON feed.id = feed_follows.feed_id "
            "LEFT JOIN users ON users.id = feed_follows.user_id "
            "WHERE feed_follows.user_id = ? "
            "ORDER BY feed_follows.rowid",
            (str(user_id),),
        )
        return [FollowedFeed(feed_name, user_name) for feed_name, user_name in rows]