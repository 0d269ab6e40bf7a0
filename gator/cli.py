"""Command-line entry point for gator."""

from __future__ import annotations

import logging
import sqlite3
import sys

from gator import config
from gator.commands import Command, CommandError, State, default_commands
from gator.database import NotFoundError, connect
from gator.rss import FeedFetchError

logger = logging.getLogger("gator")


def main(argv: list[str] | None = None) -> int:
    """Run one gator command; return the process exit status."""
    args = list(sys.argv[1:] if argv is None else argv)
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(message)s")

    try:
        cfg = config.read()
    except (OSError, ValueError) as exc:
        logger.error("error reading config: %s", exc)
        return 1

    if not args:
        logger.error("Usage: cli <command> [args...]")
        return 1

    try:
        db = connect(cfg.db_url)
    except (sqlite3.Error, ValueError) as exc:
        logger.error("error opening database: %s", exc)
        return 1

    state = State(cfg=cfg, db=db)
    try:
        default_commands().run(state, Command(args[0], args[1:]))
    except (CommandError, NotFoundError, FeedFetchError, sqlite3.Error, OSError, ValueError) as exc:
        logger.error("%s", exc)
        return 1
    except KeyboardInterrupt:
        return 130
    return 0