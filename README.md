# gator

`gator` is a small command-line RSS aggregator. You register users, add
feeds, follow the feeds you care about, and let the aggregator fetch them
on a fixed interval, printing the title of every post it finds. Everything
is kept in a SQLite database. It needs nothing beyond the Python standard
library.

## Installation

```
pip install .
```

## Configuration

`gator` reads its settings from `.gatorconfig.json` in your home directory.
The file must exist before any command is run; create it by hand:

```json
{"db_url": "gator.db", "current_user_name": ""}
```

- `db_url` — the SQLite database: either a file path (`gator.db`) or a
  `sqlite:///` URL (`sqlite:///gator.db`). An empty value, or
  `sqlite://` with no path, opens an in-memory database that is gone when
  the command ends. Any other URL scheme is rejected. The tables are created
  on first use.
- `current_user_name` — the logged-in user. `gator` rewrites this field
  itself when you run `login` or `register`.

## Usage

```
gator <command> [args...]
```

The command exits with status 0 on success and 1 on any error; errors and
progress messages are logged to standard error with a timestamp.

### Users

| Command                 | What it does                                                  |
|-------------------------|---------------------------------------------------------------|
| `gator register <name>` | Create a user and make them the current user. Fails if the name is taken. |
| `gator login <name>`    | Switch to an existing user. Fails if no such user exists.      |
| `gator users`           | List all users by name, marking the current one `(current)`.   |
| `gator reset`           | Delete every user, and with them their feeds and follows.      |

### Feeds

These commands act as the current user, so register or log in first.

| Command                      | What it does                                           |
|------------------------------|--------------------------------------------------------|
| `gator addfeed <name> <url>` | Add a feed, follow it, and print its name and URL.      |
| `gator follow <url>`         | Follow a feed that has already been added.             |
| `gator unfollow <url>`       | Stop following a feed.                                 |
| `gator following`            | Print your name and id, then each followed feed's name and your name. |

`gator feeds` lists every feed, printing its name, its URL and the name of
the user who added it, each on its own line.

A feed URL can be added only once, and a user can follow a given feed only
once.

### Aggregating

```
gator agg 1m
```

This runs until interrupted. On each pass it fetches the feed that was
fetched least recently (feeds never fetched come first), marks it fetched,
and prints `Found post: <title>` for every item in it. The first pass runs
at once, then one pass per interval.

The interval is a duration made of numbers with units, such as `30s`,
`1m`, `1h30m` or `1.5h`; the units are `ns`, `us` (or `µs`), `ms`, `s`,
`m` and `h`. It must be greater than zero. Stop the loop with Ctrl-C, which
exits with status 130.

A feed that cannot be downloaded or parsed is logged and skipped; the loop
goes on.

## Example

```
gator register alice
gator addfeed "Example Blog" https://blog.example.com/rss.xml
gator following
gator agg 30s
```

## What gator does not do

Posts are not stored: `agg` only prints the titles it finds. There is no
command to browse posts later, and none to remove a feed once added (only
`reset`, which removes all users and everything that belongs to them).

## Library use

The pieces behind the commands can also be used directly:

- `gator.config` — `read(path)` and `write(cfg, path)` load and save a
  `Config`; both use `~/.gatorconfig.json` when `path` is `None`.
  `Config.set_user(name)` sets the current user and saves the file.
- `gator.database` — `connect(url)` opens a database and returns a
  `Queries` object with the queries on users, feeds and follows
  (`create_user`, `get_user`, `get_users`, `delete_users`, `create_feed`,
  `get_feeds`, `get_feed_by_url`, `get_next_feed_to_fetch`,
  `mark_feed_fetched`, `create_feed_follow`, `delete_feed_follow`,
  `get_feed_follows_for_user`). `Queries.transaction()` is a context manager
  that commits on success and rolls back on error. Lookups that find
  nothing raise `NotFoundError`.
- `gator.rss` — `parse_feed(data)` turns an RSS document into an `RSSFeed`
  of `RSSItem`s; `fetch_feed(url, timeout)` downloads and parses one. Both
  raise `FeedFetchError` on failure.
- `gator.commands` — the command registry (`Commands`, `Command`, `State`,
  `default_commands`), the `logged_in` wrapper, `parse_duration`, and one
  handler function per command. Handlers raise `CommandError` on misuse.
- `gator.cli` — `main(argv)`, the entry point behind the `gator` command.