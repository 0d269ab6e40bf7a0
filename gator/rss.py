"""Fetching and parsing RSS feeds."""

from __future__ import annotations

import urllib.error
import urllib.request
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field

USER_AGENT = "gator"


class FeedFetchError(Exception):
    """Raised when a feed cannot be downloaded or parsed."""


@dataclass
class RSSItem:
    title: str = ""
    link: str = ""
    description: str = ""
    pub_date: str = ""


@dataclass
class RSSFeed:
    title: str = ""
    link: str = ""
    description: str = ""
    items: list[RSSItem] = field(default_factory=list)


def _text(element: ET.Element) -> str:
    """Character data directly inside ``element``; nested elements are skipped."""
    return (element.text or "") + "".join(child.tail or "" for child in element)


def _child_text(parent: ET.Element, tag: str, default: str = "") -> str:
    matches = parent.findall(tag)
    return _text(matches[-1]) if matches else default


def _parse_item(element: ET.Element) -> RSSItem:
    return RSSItem(
        title=_child_text(element, "title"),
        link=_child_text(element, "link"),
        description=_child_text(element, "description"),
        pub_date=_child_text(element, "pubDate"),
    )


def parse_feed(data: bytes | str) -> RSSFeed:
    """Parse an RSS document into an :class:`RSSFeed`."""
    try:
        root = ET.fromstring(data)
    except ET.ParseError as exc:
        raise FeedFetchError(f"Unmarshal error {exc}") from exc

    feed = RSSFeed()
    for channel in root.findall("channel"):
        feed.title = _child_text(channel, "title", feed.title)
        feed.link = _child_text(channel, "link", feed.link)
        feed.description = _child_text(channel, "description", feed.description)
        feed.items.extend(_parse_item(item) for item in channel.findall("item"))
    return feed


def fetch_feed(url: str, timeout: float | None = None) -> RSSFeed:
    """Download the feed at ``url`` and parse it."""
    request = urllib.request.Request(url, headers={"User-Agent": USER_AGENT}, method="GET")
    try:
        with urllib.request.urlopen(request, timeout=timeout) as response:
            if response.status != 200:
                raise FeedFetchError(f"status code {response.status}")
            body = response.read()
    except urllib.error.HTTPError as exc:
        raise FeedFetchError(f"status code {exc.code}") from exc
    except (urllib.error.URLError, OSError, ValueError) as exc:
        raise FeedFetchError(str(exc)) from exc
    return parse_feed(body)