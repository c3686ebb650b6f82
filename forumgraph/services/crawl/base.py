from __future__ import annotations

from typing import Iterator, Optional

from forumgraph.models.records import CRAWLABLE_TYPES, Link, PageRecord


class Spider:
    """Minimal spider contract.

    Subclasses implement scrape() to fetch one page and return its PageRecord.
    The crawler awaits exactly one scrape() at a time.
    """

    name: str = "base"

    async def login(self, username: Optional[str], password: Optional[str]) -> bool:
        return False

    async def scrape(self, url: str) -> PageRecord:
        raise NotImplementedError

    async def aclose(self) -> None:
        return None


def accept_link(link: Link, base_url: str) -> bool:
    """Only same-origin links to forums, threads, groups and users are crawled."""
    return link.url.startswith(base_url) and link.type in CRAWLABLE_TYPES


def links_to_follow(record: PageRecord, base_url: str) -> Iterator[str]:
    for link in record.links:
        if accept_link(link, base_url):
            yield link.url
