"""phpBB (prosilver, SEO URLs) page spider.

Turns one forum page into a PageRecord: classified links, breadcrumb parent,
pagination, and the type-specific content of forum, thread, group and user
profile pages. Profile labels are matched in Czech and English.

parse_html() works on raw markup so pages can be parsed from fixtures; scrape()
fetches through a shared httpx.AsyncClient that keeps the login session cookies.
"""
from __future__ import annotations

import logging
import re
import unicodedata
from typing import Dict, List, Optional
from urllib.parse import urljoin, urlparse

import httpx
from selectolax.parser import HTMLParser, Node

from forumgraph.models.records import Link, PageRecord, PageType, Post
from ..base import Spider

logger = logging.getLogger(__name__)

ROOT_URL = re.compile(r"^https?://[^/]+/$")
FORUM_URL = re.compile(r"^http.*-f(\d+)/$")
FORUM_PAGE_URL = re.compile(r"^http.*-f(\d+)/page(\d+)\.html$")
THREAD_URL = re.compile(r"^http.*-t(\d+)(-\d+)?\.html$")
POST_URL = re.compile(r"^http.*\.html#p(\d+)/$")
USER_URL = re.compile(r"^http.*-u(\d+)/$")
GROUP_URL = re.compile(r"^http.*-g(\d+)(-\d+)?\.html$")

FORUM_ID = re.compile(r"-f(\d+)/(page\d+\.html)?$")
THREAD_ID = re.compile(r"-t(\d+)(-\d+)?\.html$")
USER_ID = re.compile(r"-u(\d+)/$")
GROUP_ID = re.compile(r"-g(\d+)(-\d+)?\.html$")

FORUM_DATE = re.compile(r"(\d{1,2})\s+(\S+)\s+(\d{4}),?\s+(\d{1,2}:\d{2})")

MONTHS = {
    "led": "01", "úno": "02", "bře": "03", "dub": "04", "kvě": "05", "čer": "06",
    "črc": "07", "srp": "08", "zář": "09", "říj": "10", "lis": "11", "pro": "12",
}

LOGIN_PATH = "ucp.php?mode=login"
UNREGISTERED_USER = "http://unregistered.user/"


class SpiderError(Exception):
    """A page could not be fetched or had no content."""


def link_type(url: Optional[str]) -> PageType:
    if not url:
        return PageType.NONE
    if FORUM_URL.match(url) or FORUM_PAGE_URL.match(url):
        return PageType.FORUM
    if THREAD_URL.match(url):
        return PageType.THREAD
    if POST_URL.match(url):
        return PageType.POST
    if USER_URL.match(url):
        return PageType.USER
    if GROUP_URL.match(url):
        return PageType.GROUP
    if ROOT_URL.match(url):
        return PageType.ROOT
    return PageType.NONE


def first_page_url(url: str, type_: PageType) -> str:
    if type_ == PageType.FORUM:
        return re.sub(r"/page\d+\.html$", "/", url)
    if type_ in (PageType.GROUP, PageType.THREAD):
        return re.sub(r"-\d+\.html$", ".html", url)
    return url


def parse_forum_date(text: Optional[str]) -> Optional[str]:
    """'14 úno 2016, 10:12' -> '2016-02-14 10:12'; other formats pass through."""
    t = (text or "").strip()
    if not t or t == "-":
        return None
    m = FORUM_DATE.search(t)
    if m and m.group(2).lower() in MONTHS:
        day, month, year, clock = m.groups()
        return f"{year}-{MONTHS[month.lower()]}-{int(day):02d} {clock}"
    return t


def normalize_name(name: str) -> str:
    s = unicodedata.normalize("NFKD", name.lower().replace("@", ""))
    s = "".join(c for c in s if not unicodedata.combining(c))
    return re.sub(r"-+", "-", re.sub(r"\s", "-", s))


def _id(pattern: re.Pattern, url: str) -> Optional[int]:
    m = pattern.search(url)
    return int(m.group(1)) if m else None


def _int(text: Optional[str]) -> Optional[int]:
    m = re.search(r"\d+", text or "")
    return int(m.group(0)) if m else None


def _text(node: Optional[Node]) -> Optional[str]:
    if node is None:
        return None
    return node.text(strip=True) or None


def _own_text(node: Node) -> str:
    """Text of ``node`` without the text of its child elements."""
    return " ".join(
        child.text() or ""
        for child in node.iter(include_text=True)
        if child.tag == "-text"
    )


class PhpbbSpider(Spider):
    name = "phpbb"

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 10.0,
        headers: Optional[Dict[str, str]] = None,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.base_url = base_url
        self.timeout = float(timeout)
        self.headers = headers or {"User-Agent": "forumgraph/0.1"}
        self._client = client

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout, headers=self.headers, follow_redirects=True)
        return self._client

    # --- Public API ---
    async def login(self, username: Optional[str], password: Optional[str]) -> bool:
        """Open a logged-in session; without credentials the crawl runs anonymously."""
        if not username or not password:
            return False
        form = {
            "username": username,
            "password": password,
            "viewonline": "on",
            "login": "Přihlásit se",
        }
        resp = await self.client.post(urljoin(self.base_url, LOGIN_PATH), data=form)
        resp.raise_for_status()
        logger.info("Logged in to %s as %s", self.base_url, username)
        return True

    async def scrape(self, url: str) -> PageRecord:
        try:
            resp = await self.client.get(url)
            resp.raise_for_status()
        except httpx.HTTPError as exc:
            raise SpiderError(f"Fetching '{url}' failed: {exc}") from exc
        if not resp.text:
            raise SpiderError(f"No content at '{url}'")
        return self.parse_html(url, resp.text)

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    def parse_html(self, url: str, html: str) -> PageRecord:
        doc = HTMLParser(html)
        record = PageRecord(url=url, type=link_type(url))
        record.links = self._links(doc, url)
        self._parent(doc, record)
        self._pagination(doc, record)

        if record.type == PageType.ROOT:
            record.title = _text(doc.css_first("title"))
            self._forum(doc, record)
        elif record.type == PageType.FORUM:
            self._forum(doc, record)
        elif record.type == PageType.THREAD:
            self._thread(doc, record)
        elif record.type == PageType.USER:
            self._user(doc, record)
        elif record.type == PageType.GROUP:
            self._group(doc, record)
        return record

    # --- Page parts ---
    @staticmethod
    def _links(doc: HTMLParser, page_url: str) -> List[Link]:
        links: List[Link] = []
        for a in doc.css("a"):
            href = a.attributes.get("href")
            if not href:
                continue
            url = re.sub(r"#wrap$", "", urljoin(page_url, href))
            type_ = link_type(url)
            if type_ != PageType.NONE:
                links.append(Link(url=url, type=type_, title=a.text(strip=True)))
        return links

    @staticmethod
    def _parent(doc: HTMLParser, record: PageRecord) -> None:
        crumbs = [
            a.attributes.get("href")
            for a in doc.css("div#page-header div.navbar ul.navlinks li.icon-home a")
        ]
        crumbs = [urljoin(record.url, c) for c in crumbs if c]
        if crumbs:
            record.forum_url = crumbs[-1]
        if len(crumbs) > 1:
            record.parent_forum_url = crumbs[-2]

    @staticmethod
    def _pagination(doc: HTMLParser, record: PageRecord) -> None:
        record.page = _int(_text(doc.css_first(".pagination a strong"))) or 0
        if record.page > 0:
            record.first_page_url = first_page_url(record.url, record.type)

    @staticmethod
    def _forum(doc: HTMLParser, record: PageRecord) -> None:
        record.phpbbid = _id(FORUM_ID, record.url)
        title = _text(doc.css_first("div#page-body > h2"))
        if title:
            record.title = title

    def _thread(self, doc: HTMLParser, record: PageRecord) -> None:
        record.phpbbid = _id(THREAD_ID, record.url)
        record.title = _text(doc.css_first("div#page-body > h2"))
        for node in doc.css(".post"):
            post = self._post(node, record.url)
            if post is not None:
                record.posts.append(post)

    @staticmethod
    def _post(node: Node, page_url: str) -> Optional[Post]:
        body = node.css_first("div.postbody")
        if body is None:
            return None
        author = body.css_first("p.author")
        if author is None:
            return None
        post_id = _int(node.attributes.get("id"))
        if post_id is None:
            return None

        author_link = author.css_first("strong a")
        if author_link is not None and author_link.attributes.get("href"):
            author_url = urljoin(page_url, author_link.attributes["href"])
            author_name = author_link.text(strip=True)
        else:
            author_name = _text(author.css_first("strong span")) or ""
            author_url = UNREGISTERED_USER + normalize_name(author_name)

        title_link = body.css_first("h3 a")
        contents = body.css("div.content")
        likes = []
        if contents:
            likes = [
                urljoin(page_url, a.attributes["href"])
                for a in contents[-1].css("dl.postbody dd a")
                if a.attributes.get("href")
            ]
        created = re.sub(r"^\s*od\s*»\s*|^\s*by\s*»\s*", "", _own_text(author).replace("\xa0", " "))
        return Post(
            phpbbid=post_id,
            url=urljoin(page_url, title_link.attributes.get("href") or "") if title_link else None,
            title=_text(title_link),
            author_url=author_url,
            author_name=author_name,
            created=parse_forum_date(created),
            content=contents[0].html if contents else None,
            likes=likes,
        )

    @staticmethod
    def _group(doc: HTMLParser, record: PageRecord) -> None:
        record.phpbbid = _id(GROUP_ID, record.url)
        record.title = _text(doc.css_first("h2"))
        for row in doc.css("tbody tr"):
            link = row.css_first("td a")
            if link is not None and link.attributes.get("href"):
                record.users.append(urljoin(record.url, link.attributes["href"]))

    def _user(self, doc: HTMLParser, record: PageRecord) -> None:
        record.phpbbid = _id(USER_ID, record.url)
        record.title = _text(doc.css_first("dl.details dd span"))
        signature = doc.css_first(".signature")
        record.signature = signature.html if signature is not None else None
        avatar = doc.css_first("form#viewprofile div.panel dl dt img")
        if avatar is not None:
            record.avatar_src = avatar.attributes.get("src")

        for dt in doc.css("form#viewprofile dl dt"):
            label = (dt.text(strip=True) or "").rstrip(":").lower()
            dd = dt.next
            while dd is not None and dd.tag not in ("dd", "dt"):
                dd = dd.next
            if dd is None or dd.tag != "dd":
                self._likes(record, label)
                continue
            self._profile_field(record, label, dd)

    def _profile_field(self, record: PageRecord, label: str, dd: Node) -> None:
        value = dd.text(strip=True) or None
        if label in ("uživatelské jméno", "username"):
            record.username = _text(dd.css_first("span")) or value
        elif label in ("bydliště", "location"):
            record.address = value
        elif label in ("věk", "age"):
            record.age = _int(value)
        elif label in ("skupiny", "groups"):
            for option in dd.css("select option"):
                group_id = option.attributes.get("value")
                if not group_id:
                    continue
                group_url = self._group_url(record.url, group_id, option.text(strip=True))
                if "selected" in option.attributes:
                    record.default_group = group_url
                record.groups[group_id] = group_url
        elif label in ("profese",):
            record.profession = value
        elif label in ("zájmy", "interests"):
            record.interests = value
        elif label in ("povolání", "occupation"):
            record.occupation = value
        elif label in ("zobrazit bydliště na mapě",):
            record.show_on_map = value == "Ano"
        elif label in ("hodnost", "rank"):
            record.rank = value
        elif label == "icq":
            link = dd.css_first("a")
            href = link.attributes.get("href") if link is not None else None
            if href:
                record.icq = re.sub(r"^https?://www\.icq\.com/people/", "", href).strip("/")
        elif label in ("www", "website"):
            link = dd.css_first("a")
            record.www = link.attributes.get("href") if link is not None else value
        elif label == "jabber":
            record.jabber = value
        elif label in ("registrován", "joined"):
            record.registered = parse_forum_date(value)
        elif label in ("poslední návštěva", "last active"):
            record.last_visit = parse_forum_date(value)
        elif label in ("celkem příspěvků", "total posts"):
            record.total_posts = _int(value)
        else:
            self._likes(record, label)

    @staticmethod
    def _likes(record: PageRecord, label: str) -> None:
        if label.startswith("dal poděkování"):
            record.likes_gave = _int(label)
        elif label.startswith("dostal poděkování"):
            record.likes_got = _int(label)

    @staticmethod
    def _group_url(page_url: str, group_id: str, name: str) -> str:
        if group_id == "2":
            name = "registered"
        u = urlparse(page_url)
        return f"{u.scheme}://{u.netloc}/{normalize_name(name)}-g{group_id}.html"
