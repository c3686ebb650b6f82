import asyncio
import json

from forumgraph.config import CrawlerConfig
from forumgraph.db.turtle_store import GraphWriteError
from forumgraph.models.records import Link, PageRecord, PageType, Post
from forumgraph.services.crawl.base import Spider
from forumgraph.services.crawl.crawler import Crawler
from forumgraph.services.crawl.frontier import CrawlFrontier
from forumgraph.services.crawl.spiders.phpbb_spider import SpiderError
from forumgraph.services.graph.cache import GraphCache
from forumgraph.services.graph.store import GraphStore

BASE = "https://forum.example/"
FORUM = BASE + "general-f2/"
THREAD = BASE + "hello-t5.html"
BOB = BASE + "member/bob-u2/"
BROKEN = BASE + "broken-f9/"


class FakeSpider(Spider):
    def __init__(self, pages):
        self.pages = pages
        self.calls = []
        self.closed = False

    async def scrape(self, url):
        self.calls.append(url)
        await asyncio.sleep(0)
        if url not in self.pages:
            raise SpiderError(f"No content at '{url}'")
        return self.pages[url]

    async def aclose(self):
        self.closed = True


def make_config(tmp_path, **overrides):
    data = dict(
        base_url=BASE,
        out_dir=str(tmp_path),
        scrap_interval_ms=1,
        cache_tick_interval_ms=5,
        checkpoint_interval_ms=60_000,
        stats_interval_ms=60_000,
        max_retries=2,
    )
    data.update(overrides)
    return CrawlerConfig(**data)


def run(crawler):
    return asyncio.run(asyncio.wait_for(crawler.run(until_empty=True), 10))


def site_pages():
    return {
        BASE: PageRecord(
            type=PageType.ROOT, url=BASE, title="Fórum",
            links=[Link(url=FORUM, type=PageType.FORUM), Link(url=THREAD, type=PageType.THREAD)],
        ),
        FORUM: PageRecord(
            type=PageType.FORUM, url=FORUM, title="General", phpbbid=2,
            parent_forum_url=BASE, links=[Link(url=THREAD, type=PageType.THREAD)],
        ),
        THREAD: PageRecord(
            type=PageType.THREAD, url=THREAD, title="Hello", phpbbid=5,
            forum_url=FORUM, parent_forum_url=FORUM,
            posts=[Post(phpbbid=100, author_url=BOB, content="Hi", likes=[BOB])],
            links=[Link(url=BOB, type=PageType.USER), Link(url=BASE, type=PageType.ROOT)],
        ),
        BOB: PageRecord(type=PageType.USER, url=BOB, username="bob", phpbbid=2),
    }


def test_crawl_until_empty_writes_graphs_and_snapshot(tmp_path):
    spider = FakeSpider(site_pages())
    crawler = Crawler(make_config(tmp_path), spider=spider)

    result = run(crawler)

    assert spider.calls == [BASE, FORUM, THREAD, BOB]
    assert spider.closed
    assert crawler.processed == 4
    assert crawler.failed == 0
    assert result["frontier"] == {"queue": 0, "finished": 4}

    site_dir = tmp_path / "forum.example"
    for name in ["index.ttl", "general-f2.ttl", "hello-t5.ttl", "member/bob-u2.ttl"]:
        assert (site_dir / name).is_file(), name

    with open(tmp_path / "queue.json", encoding="utf-8") as f:
        snapshot = json.load(f)
    assert snapshot == {"queue": [], "finished": sorted([BASE, FORUM, THREAD, BOB])}


def test_restart_resumes_from_the_snapshot(tmp_path):
    pages = site_pages()
    run(Crawler(make_config(tmp_path), spider=FakeSpider(pages)))

    spider = FakeSpider(pages)
    crawler = Crawler(make_config(tmp_path), spider=spider)
    run(crawler)
    assert spider.calls == []
    assert crawler.processed == 0


def test_failing_url_is_retried_then_given_up(tmp_path):
    pages = {
        BASE: PageRecord(type=PageType.ROOT, url=BASE, links=[Link(url=BROKEN, type=PageType.FORUM)]),
    }
    spider = FakeSpider(pages)
    crawler = Crawler(make_config(tmp_path, max_retries=2), spider=spider)

    run(crawler)

    assert spider.calls.count(BROKEN) == 3
    assert crawler.failed == 1
    assert crawler.processed == 1
    assert BROKEN in crawler.frontier.finished


class GateSpider(Spider):
    def __init__(self):
        self.gate = asyncio.Event()

    async def scrape(self, url):
        await self.gate.wait()
        return PageRecord(type=PageType.ROOT, url=url, title="Fórum")


def test_single_fetch_in_flight_and_checkpoint_keeps_it(tmp_path):
    config = make_config(tmp_path)

    async def scenario():
        spider = GateSpider()
        frontier = CrawlFrontier(BASE)
        frontier.discover(FORUM)
        crawler = Crawler(config, spider=spider, frontier=frontier)

        assert crawler.scrape_tick() is True
        assert crawler.scrape_tick() is False
        assert crawler.stats()["inflight"] == BASE

        crawler.checkpoint()
        with open(config.queue_path, encoding="utf-8") as f:
            assert json.load(f)["queue"] == [BASE, FORUM]

        task = crawler._inflight
        spider.gate.set()
        await task
        await asyncio.sleep(0)
        assert crawler.processed == 1
        assert crawler.stats()["inflight"] is None
        assert frontier.pending == [FORUM]

    asyncio.run(asyncio.wait_for(scenario(), 10))


def test_stop_before_run_returns_immediately(tmp_path):
    spider = FakeSpider(site_pages())
    crawler = Crawler(make_config(tmp_path, scrap_interval_ms=60_000), spider=spider)
    crawler.stop()

    result = asyncio.run(asyncio.wait_for(crawler.run(), 10))

    assert spider.calls == []
    assert result["frontier"]["queue"] == 1
    assert (tmp_path / "queue.json").is_file()


def _failing_writer(path, graph):
    raise GraphWriteError(path, OSError("No space left on device"))


def test_failed_graph_write_keeps_the_previous_snapshot(tmp_path, caplog):
    queue_file = tmp_path / "queue.json"
    previous = {"queue": [BASE], "finished": []}
    queue_file.write_text(json.dumps(previous), encoding="utf-8")
    pages = {BASE: PageRecord(type=PageType.ROOT, url=BASE, title="Fórum")}
    config = make_config(tmp_path)

    store = GraphStore(BASE, str(tmp_path), GraphCache(writer=_failing_writer))
    crawler = Crawler(config, spider=FakeSpider(pages), store=store)
    result = run(crawler)

    assert result["saved"] is False
    assert result["cache"]["failed"] == 1
    assert store.cache.stats()["dirty"] == 1
    assert json.loads(queue_file.read_text(encoding="utf-8")) == previous
    assert "frontier snapshot not advanced" in caplog.text

    spider = FakeSpider(pages)
    result = run(Crawler(config, spider=spider))
    assert spider.calls == [BASE]
    assert result["saved"] is True
    assert (tmp_path / "forum.example" / "index.ttl").is_file()


class _RecordingFrontier(CrawlFrontier):
    def __init__(self, seed=None):
        self.discovered = []
        super().__init__(seed)

    def discover(self, url):
        self.discovered.append(url)
        return super().discover(url)


def test_self_links_are_not_queued_again(tmp_path):
    frontier = _RecordingFrontier(THREAD)
    crawler = Crawler(make_config(tmp_path), spider=FakeSpider({}), frontier=frontier)
    url = frontier.next()
    record = PageRecord(
        type=PageType.THREAD, url=THREAD, title="Hello", phpbbid=5,
        links=[Link(url=THREAD, type=PageType.THREAD), Link(url=FORUM, type=PageType.FORUM)],
    )

    crawler.absorb(url, record)

    assert frontier.discovered == [FORUM]
    assert frontier.pending == [FORUM]
    assert THREAD in frontier.finished
