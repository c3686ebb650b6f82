"""Crawl orchestrator.

One asyncio loop drives four timers: the scrape tick (pops the frontier and
starts a fetch, but only while no fetch is in flight), the cache tick (TTL and
size eviction), the checkpoint tick (flush every graph, then snapshot the
frontier) and the stats tick. The fetch completion callback runs link
discovery, the graph merge and frontier completion before the next scrape
tick can fire, so graph and frontier state are only ever touched by one
code path at a time.
"""
from __future__ import annotations

import asyncio
import logging
from functools import partial
from typing import Any, Callable, Dict, Optional

from forumgraph.config import CrawlerConfig
from forumgraph.models.records import PageRecord
from forumgraph.services.graph.cache import EvictionSummary, GraphCache
from forumgraph.services.graph.merge import GraphMerger
from forumgraph.services.graph.store import GraphStore
from .base import Spider, links_to_follow
from .frontier import CrawlFrontier
from .spiders.phpbb_spider import PhpbbSpider

logger = logging.getLogger(__name__)


class Crawler:
    def __init__(
        self,
        config: CrawlerConfig,
        *,
        spider: Optional[Spider] = None,
        store: Optional[GraphStore] = None,
        frontier: Optional[CrawlFrontier] = None,
    ) -> None:
        self.config = config
        self.base_url = config.base_url
        if store is None:
            cache = GraphCache(config.cache_max_files, config.cache_ttl_seconds)
            store = GraphStore(config.base_url, config.out_dir, cache)
        self.store = store
        self.frontier = frontier if frontier is not None else CrawlFrontier.load(config.queue_path, seed=config.base_url)
        self.merger = GraphMerger(config.base_url, self.store, language=config.language)
        self.spider = spider if spider is not None else PhpbbSpider(
            config.base_url,
            timeout=config.request_timeout,
            headers={"User-Agent": config.user_agent},
        )
        self.processed = 0
        self.failed = 0
        self._inflight: Optional[asyncio.Task] = None
        self._inflight_url: Optional[str] = None
        self._retries: Dict[str, int] = {}
        self._stopping = asyncio.Event()
        self._started = False
        self._until_empty = False

    @property
    def running(self) -> bool:
        return self._started and not self._stopping.is_set()

    # --- Main cycle ---
    def scrape_tick(self) -> bool:
        """Start fetching the next URL if the single fetch slot is free."""
        if self._inflight is not None:
            return False
        url = self.frontier.next()
        if url is None:
            if self._until_empty:
                logger.info("Frontier exhausted")
                self.stop()
            return False
        logger.debug("scraping: %s", url)
        self._inflight_url = url
        self._inflight = asyncio.ensure_future(self.spider.scrape(url))
        self._inflight.add_done_callback(partial(self._on_scraped, url))
        return True

    def absorb(self, url: str, record: PageRecord) -> None:
        """Queue the record's crawlable links, merge it and mark ``url`` finished."""
        for link_url in links_to_follow(record, self.base_url):
            # pages link to themselves; ``url`` is about to be finished
            if link_url != url:
                self.frontier.discover(link_url)
        self.merger.apply(record)
        self.frontier.complete(url)
        self._retries.pop(url, None)
        self.processed += 1

    def _on_scraped(self, url: str, task: asyncio.Task) -> None:
        self._inflight = None
        self._inflight_url = None
        if task.cancelled():
            self.frontier.requeue(url)
            return
        exc = task.exception()
        if exc is not None:
            self._on_failure(url, exc)
            return
        try:
            self.absorb(url, task.result())
        except Exception as merge_exc:
            logger.exception("Merging '%s' failed", url)
            self._on_failure(url, merge_exc)

    def _on_failure(self, url: str, exc: BaseException) -> None:
        attempts = self._retries.get(url, 0) + 1
        if attempts <= self.config.max_retries:
            self._retries[url] = attempts
            logger.warning("%s (attempt %d, requeued)", exc, attempts)
            self.frontier.requeue(url)
            return
        self._retries.pop(url, None)
        self.failed += 1
        logger.error("Giving up on '%s' after %d attempts: %s", url, attempts, exc)
        self.frontier.complete(url)

    # --- Maintenance ---
    def cache_tick(self) -> EvictionSummary:
        summary = self.store.tick()
        if summary.expired or summary.overflow:
            logger.debug("cache tick: %s", summary.to_dict())
        return summary

    def checkpoint(self) -> Dict[str, Any]:
        """Flush all cached graphs and persist the frontier together.

        When any graph fails to write, the previous frontier snapshot is kept:
        the pages merged into the unwritten graphs must be fetched again after
        a restart. The failed graphs stay cached and dirty for the next try.
        """
        logger.info("Saving state and flushing cache...")
        summary = self.store.flush()
        saved = not summary.failed
        if saved:
            self.frontier.save(self.config.queue_path, inflight=self._inflight_url)
        else:
            logger.error(
                "%d graph(s) could not be written, frontier snapshot not advanced",
                len(summary.failed),
            )
        result = {"cache": summary.to_dict(), "frontier": self.frontier.stats(), "saved": saved}
        logger.info("Checkpoint done: %s", result)
        return result

    def stats(self) -> Dict[str, Any]:
        return {
            "running": self.running,
            "inflight": self._inflight_url,
            "processed": self.processed,
            "failed": self.failed,
            "frontier": self.frontier.stats(),
            "cache": self.store.cache.stats(),
        }

    def log_stats(self) -> None:
        logger.info("queue: %(queue)d\tfinished: %(finished)d", self.frontier.stats())

    # --- Lifecycle ---
    async def run(self, *, until_empty: bool = False) -> Dict[str, Any]:
        """Crawl until stop() is called (or the frontier runs dry with ``until_empty``).

        Always ends with a synchronous flush of every graph and a frontier
        snapshot. An in-flight fetch is awaited, never cancelled.
        """
        self._started = True
        self._until_empty = until_empty
        try:
            await self.spider.login(self.config.username, self.config.password)
        except Exception:
            await self.spider.aclose()
            raise
        timers = [
            asyncio.ensure_future(self._every(self.config.scrap_interval_ms, self.scrape_tick)),
            asyncio.ensure_future(self._every(self.config.cache_tick_interval_ms, self.cache_tick)),
            asyncio.ensure_future(self._every(self.config.checkpoint_interval_ms, self.checkpoint)),
            asyncio.ensure_future(self._every(self.config.stats_interval_ms, self.log_stats)),
        ]
        try:
            self.log_stats()
            await self._stopping.wait()
        finally:
            self._stopping.set()
            for timer in timers:
                timer.cancel()
            await asyncio.gather(*timers, return_exceptions=True)
            if self._inflight is not None:
                await asyncio.wait([self._inflight])
            result = self.checkpoint()
            await self.spider.aclose()
        return result

    def stop(self) -> None:
        if not self._stopping.is_set():
            logger.info("Stopping crawler...")
            self._stopping.set()

    async def _every(self, interval_ms: int, fn: Callable[[], Any]) -> None:
        while not self._stopping.is_set():
            try:
                await asyncio.wait_for(self._stopping.wait(), timeout=interval_ms / 1000.0)
            except asyncio.TimeoutError:
                try:
                    fn()
                except Exception:
                    logger.exception("Timer %s failed", getattr(fn, "__name__", fn))
