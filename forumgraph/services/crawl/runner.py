from __future__ import annotations

import argparse
import asyncio
import json
import logging
import os
import signal
from typing import Any, Dict, Optional

from forumgraph.config import CrawlerConfig, load_config
from forumgraph.services.graph.cache import GraphCache
from forumgraph.services.graph.merge import GraphMerger
from forumgraph.services.graph.store import GraphStore
from .crawler import Crawler
from .spiders.phpbb_spider import PhpbbSpider

logger = logging.getLogger(__name__)


def _configure_logging(level: Optional[str] = None) -> None:
    if logging.getLogger().handlers:
        return
    level = (level or os.getenv("LOG_LEVEL") or "INFO").upper()
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


async def run_crawl(config: CrawlerConfig, *, until_empty: bool = False) -> Dict[str, Any]:
    """Crawl with SIGINT/SIGTERM wired to a clean stop (flush + frontier snapshot)."""
    crawler = Crawler(config)
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, crawler.stop)
        except (NotImplementedError, RuntimeError):
            # no signal handlers outside the main thread / on Windows loops
            pass
    try:
        return await crawler.run(until_empty=until_empty)
    finally:
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.remove_signal_handler(sig)
            except (NotImplementedError, RuntimeError):
                pass


def parse_page(config: CrawlerConfig, url: str, html: str, *, merge: bool = False) -> Dict[str, Any]:
    """Parse one saved page; with ``merge`` also write it into the graph store."""
    record = PhpbbSpider(config.base_url).parse_html(url, html)
    if merge:
        store = GraphStore(config.base_url, config.out_dir, GraphCache(config.cache_max_files, config.cache_ttl_seconds))
        GraphMerger(config.base_url, store, language=config.language).apply(record)
        summary = store.flush()
        logger.info("Merged %s: %s", url, summary.to_dict())
    return record.model_dump(mode="json")


def main(argv: Optional[list] = None) -> int:
    parser = argparse.ArgumentParser(description="Crawl a phpBB forum into per-entity Turtle graphs")
    parser.add_argument("--config", default=None, help="JSON config file (default: ./config.json if present)")
    parser.add_argument("--base-url", default=None, help="Forum root URL, overrides the config")
    parser.add_argument("--out-dir", default=None, help="Output directory, overrides the config")
    parser.add_argument("--log-level", default=None, help="DEBUG, INFO, WARNING, ...")
    sub = parser.add_subparsers(dest="cmd", required=True)

    crawl = sub.add_parser("crawl", help="Crawl the forum, resuming from the last checkpoint")
    crawl.add_argument("--until-empty", action="store_true", help="Stop once the frontier is exhausted")

    parse = sub.add_parser("parse", help="Parse a saved forum page and print its record as JSON")
    parse.add_argument("url", help="URL the page was fetched from (drives page type detection)")
    parse.add_argument("--file", required=True, help="Local HTML file path")
    parse.add_argument("--merge", action="store_true", help="Also merge the record into the graph store")

    args = parser.parse_args(argv)
    _configure_logging(args.log_level)
    config = load_config(args.config, base_url=args.base_url, out_dir=args.out_dir)

    if args.cmd == "crawl":
        result = asyncio.run(run_crawl(config, until_empty=args.until_empty))
        print(json.dumps(result, ensure_ascii=False))
        return 0

    if args.cmd == "parse":
        with open(args.file, "r", encoding="utf-8") as f:
            html = f.read()
        record = parse_page(config, args.url, html, merge=args.merge)
        print(json.dumps(record, ensure_ascii=False, indent=1))
        return 0

    parser.error("unknown command")
    return 2


if __name__ == "__main__":
    raise SystemExit(main())
