"""Forum crawling subsystem.

Structure:
- base.py: spider contract and link filtering
- frontier.py: deduplicated pending queue + finished set, JSON snapshots
- spiders/: page parsers (phpBB)
- crawler.py: asyncio orchestrator (fetch slot, cache and checkpoint timers)
- runner.py: CLI entrypoint

Only one page is fetched at a time, which also rate-limits the crawl.
"""
