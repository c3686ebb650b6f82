import asyncio
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI

from forumgraph.config import load_config
from forumgraph.services.crawl.crawler import Crawler

from forumgraph.api.routers.crawl import router as crawl_router


def build_crawler() -> Crawler:
    return Crawler(load_config(os.getenv("FORUMGRAPH_CONFIG")))


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Run the crawler next to the API; stopping the app flushes graphs and frontier."""
    crawler = build_crawler()
    app.state.crawler = crawler
    task = asyncio.ensure_future(crawler.run())
    try:
        yield
    finally:
        crawler.stop()
        await task
        app.state.crawler = None


app = FastAPI(title="forumgraph", version="0.1", lifespan=lifespan)

app.include_router(crawl_router)
