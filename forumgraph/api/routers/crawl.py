from fastapi import APIRouter, Depends, HTTPException, Request

router = APIRouter(prefix="/crawl", tags=["crawl"])


def get_crawler(request: Request):
    crawler = getattr(request.app.state, "crawler", None)
    if crawler is None:
        raise HTTPException(status_code=503, detail="Crawler not started")
    return crawler


@router.get("/status")
async def api_crawl_status(crawler=Depends(get_crawler)):
    """Frontier sizes, cache occupancy and the URL currently being fetched."""
    return crawler.stats()


@router.post("/checkpoint")
async def api_crawl_checkpoint(crawler=Depends(get_crawler)):
    """Flush every cached graph and persist the frontier now.

    Runs on the event loop that drives the crawler, between two crawl steps.
    """
    return crawler.checkpoint()
