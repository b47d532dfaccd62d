"""DWV scraper routes."""

from datetime import datetime, timezone

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from loguru import logger

from src.api.dependencies import (
    CredentialsRequest,
    ScrapeUrlRequest,
    get_pipeline,
    get_public_http,
    resolve_credentials,
)
from src.crawler.errors import ScraperError
from src.crawler.extractors.public import is_public_url, scrape_public_url
from src.crawler.http_client import HttpClient
from src.jobs.pipeline import Pipeline

dwv_log = logger.bind(module="DwvRoutes")

router = APIRouter(prefix="/dwv", tags=["DWV"])


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


@router.post("/process")
async def run_process(
    body: CredentialsRequest | None = None,
    pipeline: Pipeline = Depends(get_pipeline),
) -> JSONResponse:
    """Run the full scraping pipeline."""
    dwv_log.info("Pipeline run requested via API")
    result = await pipeline.run(resolve_credentials(body))

    content = result.model_dump(by_alias=True)
    content["timestamp"] = _timestamp()
    return JSONResponse(status_code=200 if result.success else 500, content=content)


@router.post("/auth-test")
async def test_auth(
    body: CredentialsRequest | None = None,
    pipeline: Pipeline = Depends(get_pipeline),
) -> JSONResponse:
    """Run only the authentication chain. Cookie values are never returned."""
    dwv_log.info("Authentication test requested via API")
    result = await pipeline.auth_chain.authenticate(resolve_credentials(body))

    session = result.session
    content = {
        "success": result.success,
        "message": result.message,
        "method": result.method_used,
        "sessionId": session.identifier if session else None,
        "sessionExpires": session.expires_at.isoformat() if session else None,
        "cookies": "[hidden]" if session and session.cookie_header else None,
        "timestamp": _timestamp(),
    }
    return JSONResponse(status_code=200 if result.success else 500, content=content)


@router.get("/status")
async def get_status(pipeline: Pipeline = Depends(get_pipeline)) -> dict:
    """Whether a run is in progress and how the last one went."""
    return {"success": True, "data": pipeline.status()}


@router.post("/scrape-url")
async def scrape_url(
    body: ScrapeUrlRequest | None = None,
    http: HttpClient = Depends(get_public_http),
) -> JSONResponse:
    """Scrape listings from one public listing page. Nothing is saved."""
    url = (body.url or "").strip() if body else ""
    if not url:
        return JSONResponse(status_code=400, content={"success": False, "error": "url is required"})
    if not is_public_url(url):
        return JSONResponse(status_code=400, content={"success": False, "error": "url must be an http(s) URL"})

    dwv_log.info(f"Public page scrape requested via API: {url}")
    try:
        listings = await scrape_public_url(http, url)
    except ScraperError as e:
        dwv_log.error(f"Scrape of {url} failed: {e}")
        return JSONResponse(
            status_code=500,
            content={
                "success": False,
                "error": str(e),
                "listings": [],
                "totalFound": 0,
                "timestamp": _timestamp(),
            },
        )

    return JSONResponse(
        status_code=200,
        content={
            "success": True,
            "listings": [listing.model_dump(mode="json") for listing in listings],
            "totalFound": len(listings),
            "timestamp": _timestamp(),
        },
    )
