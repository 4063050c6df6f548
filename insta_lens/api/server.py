"""FastAPI server exposing the analysis pipeline to the dashboard."""
import os

from dotenv import load_dotenv

load_dotenv()

import httpx
from fastapi import Depends, FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import Response

from insta_lens.config import load_settings
from insta_lens.models import AnalysisOutcome
from insta_lens.pipeline import AnalysisPipeline
from insta_lens.platforms.instagram import fetch_image
from insta_lens.utils.logging import setup_logging

app = FastAPI(title="insta-lens API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000", "http://127.0.0.1:3000"],
    allow_methods=["GET"],
    allow_headers=["*"],
)

# Error kind -> HTTP status for failed fetches.
ERROR_STATUS = {
    "NotFound": 404,
    "Unauthorized": 401,
    "RateLimited": 429,
    "MalformedResponse": 502,
    "NetworkError": 502,
    "SessionError": 502,
}

# Image hosts the proxy will fetch from (exact host or any subdomain).
PROXY_ALLOWED_HOSTS = ("cdninstagram.com", "fbcdn.net")

_pipeline: AnalysisPipeline | None = None


def get_pipeline() -> AnalysisPipeline:
    """Process-wide pipeline built from the environment on first use."""
    global _pipeline
    if _pipeline is None:
        settings = load_settings()
        setup_logging(settings.log_level)
        _pipeline = AnalysisPipeline.from_settings(settings)
    return _pipeline


def _proxy_allowed(url: str) -> bool:
    try:
        parsed = httpx.URL(url)
    except httpx.InvalidURL:
        return False
    host = parsed.host.lower()
    return parsed.scheme in ("http", "https") and any(
        host == allowed or host.endswith("." + allowed) for allowed in PROXY_ALLOWED_HOSTS
    )


@app.get("/api/health")
def health():
    """Check that required env vars are set."""
    if not os.getenv("OPENAI_API_KEY"):
        raise HTTPException(status_code=503, detail="OPENAI_API_KEY not set")
    return {"status": "ok"}


@app.get("/api/analyze/{username}", response_model=AnalysisOutcome)
async def analyze(
    username: str,
    refresh: bool = False,
    pipeline: AnalysisPipeline = Depends(get_pipeline),
):
    """Cached profile + analysis; ``?refresh=true`` forces a fresh run."""
    outcome = await pipeline.run(username, refresh=refresh)
    if outcome.error:
        raise HTTPException(
            status_code=ERROR_STATUS.get(outcome.error_kind or "", 502),
            detail={"error": outcome.error, "kind": outcome.error_kind},
        )
    return outcome


@app.get("/api/proxy")
async def proxy_image(url: str | None = Query(default=None)):
    """Pass-through image fetch so the dashboard can render Instagram CDN images."""
    if not url:
        raise HTTPException(status_code=400, detail="Missing url parameter")
    if not _proxy_allowed(url):
        raise HTTPException(status_code=400, detail="Only Instagram CDN image URLs can be proxied")
    try:
        body, content_type = await fetch_image(url)
    except httpx.HTTPError as exc:
        raise HTTPException(status_code=502, detail=f"Image fetch failed: {exc}") from exc
    return Response(
        content=body,
        media_type=content_type,
        headers={"Access-Control-Allow-Origin": "*"},
    )
