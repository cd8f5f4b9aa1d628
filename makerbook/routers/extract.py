"""Start extractions and poll their jobs.

Errors are returned as ``{"success": false, "error": ...}`` so the viewer can
show them inline; the API key never appears in a response.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.util import get_remote_address

from ..schemas import ContentKind, ExtractRequest, ExtractResponse, PollResponse
from ..settings import settings
from ..services.content_schemas import get_schema
from ..services.extraction import (
    ConfigError,
    ExtractionClient,
    ExtractionError,
    ExtractionTimeout,
)
from ..services.jobs import CACHE_ERRORS, JobNotFound, JobPoller

router = APIRouter()
limiter = Limiter(key_func=get_remote_address, enabled=settings.rate_limit_enabled)
logger = logging.getLogger("makerbook.extract")


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "error": message})


def _status_for(exc: ExtractionError) -> int:
    if isinstance(exc, ConfigError):
        return 500
    if isinstance(exc, ExtractionTimeout):
        return 504
    return 502


@router.post("/extract", response_model=ExtractResponse, response_model_exclude_none=True)
@limiter.limit(settings.extract_rate_limit)
async def extract(request: Request, payload: ExtractRequest):
    """Extract a page. Starts a crawl job unless ``wait`` asks for a blocking call."""
    url = (payload.url or "").strip()
    if not url:
        return _error(400, "URL is required")

    kind = payload.kind or settings.default_content_kind
    try:
        schema = get_schema(kind)
    except ValueError:
        logger.error(f"Unknown default content kind: {kind!r}")
        return _error(500, "Server configuration error")

    try:
        client = ExtractionClient.from_settings()
        if payload.wait:
            content = await client.extract(url, schema)
            return ExtractResponse(success=True, status="completed", data=content.model_dump(mode="json"))

        handle = await client.start_job(url, schema)
        await JobPoller(client).register(handle, url)
    except ExtractionError as e:
        logger.error(f"Extraction of {url} failed: {e.__class__.__name__}: {e.message}")
        return _error(_status_for(e), e.message)
    except CACHE_ERRORS as e:
        logger.error(f"Extraction of {url} failed: job cache unavailable: {e}")
        return _error(503, "Job cache unavailable")

    return ExtractResponse(
        success=handle.status != "failed",
        job_id=handle.job_id,
        status=handle.status,
        data=handle.data.model_dump(mode="json") if handle.data is not None else None,
        error=handle.error,
    )


@router.get("/poll/{job_id}", response_model=PollResponse, response_model_exclude_none=True)
async def poll(job_id: str, kind: Optional[ContentKind] = None):
    """One status check for a job. The caller decides how often and how long to poll."""
    try:
        client = ExtractionClient.from_settings()
        snapshot = await JobPoller(client).poll_once(job_id, kind=kind)
    except JobNotFound:
        return _error(404, f"Job not found: {job_id}")
    except ExtractionError as e:
        logger.error(f"Polling job {job_id} failed: {e.__class__.__name__}: {e.message}")
        return _error(_status_for(e), e.message)
    except CACHE_ERRORS as e:
        logger.error(f"Polling job {job_id} failed: job cache unavailable: {e}")
        return _error(503, "Job cache unavailable")

    return PollResponse(
        success=True,
        status=snapshot.status,
        progress=snapshot.progress,
        data=snapshot.data,
        error=snapshot.error,
    )
