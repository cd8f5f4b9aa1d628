"""Client for the Refyne extraction API.

Endpoints used:
- POST /api/v1/extract       blocking single-page extraction -> {data} | {error}
- POST /api/v1/crawl         start a crawl job -> {job_id, status, data?}
- GET  /api/v1/jobs/{job_id} job status -> {status, progress?, data?, error_message?}

The client holds no state beyond its configuration; every call opens its own
``httpx.AsyncClient``.
"""

import logging
from dataclasses import dataclass
from typing import Any, Optional

import httpx
from pydantic import BaseModel

from ..settings import settings
from .content_schemas import ContentSchema
from .normalize import normalize

logger = logging.getLogger("makerbook.extract")


class ExtractionError(Exception):
    """Base class for extraction failures surfaced to callers."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class ConfigError(ExtractionError):
    """The service URL or credentials are not configured."""


class ExtractionAuthError(ExtractionError):
    """The extraction service rejected our credentials."""


class UpstreamError(ExtractionError):
    """Any other non-success answer from the extraction service."""


class ExtractionTimeout(ExtractionError):
    """No answer within the configured bound. Callers may retry or fall back to a job."""


@dataclass
class JobHandle:
    job_id: Optional[str]
    status: str
    kind: str
    data: Optional[BaseModel] = None
    error: Optional[str] = None

    @property
    def completed(self) -> bool:
        return self.status == "completed" and self.data is not None


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        body = {}
    if isinstance(body, dict):
        for key in ("error", "error_message", "detail", "message"):
            value = body.get(key)
            if isinstance(value, str) and value:
                return value
            if isinstance(value, dict) and isinstance(value.get("message"), str):
                return value["message"]
    return f"API error: {response.status_code}"


def _job_id(body: dict) -> Optional[str]:
    for key in ("job_id", "jobId", "id"):
        value = body.get(key)
        if value:
            return str(value)
    return None


class ExtractionClient:
    def __init__(
        self,
        api_url: str,
        api_key: str,
        referer: Optional[str] = None,
        extract_timeout: float = 180.0,
        request_timeout: float = 30.0,
        max_pages: int = 5,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_url = api_url.rstrip("/")
        self.api_key = api_key
        self.referer = referer
        self.extract_timeout = extract_timeout
        self.request_timeout = request_timeout
        self.max_pages = max_pages
        self._transport = transport

    @classmethod
    def from_settings(cls, transport: Optional[httpx.AsyncBaseTransport] = None) -> "ExtractionClient":
        if not settings.refyne_api_url or not settings.refyne_api_key:
            logger.error(
                "Extraction service not configured (has_api_url=%s, has_api_key=%s)",
                bool(settings.refyne_api_url),
                bool(settings.refyne_api_key),
            )
            raise ConfigError("Server configuration error")
        return cls(
            api_url=settings.refyne_api_url,
            api_key=settings.refyne_api_key,
            referer=settings.refyne_referer,
            extract_timeout=settings.extract_timeout_seconds,
            request_timeout=settings.request_timeout_seconds,
            max_pages=settings.crawl_max_pages,
            transport=transport,
        )

    def _headers(self) -> dict[str, str]:
        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.api_key}",
        }
        if self.referer:
            headers["Referer"] = self.referer
        return headers

    def _client(self, timeout: float) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.api_url,
            headers=self._headers(),
            timeout=httpx.Timeout(timeout, connect=min(timeout, 10.0)),
            transport=self._transport,
        )

    async def _send(self, method: str, path: str, timeout: float, **kwargs) -> httpx.Response:
        try:
            async with self._client(timeout) as client:
                return await client.request(method, path, **kwargs)
        except httpx.TimeoutException as e:
            logger.warning(f"{method} {path} timed out after {timeout}s")
            raise ExtractionTimeout(f"Extraction service did not answer within {int(timeout)}s") from e
        except httpx.HTTPError as e:
            logger.error(f"{method} {path} failed: {e.__class__.__name__}: {e}")
            raise UpstreamError(f"Could not reach extraction service: {e}") from e

    @staticmethod
    def _check(response: httpx.Response) -> dict[str, Any]:
        if response.status_code in (401, 403):
            raise ExtractionAuthError(_error_message(response), status_code=response.status_code)
        if response.status_code >= 400:
            raise UpstreamError(_error_message(response), status_code=response.status_code)
        try:
            body = response.json()
        except ValueError as e:
            raise UpstreamError("Extraction service returned invalid JSON", status_code=response.status_code) from e
        if not isinstance(body, dict):
            raise UpstreamError("Extraction service returned an unexpected payload", status_code=response.status_code)
        if body.get("error"):
            raise UpstreamError(str(body["error"]), status_code=response.status_code)
        return body

    async def extract(self, url: str, schema: ContentSchema) -> BaseModel:
        """Blocking extraction of a single page, normalized with ``schema``."""
        logger.info(f"Extracting {schema.kind} (schema v{schema.version}) from {url}")
        response = await self._send(
            "POST",
            "/api/v1/extract",
            self.extract_timeout,
            json={"url": url, "schema": schema.prompt},
        )
        body = self._check(response)
        return normalize(body, schema)

    async def start_job(self, url: str, schema: ContentSchema) -> JobHandle:
        """Submit a crawl job. Small pages may come back already completed."""
        logger.info(f"Starting {schema.kind} crawl (schema v{schema.version}) for {url}")
        response = await self._send(
            "POST",
            "/api/v1/crawl",
            self.request_timeout,
            json={
                "url": url,
                "schema": schema.prompt,
                "options": {"max_pages": self.max_pages, "merge": True},
            },
        )
        body = self._check(response)
        job_id = _job_id(body)
        status = str(body.get("status") or ("pending" if job_id else "completed"))

        payload = body.get("data") or body.get("result")
        if status == "completed" and payload is not None:
            return JobHandle(job_id=job_id, status=status, kind=schema.kind, data=normalize(payload, schema))

        if status == "failed":
            return JobHandle(
                job_id=job_id, status=status, kind=schema.kind,
                error=str(body.get("error_message") or "Extraction failed"),
            )
        if not job_id:
            raise UpstreamError("Extraction service returned neither a job id nor a result")
        return JobHandle(job_id=job_id, status=status, kind=schema.kind)

    async def get_job(self, job_id: str) -> Optional[dict[str, Any]]:
        """Fetch raw job state. ``None`` when the service does not know the job (yet)."""
        response = await self._send("GET", f"/api/v1/jobs/{job_id}", self.request_timeout)
        if response.status_code == 404:
            return None
        if response.status_code in (401, 403):
            raise ExtractionAuthError(_error_message(response), status_code=response.status_code)
        if response.status_code >= 400:
            raise UpstreamError(_error_message(response), status_code=response.status_code)
        try:
            body = response.json()
        except ValueError as e:
            raise UpstreamError("Extraction service returned invalid JSON", status_code=response.status_code) from e
        return body if isinstance(body, dict) else {}
