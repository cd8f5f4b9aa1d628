"""Observe extraction jobs until they reach a terminal state.

Status lifecycle (driven by the extraction service, only observed here):

    pending -> running -> completed | failed

``JobPoller.poll_once`` is a single query with no retry loop; the caller owns
the cadence and the overall deadline.

Redis keys:
- makerbook:job:{id}           {kind, url, started_at} written at submission
- makerbook:job:{id}:snapshot  terminal snapshot, replayed on later polls

Redis is a cache here. When it is unreachable, submission still returns the
job id and polling falls through to the extraction service.
"""

import logging
import math
import time
from dataclasses import asdict, dataclass
from typing import Any, Optional

from redis.exceptions import RedisError

from ..infra.redis_cache import get_json, set_json
from ..settings import settings
from .content_schemas import get_schema
from .extraction import ConfigError, ExtractionClient, JobHandle
from .normalize import normalize

logger = logging.getLogger("makerbook.jobs")

TERMINAL_STATUSES = {"completed", "failed"}

# Connection failures surface either as redis errors or as raw socket errors
CACHE_ERRORS = (RedisError, OSError)

_STATUS_ALIASES = {
    "pending": "pending",
    "queued": "pending",
    "submitted": "pending",
    "running": "running",
    "processing": "running",
    "in_progress": "running",
    "crawling": "running",
    "completed": "completed",
    "complete": "completed",
    "succeeded": "completed",
    "success": "completed",
    "done": "completed",
    "failed": "failed",
    "error": "failed",
    "cancelled": "failed",
    "canceled": "failed",
}


class JobNotFound(Exception):
    """The service still does not know a job well after it was submitted."""


@dataclass
class JobSnapshot:
    status: str
    progress: Optional[float] = None
    data: Optional[dict[str, Any]] = None
    error: Optional[str] = None

    @property
    def terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES


def job_key(job_id: str) -> str:
    return f"makerbook:job:{job_id}"


def snapshot_key(job_id: str) -> str:
    return f"makerbook:job:{job_id}:snapshot"


def _status(raw: Any) -> str:
    # Unknown states are reported as running; the caller's deadline decides.
    return _STATUS_ALIASES.get(str(raw or "").strip().lower(), "running")


def _progress(raw: Any) -> Optional[float]:
    if isinstance(raw, bool):
        return None
    if isinstance(raw, (int, float)):
        value = float(raw)
    elif isinstance(raw, str):
        try:
            value = float(raw.strip().rstrip("%"))
        except ValueError:
            return None
    else:
        return None
    return value if math.isfinite(value) else None


def _payload(body: dict) -> Any:
    for key in ("data", "result", "results"):
        value = body.get(key)
        if value:
            return value
    return {}


async def _cache_get(key: str) -> Optional[dict]:
    try:
        return await get_json(key)
    except CACHE_ERRORS as e:
        logger.warning(f"Job cache read failed for {key}: {e}")
        return None


async def _cache_set(key: str, value: dict, ttl: int) -> bool:
    try:
        await set_json(key, value, ttl)
        return True
    except CACHE_ERRORS as e:
        logger.warning(f"Job cache write failed for {key}: {e}")
        return False


class JobPoller:
    def __init__(
        self,
        client: ExtractionClient,
        grace_seconds: Optional[int] = None,
        cache_ttl: Optional[int] = None,
    ):
        self.client = client
        self.grace_seconds = settings.job_not_found_grace_seconds if grace_seconds is None else grace_seconds
        self.cache_ttl = settings.job_cache_ttl_seconds if cache_ttl is None else cache_ttl

    async def register(self, handle: JobHandle, url: str) -> bool:
        """Remember which schema a job was started with, and when. Best effort."""
        if not handle.job_id:
            return False
        stored = await _cache_set(
            job_key(handle.job_id),
            {"kind": handle.kind, "url": url, "started_at": time.time()},
            self.cache_ttl,
        )
        if handle.status in TERMINAL_STATUSES:
            snapshot = JobSnapshot(
                status=handle.status,
                data=handle.data.model_dump(mode="json") if handle.data is not None else None,
                error=handle.error,
            )
            stored = await _cache_set(snapshot_key(handle.job_id), asdict(snapshot), self.cache_ttl) and stored
        return stored

    async def poll_once(self, job_id: str, kind: Optional[str] = None) -> JobSnapshot:
        cached = await _cache_get(snapshot_key(job_id))
        if cached:
            return JobSnapshot(**cached)

        record = await _cache_get(job_key(job_id)) or {}
        schema_kind = record.get("kind") or kind or settings.default_content_kind
        try:
            schema = get_schema(schema_kind)
        except ValueError as e:
            raise ConfigError(f"Unknown content kind: {schema_kind}") from e

        body = await self.client.get_job(job_id)
        if body is None:
            started_at = record.get("started_at")
            if started_at is not None and time.time() - float(started_at) > self.grace_seconds:
                logger.warning(f"Job {job_id} still unknown upstream {self.grace_seconds}s after submission")
                raise JobNotFound(job_id)
            # Fresh jobs can 404 until the service has persisted them.
            return JobSnapshot(status="running")

        status = _status(body.get("status"))
        snapshot = JobSnapshot(status=status, progress=_progress(body.get("progress")))

        if status == "completed":
            snapshot.data = normalize(_payload(body), schema).model_dump(mode="json")
        elif status == "failed":
            snapshot.error = str(body.get("error_message") or body.get("error") or "Extraction failed")

        if snapshot.terminal:
            logger.info(f"Job {job_id} finished with status={status}")
            await _cache_set(snapshot_key(job_id), asdict(snapshot), self.cache_ttl)
        return snapshot
