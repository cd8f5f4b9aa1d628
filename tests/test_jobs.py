import time

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from makerbook.infra import redis_client
from makerbook.infra.redis_cache import get_json, set_json
from makerbook.services.content_schemas import get_schema
from makerbook.services.extraction import ConfigError, ExtractionAuthError, JobHandle
from makerbook.services.jobs import JobNotFound, JobPoller, job_key, snapshot_key
from makerbook.settings import settings

from conftest import FakeRefyne


@pytest.fixture
def fake():
    return FakeRefyne()


@pytest.mark.asyncio
async def test_unknown_job_reports_running(fake):
    fake.on("GET", "/api/v1/jobs/fresh", status_code=404, json={"error": "not found"})

    snapshot = await JobPoller(fake.client()).poll_once("fresh")

    assert snapshot.status == "running"
    assert not snapshot.terminal


@pytest.mark.asyncio
async def test_registered_job_missing_past_grace_window(fake):
    fake.on("GET", "/api/v1/jobs/lost", status_code=404, json={"error": "not found"})
    await set_json(job_key("lost"), {"kind": "tutorial", "url": "https://x", "started_at": time.time() - 600}, 60)

    with pytest.raises(JobNotFound):
        await JobPoller(fake.client(), grace_seconds=120).poll_once("lost")


@pytest.mark.asyncio
async def test_registered_job_within_grace_window(fake):
    fake.on("GET", "/api/v1/jobs/new", status_code=404, json={"error": "not found"})
    poller = JobPoller(fake.client(), grace_seconds=120)
    await poller.register(JobHandle(job_id="new", status="pending", kind="tutorial"), "https://x")

    assert (await poller.poll_once("new")).status == "running"


@pytest.mark.asyncio
async def test_progress_and_status_aliases(fake):
    fake.on("GET", "/api/v1/jobs/j1", json={"status": "processing", "progress": "45%"})

    snapshot = await JobPoller(fake.client()).poll_once("j1")

    assert snapshot.status == "running"
    assert snapshot.progress == 45.0


@pytest.mark.asyncio
async def test_completed_job_is_normalized_with_registered_kind(fake):
    fake.on("GET", "/api/v1/jobs/r1", json={
        "status": "completed",
        "data": {"title": "Pancakes", "instructions": ["Mix", "Fry"], "servings": "4"},
    })
    poller = JobPoller(fake.client())
    await poller.register(JobHandle(job_id="r1", status="pending", kind="recipe"), "https://x")

    snapshot = await poller.poll_once("r1")

    assert snapshot.status == "completed"
    assert snapshot.data["title"] == "Pancakes"
    assert snapshot.data["servings"] == 4
    assert [i["step"] for i in snapshot.data["instructions"]] == [1, 2]


@pytest.mark.asyncio
async def test_kind_argument_used_for_unregistered_jobs(fake):
    fake.on("GET", "/api/v1/jobs/r2", json={"status": "completed", "result": {"title": "Stew"}})

    snapshot = await JobPoller(fake.client()).poll_once("r2", kind="recipe")

    assert "ingredients" in snapshot.data
    assert "steps" not in snapshot.data


@pytest.mark.asyncio
async def test_failed_job_default_message(fake):
    fake.on("GET", "/api/v1/jobs/bad", json={"status": "failed"})

    snapshot = await JobPoller(fake.client()).poll_once("bad")

    assert snapshot.status == "failed"
    assert snapshot.error == "Extraction failed"


@pytest.mark.asyncio
async def test_failed_job_upstream_message(fake):
    fake.on("GET", "/api/v1/jobs/bad2", json={"status": "failed", "error_message": "robots.txt disallows"})
    snapshot = await JobPoller(fake.client()).poll_once("bad2")
    assert snapshot.error == "robots.txt disallows"


@pytest.mark.asyncio
async def test_terminal_snapshot_is_replayed(fake):
    fake.on("GET", "/api/v1/jobs/done", json={"status": "completed", "data": {"title": "Shelf"}})
    poller = JobPoller(fake.client())

    first = await poller.poll_once("done")
    # Upstream forgets the job; the cached snapshot still answers
    fake.on("GET", "/api/v1/jobs/done", status_code=500, json={"error": "gone"})
    second = await poller.poll_once("done")

    assert first == second
    assert len(fake.requests) == 1
    assert await get_json(snapshot_key("done")) is not None


@pytest.mark.asyncio
async def test_register_completed_handle_stores_snapshot(fake):
    schema = get_schema("tutorial")
    data = schema.model.model_validate({"title": "Lamp"})
    poller = JobPoller(fake.client())

    await poller.register(JobHandle(job_id="inline", status="completed", kind="tutorial", data=data), "https://x")
    snapshot = await poller.poll_once("inline")

    assert snapshot.status == "completed"
    assert snapshot.data["title"] == "Lamp"
    assert fake.requests == []


@pytest.mark.asyncio
async def test_auth_errors_propagate(fake):
    fake.on("GET", "/api/v1/jobs/j", status_code=403, json={"error": "forbidden"})

    with pytest.raises(ExtractionAuthError):
        await JobPoller(fake.client()).poll_once("j")


@pytest.mark.asyncio
async def test_failed_snapshot_is_replayed(fake):
    fake.on("GET", "/api/v1/jobs/bad3", json={"status": "failed", "error": "page blocked"})
    poller = JobPoller(fake.client())

    first = await poller.poll_once("bad3")
    fake.on("GET", "/api/v1/jobs/bad3", status_code=500, json={"error": "gone"})
    second = await poller.poll_once("bad3")

    assert first == second
    assert second.error == "page blocked"
    assert len(fake.requests) == 1


@pytest.mark.asyncio
async def test_multi_page_results_are_merged(fake):
    fake.on("GET", "/api/v1/jobs/pages", json={
        "status": "completed",
        "results": [
            {"title": "Bench", "steps": [{"instructions": "page1"}]},
            {"title": "Bench (page 2)", "steps": [{"instructions": "page2"}]},
        ],
    })

    snapshot = await JobPoller(fake.client()).poll_once("pages", kind="tutorial")

    assert snapshot.data["title"] == "Bench"
    assert [(s["step_number"], s["instructions"]) for s in snapshot.data["steps"]] == [(1, "page1"), (2, "page2")]


@pytest.mark.asyncio
async def test_unknown_default_kind_is_config_error(fake, monkeypatch):
    monkeypatch.setattr(settings, "default_content_kind", "podcast")

    with pytest.raises(ConfigError):
        await JobPoller(fake.client()).poll_once("whatever")
    assert fake.requests == []


class BrokenRedis:
    """Redis double whose every call fails to connect."""

    async def get(self, *args, **kwargs):
        raise RedisConnectionError("connection refused")

    async def set(self, *args, **kwargs):
        raise RedisConnectionError("connection refused")

    async def ping(self, *args, **kwargs):
        raise RedisConnectionError("connection refused")


@pytest.fixture
def broken_redis(monkeypatch):
    monkeypatch.setattr(redis_client, "_redis_async", BrokenRedis())


@pytest.mark.asyncio
async def test_register_without_redis_is_best_effort(fake, broken_redis):
    poller = JobPoller(fake.client())

    stored = await poller.register(JobHandle(job_id="j9", status="pending", kind="tutorial"), "https://x")

    assert stored is False


@pytest.mark.asyncio
async def test_poll_without_redis_asks_upstream(fake, broken_redis):
    fake.on("GET", "/api/v1/jobs/j9", json={"status": "completed", "data": {"title": "Shelf"}})

    snapshot = await JobPoller(fake.client()).poll_once("j9")

    assert snapshot.status == "completed"
    assert snapshot.data["title"] == "Shelf"
