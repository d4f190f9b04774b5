import asyncio
from datetime import datetime, timezone

import pytest

from mailcrawl.config import StorageSettings
from mailcrawl.errors import InvalidTransition, JobNotFound, StoreError
from mailcrawl.orchestrator.jobs import JobStatus
from mailcrawl.storage.factory import open_store
from mailcrawl.storage.jsonfile import JsonFileJobStore
from mailcrawl.storage.memory import MemoryJobStore


@pytest.fixture(params=["memory", "jsonfile"])
def store(request, tmp_path):
    if request.param == "memory":
        return MemoryJobStore()
    return JsonFileJobStore(tmp_path / "jobs.json")


def _at(day):
    return datetime(2024, 1, day, tzinfo=timezone.utc)


def test_create_then_get(store):
    async def _run():
        created = await store.create("job-1", "https://acme.com")
        fetched = await store.get("job-1")
        assert created.status == JobStatus.QUEUED
        assert fetched.to_payload() == created.to_payload()
        assert fetched.emails == [] and fetched.pages_crawled == 0
        with pytest.raises(StoreError):
            await store.create("job-1", "https://acme.com")

    asyncio.run(_run())


def test_unknown_ids_raise_not_found(store):
    async def _run():
        with pytest.raises(JobNotFound):
            await store.get("missing")
        with pytest.raises(JobNotFound):
            await store.update("missing", status=JobStatus.PROCESSING)

    asyncio.run(_run())


def test_lifecycle_timestamps_and_results(store):
    async def _run():
        await store.create("job-1", "https://acme.com")
        processing = await store.update("job-1", status=JobStatus.PROCESSING)
        assert processing.started_at is not None
        assert processing.completed_at is None
        done = await store.update(
            "job-1",
            status=JobStatus.DONE,
            emails=["a@acme.com"],
            crawled_urls=["https://acme.com"],
            pages_crawled=1,
        )
        assert done.completed_at is not None
        assert done.error is None
        assert done.started_at == processing.started_at
        assert done.updated_at >= processing.updated_at
        assert (await store.get("job-1")).emails == ["a@acme.com"]

    asyncio.run(_run())


def test_status_never_moves_backwards_or_skips(store):
    async def _run():
        await store.create("job-1", "https://acme.com")
        with pytest.raises(InvalidTransition):
            await store.update("job-1", status=JobStatus.DONE)
        await store.update("job-1", status=JobStatus.PROCESSING)
        with pytest.raises(InvalidTransition):
            await store.update("job-1", status=JobStatus.QUEUED)
        await store.update("job-1", status=JobStatus.ERROR, error="boom")
        with pytest.raises(InvalidTransition):
            await store.update("job-1", status=JobStatus.DONE)
        with pytest.raises(InvalidTransition):
            await store.update("job-1", emails=["late@acme.com"])
        assert (await store.get("job-1")).status == JobStatus.ERROR

    asyncio.run(_run())


def test_results_only_accumulate_while_processing(store):
    async def _run():
        await store.create("job-1", "https://acme.com")
        with pytest.raises(InvalidTransition):
            await store.update("job-1", emails=["early@acme.com"])
        with pytest.raises(StoreError):
            await store.update("job-1", url="https://other.com")

    asyncio.run(_run())


def test_error_status_always_carries_a_message(store):
    async def _run():
        await store.create("job-1", "https://acme.com")
        await store.update("job-1", status=JobStatus.PROCESSING)
        failed = await store.update("job-1", status=JobStatus.ERROR, error="")
        assert failed.error == "Unknown error occurred"
        assert failed.completed_at is not None

    asyncio.run(_run())


def test_list_by_status_orders_by_creation(store):
    async def _run():
        await store.create("c", "https://c.com", created_at=_at(3))
        await store.create("a", "https://a.com", created_at=_at(1))
        await store.create("b", "https://b.com", created_at=_at(2))
        await store.create("d", "https://d.com", created_at=_at(4))
        await store.update("d", status=JobStatus.PROCESSING)
        oldest = await store.list_by_status(JobStatus.QUEUED, oldest_first=True, limit=2)
        newest = await store.list_by_status(JobStatus.QUEUED, oldest_first=False, limit=5)
        processing = await store.list_by_status(JobStatus.PROCESSING)
        assert [job.job_id for job in oldest] == ["a", "b"]
        assert [job.job_id for job in newest] == ["c", "b", "a"]
        assert [job.job_id for job in processing] == ["d"]

    asyncio.run(_run())


def test_returned_jobs_are_snapshots():
    async def _run():
        store = MemoryJobStore()
        job = await store.create("job-1", "https://acme.com")
        job.emails.append("tampered@acme.com")
        assert (await store.get("job-1")).emails == []

    asyncio.run(_run())


def test_jsonfile_store_is_shared_between_instances(tmp_path):
    path = tmp_path / "nested" / "jobs.json"

    async def _run():
        writer = JsonFileJobStore(path)
        await writer.create("job-1", "https://acme.com")
        await writer.update("job-1", status=JobStatus.PROCESSING)
        reader = JsonFileJobStore(path)
        job = await reader.get("job-1")
        assert job.status == JobStatus.PROCESSING
        assert job.started_at is not None

    asyncio.run(_run())
    assert path.exists()
    assert not path.with_suffix(".json.tmp").exists()


def test_jsonfile_store_rejects_corrupt_file(tmp_path):
    path = tmp_path / "jobs.json"
    path.write_text("{not json", encoding="utf-8")

    async def _run():
        with pytest.raises(StoreError):
            await JsonFileJobStore(path).get("job-1")

    asyncio.run(_run())


def test_open_store_selects_backend(tmp_path):
    assert isinstance(open_store(StorageSettings(backend="memory")), MemoryJobStore)
    assert isinstance(open_store(StorageSettings(backend="jsonfile", path=tmp_path / "j.json")), JsonFileJobStore)
