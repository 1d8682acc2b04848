from yt_downloader.models.download import JobStatus, OutputFormat
from yt_downloader.service.lifecycle import DownloadLifecycle
from yt_downloader.service.providers import estimate_size
from yt_downloader.utils.datetime_helper import to_utc

from conftest import FakeProvider, make_draft


async def test_run_completes_job(store, lifecycle, clock):
    job = await store.insert(make_draft(format="wav"))

    await lifecycle.run(job.id)

    done = await store.get(job.id)
    assert done.status == JobStatus.COMPLETED
    assert done.title == "Test Video"
    assert done.duration_seconds == 125
    assert done.size_bytes == estimate_size(125, OutputFormat.WAV)
    assert done.artifact_ref == "downloads/dQw4w9WgXcQ.wav"
    assert done.error_reason is None
    assert done.started_at is not None
    assert done.started_at < done.completed_at
    assert to_utc(done.completed_at) < clock.now


async def test_metadata_failure_marks_job_failed(store, clock):
    provider = FakeProvider(metadata_failures=1)
    lifecycle = DownloadLifecycle(store, provider, clock=clock, timeout_seconds=5)
    job = await store.insert(make_draft())

    await lifecycle.run(job.id)

    failed = await store.get(job.id)
    assert failed.status == JobStatus.FAILED
    assert failed.error_reason == "Video unavailable"
    assert failed.completed_at is not None
    assert failed.artifact_ref is None
    assert failed.size_bytes is None
    assert failed.title is None


async def test_unexpected_conversion_error_is_captured(store, clock):
    provider = FakeProvider(convert_error=RuntimeError("disk full"))
    lifecycle = DownloadLifecycle(store, provider, clock=clock, timeout_seconds=5)
    job = await store.insert(make_draft())

    await lifecycle.run(job.id)

    failed = await store.get(job.id)
    assert failed.status == JobStatus.FAILED
    assert "disk full" in failed.error_reason
    # 메타데이터는 처리 시작 시 이미 기록됨
    assert failed.title == "Test Video"
    assert failed.artifact_ref is None
    assert failed.size_bytes is None
    # 길이는 완료된 작업에만 기록
    assert failed.duration_seconds is None


async def test_hanging_provider_times_out(store, clock):
    provider = FakeProvider(hang=True)
    lifecycle = DownloadLifecycle(store, provider, clock=clock, timeout_seconds=0.1)
    job = await store.insert(make_draft())

    await lifecycle.run(job.id)

    failed = await store.get(job.id)
    assert failed.status == JobStatus.FAILED
    assert failed.error_reason == "Processing timed out after 0.1 seconds"
    assert failed.duration_seconds is None
    assert failed.size_bytes is None


async def test_run_skips_job_that_is_not_pending(store, lifecycle, provider):
    job = await store.insert(make_draft())
    await lifecycle.run(job.id)
    completed = await store.get(job.id)

    await lifecycle.run(job.id)

    again = await store.get(job.id)
    assert again.status == JobStatus.COMPLETED
    assert again.completed_at == completed.completed_at
    assert provider.metadata_calls == ["dQw4w9WgXcQ"]


async def test_run_unknown_job_does_not_raise(lifecycle, provider):
    await lifecycle.run(404)

    assert provider.metadata_calls == []


async def test_expire_stale_fails_old_processing_jobs(store, lifecycle, clock):
    stuck = await store.insert(make_draft("stuck"))
    await store.update(stuck.id, status=JobStatus.PROCESSING, started_at=clock())
    clock.advance(60)

    assert await lifecycle.expire_stale() == 1

    expired = await store.get(stuck.id)
    assert expired.status == JobStatus.FAILED
    assert "timed out" in expired.error_reason
    assert expired.started_at <= expired.completed_at


async def test_expire_stale_leaves_recent_jobs(store, lifecycle, clock):
    job = await store.insert(make_draft())
    await store.update(job.id, status=JobStatus.PROCESSING, started_at=clock())

    assert await lifecycle.expire_stale() == 0
    assert (await store.get(job.id)).status == JobStatus.PROCESSING
