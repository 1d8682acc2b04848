from datetime import datetime, timezone

import pytest

from yt_downloader.models.download import JobStatus
from yt_downloader.service.errors import ConflictError, InvalidTransitionError, NotFoundError

from conftest import make_draft


async def test_insert_and_get(store):
    job = await store.insert(make_draft())

    assert job.id is not None
    fetched = await store.get(job.id)
    assert fetched.content_id == "dQw4w9WgXcQ"
    assert fetched.status == JobStatus.PENDING


async def test_get_unknown_returns_none(store):
    assert await store.get(999) is None


async def test_insert_rejects_second_active_pair(store):
    await store.insert(make_draft())

    with pytest.raises(ConflictError):
        await store.insert(make_draft())


async def test_same_content_in_other_format_is_allowed(store):
    mp3 = await store.insert(make_draft(format="mp3"))
    mp4 = await store.insert(make_draft(format="mp4"))

    assert mp3.id != mp4.id


async def test_failed_pair_can_be_inserted_again(store):
    first = await store.insert(make_draft())
    await store.update(first.id, status=JobStatus.FAILED, error_reason="boom")

    second = await store.insert(make_draft())

    assert second.id != first.id
    active = await store.find_active("dQw4w9WgXcQ", "mp3")
    assert active.id == second.id


async def test_find_active_ignores_failed(store):
    job = await store.insert(make_draft())
    assert (await store.find_active("dQw4w9WgXcQ", "mp3")).id == job.id

    await store.update(job.id, status=JobStatus.FAILED, error_reason="boom")

    assert await store.find_active("dQw4w9WgXcQ", "mp3") is None


async def test_list_by_ids_omits_unknown(store):
    a = await store.insert(make_draft("aaa"))
    b = await store.insert(make_draft("bbb"))

    result = await store.list_by_ids([b.id, 12345, a.id, a.id])

    assert [job.id for job in result] == [a.id, b.id]
    assert await store.list_by_ids([]) == []


async def test_list_by_status(store):
    a = await store.insert(make_draft("aaa"))
    await store.insert(make_draft("bbb"))
    await store.update(a.id, status=JobStatus.PROCESSING)

    pending = await store.list_by_status(JobStatus.PENDING)
    processing = await store.list_by_status(JobStatus.PROCESSING)

    assert [job.content_id for job in pending] == ["bbb"]
    assert [job.id for job in processing] == [a.id]


async def test_list_stale_uses_started_at(store):
    old = await store.insert(make_draft("old"))
    fresh = await store.insert(make_draft("fresh"))
    await store.update(old.id, status=JobStatus.PROCESSING, started_at=datetime(2025, 1, 1, 10, tzinfo=timezone.utc))
    await store.update(fresh.id, status=JobStatus.PROCESSING, started_at=datetime(2025, 1, 1, 12, tzinfo=timezone.utc))

    stale = await store.list_stale(datetime(2025, 1, 1, 11, tzinfo=timezone.utc))

    assert [job.id for job in stale] == [old.id]


async def test_update_unknown_raises_not_found(store):
    with pytest.raises(NotFoundError):
        await store.update(999, title="x")


async def test_update_compare_and_set(store):
    job = await store.insert(make_draft())
    await store.update(job.id, expected=[JobStatus.PENDING], status=JobStatus.PROCESSING)

    with pytest.raises(InvalidTransitionError) as exc_info:
        await store.update(job.id, expected=[JobStatus.PENDING], status=JobStatus.PROCESSING)

    assert exc_info.value.current_status == "processing"


async def test_delete_is_idempotent(store):
    job = await store.insert(make_draft())

    assert await store.delete(job.id) is True
    assert await store.delete(job.id) is False
    assert await store.get(job.id) is None


async def test_ids_beyond_integer_range_are_unknown(store):
    """INTEGER 범위를 넘는 ID는 드라이버 오류 없이 없는 작업으로 취급"""
    job = await store.insert(make_draft())
    huge = 2**63

    assert await store.get(huge) is None
    assert await store.delete(huge) is False
    assert [j.id for j in await store.list_by_ids([job.id, huge])] == [job.id]
    with pytest.raises(NotFoundError):
        await store.update(huge, title="x")
