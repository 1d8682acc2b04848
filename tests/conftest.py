import asyncio
from datetime import datetime, timedelta, timezone

import pytest
import pytest_asyncio

from yt_downloader.database import create_engine, create_session_factory, create_tables
from yt_downloader.models.download import JobStatus, OutputFormat, VideoDownload
from yt_downloader.service.download_service import DownloadService
from yt_downloader.service.download_store import DownloadStore
from yt_downloader.service.lifecycle import DownloadLifecycle
from yt_downloader.service.errors import ProcessingError
from yt_downloader.service.providers import Artifact, MediaProvider, Metadata, estimate_size
from yt_downloader.service.storage import ArtifactStorage


class FakeClock:
    """Deterministic clock: every call moves time forward by one second."""

    def __init__(self, start=datetime(2025, 1, 1, 12, 0, 0, tzinfo=timezone.utc)):
        self.now = start

    def __call__(self):
        current = self.now
        self.now += timedelta(seconds=1)
        return current

    def advance(self, seconds):
        self.now += timedelta(seconds=seconds)


class FakeProvider(MediaProvider):
    def __init__(self, title="Test Video", duration=125, metadata_failures=0, convert_error=None, hang=False):
        self.title = title
        self.duration = duration
        self.metadata_failures = metadata_failures
        self.convert_error = convert_error
        self.hang = hang
        self.metadata_calls = []

    async def fetch_metadata(self, content_id):
        self.metadata_calls.append(content_id)
        if self.metadata_failures > 0:
            self.metadata_failures -= 1
            raise ProcessingError("Video unavailable")
        return Metadata(title=self.title, duration_seconds=self.duration)

    async def convert(self, content_id, format, metadata):
        if self.hang:
            await asyncio.Event().wait()
        if self.convert_error:
            raise self.convert_error
        return Artifact(
            ref=f"downloads/{content_id}.{OutputFormat(format).value}",
            size_bytes=estimate_size(metadata.duration_seconds, format),
        )


class FakeStorage(ArtifactStorage):
    def __init__(self):
        self.files = set()
        self.deleted = []

    def exists(self, ref):
        return ref in self.files

    def delete(self, ref):
        self.files.discard(ref)
        self.deleted.append(ref)


class RecordingDispatcher:
    def __init__(self):
        self.enqueued = []

    def enqueue(self, download_id):
        self.enqueued.append(download_id)



def make_draft(content_id="dQw4w9WgXcQ", format="mp3"):
    return VideoDownload(
        source_url=f"https://www.youtube.com/watch?v={content_id}",
        content_id=content_id,
        format=format,
        status=JobStatus.PENDING.value,
        created_at=datetime(2025, 1, 1, tzinfo=timezone.utc),
    )


@pytest.fixture
def database_url(tmp_path):
    return f"sqlite+aiosqlite:///{tmp_path / 'test.db'}"


@pytest_asyncio.fixture
async def store(database_url):
    engine = create_engine(database_url)
    await create_tables(engine)
    yield DownloadStore(create_session_factory(engine))
    await engine.dispose()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def provider():
    return FakeProvider()


@pytest.fixture
def storage():
    return FakeStorage()


@pytest.fixture
def dispatcher():
    return RecordingDispatcher()


@pytest.fixture
def lifecycle(store, provider, clock):
    return DownloadLifecycle(store, provider, clock=clock, timeout_seconds=5)


@pytest.fixture
def service(store, dispatcher, storage, clock):
    return DownloadService(store, dispatcher, storage, clock=clock)
