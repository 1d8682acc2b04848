import logging
from datetime import datetime
from typing import Callable, Iterable, Protocol, Union

from yt_downloader.models.download import VideoDownload, JobStatus, OutputFormat
from yt_downloader.schemas import DownloadSnapshot
from yt_downloader.service.download_store import DownloadStore, MAX_ID
from yt_downloader.service.errors import ConflictError, NotFoundError, ValidationError
from yt_downloader.service.storage import ArtifactStorage
from yt_downloader.utils.datetime_helper import utcnow
from yt_downloader.utils.url_parser import extract_content_id, canonical_url

logger = logging.getLogger(__name__)

FORMAT_ERROR = "Please select a valid format (MP3, MP4, or WAV)."
URL_ERROR = "Please enter a valid YouTube URL."

# 중복 게이트 충돌 시 find_active + insert 반복 횟수
SUBMIT_ATTEMPTS = 3


class Dispatcher(Protocol):
    def enqueue(self, download_id: int) -> None:
        ...


def parse_ids(raw: Union[None, str, int, Iterable[Union[str, int]]]) -> list[int]:
    """
    폴링 요청의 ids 파라미터를 정수 목록으로 변환
    "1,2,3" 문자열, ["1", "2"] 목록, ["1,2", "3"] 혼합 모두 허용
    숫자가 아닌 값과 저장 가능한 범위를 넘는 값은 무시
    """
    if raw is None:
        return []
    if isinstance(raw, (str, int)):
        raw = [raw]

    ids = []
    for item in raw:
        for part in str(item).split(","):
            part = part.strip()
            if part.isascii() and part.isdigit() and int(part) <= MAX_ID:
                ids.append(int(part))
    return list(dict.fromkeys(ids))


class DownloadService:
    def __init__(
        self,
        store: DownloadStore,
        dispatcher: Dispatcher,
        storage: ArtifactStorage,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.store = store
        self.dispatcher = dispatcher
        self.storage = storage
        self.clock = clock

    async def submit(self, raw_url: str, format: str) -> VideoDownload:
        """
        다운로드 요청 등록

        같은 (content_id, format)의 pending/processing/completed 작업이 있으면 그 작업을 반환,
        없으면 새 작업을 만들어 작업자 큐에 넣고 pending 상태로 반환

        Raises:
            ValidationError: 지원하지 않는 형식이거나 인식할 수 없는 URL
        """
        try:
            output_format = OutputFormat.parse(format)
        except ValueError:
            raise ValidationError("format", FORMAT_ERROR)

        content_id = extract_content_id(raw_url)
        if not content_id:
            raise ValidationError("url", URL_ERROR)

        # 삽입 충돌 후 활성 작업이 없으면 (그 사이 실패로 전환됨) 다시 시도
        for _ in range(SUBMIT_ATTEMPTS):
            existing = await self.store.find_active(content_id, output_format.value)
            if existing:
                logger.info(f"Returning existing download {existing.id} for {content_id} ({output_format.value})")
                return existing

            draft = VideoDownload(
                source_url=canonical_url(content_id),
                content_id=content_id,
                format=output_format.value,
                status=JobStatus.PENDING.value,
                created_at=self.clock(),
            )
            try:
                job = await self.store.insert(draft)
            except ConflictError:
                # 동시에 들어온 같은 요청이 먼저 저장됨
                logger.info(f"Concurrent submission for {content_id} ({output_format.value}), re-checking")
                continue

            logger.info(f"Created download {job.id} for {content_id} ({job.format})")
            self.dispatcher.enqueue(job.id)
            return job

        raise ConflictError(content_id, output_format.value)

    async def retry(self, download_id: int) -> VideoDownload:
        """실패한 작업을 같은 URL/형식의 새 작업으로 다시 요청"""
        job = await self.store.get(download_id)
        if job is None:
            raise NotFoundError(download_id)
        if job.status != JobStatus.FAILED:
            raise ValidationError("status", "Only failed downloads can be retried.")

        return await self.submit(job.source_url, job.format)

    async def get(self, download_id: int) -> VideoDownload:
        job = await self.store.get(download_id)
        if job is None:
            raise NotFoundError(download_id)
        return job

    async def list_recent(self, limit: int = 50) -> list[VideoDownload]:
        return await self.store.list_recent(limit)

    async def delete(self, download_id: int) -> bool:
        """작업과 결과 파일 삭제. 이미 없으면 False"""
        job = await self.store.get(download_id)
        if job is None:
            return False

        if job.artifact_ref:
            try:
                if self.storage.exists(job.artifact_ref):
                    self.storage.delete(job.artifact_ref)
            except (OSError, ValueError) as e:
                # 파일 삭제에 실패해도 DB 레코드는 삭제
                logger.warning(f"Could not delete artifact {job.artifact_ref}: {e}")

        deleted = await self.store.delete(download_id)
        if deleted:
            logger.info(f"Deleted download {download_id}")
        return deleted

    async def check(self, ids) -> list[DownloadSnapshot]:
        """폴링용 상태 조회. 없는 ID는 결과에서 빠짐"""
        jobs = await self.store.list_by_ids(parse_ids(ids))
        return [DownloadSnapshot.from_download(job) for job in jobs]

    async def recover(self) -> int:
        """
        시작 시 복구: 큐에 들어가기 전에 프로세스가 종료되어 남은 pending 작업을 다시 큐에 넣음
        """
        pending = await self.store.list_by_status(JobStatus.PENDING)
        for job in pending:
            self.dispatcher.enqueue(job.id)
        if pending:
            logger.info(f"Re-queued {len(pending)} pending download(s)")
        return len(pending)
