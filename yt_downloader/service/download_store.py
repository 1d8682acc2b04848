import logging
from datetime import datetime
from typing import Iterable, Optional

from sqlalchemy import select, update, delete
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import async_sessionmaker

from yt_downloader.models.download import VideoDownload, JobStatus
from yt_downloader.service.errors import ConflictError, NotFoundError, InvalidTransitionError

logger = logging.getLogger(__name__)

# SQLite INTEGER (부호 있는 64비트) 최대값. 이보다 큰 ID는 드라이버에서 OverflowError
MAX_ID = 2**63 - 1


def _valid_id(download_id: int) -> bool:
    return download_id <= MAX_ID


def _status_values(statuses: Iterable[JobStatus]) -> list[str]:
    return [JobStatus(s).value for s in statuses]


class DownloadStore:
    """
    video_downloads 테이블에 대한 모든 읽기/쓰기를 담당
    상태 변경은 update()를 통해서만 이루어짐
    """

    def __init__(self, session_factory: async_sessionmaker):
        self.session_factory = session_factory

    async def insert(self, draft: VideoDownload) -> VideoDownload:
        """
        새 작업 저장. 같은 (content_id, format)의 활성 작업이 있으면 ConflictError
        유니크 인덱스 위반 자체가 동시 요청에 대한 게이트 역할
        """
        async with self.session_factory() as session:
            session.add(draft)
            try:
                await session.commit()
            except IntegrityError:
                await session.rollback()
                raise ConflictError(draft.content_id, draft.format)
            await session.refresh(draft)
            return draft

    async def get(self, download_id: int) -> Optional[VideoDownload]:
        if not _valid_id(download_id):
            return None
        async with self.session_factory() as session:
            return await session.get(VideoDownload, download_id)

    async def find_active(self, content_id: str, format: str) -> Optional[VideoDownload]:
        async with self.session_factory() as session:
            result = await session.execute(
                select(VideoDownload)
                .where(VideoDownload.content_id == content_id)
                .where(VideoDownload.format == format)
                .where(VideoDownload.status != JobStatus.FAILED.value)
                .order_by(VideoDownload.id.desc())
                .limit(1)
            )
            return result.scalar_one_or_none()

    async def list_by_ids(self, download_ids: Iterable[int]) -> list[VideoDownload]:
        ids = [i for i in dict.fromkeys(download_ids) if _valid_id(i)]
        if not ids:
            return []

        async with self.session_factory() as session:
            result = await session.execute(
                select(VideoDownload)
                .where(VideoDownload.id.in_(ids))
                .order_by(VideoDownload.id)
            )
            return list(result.scalars().all())

    async def list_by_status(self, status: JobStatus, limit: Optional[int] = None) -> list[VideoDownload]:
        async with self.session_factory() as session:
            query = (
                select(VideoDownload)
                .where(VideoDownload.status == JobStatus(status).value)
                .order_by(VideoDownload.created_at, VideoDownload.id)
            )
            if limit is not None:
                query = query.limit(limit)
            result = await session.execute(query)
            return list(result.scalars().all())

    async def list_recent(self, limit: int = 50) -> list[VideoDownload]:
        async with self.session_factory() as session:
            result = await session.execute(
                select(VideoDownload)
                .order_by(VideoDownload.created_at.desc(), VideoDownload.id.desc())
                .limit(limit)
            )
            return list(result.scalars().all())

    async def list_stale(self, cutoff: datetime) -> list[VideoDownload]:
        """cutoff 이전에 시작되어 아직 processing인 작업"""
        async with self.session_factory() as session:
            result = await session.execute(
                select(VideoDownload)
                .where(VideoDownload.status == JobStatus.PROCESSING.value)
                .where(VideoDownload.started_at < cutoff)
                .order_by(VideoDownload.id)
            )
            return list(result.scalars().all())

    async def update(
        self,
        download_id: int,
        expected: Optional[Iterable[JobStatus]] = None,
        **fields,
    ) -> VideoDownload:
        """
        작업 필드 수정

        expected가 주어지면 현재 상태가 그 중 하나일 때만 수정 (compare-and-set)
        같은 작업에 대한 동시 쓰기는 여기서 직렬화됨

        Raises:
            NotFoundError: 작업이 없음
            InvalidTransitionError: 상태가 expected에 없음
        """
        if not _valid_id(download_id):
            raise NotFoundError(download_id)
        if "status" in fields:
            fields["status"] = JobStatus(fields["status"]).value

        async with self.session_factory() as session:
            stmt = update(VideoDownload).where(VideoDownload.id == download_id)
            if expected is not None:
                stmt = stmt.where(VideoDownload.status.in_(_status_values(expected)))
            stmt = stmt.values(**fields).execution_options(synchronize_session=False)

            result = await session.execute(stmt)
            await session.commit()

            if result.rowcount == 0:
                current = await session.get(VideoDownload, download_id)
                if current is None:
                    raise NotFoundError(download_id)
                raise InvalidTransitionError(download_id, current.status)

        updated = await self.get(download_id)
        if updated is None:
            # 수정 직후 다른 요청이 삭제한 경우
            raise NotFoundError(download_id)
        return updated

    async def delete(self, download_id: int) -> bool:
        """작업 삭제. 없으면 False (예외 없음)"""
        if not _valid_id(download_id):
            return False
        async with self.session_factory() as session:
            result = await session.execute(
                delete(VideoDownload).where(VideoDownload.id == download_id)
            )
            await session.commit()
            return result.rowcount > 0
