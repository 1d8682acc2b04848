"""
다운로드 작업 상태 머신

    pending -> processing -> completed
                          -> failed

completed/failed는 종료 상태이며 벗어나는 전이는 없음.
실패한 (content_id, format)의 재요청은 새 작업으로 생성됨 (DownloadService.submit).
"""

import asyncio
import logging
from datetime import datetime, timedelta
from typing import Callable

from yt_downloader.models.download import VideoDownload, JobStatus, OutputFormat
from yt_downloader.service.download_store import DownloadStore
from yt_downloader.service.errors import InvalidTransitionError, NotFoundError, ProcessingError
from yt_downloader.service.providers import MediaProvider
from yt_downloader.utils.datetime_helper import utcnow

logger = logging.getLogger(__name__)


class DownloadLifecycle:
    def __init__(
        self,
        store: DownloadStore,
        provider: MediaProvider,
        clock: Callable[[], datetime] = utcnow,
        timeout_seconds: float = 300.0,
    ):
        self.store = store
        self.provider = provider
        self.clock = clock
        self.timeout_seconds = timeout_seconds

    async def run(self, download_id: int) -> None:
        """
        작업 하나를 종료 상태까지 진행
        어떤 예외도 호출자에게 전파하지 않고 failed 상태로 기록
        """
        try:
            job = await self.store.update(
                download_id,
                expected=[JobStatus.PENDING],
                status=JobStatus.PROCESSING,
                started_at=self.clock(),
            )
        except (NotFoundError, InvalidTransitionError) as e:
            # 이미 삭제되었거나 다른 작업자가 가져간 작업
            logger.info(f"Skipping download {download_id}: {e}")
            return
        except Exception:
            logger.exception(f"Could not start download {download_id}")
            return

        logger.info(f"Processing download {job.id} ({job.content_id}, {job.format})")

        try:
            await asyncio.wait_for(self._process(job), timeout=self.timeout_seconds)
        except asyncio.TimeoutError:
            await self._fail(download_id, f"Processing timed out after {self.timeout_seconds:g} seconds")
        except ProcessingError as e:
            await self._fail(download_id, str(e) or "Processing failed")
        except Exception as e:
            logger.exception(f"Unexpected error while processing download {download_id}")
            await self._fail(download_id, f"Process error: {e}")

    async def _process(self, job: VideoDownload) -> None:
        try:
            metadata = await self.provider.fetch_metadata(job.content_id)
        except ProcessingError:
            raise
        except Exception as e:
            raise ProcessingError(f"Could not fetch video information: {e}") from e

        await self.store.update(
            job.id,
            expected=[JobStatus.PROCESSING],
            title=metadata.title,
        )

        try:
            artifact = await self.provider.convert(job.content_id, OutputFormat(job.format), metadata)
        except ProcessingError:
            raise
        except Exception as e:
            raise ProcessingError(f"Conversion to {job.format} failed: {e}") from e

        completed = await self.store.update(
            job.id,
            expected=[JobStatus.PROCESSING],
            status=JobStatus.COMPLETED,
            artifact_ref=artifact.ref,
            size_bytes=artifact.size_bytes,
            # 길이는 완료 시에만 기록 (실패한 작업에는 남지 않음)
            duration_seconds=metadata.duration_seconds,
            completed_at=self.clock(),
        )
        logger.info(
            f"Download {completed.id} completed ({completed.content_id}, {completed.format}, "
            f"{completed.size_bytes} bytes)"
        )

    async def _fail(self, download_id: int, reason: str) -> None:
        try:
            await self.store.update(
                download_id,
                expected=[JobStatus.PROCESSING],
                status=JobStatus.FAILED,
                error_reason=reason,
                completed_at=self.clock(),
            )
        except (NotFoundError, InvalidTransitionError) as e:
            logger.warning(f"Could not mark download {download_id} as failed: {e}")
            return
        except Exception:
            logger.exception(f"Could not record failure of download {download_id}")
            return

        logger.error(f"Download {download_id} failed: {reason}")

    async def expire_stale(self) -> int:
        """
        timeout보다 오래 processing에 머문 작업을 failed로 전환
        작업자가 비정상 종료된 경우에도 processing에 영원히 남지 않도록 함
        """
        cutoff = self.clock() - timedelta(seconds=self.timeout_seconds)
        stale = await self.store.list_stale(cutoff)

        for job in stale:
            await self._fail(job.id, f"Processing timed out after {self.timeout_seconds:g} seconds")

        if stale:
            logger.warning(f"Expired {len(stale)} stale download(s)")
        return len(stale)
