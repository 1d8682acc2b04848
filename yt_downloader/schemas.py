"""
다운로드 API 응답 모델 (pydantic)
"""

from typing import List, Optional

from pydantic import BaseModel

from yt_downloader.models.download import VideoDownload
from yt_downloader.utils.datetime_helper import format_datetime_utc


class DownloadSnapshot(BaseModel):
    """폴링 클라이언트에 돌려주는 간단한 상태 정보"""
    id: int
    status: str  # "pending" | "processing" | "completed" | "failed"
    title: Optional[str] = None
    formatted_size: str
    formatted_duration: str
    error_reason: Optional[str] = None
    completed_at: Optional[str] = None

    @classmethod
    def from_download(cls, download: VideoDownload) -> "DownloadSnapshot":
        return cls(
            id=download.id,
            status=download.status,
            title=download.title,
            formatted_size=download.formatted_size,
            formatted_duration=download.formatted_duration,
            error_reason=download.error_reason,
            completed_at=format_datetime_utc(download.completed_at),
        )


class StatusCheckResponse(BaseModel):
    downloads: List[DownloadSnapshot]


class DownloadDetail(DownloadSnapshot):
    """작업 하나의 전체 정보"""
    source_url: str
    content_id: str
    format: str
    size_bytes: Optional[int] = None
    duration_seconds: Optional[int] = None
    artifact_ref: Optional[str] = None
    created_at: Optional[str] = None
    started_at: Optional[str] = None

    @classmethod
    def from_download(cls, download: VideoDownload) -> "DownloadDetail":
        snapshot = DownloadSnapshot.from_download(download)
        return cls(
            **snapshot.model_dump(),
            source_url=download.source_url,
            content_id=download.content_id,
            format=download.format,
            size_bytes=download.size_bytes,
            duration_seconds=download.duration_seconds,
            artifact_ref=download.artifact_ref,
            created_at=format_datetime_utc(download.created_at),
            started_at=format_datetime_utc(download.started_at),
        )


class MessageResponse(BaseModel):
    message: str
