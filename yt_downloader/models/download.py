from sqlalchemy import Column, Integer, String, DateTime, Text, Index, text
from sqlalchemy.orm import declarative_base
from sqlalchemy.sql import func
from enum import Enum

from yt_downloader.utils.formatting import format_file_size, format_duration

Base = declarative_base()


class JobStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class OutputFormat(str, Enum):
    MP3 = "mp3"  # audio-compressed
    MP4 = "mp4"  # video
    WAV = "wav"  # audio-uncompressed

    @classmethod
    def parse(cls, value: str) -> "OutputFormat":
        """
        확장자(mp3/mp4/wav) 또는 설명형 별칭(audio-compressed 등)을 OutputFormat으로 변환
        알 수 없는 값이면 ValueError
        """
        normalized = (value or "").strip().lower()
        if normalized in _FORMAT_ALIASES:
            return _FORMAT_ALIASES[normalized]
        return cls(normalized)


_FORMAT_ALIASES = {
    "audio-compressed": OutputFormat.MP3,
    "video": OutputFormat.MP4,
    "audio-uncompressed": OutputFormat.WAV,
}


class VideoDownload(Base):
    __tablename__ = "video_downloads"
    __table_args__ = (
        # 활성 (content_id, format) 쌍은 하나만 존재 - 중복 요청 방지의 원자적 게이트
        Index(
            "uq_video_downloads_active_pair",
            "content_id",
            "format",
            unique=True,
            sqlite_where=text("status != 'failed'"),
            postgresql_where=text("status != 'failed'"),
        ),
        Index("ix_video_downloads_status_created_at", "status", "created_at"),
    )

    id = Column(Integer, primary_key=True, index=True)
    source_url = Column(Text, nullable=False)
    content_id = Column(String(64), nullable=False, index=True)
    format = Column(String(10), nullable=False)  # mp3, mp4, wav
    status = Column(String(20), nullable=False, default=JobStatus.PENDING.value, index=True)
    title = Column(String(255), nullable=True)
    size_bytes = Column(Integer, nullable=True)
    duration_seconds = Column(Integer, nullable=True)
    error_reason = Column(Text, nullable=True)
    artifact_ref = Column(String(512), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now(), server_default=func.now())
    started_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)

    @property
    def formatted_size(self) -> str:
        return format_file_size(self.size_bytes)

    @property
    def formatted_duration(self) -> str:
        return format_duration(self.duration_seconds)

    def __repr__(self) -> str:
        return f"<VideoDownload id={self.id} {self.content_id}/{self.format} {self.status}>"
