import asyncio
import random
import re
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

from yt_downloader.models.download import OutputFormat


@dataclass(frozen=True)
class Metadata:
    title: str
    duration_seconds: int


@dataclass(frozen=True)
class Artifact:
    ref: str
    size_bytes: int


class MediaProvider(ABC):
    """
    메타데이터 조회와 변환을 담당하는 인터페이스
    실제 파이프라인(yt-dlp 등)도 같은 인터페이스로 구현
    """

    @abstractmethod
    async def fetch_metadata(self, content_id: str) -> Metadata:
        ...

    @abstractmethod
    async def convert(self, content_id: str, format: OutputFormat, metadata: Metadata) -> Artifact:
        ...


# 포맷별 초당 바이트 수 (대략적인 비트레이트)
BYTES_PER_SECOND = {
    OutputFormat.MP3: 16000,   # ~128kbps
    OutputFormat.WAV: 176400,  # ~1411kbps (CD 음질)
    OutputFormat.MP4: 125000,  # ~1Mbps
}

# 포맷별 변환 소요 시간 범위 (초)
PROCESSING_SECONDS = {
    OutputFormat.MP3: (5, 15),
    OutputFormat.WAV: (10, 25),
    OutputFormat.MP4: (15, 30),
}

SIMULATED_TITLES = [
    "Amazing Tutorial - How to Build Modern Web Apps",
    "Music Video - Best Hits 2024",
    "Documentary: The Future of Technology",
    "Cooking Tutorial: Delicious Recipes",
    "Travel Vlog: Beautiful Destinations",
    "Educational Content: Science Explained",
    "Entertainment: Comedy Sketches",
    "News Update: Latest Headlines",
]


def estimate_size(duration_seconds: int, format: OutputFormat) -> int:
    return int(duration_seconds) * BYTES_PER_SECOND[OutputFormat(format)]


def slugify(title: str, max_length: int = 100) -> str:
    """
    제목을 파일명에 쓸 수 있는 slug로 변환
    - 영문/숫자 외 문자는 하이픈으로
    - 길이 제한
    """
    slug = re.sub(r"[^a-z0-9]+", "-", title.lower()).strip("-")
    if not slug:
        slug = "untitled"
    return slug[:max_length].rstrip("-")


def artifact_ref_for(title: str, format: OutputFormat) -> str:
    return f"downloads/{slugify(title)}_{uuid.uuid4()}.{OutputFormat(format).value}"


class SimulatedProvider(MediaProvider):
    """
    실제 다운로드 없이 메타데이터와 변환 결과를 만들어내는 provider
    rng를 주입하면 결과가 결정적
    """

    def __init__(self, rng: Optional[random.Random] = None, delay_scale: float = 0.0):
        self.rng = rng or random.Random()
        self.delay_scale = delay_scale

    async def fetch_metadata(self, content_id: str) -> Metadata:
        return Metadata(
            title=self.rng.choice(SIMULATED_TITLES),
            duration_seconds=self.rng.randint(30, 3600),  # 30초 ~ 1시간
        )

    async def convert(self, content_id: str, format: OutputFormat, metadata: Metadata) -> Artifact:
        format = OutputFormat(format)
        low, high = PROCESSING_SECONDS[format]
        delay = self.rng.randint(low, high) * self.delay_scale
        if delay > 0:
            await asyncio.sleep(delay)

        return Artifact(
            ref=artifact_ref_for(metadata.title, format),
            size_bytes=estimate_size(metadata.duration_seconds, format),
        )
