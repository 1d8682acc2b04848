import logging
from abc import ABC, abstractmethod
from pathlib import Path

logger = logging.getLogger(__name__)


class ArtifactStorage(ABC):
    """변환 결과물(artifact) 저장소. 작업 삭제 시 참조"""

    @abstractmethod
    def exists(self, ref: str) -> bool:
        ...

    @abstractmethod
    def delete(self, ref: str) -> None:
        ...


class LocalArtifactStorage(ArtifactStorage):
    """
    로컬 디렉터리 기반 저장소
    artifact ref는 "downloads/<파일명>" 형태이며 루트 디렉터리 기준으로 해석
    """

    def __init__(self, root: str):
        self.root = Path(root).resolve()

    def _resolve(self, ref: str) -> Path:
        # ref 앞의 "downloads/" 같은 디렉터리 접두어는 무시하고 파일명만 사용
        path = (self.root / Path(ref).name).resolve()
        # 루트 밖의 경로 접근 방지
        if path.parent != self.root:
            raise ValueError(f"Artifact ref outside storage root: {ref}")
        return path

    def exists(self, ref: str) -> bool:
        return self._resolve(ref).exists()

    def delete(self, ref: str) -> None:
        path = self._resolve(ref)
        path.unlink(missing_ok=True)
        logger.info(f"Deleted artifact {path}")
