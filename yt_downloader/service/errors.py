class DownloadError(Exception):
    """다운로드 작업 관련 예외의 기본 클래스"""


class ValidationError(DownloadError):
    """잘못된 입력 (형식, URL). 상태를 변경하지 않음"""

    def __init__(self, field: str, message: str):
        super().__init__(message)
        self.field = field
        self.message = message

    def to_dict(self) -> dict:
        return {self.field: self.message}


class ConflictError(DownloadError):
    """같은 (content_id, format) 활성 작업이 이미 존재"""

    def __init__(self, content_id: str, format: str):
        super().__init__(f"Active download already exists for {content_id} ({format})")
        self.content_id = content_id
        self.format = format


class NotFoundError(DownloadError):
    def __init__(self, download_id: int):
        super().__init__(f"Download {download_id} not found")
        self.download_id = download_id


class InvalidTransitionError(DownloadError):
    """다른 작업자가 먼저 상태를 바꿔서 compare-and-set이 실패한 경우"""

    def __init__(self, download_id: int, current_status: str):
        super().__init__(f"Download {download_id} is already {current_status}")
        self.download_id = download_id
        self.current_status = current_status


class ProcessingError(DownloadError):
    """메타데이터 조회 또는 변환 중 실패. 작업의 error_reason으로만 노출됨"""
