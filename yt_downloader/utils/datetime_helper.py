from datetime import datetime, timezone
from typing import Optional


def utcnow() -> datetime:
    """기본 시계. 테스트에서는 고정된 시계를 주입"""
    return datetime.now(timezone.utc)


def to_utc(dt: datetime) -> datetime:
    """
    DB에서 읽은 datetime을 UTC aware 객체로 맞춤
    SQLite는 timezone 정보를 저장하지 않으므로 naive 값은 UTC로 간주
    """
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def format_datetime_utc(dt: Optional[datetime]) -> Optional[str]:
    """
    datetime 객체를 UTC ISO 형식 문자열로 변환

    Args:
        dt: datetime 객체

    Returns:
        ISO 형식 문자열 (예: 2025-10-05T12:34:56+00:00)
        dt가 None이면 None
    """
    if not dt:
        return None

    return to_utc(dt).isoformat()
