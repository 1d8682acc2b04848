from typing import Optional

_SIZE_UNITS = ["B", "KB", "MB", "GB"]


def format_file_size(size_bytes: Optional[int]) -> str:
    """
    바이트 수를 사람이 읽기 쉬운 문자열로 변환 (예: 1536 -> "1.5 KB")
    값이 없거나 0이면 "Unknown"
    """
    if not size_bytes:
        return "Unknown"

    value = float(size_bytes)
    unit = 0
    while value > 1024 and unit < len(_SIZE_UNITS) - 1:
        value /= 1024
        unit += 1

    number = f"{value:.2f}".rstrip("0").rstrip(".")
    return f"{number} {_SIZE_UNITS[unit]}"


def format_duration(duration_seconds: Optional[int]) -> str:
    """초 단위 길이를 m:ss 형식으로 변환 (예: 125 -> "2:05")"""
    if not duration_seconds:
        return "Unknown"

    minutes, seconds = divmod(int(duration_seconds), 60)
    return f"{minutes}:{seconds:02d}"
