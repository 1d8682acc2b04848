"""
YouTube URL에서 영상 ID(content id)를 추출
"""

import re
from typing import Optional

# 지원하는 URL 형태
# - youtube.com/watch?v=ID (다른 쿼리 파라미터가 앞뒤에 있어도 됨)
# - youtu.be/ID
# - youtube.com/embed/ID, youtube.com/v/ID
_HOST = r"^(?:https?://)?(?:www\.|m\.)?"
_TOKEN = r"([^&?#/\s]+)"

YOUTUBE_URL_PATTERNS = [
    re.compile(_HOST + r"youtube\.com/watch\?(?:[^#]*&)?v=" + _TOKEN, re.IGNORECASE),
    re.compile(_HOST + r"youtu\.be/" + _TOKEN, re.IGNORECASE),
    re.compile(_HOST + r"youtube\.com/(?:embed|v)/" + _TOKEN, re.IGNORECASE),
]


def extract_content_id(url: str) -> Optional[str]:
    """
    URL에서 영상 ID를 추출. 인식할 수 없는 URL이면 None
    ID 길이는 검사하지 않음 (구분자 사이의 비어있지 않은 토큰이면 유효)
    """
    if not url:
        return None

    url = url.strip()
    for pattern in YOUTUBE_URL_PATTERNS:
        match = pattern.match(url)
        if match:
            return match.group(1)

    return None


def canonical_url(content_id: str) -> str:
    return f"https://www.youtube.com/watch?v={content_id}"
