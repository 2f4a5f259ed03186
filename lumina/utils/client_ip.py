"""
클라이언트 IP 추출 유틸리티.

프록시나 로드밸런서를 거치는 경우 실제 클라이언트 IP를 추출합니다.
Rate limit 키와 요청 로그에서 함께 사용합니다.
"""
from typing import Optional

from fastapi import Request

# 우선순위 순서
_PROXY_HEADERS = ("X-Real-IP", "CF-Connecting-IP", "True-Client-IP")


def get_client_ip(request: Request) -> Optional[str]:
    """
    요청에서 실제 클라이언트 IP를 추출합니다.

    X-Forwarded-For의 첫 번째 IP → X-Real-IP → CF-Connecting-IP →
    True-Client-IP → 직접 연결 순서로 확인합니다.

    Security:
        이 헤더들은 위조될 수 있으므로 신뢰할 수 있는 프록시 뒤에서만 의미가 있습니다.
    """
    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        client_ip = forwarded_for.split(",")[0].strip()
        if client_ip:
            return client_ip

    for header in _PROXY_HEADERS:
        value = request.headers.get(header)
        if value and value.strip():
            return value.strip()

    if request.client:
        return request.client.host

    return None


def get_client_identifier(request: Request) -> str:
    """Rate limiting key. Never empty."""
    return get_client_ip(request) or "unknown"
