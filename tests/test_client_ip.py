"""Tests for client IP resolution from proxy headers."""

from __future__ import annotations

import pytest
from starlette.requests import Request

from authguard.utils.client_ip import get_client_ip


def _request(headers: dict[str, str]) -> Request:
    scope = {
        "type": "http",
        "method": "POST",
        "path": "/v1/auth/login",
        "headers": [(k.lower().encode(), v.encode()) for k, v in headers.items()],
        "client": ("10.0.0.1", 5555),
    }
    return Request(scope)


def test_cloudflare_header_wins() -> None:
    headers = {"CF-Connecting-IP": "5.5.5.5", "X-Forwarded-For": "1.1.1.1, 2.2.2.2"}

    assert get_client_ip(headers) == "5.5.5.5"
    assert get_client_ip(_request(headers)) == "5.5.5.5"


@pytest.mark.parametrize(
    ("headers", "expected"),
    [
        ({"X-Forwarded-For": "1.1.1.1, 2.2.2.2", "X-Real-IP": "3.3.3.3"}, "1.1.1.1"),
        ({"x-forwarded-for": " 1.1.1.1 "}, "1.1.1.1"),
        ({"X-Real-IP": "3.3.3.3"}, "3.3.3.3"),
        ({"CF-Connecting-IP": "  ", "X-Real-IP": "3.3.3.3"}, "3.3.3.3"),
        ({"X-Forwarded-For": ", 2.2.2.2", "X-Real-IP": "3.3.3.3"}, "3.3.3.3"),
        ({}, "unknown"),
    ],
)
def test_resolution_order(headers: dict[str, str], expected: str) -> None:
    assert get_client_ip(headers) == expected


def test_socket_peer_is_not_used() -> None:
    assert get_client_ip(_request({})) == "unknown"
