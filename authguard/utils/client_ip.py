"""Client IP resolution from reverse-proxy headers."""

from __future__ import annotations

from typing import Any, Mapping

UNKNOWN_IP = "unknown"


def _header_lookup(source: Any) -> Mapping[str, str]:
    # Starlette requests expose .headers; plain mappings are used as-is
    headers = getattr(source, "headers", source)
    return {str(k).lower(): str(v) for k, v in headers.items()}


def get_client_ip(request: Any) -> str:
    """Resolve the caller's IP address for rate limiting.

    Resolution order: ``CF-Connecting-IP``, the first entry of
    ``X-Forwarded-For``, ``X-Real-IP``. Header names are matched
    case-insensitively and blank values are skipped. When none is present the
    literal ``"unknown"`` is returned, which the guards treat as one shared
    bucket.

    Args:
        request: A Starlette/FastAPI request or any mapping of headers.

    Returns:
        The resolved IP string.

    Examples:
        >>> get_client_ip({"CF-Connecting-IP": "5.5.5.5", "X-Forwarded-For": "1.1.1.1, 2.2.2.2"})
        '5.5.5.5'
        >>> get_client_ip({"X-Forwarded-For": " 1.1.1.1 , 2.2.2.2"})
        '1.1.1.1'
        >>> get_client_ip({})
        'unknown'
    """

    headers = _header_lookup(request)

    cf_ip = headers.get("cf-connecting-ip", "").strip()
    if cf_ip:
        return cf_ip

    forwarded = headers.get("x-forwarded-for", "").split(",")[0].strip()
    if forwarded:
        return forwarded

    real_ip = headers.get("x-real-ip", "").strip()
    if real_ip:
        return real_ip

    return UNKNOWN_IP
