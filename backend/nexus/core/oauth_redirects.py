"""OAuth Redirects — pure builders for the settings-page redirect after a callback.

Invariants:
    - Every callback outcome is a URL under "<origin>/settings"
    - Empty or non-http(s) origins fall back to the configured dashboard origin
    - Query values are URL-encoded; candidate lists are serialized as compact JSON
"""

import json
from urllib.parse import urlencode, urlsplit


def normalize_origin(origin: str | None) -> str:
    """Return "scheme://host[:port]" for http(s) origins, else ""."""
    if not origin:
        return ""
    parts = urlsplit(origin.strip())
    if parts.scheme not in ("http", "https") or not parts.netloc:
        return ""
    return f"{parts.scheme}://{parts.netloc}"


def settings_url(return_origin: str | None, fallback_origin: str) -> str:
    origin = normalize_origin(return_origin) or normalize_origin(fallback_origin)
    return f"{origin}/settings"


def error_redirect(
    return_origin: str | None, fallback_origin: str, provider: str, message: str,
) -> str:
    query = urlencode({"provider": provider, "error": message})
    return f"{settings_url(return_origin, fallback_origin)}?{query}"


def connected_redirect(
    return_origin: str, fallback_origin: str, provider: str, account_name: str,
) -> str:
    query = urlencode({
        "connected": "true", "provider": provider, "account_name": account_name,
    })
    return f"{settings_url(return_origin, fallback_origin)}?{query}"


def pick_account_redirect(
    return_origin: str, fallback_origin: str, provider: str, accounts: list[dict],
) -> str:
    query = urlencode({
        "pick_account": "true",
        "provider": provider,
        "accounts": json.dumps(accounts, separators=(",", ":"), ensure_ascii=False),
    })
    return f"{settings_url(return_origin, fallback_origin)}?{query}"
