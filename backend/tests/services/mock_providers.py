"""Mock Providers — an httpx.MockTransport router standing in for every third-party API.

Invariants:
    - Routes match on method + URL prefix (query string ignored); the most
      recently added matching route wins, so tests override defaults
    - Every request is recorded (method, URL, headers, body) for assertions
    - Unrouted requests answer 404 with a provider-shaped error body
    - The identity route accepts only bearer "good-token" (user "user-1") and
      "other-token" (user "user-2")

Design Decisions:
    - MockTransport over monkeypatching adapters: the real ProviderHttpClient
      (retry, decode, scrub) and the real pydantic boundary are exercised
    - Handlers are plain callables Request -> Response, or a static (status, json) pair
"""

import json
from collections.abc import Callable
from urllib.parse import parse_qs

import httpx

from nexus.config import Settings

IDENTITY_URL = "http://identity.test"
GOOD_TOKEN = "good-token"
OTHER_TOKEN = "other-token"
USER_ID = "user-1"
OTHER_USER_ID = "user-2"

_TOKENS = {GOOD_TOKEN: USER_ID, OTHER_TOKEN: OTHER_USER_ID}


def _url_key(request: httpx.Request) -> str:
    url = request.url
    return f"{url.scheme}://{url.host}{url.path}"


class ProviderRouter:
    """Callable handler for httpx.MockTransport."""

    def __init__(self):
        self.routes: list[tuple[str, str, Callable[[httpx.Request], httpx.Response]]] = []
        self.calls: list[httpx.Request] = []
        self.add("GET", f"{IDENTITY_URL}/auth/v1/user", _identity_handler)

    def add(self, method: str, url: str, handler=None, *, status: int = 200, json=None):
        """Register a route; handler wins over the static status/json pair."""
        if handler is None:
            body = {} if json is None else json

            def handler(request, _status=status, _body=body):
                return httpx.Response(_status, json=_body)

        self.routes.append((method.upper(), url, handler))
        return self

    def __call__(self, request: httpx.Request) -> httpx.Response:
        request.read()
        self.calls.append(request)
        key = _url_key(request)
        for method, prefix, handler in reversed(self.routes):
            if request.method == method and key.startswith(prefix):
                return handler(request)
        return httpx.Response(404, json={"error": {"message": f"no route for {key}"}})

    def calls_to(self, url_fragment: str, method: str | None = None) -> list[httpx.Request]:
        return [
            r for r in self.calls
            if url_fragment in str(r.url) and (method is None or r.method == method)
        ]

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self))


# -- Helpers -------------------------------------------------------------------


def make_settings(**overrides) -> Settings:
    """Settings pointing every provider at a fake host, with tiny retry delays."""
    values = {
        "database_url": "sqlite+aiosqlite:///:memory:",
        "identity_url": IDENTITY_URL,
        "identity_anon_key": "anon-key",
        "public_base_url": "http://api.test",
        "oauth_fallback_origin": "https://dashboard.test",
        "oauth_state_secret": "state-secret",
        "meta_app_id": "meta-app-id",
        "meta_app_secret": "meta-app-secret",
        "google_client_id": "google-client-id",
        "google_client_secret": "google-client-secret",
        "google_ads_developer_token": "dev-token",
        "whatsapp_access_token": "wa-system-token",
        "whatsapp_business_account_id": "waba-123",
        "whatsapp_verify_token": "verify-me",
        "porkbun_api_key": "pk1_test",
        "porkbun_secret_key": "sk1_test",
        "porkbun_base_url": "https://porkbun.test/api/json/v3",
        "registrar_mode": "mock",
        "stripe_secret_key": "sk_test_123",
        "stripe_webhook_secret": "whsec_test",
        "stripe_api_base": "https://stripe.test/v1",
        "http_max_retries": 1,
        "http_base_delay_ms": 1,
        "http_max_delay_ms": 2,
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


def _identity_handler(request: httpx.Request) -> httpx.Response:
    auth = request.headers.get("authorization", "")
    token = auth[len("Bearer "):] if auth.startswith("Bearer ") else ""
    user_id = _TOKENS.get(token)
    if user_id is None:
        return httpx.Response(401, json={"msg": "invalid JWT"})
    return httpx.Response(200, json={"id": user_id, "email": f"{user_id}@example.com"})


def json_body(request: httpx.Request) -> dict:
    return json.loads(request.content or b"{}")


def form_body(request: httpx.Request) -> dict:
    """Decode an x-www-form-urlencoded body into single-valued fields."""
    parsed = parse_qs(request.content.decode("utf-8"), keep_blank_values=True)
    return {k: v[0] for k, v in parsed.items()}


def auth_header(token: str = GOOD_TOKEN) -> dict:
    return {"Authorization": f"Bearer {token}"}
