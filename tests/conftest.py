"""Pytest configuration shared across the suite."""

try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

from typing import Any, Callable, Dict, Mapping, Optional

import httpx
import pytest

from app.clients.credential_store import SQLiteCredentialStore
from app.core.config import FetchSettings, RateLimitSettings, ZohoSettings
from app.core.observability import AccessEvent
from app.services.fetchers import UpstreamFetcher
from app.utils.token_cipher import TokenCipherService


class RecordingSink:
    def __init__(self) -> None:
        self.events: list[tuple[AccessEvent, dict[str, Any]]] = []

    def emit(self, event: AccessEvent, **fields: Any) -> None:
        self.events.append((event, fields))

    def of(self, event: AccessEvent) -> list[dict[str, Any]]:
        return [fields for recorded, fields in self.events if recorded is event]


class FakeSleep:
    """Records requested delays instead of waiting; can drive a fake clock."""

    def __init__(self, clock: "FakeClock | None" = None) -> None:
        self.calls: list[float] = []
        self._clock = clock

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)
        if self._clock is not None:
            self._clock.advance(seconds)


class FakeClock:
    def __init__(self, start: float = 1_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def events() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def cipher() -> TokenCipherService:
    return TokenCipherService(secret="unit-test-secret")


@pytest.fixture
def store(tmp_path, cipher) -> SQLiteCredentialStore:
    return SQLiteCredentialStore(str(tmp_path / "credentials.db"), cipher)


@pytest.fixture
def zoho_settings() -> ZohoSettings:
    return ZohoSettings(
        ZOHO_CLIENT_ID="client",
        ZOHO_CLIENT_SECRET="secret",
        ZOHO_API_BASE_URL="https://projects.example.com/api/v3/",
        ZOHO_ACCOUNTS_TOKEN_URL="https://accounts.example.com/oauth/v2/token",
    )


@pytest.fixture
def relaxed_limits() -> RateLimitSettings:
    return RateLimitSettings(
        ZOHO_MIN_CALL_SPACING=0, ZOHO_MAX_CALLS_PER_WINDOW=1000, ZOHO_RATE_WINDOW=120
    )


@pytest.fixture
def fetch_settings() -> FetchSettings:
    return FetchSettings(ZOHO_PAGE_SIZE=2, ZOHO_MAX_PAGES=50)


class FakeGateway:
    """Answers ``call_upstream`` from a handler keyed on endpoint and params.

    The handler returns a JSON-able payload or raises (typically UpstreamError).
    """

    def __init__(self, handler: Callable[[str, Dict[str, Any]], Any]) -> None:
        self._handler = handler
        self.calls: list[tuple[str, Dict[str, Any]]] = []

    async def call_upstream(
        self,
        endpoint: str,
        method: str = "GET",
        body: Any = None,
        params: Optional[Mapping[str, Any]] = None,
        *,
        conversation_id: str,
        portal_id: Optional[str] = None,
    ) -> httpx.Response:
        query = dict(params or {})
        self.calls.append((endpoint, query))
        payload = self._handler(endpoint, query)
        return httpx.Response(
            200, json=payload, request=httpx.Request(method, f"https://zoho.test/{endpoint}")
        )

    def endpoints(self) -> list[str]:
        return [endpoint for endpoint, _ in self.calls]


@pytest.fixture
def fetcher_factory(fetch_settings, events):
    def build(handler: Callable[[str, Dict[str, Any]], Any]):
        gateway = FakeGateway(handler)
        return UpstreamFetcher(gateway, fetch_settings, events=events), gateway

    return build
