"""Shared fixtures: page fixtures, a fake clock and a scripted DTEK upstream."""

import json
from pathlib import Path

import httpx
import pytest

from src.dtek.config import DtekConfig
from src.dtek.regions import REGIONS, Region

FIXTURES = Path(__file__).parent / "fixtures"

FIXTURE_TOKEN = "kQ3xV0pL_tUq-9Yc2m1Rz8eWbH4sNfA7gJdKoP6iXyE="
FIXTURE_UPDATE = "11.12.2025 20:51"

PAGE_COOKIES = [
    "dtek-oem=sess-1; path=/; HttpOnly",
    "_csrf-dtek-oem=csrf-1; path=/; HttpOnly",
    "visid_incap_2398465=visitor; expires=Thu, 11-Dec-2026 20:51:00 GMT; path=/",
    "incap_ses_1234_2398465=ses; path=/",
    "_ga=GA1.1.42; path=/",
]


class FakeClock:
    """Monotonic clock the test moves by hand."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeUpstream:
    """Scripted DTEK site for httpx.MockTransport.

    Counts requests per endpoint and answers from the attributes below, which
    tests change between calls.
    """

    def __init__(self, page_html: str) -> None:
        self.page_html = page_html
        self.page_status = 200
        self.page_cookies = list(PAGE_COOKIES)
        self.status_code = 200
        self.status_body: object = {"result": True, "data": {}}
        self.status_cookies: list[str] = []
        self.page_requests = 0
        self.status_requests: list[httpx.Request] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        if request.method == "GET" and request.url.path == "/ua/shutdowns":
            self.page_requests += 1
            headers = [("set-cookie", c) for c in self.page_cookies]
            return httpx.Response(self.page_status, headers=headers, text=self.page_html)

        if request.method == "POST" and request.url.path == "/ua/ajax":
            self.status_requests.append(request)
            headers = [("set-cookie", c) for c in self.status_cookies]
            body = self.status_body
            text = body if isinstance(body, str) else json.dumps(body, ensure_ascii=False)
            return httpx.Response(self.status_code, headers=headers, text=text)

        return httpx.Response(404)

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


@pytest.fixture
def template_html() -> str:
    return (FIXTURES / "template.html").read_text(encoding="utf-8")


@pytest.fixture
def interstitial_html() -> str:
    return (FIXTURES / "interstitial.html").read_text(encoding="utf-8")


@pytest.fixture
def region() -> Region:
    return REGIONS["oem"]


@pytest.fixture
def config() -> DtekConfig:
    return DtekConfig(
        session_ttl_seconds=3600.0,
        status_cache_ttl_seconds=600.0,
        status_cache_max_entries=16,
        retry_delays=[0.01, 0.01],
        request_timeout_seconds=5.0,
        redis_url=None,
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def upstream(template_html: str) -> FakeUpstream:
    return FakeUpstream(template_html)
