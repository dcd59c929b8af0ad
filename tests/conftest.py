import os
import sys
from typing import Callable, Dict, List

import httpx
import pytest

# Ensure repo root is on sys.path for imports like 'portfolio_engine.*'
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from portfolio_engine.services import Services  # noqa: E402


class FakeClock:
    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


class FakeSleep:
    """Records requested sleeps and advances the paired clock instead of waiting."""

    def __init__(self, clock: FakeClock = None):
        self.clock = clock
        self.calls: List[float] = []

    async def __call__(self, seconds: float):
        self.calls.append(seconds)
        if self.clock is not None:
            self.clock.advance(seconds)


class FakeUpstream:
    """Routes httpx requests by host + path prefix, recording every call."""

    def __init__(self):
        self.routes: Dict[str, Callable[[httpx.Request], httpx.Response]] = {}
        self.calls: List[httpx.Request] = []

    def on(self, host_and_path: str, handler):
        if not callable(handler):
            template = handler

            def handler(request):
                return httpx.Response(template.status_code, headers=template.headers,
                                      content=template.content)
        self.routes[host_and_path] = handler

    def count(self, host_and_path: str) -> int:
        return sum(1 for r in self.calls if f"{r.url.host}{r.url.path}".startswith(host_and_path))

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.calls.append(request)
        target = f"{request.url.host}{request.url.path}"
        for prefix in sorted(self.routes, key=len, reverse=True):
            if target.startswith(prefix):
                return self.routes[prefix](request)
        return httpx.Response(404, json={"error": "no route"})

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handle))


class FakeMessages:
    def __init__(self, text="Summary text"):
        self.text = text
        self.calls = []

    def create(self, **kwargs):
        self.calls.append(kwargs)
        block = type("Block", (), {"text": self.text})()
        return type("Message", (), {"content": [block]})()


class FakeAnthropic:
    def __init__(self, text="Summary text"):
        self.messages = FakeMessages(text)


def chart_payload(price=410.5, previous_close=400.0, name="Microsoft Corporation"):
    return {"chart": {"result": [{"meta": {
        "regularMarketPrice": price,
        "previousClose": previous_close,
        "longName": name,
        "regularMarketVolume": 21_500_000,
    }}]}}


def details_payload(market_cap=3.05e12, pe=35.12):
    return {"quoteResponse": {"result": [{"marketCap": market_cap, "trailingPE": pe}]}}


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def fake_sleep(clock):
    return FakeSleep(clock)


@pytest.fixture
def upstream():
    return FakeUpstream()


@pytest.fixture
def make_services(upstream, clock, fake_sleep):
    def _make(**kwargs):
        kwargs.setdefault("news_api_key", "")
        kwargs.setdefault("redis_url", "")
        return Services(client=upstream.client(), clock=clock, sleep=fake_sleep, **kwargs)
    return _make
