# tests/conftest.py
import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

import asyncio
import inspect
import pytest
import pytest_asyncio

from copyfactory.clients.domain_client import DomainClient
from copyfactory.config import RetryOptions
from copyfactory.infra.http_client import HttpClient

API_TOKEN = "header.payload.signature"          # JWT shaped, i.e. an API access token
PROVISIONING = "https://mt-provisioning-api-v1.agiliumtrade.agiliumtrade.ai/users/current/servers/mt-client-api"
RESOLVED_DOMAIN = "agiliumtrade.ai"


class FakeHttp:
    """
    Scripted stand-in for HttpClient. Results are registered per (method, url) and
    consumed in order; the last one sticks. A result may be a value, an exception
    (raised), or a callable taking the recorded call (sync or async).
    """

    def __init__(self, retry_opts=None):
        self.retry_opts = retry_opts or RetryOptions(retries=2, min_delay_in_seconds=1, max_delay_in_seconds=4)
        self.calls = []
        self.closed = False
        self._routes = {}

    def on(self, method, url, *results):
        self._routes.setdefault((method, url), []).extend(results)
        return self

    def calls_to(self, url):
        return [c for c in self.calls if c["url"] == url]

    async def _next(self, call):
        results = self._routes.get((call["method"], call["url"]))
        if not results:
            raise AssertionError(f"unexpected request {call['method']} {call['url']}")
        result = results.pop(0) if len(results) > 1 else results[0]
        if callable(result) and not isinstance(result, type):
            result = result(call)
            if inspect.isawaitable(result):
                result = await result
        if isinstance(result, BaseException):
            raise result
        return result

    async def request(self, method, url, *, params=None, json_body=None, headers=None,
                      extended_timeout=False, timeout=None):
        call = {"method": method, "url": url, "params": dict(params or {}), "json_body": json_body,
                "headers": dict(headers or {}), "extended_timeout": extended_timeout}
        self.calls.append(call)
        return await self._next(call)

    async def request_with_failover(self, method, path, hosts, *, params=None, json_body=None, headers=None,
                                    extended_timeout=False, timeout=None):
        call = {"method": method, "url": path, "hosts": list(hosts), "params": dict(params or {}),
                "json_body": json_body, "headers": dict(headers or {}), "extended_timeout": extended_timeout}
        self.calls.append(call)
        return await self._next(call)

    async def close(self):
        self.closed = True


@pytest.fixture
def fake_http():
    http = FakeHttp()
    http.on("GET", PROVISIONING, {"domain": RESOLVED_DOMAIN})
    return http


@pytest.fixture
def domain_client(fake_http):
    return DomainClient(fake_http, API_TOKEN)


@pytest.fixture
def sleeps():
    return []


@pytest_asyncio.fixture
async def http_client(monkeypatch, sleeps):
    """
    HttpClient with retries=2, delays in [1, 4]s; sleeps are recorded instead of awaited.
    """
    client = HttpClient(request_timeout=1, extended_timeout=2,
                        retry_opts=RetryOptions(retries=2, min_delay_in_seconds=1, max_delay_in_seconds=4))

    async def fake_sleep(seconds):
        sleeps.append(seconds)

    monkeypatch.setattr(client, "_sleep", fake_sleep)
    async with client:
        yield client


@pytest.fixture
def wait_until():
    async def _wait(predicate, timeout=2.0):
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while not predicate():
            if loop.time() > deadline:
                raise AssertionError("condition not met in time")
            await asyncio.sleep(0.005)
    return _wait
