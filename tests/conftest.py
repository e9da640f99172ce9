"""Shared fixtures: a scripted fake ValidKit API behind httpx.MockTransport."""

import json

import httpx
import pytest

from validkit.client import ValidKitClient


class FakeApi:
    """
    Scripted MockTransport handler.

    Each item is an httpx.Response, or a callable taking the request and
    returning a response (or raising). The last item repeats once the script
    runs out.
    """

    def __init__(self, *script):
        self.script = list(script)
        self.requests = []

    def __call__(self, request: httpx.Request):
        self.requests.append(request)
        item = self.script.pop(0) if len(self.script) > 1 else self.script[0]
        if callable(item):
            return item(request)
        return item

    @property
    def calls(self) -> int:
        return len(self.requests)

    def body(self, index: int = -1):
        return json.loads(self.requests[index].content)


class SleepRecorder:
    """Stand-in for asyncio.sleep that records delays instead of waiting."""

    def __init__(self):
        self.delays = []

    async def __call__(self, seconds: float):
        self.delays.append(seconds)


def json_response(status: int = 200, body=None, headers: dict = None) -> httpx.Response:
    return httpx.Response(status, json=body if body is not None else {}, headers=headers)


def connect_error(request: httpx.Request):
    raise httpx.ConnectError("Connection refused", request=request)


def read_timeout(request: httpx.Request):
    raise httpx.ReadTimeout("timed out", request=request)


def bulk_compact(request: httpx.Request) -> httpx.Response:
    """Answer a bulk call in the indexed compact shape, all valid."""
    emails = json.loads(request.content)["emails"]
    return httpx.Response(200, json={str(i): {"v": True} for i in range(len(emails))})


def single_envelope(email="test@example.com", valid=True, disposable=False, **extra):
    body = {
        "success": True,
        "email": email,
        "result": {
            "valid": valid,
            "format": {"valid": True},
            "disposable": {"valid": not disposable, "value": disposable},
            "mx": {"valid": True, "records": ["mx1.example.com"]},
            "smtp": {"valid": valid, "code": 250},
            "validation_time_ms": 42,
        },
    }
    body.update(extra)
    return body


@pytest.fixture
def sleeps():
    return SleepRecorder()


@pytest.fixture
def make_client(sleeps):
    """Build a ValidKitClient talking to a FakeApi."""

    def _make(api: FakeApi, **kwargs) -> ValidKitClient:
        http_client = httpx.AsyncClient(transport=httpx.MockTransport(api))
        return ValidKitClient(
            api_key="test_api_key",
            base_url="https://api.test",
            http_client=http_client,
            sleep=sleeps,
            **kwargs,
        )

    return _make
