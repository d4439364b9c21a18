import base64

import pytest
import requests

from github_scanner.rate_limiter import RateLimiter


class FakeResponse:
    def __init__(self, payload=None, status_code=200, headers=None, text=None):
        self._payload = payload
        self.status_code = status_code
        self.headers = headers or {}
        self.text = text if text is not None else ("" if payload is None else str(payload))

    def json(self):
        if isinstance(self._payload, Exception):
            raise self._payload
        if self._payload is None:
            raise ValueError("No JSON body")
        return self._payload


class FakeSession:
    """
    Routes GET/HEAD/POST/PUT by URL.

    A route is a FakeResponse, an exception instance (raised), or a callable
    taking the request params and returning either.
    """

    def __init__(self, routes=None, clock=None):
        self.routes = dict(routes or {})
        self.clock = clock
        self.calls = []
        self.headers = {}

    def _dispatch(self, method, url, params=None, **kwargs):
        self.calls.append({
            "method": method,
            "url": url,
            "params": params,
            "time": self.clock.now if self.clock else None,
            **kwargs,
        })
        route = self.routes.get((method, url), self.routes.get(url))
        if route is None:
            return FakeResponse({"message": "Not Found"}, status_code=404)
        if callable(route) and not isinstance(route, FakeResponse):
            route = route(params or {})
        if isinstance(route, Exception):
            raise route
        return route

    def get(self, url, params=None, **kwargs):
        return self._dispatch("GET", url, params=params, **kwargs)

    def head(self, url, **kwargs):
        return self._dispatch("HEAD", url, **kwargs)

    def post(self, url, **kwargs):
        return self._dispatch("POST", url, **kwargs)

    def put(self, url, params=None, **kwargs):
        return self._dispatch("PUT", url, params=params, **kwargs)

    def urls(self, method="GET"):
        return [call["url"] for call in self.calls if call["method"] == method]


class FakeClock:
    def __init__(self, now=1_700_000_000.0):
        self.now = now
        self.sleeps = []

    def time(self):
        return self.now

    def sleep(self, seconds):
        self.sleeps.append(seconds)
        self.now += seconds


def encode(text):
    """Base64 the way the contents API returns it: wrapped at 60 chars."""
    raw = base64.b64encode(text.encode("utf-8")).decode("ascii")
    return "\n".join(raw[i:i + 60] for i in range(0, len(raw), 60)) + "\n"


def tree_response(paths, blobs=True):
    return FakeResponse({
        "sha": "abc",
        "tree": [{"path": path, "type": "blob" if blobs else "tree"} for path in paths],
        "truncated": False,
    })


def content_response(path, text):
    return FakeResponse({"path": path, "content": encode(text), "encoding": "base64"})


API = "https://api.github.com"


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def rate_limiter(clock):
    return RateLimiter(clock=clock.time, sleep=clock.sleep)


@pytest.fixture
def connection_error():
    return requests.ConnectionError("connection reset")
