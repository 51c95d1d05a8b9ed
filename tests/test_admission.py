import asyncio

import pytest
from fastapi.testclient import TestClient
from starlette.requests import Request

from greenlight.admission import UNKNOWN_CLIENT_KEY, _strip_port, client_key
from greenlight.background import BackgroundTaskManager
from greenlight.config import GreenlightConfig
from greenlight.metrics import default_metrics
from greenlight.server import create_app


def _request(client=("203.0.113.7", 51234), headers=None):
    raw_headers = [(k.lower().encode(), v.encode()) for k, v in (headers or {}).items()]
    scope = {"type": "http", "method": "GET", "path": "/", "headers": raw_headers, "client": client}
    return Request(scope)


def _config(**overrides):
    defaults = dict(limiter_enabled=True, limiter_rps=0.001, limiter_burst=2, cors_trusted_origins=[])
    defaults.update(overrides)
    return GreenlightConfig(**defaults)


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("198.51.100.1:8080", "198.51.100.1"),
        ("198.51.100.1", "198.51.100.1"),
        ("[2001:db8::1]:443", "2001:db8::1"),
        ("2001:db8::1", "2001:db8::1"),
        (" 10.0.0.1 ", "10.0.0.1"),
    ],
)
def test_strip_port(raw, expected):
    assert _strip_port(raw) == expected


def test_client_key_uses_peer_address():
    assert client_key(_request()) == "203.0.113.7"


def test_client_key_ignores_forwarded_header_unless_trusted():
    request = _request(headers={"X-Forwarded-For": "192.0.2.9:1234, 10.0.0.1"})
    assert client_key(request) == "203.0.113.7"
    assert client_key(request, trust_forwarded=True) == "192.0.2.9"


def test_client_key_falls_back_to_unknown():
    assert client_key(_request(client=None)) == UNKNOWN_CLIENT_KEY
    assert client_key(_request(client=("", 0))) == UNKNOWN_CLIENT_KEY


def test_rejects_after_burst_with_error_envelope():
    client = TestClient(create_app(_config()))
    assert client.get("/v1/healthcheck").status_code == 200
    assert client.get("/v1/healthcheck").status_code == 200
    resp = client.get("/v1/healthcheck")
    assert resp.status_code == 429
    assert resp.json() == {"error": "rate limit exceeded"}
    assert "X-Request-ID" in resp.headers
    assert default_metrics.snapshot()["rate_limited"] == 1


def test_clients_are_limited_independently():
    client = TestClient(create_app(_config(limiter_burst=1, trust_forwarded_for=True)))
    assert client.get("/v1/healthcheck", headers={"X-Forwarded-For": "192.0.2.1"}).status_code == 200
    assert client.get("/v1/healthcheck", headers={"X-Forwarded-For": "192.0.2.1"}).status_code == 429
    assert client.get("/v1/healthcheck", headers={"X-Forwarded-For": "192.0.2.2"}).status_code == 200


def test_disabled_limiter_admits_everything():
    client = TestClient(create_app(_config(limiter_enabled=False, limiter_burst=1)))
    statuses = {client.get("/v1/healthcheck").status_code for _ in range(10)}
    assert statuses == {200}


def test_rejected_request_does_not_reach_handler():
    app = create_app(_config(limiter_burst=1))
    calls = []

    @app.get("/counted")
    async def counted():
        calls.append(1)
        return {"ok": True}

    client = TestClient(app)
    assert client.get("/counted").status_code == 200
    assert client.get("/counted").status_code == 429
    assert calls == [1]


def test_requests_refused_once_shutdown_has_begun():
    tasks = BackgroundTaskManager()
    asyncio.run(tasks.shutdown(0.0))
    client = TestClient(create_app(_config(), tasks=tasks))
    resp = client.get("/v1/healthcheck")
    assert resp.status_code == 503
    assert resp.json() == {"error": "server is shutting down"}
