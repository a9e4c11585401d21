# tests/test_basic_endpoints.py
import pytest
from httpx import AsyncClient

pytestmark = pytest.mark.anyio

CORS_HEADERS = "authorization, x-client-info, apikey, content-type"


async def test_health(client: AsyncClient):
    r = await client.get("/api/v1/health/")
    assert r.status_code == 200
    data = r.json()
    assert data["status"] == "ok"
    assert data["input_mode"] in ("json", "multipart")
    assert data["persistence"] in ("none", "per_word", "per_image")


async def test_metrics_and_ops(client: AsyncClient):
    """/metrics, /healthz, /readyz 都能正確回應"""
    r = await client.get("/metrics")
    assert r.status_code == 200
    assert "# HELP" in r.text  # Prometheus metrics 格式驗證

    r = await client.get("/healthz")
    assert r.status_code == 200
    assert r.json().get("ok") is True

    # ASGITransport 不跑 lifespan，所以 service 尚未建立
    r = await client.get("/readyz")
    assert r.status_code == 200
    assert r.json() == {"ready": False}


async def test_preflight_returns_empty_body_with_cors_headers(client: AsyncClient):
    r = await client.options(
        "/",
        headers={"Origin": "https://app.example.test", "Access-Control-Request-Method": "POST"},
    )
    assert r.status_code == 200
    assert r.content == b""
    assert r.headers["access-control-allow-origin"] == "*"
    assert r.headers["access-control-allow-headers"] == CORS_HEADERS


async def test_preflight_without_origin_is_still_answered(client: AsyncClient):
    r = await client.options("/api/v1/analyze-image/")
    assert r.status_code == 200
    assert r.content == b""
    assert r.headers["access-control-allow-origin"] == "*"


async def test_cors_headers_on_error_responses(client: AsyncClient):
    r = await client.get("/no-such-route")
    assert r.status_code == 404
    assert r.json() == {"error": "Not Found"}
    assert r.headers["access-control-allow-origin"] == "*"
    assert r.headers["x-content-type-options"] == "nosniff"
