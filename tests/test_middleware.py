"""Middleware and error-mapping tests."""

import pytest
from httpx import ASGITransport, AsyncClient

from ewaste.main import create_app


@pytest.mark.asyncio
async def test_security_headers(client):
    r = await client.get("/api/v1/health")
    assert r.headers["X-Content-Type-Options"] == "nosniff"
    assert r.headers["X-Frame-Options"] == "DENY"
    assert r.headers["Referrer-Policy"] == "no-referrer"
    # Plain http: no HSTS
    assert "Strict-Transport-Security" not in r.headers


@pytest.mark.asyncio
async def test_hsts_on_https(ctx):
    app = create_app(context=ctx)
    async with AsyncClient(transport=ASGITransport(app=app), base_url="https://test") as ac:
        r = await ac.get("/api/v1/health")
    assert r.headers["Strict-Transport-Security"].startswith("max-age=")


@pytest.mark.asyncio
async def test_request_id_generated(client):
    r = await client.get("/api/v1/health")
    assert len(r.headers["X-Request-ID"]) == 36


@pytest.mark.asyncio
async def test_request_id_propagated(client):
    r = await client.get("/api/v1/health", headers={"X-Request-ID": "req-123"})
    assert r.headers["X-Request-ID"] == "req-123"


@pytest.mark.asyncio
async def test_unknown_route(client):
    r = await client.get("/api/v1/nowhere")
    assert r.status_code == 404
    assert r.json() == {
        "error": ["Path does not exist"],
        "message": "This route doesn't exist for you!",
    }


@pytest.mark.asyncio
async def test_cors_preflight(client):
    r = await client.options(
        "/api/v1/bins/all",
        headers={
            "Origin": "http://dashboard.example.com",
            "Access-Control-Request-Method": "GET",
        },
    )
    assert r.status_code == 200
    assert r.headers["access-control-allow-origin"] in ("*", "http://dashboard.example.com")


def _app_with_failing_route(ctx):
    app = create_app(context=ctx)

    @app.get("/boom")
    async def boom():
        raise RuntimeError("database exploded")

    return app


@pytest.mark.asyncio
async def test_unhandled_error_hides_detail(ctx):
    app = _app_with_failing_route(ctx)
    transport = ASGITransport(app=app, raise_app_exceptions=False)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        r = await ac.get("/boom")
    assert r.status_code == 500
    assert r.json() == {
        "status": "error",
        "message": "Something went wrong",
        "errorMessage": "Internal server error",
    }


@pytest.mark.asyncio
async def test_unhandled_error_detail_in_debug(ctx):
    ctx.settings.debug = True
    app = _app_with_failing_route(ctx)
    transport = ASGITransport(app=app, raise_app_exceptions=False)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        r = await ac.get("/boom")
    assert r.status_code == 500
    assert r.json()["errorMessage"] == "database exploded"


@pytest.mark.asyncio
async def test_validation_error_is_422(client):
    r = await client.patch("/api/v1/bins/fill-level", json={"sensorId": "S1"})
    assert r.status_code == 422
