import logging

import pytest
from httpx import ASGITransport, AsyncClient

from coachshare.core.middleware import _hash_user_id
from coachshare.main import app


@pytest.mark.asyncio
async def test_request_id_in_response():
    """All responses include X-Request-ID and X-Response-Time headers."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        response = await client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"
    # UUID format: 8-4-4-4-12
    assert len(response.headers["X-Request-ID"]) == 36
    assert response.headers["X-Response-Time"].endswith("ms")


@pytest.mark.asyncio
async def test_caller_request_id_is_echoed():
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        response = await client.get("/health", headers={"X-Request-ID": "trace-123"})
    assert response.headers["X-Request-ID"] == "trace-123"


@pytest.mark.asyncio
async def test_404_returns_structured_json():
    """Non-existent endpoint returns structured JSON error with request_id."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        response = await client.get("/nonexistent")
    assert response.status_code == 404
    data = response.json()
    assert data["error"] is True
    assert data["status_code"] == 404
    assert data["request_id"] == response.headers["X-Request-ID"]


@pytest.mark.asyncio
async def test_access_log_hashes_user_id(client: AsyncClient, athlete, login, caplog):
    headers = await login("a@x.com")

    with caplog.at_level(logging.INFO, logger="coachshare.access"):
        response = await client.get("/auth/me", headers=headers)

    assert response.status_code == 200
    lines = [r.getMessage() for r in caplog.records if r.name == "coachshare.access"]
    assert any(f"user={_hash_user_id(str(athlete.id))}" in line for line in lines)
    assert not any(str(athlete.id) in line for line in lines)
