"""
メンテナンスAPIのテスト

テスト対象:
- POST /api/v1/maintenance/run
- GET /api/v1/maintenance/audit-events
"""
import pytest
from httpx import AsyncClient

from tests.utils import auth_headers

pytestmark = pytest.mark.asyncio


async def test_run_maintenance_requires_manager(async_client: AsyncClient, tanaka_alpha):
    response = await async_client.post("/api/v1/maintenance/run", headers=auth_headers(tanaka_alpha))

    assert response.status_code == 403


async def test_run_maintenance_as_manager(async_client: AsyncClient, sato_alpha):
    """正常系: 全事業所の結果サマリーが返る"""
    response = await async_client.post("/api/v1/maintenance/run", headers=auth_headers(sato_alpha))

    assert response.status_code == 200
    data = response.json()
    assert set(data["archived"]) == {"Alpha", "Beta", "Gamma"}
    assert data["errors"] == []


async def test_list_audit_events_for_selected_office(async_client: AsyncClient, tanaka_alpha, sato_alpha):
    await async_client.post(
        "/api/v1/records",
        json={
            "occurred_at": "2026-06-15T09:30:00+09:00",
            "recorder": "Tanaka",
            "item": "その他",
            "users": ["山田 太郎"],
        },
        headers=auth_headers(tanaka_alpha),
    )
    await async_client.post("/api/v1/auth/signin", json={"office": "Beta", "name": "Sato", "pin": "0000"})

    response = await async_client.get("/api/v1/maintenance/audit-events", headers=auth_headers(sato_alpha))

    assert response.status_code == 200
    data = response.json()
    assert [e["action"] for e in data["events"]] == ["RECORD_SAVE"]
    assert data["events"][0]["executor"] == "Tanaka"

    response = await async_client.get(
        "/api/v1/maintenance/audit-events",
        params={"status": "ERROR"},
        headers=auth_headers(sato_alpha),
    )
    assert response.json()["events"] == []


async def test_list_audit_events_limit_validation(async_client: AsyncClient, sato_alpha):
    response = await async_client.get(
        "/api/v1/maintenance/audit-events", params={"limit": 501}, headers=auth_headers(sato_alpha)
    )

    assert response.status_code == 422
