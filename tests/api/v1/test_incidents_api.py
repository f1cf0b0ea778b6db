"""
ヒヤリハット・事故報告APIのテスト

テスト対象:
- POST /api/v1/incidents
- GET/PUT/DELETE /api/v1/incidents/{incident_id}
- POST /api/v1/incidents/{incident_id}/approve, /return
- GET /api/v1/incidents/pending, /approval-queue, /history, /history/csv
- POST /api/v1/incidents/history/csv/deliver
"""
from unittest.mock import AsyncMock, patch

import pytest
from httpx import AsyncClient

from tests.utils import auth_headers

pytestmark = pytest.mark.asyncio


def incident_payload(**kwargs) -> dict:
    payload = {
        "occurred_at": "2026-06-15T08:00:00+09:00",
        "subject_user": "佐々木 花子",
        "type": "転倒",
        "place": "食堂",
        "situation": "立ち上がる際にふらついた",
    }
    payload.update(kwargs)
    return payload


async def _create(async_client: AsyncClient, session, **kwargs) -> dict:
    response = await async_client.post(
        "/api/v1/incidents", json=incident_payload(**kwargs), headers=auth_headers(session)
    )
    assert response.status_code == 201
    return response.json()


async def test_approval_workflow(async_client: AsyncClient, tanaka_beta, sato_beta):
    """正常系: 作成 -> 承認 -> 編集で未承認に戻る"""
    created = await _create(async_client, tanaka_beta)
    assert created["status"] == "未承認"

    response = await async_client.post(
        f"/api/v1/incidents/{created['id']}/approve",
        json={"pin": "9999"},
        headers=auth_headers(sato_beta),
    )
    assert response.status_code == 200
    assert response.json()["status"] == "承認済"
    assert response.json()["approver"] == "Sato"

    response = await async_client.put(
        f"/api/v1/incidents/{created['id']}",
        json=incident_payload(cause="床が濡れていた"),
        headers=auth_headers(tanaka_beta),
    )
    assert response.status_code == 200
    assert response.json()["status"] == "未承認"
    assert response.json()["approver"] == ""


async def test_approve_by_staff_is_forbidden(async_client: AsyncClient, tanaka_beta):
    created = await _create(async_client, tanaka_beta)

    response = await async_client.post(
        f"/api/v1/incidents/{created['id']}/approve",
        json={"pin": "1234"},
        headers=auth_headers(tanaka_beta),
    )

    assert response.status_code == 403


async def test_approve_with_wrong_pin(async_client: AsyncClient, tanaka_beta, sato_beta):
    created = await _create(async_client, tanaka_beta)

    response = await async_client.post(
        f"/api/v1/incidents/{created['id']}/approve",
        json={"pin": "0000"},
        headers=auth_headers(sato_beta),
    )

    assert response.status_code == 401
    assert response.json()["kind"] == "AuthenticationFailure"


async def test_return_requires_reason(async_client: AsyncClient, tanaka_beta, sato_beta):
    created = await _create(async_client, tanaka_beta)
    url = f"/api/v1/incidents/{created['id']}/return"

    response = await async_client.post(url, json={"pin": "9999"}, headers=auth_headers(sato_beta))
    assert response.status_code == 400

    response = await async_client.post(
        url, json={"pin": "9999", "reason": "経過を追記してください"}, headers=auth_headers(sato_beta)
    )
    assert response.status_code == 200
    assert response.json()["status"] == "差戻し"

    pending = (await async_client.get("/api/v1/incidents/pending", headers=auth_headers(sato_beta))).json()
    assert [i["id"] for i in pending["items"]] == [created["id"]]


async def test_get_unknown_incident(async_client: AsyncClient, tanaka_beta):
    response = await async_client.get("/api/v1/incidents/unknown", headers=auth_headers(tanaka_beta))

    assert response.status_code == 404
    assert response.json()["kind"] == "IncidentNotFound"


async def test_office_without_incident_store(async_client: AsyncClient):
    from tests.utils import make_session

    response = await async_client.post(
        "/api/v1/incidents",
        json=incident_payload(),
        headers=auth_headers(make_session("Tanaka", "Gamma")),
    )

    assert response.status_code == 404
    assert response.json()["kind"] == "OfficeNotFound"


async def test_pending_and_approval_queue(async_client: AsyncClient, tanaka_beta, suzuki_beta, sato_beta):
    mine = await _create(async_client, tanaka_beta)
    other = await _create(async_client, suzuki_beta)

    response = await async_client.get("/api/v1/incidents/pending", headers=auth_headers(tanaka_beta))
    assert response.status_code == 200
    assert [i["id"] for i in response.json()["items"]] == [mine["id"]]

    response = await async_client.get("/api/v1/incidents/approval-queue", headers=auth_headers(sato_beta))
    assert response.status_code == 200
    assert {i["id"] for i in response.json()} == {mine["id"], other["id"]}

    response = await async_client.get("/api/v1/incidents/approval-queue", headers=auth_headers(tanaka_beta))
    assert response.status_code == 403


async def test_history_and_csv(async_client: AsyncClient, tanaka_beta, sato_beta):
    """正常系: 承認済みのみが履歴とCSVに含まれる"""
    approved = await _create(async_client, tanaka_beta, type="誤薬")
    await _create(async_client, tanaka_beta)
    await async_client.post(
        f"/api/v1/incidents/{approved['id']}/approve", json={"pin": "9999"}, headers=auth_headers(sato_beta)
    )

    response = await async_client.get("/api/v1/incidents/history", headers=auth_headers(tanaka_beta))
    assert response.status_code == 200
    assert [i["id"] for i in response.json()["items"]] == [approved["id"]]

    response = await async_client.get(
        "/api/v1/incidents/history", params={"type": "転倒"}, headers=auth_headers(tanaka_beta)
    )
    assert response.json()["items"] == []

    response = await async_client.get("/api/v1/incidents/history/csv", headers=auth_headers(tanaka_beta))
    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/csv")
    assert "incident_history.csv" in response.headers["content-disposition"]
    lines = response.text.split("\r\n")
    assert lines[0].startswith('"ID","発生日時"')
    assert lines[1].startswith(f'"{approved["id"]}"')
    assert lines[2] == ""


async def test_history_csv_deliver(async_client: AsyncClient, tanaka_beta):
    upload = AsyncMock(return_value="s3://test-bucket/incidents/Beta/incident_history.csv")

    with patch("kirokun.services.report_service.upload_document", upload):
        response = await async_client.post(
            "/api/v1/incidents/history/csv/deliver", headers=auth_headers(tanaka_beta)
        )

    assert response.status_code == 200
    assert response.json()["exported_count"] == 0
    assert upload.await_args.args[0].startswith("incidents/Beta/incident_history_")


async def test_delete_and_restore_incident(async_client: AsyncClient, tanaka_beta, suzuki_beta):
    created = await _create(async_client, tanaka_beta)

    response = await async_client.delete(
        f"/api/v1/incidents/{created['id']}", headers=auth_headers(suzuki_beta)
    )
    assert response.status_code == 403

    response = await async_client.delete(
        f"/api/v1/incidents/{created['id']}", headers=auth_headers(tanaka_beta)
    )
    assert response.status_code == 200

    trash = (await async_client.get("/api/v1/incidents/trash", headers=auth_headers(tanaka_beta))).json()
    assert [t["incident"]["id"] for t in trash] == [created["id"]]

    response = await async_client.post(
        f"/api/v1/incidents/trash/{trash[0]['trash_offset']}/restore", headers=auth_headers(tanaka_beta)
    )
    assert response.status_code == 200
    response = await async_client.get(f"/api/v1/incidents/{created['id']}", headers=auth_headers(tanaka_beta))
    assert response.status_code == 200
