import csv
import io
from datetime import timedelta

import pytest

from kirokun.core.exceptions import AuthorizationError, UpstreamUnavailableError
from kirokun.crud.crud_audit_log import audit_log
from kirokun.models.enums import AuditAction
from kirokun.schemas.incident import IncidentCreate, IncidentHistoryFilters
from kirokun.services.incident_service import incident_service
from kirokun.services.report_service import CSV_HEADER, report_service
from tests.utils import FIXED_NOW


pytestmark = pytest.mark.asyncio


async def _seed_reports(storage, tanaka_beta, sato_beta):
    """承認済2件・未承認1件を登録する"""
    approved = []
    for i, incident_type in enumerate(["転倒", "誤薬"]):
        created = await incident_service.create_incident(
            storage, tanaka_beta, "Beta",
            IncidentCreate(
                occurred_at=FIXED_NOW - timedelta(days=2 - i),
                subject_user="佐々木 花子",
                type=incident_type,
                situation='「ふらつき」あり, "要観察"',
            ),
        )
        await incident_service.approve_incident(
            storage, sato_beta, "Beta", created.id, "9999", now=FIXED_NOW
        )
        approved.append(created)
    await incident_service.create_incident(
        storage, tanaka_beta, "Beta", IncidentCreate(occurred_at=FIXED_NOW, type="離設")
    )
    return approved


class TestExportIncidentCsv:

    async def test_export_contains_only_approved(self, storage, tanaka_beta, sato_beta):
        """正常系: 見出し13列、CRLF区切り、全項目クォート、承認済みのみ新しい順"""
        first, second = await _seed_reports(storage, tanaka_beta, sato_beta)

        content = await report_service.export_incident_csv(storage, tanaka_beta, "Beta")

        assert content.startswith('"ID","発生日時"')
        assert content.endswith("\r\n")
        rows = list(csv.reader(io.StringIO(content, newline="")))
        assert rows[0] == CSV_HEADER
        assert len(rows[0]) == 13
        assert [r[0] for r in rows[1:]] == [second.id, first.id]
        assert rows[1][4] == "誤薬"
        assert rows[1][6] == '「ふらつき」あり, "要観察"'
        assert rows[1][10] == "承認済"
        assert rows[1][11] == "Sato"
        assert rows[1][12] == "2026/06/15 10:00"
        assert rows[2][1] == "2026/06/13 10:00"

        events = await audit_log.get_events(storage, action=AuditAction.incident_csv_export.value)
        assert len(events) == 1
        assert events[0].status == "SUCCESS"

    async def test_export_applies_history_filters(self, storage, tanaka_beta, sato_beta):
        first, _ = await _seed_reports(storage, tanaka_beta, sato_beta)

        content = await report_service.export_incident_csv(
            storage, tanaka_beta, "Beta", IncidentHistoryFilters(type="転倒")
        )

        rows = list(csv.reader(io.StringIO(content, newline="")))
        assert [r[0] for r in rows[1:]] == [first.id]

    async def test_export_without_reports_returns_header_only(self, storage, tanaka_alpha):
        content = await report_service.export_incident_csv(storage, tanaka_alpha, "Alpha")

        assert content.count("\r\n") == 1

    async def test_export_out_of_scope(self, storage, suzuki_beta):
        with pytest.raises(AuthorizationError):
            await report_service.export_incident_csv(storage, suzuki_beta, "Alpha")


class TestDeliverIncidentCsv:

    async def test_deliver_uploads_csv(self, storage, tanaka_beta, sato_beta):
        """正常系: 事業所・日時付きのパスでアップロードされること"""
        await _seed_reports(storage, tanaka_beta, sato_beta)
        uploaded = {}

        async def fake_uploader(path, data):
            uploaded[path] = data
            return f"s3://b/{path}"

        result = await report_service.deliver_incident_csv(
            storage, tanaka_beta, "Beta", uploader=fake_uploader, now=FIXED_NOW
        )

        path = "incidents/Beta/incident_history_20260615_100000.csv"
        assert result.location == f"s3://b/{path}"
        assert result.exported_count == 2
        assert uploaded[path].decode("utf-8").splitlines()[0].startswith('"ID"')

    async def test_deliver_upload_failure(self, storage, tanaka_beta):
        """異常系: アップロード失敗は UpstreamUnavailableError としてERRORが記録されること"""

        async def failing_uploader(path, data):
            return None

        with pytest.raises(UpstreamUnavailableError):
            await report_service.deliver_incident_csv(
                storage, tanaka_beta, "Beta", uploader=failing_uploader, now=FIXED_NOW
            )

        events = await audit_log.get_events(storage, action=AuditAction.incident_csv_export.value)
        assert events[0].status == "ERROR"
        assert events[0].detail["error_kind"] == UpstreamUnavailableError.kind
