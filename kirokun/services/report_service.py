"""
報告書のCSV出力・外部ストレージへの配信
"""
import csv
import io
import logging
from datetime import datetime
from typing import Awaitable, Callable, Optional, Tuple

from kirokun.core.exceptions import UpstreamUnavailableError
from kirokun.core.object_storage import upload_document
from kirokun.crud.crud_incident import (
    COL_APPROVED_AT,
    COL_APPROVER,
    COL_CAUSE,
    COL_ID,
    COL_OCCUR_DATE,
    COL_PLACE,
    COL_PREVENTION,
    COL_RECORDER,
    COL_RESPONSE,
    COL_SITUATION,
    COL_STATUS,
    COL_TYPE,
    COL_USER,
    crud_incident,
)
from kirokun.messages import ja
from kirokun.models.enums import AuditAction, AuditTargetType
from kirokun.schemas.incident import CsvDeliveryResult, IncidentHistoryFilters
from kirokun.schemas.session import StaffSession
from kirokun.services.audit_trail import audit_operation
from kirokun.services.incident_service import iter_approved_rows, open_incident_store
from kirokun.services.session_auth_service import ensure_office_access
from kirokun.storage.base import Row, Storage
from kirokun.utils.datetime_utils import format_display, now_local, parse_datetime
from kirokun.utils.text import cell_text

logger = logging.getLogger(__name__)

CSV_HEADER = [
    'ID', '発生日時', '記録者', '利用者', '種別', '場所', '状況', '原因',
    '対応', '再発防止策', 'ステータス', '承認者', '承認日時',
]

Uploader = Callable[[str, bytes], Awaitable[Optional[str]]]


def _display_datetime(value) -> str:
    parsed = parse_datetime(value)
    return format_display(parsed) if parsed else cell_text(value)


def _csv_row(row: Row) -> list[str]:
    return [
        cell_text(row[COL_ID]),
        _display_datetime(row[COL_OCCUR_DATE]),
        cell_text(row[COL_RECORDER]),
        cell_text(row[COL_USER]),
        cell_text(row[COL_TYPE]),
        cell_text(row[COL_PLACE]),
        cell_text(row[COL_SITUATION]),
        cell_text(row[COL_CAUSE]),
        cell_text(row[COL_RESPONSE]),
        cell_text(row[COL_PREVENTION]),
        cell_text(row[COL_STATUS]),
        cell_text(row[COL_APPROVER]),
        _display_datetime(row[COL_APPROVED_AT]),
    ]


class ReportService:

    async def _build_csv(
        self, storage: Storage, office: str, filters: IncidentHistoryFilters
    ) -> Tuple[str, int]:
        store = await open_incident_store(storage, office)
        table = await crud_incident.get_table(store)

        buffer = io.StringIO()
        writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\r\n")
        writer.writerow(CSV_HEADER)
        count = 0
        if table is not None:
            async for _, row in iter_approved_rows(table, filters):
                writer.writerow(_csv_row(row))
                count += 1
        return buffer.getvalue(), count

    async def export_incident_csv(
        self,
        storage: Storage,
        session: StaffSession,
        office: str,
        filters: Optional[IncidentHistoryFilters] = None,
    ) -> str:
        """
        承認済みの報告書をCSV文字列にする（履歴と同じ絞り込み条件、新しい順）

        Returns:
            CRLF 区切りのCSV（見出し行付き）
        """
        async with audit_operation(
            storage, AuditAction.incident_csv_export, actor=session, office=cell_text(office),
            target_type=AuditTargetType.incident.value,
        ) as op:
            office = ensure_office_access(session, office)
            filters = filters or IncidentHistoryFilters()
            content, count = await self._build_csv(storage, office, filters)
            op.message = ja.INCIDENT_CSV_EXPORTED.format(count=count)
            op.detail = {"count": count, "filters": filters.model_dump(mode="json", exclude_none=True)}
            return content

    async def deliver_incident_csv(
        self,
        storage: Storage,
        session: StaffSession,
        office: str,
        filters: Optional[IncidentHistoryFilters] = None,
        uploader: Optional[Uploader] = None,
        now: Optional[datetime] = None,
    ) -> CsvDeliveryResult:
        """
        CSVを作成して外部ストレージにアップロードする

        Raises:
            UpstreamUnavailableError: アップロードに失敗した場合
        """
        async with audit_operation(
            storage, AuditAction.incident_csv_export, actor=session, office=cell_text(office),
            target_type=AuditTargetType.incident.value,
        ) as op:
            office = ensure_office_access(session, office)
            filters = filters or IncidentHistoryFilters()
            content, count = await self._build_csv(storage, office, filters)

            timestamp = (now or now_local()).strftime("%Y%m%d_%H%M%S")
            path = f"incidents/{office}/incident_history_{timestamp}.csv"
            location = await (uploader or upload_document)(path, content.encode("utf-8"))
            if location is None:
                raise UpstreamUnavailableError(ja.INCIDENT_CSV_UPLOAD_FAILED)

            op.target_id = path
            op.message = ja.INCIDENT_CSV_EXPORTED.format(count=count)
            op.detail = {
                "count": count,
                "location": location,
                "filters": filters.model_dump(mode="json", exclude_none=True),
            }
            logger.info(f"Incident CSV delivered: office={office}, count={count}, location={location}")
            return CsvDeliveryResult(location=location, exported_count=count)


report_service = ReportService()
