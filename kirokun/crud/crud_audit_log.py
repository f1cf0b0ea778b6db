"""
操作ログ（監査ログ）の読み書き

マスタストアの「ログ」パーティションに1イベント1行（17列固定）で追記する。
追記の失敗は呼び出し元の業務処理に伝播させない。
"""
import json
import logging
from datetime import datetime, timedelta
from typing import List, Optional, Tuple

from kirokun.core.config import settings
from kirokun.schemas.audit_log import AuditEvent
from kirokun.storage.base import Row, Storage, Table
from kirokun.utils.datetime_utils import parse_datetime, to_cell
from kirokun.utils.text import cell_text

logger = logging.getLogger(__name__)

AUDIT_PARTITION = "ログ"
SCHEMA_VERSION = "v35.5"

# 列位置（0始まり）
COL_TIMESTAMP = 0
COL_SCHEMA_VERSION = 1
COL_EXECUTOR = 2
COL_ROLE = 3
COL_OFFICES_AUTHORIZED = 4
COL_OFFICE_SELECTED = 5
COL_ACTION = 6
COL_TARGET_TYPE = 7
COL_TARGET_ID = 8
COL_TARGET_DATE = 9
COL_STATUS = 10
COL_MESSAGE = 11
COL_DETAIL = 12
COL_CLIENT_INFO = 13
COL_REQUEST_ID = 14
COL_EXPIRES_AT = 15
COL_SEARCH_INDEX = 16
AUDIT_COLUMN_COUNT = 17


def build_event(
    *,
    action: str,
    timestamp: datetime,
    executor: str = "",
    role: str = "",
    offices_authorized: str = "",
    office_selected: str = "",
    target_type: str = "",
    target_id: str = "",
    target_date: str = "",
    status: str = "SUCCESS",
    message: str = "",
    detail: Optional[dict] = None,
    request_id: str = "",
) -> AuditEvent:
    """既定値（実行者 System、有効期限、検索インデックス）を補ってイベントを作る"""
    executor = executor or "System"
    return AuditEvent(
        timestamp=timestamp,
        schema_version=SCHEMA_VERSION,
        executor=executor,
        role=role,
        offices_authorized=offices_authorized,
        office_selected=office_selected,
        action=action,
        target_type=target_type,
        target_id=target_id,
        target_date=target_date,
        status=status or "SUCCESS",
        message=message,
        detail=detail or {},
        request_id=request_id,
        expires_at=timestamp + timedelta(days=settings.AUDIT_RETENTION_DAYS),
        search_index=f"{office_selected}|{action}|{executor}",
    )


def to_row(event: AuditEvent) -> Row:
    return [
        to_cell(event.timestamp),
        event.schema_version,
        event.executor,
        event.role,
        event.offices_authorized,
        event.office_selected,
        event.action,
        event.target_type,
        event.target_id,
        event.target_date,
        event.status,
        event.message,
        json.dumps(event.detail, ensure_ascii=False, default=str),
        event.client_info,
        event.request_id,
        to_cell(event.expires_at),
        event.search_index,
    ]


def from_row(row: Row) -> Optional[AuditEvent]:
    row = list(row[:AUDIT_COLUMN_COUNT]) + [""] * (AUDIT_COLUMN_COUNT - len(row[:AUDIT_COLUMN_COUNT]))
    timestamp = parse_datetime(row[COL_TIMESTAMP])
    if timestamp is None:
        return None
    try:
        detail = json.loads(cell_text(row[COL_DETAIL]) or "{}")
    except ValueError:
        detail = {"raw": cell_text(row[COL_DETAIL])}
    if not isinstance(detail, dict):
        detail = {"raw": detail}
    return AuditEvent(
        timestamp=timestamp,
        schema_version=cell_text(row[COL_SCHEMA_VERSION]),
        executor=cell_text(row[COL_EXECUTOR]),
        role=cell_text(row[COL_ROLE]),
        offices_authorized=cell_text(row[COL_OFFICES_AUTHORIZED]),
        office_selected=cell_text(row[COL_OFFICE_SELECTED]),
        action=cell_text(row[COL_ACTION]),
        target_type=cell_text(row[COL_TARGET_TYPE]),
        target_id=cell_text(row[COL_TARGET_ID]),
        target_date=cell_text(row[COL_TARGET_DATE]),
        status=cell_text(row[COL_STATUS]),
        message=cell_text(row[COL_MESSAGE]),
        detail=detail,
        client_info=cell_text(row[COL_CLIENT_INFO]),
        request_id=cell_text(row[COL_REQUEST_ID]),
        expires_at=parse_datetime(row[COL_EXPIRES_AT]),
        search_index=cell_text(row[COL_SEARCH_INDEX]),
    )


class CRUDAuditLog:
    """
    操作ログのCRUD操作

    提供機能:
    - append: イベント追記（失敗しても例外を送出しない）
    - get_events: 新しい順の一覧取得（事業所・アクション・ステータスで絞り込み）
    - purge_expired: 有効期限切れの行を一括削除
    """

    async def _get_table(self, storage: Storage, create: bool = False) -> Optional[Table]:
        master = storage.open_store(settings.MASTER_STORE_ID)
        return await master.open_partition(AUDIT_PARTITION, create=create)

    async def append(self, storage: Storage, event: AuditEvent) -> bool:
        """
        イベントを1行追記する

        Returns:
            書き込めた場合 True。失敗はログ出力のみで呼び出し元には伝えない。
        """
        try:
            table = await self._get_table(storage, create=True)
            await table.append_rows([to_row(event)])
            return True
        except Exception:
            logger.exception(
                f"Failed to write audit event: action={event.action}, "
                f"status={event.status}, request_id={event.request_id}"
            )
            return False

    async def get_events(
        self,
        storage: Storage,
        *,
        office: Optional[str] = None,
        action: Optional[str] = None,
        status: Optional[str] = None,
        skip: int = 0,
        limit: int = 50,
    ) -> List[AuditEvent]:
        """
        新しい順にイベントを返す

        Args:
            storage: ストレージ
            office: 選択事業所で絞り込み
            action: アクションで絞り込み（完全一致）
            status: SUCCESS / ERROR で絞り込み
            skip: スキップする件数
            limit: 取得する最大件数
        """
        table = await self._get_table(storage)
        if table is None:
            return []
        events: List[AuditEvent] = []
        matched = 0
        rows = await table.read_all()
        for row in reversed(rows):
            event = from_row(row)
            if event is None:
                continue
            if office and event.office_selected != office:
                continue
            if action and event.action != action:
                continue
            if status and event.status != status:
                continue
            matched += 1
            if matched <= skip:
                continue
            events.append(event)
            if len(events) >= limit:
                break
        return events

    async def purge_expired(self, storage: Storage, now: datetime) -> Tuple[int, int]:
        """
        有効期限(expiresAt)を過ぎた行を削除する。有効期限が解析できない行は残す。

        Returns:
            (削除件数, 残存件数)
        """
        table = await self._get_table(storage)
        if table is None:
            return 0, 0
        rows = await table.read_all()
        kept = []
        for row in rows:
            expires_at = parse_datetime(row[COL_EXPIRES_AT]) if len(row) > COL_EXPIRES_AT else None
            if expires_at is None or expires_at > now:
                kept.append(row)
        deleted = len(rows) - len(kept)
        if deleted:
            await table.overwrite_all(kept)
            logger.info(f"Audit log cleanup: {deleted} rows deleted, {len(kept)} rows kept")
        return deleted, len(kept)


audit_log = CRUDAuditLog()
