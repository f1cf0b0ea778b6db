"""
ヒヤリハット・事故報告サービス

状態遷移:
    作成 -> 未承認
    承認 (未承認|差戻し -> 承認済)  manager のみ、PINを再確認
    差し戻し (未承認 -> 差戻し)     manager のみ、PINを再確認、理由必須
    編集 (任意 -> 未承認)           記録者本人または manager、承認・差し戻し欄を全て消去

報告書の更新は必ず id で指定し、書き込み直前に行位置を再解決する。
"""
import logging
import uuid
from datetime import datetime
from typing import AsyncIterator, List, Optional, Tuple

from kirokun.core.config import settings
from kirokun.core.exceptions import (
    AuthorizationError,
    IncidentNotFoundError,
    OfficeNotFoundError,
    StaleReferenceError,
    ValidationFailedError,
)
from kirokun.crud.crud_incident import (
    COL_APPROVED_AT,
    COL_APPROVER,
    COL_CREATED_AT,
    COL_ID,
    COL_OCCUR_DATE,
    COL_RECORDER,
    COL_RETURN_REASON,
    COL_RETURNED_AT,
    COL_STATUS,
    COL_TYPE,
    COL_USER,
    INCIDENT_PARTITION,
    TRASH_PREFIX_COLUMNS,
    crud_incident,
    from_row,
    from_trash_row,
    normalize_status,
    pad_row,
    to_row,
)
from kirokun.crud.crud_office import crud_office
from kirokun.crud.scan import iter_rows_reversed
from kirokun.messages import ja
from kirokun.models.enums import AuditAction, AuditTargetType, IncidentStatus
from kirokun.schemas.incident import (
    IncidentCreate,
    IncidentHistoryFilters,
    IncidentHistoryPage,
    IncidentReport,
    IncidentUpdate,
    PendingIncidentPage,
    TrashedIncident,
)
from kirokun.schemas.session import StaffSession
from kirokun.services.audit_trail import audit_operation
from kirokun.services.session_auth_service import ensure_manager, ensure_office_access, session_auth_service
from kirokun.storage.base import Row, Storage, Store, Table
from kirokun.utils.datetime_utils import end_of_day, now_local, parse_datetime, start_of_day, to_cell
from kirokun.utils.pagination import decode_token, encode_token
from kirokun.utils.text import cell_text, normalize_name

logger = logging.getLogger(__name__)


async def open_incident_store(storage: Storage, office: str) -> Store:
    """
    Raises:
        OfficeNotFoundError: 事業所が未登録、または報告書ストアが未設定
    """
    tenant = await crud_office.resolve(storage, office)
    if not tenant.incident_store_id:
        raise OfficeNotFoundError(ja.OFFICE_INCIDENT_STORE_NOT_CONFIGURED.format(office=tenant.office))
    return storage.open_store(tenant.incident_store_id)


def _matches_history(
    row: Row,
    filters: IncidentHistoryFilters,
    start_dt: Optional[datetime],
    end_dt: Optional[datetime],
) -> bool:
    if not cell_text(row[COL_ID]):
        return False
    # 承認済のみ（未承認・差戻しは履歴に出さない）
    if normalize_status(row[COL_STATUS]) != IncidentStatus.approved:
        return False
    if start_dt is not None or end_dt is not None:
        occurred_at = parse_datetime(row[COL_OCCUR_DATE])
        if occurred_at is None:
            return False
        if start_dt is not None and occurred_at < start_dt:
            return False
        if end_dt is not None and occurred_at > end_dt:
            return False
    if filters.type and cell_text(row[COL_TYPE]) != cell_text(filters.type):
        return False
    if filters.subject_user and normalize_name(row[COL_USER]) != normalize_name(filters.subject_user):
        return False
    if filters.recorder and normalize_name(row[COL_RECORDER]) != normalize_name(filters.recorder):
        return False
    return True


async def iter_approved_rows(table: Table, filters: IncidentHistoryFilters) -> AsyncIterator[Tuple[int, Row]]:
    """承認済みで絞り込み条件に一致する行を新しい順に返す"""
    start_dt = start_of_day(filters.start_date) if filters.start_date else None
    end_dt = end_of_day(filters.end_date) if filters.end_date else None
    async for offset, row in iter_rows_reversed(table, settings.SCAN_CHUNK_SIZE):
        row = pad_row(row)
        if _matches_history(row, filters, start_dt, end_dt):
            yield offset, row


def _ensure_recorder_or_manager(session: StaffSession, row: Row) -> None:
    if session.is_manager:
        return
    if normalize_name(row[COL_RECORDER]) != normalize_name(session.name):
        raise AuthorizationError(ja.PERM_RECORDER_OR_MANAGER_REQUIRED)


def _check_page_limit(limit: int) -> int:
    if limit < 1:
        raise ValidationFailedError(ja.RECORD_LIMIT_INVALID)
    return min(limit, settings.INCIDENT_PAGE_LIMIT_MAX)


class IncidentService:

    async def _resolve(self, table: Optional[Table], incident_id: str) -> Tuple[int, Row]:
        found = await crud_incident.find_row(table, incident_id) if table is not None else None
        if found is None:
            raise IncidentNotFoundError(ja.INCIDENT_NOT_FOUND.format(incident_id=incident_id))
        return found

    async def _verify_position(self, table: Table, offset: int, incident_id: str) -> None:
        """書き込み直前に、行位置がまだ同じ報告書を指しているか確認する"""
        current = await table.read_range(offset, 1, COL_ID, 1)
        if not current or not current[0] or cell_text(current[0][0]) != cell_text(incident_id):
            raise StaleReferenceError()

    async def _write(self, table: Table, offset: int, incident_id: str, row: Row) -> None:
        await self._verify_position(table, offset, incident_id)
        await table.update_row(offset, row)

    async def create_incident(
        self,
        storage: Storage,
        session: StaffSession,
        office: str,
        incident_in: IncidentCreate,
        now: Optional[datetime] = None,
    ) -> IncidentReport:
        """報告書を登録する（未承認、記録者はセッションの職員）"""
        async with audit_operation(
            storage, AuditAction.add_incident, actor=session, office=cell_text(office),
            target_type=AuditTargetType.incident.value,
        ) as op:
            office = ensure_office_access(session, office)
            store = await open_incident_store(storage, office)
            table = await crud_incident.get_table(store, create=True)

            incident_id = str(uuid.uuid4())
            op.target_id = incident_id
            row = to_row(incident_id, to_cell(now or now_local()), session.name, incident_in)
            await table.append_rows([row])

            op.target_date = row[COL_OCCUR_DATE]
            op.message = ja.INCIDENT_CREATED
            return from_row(row, await table.row_count() - 1)

    async def get_incident(
        self, storage: Storage, session: StaffSession, office: str, incident_id: str
    ) -> IncidentReport:
        office = ensure_office_access(session, office)
        store = await open_incident_store(storage, office)
        offset, row = await self._resolve(await crud_incident.get_table(store), incident_id)
        return from_row(row, offset)

    async def update_incident(
        self,
        storage: Storage,
        session: StaffSession,
        office: str,
        incident_id: str,
        incident_in: IncidentUpdate,
    ) -> IncidentReport:
        """
        報告書を編集する。以前の状態に関わらず未承認に戻し、
        承認者・承認日時・差し戻し理由・差し戻し日時を消去する。
        """
        async with audit_operation(
            storage, AuditAction.incident_update, actor=session, office=cell_text(office),
            target_type=AuditTargetType.incident.value, target_id=incident_id,
        ) as op:
            office = ensure_office_access(session, office)
            store = await open_incident_store(storage, office)
            table = await crud_incident.get_table(store)
            offset, current = await self._resolve(table, incident_id)
            _ensure_recorder_or_manager(session, current)

            row = to_row(
                cell_text(current[COL_ID]),
                current[COL_CREATED_AT],
                cell_text(current[COL_RECORDER]),
                incident_in,
            )
            await self._write(table, offset, incident_id, row)

            op.target_date = row[COL_OCCUR_DATE]
            op.message = ja.INCIDENT_UPDATED
            op.detail = {"previous_status": (normalize_status(current[COL_STATUS]) or IncidentStatus.pending).value}
            return from_row(row, offset)

    async def approve_incident(
        self,
        storage: Storage,
        session: StaffSession,
        office: str,
        incident_id: str,
        pin: str,
        now: Optional[datetime] = None,
    ) -> IncidentReport:
        """
        報告書を承認する（未承認・差戻し -> 承認済）

        セッションのロールではなく、その場でPINを再確認した結果のロールで判定する。
        """
        async with audit_operation(
            storage, AuditAction.incident_approve, actor=session, office=cell_text(office),
            target_type=AuditTargetType.incident.value, target_id=incident_id,
        ) as op:
            office = ensure_office_access(session, office)
            verified = await session_auth_service.verify_credentials(storage, office, session.name, pin)
            ensure_manager(verified, ja.PERM_MANAGER_APPROVE)

            store = await open_incident_store(storage, office)
            table = await crud_incident.get_table(store)
            offset, row = await self._resolve(table, incident_id)
            status = normalize_status(row[COL_STATUS]) or IncidentStatus.pending
            if status == IncidentStatus.approved:
                raise ValidationFailedError(ja.INCIDENT_ALREADY_APPROVED)

            row[COL_STATUS] = IncidentStatus.approved.value
            row[COL_APPROVER] = verified.name
            row[COL_APPROVED_AT] = to_cell(now or now_local())
            row[COL_RETURN_REASON] = ""
            row[COL_RETURNED_AT] = ""
            await self._write(table, offset, incident_id, row)

            op.target_date = row[COL_OCCUR_DATE]
            op.message = ja.INCIDENT_APPROVED
            op.detail = {"previous_status": status.value}
            return from_row(row, offset)

    async def return_incident(
        self,
        storage: Storage,
        session: StaffSession,
        office: str,
        incident_id: str,
        pin: str,
        reason: str,
        now: Optional[datetime] = None,
    ) -> IncidentReport:
        """報告書を差し戻す（未承認 -> 差戻し）。理由は必須。"""
        async with audit_operation(
            storage, AuditAction.incident_return, actor=session, office=cell_text(office),
            target_type=AuditTargetType.incident.value, target_id=incident_id,
        ) as op:
            office = ensure_office_access(session, office)
            verified = await session_auth_service.verify_credentials(storage, office, session.name, pin)
            ensure_manager(verified, ja.PERM_MANAGER_RETURN)
            reason = cell_text(reason)
            if not reason:
                raise ValidationFailedError(ja.INCIDENT_RETURN_REASON_REQUIRED)

            store = await open_incident_store(storage, office)
            table = await crud_incident.get_table(store)
            offset, row = await self._resolve(table, incident_id)
            status = normalize_status(row[COL_STATUS]) or IncidentStatus.pending
            if status != IncidentStatus.pending:
                raise ValidationFailedError(ja.INCIDENT_NOT_PENDING)

            row[COL_STATUS] = IncidentStatus.returned.value
            row[COL_RETURN_REASON] = reason
            row[COL_RETURNED_AT] = to_cell(now or now_local())
            row[COL_APPROVER] = ""
            row[COL_APPROVED_AT] = ""
            await self._write(table, offset, incident_id, row)

            op.target_date = row[COL_OCCUR_DATE]
            op.message = ja.INCIDENT_RETURNED
            op.detail = {"reason": reason}
            return from_row(row, offset)

    async def delete_incident(
        self,
        storage: Storage,
        session: StaffSession,
        office: str,
        incident_id: str,
        now: Optional[datetime] = None,
    ) -> TrashedIncident:
        """報告書をゴミ箱へ移動する（記録者本人または manager）"""
        async with audit_operation(
            storage, AuditAction.incident_trash, actor=session, office=cell_text(office),
            target_type=AuditTargetType.incident.value, target_id=incident_id,
        ) as op:
            office = ensure_office_access(session, office)
            store = await open_incident_store(storage, office)
            table = await crud_incident.get_table(store)
            offset, row = await self._resolve(table, incident_id)
            _ensure_recorder_or_manager(session, row)

            trash = await crud_incident.get_trash(store, create=True)
            trash_row = [to_cell(now or now_local()), session.name] + row
            await self._verify_position(table, offset, incident_id)
            await trash.append_rows([trash_row])
            await table.delete_row(offset)

            op.target_date = row[COL_OCCUR_DATE]
            op.message = ja.INCIDENT_TRASHED
            return from_trash_row(trash_row, await trash.row_count() - 1)

    async def list_trash(self, storage: Storage, session: StaffSession, office: str) -> List[TrashedIncident]:
        """ゴミ箱の報告書を新しく削除された順に返す"""
        office = ensure_office_access(session, office)
        store = await open_incident_store(storage, office)
        trash = await crud_incident.get_trash(store)
        if trash is None:
            return []
        entries = [from_trash_row(row, offset) for offset, row in enumerate(await trash.read_all())]
        entries.sort(
            key=lambda e: (e.deleted_at is not None, e.deleted_at.timestamp() if e.deleted_at else 0, e.trash_offset),
            reverse=True,
        )
        return entries

    async def restore_incident(
        self,
        storage: Storage,
        session: StaffSession,
        office: str,
        trash_offset: int,
    ) -> IncidentReport:
        """
        ゴミ箱の報告書を末尾に戻す。行位置は変わるため、以後は id で参照すること。
        """
        async with audit_operation(
            storage, AuditAction.incident_restore, actor=session, office=cell_text(office),
            target_type=AuditTargetType.incident.value,
        ) as op:
            office = ensure_office_access(session, office)
            store = await open_incident_store(storage, office)
            trash = await crud_incident.get_trash(store)
            if trash is None or trash_offset < 0 or trash_offset >= await trash.row_count():
                raise StaleReferenceError(ja.INCIDENT_TRASH_ROW_INVALID)
            rows = await trash.read_range(trash_offset, 1)
            if not rows:
                raise StaleReferenceError(ja.INCIDENT_TRASH_ROW_INVALID)
            row = pad_row(rows[0][TRASH_PREFIX_COLUMNS:])
            op.target_id = cell_text(row[COL_ID])
            _ensure_recorder_or_manager(session, row)

            table = await crud_incident.get_table(store, create=True)
            await table.append_rows([row])
            await trash.delete_row(trash_offset)

            op.target_date = row[COL_OCCUR_DATE]
            op.message = ja.INCIDENT_RESTORED
            return from_row(row, await table.row_count() - 1)

    async def list_pending(
        self,
        storage: Storage,
        session: StaffSession,
        office: str,
        limit: int = 50,
        offset: int = 0,
    ) -> PendingIncidentPage:
        """
        対応待ちの報告書

        manager: 差戻しの報告書
        それ以外: 自分が記録した未承認・差戻しの報告書

        記録者列とステータス列だけを走査して候補の行位置を集め、
        要求ページ分の行だけを読み込む。
        """
        office = ensure_office_access(session, office)
        limit = _check_page_limit(limit)
        if offset < 0:
            raise ValidationFailedError(ja.EXC_BAD_REQUEST)
        store = await open_incident_store(storage, office)
        table = await crud_incident.get_table(store)
        if table is None:
            return PendingIncidentPage(items=[], has_more=False, offset=offset, limit=limit)

        me = normalize_name(session.name)
        target_count = offset + limit + 1
        candidates: List[int] = []
        col_count = COL_STATUS - COL_RECORDER + 1
        async for position, cols in iter_rows_reversed(
            table, settings.SCAN_CHUNK_SIZE, COL_RECORDER, col_count
        ):
            cols = list(cols) + [""] * (col_count - len(cols))
            status = normalize_status(cols[COL_STATUS - COL_RECORDER]) or IncidentStatus.pending
            if session.is_manager:
                matched = status == IncidentStatus.returned
            else:
                matched = (
                    status in (IncidentStatus.pending, IncidentStatus.returned)
                    and normalize_name(cols[0]) == me
                )
            if matched:
                candidates.append(position)
                if len(candidates) >= target_count:
                    break

        items = []
        for position in candidates[offset:offset + limit]:
            rows = await table.read_range(position, 1)
            if rows and cell_text(rows[0][COL_ID] if rows[0] else ""):
                items.append(from_row(rows[0], position))
        return PendingIncidentPage(
            items=items,
            has_more=len(candidates) > offset + limit,
            offset=offset,
            limit=limit,
        )

    async def list_approval_queue(
        self, storage: Storage, session: StaffSession, office: str
    ) -> List[IncidentReport]:
        """承認待ち（未承認）の報告書を作成日時の新しい順に返す（manager のみ）"""
        office = ensure_office_access(session, office)
        ensure_manager(session)
        store = await open_incident_store(storage, office)
        table = await crud_incident.get_table(store)
        if table is None:
            return []

        statuses = await table.read_range(0, await table.row_count(), COL_STATUS, 1)
        pending = [
            position for position, cols in enumerate(statuses)
            if (normalize_status(cols[0] if cols else "") or IncidentStatus.pending) == IncidentStatus.pending
        ]
        if not pending:
            return []

        # 未承認行を含む範囲を1回で読む
        first = pending[0]
        rows = await table.read_range(first, pending[-1] - first + 1)
        items = []
        for position in pending:
            offset = position - first
            row = rows[offset] if offset < len(rows) else None
            if row and len(row) > COL_ID and cell_text(row[COL_ID]):
                items.append(from_row(row, position))
        items.sort(
            key=lambda i: (i.created_at is not None, i.created_at.timestamp() if i.created_at else 0),
            reverse=True,
        )
        return items

    async def list_history(
        self,
        storage: Storage,
        session: StaffSession,
        office: str,
        filters: Optional[IncidentHistoryFilters] = None,
        limit: int = 50,
        continuation_token: Optional[str] = None,
    ) -> IncidentHistoryPage:
        """
        承認済みの報告書を新しい順に返す

        末尾から SCAN_CHUNK_SIZE 行ずつ遡って読み、必要件数に達した時点で打ち切る。
        """
        office = ensure_office_access(session, office)
        limit = _check_page_limit(limit)
        filters = filters or IncidentHistoryFilters()
        skip = 0
        if continuation_token:
            partition, skip = decode_token(continuation_token)
            if partition != INCIDENT_PARTITION:
                raise ValidationFailedError(ja.PAGINATION_TOKEN_INVALID)

        store = await open_incident_store(storage, office)
        table = await crud_incident.get_table(store)
        if table is None:
            return IncidentHistoryPage(items=[], has_more=False)

        items: List[IncidentReport] = []
        consumed = 0
        async for position, row in iter_approved_rows(table, filters):
            if consumed < skip:
                consumed += 1
                continue
            if len(items) >= limit:
                return IncidentHistoryPage(
                    items=items,
                    has_more=True,
                    continuation_token=encode_token(INCIDENT_PARTITION, consumed),
                )
            items.append(from_row(row, position))
            consumed += 1
        return IncidentHistoryPage(items=items, has_more=False)


incident_service = IncidentService()
