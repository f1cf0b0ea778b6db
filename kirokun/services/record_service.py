"""
支援記録サービス

現行パーティション「記録」と年別アーカイブを、現行 → アーカイブ（新しい年から）の順に、
各パーティション内では新しい行から走査して取得する。
"""
import logging
from datetime import date, datetime, timedelta
from typing import List, Optional

from kirokun.core.config import settings
from kirokun.core.exceptions import StaleReferenceError, ValidationFailedError
from kirokun.crud.crud_office import crud_office
from kirokun.crud.crud_support_record import (
    COL_DATE,
    COL_TIMESTAMP,
    COL_USER,
    LIVE_PARTITION,
    TRASH_PREFIX_COLUMNS,
    crud_support_record,
    from_row,
    from_trash_row,
    pad_row,
    reindex_row,
    to_row,
)
from kirokun.crud.scan import iter_rows_reversed
from kirokun.messages import ja
from kirokun.models.enums import AuditAction, AuditTargetType
from kirokun.schemas.record import (
    RecordPage,
    RecordSaveResult,
    SupportRecord,
    SupportRecordCreate,
    SupportRecordUpdate,
    TrashedRecord,
)
from kirokun.schemas.session import StaffSession
from kirokun.services.audit_trail import audit_operation
from kirokun.services.session_auth_service import ensure_office_access
from kirokun.storage.base import Row, Storage, Store, Table
from kirokun.utils.datetime_utils import end_of_day, now_local, parse_datetime, start_of_day, to_cell
from kirokun.utils.pagination import decode_token, encode_token
from kirokun.utils.text import cell_text

logger = logging.getLogger(__name__)


class RecordService:

    async def _open_store(self, storage: Storage, office: str) -> Store:
        tenant = await crud_office.resolve(storage, office)
        return storage.open_store(tenant.record_store_id)

    async def _partitions_to_scan(
        self,
        store: Store,
        start_dt: Optional[datetime],
        include_archives: Optional[bool],
        now: datetime,
    ) -> List[str]:
        """
        走査順のパーティション名一覧

        include_archives=None の場合、開始日がアーカイブ閾値より古いときだけアーカイブを含める。
        開始日の年より前の年のアーカイブには該当行がないため含めない。
        """
        names = [LIVE_PARTITION]
        if include_archives is None:
            threshold = now - timedelta(days=settings.ARCHIVE_THRESHOLD_DAYS)
            include_archives = start_dt is not None and start_dt < threshold
        if not include_archives:
            return names
        for year, name in await crud_support_record.list_archives(store):
            if start_dt is not None and year < start_dt.year:
                continue
            names.append(name)
        return names

    @staticmethod
    def _matches(
        row: Row,
        user: Optional[str],
        start_dt: Optional[datetime],
        end_dt: Optional[datetime],
    ) -> bool:
        # 利用者チェックを先に行う（日付解析より軽い）
        if user and (len(row) <= COL_USER or cell_text(row[COL_USER]) != user):
            return False
        occurred_at = parse_datetime(row[COL_DATE]) if len(row) > COL_DATE else None
        if occurred_at is None:
            return False
        if start_dt is not None and occurred_at < start_dt:
            return False
        if end_dt is not None and occurred_at > end_dt:
            return False
        return True

    async def get_records(
        self,
        storage: Storage,
        session: StaffSession,
        office: str,
        *,
        user: Optional[str] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        limit: Optional[int] = None,
        continuation_token: Optional[str] = None,
        include_archives: Optional[bool] = None,
        now: Optional[datetime] = None,
    ) -> RecordPage:
        """
        支援記録を新しい順に取得する

        Args:
            storage: ストレージ
            session: 操作者のセッション
            office: 事業所名
            user: 利用者名（完全一致）。None の場合は全利用者
            start_date: 開始日（その日の 00:00 から）
            end_date: 終了日（その日の 23:59:59.999999 まで）
            limit: 返却する一致件数の上限
            continuation_token: 前ページの continuation_token
            include_archives: アーカイブを走査するか。None の場合は開始日から判断する
            now: 現在日時（テスト用）

        Returns:
            records, has_more, continuation_token

        Raises:
            ValidationFailedError: limit が1未満、またはトークンが不正
            StaleReferenceError: トークンが指すパーティションが存在しない
        """
        office = ensure_office_access(session, office)
        if limit is None:
            limit = settings.RECORD_PAGE_LIMIT_DEFAULT
        if limit < 1:
            raise ValidationFailedError(ja.RECORD_LIMIT_INVALID)
        limit = min(limit, settings.RECORD_PAGE_LIMIT_MAX)

        store = await self._open_store(storage, office)
        start_dt = start_of_day(start_date) if start_date else None
        end_dt = end_of_day(end_date) if end_date else None
        partitions = await self._partitions_to_scan(store, start_dt, include_archives, now or now_local())

        start_index = 0
        skip = 0
        if continuation_token:
            token_partition, skip = decode_token(continuation_token)
            if token_partition not in partitions:
                raise StaleReferenceError(ja.PAGINATION_TOKEN_STALE.format(partition=token_partition))
            start_index = partitions.index(token_partition)

        user_filter = cell_text(user) or None
        records: List[SupportRecord] = []
        for index in range(start_index, len(partitions)):
            name = partitions[index]
            table = await store.open_partition(name)
            if table is None:
                continue
            skip_here = skip if index == start_index else 0
            # このパーティション内で処理済みの一致件数（トークンの offset）
            consumed = 0
            async for offset, row in iter_rows_reversed(table, settings.SCAN_CHUNK_SIZE):
                if not self._matches(row, user_filter, start_dt, end_dt):
                    continue
                if consumed < skip_here:
                    consumed += 1
                    continue
                if len(records) >= limit:
                    return RecordPage(
                        records=records,
                        has_more=True,
                        continuation_token=encode_token(name, consumed),
                    )
                records.append(from_row(row, name, offset))
                consumed += 1

        return RecordPage(records=records, has_more=False)

    async def add_records(
        self,
        storage: Storage,
        session: StaffSession,
        office: str,
        record_in: SupportRecordCreate,
        now: Optional[datetime] = None,
    ) -> RecordSaveResult:
        """選択された利用者の人数分の記録を追加する（操作ログは1件）"""
        async with audit_operation(
            storage, AuditAction.record_save, actor=session, office=cell_text(office),
            target_type=AuditTargetType.record.value,
        ) as op:
            office = ensure_office_access(session, office)
            users = []
            for user in record_in.users:
                name = cell_text(user)
                if name and name not in users:
                    users.append(name)
            if not users:
                raise ValidationFailedError(ja.RECORD_USERS_REQUIRED)

            store = await self._open_store(storage, office)
            live = await crud_support_record.get_live(store, create=True)
            created_at = now or now_local()
            await live.append_rows([to_row(record_in, user, created_at) for user in users])

            op.target_id = ",".join(users)
            op.target_date = to_cell(record_in.occurred_at)
            op.message = ja.RECORD_SAVED.format(count=len(users))
            op.detail = {"count": len(users), "item": record_in.item.value}
            return RecordSaveResult(saved_count=len(users), message=op.message)

    async def _live_row(self, live: Optional[Table], row_offset: int) -> Row:
        """現行パーティションの行を読む。範囲外なら StaleReferenceError。"""
        if live is None or row_offset < 0 or row_offset >= await live.row_count():
            raise StaleReferenceError(ja.RECORD_ROW_INVALID)
        rows = await live.read_range(row_offset, 1)
        if not rows:
            raise StaleReferenceError(ja.RECORD_ROW_INVALID)
        return pad_row(rows[0])

    async def edit_record(
        self,
        storage: Storage,
        session: StaffSession,
        office: str,
        row_offset: int,
        record_in: SupportRecordUpdate,
    ) -> SupportRecord:
        """
        現行パーティションの記録を行位置で上書きする（利用者名・登録日時は保持）

        アーカイブ済みの記録は編集できない。
        """
        async with audit_operation(
            storage, AuditAction.record_edit, actor=session, office=cell_text(office),
            target_type=AuditTargetType.record.value, target_id=str(row_offset),
        ) as op:
            office = ensure_office_access(session, office)
            store = await self._open_store(storage, office)
            live = await crud_support_record.get_live(store)
            current = await self._live_row(live, row_offset)

            updated = to_row(record_in, cell_text(current[COL_USER]), now_local())
            updated[COL_TIMESTAMP] = current[COL_TIMESTAMP]
            await live.update_row(row_offset, updated)

            op.target_date = to_cell(record_in.occurred_at)
            op.message = ja.RECORD_UPDATED.format(row=row_offset)
            return from_row(updated, LIVE_PARTITION, row_offset)

    async def delete_record(
        self,
        storage: Storage,
        session: StaffSession,
        office: str,
        row_offset: int,
        now: Optional[datetime] = None,
    ) -> TrashedRecord:
        """記録をゴミ箱へ移動する（[削除日時, 削除者, 記録15列] を追記してから元の行を削除）"""
        async with audit_operation(
            storage, AuditAction.record_delete, actor=session, office=cell_text(office),
            target_type=AuditTargetType.record.value, target_id=str(row_offset),
        ) as op:
            office = ensure_office_access(session, office)
            store = await self._open_store(storage, office)
            live = await crud_support_record.get_live(store)
            current = await self._live_row(live, row_offset)

            deleted_at = now or now_local()
            trash = await crud_support_record.get_trash(store, create=True)
            trash_row = [to_cell(deleted_at), session.name] + current
            await trash.append_rows([trash_row])
            await live.delete_row(row_offset)

            op.target_date = cell_text(current[COL_DATE])
            op.message = ja.RECORD_DELETED.format(row=row_offset)
            return from_trash_row(trash_row, await trash.row_count() - 1)

    async def list_trash(self, storage: Storage, session: StaffSession, office: str) -> List[TrashedRecord]:
        """ゴミ箱の記録を削除日時の新しい順に返す"""
        office = ensure_office_access(session, office)
        store = await self._open_store(storage, office)
        trash = await crud_support_record.get_trash(store)
        if trash is None:
            return []
        entries = [from_trash_row(row, offset) for offset, row in enumerate(await trash.read_all())]
        # 削除日時が解析できない行は末尾
        entries.sort(
            key=lambda e: (e.deleted_at is not None, e.deleted_at.timestamp() if e.deleted_at else 0, e.trash_offset),
            reverse=True,
        )
        return entries

    async def restore_record(
        self,
        storage: Storage,
        session: StaffSession,
        office: str,
        trash_offset: int,
    ) -> SupportRecord:
        """ゴミ箱の記録を現行パーティションの末尾に戻す（元の行位置には戻らない）"""
        async with audit_operation(
            storage, AuditAction.record_restore, actor=session, office=cell_text(office),
            target_type=AuditTargetType.record.value, target_id=str(trash_offset),
        ) as op:
            office = ensure_office_access(session, office)
            store = await self._open_store(storage, office)
            trash = await crud_support_record.get_trash(store)
            if trash is None or trash_offset < 0 or trash_offset >= await trash.row_count():
                raise StaleReferenceError(ja.RECORD_TRASH_ROW_INVALID)
            rows = await trash.read_range(trash_offset, 1)
            if not rows:
                raise StaleReferenceError(ja.RECORD_TRASH_ROW_INVALID)

            record_row = reindex_row(rows[0][TRASH_PREFIX_COLUMNS:])
            live = await crud_support_record.get_live(store, create=True)
            await live.append_rows([record_row])
            await trash.delete_row(trash_offset)

            op.target_date = cell_text(record_row[COL_DATE])
            op.message = ja.RECORD_RESTORED
            return from_row(record_row, LIVE_PARTITION, await live.row_count() - 1)


record_service = RecordService()
