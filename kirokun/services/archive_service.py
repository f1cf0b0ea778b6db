"""
アーカイブ・保存期限切れデータ削除サービス

事業所ごとに以下を実行するバッチ処理。各ジョブは独立しており、再実行しても安全。
- archive_sweep: 180日より前の記録を年別アーカイブへ移動（件数検証・ロールバック付き）
- purge_expired_archives: 保存年数を過ぎたアーカイブを削除
- purge_record_trash / purge_incident_trash: 削除から30日経過したゴミ箱の行を削除
- purge_expired_audit_events: 有効期限切れの操作ログを削除

複数行の変更は「全件読み込み → 次の状態を計算 → 一括書き込み」で行い、
行単位の削除による位置ずれを起こさない。
"""
import logging
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from kirokun.core.config import settings
from kirokun.core.exceptions import IntegrityViolationError
from kirokun.crud.crud_audit_log import audit_log
from kirokun.crud.crud_incident import crud_incident
from kirokun.crud.crud_office import crud_office
from kirokun.crud.crud_support_record import (
    COL_DATE,
    archive_partition_name,
    crud_support_record,
)
from kirokun.messages import ja
from kirokun.models.enums import AuditAction, AuditTargetType
from kirokun.schemas.office import TenantStores
from kirokun.services.audit_trail import audit_operation
from kirokun.storage.base import Row, Storage, Store, Table
from kirokun.utils.datetime_utils import now_local, parse_datetime

logger = logging.getLogger(__name__)


def _is_older_than(value: Any, threshold: datetime) -> bool:
    """日時が閾値より前か。解析できない値は False（削除・移動の対象にしない）"""
    parsed = parse_datetime(value)
    return parsed is not None and parsed < threshold


class ArchiveService:
    """記録のアーカイブと保存期限切れデータの削除"""

    async def archive_sweep(
        self,
        storage: Storage,
        tenant: TenantStores,
        now: Optional[datetime] = None,
        threshold_days: Optional[int] = None,
    ) -> Dict[str, Any]:
        """
        現行パーティションから閾値より古い記録をアーカイブへ移動する

        日付が解析できない行は移動しない。アーカイブ名は閾値日の年
        （記録_Archive_YYYY）。移動後に「残存件数 + アーカイブ増加件数 = 元の件数」
        を検証し、一致しない場合は IntegrityViolationError を送出する。
        移動中に例外が発生した場合は移動前の状態に戻してから再送出する。

        Args:
            storage: ストレージ
            tenant: 対象事業所
            now: 現在日時（テスト用）
            threshold_days: 閾値日数（デフォルト ARCHIVE_THRESHOLD_DAYS）

        Returns:
            移動結果のサマリー
        """
        now = now or now_local()
        threshold = now - timedelta(
            days=threshold_days if threshold_days is not None else settings.ARCHIVE_THRESHOLD_DAYS
        )
        partition_name = archive_partition_name(threshold.year)
        result: Dict[str, Any] = {
            "office": tenant.office,
            "threshold_date": threshold,
            "archive_partition": partition_name,
            "moved_count": 0,
            "kept_count": 0,
        }

        store = storage.open_store(tenant.record_store_id)
        live = await crud_support_record.get_live(store)
        if live is None:
            return result

        async with audit_operation(
            storage, AuditAction.archive_move, office=tenant.office,
            target_type=AuditTargetType.partition.value, target_id=partition_name,
        ) as op:
            snapshot = await live.read_all()
            to_move: List[Row] = []
            to_keep: List[Row] = []
            for row in snapshot:
                date_value = row[COL_DATE] if len(row) > COL_DATE else None
                if _is_older_than(date_value, threshold):
                    to_move.append(row)
                else:
                    to_keep.append(row)
            result["kept_count"] = len(to_keep)

            if not to_move:
                op.skip()
                return result

            existing = await store.open_partition(partition_name)
            created = existing is None
            archive = existing or await store.open_partition(partition_name, create=True)
            archive_before = await archive.row_count()

            try:
                batch_size = settings.ARCHIVE_BATCH_SIZE
                for i in range(0, len(to_move), batch_size):
                    await archive.append_rows(to_move[i:i + batch_size])
                await live.overwrite_all(to_keep)

                remaining = await live.row_count()
                archived = await archive.row_count() - archive_before
                if remaining + archived != len(snapshot):
                    raise IntegrityViolationError(
                        ja.MAINTENANCE_ARCHIVE_INTEGRITY.format(
                            original=len(snapshot), remaining=remaining, moved=archived
                        )
                    )
            except BaseException:
                await self._rollback(store, live, archive, snapshot, archive_before, created)
                raise

            result["moved_count"] = len(to_move)
            op.message = ja.MAINTENANCE_ARCHIVE_MOVED.format(count=len(to_move), partition=partition_name)
            op.detail = {
                "moved": len(to_move),
                "kept": len(to_keep),
                "original": len(snapshot),
                "partition": partition_name,
            }
            logger.info(
                f"[{tenant.office}] Archived {len(to_move)} records to {partition_name} "
                f"({len(to_keep)} kept)"
            )
            return result

    async def _rollback(
        self,
        store: Store,
        live: Table,
        archive: Table,
        snapshot: List[Row],
        archive_before: int,
        created: bool,
    ) -> None:
        """現行パーティションを移動前に戻し、今回追記したアーカイブ行を取り除く"""
        logger.error(f"Rolling back archive move for {store.store_id}/{archive.name}")
        try:
            await live.overwrite_all(snapshot)
            if created:
                await store.delete_partition(archive.name)
            else:
                appended = await archive.row_count() - archive_before
                await archive.delete_rows(archive_before, appended)
        except Exception:
            # 元の例外を優先して送出する
            logger.exception(f"Rollback failed for {store.store_id}/{archive.name}")

    async def purge_expired_archives(
        self,
        storage: Storage,
        tenant: TenantStores,
        now: Optional[datetime] = None,
        retention_years: Optional[int] = None,
    ) -> List[str]:
        """
        保存年数を過ぎたアーカイブを削除する（年 < 今年 - 保存年数）。
        削除したパーティションごとに操作ログを1件記録する。

        Returns:
            削除したパーティション名
        """
        now = now or now_local()
        cutoff_year = now.year - (retention_years if retention_years is not None else settings.ARCHIVE_RETENTION_YEARS)
        store = storage.open_store(tenant.record_store_id)
        deleted = []
        for year, name in await crud_support_record.list_archives(store):
            if year >= cutoff_year:
                continue
            async with audit_operation(
                storage, AuditAction.archive_cleanup, office=tenant.office,
                target_type=AuditTargetType.partition.value, target_id=name,
            ) as op:
                await store.delete_partition(name)
                op.message = ja.MAINTENANCE_ARCHIVE_DELETED.format(partition=name)
                op.detail = {"year": year, "cutoff_year": cutoff_year}
            deleted.append(name)
            logger.info(f"[{tenant.office}] Deleted expired archive {name}")
        return deleted

    async def _purge_trash_table(
        self,
        storage: Storage,
        tenant: TenantStores,
        trash: Optional[Table],
        action: AuditAction,
        now: datetime,
        retention_days: int,
    ) -> int:
        if trash is None:
            return 0
        threshold = now - timedelta(days=retention_days)
        async with audit_operation(
            storage, action, office=tenant.office,
            target_type=AuditTargetType.partition.value, target_id=trash.name,
        ) as op:
            rows = await trash.read_all()
            kept = [row for row in rows if not (row and _is_older_than(row[0], threshold))]
            deleted = len(rows) - len(kept)
            if not deleted:
                op.skip()
                return 0
            await trash.overwrite_all(kept)
            op.message = ja.MAINTENANCE_TRASH_PURGED.format(count=deleted)
            op.detail = {"deleted": deleted, "kept": len(kept)}
            logger.info(f"[{tenant.office}] Purged {deleted} rows from {trash.name}")
            return deleted

    async def purge_record_trash(
        self,
        storage: Storage,
        tenant: TenantStores,
        now: Optional[datetime] = None,
        retention_days: Optional[int] = None,
    ) -> int:
        """記録のゴミ箱から削除日時が保存期間を過ぎた行を削除する。削除日時が解析できない行は残す。"""
        store = storage.open_store(tenant.record_store_id)
        return await self._purge_trash_table(
            storage, tenant, await crud_support_record.get_trash(store), AuditAction.trash_cleanup,
            now or now_local(),
            retention_days if retention_days is not None else settings.TRASH_RETENTION_DAYS,
        )

    async def purge_incident_trash(
        self,
        storage: Storage,
        tenant: TenantStores,
        now: Optional[datetime] = None,
        retention_days: Optional[int] = None,
    ) -> int:
        """報告書のゴミ箱から削除日時が保存期間を過ぎた行を削除する。"""
        if not tenant.incident_store_id:
            return 0
        store = storage.open_store(tenant.incident_store_id)
        return await self._purge_trash_table(
            storage, tenant, await crud_incident.get_trash(store), AuditAction.incident_trash_cleanup,
            now or now_local(),
            retention_days if retention_days is not None else settings.TRASH_RETENTION_DAYS,
        )

    async def purge_expired_audit_events(self, storage: Storage, now: Optional[datetime] = None) -> int:
        """有効期限切れの操作ログを削除する"""
        async with audit_operation(
            storage, AuditAction.log_cleanup, target_type=AuditTargetType.audit_log.value,
        ) as op:
            deleted, kept = await audit_log.purge_expired(storage, now or now_local())
            if not deleted:
                op.skip()
                return 0
            op.message = ja.MAINTENANCE_LOG_PURGED.format(count=deleted)
            op.detail = {"deleted": deleted, "kept": kept}
            return deleted

    async def run_daily_maintenance(self, storage: Storage, now: Optional[datetime] = None) -> Dict[str, Any]:
        """
        全事業所のメンテナンスを順に実行する

        1つの事業所・ジョブの失敗は記録して次へ進む。

        Returns:
            実行結果のサマリー（errors にジョブごとの失敗内容）
        """
        now = now or now_local()
        summary: Dict[str, Any] = {
            "archived": {},
            "deleted_archives": {},
            "purged_record_trash": {},
            "purged_incident_trash": {},
            "purged_audit_events": 0,
            "errors": [],
        }

        async def run_job(job_name: str, office: str, coro) -> Any:
            try:
                return await coro
            except Exception as e:
                error_msg = f"{job_name} failed for {office or 'audit log'}: {type(e).__name__}: {e}"
                logger.exception(error_msg)
                summary["errors"].append(error_msg)
                return None

        try:
            tenants = await crud_office.list_tenants(storage)
        except Exception as e:
            error_msg = f"Failed to list offices: {type(e).__name__}: {e}"
            logger.exception(error_msg)
            summary["errors"].append(error_msg)
            tenants = []

        for tenant in tenants:
            result = await run_job("archive_sweep", tenant.office, self.archive_sweep(storage, tenant, now=now))
            if result is not None:
                summary["archived"][tenant.office] = result["moved_count"]

        purged = await run_job("purge_expired_audit_events", "", self.purge_expired_audit_events(storage, now=now))
        summary["purged_audit_events"] = purged or 0

        for tenant in tenants:
            count = await run_job("purge_record_trash", tenant.office, self.purge_record_trash(storage, tenant, now=now))
            if count is not None:
                summary["purged_record_trash"][tenant.office] = count

            names = await run_job(
                "purge_expired_archives", tenant.office, self.purge_expired_archives(storage, tenant, now=now)
            )
            if names is not None:
                summary["deleted_archives"][tenant.office] = names

            count = await run_job(
                "purge_incident_trash", tenant.office, self.purge_incident_trash(storage, tenant, now=now)
            )
            if count is not None:
                summary["purged_incident_trash"][tenant.office] = count

        logger.info(
            f"Daily maintenance completed: {len(tenants)} offices, "
            f"{sum(summary['archived'].values())} records archived, "
            f"{len(summary['errors'])} errors"
        )
        return summary


archive_service = ArchiveService()
