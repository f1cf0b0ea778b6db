"""日次メンテナンススケジューラー

記録のアーカイブ、ゴミ箱・アーカイブ・操作ログの保存期限切れ削除を
定期的に実行するバックグラウンドジョブを管理する。
"""

import asyncio
import logging
from typing import Optional

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

from kirokun.core.config import settings
from kirokun.services.archive_service import archive_service
from kirokun.storage import get_storage
from kirokun.storage.base import Storage


logger = logging.getLogger(__name__)


class MaintenanceScheduler:
    """日次メンテナンススケジューラー

    APSchedulerを使用して、全事業所のメンテナンスを定期実行する。
    """

    def __init__(self, interval_hours: int = 24, storage: Optional[Storage] = None):
        """初期化

        Args:
            interval_hours: 実行間隔（時間）。デフォルトは24時間（1日）。
            storage: 対象ストレージ。省略時は設定に従う。
        """
        self.scheduler = BackgroundScheduler()
        self.job_id = "daily_maintenance_job"
        self.interval_hours = interval_hours
        self._storage = storage

    async def run_maintenance(self) -> None:
        """全事業所のメンテナンスを実行する

        このメソッドはスケジューラーから定期的に呼び出される。
        """
        logger.info("=" * 80)
        logger.info("日次メンテナンスジョブ開始")
        logger.info("=" * 80)

        try:
            storage = self._storage or get_storage()
            result = await archive_service.run_daily_maintenance(storage)

            archived = sum(result.get("archived", {}).values())
            purged_trash = sum(result.get("purged_record_trash", {}).values())
            purged_incident_trash = sum(result.get("purged_incident_trash", {}).values())
            errors = result.get("errors", [])

            logger.info(
                f"メンテナンス完了: アーカイブ={archived}件, "
                f"記録ゴミ箱削除={purged_trash}件, 報告書ゴミ箱削除={purged_incident_trash}件, "
                f"操作ログ削除={result.get('purged_audit_events', 0)}件"
            )

            if errors:
                logger.error(f"{len(errors)}件のエラーが発生しました:")
                for error in errors:
                    logger.error(f"  - {error}")

        except Exception as e:
            logger.exception(
                f"日次メンテナンスジョブでエラーが発生しました: "
                f"{type(e).__name__}: {e}"
            )

        logger.info("=" * 80)
        logger.info("日次メンテナンスジョブ終了")
        logger.info("=" * 80)

    def _maintenance_wrapper(self) -> None:
        """メンテナンスジョブのラッパー

        APSchedulerは同期関数を期待するため、
        非同期関数をラップして実行する。
        """
        asyncio.run(self.run_maintenance())

    def start(self) -> None:
        """スケジューラーを開始する

        既にジョブが登録されている場合は、重複登録を避ける。
        """
        existing_job = self.scheduler.get_job(self.job_id)

        if existing_job is None:
            self.scheduler.add_job(
                func=self._maintenance_wrapper,
                trigger=IntervalTrigger(hours=self.interval_hours),
                id=self.job_id,
                name="日次メンテナンスジョブ",
                replace_existing=True
            )
            logger.info(f"日次メンテナンスジョブを登録しました（間隔: {self.interval_hours}時間）")
        else:
            logger.info("日次メンテナンスジョブは既に登録されています")

        if not self.scheduler.running:
            self.scheduler.start()
            logger.info("日次メンテナンススケジューラーを開始しました")
        else:
            logger.info("日次メンテナンススケジューラーは既に実行中です")

    def shutdown(self, wait: bool = True) -> None:
        """スケジューラーをシャットダウンする

        Args:
            wait: 実行中のジョブの完了を待つかどうか
        """
        if self.scheduler.running:
            self.scheduler.shutdown(wait=wait)
            logger.info("日次メンテナンススケジューラーをシャットダウンしました")


# シングルトンインスタンス
maintenance_scheduler = MaintenanceScheduler(interval_hours=settings.MAINTENANCE_INTERVAL_HOURS)
