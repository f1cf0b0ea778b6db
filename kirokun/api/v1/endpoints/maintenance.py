import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query

from kirokun.api.deps import get_storage, require_manager
from kirokun.crud.crud_audit_log import audit_log
from kirokun.schemas.audit_log import AuditEventListResponse
from kirokun.schemas.session import StaffSession
from kirokun.services.archive_service import archive_service
from kirokun.storage.base import Storage

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/run")
async def run_maintenance(
    storage: Storage = Depends(get_storage),
    session: StaffSession = Depends(require_manager),
) -> Dict[str, Any]:
    """
    日次メンテナンスを手動実行する（manager のみ）

    アーカイブ・ゴミ箱・操作ログの削除を全事業所に対して実行し、結果のサマリーを返す。
    """
    logger.info(f"Manual maintenance run requested by {session.name}")
    return await archive_service.run_daily_maintenance(storage)


@router.get("/audit-events", response_model=AuditEventListResponse)
async def list_audit_events(
    storage: Storage = Depends(get_storage),
    session: StaffSession = Depends(require_manager),
    action: Optional[str] = Query(None, description="アクションで絞り込み"),
    status: Optional[str] = Query(None, description="SUCCESS / ERROR"),
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=500),
):
    """選択中の事業所の操作ログを新しい順に取得する（manager のみ）"""
    events = await audit_log.get_events(
        storage, office=session.office_selected, action=action, status=status, skip=skip, limit=limit
    )
    return AuditEventListResponse(events=events, skip=skip, limit=limit)
