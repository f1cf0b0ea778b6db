"""
公開操作の境界で操作ログを1件だけ記録するヘルパー

    async with audit_operation(storage, AuditAction.record_edit, actor=session, office=office) as op:
        ...
        op.target_id = "12"
        op.message = "..."

正常終了で SUCCESS、例外発生時は ERROR（エラー種別を detail に記録）を1件書き込み、
例外はそのまま再送出する。
"""
import logging
import uuid
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any, AsyncIterator, Dict, Optional

from kirokun.core.exceptions import AppError
from kirokun.crud.crud_audit_log import audit_log, build_event
from kirokun.models.enums import AuditAction, AuditStatus
from kirokun.schemas.session import StaffSession
from kirokun.storage.base import Storage
from kirokun.utils.datetime_utils import now_local

logger = logging.getLogger(__name__)


class AuditOperation:
    """1回の公開操作に対応する操作ログの内容"""

    def __init__(
        self,
        action: AuditAction,
        *,
        executor: str = "",
        role: str = "",
        offices_authorized: str = "",
        office: str = "",
        target_type: str = "",
        target_id: str = "",
    ):
        self.request_id = uuid.uuid4().hex
        self.action = action
        self.executor = executor
        self.role = role
        self.offices_authorized = offices_authorized
        self.office = office
        self.target_type = target_type
        self.target_id = target_id
        self.target_date = ""
        self.message = ""
        self.detail: Dict[str, Any] = {}
        # エラー種別ごとに記録するアクションを差し替える（サインイン失敗など）
        self.error_actions: Dict[str, AuditAction] = {}
        self.skipped = False

    def skip(self) -> None:
        """処理対象がなかった場合など、ログを残さない"""
        self.skipped = True

    def to_event(self, status: AuditStatus, timestamp: datetime, action: Optional[AuditAction] = None):
        return build_event(
            action=(action or self.action).value,
            timestamp=timestamp,
            executor=self.executor,
            role=self.role,
            offices_authorized=self.offices_authorized,
            office_selected=self.office,
            target_type=self.target_type,
            target_id=self.target_id,
            target_date=self.target_date,
            status=status.value,
            message=self.message,
            detail=self.detail,
            request_id=self.request_id,
        )


@asynccontextmanager
async def audit_operation(
    storage: Storage,
    action: AuditAction,
    *,
    actor: Optional[StaffSession] = None,
    executor: str = "",
    office: str = "",
    target_type: str = "",
    target_id: str = "",
) -> AsyncIterator[AuditOperation]:
    op = AuditOperation(
        action,
        executor=actor.name if actor else executor,
        role=actor.role.value if actor else "",
        offices_authorized=actor.scope.label() if actor else "",
        office=office or (actor.office_selected if actor else ""),
        target_type=target_type,
        target_id=target_id,
    )
    try:
        yield op
    except Exception as e:
        kind = e.kind if isinstance(e, AppError) else type(e).__name__
        op.detail["error_kind"] = kind
        op.message = e.message if isinstance(e, AppError) else str(e)
        await audit_log.append(
            storage,
            op.to_event(AuditStatus.error, now_local(), op.error_actions.get(kind)),
        )
        logger.warning(
            f"{op.action.value} failed: kind={kind}, office={op.office}, "
            f"executor={op.executor or 'System'}, request_id={op.request_id}"
        )
        raise
    else:
        if not op.skipped:
            await audit_log.append(storage, op.to_event(AuditStatus.success, now_local()))
