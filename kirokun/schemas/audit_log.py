"""
操作ログ（監査ログ）のPydanticスキーマ
"""
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class AuditEvent(BaseModel):
    """操作ログ1行（保存時は17列固定）"""
    timestamp: datetime
    schema_version: str
    executor: str = "System"
    role: str = ""
    offices_authorized: str = ""
    office_selected: str = ""
    action: str
    target_type: str = ""
    target_id: str = ""
    target_date: str = ""
    status: str = "SUCCESS"
    message: str = ""
    detail: Dict[str, Any] = Field(default_factory=dict)
    client_info: str = ""
    request_id: str = ""
    expires_at: Optional[datetime] = None
    search_index: str = ""


class AuditEventListResponse(BaseModel):
    """操作ログ一覧レスポンス"""
    events: List[AuditEvent]
    skip: int
    limit: int
