"""
ヒヤリハット・事故報告のPydanticスキーマ
"""
from datetime import date, datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from kirokun.models.enums import IncidentStatus


class IncidentBase(BaseModel):
    occurred_at: datetime
    subject_user: str = ""
    type: str = Field(..., min_length=1)
    place: str = ""
    situation: str = ""
    cause: str = ""
    response: str = ""
    prevention: str = ""


class IncidentCreate(IncidentBase):
    pass


class IncidentUpdate(IncidentBase):
    pass


class IncidentReport(BaseModel):
    id: str
    row_offset: int
    created_at: Optional[datetime] = None
    occurred_at: Optional[datetime] = None
    recorder: str
    subject_user: str
    type: str
    place: str
    situation: str
    cause: str
    response: str
    prevention: str
    status: IncidentStatus
    approver: str = ""
    approved_at: Optional[datetime] = None
    return_reason: str = ""
    returned_at: Optional[datetime] = None


class ApproveRequest(BaseModel):
    pin: str = Field(..., min_length=1)


class ReturnRequest(BaseModel):
    pin: str = Field(..., min_length=1)
    reason: str = ""


class IncidentHistoryFilters(BaseModel):
    """履歴・CSV出力の絞り込み条件"""
    subject_user: Optional[str] = None
    recorder: Optional[str] = None
    type: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None


class PendingIncidentPage(BaseModel):
    items: List[IncidentReport]
    has_more: bool
    offset: int
    limit: int


class IncidentHistoryPage(BaseModel):
    items: List[IncidentReport]
    has_more: bool
    continuation_token: Optional[str] = None


class TrashedIncident(BaseModel):
    trash_offset: int
    deleted_at: Optional[datetime] = None
    deleted_by: str
    incident: IncidentReport


class CsvDeliveryResult(BaseModel):
    location: str
    exported_count: int
