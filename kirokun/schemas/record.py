"""
支援記録のPydanticスキーマ
"""
from datetime import date, datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from kirokun.models.enums import RecordItem


class RecordDetails(BaseModel):
    """項目ごとの詳細値（排泄・服薬の内容、食事の摂取率/水分量、バイタル）"""
    detail1: str = ""
    detail2: str = ""
    temp: str = ""
    bp_high: str = ""
    bp_low: str = ""
    pulse: str = ""
    spo2: str = ""
    weight: str = ""


class SupportRecordBase(BaseModel):
    occurred_at: datetime
    recorder: str = Field(..., min_length=1)
    item: RecordItem
    content: str = ""
    details: RecordDetails = Field(default_factory=RecordDetails)


class SupportRecordCreate(SupportRecordBase):
    """複数の利用者に同じ記録を一括登録する"""
    users: List[str] = Field(default_factory=list)


class SupportRecordUpdate(SupportRecordBase):
    """利用者名は変更できない"""
    pass


class SupportRecord(BaseModel):
    partition: str
    row_offset: int
    created_at: Optional[datetime] = None
    occurred_at: Optional[datetime] = None
    user: str
    recorder: str
    item: str
    content: str
    details: RecordDetails
    detail_display: str
    search_index: str


class RecordQuery(BaseModel):
    user: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    limit: Optional[int] = None
    continuation_token: Optional[str] = None
    include_archives: Optional[bool] = None


class RecordPage(BaseModel):
    records: List[SupportRecord]
    has_more: bool
    continuation_token: Optional[str] = None


class RecordSaveResult(BaseModel):
    saved_count: int
    message: str


class TrashedRecord(BaseModel):
    trash_offset: int
    deleted_at: Optional[datetime] = None
    deleted_by: str
    record: SupportRecord
