from typing import Optional
from pydantic import BaseModel

from kirokun.models.enums import StaffRole
from kirokun.schemas.session import OfficeScope


class TenantStores(BaseModel):
    """事業所とその記録ストア・報告書ストアの対応"""
    office: str
    record_store_id: str
    incident_store_id: Optional[str] = None

    model_config = {"frozen": True}


class StaffEntry(BaseModel):
    """職員マスタの1行"""
    name: str
    scope: OfficeScope
    role: StaffRole
    pin_hash: str
