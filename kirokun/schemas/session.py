"""
セッション・認証スコープのPydanticスキーマ
"""
from datetime import datetime
from typing import Annotated, List, Literal, Union

from pydantic import BaseModel, Field

from kirokun.models.enums import StaffRole


class AllOffices(BaseModel):
    """全事業所へのアクセス権限（職員マスタの事業所欄が空欄の職員）"""
    kind: Literal["all"] = "all"

    def allows(self, office: str) -> bool:
        return True

    def label(self) -> str:
        return "ALL"


class SpecificOffices(BaseModel):
    """列挙された事業所のみへのアクセス権限"""
    kind: Literal["offices"] = "offices"
    offices: List[str] = Field(default_factory=list)

    def allows(self, office: str) -> bool:
        return office.strip() in self.offices

    def label(self) -> str:
        return ",".join(self.offices)


OfficeScope = Annotated[Union[AllOffices, SpecificOffices], Field(discriminator="kind")]


class StaffSession(BaseModel):
    """verify_credentials の結果"""
    name: str
    role: StaffRole
    office_selected: str
    scope: OfficeScope
    expires_at: datetime

    @property
    def is_manager(self) -> bool:
        return self.role == StaffRole.manager


class PinCheckResult(BaseModel):
    """verify_pin_only の結果（事業所は未選択）"""
    name: str
    role: StaffRole
    scope: OfficeScope


# --- API 入出力 ---

class SignInRequest(BaseModel):
    office: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    pin: str = Field(..., min_length=1)


class PinCheckRequest(BaseModel):
    name: str = Field(..., min_length=1)
    pin: str = Field(..., min_length=1)


class SessionToken(BaseModel):
    access_token: str
    token_type: str = "bearer"
    session: StaffSession
