"""
テスト用ヘルパー

マスタデータの投入、セッション・認証ヘッダーの作成、行データの組み立てを行う。
"""
from datetime import datetime, timedelta
from typing import Iterable, Optional

from kirokun.core.config import settings
from kirokun.core.security import create_session_token, get_pin_hash
from kirokun.crud.crud_office import OFFICE_MAPPING_PARTITION, USER_MASTER_PARTITION
from kirokun.crud.crud_staff import STAFF_MASTER_PARTITION
from kirokun.crud.crud_support_record import to_row as record_to_row
from kirokun.models.enums import RecordItem, StaffRole
from kirokun.schemas.record import SupportRecordBase
from kirokun.schemas.session import AllOffices, SpecificOffices, StaffSession
from kirokun.storage.memory import MemoryStorage
from kirokun.utils.datetime_utils import get_timezone

# bcrypt は遅いのでセッション全体で1回だけハッシュ化する
PIN_STAFF = "1234"
PIN_MANAGER = "9999"
PIN_HASH_STAFF = get_pin_hash(PIN_STAFF)
PIN_HASH_MANAGER = get_pin_hash(PIN_MANAGER)

# テストで固定して使う現在日時
FIXED_NOW = datetime(2026, 6, 15, 10, 0, 0, tzinfo=get_timezone())

RECORD_STORE_ALPHA = "records-alpha"
RECORD_STORE_BETA = "records-beta"
RECORD_STORE_GAMMA = "records-gamma"
INCIDENT_STORE_ALPHA = "incidents-alpha"
INCIDENT_STORE_BETA = "incidents-beta"


def seed_master(storage: MemoryStorage) -> None:
    """
    マスタストアに事業所・職員・利用者を登録する

    - Alpha / Beta: 記録ストアと報告書ストアあり
    - Gamma: 報告書ストアなし
    - Tanaka: staff、全事業所 (PIN 1234)
    - Suzuki: staff、Beta,Gamma (PIN 1234)
    - Sato: manager、Alpha,Beta (PIN 9999)
    """
    storage.seed(settings.MASTER_STORE_ID, OFFICE_MAPPING_PARTITION, [
        ["Alpha", RECORD_STORE_ALPHA, INCIDENT_STORE_ALPHA],
        ["Beta", RECORD_STORE_BETA, INCIDENT_STORE_BETA],
        ["Gamma", RECORD_STORE_GAMMA, ""],
    ])
    storage.seed(settings.MASTER_STORE_ID, STAFF_MASTER_PARTITION, [
        ["Tanaka", "", "staff", PIN_HASH_STAFF],
        ["Suzuki", "Beta,Gamma", "staff", PIN_HASH_STAFF],
        ["Sato", "Alpha,Beta", "manager", PIN_HASH_MANAGER],
    ])
    storage.seed(settings.MASTER_STORE_ID, USER_MASTER_PARTITION, [
        ["山田 太郎", "Alpha"],
        ["佐々木 花子", "Beta"],
        ["共通 利用者", ""],
    ])


def make_session(
    name: str,
    office: str,
    role: StaffRole = StaffRole.staff,
    offices: Optional[Iterable[str]] = None,
) -> StaffSession:
    """テスト用のセッションを作る（offices=None は全事業所）"""
    scope = AllOffices() if offices is None else SpecificOffices(offices=list(offices))
    return StaffSession(
        name=name,
        role=role,
        office_selected=office,
        scope=scope,
        expires_at=FIXED_NOW + timedelta(hours=1),
    )


def auth_headers(session: StaffSession) -> dict:
    """セッションからAuthorizationヘッダーを作る（有効期限は実時刻基準）"""
    fresh = session.model_copy(update={"expires_at": datetime.now(get_timezone()) + timedelta(hours=1)})
    return {"Authorization": f"Bearer {create_session_token(fresh)}"}


def make_record_row(
    occurred_at: datetime,
    user: str = "山田 太郎",
    recorder: str = "Tanaka",
    item: RecordItem = RecordItem.excretion,
    content: str = "",
) -> list:
    """支援記録の保存用15列を作る"""
    record = SupportRecordBase(occurred_at=occurred_at, recorder=recorder, item=item, content=content)
    return record_to_row(record, user, occurred_at)
