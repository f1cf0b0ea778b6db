from datetime import datetime, timezone
from typing import Any, Optional

from jose import jwt, JWTError
from passlib.context import CryptContext

from kirokun.core.config import settings
from kirokun.schemas.session import StaffSession

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def verify_pin(plain_pin: str, pin_hash: str) -> bool:
    """
    PINを照合する。職員マスタのPIN欄がハッシュとして認識できない場合は不一致とする。
    """
    if not plain_pin or not pin_hash:
        return False
    if pwd_context.identify(pin_hash) is None:
        return False
    return pwd_context.verify(plain_pin, pin_hash)


def get_pin_hash(pin: str) -> str:
    return pwd_context.hash(pin)


def create_session_token(session: StaffSession) -> str:
    """
    セッション情報を署名付きトークンにする。有効期限は session.expires_at。
    """
    to_encode = {
        "sub": session.name,
        "role": session.role.value,
        "office": session.office_selected,
        "scope": session.scope.model_dump(),
        "exp": session.expires_at,
        "iat": datetime.now(timezone.utc),
    }
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_session_token(token: str) -> Optional[dict[str, Any]]:
    """
    トークンを検証してペイロードを返す。署名不正・期限切れの場合は None。
    """
    try:
        return jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except JWTError:
        return None
