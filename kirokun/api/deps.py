import logging
from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from pydantic import ValidationError

from kirokun.core.config import settings
from kirokun.core.security import decode_session_token
from kirokun.messages import ja
from kirokun.schemas.session import StaffSession
from kirokun.storage import get_storage as _get_storage
from kirokun.storage.base import Storage

logger = logging.getLogger(__name__)

reusable_oauth2 = OAuth2PasswordBearer(tokenUrl=f"{settings.API_V1_STR}/auth/signin", auto_error=False)


def get_storage() -> Storage:
    """
    ストレージを提供する依存性注入関数。
    テストでは app.dependency_overrides で差し替える。
    """
    return _get_storage()


async def get_current_session(token: Optional[str] = Depends(reusable_oauth2)) -> StaffSession:
    """
    Authorizationヘッダーのセッショントークンを検証し、StaffSession を返す依存性注入関数。
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=ja.PERM_CREDENTIALS_INVALID,
        headers={"WWW-Authenticate": "Bearer"},
    )
    if not token:
        raise credentials_exception

    payload = decode_session_token(token)
    if payload is None:
        logger.warning("Session token is invalid or expired")
        raise credentials_exception

    try:
        return StaffSession(
            name=payload["sub"],
            role=payload["role"],
            office_selected=payload["office"],
            scope=payload["scope"],
            expires_at=payload["exp"],
        )
    except (KeyError, ValidationError):
        logger.warning("Session token payload is malformed")
        raise credentials_exception


async def require_manager(session: StaffSession = Depends(get_current_session)) -> StaffSession:
    """manager ロールを要求する"""
    if not session.is_manager:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=ja.PERM_MANAGER_REQUIRED,
        )
    return session
