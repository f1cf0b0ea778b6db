from typing import List

from fastapi import APIRouter, Depends, Query

from kirokun.api.deps import get_storage
from kirokun.core.security import create_session_token
from kirokun.crud.crud_office import crud_office
from kirokun.schemas.session import PinCheckRequest, PinCheckResult, SessionToken, SignInRequest
from kirokun.services.session_auth_service import session_auth_service
from kirokun.storage.base import Storage

router = APIRouter()


@router.get("/offices", response_model=List[str])
async def list_offices(storage: Storage = Depends(get_storage)):
    """サインイン画面の事業所一覧"""
    return await crud_office.list_offices(storage)


@router.get("/staff", response_model=List[str])
async def list_staff(
    office: str = Query(..., min_length=1, description="事業所名"),
    storage: Storage = Depends(get_storage),
):
    """事業所で選択できる職員名の一覧"""
    return await session_auth_service.list_staff_names(storage, office)


@router.post("/signin", response_model=SessionToken)
async def sign_in(
    *,
    storage: Storage = Depends(get_storage),
    signin_in: SignInRequest,
):
    """
    事業所・氏名・PINでサインインし、セッショントークンを発行する

    - 401: 氏名またはPINが一致しない
    - 403: 選択した事業所の権限がない
    """
    session = await session_auth_service.sign_in(storage, signin_in.office, signin_in.name, signin_in.pin)
    return SessionToken(access_token=create_session_token(session), session=session)


@router.post("/pin-check", response_model=PinCheckResult)
async def pin_check(
    *,
    storage: Storage = Depends(get_storage),
    pin_in: PinCheckRequest,
):
    """事業所を選ぶ前のPIN確認。権限のある事業所をまとめて返す。"""
    return await session_auth_service.verify_pin_only(storage, pin_in.name, pin_in.pin)
