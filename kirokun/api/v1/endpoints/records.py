from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status

from kirokun.api.deps import get_current_session, get_storage
from kirokun.crud.crud_office import crud_office
from kirokun.schemas.record import (
    RecordPage,
    RecordSaveResult,
    SupportRecord,
    SupportRecordCreate,
    SupportRecordUpdate,
    TrashedRecord,
)
from kirokun.schemas.session import StaffSession
from kirokun.services.record_service import record_service
from kirokun.services.session_auth_service import ensure_office_access
from kirokun.storage.base import Storage

router = APIRouter()


@router.get("", response_model=RecordPage)
async def get_records(
    *,
    storage: Storage = Depends(get_storage),
    session: StaffSession = Depends(get_current_session),
    user: Optional[str] = Query(None, description="利用者名（完全一致）"),
    start_date: Optional[date] = Query(None, description="開始日"),
    end_date: Optional[date] = Query(None, description="終了日（当日を含む）"),
    limit: Optional[int] = Query(None, ge=1, description="取得件数"),
    continuation_token: Optional[str] = Query(None, description="前ページの継続トークン"),
    include_archives: Optional[bool] = Query(None, description="アーカイブを含めるか（省略時は開始日から判断）"),
):
    """支援記録を新しい順に取得する"""
    return await record_service.get_records(
        storage,
        session,
        session.office_selected,
        user=user,
        start_date=start_date,
        end_date=end_date,
        limit=limit,
        continuation_token=continuation_token,
        include_archives=include_archives,
    )


@router.get("/users", response_model=List[str])
async def list_users(
    storage: Storage = Depends(get_storage),
    session: StaffSession = Depends(get_current_session),
):
    """記録対象として選択できる利用者名の一覧"""
    office = ensure_office_access(session, session.office_selected)
    return await crud_office.list_users(storage, office)


@router.post("", response_model=RecordSaveResult, status_code=status.HTTP_201_CREATED)
async def add_records(
    *,
    storage: Storage = Depends(get_storage),
    session: StaffSession = Depends(get_current_session),
    record_in: SupportRecordCreate,
):
    """選択した利用者それぞれに記録を追加する"""
    return await record_service.add_records(storage, session, session.office_selected, record_in)


@router.get("/trash", response_model=List[TrashedRecord])
async def list_trash(
    storage: Storage = Depends(get_storage),
    session: StaffSession = Depends(get_current_session),
):
    return await record_service.list_trash(storage, session, session.office_selected)


@router.post("/trash/{trash_offset}/restore", response_model=SupportRecord)
async def restore_record(
    trash_offset: int,
    storage: Storage = Depends(get_storage),
    session: StaffSession = Depends(get_current_session),
):
    return await record_service.restore_record(storage, session, session.office_selected, trash_offset)


@router.put("/{row_offset}", response_model=SupportRecord)
async def edit_record(
    *,
    row_offset: int,
    storage: Storage = Depends(get_storage),
    session: StaffSession = Depends(get_current_session),
    record_in: SupportRecordUpdate,
):
    """
    現行パーティションの記録を行位置で更新する

    行位置が無効になっている場合は 409 を返すので、一覧を取得し直すこと。
    """
    return await record_service.edit_record(storage, session, session.office_selected, row_offset, record_in)


@router.delete("/{row_offset}", response_model=TrashedRecord)
async def delete_record(
    row_offset: int,
    storage: Storage = Depends(get_storage),
    session: StaffSession = Depends(get_current_session),
):
    return await record_service.delete_record(storage, session, session.office_selected, row_offset)
