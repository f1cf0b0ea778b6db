from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Response, status

from kirokun.api.deps import get_current_session, get_storage
from kirokun.schemas.incident import (
    ApproveRequest,
    CsvDeliveryResult,
    IncidentCreate,
    IncidentHistoryFilters,
    IncidentHistoryPage,
    IncidentReport,
    IncidentUpdate,
    PendingIncidentPage,
    ReturnRequest,
    TrashedIncident,
)
from kirokun.schemas.session import StaffSession
from kirokun.services.incident_service import incident_service
from kirokun.services.report_service import report_service
from kirokun.storage.base import Storage

router = APIRouter()


def get_history_filters(
    subject_user: Optional[str] = Query(None, description="対象利用者"),
    recorder: Optional[str] = Query(None, description="記録者"),
    type: Optional[str] = Query(None, description="種別（完全一致）"),
    start_date: Optional[date] = Query(None, description="発生日の開始"),
    end_date: Optional[date] = Query(None, description="発生日の終了（当日を含む）"),
) -> IncidentHistoryFilters:
    return IncidentHistoryFilters(
        subject_user=subject_user,
        recorder=recorder,
        type=type,
        start_date=start_date,
        end_date=end_date,
    )


@router.post("", response_model=IncidentReport, status_code=status.HTTP_201_CREATED)
async def create_incident(
    *,
    storage: Storage = Depends(get_storage),
    session: StaffSession = Depends(get_current_session),
    incident_in: IncidentCreate,
):
    """事故・ヒヤリハット報告書を作成する（未承認で登録）"""
    return await incident_service.create_incident(storage, session, session.office_selected, incident_in)


@router.get("/pending", response_model=PendingIncidentPage)
async def list_pending(
    storage: Storage = Depends(get_storage),
    session: StaffSession = Depends(get_current_session),
    limit: int = Query(50, ge=1),
    offset: int = Query(0, ge=0),
):
    """
    対応待ちの報告書

    - manager: 差戻しの報告書
    - staff: 自分が記録した未承認・差戻しの報告書
    """
    return await incident_service.list_pending(
        storage, session, session.office_selected, limit=limit, offset=offset
    )


@router.get("/approval-queue", response_model=List[IncidentReport])
async def list_approval_queue(
    storage: Storage = Depends(get_storage),
    session: StaffSession = Depends(get_current_session),
):
    """承認待ちの報告書（manager のみ）"""
    return await incident_service.list_approval_queue(storage, session, session.office_selected)


@router.get("/history", response_model=IncidentHistoryPage)
async def list_history(
    storage: Storage = Depends(get_storage),
    session: StaffSession = Depends(get_current_session),
    filters: IncidentHistoryFilters = Depends(get_history_filters),
    limit: int = Query(50, ge=1),
    continuation_token: Optional[str] = Query(None),
):
    """承認済みの報告書を新しい順に取得する"""
    return await incident_service.list_history(
        storage, session, session.office_selected,
        filters=filters, limit=limit, continuation_token=continuation_token,
    )


@router.get("/history/csv")
async def export_history_csv(
    storage: Storage = Depends(get_storage),
    session: StaffSession = Depends(get_current_session),
    filters: IncidentHistoryFilters = Depends(get_history_filters),
):
    """承認済みの報告書をCSVでダウンロードする"""
    content = await report_service.export_incident_csv(storage, session, session.office_selected, filters)
    return Response(
        content=content,
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": 'attachment; filename="incident_history.csv"'},
    )


@router.post("/history/csv/deliver", response_model=CsvDeliveryResult)
async def deliver_history_csv(
    storage: Storage = Depends(get_storage),
    session: StaffSession = Depends(get_current_session),
    filters: IncidentHistoryFilters = Depends(get_history_filters),
):
    """承認済みの報告書のCSVを外部ストレージに保存する"""
    return await report_service.deliver_incident_csv(storage, session, session.office_selected, filters)


@router.get("/trash", response_model=List[TrashedIncident])
async def list_trash(
    storage: Storage = Depends(get_storage),
    session: StaffSession = Depends(get_current_session),
):
    return await incident_service.list_trash(storage, session, session.office_selected)


@router.post("/trash/{trash_offset}/restore", response_model=IncidentReport)
async def restore_incident(
    trash_offset: int,
    storage: Storage = Depends(get_storage),
    session: StaffSession = Depends(get_current_session),
):
    return await incident_service.restore_incident(storage, session, session.office_selected, trash_offset)


@router.get("/{incident_id}", response_model=IncidentReport)
async def get_incident(
    incident_id: str,
    storage: Storage = Depends(get_storage),
    session: StaffSession = Depends(get_current_session),
):
    return await incident_service.get_incident(storage, session, session.office_selected, incident_id)


@router.put("/{incident_id}", response_model=IncidentReport)
async def update_incident(
    *,
    incident_id: str,
    storage: Storage = Depends(get_storage),
    session: StaffSession = Depends(get_current_session),
    incident_in: IncidentUpdate,
):
    """報告書を編集する。編集後は未承認に戻る。"""
    return await incident_service.update_incident(
        storage, session, session.office_selected, incident_id, incident_in
    )


@router.delete("/{incident_id}", response_model=TrashedIncident)
async def delete_incident(
    incident_id: str,
    storage: Storage = Depends(get_storage),
    session: StaffSession = Depends(get_current_session),
):
    return await incident_service.delete_incident(storage, session, session.office_selected, incident_id)


@router.post("/{incident_id}/approve", response_model=IncidentReport)
async def approve_incident(
    *,
    incident_id: str,
    storage: Storage = Depends(get_storage),
    session: StaffSession = Depends(get_current_session),
    approve_in: ApproveRequest,
):
    """承認者のPINを再確認して承認する"""
    return await incident_service.approve_incident(
        storage, session, session.office_selected, incident_id, approve_in.pin
    )


@router.post("/{incident_id}/return", response_model=IncidentReport)
async def return_incident(
    *,
    incident_id: str,
    storage: Storage = Depends(get_storage),
    session: StaffSession = Depends(get_current_session),
    return_in: ReturnRequest,
):
    """承認者のPINを再確認して差し戻す（理由は必須）"""
    return await incident_service.return_incident(
        storage, session, session.office_selected, incident_id, return_in.pin, return_in.reason
    )
