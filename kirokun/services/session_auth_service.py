"""
PINによる本人確認と事業所スコープの判定
"""
import logging
from datetime import datetime, timedelta
from typing import List, Optional

from kirokun.core.config import settings
from kirokun.core.exceptions import AuthenticationError, AuthorizationError
from kirokun.core.security import verify_pin
from kirokun.crud.crud_staff import crud_staff
from kirokun.messages import ja
from kirokun.models.enums import AuditAction, AuditTargetType
from kirokun.schemas.session import AllOffices, PinCheckResult, SpecificOffices, StaffSession
from kirokun.services.audit_trail import audit_operation
from kirokun.storage.base import Storage
from kirokun.utils.datetime_utils import now_local
from kirokun.utils.text import cell_text

logger = logging.getLogger(__name__)


def ensure_office_access(session: StaffSession, office: str) -> str:
    """
    セッションの権限範囲に事業所が含まれることを確認し、正規化した事業所名を返す

    Raises:
        AuthorizationError: 権限範囲外の事業所
    """
    target = cell_text(office)
    if not session.scope.allows(target):
        raise AuthorizationError(ja.AUTH_OFFICE_NOT_AUTHORIZED.format(office=target))
    return target


def ensure_manager(session: StaffSession, message: str = ja.PERM_MANAGER_REQUIRED) -> None:
    if not session.is_manager:
        raise AuthorizationError(message)


class SessionAuthService:

    async def verify_credentials(
        self,
        storage: Storage,
        office: str,
        name: str,
        pin: str,
        now: Optional[datetime] = None,
    ) -> StaffSession:
        """
        職員マスタを走査し、氏名とPINが一致し、かつ選択事業所が権限範囲内の行を探す

        操作ログは記録しない（承認・差し戻し時の再認証でも使用するため）。

        Raises:
            AuthenticationError: 氏名またはPINが一致しない
            AuthorizationError: 本人確認はできたが選択事業所の権限がない
        """
        target_name = cell_text(name)
        target_office = cell_text(office)
        identified = False
        for entry in await crud_staff.get_by_name(storage, target_name):
            if not verify_pin(pin, entry.pin_hash):
                continue
            identified = True
            if entry.scope.allows(target_office):
                issued_at = now or now_local()
                return StaffSession(
                    name=entry.name,
                    role=entry.role,
                    office_selected=target_office,
                    scope=entry.scope,
                    expires_at=issued_at + timedelta(minutes=settings.SESSION_MINUTES),
                )

        if identified:
            raise AuthorizationError(ja.AUTH_OFFICE_NOT_AUTHORIZED.format(office=target_office))
        raise AuthenticationError()

    async def sign_in(self, storage: Storage, office: str, name: str, pin: str) -> StaffSession:
        """サインイン。結果を SIGNIN_SUCCESS / SIGNIN_DENIED / PIN_FAIL として記録する。"""
        async with audit_operation(
            storage,
            AuditAction.signin_success,
            executor=cell_text(name),
            office=cell_text(office),
            target_type=AuditTargetType.session.value,
        ) as op:
            op.error_actions = {
                AuthenticationError.kind: AuditAction.pin_fail,
                AuthorizationError.kind: AuditAction.signin_denied,
            }
            session = await self.verify_credentials(storage, office, name, pin)
            op.role = session.role.value
            op.offices_authorized = session.scope.label()
            op.message = ja.AUTH_SIGNIN_SUCCESS
            logger.info(f"Sign-in succeeded: name={session.name}, office={session.office_selected}")
            return session

    async def verify_pin_only(self, storage: Storage, name: str, pin: str) -> PinCheckResult:
        """
        事業所を選択する前のPIN確認。一致した全行の事業所を合わせて返す。

        Raises:
            AuthenticationError: 氏名またはPINが一致しない
        """
        matched = [
            entry for entry in await crud_staff.get_by_name(storage, name)
            if verify_pin(pin, entry.pin_hash)
        ]
        if not matched:
            raise AuthenticationError()

        if any(isinstance(entry.scope, AllOffices) for entry in matched):
            scope = AllOffices()
        else:
            offices: List[str] = []
            for entry in matched:
                offices.extend(o for o in entry.scope.offices if o not in offices)
            scope = SpecificOffices(offices=offices)
        return PinCheckResult(name=matched[0].name, role=matched[0].role, scope=scope)

    async def list_staff_names(self, storage: Storage, office: str) -> List[str]:
        """事業所で記録者として選択できる職員名"""
        return await crud_staff.list_names_for_office(storage, cell_text(office))


session_auth_service = SessionAuthService()
