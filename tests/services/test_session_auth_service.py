from datetime import timedelta

import pytest

from kirokun.core.config import settings
from kirokun.core.exceptions import AuthenticationError, AuthorizationError
from kirokun.crud.crud_audit_log import audit_log
from kirokun.crud.crud_staff import STAFF_MASTER_PARTITION
from kirokun.models.enums import AuditAction, StaffRole
from kirokun.schemas.session import AllOffices, SpecificOffices
from kirokun.services.session_auth_service import (
    ensure_manager,
    ensure_office_access,
    session_auth_service,
)
from tests.utils import FIXED_NOW, PIN_HASH_STAFF, make_session


@pytest.mark.asyncio
class TestVerifyCredentials:
    """PINによる本人確認と事業所スコープのテスト"""

    async def test_all_offices_staff_can_sign_in_anywhere(self, storage):
        """正常系: 事業所欄が空欄の職員はどの事業所でも認証できること"""
        session = await session_auth_service.verify_credentials(storage, "Beta", "Tanaka", "1234", now=FIXED_NOW)

        assert session.name == "Tanaka"
        assert session.role == StaffRole.staff
        assert session.office_selected == "Beta"
        assert isinstance(session.scope, AllOffices)
        assert session.expires_at == FIXED_NOW + timedelta(minutes=settings.SESSION_MINUTES)

    async def test_scoped_staff_outside_scope_is_authorization_failure(self, storage):
        """異常系: 権限範囲外の事業所は AuthorizationError（PINは正しい）"""
        storage.seed(settings.MASTER_STORE_ID, STAFF_MASTER_PARTITION, [
            ["Tanaka", "Beta,Gamma", "staff", PIN_HASH_STAFF],
        ])

        with pytest.raises(AuthorizationError):
            await session_auth_service.verify_credentials(storage, "Delta", "Tanaka", "1234")

        session = await session_auth_service.verify_credentials(storage, "Beta", "Tanaka", "1234")
        assert isinstance(session.scope, SpecificOffices)
        assert session.scope.offices == ["Beta", "Gamma"]

    @pytest.mark.parametrize("name, pin", [
        ("Tanaka", "0000"),
        ("Nobody", "1234"),
        ("Tanaka", ""),
    ])
    async def test_wrong_name_or_pin_is_authentication_failure(self, storage, name, pin):
        """異常系: 氏名またはPINの不一致は AuthenticationError（どちらかは明かさない）"""
        with pytest.raises(AuthenticationError) as exc_info:
            await session_auth_service.verify_credentials(storage, "Alpha", name, pin)

        assert exc_info.value.kind == "AuthenticationFailure"

    async def test_duplicate_rows_first_matching_scope_wins(self, storage):
        """正常系: 同名の行が複数ある場合、PINと事業所が一致する行を使うこと"""
        storage.seed(settings.MASTER_STORE_ID, STAFF_MASTER_PARTITION, [
            ["Ito", "Alpha", "staff", PIN_HASH_STAFF],
            ["Ito", "Beta", "manager", PIN_HASH_STAFF],
        ])

        session = await session_auth_service.verify_credentials(storage, "Beta", "Ito", "1234")

        assert session.role == StaffRole.manager

    async def test_plain_text_pin_column_never_matches(self, storage):
        """異常系: PIN欄がハッシュでない場合は一致しない"""
        storage.seed(settings.MASTER_STORE_ID, STAFF_MASTER_PARTITION, [["Ito", "", "staff", "1234"]])

        with pytest.raises(AuthenticationError):
            await session_auth_service.verify_credentials(storage, "Alpha", "Ito", "1234")


@pytest.mark.asyncio
class TestSignIn:
    """サインインと操作ログのテスト"""

    async def test_sign_in_records_success_event(self, storage):
        await session_auth_service.sign_in(storage, "Alpha", "Sato", "9999")

        events = await audit_log.get_events(storage)
        assert len(events) == 1
        assert events[0].action == AuditAction.signin_success.value
        assert events[0].role == "manager"
        assert events[0].offices_authorized == "Alpha,Beta"

    async def test_sign_in_wrong_pin_records_pin_fail(self, storage):
        """異常系: PIN不一致は PIN_FAIL を1件記録して送出すること"""
        with pytest.raises(AuthenticationError):
            await session_auth_service.sign_in(storage, "Alpha", "Sato", "0000")

        events = await audit_log.get_events(storage)
        assert [e.action for e in events] == [AuditAction.pin_fail.value]
        assert events[0].status == "ERROR"
        assert events[0].detail["error_kind"] == "AuthenticationFailure"

    async def test_sign_in_out_of_scope_records_signin_denied(self, storage):
        with pytest.raises(AuthorizationError):
            await session_auth_service.sign_in(storage, "Gamma", "Sato", "9999")

        events = await audit_log.get_events(storage)
        assert [e.action for e in events] == [AuditAction.signin_denied.value]


@pytest.mark.asyncio
class TestVerifyPinOnly:

    async def test_union_of_scopes(self, storage):
        """正常系: 一致した全行の事業所を合わせて返すこと"""
        storage.seed(settings.MASTER_STORE_ID, STAFF_MASTER_PARTITION, [
            ["Ito", "Alpha", "staff", PIN_HASH_STAFF],
            ["Ito", "Beta,Alpha", "staff", PIN_HASH_STAFF],
        ])

        result = await session_auth_service.verify_pin_only(storage, "Ito", "1234")

        assert result.scope.offices == ["Alpha", "Beta"]

    async def test_all_offices_wins(self, storage):
        result = await session_auth_service.verify_pin_only(storage, "Tanaka", "1234")

        assert isinstance(result.scope, AllOffices)

    async def test_wrong_pin(self, storage):
        with pytest.raises(AuthenticationError):
            await session_auth_service.verify_pin_only(storage, "Tanaka", "9999")


class TestGuards:

    def test_ensure_office_access(self):
        session = make_session("Suzuki", "Beta", offices=["Beta", "Gamma"])

        assert ensure_office_access(session, " Gamma ") == "Gamma"
        with pytest.raises(AuthorizationError):
            ensure_office_access(session, "Alpha")

    def test_ensure_manager(self):
        with pytest.raises(AuthorizationError):
            ensure_manager(make_session("Tanaka", "Alpha"))
        ensure_manager(make_session("Sato", "Alpha", role=StaffRole.manager))
