from typing import Optional

from fastapi import status

from kirokun.messages import ja


class AppError(Exception):
    """Base application error class.

    kind はエラー分類、message は利用者に表示してよい文言。
    """
    kind: str = "AppError"
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message: str = ja.EXC_INTERNAL_ERROR

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class AuthenticationError(AppError):
    """名前またはPINの不一致。どちらが誤っているかは明かさない。"""
    kind = "AuthenticationFailure"
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = ja.AUTH_INCORRECT_CREDENTIALS


class AuthorizationError(AppError):
    """本人確認は済んでいるが、事業所の範囲またはロールが不足している。"""
    kind = "AuthorizationFailure"
    status_code = status.HTTP_403_FORBIDDEN
    default_message = ja.EXC_FORBIDDEN


class StaleReferenceError(AppError):
    """行番号などの位置参照が既に無効になっている。"""
    kind = "StaleReference"
    status_code = status.HTTP_409_CONFLICT
    default_message = ja.EXC_STALE_REFERENCE


class IntegrityViolationError(AppError):
    """アーカイブ移動の件数不一致。ロールバック済みで送出される。"""
    kind = "IntegrityViolation"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = ja.EXC_INTEGRITY_VIOLATION


class UpstreamUnavailableError(AppError):
    """ストレージ呼び出しの失敗またはタイムアウト。"""
    kind = "UpstreamUnavailable"
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_message = ja.EXC_UPSTREAM_UNAVAILABLE


class ValidationFailedError(AppError):
    """必須項目の欠落など。書き込み前に検出される。"""
    kind = "ValidationFailure"
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = ja.EXC_BAD_REQUEST


class OfficeNotFoundError(AppError):
    """When an office is not found."""
    kind = "OfficeNotFound"
    status_code = status.HTTP_404_NOT_FOUND
    default_message = ja.EXC_NOT_FOUND


class IncidentNotFoundError(AppError):
    kind = "IncidentNotFound"
    status_code = status.HTTP_404_NOT_FOUND
    default_message = ja.EXC_NOT_FOUND


# 内部状態を漏らさない汎用メッセージで返すエラー
GENERIC_MESSAGE_ERRORS = (IntegrityViolationError, UpstreamUnavailableError)
