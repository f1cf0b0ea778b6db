"""
日時の解析・整形ユーティリティ

行データの日時セルは ISO 8601 文字列で保存する。
旧データの "yyyy/MM/dd HH:mm" 形式も読み取れるようにしている。
"""
from datetime import date, datetime, time
from typing import Any, Optional
from zoneinfo import ZoneInfo

from kirokun.core.config import settings

_LEGACY_FORMATS = (
    "%Y/%m/%d %H:%M:%S",
    "%Y/%m/%d %H:%M",
    "%Y/%m/%d",
)


def get_timezone() -> ZoneInfo:
    return ZoneInfo(settings.TIMEZONE)


def now_local() -> datetime:
    return datetime.now(get_timezone())


def parse_datetime(value: Any) -> Optional[datetime]:
    """
    セルの値をタイムゾーン付き datetime に変換する

    Args:
        value: datetime / date / 文字列

    Returns:
        変換結果。空欄や解析できない値の場合は None
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime.combine(value, time.min)
    else:
        text = str(value).strip()
        if not text:
            return None
        parsed = None
        try:
            parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
        except ValueError:
            for fmt in _LEGACY_FORMATS:
                try:
                    parsed = datetime.strptime(text, fmt)
                    break
                except ValueError:
                    continue
        if parsed is None:
            return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=get_timezone())
    return parsed


def start_of_day(value: date) -> datetime:
    """日付の 00:00:00（設定タイムゾーン）"""
    if isinstance(value, datetime):
        value = value.astimezone(get_timezone()).date() if value.tzinfo else value.date()
    return datetime.combine(value, time.min, tzinfo=get_timezone())


def end_of_day(value: date) -> datetime:
    """日付の 23:59:59.999999（設定タイムゾーン）"""
    if isinstance(value, datetime):
        value = value.astimezone(get_timezone()).date() if value.tzinfo else value.date()
    return datetime.combine(value, time.max, tzinfo=get_timezone())


def to_cell(value: Optional[datetime]) -> str:
    """datetime をセル保存用の ISO 文字列にする"""
    if value is None:
        return ""
    if value.tzinfo is None:
        value = value.replace(tzinfo=get_timezone())
    return value.astimezone(get_timezone()).isoformat(timespec="seconds")


def format_date(value: datetime) -> str:
    """検索インデックス用の日付表記 (yyyy/MM/dd)"""
    return value.astimezone(get_timezone()).strftime("%Y/%m/%d")


def format_display(value: Optional[datetime]) -> str:
    """画面・CSV表示用の日時表記 (yyyy/MM/dd HH:mm)"""
    if value is None:
        return ""
    return value.astimezone(get_timezone()).strftime("%Y/%m/%d %H:%M")
