from datetime import date, datetime, time

from kirokun.utils.datetime_utils import (
    end_of_day,
    format_date,
    format_display,
    get_timezone,
    parse_datetime,
    start_of_day,
    to_cell,
)


class TestParseDatetime:
    """セル値の日時解析のテスト"""

    def test_iso_string(self):
        """正常系: ISO 8601 文字列を解析できること"""
        parsed = parse_datetime("2026-01-02T03:04:05+09:00")

        assert parsed == datetime(2026, 1, 2, 3, 4, 5, tzinfo=get_timezone())

    def test_legacy_formats(self):
        """正常系: 旧形式 yyyy/MM/dd HH:mm を設定タイムゾーンで解釈すること"""
        assert parse_datetime("2025/12/31 23:59") == datetime(2025, 12, 31, 23, 59, tzinfo=get_timezone())
        assert parse_datetime("2025/12/31") == datetime(2025, 12, 31, tzinfo=get_timezone())

    def test_date_object(self):
        assert parse_datetime(date(2026, 3, 1)) == datetime(2026, 3, 1, tzinfo=get_timezone())

    def test_unparseable_values_return_none(self):
        """異常系: 空欄や解析できない値は None"""
        assert parse_datetime(None) is None
        assert parse_datetime("") is None
        assert parse_datetime("   ") is None
        assert parse_datetime("昨日") is None
        assert parse_datetime("2026/13/40") is None


class TestDayBounds:

    def test_start_and_end_of_day(self):
        """正常系: 日付の範囲はその日の 00:00 から 23:59:59.999999"""
        start = start_of_day(date(2026, 5, 1))
        end = end_of_day(date(2026, 5, 1))

        assert start == datetime(2026, 5, 1, tzinfo=get_timezone())
        assert end.time() == time.max
        assert end.date() == date(2026, 5, 1)


class TestFormatting:

    def test_to_cell_uses_seconds_precision(self):
        value = datetime(2026, 5, 1, 9, 30, 15, 123456, tzinfo=get_timezone())

        assert to_cell(value) == "2026-05-01T09:30:15+09:00"
        assert to_cell(None) == ""

    def test_display_formats(self):
        value = datetime(2026, 5, 1, 9, 30, tzinfo=get_timezone())

        assert format_date(value) == "2026/05/01"
        assert format_display(value) == "2026/05/01 09:30"
        assert format_display(None) == ""
