"""
支援記録の行データ操作

記録ストアのパーティション:
- 記録: 現行パーティション（編集可能）
- 記録_Archive_YYYY: 年別アーカイブ（追記のみ）
- ゴミ箱: [削除日時, 削除者, 記録15列]

1行15列の並びは保存形式として固定（列追加は末尾のみ）。
"""
import re
from datetime import datetime
from typing import List, Optional, Tuple

from kirokun.models.enums import RecordItem
from kirokun.schemas.record import RecordDetails, SupportRecord, SupportRecordBase, TrashedRecord
from kirokun.storage.base import Row, Store, Table
from kirokun.utils.datetime_utils import format_date, parse_datetime, to_cell
from kirokun.utils.text import cell_text

LIVE_PARTITION = "記録"
TRASH_PARTITION = "ゴミ箱"
ARCHIVE_PREFIX = "記録_Archive_"
_ARCHIVE_NAME = re.compile(r"^記録_Archive_(\d{4})$")

# 列位置（0始まり）
COL_TIMESTAMP = 0
COL_DATE = 1
COL_USER = 2
COL_RECORDER = 3
COL_ITEM = 4
COL_DETAIL_1 = 5
COL_DETAIL_2 = 6
COL_V_TEMP = 7
COL_V_BP_HIGH = 8
COL_V_BP_LOW = 9
COL_V_PULSE = 10
COL_V_SPO2 = 11
COL_V_WEIGHT = 12
COL_CONTENT = 13
COL_SEARCH_INDEX = 14
RECORD_COLUMN_COUNT = 15

# ゴミ箱行の先頭に付く列数（削除日時, 削除者）
TRASH_PREFIX_COLUMNS = 2


def archive_partition_name(year: int) -> str:
    return f"{ARCHIVE_PREFIX}{year:04d}"


def parse_archive_year(name: str) -> Optional[int]:
    match = _ARCHIVE_NAME.match(name)
    return int(match.group(1)) if match else None


def build_search_index(occurred_at: Optional[datetime], user: str, item: str, content: str, detail1: str) -> str:
    """検索インデックス（日付 氏名 項目 内容 詳細1）"""
    date_text = format_date(occurred_at) if occurred_at else ""
    return " ".join([date_text, user or "", item or "", content or "", detail1 or ""])


def build_detail_display(item: str, details: RecordDetails) -> str:
    """一覧表示用の詳細文字列"""
    if item == RecordItem.meal.value:
        return f"摂取:{details.detail1}% / 水分:{details.detail2}ml"
    if item == RecordItem.vital.value:
        parts = []
        if details.temp:
            parts.append(f"熱:{details.temp}")
        if details.bp_high:
            parts.append(f"BP:{details.bp_high}/{details.bp_low}")
        if details.pulse:
            parts.append(f"脈:{details.pulse}")
        if details.spo2:
            parts.append(f"SpO2:{details.spo2}")
        if details.weight:
            parts.append(f"重:{details.weight}")
        return ", ".join(parts)
    return details.detail1


def pad_row(row: Row, width: int = RECORD_COLUMN_COUNT) -> Row:
    return list(row[:width]) + [""] * (width - len(row[:width]))


def to_row(record: SupportRecordBase, user: str, created_at: datetime) -> Row:
    """入力内容から保存用の15列を作る"""
    details = record.details
    item = record.item.value
    row: Row = [""] * RECORD_COLUMN_COUNT
    row[COL_TIMESTAMP] = to_cell(created_at)
    row[COL_DATE] = to_cell(record.occurred_at)
    row[COL_USER] = user
    row[COL_RECORDER] = record.recorder
    row[COL_ITEM] = item
    row[COL_DETAIL_1] = details.detail1
    row[COL_DETAIL_2] = details.detail2
    row[COL_V_TEMP] = details.temp
    row[COL_V_BP_HIGH] = details.bp_high
    row[COL_V_BP_LOW] = details.bp_low
    row[COL_V_PULSE] = details.pulse
    row[COL_V_SPO2] = details.spo2
    row[COL_V_WEIGHT] = details.weight
    row[COL_CONTENT] = record.content
    row[COL_SEARCH_INDEX] = build_search_index(
        parse_datetime(record.occurred_at), user, item, record.content, details.detail1
    )
    return row


def reindex_row(row: Row) -> Row:
    """既存行の検索インデックスを再計算する"""
    row = pad_row(row)
    row[COL_SEARCH_INDEX] = build_search_index(
        parse_datetime(row[COL_DATE]),
        cell_text(row[COL_USER]),
        cell_text(row[COL_ITEM]),
        cell_text(row[COL_CONTENT]),
        cell_text(row[COL_DETAIL_1]),
    )
    return row


def from_row(row: Row, partition: str, offset: int) -> SupportRecord:
    row = pad_row(row)
    details = RecordDetails(
        detail1=cell_text(row[COL_DETAIL_1]),
        detail2=cell_text(row[COL_DETAIL_2]),
        temp=cell_text(row[COL_V_TEMP]),
        bp_high=cell_text(row[COL_V_BP_HIGH]),
        bp_low=cell_text(row[COL_V_BP_LOW]),
        pulse=cell_text(row[COL_V_PULSE]),
        spo2=cell_text(row[COL_V_SPO2]),
        weight=cell_text(row[COL_V_WEIGHT]),
    )
    item = cell_text(row[COL_ITEM])
    return SupportRecord(
        partition=partition,
        row_offset=offset,
        created_at=parse_datetime(row[COL_TIMESTAMP]),
        occurred_at=parse_datetime(row[COL_DATE]),
        user=cell_text(row[COL_USER]),
        recorder=cell_text(row[COL_RECORDER]),
        item=item,
        content=cell_text(row[COL_CONTENT]),
        details=details,
        detail_display=build_detail_display(item, details),
        search_index=cell_text(row[COL_SEARCH_INDEX]),
    )


def from_trash_row(row: Row, offset: int) -> TrashedRecord:
    padded = pad_row(row, TRASH_PREFIX_COLUMNS + RECORD_COLUMN_COUNT)
    return TrashedRecord(
        trash_offset=offset,
        deleted_at=parse_datetime(padded[0]),
        deleted_by=cell_text(padded[1]),
        record=from_row(padded[TRASH_PREFIX_COLUMNS:], TRASH_PARTITION, offset),
    )


class CRUDSupportRecord:

    async def get_live(self, store: Store, create: bool = False) -> Optional[Table]:
        return await store.open_partition(LIVE_PARTITION, create=create)

    async def get_trash(self, store: Store, create: bool = False) -> Optional[Table]:
        return await store.open_partition(TRASH_PARTITION, create=create)

    async def list_archives(self, store: Store) -> List[Tuple[int, str]]:
        """アーカイブパーティションを (年, 名前) の年降順で返す"""
        archives = []
        for name in await store.list_partition_names():
            year = parse_archive_year(name)
            if year is not None:
                archives.append((year, name))
        archives.sort(reverse=True)
        return archives


crud_support_record = CRUDSupportRecord()
