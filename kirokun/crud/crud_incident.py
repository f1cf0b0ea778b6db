"""
ヒヤリハット・事故報告の行データ操作

報告書ストアのパーティション:
- incidents: 報告書（1行16列。差し戻し理由・差し戻し日時は末尾に追加された列）
- incident_trash: [削除日時, 削除者, 報告書16列]
"""
import re
from typing import Optional, Tuple

from kirokun.models.enums import IncidentStatus
from kirokun.schemas.incident import IncidentBase, IncidentReport, TrashedIncident
from kirokun.storage.base import Row, Store, Table
from kirokun.utils.datetime_utils import parse_datetime, to_cell
from kirokun.utils.text import cell_text

INCIDENT_PARTITION = "incidents"
INCIDENT_TRASH_PARTITION = "incident_trash"

# 列位置（0始まり）
COL_ID = 0
COL_CREATED_AT = 1
COL_OCCUR_DATE = 2
COL_RECORDER = 3
COL_USER = 4
COL_TYPE = 5
COL_PLACE = 6
COL_SITUATION = 7
COL_CAUSE = 8
COL_RESPONSE = 9
COL_PREVENTION = 10
COL_STATUS = 11
COL_APPROVER = 12
COL_APPROVED_AT = 13
COL_RETURN_REASON = 14
COL_RETURNED_AT = 15
INCIDENT_COLUMN_COUNT = 16

TRASH_PREFIX_COLUMNS = 2

_WHITESPACE = re.compile(r"\s+")

# 表記ゆれの吸収
_STATUS_ALIASES = {
    "": IncidentStatus.pending,
    "未承認": IncidentStatus.pending,
    "承認済": IncidentStatus.approved,
    "承認済み": IncidentStatus.approved,
    "差戻し": IncidentStatus.returned,
    "差戻": IncidentStatus.returned,
    "差し戻し": IncidentStatus.returned,
}


def normalize_status(value) -> Optional[IncidentStatus]:
    """ステータス欄の値を正規化する。未知の値は None。"""
    return _STATUS_ALIASES.get(_WHITESPACE.sub("", cell_text(value)))


def pad_row(row: Row, width: int = INCIDENT_COLUMN_COUNT) -> Row:
    return list(row[:width]) + [""] * (width - len(row[:width]))


def to_row(incident_id: str, created_at: str, recorder: str, incident_in: IncidentBase) -> Row:
    """
    入力内容から保存用の16列を作る。ステータスは未承認、承認・差し戻し欄は空欄。
    """
    row: Row = [""] * INCIDENT_COLUMN_COUNT
    row[COL_ID] = incident_id
    row[COL_CREATED_AT] = created_at
    row[COL_OCCUR_DATE] = to_cell(incident_in.occurred_at)
    row[COL_RECORDER] = recorder
    row[COL_USER] = incident_in.subject_user
    row[COL_TYPE] = incident_in.type
    row[COL_PLACE] = incident_in.place
    row[COL_SITUATION] = incident_in.situation
    row[COL_CAUSE] = incident_in.cause
    row[COL_RESPONSE] = incident_in.response
    row[COL_PREVENTION] = incident_in.prevention
    row[COL_STATUS] = IncidentStatus.pending.value
    return row


def from_row(row: Row, offset: int) -> IncidentReport:
    row = pad_row(row)
    return IncidentReport(
        id=cell_text(row[COL_ID]),
        row_offset=offset,
        created_at=parse_datetime(row[COL_CREATED_AT]),
        occurred_at=parse_datetime(row[COL_OCCUR_DATE]),
        recorder=cell_text(row[COL_RECORDER]),
        subject_user=cell_text(row[COL_USER]),
        type=cell_text(row[COL_TYPE]),
        place=cell_text(row[COL_PLACE]),
        situation=cell_text(row[COL_SITUATION]),
        cause=cell_text(row[COL_CAUSE]),
        response=cell_text(row[COL_RESPONSE]),
        prevention=cell_text(row[COL_PREVENTION]),
        # 未知のステータスは未承認として扱う（履歴には出さない）
        status=normalize_status(row[COL_STATUS]) or IncidentStatus.pending,
        approver=cell_text(row[COL_APPROVER]),
        approved_at=parse_datetime(row[COL_APPROVED_AT]),
        return_reason=cell_text(row[COL_RETURN_REASON]),
        returned_at=parse_datetime(row[COL_RETURNED_AT]),
    )


def from_trash_row(row: Row, offset: int) -> TrashedIncident:
    padded = pad_row(row, TRASH_PREFIX_COLUMNS + INCIDENT_COLUMN_COUNT)
    return TrashedIncident(
        trash_offset=offset,
        deleted_at=parse_datetime(padded[0]),
        deleted_by=cell_text(padded[1]),
        incident=from_row(padded[TRASH_PREFIX_COLUMNS:], offset),
    )


class CRUDIncident:

    async def get_table(self, store: Store, create: bool = False) -> Optional[Table]:
        return await store.open_partition(INCIDENT_PARTITION, create=create)

    async def get_trash(self, store: Store, create: bool = False) -> Optional[Table]:
        return await store.open_partition(INCIDENT_TRASH_PARTITION, create=create)

    async def find_row(self, table: Table, incident_id: str) -> Optional[Tuple[int, Row]]:
        """
        ID列を走査して報告書の現在の行位置を解決する

        Returns:
            (行位置, 行)。見つからない場合は None
        """
        target = cell_text(incident_id)
        if not target:
            return None
        ids = await table.read_range(0, await table.row_count(), COL_ID, 1)
        for offset in range(len(ids) - 1, -1, -1):
            if ids[offset] and cell_text(ids[offset][0]) == target:
                rows = await table.read_range(offset, 1)
                if rows:
                    return offset, pad_row(rows[0])
        return None


crud_incident = CRUDIncident()
