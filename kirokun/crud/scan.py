from typing import AsyncIterator, Optional, Tuple

from kirokun.storage.base import Row, Table


async def iter_rows_reversed(
    table: Table,
    chunk_size: int,
    col_start: int = 0,
    col_count: Optional[int] = None,
) -> AsyncIterator[Tuple[int, Row]]:
    """
    パーティションを末尾（最新行）から先頭へ向かって chunk_size 行ずつ読み、
    (行位置, 行) を返す。呼び出し側が必要件数に達した時点で打ち切れる。
    """
    current_end = await table.row_count()
    while current_end > 0:
        start = max(0, current_end - chunk_size)
        rows = await table.read_range(start, current_end - start, col_start, col_count)
        for i in range(len(rows) - 1, -1, -1):
            yield start + i, rows[i]
        current_end = start
