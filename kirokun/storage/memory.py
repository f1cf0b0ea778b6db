"""
プロセス内メモリのストレージ（開発・テスト用）
"""
from typing import Any, Dict, List, Optional, Sequence

from kirokun.core.exceptions import StaleReferenceError
from kirokun.storage.base import Row, Storage, Store, Table


class MemoryTable(Table):

    def __init__(self, name: str, rows: Optional[Sequence[Row]] = None):
        super().__init__(name)
        self._rows: List[Row] = [list(r) for r in rows or []]

    async def _row_count(self) -> int:
        return len(self._rows)

    async def _read_all(self) -> List[Row]:
        return [list(r) for r in self._rows]

    async def _read_range(self, row_start: int, count: int, col_start: int, col_count: Optional[int]) -> List[Row]:
        col_end = col_start + col_count if col_count is not None else None
        return [list(r[col_start:col_end]) for r in self._rows[row_start:row_start + count]]

    async def _append_rows(self, rows: List[Row]) -> None:
        self._rows.extend(rows)

    async def _overwrite_all(self, rows: List[Row]) -> None:
        self._rows = rows

    async def _update_row(self, offset: int, row: Row) -> None:
        if not 0 <= offset < len(self._rows):
            raise StaleReferenceError()
        self._rows[offset] = row

    async def _delete_rows(self, start: int, count: int) -> None:
        if not 0 <= start < len(self._rows):
            raise StaleReferenceError()
        del self._rows[start:start + count]


class MemoryStore(Store):

    def __init__(self, store_id: str):
        super().__init__(store_id)
        self.tables: Dict[str, MemoryTable] = {}

    async def _open_partition(self, name: str, create: bool) -> Optional[Table]:
        table = self.tables.get(name)
        if table is None and create:
            table = MemoryTable(name)
            self.tables[name] = table
        return table

    async def _list_partition_names(self) -> List[str]:
        return list(self.tables)

    async def _delete_partition(self, name: str) -> None:
        self.tables.pop(name, None)


class MemoryStorage(Storage):

    def __init__(self):
        self.stores: Dict[str, MemoryStore] = {}

    def open_store(self, store_id: str) -> MemoryStore:
        store = self.stores.get(store_id)
        if store is None:
            store = MemoryStore(store_id)
            self.stores[store_id] = store
        return store

    def seed(self, store_id: str, partition: str, rows: Sequence[Sequence[Any]]) -> MemoryTable:
        """パーティションを初期データ付きで作成する（既存の内容は置き換える）"""
        table = MemoryTable(partition, [list(r) for r in rows])
        self.open_store(store_id).tables[partition] = table
        return table
