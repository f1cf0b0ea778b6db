"""
SQLAlchemy（非同期）によるストレージ実装

partitions / partition_rows の2テーブルにパーティションと行を保存する。
"""
import logging
from typing import List, Optional

from sqlalchemy import select, func, delete, update, insert
from sqlalchemy.ext.asyncio import async_sessionmaker

from kirokun.core.exceptions import StaleReferenceError
from kirokun.models.partition import Partition, PartitionRow
from kirokun.storage.base import Row, Storage, Store, Table

logger = logging.getLogger(__name__)

# 1回の INSERT で送る最大行数
INSERT_BATCH_SIZE = 1000


class SqlTable(Table):

    def __init__(self, name: str, partition_id: int, session_factory: async_sessionmaker):
        super().__init__(name)
        self.partition_id = partition_id
        self._session_factory = session_factory

    async def _row_count(self) -> int:
        async with self._session_factory() as db:
            stmt = select(func.count(PartitionRow.id)).where(
                PartitionRow.partition_id == self.partition_id
            )
            return (await db.execute(stmt)).scalar_one()

    async def _read_all(self) -> List[Row]:
        async with self._session_factory() as db:
            stmt = (
                select(PartitionRow.cells)
                .where(PartitionRow.partition_id == self.partition_id)
                .order_by(PartitionRow.position)
            )
            return [list(cells) for cells in (await db.execute(stmt)).scalars().all()]

    async def _read_range(self, row_start: int, count: int, col_start: int, col_count: Optional[int]) -> List[Row]:
        async with self._session_factory() as db:
            stmt = (
                select(PartitionRow.cells)
                .where(
                    PartitionRow.partition_id == self.partition_id,
                    PartitionRow.position >= row_start,
                    PartitionRow.position < row_start + count,
                )
                .order_by(PartitionRow.position)
            )
            rows = (await db.execute(stmt)).scalars().all()
        col_end = col_start + col_count if col_count is not None else None
        return [list(cells[col_start:col_end]) for cells in rows]

    async def _insert(self, db, rows: List[Row], first_position: int) -> None:
        for i in range(0, len(rows), INSERT_BATCH_SIZE):
            batch = rows[i:i + INSERT_BATCH_SIZE]
            await db.execute(
                insert(PartitionRow),
                [
                    {"partition_id": self.partition_id, "position": first_position + i + j, "cells": cells}
                    for j, cells in enumerate(batch)
                ]
            )

    async def _append_rows(self, rows: List[Row]) -> None:
        async with self._session_factory() as db:
            async with db.begin():
                stmt = select(func.coalesce(func.max(PartitionRow.position), -1)).where(
                    PartitionRow.partition_id == self.partition_id
                )
                last_position = (await db.execute(stmt)).scalar_one()
                await self._insert(db, rows, last_position + 1)

    async def _overwrite_all(self, rows: List[Row]) -> None:
        async with self._session_factory() as db:
            async with db.begin():
                await db.execute(
                    delete(PartitionRow).where(PartitionRow.partition_id == self.partition_id)
                )
                await self._insert(db, rows, 0)

    async def _update_row(self, offset: int, row: Row) -> None:
        async with self._session_factory() as db:
            async with db.begin():
                result = await db.execute(
                    update(PartitionRow)
                    .where(
                        PartitionRow.partition_id == self.partition_id,
                        PartitionRow.position == offset,
                    )
                    .values(cells=row)
                )
                if result.rowcount == 0:
                    raise StaleReferenceError()

    async def _delete_rows(self, start: int, count: int) -> None:
        async with self._session_factory() as db:
            async with db.begin():
                result = await db.execute(
                    delete(PartitionRow).where(
                        PartitionRow.partition_id == self.partition_id,
                        PartitionRow.position >= start,
                        PartitionRow.position < start + count,
                    )
                )
                if result.rowcount == 0:
                    raise StaleReferenceError()
                # 後続行を詰める
                await db.execute(
                    update(PartitionRow)
                    .where(
                        PartitionRow.partition_id == self.partition_id,
                        PartitionRow.position >= start + count,
                    )
                    .values(position=PartitionRow.position - result.rowcount)
                )


class SqlStore(Store):

    def __init__(self, store_id: str, session_factory: async_sessionmaker):
        super().__init__(store_id)
        self._session_factory = session_factory

    async def _open_partition(self, name: str, create: bool) -> Optional[Table]:
        async with self._session_factory() as db:
            async with db.begin():
                stmt = select(Partition.id).where(
                    Partition.store_id == self.store_id,
                    Partition.name == name,
                )
                partition_id = (await db.execute(stmt)).scalar_one_or_none()
                if partition_id is None:
                    if not create:
                        return None
                    partition = Partition(store_id=self.store_id, name=name)
                    db.add(partition)
                    await db.flush()
                    partition_id = partition.id
                    logger.info(f"Created partition {self.store_id}/{name}")
        return SqlTable(name, partition_id, self._session_factory)

    async def _list_partition_names(self) -> List[str]:
        async with self._session_factory() as db:
            stmt = (
                select(Partition.name)
                .where(Partition.store_id == self.store_id)
                .order_by(Partition.id)
            )
            return list((await db.execute(stmt)).scalars().all())

    async def _delete_partition(self, name: str) -> None:
        async with self._session_factory() as db:
            async with db.begin():
                partition_ids = select(Partition.id).where(
                    Partition.store_id == self.store_id,
                    Partition.name == name,
                ).scalar_subquery()
                await db.execute(
                    delete(PartitionRow).where(PartitionRow.partition_id.in_(partition_ids))
                )
                await db.execute(
                    delete(Partition).where(
                        Partition.store_id == self.store_id,
                        Partition.name == name,
                    )
                )
                logger.info(f"Deleted partition {self.store_id}/{name}")


class SqlStorage(Storage):

    def __init__(self, session_factory: async_sessionmaker):
        self._session_factory = session_factory

    def open_store(self, store_id: str) -> SqlStore:
        return SqlStore(store_id, self._session_factory)
