"""
SQLバックエンドのテスト

TEST_DATABASE_URL が設定されている場合のみ実行する。
"""
import os
import uuid

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from kirokun.core.exceptions import StaleReferenceError
from kirokun.db.base import Base
from kirokun.storage.sql import SqlStorage


TEST_DATABASE_URL = os.getenv("TEST_DATABASE_URL")

pytestmark = [
    pytest.mark.asyncio,
    pytest.mark.skipif(not TEST_DATABASE_URL, reason="TEST_DATABASE_URL is not set"),
]


@pytest_asyncio.fixture(scope="function")
async def sql_storage():
    engine = create_async_engine(TEST_DATABASE_URL)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield SqlStorage(async_sessionmaker(engine, expire_on_commit=False))
    await engine.dispose()


@pytest.fixture
def store_id() -> str:
    return f"test-{uuid.uuid4().hex}"


async def test_append_read_and_delete(sql_storage, store_id):
    """正常系: 追記・範囲読み取り・削除後の位置の詰め"""
    store = sql_storage.open_store(store_id)
    table = await store.open_partition("記録", create=True)
    await table.append_rows([["a", 1], ["b", 2], ["c", 3]])

    assert await table.row_count() == 3
    assert await table.read_range(1, 1) == [["b", 2]]
    assert await table.read_range(0, 3, 1, 1) == [[1], [2], [3]]

    await table.delete_row(0)
    assert await table.read_all() == [["b", 2], ["c", 3]]
    await table.update_row(1, ["z", 9])
    assert await table.read_all() == [["b", 2], ["z", 9]]

    await store.delete_partition("記録")


async def test_overwrite_and_partition_listing(sql_storage, store_id):
    """正常系: 一括置き換えとパーティション一覧"""
    store = sql_storage.open_store(store_id)
    live = await store.open_partition("記録", create=True)
    await store.open_partition("記録_Archive_2025", create=True)
    await live.append_rows([["a"], ["b"]])
    await live.overwrite_all([["c"]])

    assert await live.read_all() == [["c"]]
    assert sorted(await store.list_partition_names()) == ["記録", "記録_Archive_2025"]

    await store.delete_partition("記録")
    await store.delete_partition("記録_Archive_2025")
    assert await store.list_partition_names() == []


async def test_update_missing_row_is_stale(sql_storage, store_id):
    """異常系: 存在しない行位置の更新は StaleReferenceError"""
    store = sql_storage.open_store(store_id)
    table = await store.open_partition("記録", create=True)

    with pytest.raises(StaleReferenceError):
        await table.update_row(0, ["x"])

    await store.delete_partition("記録")
