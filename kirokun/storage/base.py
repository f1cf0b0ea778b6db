"""
ストレージ抽象

Storage はストア（スプレッドシートファイルに相当）を開き、Store は名前付きの
パーティション（シートに相当）を管理し、Table はパーティション内の行を読み書きする。
行はセル値の配列で、行位置は 0 始まり（見出し行なし）。

公開メソッドは全てタイムアウト付きで実装メソッド(_xxx)を呼び出し、
タイムアウトやバックエンド例外は UpstreamUnavailableError に変換する。
読み取りのみ最大3回まで再試行し、書き込みは再試行しない。
"""
import abc
import asyncio
import logging
from typing import Any, Awaitable, Callable, List, Optional, Sequence, TypeVar

from sqlalchemy.exc import SQLAlchemyError
from tenacity import (
    retry,
    stop_after_attempt,
    wait_exponential,
    retry_if_exception_type,
    before_sleep_log,
)

from kirokun.core.config import settings
from kirokun.core.exceptions import UpstreamUnavailableError

logger = logging.getLogger(__name__)

Row = List[Any]
T = TypeVar("T")


async def _call(func: Callable[..., Awaitable[T]], *args: Any) -> T:
    name = getattr(func, "__qualname__", repr(func))
    try:
        return await asyncio.wait_for(func(*args), timeout=settings.STORAGE_TIMEOUT_SECONDS)
    except asyncio.TimeoutError as e:
        logger.warning(f"Storage call timed out: {name}")
        raise UpstreamUnavailableError() from e
    except (SQLAlchemyError, OSError) as e:
        logger.error(f"Storage call failed: {name}: {type(e).__name__}: {e}")
        raise UpstreamUnavailableError() from e


@retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=0.2, min=0.2, max=2),
    retry=retry_if_exception_type(UpstreamUnavailableError),
    before_sleep=before_sleep_log(logger, logging.WARNING),
    reraise=True
)
async def _read(func: Callable[..., Awaitable[T]], *args: Any) -> T:
    return await _call(func, *args)


async def _write(func: Callable[..., Awaitable[T]], *args: Any) -> T:
    return await _call(func, *args)


class Table(abc.ABC):
    """名前付きパーティション"""

    def __init__(self, name: str):
        self.name = name

    async def row_count(self) -> int:
        return await _read(self._row_count)

    async def read_all(self) -> List[Row]:
        return await _read(self._read_all)

    async def read_range(
        self,
        row_start: int,
        count: int,
        col_start: int = 0,
        col_count: Optional[int] = None
    ) -> List[Row]:
        """
        row_start から count 行を読む。col_start/col_count で列を絞り込める。
        範囲が末尾を超える場合は存在する行だけを返す。
        """
        if count <= 0:
            return []
        return await _read(self._read_range, max(row_start, 0), count, col_start, col_count)

    async def append_rows(self, rows: Sequence[Row]) -> None:
        if not rows:
            return
        await _write(self._append_rows, [list(r) for r in rows])

    async def overwrite_all(self, rows: Sequence[Row]) -> None:
        """全行を消去してから rows を書き込む"""
        await _write(self._overwrite_all, [list(r) for r in rows])

    async def update_row(self, offset: int, row: Row) -> None:
        await _write(self._update_row, offset, list(row))

    async def delete_row(self, offset: int) -> None:
        """行を削除し、後続行を1行ずつ詰める"""
        await _write(self._delete_rows, offset, 1)

    async def delete_rows(self, start: int, count: int) -> None:
        if count <= 0:
            return
        await _write(self._delete_rows, start, count)

    @abc.abstractmethod
    async def _row_count(self) -> int: ...

    @abc.abstractmethod
    async def _read_all(self) -> List[Row]: ...

    @abc.abstractmethod
    async def _read_range(self, row_start: int, count: int, col_start: int, col_count: Optional[int]) -> List[Row]: ...

    @abc.abstractmethod
    async def _append_rows(self, rows: List[Row]) -> None: ...

    @abc.abstractmethod
    async def _overwrite_all(self, rows: List[Row]) -> None: ...

    @abc.abstractmethod
    async def _update_row(self, offset: int, row: Row) -> None: ...

    @abc.abstractmethod
    async def _delete_rows(self, start: int, count: int) -> None: ...


class Store(abc.ABC):
    """1つのストア（事業所ごとの記録ファイル・報告書ファイル、マスタファイル）"""

    def __init__(self, store_id: str):
        self.store_id = store_id

    async def open_partition(self, name: str, create: bool = False) -> Optional[Table]:
        """
        パーティションを開く

        Args:
            name: パーティション名
            create: 存在しない場合に作成するか

        Returns:
            Table。存在せず create=False の場合は None
        """
        if create:
            return await _write(self._open_partition, name, True)
        return await _read(self._open_partition, name, False)

    async def list_partition_names(self) -> List[str]:
        return await _read(self._list_partition_names)

    async def delete_partition(self, name: str) -> None:
        await _write(self._delete_partition, name)

    @abc.abstractmethod
    async def _open_partition(self, name: str, create: bool) -> Optional[Table]: ...

    @abc.abstractmethod
    async def _list_partition_names(self) -> List[str]: ...

    @abc.abstractmethod
    async def _delete_partition(self, name: str) -> None: ...


class Storage(abc.ABC):

    @abc.abstractmethod
    def open_store(self, store_id: str) -> Store: ...
