from typing import Optional

from kirokun.core.config import settings
from kirokun.storage.base import Row, Storage, Store, Table
from kirokun.storage.memory import MemoryStorage

_storage: Optional[Storage] = None


def get_storage() -> Storage:
    """
    設定 STORAGE_BACKEND に応じたストレージを返す（プロセス内で共有）
    """
    global _storage
    if _storage is None:
        if settings.STORAGE_BACKEND == "memory":
            _storage = MemoryStorage()
        else:
            from kirokun.db.session import get_session_factory
            from kirokun.storage.sql import SqlStorage
            _storage = SqlStorage(get_session_factory())
    return _storage
