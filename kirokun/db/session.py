from typing import Optional

import dotenv
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine

from kirokun.core.config import settings

dotenv.load_dotenv()

_async_engine: Optional[AsyncEngine] = None
_session_factory: Optional[async_sessionmaker] = None


def get_engine() -> AsyncEngine:
    """
    非同期エンジンを返す。初回呼び出し時に DATABASE_URL から生成する。
    STORAGE_BACKEND=memory の場合はデータベースに接続しないため、import 時には生成しない。
    """
    global _async_engine
    if _async_engine is None:
        if not settings.DATABASE_URL:
            raise ValueError("No DATABASE_URL environment variable set for async connection")
        _async_engine = create_async_engine(
            settings.DATABASE_URL,
            pool_size=10,
            max_overflow=20,
            pool_pre_ping=True,     # 接続の有効性を事前確認
            pool_recycle=3600,      # 1時間後に接続を再利用
            echo=False,
        )
    return _async_engine


def get_session_factory() -> async_sessionmaker:
    global _session_factory
    if _session_factory is None:
        _session_factory = async_sessionmaker(
            autocommit=False, autoflush=False, expire_on_commit=False, bind=get_engine()
        )
    return _session_factory
