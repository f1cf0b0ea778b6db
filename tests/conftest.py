# tests/conftest.py (pytest-asyncio構成)
import os
import sys
import logging
from datetime import datetime
from typing import AsyncGenerator

# テスト環境であることを示すフラグを設定（スケジューラーなどを無効化するため）
os.environ.setdefault("TESTING", "1")
os.environ.setdefault("SECRET_KEY", "test-secret-key-for-kirokun")
os.environ.setdefault("STORAGE_BACKEND", "memory")

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

# ロガーの設定 - テスト実行時のログ出力を抑制
logger = logging.getLogger(__name__)
logging.basicConfig(level=logging.WARNING)  # WARNING以上のみ表示

# --- パスの設定 ---
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from kirokun.models.enums import StaffRole
from kirokun.schemas.session import StaffSession
from kirokun.storage.memory import MemoryStorage
from tests.utils import FIXED_NOW, make_session, seed_master


@pytest.fixture(scope="function")
def storage() -> MemoryStorage:
    """マスタデータ投入済みのインメモリストレージ"""
    memory = MemoryStorage()
    seed_master(memory)
    return memory


@pytest.fixture
def now() -> datetime:
    return FIXED_NOW


@pytest.fixture
def tanaka_alpha() -> StaffSession:
    return make_session("Tanaka", "Alpha")


@pytest.fixture
def tanaka_beta() -> StaffSession:
    return make_session("Tanaka", "Beta")


@pytest.fixture
def suzuki_beta() -> StaffSession:
    return make_session("Suzuki", "Beta", offices=["Beta", "Gamma"])


@pytest.fixture
def sato_alpha() -> StaffSession:
    return make_session("Sato", "Alpha", role=StaffRole.manager, offices=["Alpha", "Beta"])


@pytest.fixture
def sato_beta() -> StaffSession:
    return make_session("Sato", "Beta", role=StaffRole.manager, offices=["Alpha", "Beta"])


@pytest_asyncio.fixture(scope="function")
async def async_client(storage: MemoryStorage) -> AsyncGenerator[AsyncClient, None]:
    """シード済みストレージを注入したAPIクライアント"""
    from kirokun.main import app
    from kirokun.api.deps import get_storage

    app.dependency_overrides[get_storage] = lambda: storage
    async with AsyncClient(transport=ASGITransport(app=app), base_url="https://test") as client:
        yield client
    app.dependency_overrides.clear()
