"""全局 pytest 配置 -- 临时 SQLite 存储 + Gateway/Controller fixture"""

import random
from collections.abc import AsyncGenerator
from pathlib import Path
from typing import Any

import pytest
import pytest_asyncio
from tasktree.core.colors import pick_color
from tasktree.core.exceptions import StoreError
from tasktree.core.models import UserSession
from tasktree.core.store import SqliteRecordStore, open_sqlite_store
from tasktree.sync import PersistenceGateway, SessionController


class FailingStore:
    """包装真实 store，按方法名注入失败

    fail_after[method] = n 表示该方法前 n 次调用正常，之后每次抛 StoreError。
    calls 记录每次调用的 (method, args)。
    """

    def __init__(self, inner: SqliteRecordStore) -> None:
        self._inner = inner
        self.fail_after: dict[str, int] = {}
        self.calls: list[tuple[str, tuple[Any, ...]]] = []
        self._counts: dict[str, int] = {}

    def fail(self, method: str, after: int = 0) -> None:
        self.fail_after[method] = after
        self._counts[method] = 0

    def heal(self) -> None:
        self.fail_after.clear()

    def __getattr__(self, name: str):
        target = getattr(self._inner, name)
        if name.startswith("_") or not callable(target):
            return target

        async def wrapper(*args, **kwargs):
            self.calls.append((name, args))
            count = self._counts.get(name, 0)
            self._counts[name] = count + 1
            if name in self.fail_after and count >= self.fail_after[name]:
                raise StoreError(f"injected failure: {name}")
            return await target(*args, **kwargs)

        return wrapper

    def call_names(self) -> list[str]:
        return [name for name, _ in self.calls]


@pytest_asyncio.fixture
async def tmp_db_path(tmp_path: Path) -> Path:
    """提供临时 SQLite 数据库路径"""
    return tmp_path / "sqlite" / "test.db"


@pytest_asyncio.fixture
async def sqlite_store(tmp_db_path: Path) -> AsyncGenerator[SqliteRecordStore, None]:
    """提供已初始化的临时 SQLite 存储"""
    store = await open_sqlite_store(str(tmp_db_path))
    yield store
    await store.close()


@pytest_asyncio.fixture
async def failing_store(sqlite_store: SqliteRecordStore) -> FailingStore:
    """可注入失败的存储"""
    return FailingStore(sqlite_store)


@pytest.fixture
def gateway(failing_store: FailingStore) -> PersistenceGateway:
    return PersistenceGateway(failing_store)


@pytest.fixture
def session() -> UserSession:
    return UserSession.from_identity("user-1", "alice@example.com")


@pytest.fixture
def controller(gateway: PersistenceGateway) -> SessionController:
    """固定随机种子的 Controller，颜色分配可复现"""
    rng = random.Random(42)
    return SessionController(
        gateway,
        color_picker=lambda used: pick_color(used, rng=rng),
    )


@pytest_asyncio.fixture
async def signed_in(
    controller: SessionController,
    session: UserSession,
    failing_store: FailingStore,
) -> SessionController:
    """已登录并完成默认分类初始化的 Controller；调用记录已清空"""
    result = await controller.sign_in(session)
    assert result.ok
    failing_store.calls.clear()
    return controller
