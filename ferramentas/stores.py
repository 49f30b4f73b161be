"""
Ferramentas — ストア (トランザクション DB / 分析 DB)

2 つの長寿命エンジンをまとめたハンドル。プロセス起動時に一度だけ作成し、
終了時に一度だけ破棄する。各操作には Stores を明示的に渡す。

SQLAlchemy の例外はここで StoreError 系に変換する:
  - 接続断・タイムアウト → StoreUnavailableError (retryable)
  - それ以外             → StoreError
  - コミット失敗         → CommitError
"""

import logging
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from typing import AsyncIterator

from sqlalchemy import exc as sa_exc
from sqlalchemy import make_url, text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from .config import Settings
from .errors import CommitError, StoreError, StoreUnavailableError
from .schema import analytics_metadata, transactional_metadata

logger = logging.getLogger(__name__)


def create_engine_for(url: str, timeout: float) -> AsyncEngine:
    """URL のドライバに合わせてタイムアウトを設定したエンジンを作る。"""
    parsed = make_url(url)
    kwargs: dict = {"echo": False}
    if parsed.get_backend_name() == "sqlite":
        kwargs["connect_args"] = {"timeout": timeout}
    else:
        kwargs["pool_timeout"] = timeout
        kwargs["pool_pre_ping"] = True
        if parsed.get_driver_name() == "asyncpg":
            kwargs["connect_args"] = {"timeout": timeout, "command_timeout": timeout}
    return create_async_engine(url, **kwargs)


def translate_error(e: Exception) -> StoreError:
    if isinstance(e, (sa_exc.OperationalError, sa_exc.InterfaceError, sa_exc.TimeoutError)):
        return StoreUnavailableError(f"Store unavailable: {e}")
    if isinstance(e, sa_exc.DBAPIError) and e.connection_invalidated:
        return StoreUnavailableError(f"Store unavailable: {e}")
    if isinstance(e, (TimeoutError, OSError)):
        return StoreUnavailableError(f"Store unavailable: {e!r}")
    return StoreError(f"Store error: {e}")


class Stores:
    def __init__(
        self,
        transactional_engine: AsyncEngine,
        analytics_engine: AsyncEngine,
        settings: Settings,
    ) -> None:
        self.settings = settings
        self.transactional_engine = transactional_engine
        self.analytics_engine = analytics_engine
        self._transactional_session = async_sessionmaker(
            transactional_engine, class_=AsyncSession, expire_on_commit=False
        )
        self._analytics_session = async_sessionmaker(
            analytics_engine, class_=AsyncSession, expire_on_commit=False
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> "Stores":
        return cls(
            create_engine_for(settings.transactional_database_url, settings.store_timeout),
            create_engine_for(settings.analytics_database_url, settings.store_timeout),
            settings,
        )

    # ── ライフサイクル ─────────────────────────────

    async def ping(self) -> None:
        """両方の DB に SELECT 1 を投げて疎通を確認する。"""
        for name, engine in (
            ("transactional", self.transactional_engine),
            ("analytics", self.analytics_engine),
        ):
            try:
                async with engine.connect() as conn:
                    await conn.execute(text("SELECT 1"))
            except (sa_exc.SQLAlchemyError, TimeoutError, OSError) as e:
                raise StoreUnavailableError(f"Cannot reach {name} store: {e}") from e

    async def create_schema(self) -> None:
        """存在しないテーブルだけを作成する (冪等)。"""
        try:
            async with self.transactional_engine.begin() as conn:
                await conn.run_sync(transactional_metadata.create_all)
            async with self.analytics_engine.begin() as conn:
                await conn.run_sync(analytics_metadata.create_all)
        except (sa_exc.SQLAlchemyError, TimeoutError, OSError) as e:
            raise translate_error(e) from e
        logger.info("Schemas created/verified")

    async def close(self) -> None:
        for name, engine in (
            ("transactional", self.transactional_engine),
            ("analytics", self.analytics_engine),
        ):
            try:
                await engine.dispose()
            except sa_exc.SQLAlchemyError:
                logger.exception("Error closing %s store", name)

    # ── セッションスコープ ──────────────────────────

    def transaction(self) -> AbstractAsyncContextManager[AsyncSession]:
        """トランザクション DB の書き込みスコープ。正常終了でコミット、例外でロールバック。"""
        return _scope(self._transactional_session, commit=True)

    def session(self) -> AbstractAsyncContextManager[AsyncSession]:
        """トランザクション DB の読み取りスコープ (コミットしない)。"""
        return _scope(self._transactional_session, commit=False)

    def analytics(self) -> AbstractAsyncContextManager[AsyncSession]:
        """分析 DB の追記スコープ。"""
        return _scope(self._analytics_session, commit=True)

    def analytics_session(self) -> AbstractAsyncContextManager[AsyncSession]:
        return _scope(self._analytics_session, commit=False)


@asynccontextmanager
async def _scope(
    factory: async_sessionmaker, commit: bool
) -> AsyncIterator[AsyncSession]:
    async with factory() as session:
        try:
            yield session
        except (sa_exc.SQLAlchemyError, TimeoutError, OSError) as e:
            await session.rollback()
            raise translate_error(e) from e
        except Exception:
            await session.rollback()
            raise

        if commit:
            try:
                await session.commit()
            except (sa_exc.SQLAlchemyError, TimeoutError, OSError) as e:
                raise CommitError(f"Commit failed: {e}") from e


@asynccontextmanager
async def open_stores(settings: Settings) -> AsyncIterator[Stores]:
    """起動時に接続を確立し、終了時に必ず破棄する。"""
    stores = Stores.from_settings(settings)
    try:
        await stores.ping()
        if settings.create_schema:
            await stores.create_schema()
        logger.info("Stores ready")
        yield stores
    finally:
        await stores.close()
