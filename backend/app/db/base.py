"""
TRENDX - Database Base
SQLAlchemy基盤設定
"""
import time

from sqlalchemy import JSON, MetaData
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from app.core.config import settings

# 命名規則の設定
convention = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}

metadata = MetaData(naming_convention=convention)

# PostgreSQL では JSONB、それ以外（SQLite）では汎用 JSON
JSONType = JSON().with_variant(JSONB(), "postgresql")


class Base(DeclarativeBase):
    """すべてのモデルの基底クラス"""

    metadata = metadata


# エンジン作成用の引数を動的に構築
engine_kwargs = {
    "echo": settings.debug,
}

# SQLite以外（PostgreSQL等）の場合のみ、プーリング設定を追加
if not settings.database_url.startswith("sqlite"):
    engine_kwargs["pool_size"] = settings.database_pool_size
    engine_kwargs["max_overflow"] = settings.database_max_overflow

# 非同期エンジン
engine = create_async_engine(
    settings.database_url,
    **engine_kwargs
)

# 非同期セッションファクトリ
async_session_maker = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def create_tables() -> None:
    """全テーブルを作成（開発・ローカル実行用）"""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


def unix_now() -> int:
    """現在時刻をUNIX秒で取得（減衰・無投稿時間の計算はすべてこの単位）"""
    return int(time.time())
