"""
TRENDX - Social Graph Models
フォロー/フォロワー関係とスナップショット
"""
import uuid
from enum import Enum
from typing import Optional

from sqlalchemy import Boolean, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base, unix_now


class ConnectionDirection(str, Enum):
    """関係の向き"""

    FOLLOWING = "following"  # 監視アカウントがフォローしている
    FOLLOWER = "follower"    # 監視アカウントをフォローしている
    MUTUAL = "mutual"        # 相互フォロー（following/follower 行に加えて保存）


class SocialConnection(Base):
    """
    (account_id, user_id, direction) で一意。

    関係が消えた場合は行を削除せず is_active=False にする。
    """

    __tablename__ = "social_connections"
    __table_args__ = (
        UniqueConstraint("account_id", "user_id", "direction", name="uq_social_connections_key"),
    )

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid.uuid4()),
    )
    account_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("accounts.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    user_id: Mapped[str] = mapped_column(String(32), nullable=False)
    username: Mapped[str] = mapped_column(String(50), nullable=False)
    display_name: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    direction: Mapped[str] = mapped_column(
        String(16),
        nullable=False,
        comment="ConnectionDirection の値",
    )

    # ── 相手アカウントのメタデータ（取得時点） ──
    follower_count: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    following_count: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    is_blue_verified: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    # ── 状態 ──
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    first_seen_at: Mapped[int] = mapped_column(Integer, default=unix_now, nullable=False)
    last_seen_at: Mapped[int] = mapped_column(Integer, default=unix_now, nullable=False)
    deactivated_at: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    def __repr__(self) -> str:
        return f"<SocialConnection {self.account_id} {self.direction} @{self.username}>"


class SocialSnapshot(Base):
    """ソーシャルグラフ取得1回分の集計"""

    __tablename__ = "social_snapshots"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid.uuid4()),
    )
    account_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("accounts.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    following_count: Mapped[int] = mapped_column(Integer, nullable=False)
    follower_count: Mapped[int] = mapped_column(Integer, nullable=False)
    mutual_count: Mapped[int] = mapped_column(Integer, nullable=False)

    # ── 前回との差分件数 ──
    following_added: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    following_removed: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    followers_added: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    followers_removed: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    created_at: Mapped[int] = mapped_column(Integer, default=unix_now, nullable=False)

    def __repr__(self) -> str:
        return (
            f"<SocialSnapshot {self.account_id}: "
            f"{self.follower_count} followers / {self.following_count} following>"
        )
