"""
TRENDX - Notification Model
検出された変化1件につき1行
"""
import uuid
from enum import Enum

from sqlalchemy import Boolean, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base, unix_now


class ChangeType(str, Enum):
    """変化の種別"""

    # プロファイル
    PERSONALITY_DRIFT = "personality_drift"
    TOPIC_EMERGENCE = "topic_emergence"
    TOPIC_ABANDONMENT = "topic_abandonment"
    ACTIVITY_ANOMALY = "activity_anomaly"

    # ソーシャルグラフ
    FOLLOWER_SPIKE = "follower_spike"
    FOLLOWER_DROP = "follower_drop"
    FOLLOWING_SPIKE = "following_spike"
    NOTABLE_FOLLOWER_GAINED = "notable_follower_gained"
    NOTABLE_FOLLOWER_LOST = "notable_follower_lost"
    NEW_MUTUAL_CONNECTION = "new_mutual_connection"


class Notification(Base):
    """
    通知レコード

    タイトルは "{種別ラベル}: {dimension}" 形式で生成され、
    24時間の重複抑制はこのタイトルから dimension を復元して判定する。
    """

    __tablename__ = "notifications"
    __table_args__ = (
        Index("ix_notifications_account_created", "account_id", "created_at"),
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
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    explanation: Mapped[str] = mapped_column(Text, nullable=False)
    change_type: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        comment="ChangeType の値",
    )
    is_read: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    created_at: Mapped[int] = mapped_column(
        Integer,
        default=unix_now,
        nullable=False,
        comment="作成時刻（UNIX秒）",
    )

    def __repr__(self) -> str:
        return f"<Notification {self.change_type}: {self.title}>"
