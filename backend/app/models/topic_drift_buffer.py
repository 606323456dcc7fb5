"""
TRENDX - Topic Drift Buffer Model
既存トピックに一致しなかったツイートの埋め込みを一時的に保持する
"""
import uuid
from typing import List

from sqlalchemy import ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base, JSONType, unix_now


class TopicDriftBuffer(Base):
    """再クラスタリングで消費された時点でアカウント単位に一括削除される"""

    __tablename__ = "topic_drift_buffer"

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
    tweet_id: Mapped[str] = mapped_column(
        String(32),
        nullable=False,
    )
    embedding: Mapped[List[float]] = mapped_column(
        JSONType,
        nullable=False,
    )
    added_at: Mapped[int] = mapped_column(
        Integer,
        default=unix_now,
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<TopicDriftBuffer {self.account_id}: tweet {self.tweet_id}>"
