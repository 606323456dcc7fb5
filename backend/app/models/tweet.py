"""
TRENDX - Tweet Model
取得済みツイート（取得後は不変）
"""
from typing import Any, Dict, Optional

from sqlalchemy import Boolean, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base, JSONType, unix_now


class Tweet(Base):
    """外部フェッチャーが保存したツイート。エンジンは読み取りのみ行う"""

    __tablename__ = "tweets"
    __table_args__ = (
        Index("ix_tweets_account_created", "account_id", "tweet_created_at"),
    )

    id: Mapped[str] = mapped_column(
        String(32),
        primary_key=True,
        comment="ツイートID（プラットフォーム側のID）",
    )
    account_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("accounts.id", ondelete="CASCADE"),
        nullable=False,
    )
    text: Mapped[str] = mapped_column(
        Text,
        nullable=False,
    )
    tweet_created_at: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        comment="投稿時刻（UNIX秒）",
    )

    # ── ツイート種別 ──
    is_reply: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_retweet: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_quote_tweet: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    raw_json: Mapped[Optional[Dict[str, Any]]] = mapped_column(
        JSONType,
        nullable=True,
        comment="取得時の生レスポンス（引用元テキストの抽出に使用）",
    )
    fetched_at: Mapped[int] = mapped_column(
        Integer,
        default=unix_now,
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<Tweet {self.id}: {self.text[:30]}>"
