"""
TRENDX - Account Profile Model
アカウントごとの行動プロファイル（トピック・性格・活動量）

JSON列の読み書きは ProfileStore に集約し、エンジン側は型付きの値のみ扱う。
"""
from typing import Any, Dict, List, Optional

from sqlalchemy import ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base, JSONType, unix_now


class AccountProfile(Base):
    """1アカウントにつき1行。初回アクセス時に空の状態で作成される"""

    __tablename__ = "account_profiles"

    account_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("accounts.id", ondelete="CASCADE"),
        primary_key=True,
    )

    # ── プロファイル本体（JSON） ──
    topics: Mapped[List[Dict[str, Any]]] = mapped_column(
        JSONType,
        default=list,
        nullable=False,
        comment="ProfileTopic のリスト",
    )
    personality: Mapped[Optional[Dict[str, Any]]] = mapped_column(
        JSONType,
        nullable=True,
    )
    personality_baseline: Mapped[Optional[Dict[str, Any]]] = mapped_column(
        JSONType,
        nullable=True,
        comment="初回評価時に一度だけ設定され、以後は変更されない",
    )
    activity_metrics: Mapped[Optional[Dict[str, Any]]] = mapped_column(
        JSONType,
        nullable=True,
    )

    # ── カウンタ・タイムスタンプ ──
    total_tweets_processed: Mapped[int] = mapped_column(
        Integer,
        default=0,
        nullable=False,
    )
    last_personality_eval_at: Mapped[Optional[int]] = mapped_column(
        Integer,
        nullable=True,
    )
    last_updated_at: Mapped[int] = mapped_column(
        Integer,
        default=0,
        nullable=False,
        comment="0 の場合は全履歴を処理対象にする",
    )
    created_at: Mapped[int] = mapped_column(
        Integer,
        default=unix_now,
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<AccountProfile {self.account_id}: {len(self.topics or [])} topics>"
