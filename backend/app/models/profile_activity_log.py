"""
TRENDX - Profile Activity Log Model
プロファイル更新の履歴（ダッシュボード表示・デバッグ用）
"""
import uuid
from enum import Enum
from typing import Any, Dict, Optional

from sqlalchemy import ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base, JSONType, unix_now


class ProfileActionType(str, Enum):
    TWEETS_CLASSIFIED = "tweets_classified"
    TOPICS_BOOTSTRAPPED = "topics_bootstrapped"
    NEW_TOPIC_DETECTED = "new_topic_detected"
    DRIFT_BUFFER_PROCESSED = "drift_buffer_processed"
    PERSONALITY_EVALUATED = "personality_evaluated"
    PROFILE_UPDATED = "profile_updated"


class ProfileActivityLog(Base):
    __tablename__ = "profile_activity_logs"

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
    action_type: Mapped[str] = mapped_column(String(50), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    details: Mapped[Optional[Dict[str, Any]]] = mapped_column(
        JSONType,
        nullable=True,
    )
    created_at: Mapped[int] = mapped_column(Integer, default=unix_now, nullable=False)

    def __repr__(self) -> str:
        return f"<ProfileActivityLog {self.action_type}: {self.message[:30]}>"
