"""
TRENDX - Account Model
監視対象アカウント
"""
import uuid
from typing import Optional

from sqlalchemy import Boolean, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base, unix_now


class Account(Base):
    """監視対象のSNSアカウント（ハンドルは @ なしで保存）"""

    __tablename__ = "accounts"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid.uuid4()),
    )
    handle: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        unique=True,
        comment="@ を除いたハンドル名",
    )
    display_name: Mapped[Optional[str]] = mapped_column(
        String(100),
        nullable=True,
    )
    twitter_user_id: Mapped[Optional[str]] = mapped_column(
        String(32),
        nullable=True,
    )
    is_active: Mapped[bool] = mapped_column(
        Boolean,
        default=True,
        nullable=False,
    )
    created_at: Mapped[int] = mapped_column(
        Integer,
        default=unix_now,
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<Account @{self.handle}>"
