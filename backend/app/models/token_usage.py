"""
TRENDX - Token Usage Model
プロバイダー呼び出しごとのトークン消費量
"""
import uuid

from sqlalchemy import Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base, unix_now


class TokenUsage(Base):
    __tablename__ = "token_usage"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid.uuid4()),
    )
    operation: Mapped[str] = mapped_column(
        String(32),
        nullable=False,
        index=True,
        comment="embedding / labeling / sentiment / personality / explanation",
    )
    provider: Mapped[str] = mapped_column(String(32), nullable=False)
    model: Mapped[str] = mapped_column(String(100), nullable=False)
    prompt_tokens: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    completion_tokens: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    total_tokens: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    created_at: Mapped[int] = mapped_column(Integer, default=unix_now, nullable=False)

    def __repr__(self) -> str:
        return f"<TokenUsage {self.operation} {self.model}: {self.total_tokens}>"
