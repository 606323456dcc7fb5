"""
TRENDX - Token Usage Tracker
プロバイダー呼び出しごとのトークン消費量を記録する
"""
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.embedding_provider import EmbeddingProvider, EmbeddingResponse
from app.core.llm_provider import LLMProvider, LLMResponse
from app.models.token_usage import TokenUsage


def record_chat_usage(
    session: AsyncSession,
    operation: str,
    provider: LLMProvider,
    response: LLMResponse,
) -> None:
    """
    チャット呼び出しのトークン数をセッションに追加する（コミットは呼び出し元）

    並列に走る説明文生成からも呼ばれるため、await を含まない。
    """
    session.add(
        TokenUsage(
            operation=operation,
            provider=provider.provider_type.value,
            model=response.model,
            prompt_tokens=response.prompt_tokens,
            completion_tokens=response.completion_tokens,
            total_tokens=response.total_tokens,
        )
    )


def record_embedding_usage(
    session: AsyncSession,
    provider: EmbeddingProvider,
    response: EmbeddingResponse,
) -> None:
    session.add(
        TokenUsage(
            operation="embedding",
            provider=provider.provider_type.value,
            model=provider.model,
            prompt_tokens=response.prompt_tokens,
            completion_tokens=0,
            total_tokens=response.total_tokens,
        )
    )


async def get_total_tokens(session: AsyncSession, operation: Optional[str] = None) -> int:
    """記録済みトークン数の合計（operation 指定で絞り込み）"""
    stmt = select(func.coalesce(func.sum(TokenUsage.total_tokens), 0))
    if operation:
        stmt = stmt.where(TokenUsage.operation == operation)
    result = await session.execute(stmt)
    return int(result.scalar_one())
