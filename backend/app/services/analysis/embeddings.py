"""
TRENDX - Embedding Generation
Embeddingプロバイダーをバッチ単位で呼び出す
"""
import logging
from typing import List

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.embedding_provider import MAX_EMBEDDING_BATCH
from app.core.llm import Providers
from app.services.errors import EmbeddingError
from app.services.token_tracker import record_embedding_usage

logger = logging.getLogger(__name__)


async def generate_embeddings(
    texts: List[str],
    providers: Providers,
    session: AsyncSession,
) -> List[List[float]]:
    """
    テキストの埋め込みを入力順で返す

    1回のプロバイダー呼び出しは最大 MAX_EMBEDDING_BATCH 件。
    どのバッチが失敗しても EmbeddingError を送出する。
    """
    provider = providers.embedding
    await provider.initialize()

    vectors: List[List[float]] = []
    for start in range(0, len(texts), MAX_EMBEDDING_BATCH):
        batch = texts[start:start + MAX_EMBEDDING_BATCH]
        response = await provider.embed_texts(batch)
        if response is None:
            raise EmbeddingError(
                f"Embedding provider returned no result for batch starting at {start}"
            )
        if len(response.embeddings) != len(batch):
            raise EmbeddingError(
                f"Embedding provider returned {len(response.embeddings)} vectors for {len(batch)} texts"
            )
        record_embedding_usage(session, provider, response)
        vectors.extend(response.embeddings)

    logger.info("Generated %d embeddings with %s", len(vectors), provider.model)
    return vectors
