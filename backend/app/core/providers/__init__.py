"""
TRENDX - LLM & Embedding Providers
プロバイダー実装のパッケージ
"""
# LLM Providers
from app.core.providers.openai import OpenAIProvider

# Embedding Providers
from app.core.providers.openai_embedding import OpenAIEmbeddingProvider

__all__ = [
    # LLM
    "OpenAIProvider",
    # Embedding
    "OpenAIEmbeddingProvider",
]
