"""
TRENDX - OpenAI Compatible Embedding Provider
OpenAI API（および OpenRouter / Ollama のOpenAI互換API）を使用するEmbeddingプロバイダー実装
"""
import logging
from typing import Any, Dict, List, Optional

from openai import AsyncOpenAI

from app.core.embedding_provider import (
    EmbeddingProvider,
    EmbeddingProviderConfig,
    EmbeddingResponse,
)
from app.core.llm_provider import ProviderType

logger = logging.getLogger(__name__)


# OpenAI Embeddingモデルの次元数マッピング
OPENAI_EMBEDDING_DIMENSIONS = {
    "text-embedding-3-small": 1536,
    "text-embedding-3-large": 3072,
    "text-embedding-ada-002": 1536,
}


class OpenAIEmbeddingProvider(EmbeddingProvider):
    """
    OpenAI互換APIを使用するEmbeddingプロバイダー

    サポートモデル:
    - text-embedding-3-small (1536次元, 推奨)
    - text-embedding-3-large (3072次元, 高精度)
    - Ollama 等のローカルモデル（dimensions を設定で明示する）
    """

    def __init__(
        self,
        config: EmbeddingProviderConfig,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
    ):
        super().__init__(config)
        self._api_key = api_key
        self._base_url = base_url
        self._client: Optional[AsyncOpenAI] = None

    @property
    def provider_type(self) -> ProviderType:
        return self.config.provider

    @property
    def vector_size(self) -> int:
        """埋め込みベクトルの次元数"""
        # configで明示的に指定されている場合はそれを使用
        if self.config.dimensions:
            return self.config.dimensions
        # モデル名から次元数を取得
        return OPENAI_EMBEDDING_DIMENSIONS.get(self.config.model, 1536)

    async def initialize(self) -> None:
        """OpenAIクライアントを初期化"""
        if self._initialized:
            return

        if not self._api_key:
            raise ValueError(f"{self.config.provider.value} API key is not configured")

        self._client = AsyncOpenAI(api_key=self._api_key, base_url=self._base_url)
        self._initialized = True

    @property
    def client(self) -> AsyncOpenAI:
        """初期化済みクライアントを取得"""
        if self._client is None:
            raise RuntimeError("Provider not initialized. Call initialize() first.")
        return self._client

    async def embed_texts(self, texts: List[str]) -> Optional[EmbeddingResponse]:
        """複数テキストの埋め込みベクトルを一括取得"""
        await self.initialize()

        try:
            kwargs: Dict[str, Any] = {
                "model": self.config.model,
                "input": texts,
            }

            # text-embedding-3-* モデルは次元数指定をサポート
            if self.config.dimensions and self.config.model.startswith("text-embedding-3"):
                kwargs["dimensions"] = self.config.dimensions

            response = await self.client.embeddings.create(**kwargs)
        except Exception as e:
            logger.error("Embedding request failed for %d texts: %s", len(texts), e, exc_info=True)
            return None

        # APIは index 付きで返すため入力順に並べ直す
        ordered = sorted(response.data, key=lambda d: d.index)
        usage = response.usage
        return EmbeddingResponse(
            embeddings=[d.embedding for d in ordered],
            prompt_tokens=usage.prompt_tokens if usage else 0,
            total_tokens=usage.total_tokens if usage else 0,
        )
