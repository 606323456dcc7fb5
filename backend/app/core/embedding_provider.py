"""
TRENDX - Embedding Provider Abstract Interface
Embeddingプロバイダーの抽象インターフェース
"""
from abc import ABC, abstractmethod
from typing import List, Optional

from pydantic import BaseModel

from app.core.llm_provider import ProviderType


# 1回のAPI呼び出しで送るテキストの上限
MAX_EMBEDDING_BATCH = 100


class EmbeddingProviderConfig(BaseModel):
    """Embeddingプロバイダー設定"""
    provider: ProviderType
    model: str
    dimensions: Optional[int] = None  # 一部のモデルでは次元数を指定可能


class EmbeddingResponse(BaseModel):
    """埋め込みベクトルとトークン使用量"""
    embeddings: List[List[float]]
    prompt_tokens: int = 0
    total_tokens: int = 0


class EmbeddingProvider(ABC):
    """
    Embeddingプロバイダーの抽象基底クラス

    全てのプロバイダー実装はこのクラスを継承し、
    以下のメソッドを実装する必要がある。
    """

    def __init__(self, config: EmbeddingProviderConfig):
        self.config = config
        self._initialized = False

    @property
    @abstractmethod
    def provider_type(self) -> ProviderType:
        """プロバイダータイプを返す"""
        pass

    @property
    @abstractmethod
    def vector_size(self) -> int:
        """埋め込みベクトルの次元数を返す"""
        pass

    @property
    def model(self) -> str:
        return self.config.model

    @abstractmethod
    async def initialize(self) -> None:
        """
        プロバイダーの初期化処理
        認証情報の検証やクライアントの初期化を行う
        """
        pass

    @abstractmethod
    async def embed_texts(self, texts: List[str]) -> Optional[EmbeddingResponse]:
        """
        複数テキストの埋め込みベクトルを一括取得（最大 MAX_EMBEDDING_BATCH 件）

        Args:
            texts: 埋め込むテキストのリスト

        Returns:
            入力と同じ順序の埋め込みベクトル（失敗時はNone）
        """
        pass

    async def health_check(self) -> bool:
        """
        プロバイダーの健全性チェック

        Returns:
            True: 正常に動作している
            False: 問題がある
        """
        try:
            await self.initialize()
            # 簡単なテスト埋め込みを実行
            result = await self.embed_texts(["test"])
            return result is not None
        except Exception:
            return False

    def get_model_info(self) -> dict:
        """モデル情報を取得"""
        return {
            "provider": self.provider_type.value,
            "model": self.config.model,
            "vector_size": self.vector_size,
        }
