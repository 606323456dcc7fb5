"""
TRENDX - LLM Provider Abstract Interface
チャット/補完プロバイダーの抽象インターフェース

エンジンが要求する契約は「メッセージ列を渡すとテキストとトークン数が返る」ことのみ。
"""
import re
from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel


class ProviderType(str, Enum):
    """サポートするプロバイダータイプ（いずれもOpenAI互換API）"""
    OPENAI = "openai"
    OPENROUTER = "openrouter"
    OLLAMA = "ollama"


class LLMProviderConfig(BaseModel):
    """プロバイダー設定"""
    provider: ProviderType
    model: str
    temperature: Optional[float] = 0.3
    max_tokens: Optional[int] = None


class LLMResponse(BaseModel):
    """LLMレスポンスのラッパー"""
    content: str
    model: str
    provider: ProviderType
    usage: Optional[Dict[str, int]] = None
    raw_response: Optional[Dict[str, Any]] = None

    @property
    def prompt_tokens(self) -> int:
        return (self.usage or {}).get("prompt_tokens", 0)

    @property
    def completion_tokens(self) -> int:
        return (self.usage or {}).get("completion_tokens", 0)

    @property
    def total_tokens(self) -> int:
        return (self.usage or {}).get("total_tokens", 0)


class LLMProvider(ABC):
    """
    LLMプロバイダーの抽象基底クラス

    全てのプロバイダー実装はこのクラスを継承し、
    以下のメソッドを実装する必要がある。
    """

    def __init__(self, config: LLMProviderConfig):
        self.config = config
        self._initialized = False

    @property
    @abstractmethod
    def provider_type(self) -> ProviderType:
        """プロバイダータイプを返す"""
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
    async def generate_text(
        self,
        messages: List[Dict[str, str]],
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> LLMResponse:
        """
        テキスト生成

        Args:
            messages: チャットメッセージのリスト [{"role": "...", "content": "..."}]
            temperature: 温度パラメータ（指定がなければconfigの値を使用）
            max_tokens: 最大トークン数

        Returns:
            LLMResponse: 生成されたテキストとトークン使用量
        """
        pass

    def is_reasoning_model(self) -> bool:
        """
        現在のモデルがreasoningモデルかどうかを判定

        reasoningモデルはtemperatureパラメータをサポートしない。
        """
        reasoning_patterns = [
            r"^o1",           # o1-preview, o1-mini
            r"^o3",
            r"^gpt-5",        # gpt-5.x系
            r"reasoning",     # reasoningが含まれるモデル
        ]
        for pattern in reasoning_patterns:
            if re.search(pattern, self.config.model, re.IGNORECASE):
                return True
        return False

    def get_model_info(self) -> Dict[str, Any]:
        """モデル情報を取得"""
        return {
            "provider": self.provider_type.value,
            "model": self.config.model,
            "is_reasoning": self.is_reasoning_model(),
        }

    async def health_check(self) -> bool:
        """
        プロバイダーの健全性チェック

        Returns:
            True: 正常に動作している
            False: 問題がある
        """
        try:
            await self.initialize()
            return True
        except Exception:
            return False
