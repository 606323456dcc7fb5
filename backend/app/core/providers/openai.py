"""
TRENDX - OpenAI Compatible Chat Provider
OpenAI API（および OpenRouter / Ollama のOpenAI互換API）を使用するLLMプロバイダー実装
"""
from typing import Any, Dict, List, Optional

from openai import AsyncOpenAI

from app.core.llm_provider import (
    LLMProvider,
    LLMProviderConfig,
    LLMResponse,
    ProviderType,
)


class OpenAIProvider(LLMProvider):
    """
    OpenAI互換APIを使用するLLMプロバイダー

    特徴:
    - AsyncOpenAIクライアントによる非同期処理
    - base_url の差し替えで OpenRouter / Ollama にも対応
    - reasoningモデル（o1, gpt-5系）は temperature を送らない
    """

    def __init__(
        self,
        config: LLMProviderConfig,
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

    async def generate_text(
        self,
        messages: List[Dict[str, str]],
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> LLMResponse:
        """テキスト生成"""
        await self.initialize()

        kwargs: Dict[str, Any] = {
            "model": self.config.model,
            "messages": messages,
        }

        # reasoningモデルはtemperatureをサポートしない
        if not self.is_reasoning_model():
            kwargs["temperature"] = (
                temperature if temperature is not None else self.config.temperature
            )

        if max_tokens:
            kwargs["max_tokens"] = max_tokens
        elif self.config.max_tokens:
            kwargs["max_tokens"] = self.config.max_tokens

        response = await self.client.chat.completions.create(**kwargs)
        content = response.choices[0].message.content or ""

        usage = None
        if response.usage:
            usage = {
                "prompt_tokens": response.usage.prompt_tokens,
                "completion_tokens": response.usage.completion_tokens,
                "total_tokens": response.usage.total_tokens,
            }

        return LLMResponse(
            content=content,
            model=self.config.model,
            provider=self.provider_type,
            usage=usage,
        )
