"""
TRENDX - Provider Registry
チャット/Embeddingプロバイダーを設定から解決し、実行単位の Providers として束ねる

プロバイダーインスタンスは "provider:model" をキーにレジストリ内でキャッシュされる。
設定変更後は clear_cache() を明示的に呼んで再解決させる。
"""
import json
import re
from dataclasses import dataclass
from typing import Any, Dict, Optional

from app.core.config import Settings, get_settings
from app.core.embedding_provider import EmbeddingProvider, EmbeddingProviderConfig
from app.core.llm_provider import LLMProvider, LLMProviderConfig, ProviderType


def extract_json_from_text(text: str) -> Optional[Dict[str, Any]]:
    """
    テキストからJSONを抽出
    モデルがコードフェンスや前置きを付けて返した場合でも本体を取り出す
    """
    # まず、テキスト全体がJSONかどうかを試す
    try:
        return json.loads(text.strip())
    except json.JSONDecodeError:
        pass

    # コードブロック内のJSONを探す
    json_patterns = [
        r"```json\s*([\s\S]*?)\s*```",  # ```json ... ```
        r"```\s*([\s\S]*?)\s*```",       # ``` ... ```
        r"\{[\s\S]*\}",                   # { ... } (最外のJSONオブジェクト)
    ]

    for pattern in json_patterns:
        for match in re.findall(pattern, text):
            try:
                return json.loads(match.strip())
            except json.JSONDecodeError:
                continue

    return None


@dataclass(frozen=True)
class Providers:
    """
    1回のパイプライン実行で使うプロバイダーの束

    エンジンの各エントリーポイントへ明示的に渡す。グローバル状態は持たない。
    """
    chat: LLMProvider
    embedding: EmbeddingProvider

    async def initialize(self) -> None:
        """両方のプロバイダーを初期化（初期化済みなら何もしない）"""
        await self.chat.initialize()
        await self.embedding.initialize()


class ProviderRegistry:
    """
    プロバイダーレジストリ

    設定に基づいて適切なプロバイダーを生成し、キャッシュして再利用する。
    ワーカープロセスが1つ保持し、実行ごとに resolve() で Providers を払い出す。
    """

    def __init__(self, settings: Optional[Settings] = None):
        self._settings = settings or get_settings()
        self._chat_providers: Dict[str, LLMProvider] = {}
        self._embedding_providers: Dict[str, EmbeddingProvider] = {}

    @staticmethod
    def _cache_key(config: Dict[str, Any]) -> str:
        """キャッシュキーを生成"""
        return f"{config.get('provider', 'openai')}:{config.get('model', 'default')}"

    def _create_chat_provider(self, config: Dict[str, Any]) -> LLMProvider:
        """設定からチャットプロバイダーを作成"""
        provider_type = ProviderType(config.get("provider", "openai").lower())
        provider_config = LLMProviderConfig(
            provider=provider_type,
            model=config.get("model", "gpt-4o-mini"),
            temperature=config.get("temperature", 0.3),
            max_tokens=config.get("max_tokens"),
        )

        from app.core.providers.openai import OpenAIProvider
        return OpenAIProvider(
            config=provider_config,
            api_key=self._settings.get_api_key(provider_type.value),
            base_url=self._settings.get_base_url(provider_type.value),
        )

    def _create_embedding_provider(self, config: Dict[str, Any]) -> EmbeddingProvider:
        """設定からEmbeddingプロバイダーを作成"""
        provider_type = ProviderType(config.get("provider", "openai").lower())
        provider_config = EmbeddingProviderConfig(
            provider=provider_type,
            model=config.get("model", "text-embedding-3-small"),
            dimensions=config.get("dimensions"),
        )

        from app.core.providers.openai_embedding import OpenAIEmbeddingProvider
        return OpenAIEmbeddingProvider(
            config=provider_config,
            api_key=self._settings.get_api_key(provider_type.value),
            base_url=self._settings.get_base_url(provider_type.value),
        )

    def get_chat_provider(self) -> LLMProvider:
        config = self._settings.get_llm_config()
        key = self._cache_key(config)
        if key not in self._chat_providers:
            self._chat_providers[key] = self._create_chat_provider(config)
        return self._chat_providers[key]

    def get_embedding_provider(self) -> EmbeddingProvider:
        config = self._settings.get_embedding_config()
        key = self._cache_key(config)
        if key not in self._embedding_providers:
            self._embedding_providers[key] = self._create_embedding_provider(config)
        return self._embedding_providers[key]

    def resolve(self) -> Providers:
        """現在の設定に対応する Providers を返す"""
        return Providers(
            chat=self.get_chat_provider(),
            embedding=self.get_embedding_provider(),
        )

    def update_settings(self, settings: Settings) -> None:
        """設定を差し替え、キャッシュを破棄する"""
        self._settings = settings
        self.clear_cache()

    def clear_cache(self) -> None:
        """プロバイダーキャッシュをクリア"""
        self._chat_providers.clear()
        self._embedding_providers.clear()
