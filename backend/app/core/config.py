"""
TRENDX - Core Configuration
システム全体の設定を管理
"""
import json
from functools import lru_cache
from typing import Any, Dict, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


# デフォルトのLLM設定（ラベリング・センチメント・性格評価・変化説明で共通）
DEFAULT_LLM_CONFIG = {"provider": "openai", "model": "gpt-4o-mini"}

# デフォルトのEmbedding設定
DEFAULT_EMBEDDING_CONFIG = {"provider": "openai", "model": "text-embedding-3-small"}


class Settings(BaseSettings):
    """アプリケーション設定"""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Application
    app_name: str = "TRENDX"
    app_version: str = "0.1.0"
    debug: bool = False
    environment: str = "development"

    # Database
    database_url: str = Field(default="sqlite+aiosqlite:///./trendx.db")
    database_pool_size: int = 20
    database_max_overflow: int = 10

    # Celery
    celery_broker_url: str = Field(default="redis://localhost:6379/1")
    celery_result_backend: str = Field(default="redis://localhost:6379/2")

    # OpenAI
    openai_api_key: Optional[str] = None

    # OpenRouter（OpenAI互換エンドポイント）
    openrouter_api_key: Optional[str] = None
    openrouter_base_url: str = "https://openrouter.ai/api/v1"

    # Ollama（ローカルのOpenAI互換エンドポイント）
    ollama_base_url: str = "http://localhost:11434/v1"

    # LLM Configuration (JSON format)
    # 例: LLM_CONFIG='{"provider": "openrouter", "model": "anthropic/claude-3.5-haiku"}'
    llm_config: str = Field(
        default=json.dumps(DEFAULT_LLM_CONFIG),
        description="Chat provider config (JSON string)"
    )

    # Embedding Configuration (JSON format)
    # 例: EMBEDDING_CONFIG='{"provider": "ollama", "model": "nomic-embed-text", "dimensions": 768}'
    embedding_config: str = Field(
        default=json.dumps(DEFAULT_EMBEDDING_CONFIG),
        description="Embedding provider config (JSON string)"
    )

    # Logging
    log_level: str = "INFO"

    def get_llm_config(self) -> Dict[str, Any]:
        """
        チャットプロバイダー設定を取得

        Returns:
            {"provider": "openai"|"openrouter"|"ollama", "model": "model-name", ...}
        """
        try:
            config = json.loads(self.llm_config)
        except json.JSONDecodeError:
            # パースに失敗した場合はデフォルト設定を返す
            config = dict(DEFAULT_LLM_CONFIG)
        return config

    def get_embedding_config(self) -> Dict[str, Any]:
        """
        Embedding設定を取得

        Returns:
            {"provider": "openai"|"openrouter"|"ollama", "model": "model-name", ...}
        """
        try:
            config = json.loads(self.embedding_config)
        except json.JSONDecodeError:
            config = dict(DEFAULT_EMBEDDING_CONFIG)
        return config

    def get_api_key(self, provider: str) -> Optional[str]:
        """プロバイダー名に対応するAPIキーを返す（Ollamaはキー不要）"""
        key_map = {
            "openai": self.openai_api_key,
            "openrouter": self.openrouter_api_key,
            "ollama": "ollama",
        }
        return key_map.get(provider)

    def get_base_url(self, provider: str) -> Optional[str]:
        """OpenAI互換エンドポイントのベースURL（openaiはSDKの既定値）"""
        url_map = {
            "openrouter": self.openrouter_base_url,
            "ollama": self.ollama_base_url,
        }
        return url_map.get(provider)


@lru_cache
def get_settings() -> Settings:
    """設定のシングルトンインスタンスを取得"""
    return Settings()


settings = get_settings()
