"""
TRENDX バックエンド - 共通テストフィクスチャ

設計方針:
- チャット/Embeddingプロバイダーをモック化し、外部API（OpenAI/OpenRouter/Ollama）を一切呼び出さない
- DBはインメモリ SQLite（aiosqlite）で、テストごとにテーブルを作り直す
- 各テストは独立して実行可能（サービス起動不要）
"""
from __future__ import annotations

import json
import math
import re
from typing import Any, Callable, Dict, List, Optional, Sequence, Union

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

import app.models  # noqa: F401  全モデルを metadata に登録
from app.core.embedding_provider import (
    EmbeddingProvider,
    EmbeddingProviderConfig,
    EmbeddingResponse,
)
from app.core.llm import Providers
from app.core.llm_provider import LLMProvider, LLMProviderConfig, LLMResponse, ProviderType
from app.db.base import Base
from app.models.account import Account
from app.models.tweet import Tweet
from app.services.analysis.topic_labeler import LABEL_SYSTEM_PROMPT, SENTIMENT_SYSTEM_PROMPT
from app.services.detection.profile_change_detector import EXPLANATION_SYSTEM_PROMPT
from app.services.profile.personality import PERSONALITY_SYSTEM_PROMPT

DAY = 24 * 60 * 60
HOUR = 60 * 60

# テストの基準時刻（2024-06-01 00:00:00 UTC）
NOW = 1717200000

MOCK_USAGE = {"prompt_tokens": 10, "completion_tokens": 5, "total_tokens": 15}

Responder = Callable[[List[Dict[str, str]]], str]


# =============================================================================
# MockLLMProvider
# テスト用の LLMProvider 実装。外部 API を一切呼び出さず、
# プリセットされたレスポンス（またはレスポンダー関数の戻り値）を返す。
# =============================================================================

class MockLLMProvider(LLMProvider):
    """
    外部 API を呼び出さないテスト専用 LLMProvider。

    - `responses`: 文字列のリスト（呼び出し順に消費）またはメッセージ列を受け取る関数
    - `call_count`: 呼び出し回数（テスト内で検証可能）
    - `last_messages`: 最後に受け取ったメッセージリスト
    - `calls`: 全呼び出しのメッセージリスト
    """

    def __init__(
        self,
        responses: Optional[Union[List[str], Responder]] = None,
        default: str = "",
    ):
        config = LLMProviderConfig(provider=ProviderType.OPENAI, model="mock-gpt-test")
        super().__init__(config)
        self._responses = responses
        self._default = default
        self.call_count: int = 0
        self.last_messages: List[Dict[str, str]] = []
        self.calls: List[List[Dict[str, str]]] = []

    @property
    def provider_type(self) -> ProviderType:
        return ProviderType.OPENAI

    async def initialize(self) -> None:
        """初期化は no-op"""
        self._initialized = True

    async def generate_text(
        self,
        messages: List[Dict[str, str]],
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> LLMResponse:
        self.call_count += 1
        self.last_messages = messages
        self.calls.append(messages)

        if callable(self._responses):
            content = self._responses(messages)
        elif self._responses:
            content = self._responses.pop(0)
        else:
            content = self._default

        return LLMResponse(
            content=content,
            model="mock-gpt-test",
            provider=ProviderType.OPENAI,
            usage=dict(MOCK_USAGE),
        )


# =============================================================================
# MockEmbeddingProvider
# =============================================================================

class MockEmbeddingProvider(EmbeddingProvider):
    """
    テキスト → ベクトルの関数で埋め込みを返すテスト専用 EmbeddingProvider。

    - `fail=True` の場合はプロバイダー失敗（None）を返す
    - `batches`: 呼び出しごとの入力テキスト
    """

    def __init__(
        self,
        embed_fn: Optional[Callable[[str], List[float]]] = None,
        dimensions: int = 3,
        fail: bool = False,
    ):
        super().__init__(
            EmbeddingProviderConfig(
                provider=ProviderType.OPENAI,
                model="mock-embedding",
                dimensions=dimensions,
            )
        )
        self._embed_fn = embed_fn or (lambda text: [1.0] + [0.0] * (dimensions - 1))
        self._fail = fail
        self.batches: List[List[str]] = []

    @property
    def provider_type(self) -> ProviderType:
        return ProviderType.OPENAI

    @property
    def vector_size(self) -> int:
        return self.config.dimensions or 3

    async def initialize(self) -> None:
        self._initialized = True

    async def embed_texts(self, texts: List[str]) -> Optional[EmbeddingResponse]:
        self.batches.append(list(texts))
        if self._fail:
            return None
        return EmbeddingResponse(
            embeddings=[self._embed_fn(t) for t in texts],
            prompt_tokens=len(texts),
            total_tokens=len(texts),
        )


# =============================================================================
# プリセットレスポンス
# =============================================================================

PERSONALITY_PRESETS: Dict[str, Dict[str, Any]] = {
    "balanced": {
        "scores": {
            "formal": 40,
            "technical": 70,
            "provocative": 20,
            "thoughtLeader": 55,
            "commentator": 45,
            "curator": 30,
            "promoter": 15,
        },
        "values": ["open-source advocacy", "data-driven investing"],
        "summary": "A technical writer who shares measured analysis.",
    },
    "provocative": {
        "scores": {
            "formal": 40,
            "technical": 70,
            "provocative": 60,
            "thoughtLeader": 55,
            "commentator": 45,
            "curator": 30,
            "promoter": 15,
        },
        "values": ["contrarian takes"],
        "summary": "Increasingly combative commentary on tech news.",
    },
}

_NUMBERED_LINE = re.compile(r"^\d+\. ", re.MULTILINE)


def make_responder(
    label: Union[str, Callable[[str], str]] = "Test Topic",
    sentiment: str = "N",
    personality: Optional[Dict[str, Any]] = None,
    explanation: str = "The account changed noticeably.",
) -> Responder:
    """
    システムプロンプトで呼び出し元を判別して応答するレスポンダーを作る

    label に関数を渡すと、ユーザーメッセージを受け取ってラベルを返す。
    """
    personality = personality or PERSONALITY_PRESETS["balanced"]

    def _respond(messages: List[Dict[str, str]]) -> str:
        system = messages[0]["content"]
        user = messages[-1]["content"]
        if system == LABEL_SYSTEM_PROMPT:
            return label(user) if callable(label) else label
        if system == SENTIMENT_SYSTEM_PROMPT:
            count = len(_NUMBERED_LINE.findall(user))
            return "\n".join([sentiment] * count)
        if system == PERSONALITY_SYSTEM_PROMPT:
            return json.dumps(personality)
        if system == EXPLANATION_SYSTEM_PROMPT:
            return explanation
        return ""

    return _respond


def unit(index: int, dimensions: int = 5) -> List[float]:
    """index 番目だけ 1.0 の基底ベクトル"""
    vector = [0.0] * dimensions
    vector[index] = 1.0
    return vector


def normalize(vector: Sequence[float]) -> List[float]:
    norm = math.sqrt(sum(v * v for v in vector))
    return [v / norm for v in vector]


# =============================================================================
# フィクスチャ
# =============================================================================

@pytest.fixture
def mock_llm():
    return MockLLMProvider(make_responder())


@pytest.fixture
def mock_embedding():
    return MockEmbeddingProvider()


@pytest.fixture
def providers(mock_llm, mock_embedding):
    return Providers(chat=mock_llm, embedding=mock_embedding)


@pytest_asyncio.fixture
async def db_session():
    """テストごとに作り直すインメモリ SQLite セッション"""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session_maker = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with session_maker() as session:
        yield session

    await engine.dispose()


# =============================================================================
# シードヘルパー
# =============================================================================

async def seed_account(session: AsyncSession, handle: str = "alice", **kwargs: Any) -> Account:
    account = Account(handle=handle, **kwargs)
    session.add(account)
    await session.commit()
    return account


async def seed_tweets(
    session: AsyncSession,
    account_id: str,
    tweets: Sequence[Dict[str, Any]],
) -> List[Tweet]:
    """
    tweets: {"id", "text", "tweet_created_at", ...} の辞書のリスト
    """
    rows = [Tweet(account_id=account_id, **t) for t in tweets]
    session.add_all(rows)
    await session.commit()
    return rows
