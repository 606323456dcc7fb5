"""
TopicLabeler の単体テスト

ラベル生成（最大5サンプル）と感情分布（20件ずつのバッチ）を検証する。
"""
import pytest

from app.core.llm import Providers
from app.schemas.profile import default_sentiment
from app.services.analysis.topic_labeler import (
    FALLBACK_LABEL,
    LABEL_SYSTEM_PROMPT,
    SENTIMENT_SYSTEM_PROMPT,
    TopicLabeler,
)
from app.services.token_tracker import get_total_tokens
from tests.conftest import MockEmbeddingProvider, MockLLMProvider


def _labeler(llm: MockLLMProvider, session) -> TopicLabeler:
    return TopicLabeler(Providers(chat=llm, embedding=MockEmbeddingProvider()), session)


class TestLabel:

    @pytest.mark.asyncio
    async def test_strips_label(self, db_session):
        llm = MockLLMProvider(["  Rust Tooling \n"])
        label = await _labeler(llm, db_session).label(["cargo is great", "borrowck"])

        assert label == "Rust Tooling"
        assert llm.last_messages[0]["content"] == LABEL_SYSTEM_PROMPT

    @pytest.mark.asyncio
    async def test_uses_at_most_five_samples(self, db_session):
        llm = MockLLMProvider(["Label"])
        await _labeler(llm, db_session).label([f"sample {i}" for i in range(8)])

        prompt = llm.last_messages[1]["content"]
        assert "5. sample 4" in prompt
        assert "sample 5" not in prompt

    @pytest.mark.asyncio
    async def test_blank_label_falls_back(self, db_session):
        llm = MockLLMProvider(["   "])
        assert await _labeler(llm, db_session).label(["x"]) == FALLBACK_LABEL

    @pytest.mark.asyncio
    async def test_no_samples_skips_provider(self, db_session):
        llm = MockLLMProvider(["unused"])
        assert await _labeler(llm, db_session).label([]) == FALLBACK_LABEL
        assert llm.call_count == 0

    @pytest.mark.asyncio
    async def test_provider_error_propagates(self, db_session):
        def _boom(messages):
            raise RuntimeError("provider down")

        with pytest.raises(RuntimeError):
            await _labeler(MockLLMProvider(_boom), db_session).label(["x"])


class TestSentiment:

    @pytest.mark.asyncio
    async def test_counts_letters(self, db_session):
        llm = MockLLMProvider(["P\nN\nX\np"])
        sentiment = await _labeler(llm, db_session).sentiment(["a", "b", "c", "d"])

        assert llm.last_messages[0]["content"] == SENTIMENT_SYSTEM_PROMPT
        assert sentiment.positive == pytest.approx(0.5)
        assert sentiment.neutral == pytest.approx(0.25)
        assert sentiment.negative == pytest.approx(0.25)

    @pytest.mark.asyncio
    async def test_batches_of_twenty(self, db_session):
        """25件は 20件 + 5件 の2回"""
        llm = MockLLMProvider(["\n".join(["P"] * 20), "\n".join(["X"] * 5)])
        sentiment = await _labeler(llm, db_session).sentiment([f"t{i}" for i in range(25)])

        assert llm.call_count == 2
        assert sentiment.positive == pytest.approx(0.8)
        assert sentiment.negative == pytest.approx(0.2)
        assert sentiment.neutral == pytest.approx(0.0)

    @pytest.mark.asyncio
    async def test_missing_lines_count_as_neutral(self, db_session):
        llm = MockLLMProvider(["P"])
        sentiment = await _labeler(llm, db_session).sentiment(["a", "b", "c", "d"])

        assert sentiment.positive == pytest.approx(0.25)
        assert sentiment.neutral == pytest.approx(0.75)

    @pytest.mark.asyncio
    async def test_extra_lines_are_ignored(self, db_session):
        llm = MockLLMProvider(["N\nP\nP\nP"])
        sentiment = await _labeler(llm, db_session).sentiment(["a", "b"])

        assert sentiment.positive == pytest.approx(0.5)
        assert sentiment.neutral == pytest.approx(0.5)

    @pytest.mark.asyncio
    async def test_empty_input_returns_default(self, db_session):
        llm = MockLLMProvider()
        assert await _labeler(llm, db_session).sentiment([]) == default_sentiment()
        assert llm.call_count == 0

    @pytest.mark.asyncio
    async def test_records_token_usage(self, db_session):
        llm = MockLLMProvider(["P\nP"])
        await _labeler(llm, db_session).sentiment(["a", "b"])
        await db_session.flush()

        assert await get_total_tokens(db_session, "sentiment") == 15
