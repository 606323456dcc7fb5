"""
TRENDX - Topic Labeler
クラスタのラベル生成と感情分布の推定（チャットプロバイダー経由）
"""
import logging
from typing import List

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.llm import Providers
from app.schemas.profile import TopicSentiment, default_sentiment
from app.services.token_tracker import record_chat_usage

logger = logging.getLogger(__name__)

FALLBACK_LABEL = "Uncategorized"
MAX_LABEL_SAMPLES = 5
SENTIMENT_BATCH_SIZE = 20


LABEL_SYSTEM_PROMPT = (
    "You are a topic labeling assistant. Given sample tweets from a cluster, "
    "generate a concise, specific label (1-5 words) that describes the main theme. "
    "Be specific rather than generic. Return ONLY the label, no explanation."
)

SENTIMENT_SYSTEM_PROMPT = (
    "You are a sentiment classifier. For each numbered tweet, respond with ONLY a single letter: "
    "P (positive), N (neutral), or X (negative). One letter per line, in order. No explanations."
)


def _numbered(texts: List[str]) -> str:
    return "\n".join(f"{i + 1}. {text}" for i, text in enumerate(texts))


class TopicLabeler:
    """
    トピックラベラー

    ブートストラップと再クラスタリングの両方から、クラスタごとに
    label → sentiment の順で呼ばれる。プロバイダーの失敗はそのまま送出する。
    """

    def __init__(self, providers: Providers, session: AsyncSession):
        self._providers = providers
        self._session = session

    async def label(self, sample_texts: List[str]) -> str:
        """
        サンプルツイート（先頭最大5件）から1〜5語のラベルを生成する

        Returns:
            前後の空白を除いたラベル（空なら "Uncategorized"）
        """
        samples = sample_texts[:MAX_LABEL_SAMPLES]
        if not samples:
            return FALLBACK_LABEL

        provider = self._providers.chat
        response = await provider.generate_text(
            messages=[
                {"role": "system", "content": LABEL_SYSTEM_PROMPT},
                {"role": "user", "content": f"Label this cluster of tweets:\n\n{_numbered(samples)}"},
            ],
        )
        record_chat_usage(self._session, "labeling", provider, response)

        return response.content.strip() or FALLBACK_LABEL

    async def sentiment(self, texts: List[str]) -> TopicSentiment:
        """
        クラスタ内ツイートを20件ずつ P/N/X に分類し、件数比を返す

        P で始まる行は positive、X で始まる行は negative、それ以外（N・欠落）は neutral。
        """
        if not texts:
            return default_sentiment()

        provider = self._providers.chat
        positive = 0
        negative = 0

        for start in range(0, len(texts), SENTIMENT_BATCH_SIZE):
            batch = texts[start:start + SENTIMENT_BATCH_SIZE]
            response = await provider.generate_text(
                messages=[
                    {"role": "system", "content": SENTIMENT_SYSTEM_PROMPT},
                    {"role": "user", "content": _numbered(batch)},
                ],
            )
            record_chat_usage(self._session, "sentiment", provider, response)

            lines = [line.strip().upper() for line in response.content.strip().splitlines()]
            for line in lines[:len(batch)]:
                if line.startswith("P"):
                    positive += 1
                elif line.startswith("X"):
                    negative += 1

        total = len(texts)
        neutral = total - positive - negative
        return TopicSentiment(
            positive=positive / total,
            neutral=neutral / total,
            negative=negative / total,
        )
