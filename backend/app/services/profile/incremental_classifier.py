"""
TRENDX - Incremental Classifier
新着ツイートを既存トピックへ逐次分類し、トピック重心をオンライン更新する

処理の流れ:
  1. トピックが0件のプロファイル → 全ツイートを直接クラスタリングしてブートストラップ
  2. それ以外 → ツイートごとに最も近いトピックを探し、類似度 >= 0.75 なら割り当て
  3. どのトピックにも一致しないツイートはドリフトバッファへ
  4. 保存後、ドリフトバッファが50件以上なら再クラスタリングして新トピックを追加
"""
import logging
import uuid
from typing import List, Optional, Sequence, Tuple

import numpy as np
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.llm import Providers
from app.db.base import unix_now
from app.models.profile_activity_log import ProfileActionType
from app.schemas.profile import (
    ClassificationResult,
    NewTopicSummary,
    ProfileTopic,
    TopicMatch,
    TweetForClassification,
)
from app.services.analysis.clusterer import Cluster, cluster_embeddings
from app.services.analysis.temporal_weighting import calculate_temporal_weight, centroid_similarities
from app.services.analysis.topic_labeler import TopicLabeler
from app.services.errors import DimensionMismatchError
from app.services.profile.activity_log import log_profile_activity
from app.services.profile.drift_buffer import DriftBuffer
from app.services.profile.profile_store import ProfileStore

logger = logging.getLogger(__name__)

SIMILARITY_THRESHOLD = 0.75

TEXT_UNAVAILABLE = "[text unavailable]"


# ────────────────────────────────────────
# 純粋関数
# ────────────────────────────────────────

def find_best_topic(
    embedding: Sequence[float],
    topics: Sequence[ProfileTopic],
) -> Tuple[int, float]:
    """
    最も類似度の高いトピックの (index, similarity) を返す

    同率の場合は先に走査したトピックを採用する。トピックが無い場合は (-1, 0.0)。

    Raises:
        DimensionMismatchError: 重心と埋め込みの次元数が異なる
    """
    if not topics:
        return -1, 0.0
    for topic in topics:
        if len(topic.centroid) != len(embedding):
            raise DimensionMismatchError(len(topic.centroid), len(embedding))

    similarities = centroid_similarities(embedding, [t.centroid for t in topics])
    # argmax は最初の最大値を返す
    best_idx = int(np.argmax(similarities))
    return best_idx, float(similarities[best_idx])


def update_centroid(
    centroid: Sequence[float],
    embedding: Sequence[float],
    tweet_count: int,
) -> List[float]:
    """逐次加重平均: (1 - 1/(n+1)) * 旧重心 + 1/(n+1) * 埋め込み（n は更新前の件数）"""
    weight = 1 / (tweet_count + 1)
    old = np.asarray(centroid, dtype=float)
    new = np.asarray(embedding, dtype=float)
    return ((1 - weight) * old + weight * new).tolist()


def renormalize_proportions(topics: List[ProfileTopic]) -> List[ProfileTopic]:
    """proportion = tweet_count / 全トピックの tweet_count 合計"""
    total = sum(t.tweet_count for t in topics)
    if total <= 0:
        return topics
    return [t.model_copy(update={"proportion": t.tweet_count / total}) for t in topics]


def _check_dimensions(embeddings: Sequence[Sequence[float]]) -> None:
    if not embeddings:
        return
    expected = len(embeddings[0])
    for embedding in embeddings:
        if len(embedding) != expected:
            raise DimensionMismatchError(expected, len(embedding))


# ────────────────────────────────────────
# 分類器
# ────────────────────────────────────────

class IncrementalClassifier:
    """
    インクリメンタル分類器

    1アカウントの処理は呼び出し側で直列化されている前提で、ロックは取らない。
    分類結果と再クラスタリング結果はそれぞれの段階でコミットする。
    """

    def __init__(
        self,
        session: AsyncSession,
        providers: Providers,
        labeler: Optional[TopicLabeler] = None,
    ):
        self.session = session
        self.store = ProfileStore(session)
        self.drift_buffer = DriftBuffer(session)
        self.labeler = labeler or TopicLabeler(providers, session)

    async def classify(
        self,
        account_id: str,
        tweets: List[TweetForClassification],
        now: Optional[int] = None,
    ) -> ClassificationResult:
        """
        ツイートのバッチを分類してプロファイルを更新する

        Args:
            account_id: 対象アカウント
            tweets: 埋め込み済みツイート（本文が空のものは呼び出し側で除外済み）
            now: 基準時刻（UNIX秒、省略時は現在時刻）

        Returns:
            ClassificationResult: 一致・ドリフト・新規トピックの内訳
        """
        if not tweets:
            return ClassificationResult()

        now = now if now is not None else unix_now()
        profile = await self.store.get_or_create_profile(account_id)

        if not profile.topics:
            return await self._bootstrap(account_id, profile.total_tweets_processed, tweets, now)

        topics = list(profile.topics)
        result = ClassificationResult()

        for tweet in tweets:
            best_idx, best_similarity = find_best_topic(tweet.embedding, topics)

            if best_idx >= 0 and best_similarity >= SIMILARITY_THRESHOLD:
                topic = topics[best_idx]
                topics[best_idx] = topic.model_copy(
                    update={
                        "centroid": update_centroid(topic.centroid, tweet.embedding, topic.tweet_count),
                        "tweet_count": topic.tweet_count + 1,
                    }
                )
                result.matched.append(
                    TopicMatch(tweet_id=tweet.id, topic_id=topic.id, similarity=best_similarity)
                )
            else:
                await self.drift_buffer.add(account_id, tweet.id, tweet.embedding, now=now)
                result.drifted.append(tweet.id)

        topics = renormalize_proportions(topics)
        await self.store.update_profile(
            account_id,
            topics=topics,
            total_tweets_processed=profile.total_tweets_processed + len(tweets),
            now=now,
        )

        breakdown: dict = {}
        labels = {t.id: t.label for t in topics}
        for match in result.matched:
            label = labels[match.topic_id]
            breakdown[label] = breakdown.get(label, 0) + 1

        log_profile_activity(
            self.session,
            account_id,
            ProfileActionType.TWEETS_CLASSIFIED,
            f"Classified {len(tweets)} tweets: {len(result.matched)} matched, "
            f"{len(result.drifted)} drifted",
            {
                "totalProcessed": len(tweets),
                "matched": len(result.matched),
                "drifted": len(result.drifted),
                "topicBreakdown": breakdown,
            },
        )
        await self.session.commit()

        if await self.drift_buffer.is_full(account_id):
            result.new_topics = await self.process_drift_buffer(account_id, now=now)

        return result

    async def _bootstrap(
        self,
        account_id: str,
        previous_total: int,
        tweets: List[TweetForClassification],
        now: int,
    ) -> ClassificationResult:
        """
        トピックが無いプロファイルの初回分類

        重心は時間減衰重み付きの平均、割合は件数比（以後の逐次更新と同じ定義）。
        """
        _check_dimensions([t.embedding for t in tweets])

        weights = [calculate_temporal_weight(t.tweet_created_at, now, t.is_reply) for t in tweets]
        clusters = cluster_embeddings([(t.id, t.embedding) for t in tweets], weights=weights)

        texts_by_id = {t.id: t.enriched_text or t.text for t in tweets}
        topics = await self._build_topics(clusters, texts_by_id)
        topics = renormalize_proportions(topics)

        await self.store.update_profile(
            account_id,
            topics=topics,
            total_tweets_processed=previous_total + len(tweets),
            now=now,
        )

        new_topics = [
            NewTopicSummary(id=t.id, label=t.label, tweet_count=t.tweet_count) for t in topics
        ]
        log_profile_activity(
            self.session,
            account_id,
            ProfileActionType.TOPICS_BOOTSTRAPPED,
            f"Bootstrapped {len(topics)} topics from {len(tweets)} tweets",
            {
                "tweetCount": len(tweets),
                "topicCount": len(topics),
                "labels": [t.label for t in topics],
            },
        )
        await self.session.commit()

        return ClassificationResult(
            matched=[
                TopicMatch(tweet_id=tweet_id, topic_id=topic.id, similarity=1.0)
                for topic, cluster in zip(topics, clusters)
                for tweet_id in cluster.member_ids
            ],
            bootstrapped=True,
            new_topics=new_topics,
        )

    async def _build_topics(
        self,
        clusters: List[Cluster],
        texts_by_id: dict,
    ) -> List[ProfileTopic]:
        """クラスタごとにラベルと感情分布を付けて新規トピックを作る（割合は仮の0）"""
        topics: List[ProfileTopic] = []
        for cluster in clusters:
            if cluster.size == 0:
                continue
            texts = [texts_by_id.get(tweet_id, TEXT_UNAVAILABLE) for tweet_id in cluster.member_ids]
            label = await self.labeler.label(texts)
            sentiment = await self.labeler.sentiment(texts)
            topics.append(
                ProfileTopic(
                    id=str(uuid.uuid4()),
                    label=label,
                    centroid=cluster.centroid,
                    proportion=0.0,
                    tweet_count=cluster.size,
                    sentiment=sentiment,
                )
            )
        return topics

    async def process_drift_buffer(
        self,
        account_id: str,
        now: Optional[int] = None,
    ) -> List[NewTopicSummary]:
        """
        ドリフトバッファを再クラスタリングし、新しいトピックとして追加する

        既存トピックへの統合は行わない。バッファの削除はトピックの書き込みと
        同じトランザクションでコミットするため、途中で失敗してもトピックが重複しない。

        Returns:
            作成されたトピックの (id, label, tweet_count)
        """
        entries = await self.drift_buffer.load(account_id)
        if not entries:
            return []

        _check_dimensions([e.embedding for e in entries])
        clusters = cluster_embeddings([(e.tweet_id, e.embedding) for e in entries])

        texts_by_id = await self.store.fetch_tweet_texts([e.tweet_id for e in entries])
        new_topics = await self._build_topics(clusters, texts_by_id)

        profile = await self.store.get_or_create_profile(account_id)
        if profile.topics and new_topics and len(profile.topics[0].centroid) != len(new_topics[0].centroid):
            raise DimensionMismatchError(len(profile.topics[0].centroid), len(new_topics[0].centroid))

        all_topics = renormalize_proportions(list(profile.topics) + new_topics)
        await self.store.update_profile(account_id, topics=all_topics, now=now)
        await self.drift_buffer.clear(account_id)

        summaries = [
            NewTopicSummary(id=t.id, label=t.label, tweet_count=t.tweet_count) for t in new_topics
        ]
        log_profile_activity(
            self.session,
            account_id,
            ProfileActionType.DRIFT_BUFFER_PROCESSED,
            f"Processed drift buffer: {len(entries)} tweets yielded {len(summaries)} new topics",
            {
                "bufferSize": len(entries),
                "newTopicCount": len(summaries),
                "newTopicLabels": [s.label for s in summaries],
            },
        )
        for summary in summaries:
            log_profile_activity(
                self.session,
                account_id,
                ProfileActionType.NEW_TOPIC_DETECTED,
                f'New topic detected: "{summary.label}" ({summary.tweet_count} tweets)',
                {"topicId": summary.id, "label": summary.label, "tweetCount": summary.tweet_count},
            )
        await self.session.commit()

        logger.info(
            "Re-clustered %d drifted tweets into %d new topics for account %s",
            len(entries), len(summaries), account_id,
        )
        return summaries
