"""
IncrementalClassifier の単体テスト

- ブートストラップ（トピック0件）
- 類似度 >= 0.75 の割り当てと重心の逐次更新
- ドリフトバッファ（50件で再クラスタリング）
"""
import math

import pytest

from app.models.profile_activity_log import ProfileActionType
from app.schemas.profile import ProfileTopic, TweetForClassification
from app.services.errors import DimensionMismatchError
from app.services.profile.activity_log import get_recent_activity
from app.services.profile.drift_buffer import DRIFT_BUFFER_THRESHOLD, DriftBuffer
from app.services.profile.incremental_classifier import (
    IncrementalClassifier,
    find_best_topic,
    renormalize_proportions,
    update_centroid,
)
from app.services.profile.profile_store import ProfileStore
from tests.conftest import DAY, NOW, normalize, seed_account, unit


def _tweet(tweet_id: str, embedding, created_at: int = NOW - DAY, is_reply: bool = False):
    return TweetForClassification(
        id=tweet_id,
        text=f"text of {tweet_id}",
        embedding=embedding,
        tweet_created_at=created_at,
        is_reply=is_reply,
    )


def _topic(topic_id: str, centroid, tweet_count: int) -> ProfileTopic:
    return ProfileTopic(
        id=topic_id,
        label=f"Topic {topic_id}",
        centroid=centroid,
        proportion=0.0,
        tweet_count=tweet_count,
    )


async def _seed_topics(session, account_id: str, topics):
    store = ProfileStore(session)
    await store.get_or_create_profile(account_id)
    await store.update_profile(account_id, topics=renormalize_proportions(topics), now=NOW - DAY)
    await session.commit()


# ================================================================
# 純粋関数
# ================================================================

class TestPureFunctions:

    def test_update_centroid_running_mean(self):
        assert update_centroid([1.0, 0.0], [0.0, 1.0], tweet_count=1) == pytest.approx([0.5, 0.5])
        assert update_centroid([1.0, 0.0], [0.0, 1.0], tweet_count=3) == pytest.approx([0.75, 0.25])

    def test_find_best_topic_ties_keep_first(self):
        topics = [_topic("a", [1.0, 0.0], 1), _topic("b", [1.0, 0.0], 1)]
        idx, similarity = find_best_topic([1.0, 0.0], topics)
        assert idx == 0
        assert similarity == pytest.approx(1.0)

    def test_find_best_topic_no_topics(self):
        assert find_best_topic([1.0, 0.0], []) == (-1, 0.0)

    def test_find_best_topic_dimension_mismatch(self):
        with pytest.raises(DimensionMismatchError):
            find_best_topic([1.0, 0.0, 0.0], [_topic("a", [1.0, 0.0], 1)])

    def test_renormalize_proportions(self):
        topics = renormalize_proportions([_topic("a", [1.0], 3), _topic("b", [1.0], 1)])
        assert [t.proportion for t in topics] == pytest.approx([0.75, 0.25])


# ================================================================
# ブートストラップ
# ================================================================

class TestBootstrap:

    @pytest.mark.asyncio
    async def test_bootstrap_creates_topics(self, db_session, providers, mock_llm):
        account = await seed_account(db_session)
        tweets = [_tweet(f"t{i}", unit(i % 3, 3)) for i in range(9)]

        result = await IncrementalClassifier(db_session, providers).classify(
            account.id, tweets, now=NOW
        )

        assert result.bootstrapped is True
        assert len(result.new_topics) == 3
        assert len(result.matched) == 9
        assert result.drifted == []

        profile = await ProfileStore(db_session).get_profile(account.id)
        assert len(profile.topics) == 3
        assert sum(t.proportion for t in profile.topics) == pytest.approx(1.0)
        assert all(t.label == "Test Topic" for t in profile.topics)
        assert profile.total_tweets_processed == 9
        assert profile.last_updated_at == NOW

        # クラスタごとに label + sentiment の2回
        assert mock_llm.call_count == 6

        logs = await get_recent_activity(db_session, account.id)
        assert logs[0].action_type == ProfileActionType.TOPICS_BOOTSTRAPPED.value

    @pytest.mark.asyncio
    async def test_bootstrap_dimension_mismatch(self, db_session, providers):
        account = await seed_account(db_session)
        tweets = [_tweet("a", [1.0, 0.0]), _tweet("b", [1.0, 0.0, 0.0])]

        with pytest.raises(DimensionMismatchError):
            await IncrementalClassifier(db_session, providers).classify(account.id, tweets, now=NOW)

    @pytest.mark.asyncio
    async def test_empty_batch_is_noop(self, db_session, providers):
        account = await seed_account(db_session)
        result = await IncrementalClassifier(db_session, providers).classify(account.id, [], now=NOW)

        assert result.matched == []
        assert result.bootstrapped is False
        assert await ProfileStore(db_session).get_profile(account.id) is None


# ================================================================
# 逐次分類
# ================================================================

class TestIncrementalAssignment:

    @pytest.mark.asyncio
    async def test_match_updates_centroid_and_count(self, db_session, providers):
        """類似度 0.76 のツイートは A に割り当てられ、A の重心だけが動く"""

        account = await seed_account(db_session)
        await _seed_topics(
            db_session,
            account.id,
            [_topic("A", [1.0, 0.0, 0.0], 4), _topic("B", [0.0, 1.0, 0.0], 4)],
        )
        embedding = [0.76, 0.0, math.sqrt(1 - 0.76 ** 2)]

        result = await IncrementalClassifier(db_session, providers).classify(
            account.id, [_tweet("e", embedding)], now=NOW
        )

        assert [m.topic_id for m in result.matched] == ["A"]
        assert result.matched[0].similarity == pytest.approx(0.76)

        profile = await ProfileStore(db_session).get_profile(account.id)
        topic_a, topic_b = profile.topics
        assert topic_a.centroid == pytest.approx([0.8 + 0.2 * 0.76, 0.0, 0.2 * embedding[2]])
        assert topic_a.tweet_count == 5
        assert topic_b.centroid == [0.0, 1.0, 0.0]
        assert topic_b.tweet_count == 4
        assert topic_a.proportion == pytest.approx(5 / 9)
        assert profile.total_tweets_processed == 1

    @pytest.mark.asyncio
    async def test_below_threshold_goes_to_drift_buffer(self, db_session, providers):
        account = await seed_account(db_session)
        await _seed_topics(db_session, account.id, [_topic("A", [1.0, 0.0, 0.0], 2)])
        embedding = [0.74, math.sqrt(1 - 0.74 ** 2), 0.0]

        result = await IncrementalClassifier(db_session, providers).classify(
            account.id, [_tweet("d", embedding)], now=NOW
        )

        assert result.matched == []
        assert result.drifted == ["d"]
        assert await DriftBuffer(db_session).count(account.id) == 1

        profile = await ProfileStore(db_session).get_profile(account.id)
        assert profile.topics[0].tweet_count == 2

    @pytest.mark.asyncio
    async def test_dimension_mismatch_with_existing_topics(self, db_session, providers):
        account = await seed_account(db_session)
        await _seed_topics(db_session, account.id, [_topic("A", [1.0, 0.0, 0.0], 2)])

        with pytest.raises(DimensionMismatchError):
            await IncrementalClassifier(db_session, providers).classify(
                account.id, [_tweet("x", [1.0, 0.0])], now=NOW
            )


# ================================================================
# ドリフトバッファ
# ================================================================

class TestDriftBuffer:

    @pytest.mark.asyncio
    async def test_recluster_only_when_buffer_reaches_threshold(self, db_session, providers):
        account = await seed_account(db_session)
        await _seed_topics(
            db_session,
            account.id,
            [_topic("A", [1.0, 0.0, 0.0], 10), _topic("B", [0.0, 1.0, 0.0], 10)],
        )

        buffer = DriftBuffer(db_session)
        for i in range(DRIFT_BUFFER_THRESHOLD - 2):
            vector = [0.0, 0.0, 1.0] if i % 2 == 0 else [0.0, 0.1, 1.0]
            await buffer.add(account.id, f"old{i}", vector, now=NOW - DAY)
        await db_session.commit()

        classifier = IncrementalClassifier(db_session, providers)

        result = await classifier.classify(account.id, [_tweet("d49", [0.0, 0.0, 1.0])], now=NOW)
        assert result.new_topics == []
        assert await buffer.count(account.id) == DRIFT_BUFFER_THRESHOLD - 1

        result = await classifier.classify(account.id, [_tweet("d50", [0.0, 0.0, 1.0])], now=NOW)
        assert len(result.new_topics) >= 1
        assert sum(t.tweet_count for t in result.new_topics) == DRIFT_BUFFER_THRESHOLD
        assert await buffer.count(account.id) == 0

        profile = await ProfileStore(db_session).get_profile(account.id)
        assert len(profile.topics) == 2 + len(result.new_topics)
        assert [t.id for t in profile.topics[:2]] == ["A", "B"]
        assert sum(t.proportion for t in profile.topics) == pytest.approx(1.0)

        actions = {log.action_type for log in await get_recent_activity(db_session, account.id)}
        assert ProfileActionType.DRIFT_BUFFER_PROCESSED.value in actions
        assert ProfileActionType.NEW_TOPIC_DETECTED.value in actions

    @pytest.mark.asyncio
    async def test_process_empty_buffer(self, db_session, providers):
        account = await seed_account(db_session)
        classifier = IncrementalClassifier(db_session, providers)
        assert await classifier.process_drift_buffer(account.id, now=NOW) == []


# ================================================================
# ブートストラップの加重重心
# ================================================================

class TestBootstrapWeighting:

    @pytest.mark.asyncio
    async def test_bootstrap_centroid_is_temporally_weighted(self, db_session, providers):
        """
        90日前のツイートは重み 0.5 で重心に寄与し、割合は件数比のまま

        a (重み1.0) と b (重み0.5) のクラスタ重心は
        (1.0 * a + 0.5 * b) / 1.5 = [14/15, 0.2, 0]（単純平均なら [0.9, 0.3, 0]）
        """
        account = await seed_account(db_session)
        tweets = [
            _tweet("a", [1.0, 0.0, 0.0], created_at=NOW),
            _tweet("b", [0.8, 0.6, 0.0], created_at=NOW - 90 * DAY),
            _tweet("c", [0.0, 0.0, 1.0], created_at=NOW),
            _tweet("d", [0.0, 0.0, 1.0], created_at=NOW),
        ]

        result = await IncrementalClassifier(db_session, providers).classify(
            account.id, tweets, now=NOW
        )

        topic_ids = {m.tweet_id: m.topic_id for m in result.matched}
        assert topic_ids["a"] == topic_ids["b"]
        assert topic_ids["c"] == topic_ids["d"]

        profile = await ProfileStore(db_session).get_profile(account.id)
        topics = {t.id: t for t in profile.topics}
        weighted = topics[topic_ids["a"]]
        assert weighted.centroid == pytest.approx([14 / 15, 0.2, 0.0])
        assert weighted.tweet_count == 2
        assert weighted.proportion == pytest.approx(0.5)
        assert topics[topic_ids["c"]].centroid == pytest.approx([0.0, 0.0, 1.0])


class TestHighDimensionalMatching:

    def test_find_best_topic_on_embedding_sized_centroids(self):
        dims = 1536
        embedding = normalize([1.0] + [0.01] * (dims - 1))
        topics = [
            _topic("far", unit(dims - 1, dims), 3),
            _topic("near", unit(0, dims), 3),
            _topic("near-dup", unit(0, dims), 3),
        ]

        idx, similarity = find_best_topic(embedding, topics)

        assert idx == 1
        assert similarity == pytest.approx(embedding[0])

    def test_update_centroid_returns_plain_floats(self):
        updated = update_centroid(unit(0, 1536), unit(1, 1536), tweet_count=1)
        assert isinstance(updated, list)
        assert len(updated) == 1536
        assert all(isinstance(v, float) for v in updated)
        assert updated[:2] == pytest.approx([0.5, 0.5])
