"""
活動量計算の単体テスト
"""
import pytest

from app.services.profile.activity_metrics import calculate_activity_metrics, get_activity_metrics
from app.services.profile.profile_store import ProfileStore
from tests.conftest import DAY, HOUR, NOW, seed_account, seed_tweets


class TestCalculateActivityMetrics:

    def test_no_tweets(self):
        metrics = calculate_activity_metrics([], NOW)
        assert metrics.tweets_per_day == 0.0
        assert metrics.max_silence_hours == 0.0
        assert metrics.window_start == NOW
        assert metrics.window_end == NOW
        assert metrics.tweet_count == 0

    def test_rate_over_history(self):
        timestamps = [NOW - 10 * DAY, NOW - 9 * DAY, NOW - DAY]
        metrics = calculate_activity_metrics(timestamps, NOW)

        assert metrics.tweets_per_day == pytest.approx(0.3)
        assert metrics.max_silence_hours == pytest.approx(192.0)
        assert metrics.window_start == NOW - 10 * DAY
        assert metrics.tweet_count == 3

    def test_span_is_at_least_one_day(self):
        timestamps = [NOW - 2 * HOUR, NOW - HOUR, NOW]
        metrics = calculate_activity_metrics(timestamps, NOW)

        assert metrics.tweets_per_day == pytest.approx(3.0)
        assert metrics.max_silence_hours == pytest.approx(1.0)

    def test_silence_includes_gap_until_now(self):
        timestamps = [NOW - 3 * DAY - HOUR, NOW - 3 * DAY]
        metrics = calculate_activity_metrics(timestamps, NOW)
        assert metrics.max_silence_hours == pytest.approx(72.0)

    def test_rounding(self):
        """1日あたり投稿数は小数2桁、無投稿時間は小数1桁"""
        timestamps = [NOW - 3 * DAY, NOW - 2 * DAY + 20 * 60]
        metrics = calculate_activity_metrics(timestamps, NOW)

        assert metrics.tweets_per_day == pytest.approx(0.67)
        assert metrics.max_silence_hours == pytest.approx(47.7)


class TestGetActivityMetrics:

    @pytest.mark.asyncio
    async def test_reads_full_history(self, db_session):
        account = await seed_account(db_session)
        await seed_tweets(
            db_session,
            account.id,
            [{"id": str(i), "text": f"t{i}", "tweet_created_at": NOW - i * DAY} for i in range(1, 5)],
        )

        metrics = await get_activity_metrics(ProfileStore(db_session), account.id, now=NOW)
        assert metrics.tweet_count == 4
        assert metrics.tweets_per_day == pytest.approx(1.0)
        assert metrics.max_silence_hours == pytest.approx(24.0)
