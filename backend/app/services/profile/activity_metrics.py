"""
TRENDX - Activity Metrics
全履歴の投稿時刻から1日あたり投稿数と最長無投稿時間を算出する

増分ではなく毎回全履歴から再計算する。
"""
import math
from typing import Optional, Sequence

from app.db.base import unix_now
from app.schemas.profile import ActivityMetrics
from app.services.profile.profile_store import ProfileStore

SECONDS_PER_DAY = 24 * 60 * 60
SECONDS_PER_HOUR = 60 * 60


def _round_half_up(value: float, digits: int) -> float:
    factor = 10 ** digits
    return math.floor(value * factor + 0.5) / factor


def calculate_activity_metrics(timestamps: Sequence[int], now: int) -> ActivityMetrics:
    """
    Args:
        timestamps: 投稿時刻（UNIX秒、古い順）
        now: 基準時刻

    Returns:
        tweets_per_day は小数2桁、max_silence_hours は小数1桁に丸めた値。
        最長無投稿時間には「最新ツイートから現在まで」の間隔も含める。
    """
    if not timestamps:
        return ActivityMetrics(
            tweets_per_day=0.0,
            max_silence_hours=0.0,
            window_start=now,
            window_end=now,
            tweet_count=0,
        )

    oldest = timestamps[0]
    span_days = max(1.0, (now - oldest) / SECONDS_PER_DAY)
    tweets_per_day = _round_half_up(len(timestamps) / span_days, 2)

    max_gap = 0
    for previous, current in zip(timestamps, timestamps[1:]):
        max_gap = max(max_gap, current - previous)
    max_gap = max(max_gap, now - timestamps[-1])

    return ActivityMetrics(
        tweets_per_day=tweets_per_day,
        max_silence_hours=_round_half_up(max_gap / SECONDS_PER_HOUR, 1),
        window_start=oldest,
        window_end=now,
        tweet_count=len(timestamps),
    )


async def get_activity_metrics(
    store: ProfileStore,
    account_id: str,
    now: Optional[int] = None,
) -> ActivityMetrics:
    """ストアから全履歴を読み出して活動量を計算する"""
    timestamps = await store.fetch_tweet_timestamps(account_id)
    return calculate_activity_metrics(timestamps, now if now is not None else unix_now())
