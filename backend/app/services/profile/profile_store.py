"""
TRENDX - Profile Store
AccountProfile と周辺テーブルへの読み書きアダプタ

JSON列のシリアライズ/デシリアライズはこのモジュールだけで行い、
エンジン側には ProfileData などの型付きモデルのみを返す。
"""
import logging
from typing import Any, Dict, List, Optional, Sequence, Set

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.base import unix_now
from app.models.account import Account
from app.models.account_profile import AccountProfile
from app.models.tweet import Tweet
from app.schemas.profile import (
    ActivityMetrics,
    Personality,
    ProfileData,
    ProfileTopic,
    StoredTweet,
)
from app.services.errors import AccountNotFoundError, ProfileNotFoundError

logger = logging.getLogger(__name__)

_UNSET: Any = object()  # sentinel: 「更新しない」を None（値を消す）と区別するため


def _dump(model: Any) -> Any:
    if model is None:
        return None
    return model.model_dump(mode="json", by_alias=True)


def _to_profile_data(row: AccountProfile) -> ProfileData:
    return ProfileData(
        account_id=row.account_id,
        topics=[ProfileTopic.model_validate(t) for t in (row.topics or [])],
        personality=Personality.model_validate(row.personality) if row.personality else None,
        personality_baseline=(
            Personality.model_validate(row.personality_baseline)
            if row.personality_baseline
            else None
        ),
        activity_metrics=(
            ActivityMetrics.model_validate(row.activity_metrics)
            if row.activity_metrics
            else None
        ),
        total_tweets_processed=row.total_tweets_processed,
        last_personality_eval_at=row.last_personality_eval_at,
        last_updated_at=row.last_updated_at,
    )


def _to_stored_tweet(row: Tweet) -> StoredTweet:
    return StoredTweet(
        id=row.id,
        text=row.text,
        tweet_created_at=row.tweet_created_at,
        is_reply=row.is_reply,
        is_retweet=row.is_retweet,
        is_quote_tweet=row.is_quote_tweet,
        raw_json=row.raw_json,
    )


class ProfileStore:
    """1セッションに紐づくストアアダプタ。コミットは呼び出し側が行う"""

    def __init__(self, session: AsyncSession):
        self.session = session

    # ── アカウント ──

    async def require_account(self, account_id: str) -> Account:
        account = await self.session.get(Account, account_id)
        if account is None:
            raise AccountNotFoundError(account_id)
        return account

    async def list_monitored_handles(self) -> Set[str]:
        """監視中アカウントのハンドル（小文字・@なし）"""
        result = await self.session.execute(
            select(Account.handle).where(Account.is_active.is_(True))
        )
        return {handle.lstrip("@").lower() for handle in result.scalars().all()}

    async def list_active_account_ids(self) -> List[str]:
        result = await self.session.execute(
            select(Account.id).where(Account.is_active.is_(True)).order_by(Account.created_at)
        )
        return list(result.scalars().all())

    # ── プロファイル ──

    async def _get_row(self, account_id: str) -> Optional[AccountProfile]:
        return await self.session.get(AccountProfile, account_id)

    async def get_profile(self, account_id: str) -> Optional[ProfileData]:
        row = await self._get_row(account_id)
        return _to_profile_data(row) if row else None

    async def get_or_create_profile(self, account_id: str) -> ProfileData:
        """
        プロファイルを取得し、無ければ空の状態で作成する

        last_updated_at=0 で作成するため、初回実行では全履歴が処理対象になる。
        """
        row = await self._get_row(account_id)
        if row is None:
            row = AccountProfile(
                account_id=account_id,
                topics=[],
                total_tweets_processed=0,
                last_updated_at=0,
            )
            self.session.add(row)
            await self.session.flush()
            logger.info("Created empty profile for account %s", account_id)
        return _to_profile_data(row)

    async def update_profile(
        self,
        account_id: str,
        *,
        topics: Any = _UNSET,
        personality: Any = _UNSET,
        personality_baseline: Any = _UNSET,
        activity_metrics: Any = _UNSET,
        total_tweets_processed: Any = _UNSET,
        last_personality_eval_at: Any = _UNSET,
        now: Optional[int] = None,
    ) -> ProfileData:
        """
        指定されたフィールドだけを更新する（last_updated_at は常に現在時刻）

        personality_baseline は一度設定されたら上書きしない。

        Raises:
            ProfileNotFoundError: プロファイル行が存在しない
        """
        row = await self._get_row(account_id)
        if row is None:
            raise ProfileNotFoundError(account_id)

        if topics is not _UNSET:
            row.topics = [_dump(t) for t in topics]
        if personality is not _UNSET:
            row.personality = _dump(personality)
        if personality_baseline is not _UNSET:
            if row.personality_baseline is not None:
                logger.warning(
                    "Ignoring personality baseline overwrite for account %s", account_id
                )
            else:
                row.personality_baseline = _dump(personality_baseline)
        if activity_metrics is not _UNSET:
            row.activity_metrics = _dump(activity_metrics)
        if total_tweets_processed is not _UNSET:
            row.total_tweets_processed = total_tweets_processed
        if last_personality_eval_at is not _UNSET:
            row.last_personality_eval_at = last_personality_eval_at

        row.last_updated_at = now if now is not None else unix_now()
        await self.session.flush()
        return _to_profile_data(row)

    # ── ツイート ──

    async def fetch_tweets_since(self, account_id: str, since: int) -> List[StoredTweet]:
        """since より後に投稿されたツイート（新しい順）"""
        result = await self.session.execute(
            select(Tweet)
            .where(Tweet.account_id == account_id, Tweet.tweet_created_at > since)
            .order_by(Tweet.tweet_created_at.desc())
        )
        return [_to_stored_tweet(t) for t in result.scalars().all()]

    async def fetch_recent_tweets(self, account_id: str, limit: int) -> List[StoredTweet]:
        """最新 limit 件（新しい順）"""
        result = await self.session.execute(
            select(Tweet)
            .where(Tweet.account_id == account_id)
            .order_by(Tweet.tweet_created_at.desc())
            .limit(limit)
        )
        return [_to_stored_tweet(t) for t in result.scalars().all()]

    async def fetch_tweet_timestamps(self, account_id: str) -> List[int]:
        """全履歴の投稿時刻（古い順）"""
        result = await self.session.execute(
            select(Tweet.tweet_created_at)
            .where(Tweet.account_id == account_id)
            .order_by(Tweet.tweet_created_at.asc())
        )
        return list(result.scalars().all())

    async def fetch_tweet_texts(self, tweet_ids: Sequence[str]) -> Dict[str, str]:
        """ID → 本文。存在しないIDは含まれない"""
        if not tweet_ids:
            return {}
        result = await self.session.execute(
            select(Tweet.id, Tweet.text).where(Tweet.id.in_(list(tweet_ids)))
        )
        return {tweet_id: text for tweet_id, text in result.all()}
