"""
TRENDX - Drift Buffer
既存トピックに一致しなかった (tweet_id, embedding) の一時置き場
"""
from typing import List, Optional, Sequence

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.base import unix_now
from app.models.topic_drift_buffer import TopicDriftBuffer
from app.schemas.profile import DriftBufferEntry

# この件数に達した時点で再クラスタリングを行う
DRIFT_BUFFER_THRESHOLD = 50


class DriftBuffer:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def add(
        self,
        account_id: str,
        tweet_id: str,
        embedding: Sequence[float],
        now: Optional[int] = None,
    ) -> None:
        self.session.add(
            TopicDriftBuffer(
                account_id=account_id,
                tweet_id=tweet_id,
                embedding=list(embedding),
                added_at=now if now is not None else unix_now(),
            )
        )

    async def count(self, account_id: str) -> int:
        await self.session.flush()
        result = await self.session.execute(
            select(func.count())
            .select_from(TopicDriftBuffer)
            .where(TopicDriftBuffer.account_id == account_id)
        )
        return int(result.scalar_one())

    async def load(self, account_id: str) -> List[DriftBufferEntry]:
        """追加順に全件を返す"""
        await self.session.flush()
        result = await self.session.execute(
            select(TopicDriftBuffer)
            .where(TopicDriftBuffer.account_id == account_id)
            .order_by(TopicDriftBuffer.added_at.asc(), TopicDriftBuffer.tweet_id.asc())
        )
        return [
            DriftBufferEntry(tweet_id=row.tweet_id, embedding=row.embedding, added_at=row.added_at)
            for row in result.scalars().all()
        ]

    async def clear(self, account_id: str) -> int:
        """アカウントのバッファを一括削除し、削除件数を返す"""
        result = await self.session.execute(
            delete(TopicDriftBuffer).where(TopicDriftBuffer.account_id == account_id)
        )
        return result.rowcount or 0

    async def is_full(self, account_id: str) -> bool:
        return await self.count(account_id) >= DRIFT_BUFFER_THRESHOLD
