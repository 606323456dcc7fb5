"""
TRENDX - Social Connection Store
フォロー/フォロワー一覧の保存・差分計算・スナップショット記録

接続は (account_id, user_id, direction) ごとに1行。消えた関係は削除せず
is_active=False にする（過去の属性は通知判定で参照する）。
"""
import logging
import uuid
from typing import Dict, Iterable, List, Optional, Sequence, Set, Tuple

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.base import unix_now
from app.models.social_connection import ConnectionDirection, SocialConnection, SocialSnapshot
from app.schemas.social import (
    ConnectionDiff,
    RemovedConnection,
    SocialConnectionData,
    SocialSnapshotResult,
)

logger = logging.getLogger(__name__)

FOLLOWING_SIDE = (ConnectionDirection.FOLLOWING, ConnectionDirection.MUTUAL)
FOLLOWER_SIDE = (ConnectionDirection.FOLLOWER, ConnectionDirection.MUTUAL)


def _unique_users(users: Iterable[SocialConnectionData]) -> List[SocialConnectionData]:
    """同じ user_id は最初の1件だけ残す"""
    seen: Set[str] = set()
    unique: List[SocialConnectionData] = []
    for user in users:
        if user.user_id in seen:
            continue
        seen.add(user.user_id)
        unique.append(user)
    return unique


def diff_connections(
    current: Sequence[SocialConnectionData],
    previous_ids: Set[str],
    previous_usernames: Optional[Dict[str, str]] = None,
) -> ConnectionDiff:
    """
    今回の一覧と前回のアクティブID集合を比較する

    added は今回の並び順、removed のユーザー名は保存済みの値から補う。
    """
    previous_usernames = previous_usernames or {}
    current_ids = {u.user_id for u in current}

    added = [u for u in current if u.user_id not in previous_ids]
    removed = [
        RemovedConnection(user_id=user_id, username=previous_usernames.get(user_id, ""))
        for user_id in sorted(previous_ids - current_ids)
    ]
    return ConnectionDiff(added=added, removed=removed)


class ConnectionStore:
    """ソーシャルグラフのストアアダプタ"""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def _load_rows(self, account_id: str) -> Dict[Tuple[str, str], SocialConnection]:
        result = await self.session.execute(
            select(SocialConnection).where(SocialConnection.account_id == account_id)
        )
        return {(row.user_id, row.direction): row for row in result.scalars().all()}

    async def active_user_ids(
        self,
        account_id: str,
        directions: Sequence[ConnectionDirection],
    ) -> Set[str]:
        """指定した向きのいずれかでアクティブな相手の user_id"""
        result = await self.session.execute(
            select(SocialConnection.user_id).where(
                SocialConnection.account_id == account_id,
                SocialConnection.is_active.is_(True),
                SocialConnection.direction.in_([d.value for d in directions]),
            )
        )
        return set(result.scalars().all())

    async def get_connection(
        self,
        account_id: str,
        user_id: str,
        direction: Optional[ConnectionDirection] = None,
    ) -> Optional[SocialConnection]:
        """保存済みの接続行（非アクティブも含む）"""
        stmt = select(SocialConnection).where(
            SocialConnection.account_id == account_id,
            SocialConnection.user_id == user_id,
        )
        if direction is not None:
            stmt = stmt.where(SocialConnection.direction == direction.value)
        result = await self.session.execute(stmt.limit(1))
        return result.scalars().first()

    async def get_latest_snapshot(self, account_id: str) -> Optional[SocialSnapshot]:
        result = await self.session.execute(
            select(SocialSnapshot)
            .where(SocialSnapshot.account_id == account_id)
            .order_by(SocialSnapshot.created_at.desc())
            .limit(1)
        )
        return result.scalars().first()

    async def get_connection_stats(self, account_id: str) -> Dict[str, int]:
        """向きごとのアクティブ件数"""
        result = await self.session.execute(
            select(SocialConnection.direction).where(
                SocialConnection.account_id == account_id,
                SocialConnection.is_active.is_(True),
            )
        )
        stats = {d.value: 0 for d in ConnectionDirection}
        for direction in result.scalars().all():
            stats[direction] = stats.get(direction, 0) + 1
        return stats

    async def record_snapshot(
        self,
        account_id: str,
        following: Sequence[SocialConnectionData],
        followers: Sequence[SocialConnectionData],
        now: Optional[int] = None,
    ) -> SocialSnapshotResult:
        """
        今回の一覧を保存し、前回との差分とスナップショットを記録する

        1. アクティブな接続から前回のフォロー/フォロワー集合を作る
        2. 差分を計算する
        3. 今回の全ユーザーを向きごとに upsert（相互フォローは mutual 行も）
        4. 消えた関係と相互でなくなった mutual 行を非アクティブ化
        5. social_snapshots に1行追加してコミット
        """
        now = now if now is not None else unix_now()
        following = _unique_users(following)
        followers = _unique_users(followers)

        rows = await self._load_rows(account_id)

        known_following: Set[str] = set()
        known_followers: Set[str] = set()
        previous_usernames: Dict[str, str] = {}
        for (user_id, direction), row in rows.items():
            if not row.is_active:
                continue
            previous_usernames[user_id] = row.username
            if direction in (d.value for d in FOLLOWING_SIDE):
                known_following.add(user_id)
            if direction in (d.value for d in FOLLOWER_SIDE):
                known_followers.add(user_id)

        following_ids = {u.user_id for u in following}
        follower_ids = {u.user_id for u in followers}
        mutual_ids = following_ids & follower_ids

        following_diff = diff_connections(following, known_following, previous_usernames)
        followers_diff = diff_connections(followers, known_followers, previous_usernames)

        for user in following:
            self._upsert(rows, account_id, user, ConnectionDirection.FOLLOWING, now)
            if user.user_id in mutual_ids:
                self._upsert(rows, account_id, user, ConnectionDirection.MUTUAL, now)
        for user in followers:
            self._upsert(rows, account_id, user, ConnectionDirection.FOLLOWER, now)

        deactivated = 0
        for (user_id, direction), row in rows.items():
            if not row.is_active:
                continue
            still_present = (
                (direction == ConnectionDirection.FOLLOWING.value and user_id in following_ids)
                or (direction == ConnectionDirection.FOLLOWER.value and user_id in follower_ids)
                or (direction == ConnectionDirection.MUTUAL.value and user_id in mutual_ids)
            )
            if not still_present:
                row.is_active = False
                row.deactivated_at = now
                deactivated += 1

        snapshot = SocialSnapshot(
            id=str(uuid.uuid4()),
            account_id=account_id,
            following_count=len(following_ids),
            follower_count=len(follower_ids),
            mutual_count=len(mutual_ids),
            following_added=len(following_diff.added),
            following_removed=len(following_diff.removed),
            followers_added=len(followers_diff.added),
            followers_removed=len(followers_diff.removed),
            created_at=now,
        )
        self.session.add(snapshot)
        await self.session.commit()

        logger.info(
            "Snapshot %s for account %s: following=%d followers=%d mutual=%d "
            "(+%d/-%d following, +%d/-%d followers, %d rows deactivated)",
            snapshot.id, account_id,
            len(following_ids), len(follower_ids), len(mutual_ids),
            len(following_diff.added), len(following_diff.removed),
            len(followers_diff.added), len(followers_diff.removed),
            deactivated,
        )

        return SocialSnapshotResult(
            snapshot_id=snapshot.id,
            following_count=len(following_ids),
            follower_count=len(follower_ids),
            mutual_count=len(mutual_ids),
            following_diff=following_diff,
            followers_diff=followers_diff,
        )

    def _upsert(
        self,
        rows: Dict[Tuple[str, str], SocialConnection],
        account_id: str,
        user: SocialConnectionData,
        direction: ConnectionDirection,
        now: int,
    ) -> None:
        key = (user.user_id, direction.value)
        row = rows.get(key)
        if row is None:
            row = SocialConnection(
                id=str(uuid.uuid4()),
                account_id=account_id,
                user_id=user.user_id,
                direction=direction.value,
                first_seen_at=now,
            )
            self.session.add(row)
            rows[key] = row

        row.username = user.username
        row.display_name = user.display_name
        row.description = user.description
        row.follower_count = user.follower_count
        row.following_count = user.following_count
        row.is_blue_verified = user.is_blue_verified
        row.is_active = True
        row.last_seen_at = now
        row.deactivated_at = None
