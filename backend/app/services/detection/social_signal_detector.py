"""
TRENDX - Social Signal Detector
スナップショットの差分からソーシャルグラフ上の変化を検出する

説明文はLLMを使わず定型文で生成する。
record_snapshot の後に呼ばれる前提（接続テーブルは今回の状態を反映済み）。
"""
import logging
from typing import List, Optional, Set

from sqlalchemy.ext.asyncio import AsyncSession

from app.db.base import unix_now
from app.models.notification import ChangeType
from app.models.social_connection import ConnectionDirection
from app.schemas.detection import DetectedChange, SocialSignalResult
from app.schemas.social import (
    PreviousSocialCounts,
    RemovedConnection,
    SocialConnectionData,
    SocialSnapshotResult,
)
from app.services.notifications.emitter import NotificationEmitter
from app.services.notifications.suppression import filter_suppressed, get_suppressed_keys
from app.services.profile.profile_store import ProfileStore
from app.services.social.connection_store import FOLLOWER_SIDE, FOLLOWING_SIDE, ConnectionStore

logger = logging.getLogger(__name__)

NOTABLE_FOLLOWER_THRESHOLD = 10000
FOLLOWER_CHANGE_RATIO = 1.2
FOLLOWING_SPIKE_RATIO = 1.3

COUNT_DIMENSION = "count"


def is_notable(follower_count: Optional[int], is_blue_verified: bool) -> bool:
    """認証済み、またはフォロワー1万人超"""
    return is_blue_verified or (
        follower_count is not None and follower_count > NOTABLE_FOLLOWER_THRESHOLD
    )


def _percent_change(delta: int, base: int) -> int:
    # 0.5 は切り上げ
    return int(delta * 100 / base + 0.5)


# ────────────────────────────────────────
# 検出（純粋関数）
# ────────────────────────────────────────

def detect_follower_changes(current: int, previous: int) -> List[DetectedChange]:
    """フォロワー数の20%超の増減。前回0件なら判定しない"""
    if previous == 0:
        return []

    changes: List[DetectedChange] = []
    if current > previous * FOLLOWER_CHANGE_RATIO:
        changes.append(
            DetectedChange(
                type=ChangeType.FOLLOWER_SPIKE,
                dimension=COUNT_DIMENSION,
                before_value=previous,
                after_value=current,
                metadata={
                    "percentChange": _percent_change(current - previous, previous),
                    "ratio": current / previous,
                },
            )
        )
    if previous > current * FOLLOWER_CHANGE_RATIO:
        changes.append(
            DetectedChange(
                type=ChangeType.FOLLOWER_DROP,
                dimension=COUNT_DIMENSION,
                before_value=previous,
                after_value=current,
                metadata={
                    "percentChange": _percent_change(previous - current, previous),
                    "ratio": previous / current if current else "infinite",
                },
            )
        )
    return changes


def detect_following_spike(current: int, previous: int) -> List[DetectedChange]:
    """フォロー数の30%超の増加"""
    if previous == 0 or not current > previous * FOLLOWING_SPIKE_RATIO:
        return []
    return [
        DetectedChange(
            type=ChangeType.FOLLOWING_SPIKE,
            dimension=COUNT_DIMENSION,
            before_value=previous,
            after_value=current,
            metadata={
                "percentChange": _percent_change(current - previous, previous),
                "ratio": current / previous,
            },
        )
    ]


def detect_notable_followers_gained(
    added: List[SocialConnectionData],
) -> List[DetectedChange]:
    changes: List[DetectedChange] = []
    for user in added:
        if not is_notable(user.follower_count, user.is_blue_verified):
            continue
        changes.append(
            DetectedChange(
                type=ChangeType.NOTABLE_FOLLOWER_GAINED,
                dimension=f"@{user.username}",
                before_value=None,
                after_value=user.follower_count or 0,
                metadata={
                    "userId": user.user_id,
                    "username": user.username,
                    "displayName": user.display_name,
                    "followerCount": user.follower_count,
                    "isBlueVerified": user.is_blue_verified,
                    "verifiedStatus": "verified" if user.is_blue_verified else "unverified",
                },
            )
        )
    return changes


def find_new_mutuals(
    snapshot: SocialSnapshotResult,
    active_followers: Set[str],
    active_following: Set[str],
) -> List[SocialConnectionData]:
    """
    今回相互フォローになったユーザー

    新たにフォローした相手が既にフォロワーである場合と、
    新たなフォロワーを既にフォローしている場合の両方を拾う（重複は除く）。
    """
    mutuals: List[SocialConnectionData] = []
    seen: Set[str] = set()
    for user in snapshot.following_diff.added:
        if user.user_id in active_followers and user.user_id not in seen:
            mutuals.append(user)
            seen.add(user.user_id)
    for user in snapshot.followers_diff.added:
        if user.user_id in active_following and user.user_id not in seen:
            mutuals.append(user)
            seen.add(user.user_id)
    return mutuals


def social_explanation(change: DetectedChange) -> str:
    """定型の説明文"""
    before = int(change.before_value) if change.before_value is not None else None
    after = int(change.after_value) if change.after_value is not None else None

    if change.type == ChangeType.FOLLOWER_SPIKE:
        return (
            f"Follower count increased from {before} to {after} "
            f"(+{change.metadata['percentChange']}%)"
        )
    if change.type == ChangeType.FOLLOWER_DROP:
        return (
            f"Follower count decreased from {before} to {after} "
            f"(-{change.metadata['percentChange']}%)"
        )
    if change.type == ChangeType.NOTABLE_FOLLOWER_GAINED:
        follower_count = change.metadata.get("followerCount")
        followers = (
            f"{follower_count:,} followers" if follower_count is not None else "unknown followers"
        )
        return (
            f"{change.dimension} ({followers}, {change.metadata['verifiedStatus']}) "
            "started following this account"
        )
    if change.type == ChangeType.NOTABLE_FOLLOWER_LOST:
        return f"{change.dimension} unfollowed this account"
    if change.type == ChangeType.NEW_MUTUAL_CONNECTION:
        return f"New mutual connection established with {change.dimension}"
    if change.type == ChangeType.FOLLOWING_SPIKE:
        return (
            f"Following count increased from {before} to {after}, "
            "suggesting active engagement"
        )
    return "Social connection change detected"


# ────────────────────────────────────────
# 検出器
# ────────────────────────────────────────

class SocialSignalDetector:
    """ソーシャルシグナルの検出・抑制・通知保存"""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.connections = ConnectionStore(session)
        self.profiles = ProfileStore(session)
        self.emitter = NotificationEmitter(session)

    async def detect(
        self,
        account_id: str,
        snapshot: SocialSnapshotResult,
        previous: Optional[PreviousSocialCounts],
        now: Optional[int] = None,
    ) -> SocialSignalResult:
        """
        Args:
            account_id: 対象アカウント
            snapshot: 今回の record_snapshot の結果
            previous: 前回スナップショットの件数（None ならベースライン実行）
            now: 基準時刻

        Raises:
            NotificationPersistError: 通知の保存に失敗した
        """
        if previous is None:
            logger.info("No previous snapshot for account %s, baseline run", account_id)
            return SocialSignalResult(account_id=account_id, is_baseline=True)

        now = now if now is not None else unix_now()

        changes: List[DetectedChange] = []
        changes.extend(detect_follower_changes(snapshot.follower_count, previous.follower_count))
        changes.extend(detect_following_spike(snapshot.following_count, previous.following_count))
        changes.extend(detect_notable_followers_gained(snapshot.followers_diff.added))
        changes.extend(await self._detect_notable_followers_lost(account_id, snapshot.followers_diff.removed))
        changes.extend(await self._detect_new_mutuals(account_id, snapshot))

        suppressed_keys = await get_suppressed_keys(self.session, account_id, now=now)
        changes, suppressed_count = filter_suppressed(changes, suppressed_keys)

        if not changes:
            return SocialSignalResult(
                account_id=account_id,
                is_baseline=False,
                suppressed_count=suppressed_count,
            )

        changes = [c.model_copy(update={"explanation": social_explanation(c)}) for c in changes]
        notification_ids = await self.emitter.emit(account_id, changes, now=now)

        return SocialSignalResult(
            account_id=account_id,
            is_baseline=False,
            changes=changes,
            notification_ids=notification_ids,
            suppressed_count=suppressed_count,
        )

    async def _detect_notable_followers_lost(
        self,
        account_id: str,
        removed: List[RemovedConnection],
    ) -> List[DetectedChange]:
        """非アクティブ化された接続行に残っている属性で判定する"""
        changes: List[DetectedChange] = []
        for lost in removed:
            row = await self.connections.get_connection(
                account_id, lost.user_id, ConnectionDirection.FOLLOWER
            )
            if row is None or not is_notable(row.follower_count, row.is_blue_verified):
                continue
            username = lost.username or row.username
            changes.append(
                DetectedChange(
                    type=ChangeType.NOTABLE_FOLLOWER_LOST,
                    dimension=f"@{username}",
                    before_value=row.follower_count or 0,
                    after_value=0,
                    metadata={
                        "userId": lost.user_id,
                        "username": username,
                        "displayName": row.display_name,
                        "followerCount": row.follower_count,
                        "isBlueVerified": row.is_blue_verified,
                    },
                )
            )
        return changes

    async def _detect_new_mutuals(
        self,
        account_id: str,
        snapshot: SocialSnapshotResult,
    ) -> List[DetectedChange]:
        """注目アカウントか監視中アカウントとの新しい相互フォローのみ"""
        active_followers = await self.connections.active_user_ids(account_id, FOLLOWER_SIDE)
        active_following = await self.connections.active_user_ids(account_id, FOLLOWING_SIDE)
        mutuals = find_new_mutuals(snapshot, active_followers, active_following)
        if not mutuals:
            return []

        monitored = await self.profiles.list_monitored_handles()
        changes: List[DetectedChange] = []
        for user in mutuals:
            notable = is_notable(user.follower_count, user.is_blue_verified)
            is_monitored = user.username.lower() in monitored
            if not notable and not is_monitored:
                continue
            changes.append(
                DetectedChange(
                    type=ChangeType.NEW_MUTUAL_CONNECTION,
                    dimension=f"@{user.username}",
                    before_value=None,
                    after_value=user.follower_count or 0,
                    metadata={
                        "userId": user.user_id,
                        "username": user.username,
                        "displayName": user.display_name,
                        "followerCount": user.follower_count,
                        "isBlueVerified": user.is_blue_verified,
                        "isMonitoredAccount": is_monitored,
                    },
                )
            )
        return changes
