"""
TRENDX - Notification Emitter
抑制を通過した変化を通知レコードとして保存する
"""
import logging
import uuid
from typing import List, Optional, Sequence

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.base import unix_now
from app.models.notification import ChangeType, Notification
from app.schemas.detection import DetectedChange
from app.services.errors import NotificationPersistError
from app.services.notifications.suppression import TITLE_SEPARATOR

logger = logging.getLogger(__name__)

TITLE_LABELS = {
    ChangeType.PERSONALITY_DRIFT: "Personality Drift",
    ChangeType.TOPIC_EMERGENCE: "New Topic",
    ChangeType.TOPIC_ABANDONMENT: "Topic Abandoned",
    ChangeType.ACTIVITY_ANOMALY: "Activity Anomaly",
    ChangeType.FOLLOWER_SPIKE: "Follower Surge",
    ChangeType.FOLLOWER_DROP: "Follower Loss",
    ChangeType.FOLLOWING_SPIKE: "Following Surge",
    ChangeType.NOTABLE_FOLLOWER_GAINED: "Notable New Follower",
    ChangeType.NOTABLE_FOLLOWER_LOST: "Lost Notable Follower",
    ChangeType.NEW_MUTUAL_CONNECTION: "New Mutual Connection",
}


def generate_notification_title(change_type: ChangeType, dimension: str) -> str:
    """
    (種別, dimension) から決定的にタイトルを作る

    dimension はそのまま埋め込む。抑制フィルタがタイトルから dimension を
    復元するため、整形（"_" → " " など）はしない。
    """
    label = TITLE_LABELS.get(change_type, "Profile Change")
    return f"{label}{TITLE_SEPARATOR}{dimension}"


class NotificationEmitter:
    """通知の一括保存（全件成功か全件失敗）"""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def emit(
        self,
        account_id: str,
        changes: Sequence[DetectedChange],
        now: Optional[int] = None,
    ) -> List[str]:
        """
        変化1件につき通知1行を作成してコミットする

        Returns:
            作成した通知IDのリスト（changes と同じ順序）

        Raises:
            NotificationPersistError: 保存に失敗した（ロールバック済み）
        """
        if not changes:
            return []

        created_at = now if now is not None else unix_now()
        rows = [
            Notification(
                id=str(uuid.uuid4()),
                account_id=account_id,
                title=generate_notification_title(change.type, change.dimension),
                explanation=change.explanation,
                change_type=change.type.value,
                is_read=False,
                created_at=created_at,
            )
            for change in changes
        ]

        try:
            self.session.add_all(rows)
            await self.session.flush()
            await self.session.commit()
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.error(
                "Failed to persist %d notifications for account %s: %s",
                len(rows), account_id, e,
            )
            raise NotificationPersistError(
                f"Failed to persist notifications for account {account_id}"
            ) from e

        logger.info("Created %d notifications for account %s", len(rows), account_id)
        return [row.id for row in rows]
