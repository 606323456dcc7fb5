"""
TRENDX - Profile Activity Log
プロファイル更新イベントの記録
"""
import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.profile_activity_log import ProfileActionType, ProfileActivityLog

logger = logging.getLogger(__name__)


def log_profile_activity(
    session: AsyncSession,
    account_id: str,
    action_type: ProfileActionType,
    message: str,
    details: Optional[Dict[str, Any]] = None,
) -> None:
    """活動ログを1件追加する（コミットは呼び出し元）"""
    session.add(
        ProfileActivityLog(
            account_id=account_id,
            action_type=action_type.value,
            message=message,
            details=details,
        )
    )
    logger.info("[%s] %s: %s", account_id, action_type.value, message)


async def get_recent_activity(
    session: AsyncSession,
    account_id: str,
    limit: int = 20,
) -> List[ProfileActivityLog]:
    """新しい順に最大 limit 件"""
    result = await session.execute(
        select(ProfileActivityLog)
        .where(ProfileActivityLog.account_id == account_id)
        .order_by(ProfileActivityLog.created_at.desc())
        .limit(limit)
    )
    return list(result.scalars().all())
