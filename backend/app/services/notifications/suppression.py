"""
TRENDX - Suppression Filter
24時間以内に通知済みの (change_type, dimension) を再通知しない

抑制状態は保存せず、毎回 notifications テーブルから再計算する。
dimension は通知タイトル "{種別ラベル}: {dimension}" から復元する。
"""
import logging
from typing import Iterable, List, Optional, Set, Tuple

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.base import unix_now
from app.models.notification import Notification
from app.schemas.detection import DetectedChange

logger = logging.getLogger(__name__)

SUPPRESSION_WINDOW_SECONDS = 24 * 60 * 60

TITLE_SEPARATOR = ": "


def extract_dimension_from_title(title: str) -> str:
    """タイトルの最初の ": " より後ろを dimension とみなす（無ければタイトル全体）"""
    idx = title.find(TITLE_SEPARATOR)
    if idx < 0:
        return title
    return title[idx + len(TITLE_SEPARATOR):]


async def get_suppressed_keys(
    session: AsyncSession,
    account_id: str,
    now: Optional[int] = None,
) -> Set[str]:
    """
    直近24時間に作成された通知から "change_type:dimension" の集合を作る

    created_at がちょうど24時間前の通知も窓に含む。
    """
    now = now if now is not None else unix_now()
    since = now - SUPPRESSION_WINDOW_SECONDS

    result = await session.execute(
        select(Notification.change_type, Notification.title).where(
            Notification.account_id == account_id,
            Notification.created_at >= since,
        )
    )
    return {
        f"{change_type}:{extract_dimension_from_title(title)}"
        for change_type, title in result.all()
    }


def filter_suppressed(
    changes: Iterable[DetectedChange],
    suppressed_keys: Set[str],
) -> Tuple[List[DetectedChange], int]:
    """
    抑制対象を取り除く

    Returns:
        (残った変化, 抑制された件数)
    """
    kept: List[DetectedChange] = []
    dropped = 0
    for change in changes:
        if change.suppression_key in suppressed_keys:
            logger.debug("Suppressed repeat change %s", change.suppression_key)
            dropped += 1
            continue
        kept.append(change)
    return kept, dropped
