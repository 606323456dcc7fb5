"""
TRENDX - Social Snapshot Pipeline
フォロー/フォロワー一覧の保存 → 差分 → シグナル検出

ステージ: fetching → processing → detecting → notifying → completing
一覧の取得（スクレイピング）は呼び出し側の責務で、取得済みの一覧を受け取る。
"""
import logging
from typing import Optional, Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.logger import trace_execution
from app.db.base import unix_now
from app.schemas.detection import SocialSignalResult
from app.schemas.pipeline import SocialSnapshotRunResult
from app.schemas.social import PreviousSocialCounts, SocialConnectionData
from app.services.detection.social_signal_detector import SocialSignalDetector
from app.services.pipeline.context import JobContext, LoggingJobContext
from app.services.profile.profile_store import ProfileStore
from app.services.social.connection_store import ConnectionStore

logger = logging.getLogger(__name__)


@trace_execution("SocialPipeline", "run_social_snapshot")
async def run_social_snapshot(
    session: AsyncSession,
    account_id: str,
    following: Sequence[SocialConnectionData],
    followers: Sequence[SocialConnectionData],
    context: Optional[JobContext] = None,
    now: Optional[int] = None,
) -> SocialSnapshotRunResult:
    """
    Raises:
        AccountNotFoundError: アカウントが存在しない
    """
    context = context or LoggingJobContext("social_snapshot", account_id)
    now = now if now is not None else unix_now()
    connections = ConnectionStore(session)
    result = SocialSnapshotRunResult(account_id=account_id)

    # ── fetching ──
    await context.set_stage("fetching", "Saving social connections...")
    await ProfileStore(session).require_account(account_id)

    latest = await connections.get_latest_snapshot(account_id)
    previous = (
        PreviousSocialCounts(
            follower_count=latest.follower_count,
            following_count=latest.following_count,
        )
        if latest is not None
        else None
    )

    snapshot = await connections.record_snapshot(account_id, following, followers, now=now)
    result.snapshot = snapshot
    await context.complete_stage(
        "fetching",
        {
            "followingCount": snapshot.following_count,
            "followerCount": snapshot.follower_count,
            "mutualCount": snapshot.mutual_count,
        },
    )

    if await context.check_cancellation():
        result.status = "cancelled"
        return result

    # ── processing ──
    await context.set_stage("processing", "Processing connection changes...")
    await context.complete_stage(
        "processing",
        {
            "followingAdded": len(snapshot.following_diff.added),
            "followingRemoved": len(snapshot.following_diff.removed),
            "followersAdded": len(snapshot.followers_diff.added),
            "followersRemoved": len(snapshot.followers_diff.removed),
        },
    )

    if await context.check_cancellation():
        result.status = "cancelled"
        return result

    # ── detecting ──
    await context.set_stage("detecting", "Detecting social signals...")
    detection: Optional[SocialSignalResult] = None
    try:
        detection = await SocialSignalDetector(session).detect(
            account_id, snapshot, previous, now=now
        )
        result.detection = detection
        await context.complete_stage(
            "detecting",
            {
                "isBaseline": detection.is_baseline,
                "changesDetected": len(detection.changes),
                "suppressed": detection.suppressed_count,
            },
        )
    except Exception as e:
        await session.rollback()
        logger.error(
            "Social signal detection failed for account %s: %s",
            account_id, e, exc_info=True,
        )
        await context.fail_stage("detecting", str(e))

    if await context.check_cancellation():
        result.status = "cancelled"
        return result

    # ── notifying ──
    if detection is None:
        await context.skip_stage("notifying", "Detection failed - skipping notifications")
    elif detection.is_baseline:
        await context.skip_stage("notifying", "Baseline snapshot - no signals to detect")
    elif not detection.changes:
        await context.skip_stage("notifying", "No social signals detected")
    else:
        await context.set_stage("notifying", "Recording notifications...")
        await context.complete_stage(
            "notifying", {"notificationCount": len(detection.notification_ids)}
        )

    if await context.check_cancellation():
        result.status = "cancelled"
        return result

    # ── completing ──
    await context.set_stage("completing", "Finalizing snapshot...")
    await context.complete_stage("completing", {"snapshotId": snapshot.snapshot_id})
    return result
