"""
TRENDX - Profile Update Pipeline
未処理ツイートの埋め込み → 分類 → 指標更新 → 変化検出 → 通知

ステージ: fetching → embedding → classifying → updating → detecting → notifying
"""
import logging
from typing import List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.llm import Providers
from app.core.logger import trace_execution
from app.db.base import unix_now
from app.models.profile_activity_log import ProfileActionType
from app.schemas.detection import PreviousMetrics, ProfileDetectionResult
from app.schemas.pipeline import ProfileUpdateResult
from app.schemas.profile import TweetForClassification
from app.services.analysis.embeddings import generate_embeddings
from app.services.analysis.text import enrich_for_embedding, strip_urls
from app.services.detection.profile_change_detector import ProfileChangeDetector
from app.services.pipeline.context import JobContext, LoggingJobContext
from app.services.profile.activity_log import log_profile_activity
from app.services.profile.activity_metrics import get_activity_metrics
from app.services.profile.incremental_classifier import IncrementalClassifier
from app.services.profile.personality import PersonalityEvaluator, should_re_evaluate
from app.services.profile.profile_store import ProfileStore

logger = logging.getLogger(__name__)

PROFILE_UPDATE_STAGES = (
    "fetching",
    "embedding",
    "classifying",
    "updating",
    "detecting",
    "notifying",
)


async def _skip_remaining(context: JobContext, after: str, reason: str) -> None:
    for stage in PROFILE_UPDATE_STAGES[PROFILE_UPDATE_STAGES.index(after) + 1:]:
        await context.skip_stage(stage, reason)


@trace_execution("ProfilePipeline", "run_profile_update")
async def run_profile_update(
    session: AsyncSession,
    providers: Providers,
    account_id: str,
    context: Optional[JobContext] = None,
    now: Optional[int] = None,
) -> ProfileUpdateResult:
    """
    1アカウント分のプロファイル更新を実行する

    同じアカウントに対する実行は呼び出し側で直列化すること。

    Raises:
        AccountNotFoundError: アカウントが存在しない
        EmbeddingError: 埋め込みの生成に失敗した
        DimensionMismatchError: 埋め込みの次元数がトピック重心と異なる
    """
    context = context or LoggingJobContext("profile_update", account_id)
    now = now if now is not None else unix_now()
    store = ProfileStore(session)
    result = ProfileUpdateResult(account_id=account_id)

    # ── fetching ──
    await context.set_stage("fetching", "Loading unprocessed tweets...")
    await store.require_account(account_id)
    profile = await store.get_or_create_profile(account_id)
    await session.commit()

    # 分類前の状態を比較対象として保持する（初回はベースライン実行になる）
    previous = PreviousMetrics(
        personality_baseline=profile.personality_baseline,
        topics=profile.topics,
        activity_metrics=profile.activity_metrics,
    )

    new_tweets = await store.fetch_tweets_since(account_id, profile.last_updated_at)
    await context.complete_stage("fetching", {"tweetCount": len(new_tweets)})
    if not new_tweets:
        await _skip_remaining(context, "fetching", "No new tweets")
        result.status = "skipped"
        return result

    if await context.check_cancellation():
        result.status = "cancelled"
        return result

    # ── embedding ──
    await context.set_stage("embedding", "Generating embeddings...")
    prepared = []
    for tweet in new_tweets:
        enriched = enrich_for_embedding(tweet.text, tweet.is_quote_tweet, tweet.raw_json)
        if enriched:
            prepared.append((tweet, strip_urls(tweet.text), enriched))

    if not prepared:
        await context.complete_stage("embedding", {"embeddingCount": 0})
        await _skip_remaining(context, "embedding", "No tweets with text content")
        result.status = "skipped"
        return result

    vectors = await generate_embeddings([p[2] for p in prepared], providers, session)
    to_classify: List[TweetForClassification] = [
        TweetForClassification(
            id=tweet.id,
            text=stripped,
            embedding=vector,
            tweet_created_at=tweet.tweet_created_at,
            is_reply=tweet.is_reply,
            enriched_text=enriched,
        )
        for (tweet, stripped, enriched), vector in zip(prepared, vectors)
    ]
    await context.complete_stage("embedding", {"embeddingCount": len(vectors)})

    if await context.check_cancellation():
        result.status = "cancelled"
        return result

    # ── classifying ──
    await context.set_stage("classifying", "Classifying tweets...")
    classification = await IncrementalClassifier(session, providers).classify(
        account_id, to_classify, now=now
    )
    result.classification = classification
    result.tweets_processed = len(to_classify)
    await context.complete_stage(
        "classifying",
        {
            "matched": len(classification.matched),
            "drifted": len(classification.drifted),
            "newTopics": classification.new_topics_created,
            "bootstrapped": classification.bootstrapped,
        },
    )

    if await context.check_cancellation():
        result.status = "cancelled"
        return result

    # ── updating ──
    await context.set_stage("updating", "Updating profile metrics...")
    metrics = await get_activity_metrics(store, account_id, now=now)
    updated = await store.update_profile(account_id, activity_metrics=metrics, now=now)
    await session.commit()

    if should_re_evaluate(updated.total_tweets_processed, updated.last_personality_eval_at):
        try:
            await PersonalityEvaluator(session, providers).evaluate(account_id, now=now)
            result.personality_evaluated = True
        except Exception as e:
            # 評価内の書き込みは SAVEPOINT で巻き戻し済み
            logger.warning(
                "Personality evaluation failed for account %s (non-blocking): %s",
                account_id, e, exc_info=True,
            )

    await context.complete_stage(
        "updating",
        {
            "tweetsPerDay": metrics.tweets_per_day,
            "personalityEvaluated": result.personality_evaluated,
        },
    )

    if await context.check_cancellation():
        result.status = "cancelled"
        return result

    # ── detecting ──
    await context.set_stage("detecting", "Detecting changes...")
    detection: Optional[ProfileDetectionResult] = None
    try:
        detection = await ProfileChangeDetector(session, providers).detect(
            account_id, previous, now=now
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
            "Profile change detection failed for account %s: %s",
            account_id, e, exc_info=True,
        )
        await context.fail_stage("detecting", str(e))

    if await context.check_cancellation():
        result.status = "cancelled"
        return result

    # ── notifying ──
    if detection is None or detection.is_baseline or not detection.changes:
        await context.skip_stage("notifying", "No changes to notify")
        return result

    await context.set_stage("notifying", "Recording notifications...")
    log_profile_activity(
        session,
        account_id,
        ProfileActionType.PROFILE_UPDATED,
        f"Profile update complete. {len(detection.changes)} change(s) detected and notified.",
        {
            "changeTypes": [c.type.value for c in detection.changes],
            "notificationIds": detection.notification_ids,
        },
    )
    await session.commit()
    await context.complete_stage(
        "notifying", {"notificationCount": len(detection.notification_ids)}
    )
    return result
