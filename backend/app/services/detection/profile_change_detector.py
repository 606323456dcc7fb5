"""
TRENDX - Profile Change Detector
現在のプロファイルと前回状態を比較し、意味のある変化を通知する

検出する変化（比較はすべて厳密な >）:
- personality_drift: 7次元のいずれかがベースラインから15点超変化
- topic_emergence: 前回に無かったトピックが割合15%超
- topic_abandonment: 前回5%超だったトピックが消失、または割合が50%超減少
- activity_anomaly: 投稿頻度の2倍超の増減、最長無投稿時間の2倍超
"""
import asyncio
import json
import logging
import math
from typing import Dict, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.llm import Providers
from app.db.base import unix_now
from app.models.notification import ChangeType
from app.models.profile_activity_log import ProfileActionType
from app.schemas.detection import DetectedChange, PreviousMetrics, ProfileDetectionResult
from app.schemas.profile import ActivityMetrics, Personality, ProfileTopic
from app.services.notifications.emitter import NotificationEmitter
from app.services.notifications.suppression import filter_suppressed, get_suppressed_keys
from app.services.profile.activity_log import log_profile_activity
from app.services.profile.profile_store import ProfileStore
from app.services.token_tracker import record_chat_usage

logger = logging.getLogger(__name__)

PERSONALITY_DRIFT_THRESHOLD = 15
TOPIC_EMERGENCE_THRESHOLD = 0.15
TOPIC_ABANDONMENT_MIN_PROPORTION = 0.05
TOPIC_ABANDONMENT_DECREASE_RATIO = 0.5
ACTIVITY_ANOMALY_RATIO = 2

EXPLANATION_SYSTEM_PROMPT = (
    "You are explaining behavioral profile changes for a monitored Twitter account. "
    "Generate a clear, 1-2 sentence explanation suitable for notifications. "
    "Be specific about what changed and what it might mean."
)


# ────────────────────────────────────────
# 検出（純粋関数）
# ────────────────────────────────────────

def detect_personality_drift(
    current: Optional[Personality],
    baseline: Optional[Personality],
) -> List[DetectedChange]:
    """ベースラインから15点を超えて動いた次元ごとに1件"""
    if current is None or baseline is None:
        return []

    baseline_scores = baseline.scores.as_dimensions()
    changes: List[DetectedChange] = []
    for dimension, current_value in current.scores.as_dimensions().items():
        baseline_value = baseline_scores[dimension]
        drift = abs(current_value - baseline_value)
        if drift > PERSONALITY_DRIFT_THRESHOLD:
            changes.append(
                DetectedChange(
                    type=ChangeType.PERSONALITY_DRIFT,
                    dimension=dimension,
                    before_value=baseline_value,
                    after_value=current_value,
                    metadata={
                        "drift": drift,
                        "direction": "increased" if current_value > baseline_value else "decreased",
                        "baselineScore": baseline_value,
                        "currentScore": current_value,
                    },
                )
            )
    return changes


def detect_topic_changes(
    current_topics: List[ProfileTopic],
    previous_topics: List[ProfileTopic],
) -> List[DetectedChange]:
    """トピックIDで前回と突き合わせ、出現と放棄を検出する（dimension はラベル）"""
    previous_by_id = {t.id: t for t in previous_topics}
    current_by_id = {t.id: t for t in current_topics}
    changes: List[DetectedChange] = []

    for topic in current_topics:
        if topic.id not in previous_by_id and topic.proportion > TOPIC_EMERGENCE_THRESHOLD:
            changes.append(
                DetectedChange(
                    type=ChangeType.TOPIC_EMERGENCE,
                    dimension=topic.label,
                    before_value=None,
                    after_value=topic.proportion,
                    metadata={
                        "topicId": topic.id,
                        "proportion": topic.proportion,
                        "tweetCount": topic.tweet_count,
                        "sentiment": topic.sentiment.model_dump(),
                    },
                )
            )

    for previous in previous_topics:
        if previous.proportion <= TOPIC_ABANDONMENT_MIN_PROPORTION:
            continue

        current = current_by_id.get(previous.id)
        if current is None:
            changes.append(
                DetectedChange(
                    type=ChangeType.TOPIC_ABANDONMENT,
                    dimension=previous.label,
                    before_value=previous.proportion,
                    after_value=0.0,
                    metadata={
                        "topicId": previous.id,
                        "previousProportion": previous.proportion,
                        "previousTweetCount": previous.tweet_count,
                    },
                )
            )
            continue

        decrease_ratio = (previous.proportion - current.proportion) / previous.proportion
        if decrease_ratio > TOPIC_ABANDONMENT_DECREASE_RATIO:
            changes.append(
                DetectedChange(
                    type=ChangeType.TOPIC_ABANDONMENT,
                    dimension=previous.label,
                    before_value=previous.proportion,
                    after_value=current.proportion,
                    metadata={
                        "topicId": previous.id,
                        "previousProportion": previous.proportion,
                        "currentProportion": current.proportion,
                        "decreaseRatio": decrease_ratio,
                    },
                )
            )

    return changes


def detect_activity_anomalies(
    current: Optional[ActivityMetrics],
    previous: Optional[ActivityMetrics],
) -> List[DetectedChange]:
    """
    投稿頻度の急増・急減と異常な沈黙

    前回の頻度が0の場合、今回1件でも投稿があれば急増（ratio="infinite"）とする。
    """
    if current is None or previous is None:
        return []

    changes: List[DetectedChange] = []

    if previous.tweets_per_day == 0:
        if current.tweets_per_day > 0:
            changes.append(
                DetectedChange(
                    type=ChangeType.ACTIVITY_ANOMALY,
                    dimension="tweets_per_day_spike",
                    before_value=0.0,
                    after_value=current.tweets_per_day,
                    metadata={"ratio": "infinite", "subType": "spike"},
                )
            )
    else:
        spike_ratio = current.tweets_per_day / previous.tweets_per_day
        if spike_ratio > ACTIVITY_ANOMALY_RATIO:
            changes.append(
                DetectedChange(
                    type=ChangeType.ACTIVITY_ANOMALY,
                    dimension="tweets_per_day_spike",
                    before_value=previous.tweets_per_day,
                    after_value=current.tweets_per_day,
                    metadata={"ratio": spike_ratio, "subType": "spike"},
                )
            )

        if current.tweets_per_day > 0:
            drop_ratio = previous.tweets_per_day / current.tweets_per_day
            if drop_ratio > ACTIVITY_ANOMALY_RATIO:
                changes.append(
                    DetectedChange(
                        type=ChangeType.ACTIVITY_ANOMALY,
                        dimension="tweets_per_day_drop",
                        before_value=previous.tweets_per_day,
                        after_value=current.tweets_per_day,
                        metadata={"ratio": drop_ratio, "subType": "drop"},
                    )
                )

    if (
        previous.max_silence_hours > 0
        and current.max_silence_hours > previous.max_silence_hours * ACTIVITY_ANOMALY_RATIO
    ):
        changes.append(
            DetectedChange(
                type=ChangeType.ACTIVITY_ANOMALY,
                dimension="unusual_silence",
                before_value=previous.max_silence_hours,
                after_value=current.max_silence_hours,
                metadata={
                    "ratio": current.max_silence_hours / previous.max_silence_hours,
                    "subType": "silence",
                },
            )
        )

    return changes


# ────────────────────────────────────────
# 説明文
# ────────────────────────────────────────

def _format_number(value: Optional[float]) -> str:
    if value is None:
        return "null"
    if float(value).is_integer():
        return str(int(value))
    return str(value)


def fallback_explanation(change: DetectedChange) -> str:
    """LLMが使えない場合の定型文"""
    if change.type == ChangeType.PERSONALITY_DRIFT:
        return (
            f'Personality dimension "{change.dimension}" shifted from '
            f"{_format_number(change.before_value)} to {_format_number(change.after_value)} points"
        )
    if change.type == ChangeType.TOPIC_EMERGENCE:
        share = math.floor((change.after_value or 0.0) * 100 + 0.5)
        return f'New topic "{change.dimension}" emerged with {share}% share'
    if change.type == ChangeType.TOPIC_ABANDONMENT:
        return f'Topic "{change.dimension}" has been abandoned or significantly reduced'
    if change.type == ChangeType.ACTIVITY_ANOMALY:
        sub_type = change.metadata.get("subType")
        if sub_type == "spike":
            return "Tweet frequency increased substantially from baseline"
        if sub_type == "drop":
            return "Tweet frequency decreased substantially from baseline"
        if sub_type == "silence":
            return "An unusually long gap between tweets was detected"
        return "Activity pattern changed significantly from baseline"
    return "Profile behavioral change detected"


def _explanation_payload(change: DetectedChange) -> str:
    return json.dumps(
        {
            "type": change.type.value,
            "dimension": change.dimension,
            "beforeValue": change.before_value,
            "afterValue": change.after_value,
            "metadata": change.metadata,
        }
    )


async def generate_explanations(
    session: AsyncSession,
    providers: Providers,
    changes: List[DetectedChange],
) -> List[DetectedChange]:
    """
    変化ごとにLLMで説明文を並列生成する

    1件の失敗は他に影響せず、その変化だけ定型文にフォールバックする。
    """
    provider = providers.chat

    async def _explain(change: DetectedChange) -> DetectedChange:
        try:
            response = await provider.generate_text(
                messages=[
                    {"role": "system", "content": EXPLANATION_SYSTEM_PROMPT},
                    {"role": "user", "content": _explanation_payload(change)},
                ],
            )
            record_chat_usage(session, "explanation", provider, response)
            explanation = response.content.strip() or fallback_explanation(change)
        except Exception as e:
            logger.warning(
                "Failed to generate explanation for %s, using fallback: %s",
                change.suppression_key, e, exc_info=True,
            )
            explanation = fallback_explanation(change)
        return change.model_copy(update={"explanation": explanation})

    return list(await asyncio.gather(*(_explain(c) for c in changes)))


# ────────────────────────────────────────
# 検出器
# ────────────────────────────────────────

class ProfileChangeDetector:
    """プロファイル変化の検出・抑制・説明生成・通知保存"""

    def __init__(self, session: AsyncSession, providers: Providers):
        self.session = session
        self.store = ProfileStore(session)
        self.emitter = NotificationEmitter(session)
        self._providers = providers

    async def detect(
        self,
        account_id: str,
        previous: Optional[PreviousMetrics] = None,
        now: Optional[int] = None,
    ) -> ProfileDetectionResult:
        """
        Args:
            account_id: 対象アカウント
            previous: 比較対象の前回状態。明示されたフィールドだけがプロファイルの
                保存値（ベースライン・トピック・活動量）より優先される
            now: 基準時刻（抑制窓の計算に使用）

        Returns:
            ProfileDetectionResult: ベースラインが無い場合は is_baseline=True で変化なし

        Raises:
            NotificationPersistError: 通知の保存に失敗した
        """
        now = now if now is not None else unix_now()

        profile = await self.store.get_profile(account_id)
        if profile is None:
            return ProfileDetectionResult(account_id=account_id, is_baseline=True)

        overrides = previous.model_fields_set if previous is not None else set()
        baseline = (
            previous.personality_baseline
            if "personality_baseline" in overrides
            else profile.personality_baseline
        )
        if baseline is None:
            logger.info("No personality baseline for account %s, baseline run", account_id)
            return ProfileDetectionResult(account_id=account_id, is_baseline=True)

        previous_topics = previous.topics if "topics" in overrides else profile.topics
        previous_activity = (
            previous.activity_metrics
            if "activity_metrics" in overrides
            else profile.activity_metrics
        )

        changes: List[DetectedChange] = []
        changes.extend(detect_personality_drift(profile.personality, baseline))
        changes.extend(detect_topic_changes(profile.topics, previous_topics))
        changes.extend(detect_activity_anomalies(profile.activity_metrics, previous_activity))

        suppressed_keys = await get_suppressed_keys(self.session, account_id, now=now)
        changes, suppressed_count = filter_suppressed(changes, suppressed_keys)

        if not changes:
            return ProfileDetectionResult(
                account_id=account_id,
                is_baseline=False,
                suppressed_count=suppressed_count,
            )

        changes = await generate_explanations(self.session, self._providers, changes)
        notification_ids = await self.emitter.emit(account_id, changes, now=now)

        type_counts: Dict[str, int] = {}
        for change in changes:
            type_counts[change.type.value] = type_counts.get(change.type.value, 0) + 1
        log_profile_activity(
            self.session,
            account_id,
            ProfileActionType.PROFILE_UPDATED,
            f"Detected {len(changes)} profile change(s): "
            + ", ".join(c.type.value for c in changes),
            {
                "changeCount": len(changes),
                "changeTypes": type_counts,
                "dimensions": [c.dimension for c in changes],
            },
        )
        await self.session.commit()

        return ProfileDetectionResult(
            account_id=account_id,
            is_baseline=False,
            changes=changes,
            notification_ids=notification_ids,
            suppressed_count=suppressed_count,
        )
