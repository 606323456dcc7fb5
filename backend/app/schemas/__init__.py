"""
TRENDX - Pydantic Schemas
エンジン内部で扱う型付きドメインモデル
"""
from app.schemas.profile import (
    ActivityMetrics,
    ClassificationResult,
    DriftBufferEntry,
    NewTopicSummary,
    Personality,
    PersonalityScores,
    ProfileData,
    ProfileTopic,
    StoredTweet,
    TopicMatch,
    TopicSentiment,
    TweetForClassification,
)
from app.schemas.detection import (
    DetectedChange,
    PreviousMetrics,
    ProfileDetectionResult,
    SocialSignalResult,
)
from app.schemas.social import (
    ConnectionDiff,
    PreviousSocialCounts,
    RemovedConnection,
    SocialConnectionData,
    SocialSnapshotResult,
)
from app.schemas.pipeline import (
    ProfileUpdateResult,
    SocialSnapshotRunResult,
    StageSummary,
)

__all__ = [
    # Profile
    "ActivityMetrics",
    "ClassificationResult",
    "DriftBufferEntry",
    "NewTopicSummary",
    "Personality",
    "PersonalityScores",
    "ProfileData",
    "ProfileTopic",
    "StoredTweet",
    "TopicMatch",
    "TopicSentiment",
    "TweetForClassification",
    # Detection
    "DetectedChange",
    "PreviousMetrics",
    "ProfileDetectionResult",
    "SocialSignalResult",
    # Social
    "ConnectionDiff",
    "PreviousSocialCounts",
    "RemovedConnection",
    "SocialConnectionData",
    "SocialSnapshotResult",
    # Pipeline
    "ProfileUpdateResult",
    "SocialSnapshotRunResult",
    "StageSummary",
]
