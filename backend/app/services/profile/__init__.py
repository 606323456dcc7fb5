"""
TRENDX - Profile Services
プロファイルの保存・分類・活動量・性格評価
"""
from app.services.profile.activity_metrics import calculate_activity_metrics, get_activity_metrics
from app.services.profile.drift_buffer import DRIFT_BUFFER_THRESHOLD, DriftBuffer
from app.services.profile.incremental_classifier import SIMILARITY_THRESHOLD, IncrementalClassifier
from app.services.profile.personality import PersonalityEvaluator, should_re_evaluate
from app.services.profile.profile_store import ProfileStore

__all__ = [
    "calculate_activity_metrics",
    "get_activity_metrics",
    "DRIFT_BUFFER_THRESHOLD",
    "DriftBuffer",
    "SIMILARITY_THRESHOLD",
    "IncrementalClassifier",
    "PersonalityEvaluator",
    "should_re_evaluate",
    "ProfileStore",
]
