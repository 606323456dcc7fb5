"""
TRENDX - Change Detection
プロファイル変化とソーシャルシグナルの検出
"""
from app.services.detection.profile_change_detector import (
    ProfileChangeDetector,
    detect_activity_anomalies,
    detect_personality_drift,
    detect_topic_changes,
)
from app.services.detection.social_signal_detector import SocialSignalDetector, is_notable

__all__ = [
    "ProfileChangeDetector",
    "detect_activity_anomalies",
    "detect_personality_drift",
    "detect_topic_changes",
    "SocialSignalDetector",
    "is_notable",
]
