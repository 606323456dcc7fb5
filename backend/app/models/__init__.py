"""
TRENDX - Database Models
データベースモデルの定義
"""
from app.models.account import Account
from app.models.tweet import Tweet
from app.models.account_profile import AccountProfile
from app.models.topic_drift_buffer import TopicDriftBuffer
from app.models.social_connection import ConnectionDirection, SocialConnection, SocialSnapshot
from app.models.notification import ChangeType, Notification
from app.models.profile_activity_log import ProfileActionType, ProfileActivityLog
from app.models.token_usage import TokenUsage

__all__ = [
    "Account",
    "Tweet",
    "AccountProfile",
    "TopicDriftBuffer",
    "ConnectionDirection",
    "SocialConnection",
    "SocialSnapshot",
    "ChangeType",
    "Notification",
    "ProfileActionType",
    "ProfileActivityLog",
    "TokenUsage",
]
