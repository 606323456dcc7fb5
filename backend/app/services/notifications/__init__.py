"""
TRENDX - Notification Services
24時間の重複抑制と通知レコードの作成
"""
from app.services.notifications.emitter import NotificationEmitter, generate_notification_title
from app.services.notifications.suppression import (
    SUPPRESSION_WINDOW_SECONDS,
    extract_dimension_from_title,
    filter_suppressed,
    get_suppressed_keys,
)

__all__ = [
    "NotificationEmitter",
    "generate_notification_title",
    "SUPPRESSION_WINDOW_SECONDS",
    "extract_dimension_from_title",
    "filter_suppressed",
    "get_suppressed_keys",
]
