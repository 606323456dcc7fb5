"""
TRENDX - Workers Module
Celery タスク定義
"""
from app.workers.celery_app import celery_app
from app.workers.profile_tasks import (
    social_snapshot_task,
    update_all_profiles_task,
    update_profile_task,
)

__all__ = [
    "celery_app",
    "social_snapshot_task",
    "update_all_profiles_task",
    "update_profile_task",
]
