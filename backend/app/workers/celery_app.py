"""
TRENDX - Celery Application
非同期タスク処理の設定

キュー設計:
  - analysis: プロファイル更新・ソーシャルスナップショット（LLM/Embedding 呼び出しを含む）
"""
from celery import Celery
from celery.schedules import crontab
from celery.signals import setup_logging

from app.core.config import settings
from app.core.logger import configure_logging

celery_app = Celery(
    "trendx",
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,
    include=["app.workers.profile_tasks"],
)

# Celery設定
celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    task_time_limit=900,  # 15分（初回は全履歴をクラスタリングする）
    task_soft_time_limit=840,
    worker_prefetch_multiplier=1,
    task_acks_late=True,
)

# タスクルーティング
celery_app.conf.task_routes = {
    "app.workers.profile_tasks.update_profile_task": {"queue": "analysis"},
    "app.workers.profile_tasks.social_snapshot_task": {"queue": "analysis"},
    "app.workers.profile_tasks.update_all_profiles_task": {"queue": "analysis"},
}

# Celery Beat スケジュール
celery_app.conf.beat_schedule = {
    "update-all-profiles": {
        "task": "app.workers.profile_tasks.update_all_profiles_task",
        "schedule": crontab(minute=0, hour="*/6"),  # 6時間ごと
    },
}


@setup_logging.connect
def _configure_worker_logging(**kwargs):
    """Celery 既定のロガー設定を使わず、structlog の設定を適用する"""
    configure_logging(settings.log_level, json_output=settings.environment != "development")
