"""
TRENDX - Pipelines
ジョブ実行側から呼ばれるエントリーポイント
"""
from app.services.pipeline.context import JobContext, LoggingJobContext
from app.services.pipeline.profile_update import PROFILE_UPDATE_STAGES, run_profile_update
from app.services.pipeline.social_snapshot import run_social_snapshot

__all__ = [
    "JobContext",
    "LoggingJobContext",
    "PROFILE_UPDATE_STAGES",
    "run_profile_update",
    "run_social_snapshot",
]
