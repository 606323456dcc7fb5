"""
TRENDX - Pipeline Schemas
ジョブのステージ記録と実行結果
"""
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field

from app.schemas.detection import ProfileDetectionResult, SocialSignalResult
from app.schemas.profile import ClassificationResult
from app.schemas.social import SocialSnapshotResult


class StageSummary(BaseModel):
    """1ステージ分の記録"""
    stage: str
    status: str = Field(..., description="running / completed / skipped / failed")
    message: str = ""
    summary: Dict[str, Any] = Field(default_factory=dict)
    error: Optional[str] = None
    duration_ms: Optional[float] = None


class ProfileUpdateResult(BaseModel):
    """run_profile_update の結果"""
    account_id: str
    status: str = Field("completed", description="completed / skipped / cancelled")
    tweets_processed: int = 0
    classification: Optional[ClassificationResult] = None
    personality_evaluated: bool = False
    detection: Optional[ProfileDetectionResult] = None


class SocialSnapshotRunResult(BaseModel):
    """run_social_snapshot の結果"""
    account_id: str
    status: str = Field("completed", description="completed / cancelled")
    snapshot: Optional[SocialSnapshotResult] = None
    detection: Optional[SocialSignalResult] = None
