"""
TRENDX - Change Detection Schemas
検出された変化と検出結果
"""
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from app.models.notification import ChangeType
from app.schemas.profile import ActivityMetrics, Personality, ProfileTopic


class DetectedChange(BaseModel):
    """
    検出された変化1件

    (type, dimension) が24時間重複抑制のキーになる。
    """
    type: ChangeType
    dimension: str
    before_value: Optional[float] = None
    after_value: Optional[float] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)
    explanation: str = ""

    @property
    def suppression_key(self) -> str:
        return f"{self.type.value}:{self.dimension}"


class PreviousMetrics(BaseModel):
    """
    比較対象となる前回状態

    明示的に指定されたフィールドだけがプロファイル保存値より優先される
    （model_fields_set で判定）。personality_baseline=None を明示すると
    「ベースラインなし」として扱われる。
    """
    personality_baseline: Optional[Personality] = None
    topics: List[ProfileTopic] = Field(default_factory=list)
    activity_metrics: Optional[ActivityMetrics] = None


class ProfileDetectionResult(BaseModel):
    account_id: str
    is_baseline: bool
    changes: List[DetectedChange] = Field(default_factory=list)
    notification_ids: List[str] = Field(default_factory=list)
    suppressed_count: int = 0


class SocialSignalResult(BaseModel):
    account_id: str
    is_baseline: bool
    changes: List[DetectedChange] = Field(default_factory=list)
    notification_ids: List[str] = Field(default_factory=list)
    suppressed_count: int = 0
