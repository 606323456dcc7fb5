"""
TRENDX - Social Graph Schemas
フォロー/フォロワーのスナップショットと差分
"""
from typing import List, Optional

from pydantic import BaseModel, Field


class SocialConnectionData(BaseModel):
    """フェッチャーが返す相手アカウント1件"""
    user_id: str
    username: str
    display_name: Optional[str] = None
    description: Optional[str] = None
    follower_count: Optional[int] = None
    following_count: Optional[int] = None
    is_blue_verified: bool = False


class RemovedConnection(BaseModel):
    user_id: str
    username: str = ""


class ConnectionDiff(BaseModel):
    added: List[SocialConnectionData] = Field(default_factory=list)
    removed: List[RemovedConnection] = Field(default_factory=list)


class SocialSnapshotResult(BaseModel):
    """record_snapshot の結果（SocialSignalDetector の入力）"""
    snapshot_id: str
    following_count: int
    follower_count: int
    mutual_count: int
    following_diff: ConnectionDiff = Field(default_factory=ConnectionDiff)
    followers_diff: ConnectionDiff = Field(default_factory=ConnectionDiff)


class PreviousSocialCounts(BaseModel):
    """前回スナップショットの件数。None の場合はベースライン実行"""
    follower_count: int
    following_count: int
