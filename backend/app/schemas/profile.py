"""
TRENDX - Profile Schemas
行動プロファイルの型付きドメインモデル

永続化時のJSON形式は camelCase（by_alias=True）、Python側は snake_case で扱う。
"""
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """JSON列に保存するモデルの基底（camelCase / snake_case どちらでも読み込み可能）"""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ────────────────────────────────────────
# トピック
# ────────────────────────────────────────

class TopicSentiment(CamelModel):
    """トピック内ツイートの感情分布（合計はおおよそ1）"""
    positive: float
    neutral: float
    negative: float


def default_sentiment() -> TopicSentiment:
    """感情分類ができなかった場合の既定分布"""
    return TopicSentiment(positive=0.33, neutral=0.34, negative=0.33)


class ProfileTopic(CamelModel):
    """意味的クラスタとしてのトピック"""
    id: str
    label: str
    centroid: List[float]
    proportion: float = Field(ge=0.0, le=1.0)
    tweet_count: int = Field(ge=0)
    sentiment: TopicSentiment = Field(default_factory=default_sentiment)


class NewTopicSummary(BaseModel):
    """再クラスタリング・ブートストラップで作成されたトピックの要約"""
    id: str
    label: str
    tweet_count: int


# ────────────────────────────────────────
# 性格
# ────────────────────────────────────────

class PersonalityScores(CamelModel):
    """7つの固定次元（各 0-100）"""
    formal: float = Field(ge=0, le=100)
    technical: float = Field(ge=0, le=100)
    provocative: float = Field(ge=0, le=100)
    thought_leader: float = Field(ge=0, le=100)
    commentator: float = Field(ge=0, le=100)
    curator: float = Field(ge=0, le=100)
    promoter: float = Field(ge=0, le=100)

    def as_dimensions(self) -> Dict[str, float]:
        """次元名（camelCase）→ スコアの辞書。変化検出の dimension 名にもこの名前を使う"""
        return self.model_dump(by_alias=True)


class Personality(CamelModel):
    """性格評価の結果。評価のたびに丸ごと置き換える"""
    scores: PersonalityScores
    values: List[str] = Field(default_factory=list, max_length=5)
    summary: str


# ────────────────────────────────────────
# 活動量
# ────────────────────────────────────────

class ActivityMetrics(CamelModel):
    """全履歴から毎回再計算する活動量"""
    tweets_per_day: float
    max_silence_hours: float
    window_start: int
    window_end: int
    tweet_count: int = 0


# ────────────────────────────────────────
# プロファイル本体
# ────────────────────────────────────────

class ProfileData(CamelModel):
    """ProfileStore が返す型付きプロファイル"""
    account_id: str
    topics: List[ProfileTopic] = Field(default_factory=list)
    personality: Optional[Personality] = None
    personality_baseline: Optional[Personality] = None
    activity_metrics: Optional[ActivityMetrics] = None
    total_tweets_processed: int = 0
    last_personality_eval_at: Optional[int] = None
    last_updated_at: int = 0


# ────────────────────────────────────────
# 分類の入出力
# ────────────────────────────────────────

class StoredTweet(BaseModel):
    """ストアから読み出したツイート"""
    id: str
    text: str
    tweet_created_at: int
    is_reply: bool = False
    is_retweet: bool = False
    is_quote_tweet: bool = False
    raw_json: Optional[Dict[str, Any]] = None


class TweetForClassification(BaseModel):
    """埋め込み済みで分類に渡すツイート"""
    id: str
    text: str
    embedding: List[float]
    tweet_created_at: int
    is_reply: bool = False
    enriched_text: Optional[str] = None


class DriftBufferEntry(BaseModel):
    tweet_id: str
    embedding: List[float]
    added_at: int


class TopicMatch(BaseModel):
    tweet_id: str
    topic_id: str
    similarity: float


class ClassificationResult(BaseModel):
    """IncrementalClassifier.classify の結果"""
    matched: List[TopicMatch] = Field(default_factory=list)
    drifted: List[str] = Field(default_factory=list, description="ドリフトバッファに入ったツイートID")
    bootstrapped: bool = False
    new_topics: List[NewTopicSummary] = Field(default_factory=list)

    @property
    def new_topics_created(self) -> int:
        return len(self.new_topics)
