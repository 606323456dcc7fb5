"""
TRENDX - Temporal Weighting
ツイートの経過時間と種別から重みを計算する純粋関数群
"""
import math
from typing import Sequence

import numpy as np
from sklearn.metrics.pairwise import cosine_similarity as pairwise_cosine_similarity

# 半減期: 90日
HALF_LIFE_SECONDS = 90 * 24 * 60 * 60

# リプライは通常ツイートの半分の重み
REPLY_WEIGHT = 0.5

_DECAY_RATE = math.log(2) / HALF_LIFE_SECONDS


def calculate_temporal_weight(
    tweet_timestamp: int,
    reference_timestamp: int,
    is_reply: bool = False,
) -> float:
    """
    指数減衰 × リプライ割引

    基準時刻より未来のツイートは経過時間0として扱う（重み1.0）。
    """
    age_seconds = max(0, reference_timestamp - tweet_timestamp)
    weight = math.exp(-_DECAY_RATE * age_seconds)
    if is_reply:
        weight *= REPLY_WEIGHT
    return weight


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """コサイン類似度。どちらかがゼロベクトルなら 0 を返す"""
    return float(pairwise_cosine_similarity([a], [b])[0, 0])


def centroid_similarities(
    embedding: Sequence[float],
    centroids: Sequence[Sequence[float]],
) -> np.ndarray:
    """1件の埋め込みと全重心のコサイン類似度を一括で計算する（shape: (len(centroids),)）"""
    return pairwise_cosine_similarity(
        np.asarray([embedding], dtype=float),
        np.asarray(centroids, dtype=float),
    )[0]
