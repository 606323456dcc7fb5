"""
TRENDX - Clusterer
埋め込みベクトルの k-means クラスタリング

- k = clamp(round(sqrt(n)), 2, 15)
- 割り当ては k-means++ 初期化の KMeans（生の埋め込みをそのまま使用）
- 重みが与えられた場合、重心は各クラスタの加重平均で再計算する
  （重みは重心の位置にだけ影響し、割り当てには影響しない）
"""
import logging
import math
import warnings
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple

import numpy as np
from sklearn.cluster import KMeans
from sklearn.exceptions import ConvergenceWarning

logger = logging.getLogger(__name__)

MIN_CLUSTERS = 2
MAX_CLUSTERS = 15


@dataclass
class Cluster:
    """クラスタ1件。member_ids は入力順を保持する"""
    centroid: List[float]
    member_ids: List[str] = field(default_factory=list)
    proportion: float = 0.0

    @property
    def size(self) -> int:
        return len(self.member_ids)


def choose_cluster_count(n: int) -> int:
    """入力件数からクラスタ数を決める"""
    return min(MAX_CLUSTERS, max(MIN_CLUSTERS, round(math.sqrt(n))))


def cluster_embeddings(
    items: Sequence[Tuple[str, Sequence[float]]],
    weights: Optional[Sequence[float]] = None,
    random_state: int = 0,
) -> List[Cluster]:
    """
    (id, embedding) のリストをクラスタリングする

    Args:
        items: (id, 埋め込みベクトル) のリスト
        weights: 各要素の重み（None の場合は件数比で割合を計算）
        random_state: KMeans の乱数シード（同じ入力なら同じ結果）

    Returns:
        割合の降順に並んだクラスタのリスト（同率は出現順を維持）
    """
    if weights is not None and len(weights) != len(items):
        raise ValueError(
            f"weights length {len(weights)} does not match items length {len(items)}"
        )

    if len(items) < 2:
        centroid = list(items[0][1]) if items else []
        return [Cluster(centroid=centroid, member_ids=[i for i, _ in items], proportion=1.0)]

    matrix = np.asarray([embedding for _, embedding in items], dtype=float)
    k = choose_cluster_count(len(items))

    with warnings.catch_warnings():
        # 重複ベクトルが多いと k 未満のクラスタしか作れない（空クラスタは後で除外）
        warnings.simplefilter("ignore", category=ConvergenceWarning)
        km = KMeans(n_clusters=k, init="k-means++", n_init="auto", random_state=random_state)
        labels = km.fit_predict(matrix)

    weight_array = np.asarray(weights, dtype=float) if weights is not None else None
    total_weight = float(weight_array.sum()) if weight_array is not None else 0.0

    clusters: List[Cluster] = []
    for label in range(k):
        member_idx = np.flatnonzero(labels == label)
        if member_idx.size == 0:
            continue

        member_ids = [items[i][0] for i in member_idx]
        if weight_array is not None and total_weight > 0:
            member_weights = weight_array[member_idx]
            cluster_weight = float(member_weights.sum())
            if cluster_weight > 0:
                centroid = np.average(matrix[member_idx], axis=0, weights=member_weights)
            else:
                centroid = matrix[member_idx].mean(axis=0)
            proportion = cluster_weight / total_weight
        else:
            centroid = matrix[member_idx].mean(axis=0)
            proportion = member_idx.size / len(items)

        clusters.append(
            Cluster(
                centroid=centroid.tolist(),
                member_ids=member_ids,
                proportion=proportion,
            )
        )

    logger.debug("Clustered %d items into %d clusters (k=%d)", len(items), len(clusters), k)

    # sorted は安定ソートなので同率はクラスタ番号順のまま
    return sorted(clusters, key=lambda c: c.proportion, reverse=True)
