"""
TRENDX - Analysis Services
時間減衰重み・クラスタリング・テキスト前処理・ラベリング
"""
from app.services.analysis.clusterer import Cluster, cluster_embeddings, choose_cluster_count
from app.services.analysis.temporal_weighting import (
    calculate_temporal_weight,
    centroid_similarities,
    cosine_similarity,
)

__all__ = [
    "Cluster",
    "cluster_embeddings",
    "choose_cluster_count",
    "calculate_temporal_weight",
    "centroid_similarities",
    "cosine_similarity",
]
