"""
Clusterer の単体テスト

k の決定式、割合の合計、加重重心、並び順を検証する。
"""
import pytest

from app.services.analysis.clusterer import (
    MAX_CLUSTERS,
    MIN_CLUSTERS,
    choose_cluster_count,
    cluster_embeddings,
)
from tests.conftest import unit


def _items(groups):
    """[(次元, 件数), ...] から (id, ベクトル) のリストを作る"""
    items = []
    for dim, count in groups:
        for i in range(count):
            items.append((f"d{dim}-{i}", unit(dim, 3)))
    return items


class TestChooseClusterCount:

    @pytest.mark.parametrize(
        "n, expected",
        [(1, 2), (4, 2), (9, 3), (30, 5), (50, 7), (225, 15), (400, 15)],
    )
    def test_clamped_square_root(self, n, expected):
        assert choose_cluster_count(n) == expected

    def test_bounds(self):
        assert MIN_CLUSTERS == 2
        assert MAX_CLUSTERS == 15


class TestClusterEmbeddings:

    def test_separates_distinct_groups(self):
        """直交する3群は3クラスタに分かれる（k=round(sqrt(9))=3）"""
        clusters = cluster_embeddings(_items([(0, 3), (1, 3), (2, 3)]))

        assert len(clusters) == 3
        for cluster in clusters:
            prefixes = {member.split("-")[0] for member in cluster.member_ids}
            assert len(prefixes) == 1
            assert cluster.proportion == pytest.approx(1 / 3)

    def test_proportions_sum_to_one(self):
        clusters = cluster_embeddings(_items([(0, 6), (1, 3), (2, 7)]))
        assert sum(c.proportion for c in clusters) == pytest.approx(1.0)

    def test_sorted_by_proportion_descending(self):
        clusters = cluster_embeddings(_items([(0, 2), (1, 10), (2, 4)]))
        proportions = [c.proportion for c in clusters]
        assert proportions == sorted(proportions, reverse=True)
        assert clusters[0].member_ids[0].startswith("d1")

    def test_centroid_is_member_mean(self):
        items = [("a", [1.0, 0.0]), ("b", [0.8, 0.2]), ("c", [0.0, 1.0]), ("d", [0.1, 0.9])]
        clusters = cluster_embeddings(items)

        by_first = {c.member_ids[0]: c for c in clusters}
        assert by_first["a"].centroid == pytest.approx([0.9, 0.1])
        assert by_first["c"].centroid == pytest.approx([0.05, 0.95])

    def test_weighted_centroid_and_proportion(self):
        """重みは重心と割合に影響し、割り当ては変えない"""
        items = [("a", [1.0, 0.0]), ("b", [0.9, 0.1]), ("c", [0.0, 1.0]), ("d", [0.0, 1.0])]
        weights = [3.0, 1.0, 1.0, 1.0]
        clusters = cluster_embeddings(items, weights=weights)

        cluster_a = next(c for c in clusters if "a" in c.member_ids)
        assert cluster_a.member_ids == ["a", "b"]
        assert cluster_a.centroid == pytest.approx([0.975, 0.025])
        assert cluster_a.proportion == pytest.approx(4 / 6)
        assert clusters[0] is cluster_a

    def test_weights_length_mismatch(self):
        with pytest.raises(ValueError):
            cluster_embeddings(_items([(0, 2), (1, 2)]), weights=[1.0])

    def test_single_item(self):
        clusters = cluster_embeddings([("only", [0.2, 0.8])])
        assert len(clusters) == 1
        assert clusters[0].member_ids == ["only"]
        assert clusters[0].proportion == 1.0
        assert clusters[0].centroid == [0.2, 0.8]

    def test_duplicate_vectors_drop_empty_clusters(self):
        """全件同一ベクトルでも空クラスタは返さない"""
        items = [(f"t{i}", [1.0, 0.0, 0.0]) for i in range(16)]
        clusters = cluster_embeddings(items)

        assert all(c.size > 0 for c in clusters)
        assert sum(c.size for c in clusters) == 16
        assert sum(c.proportion for c in clusters) == pytest.approx(1.0)

    def test_deterministic(self):
        items = _items([(0, 5), (1, 4), (2, 3)])
        first = cluster_embeddings(items)
        second = cluster_embeddings(items)
        assert [c.member_ids for c in first] == [c.member_ids for c in second]
