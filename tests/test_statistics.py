"""
Tests for the group statistics analyzer.
"""
import math

import pytest

from proposalpilot.engine import (
    build_clusters,
    compute_group_statistics,
    fingerprint_group,
    shannon_entropy,
)

from tests.conftest import make_identical_certificates, make_unique_certificates


class TestShannonEntropy:
    """Tests for the entropy function."""

    def test_single_cluster_is_zero(self):
        assert shannon_entropy([5]) == 0.0

    def test_empty_is_zero(self):
        assert shannon_entropy([]) == 0.0

    def test_uniform_distribution(self):
        assert shannon_entropy([1, 1, 1, 1]) == pytest.approx(2.0)

    @pytest.mark.parametrize("sizes", [
        [1] * 7,
        [60] + [1] * 40,
        [3, 3, 3],
        [99, 1],
        [50, 25, 25],
    ])
    def test_bounds(self, sizes):
        entropy = shannon_entropy(sizes)
        assert 0.0 < entropy <= math.log2(sum(sizes))


class TestComputeGroupStatistics:
    """Tests for compute_group_statistics."""

    def test_mixed_group(self):
        certs = make_identical_certificates(60) + make_unique_certificates(40)
        stats = compute_group_statistics("G100", fingerprint_group(certs))
        assert stats.total == 100
        assert stats.cluster_count == 41
        assert stats.unique_ratio == pytest.approx(0.41)
        assert stats.dominant_coverage == pytest.approx(0.6)
        assert stats.dominant_size == 60
        assert 0.0 < stats.entropy <= math.log2(100)

    def test_single_cluster_group(self):
        stats = compute_group_statistics("G100", fingerprint_group(make_identical_certificates(10)))
        assert stats.cluster_count == 1
        assert stats.entropy == 0.0
        assert stats.dominant_coverage == 1.0

    def test_empty_group(self):
        stats = compute_group_statistics("G100", {})
        assert stats.total == 0
        assert stats.unique_ratio == 0.0
        assert stats.entropy == 0.0
        assert stats.dominant_coverage == 0.0
        assert stats.cluster_count == 0

    def test_clusters_read_only(self):
        stats = compute_group_statistics("G100", fingerprint_group(make_identical_certificates(3)))
        with pytest.raises(TypeError):
            stats.clusters["x"] = None

    def test_clusters_largest_first(self):
        certs = make_unique_certificates(3) + make_identical_certificates(5)
        clusters = build_clusters(fingerprint_group(certs))
        sizes = [c.size for c in clusters.values()]
        assert sizes == sorted(sizes, reverse=True)
        assert sizes[0] == 5

    def test_to_dict(self):
        stats = compute_group_statistics("G100", fingerprint_group(make_identical_certificates(4)))
        data = stats.to_dict()
        assert data["group_id"] == "G100"
        assert data["total"] == 4
        assert data["clusters"] == 1
