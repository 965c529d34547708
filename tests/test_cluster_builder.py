"""
Unit tests for the cluster builder.

Tests cover:
- Agglomeration under the proximity threshold
- Compactness refusal of chain-like merges
- Splitting of oversized clusters
- Rejection of undersized clusters and residual traces
"""
import pytest

from grouping_service.domain.models import CoordinateSystem, GroupingParameters
from grouping_service.services.domain.cluster_builder import (
    ClusterBuilder,
    ClusteringConfig,
    PlotPoint,
    SplitTrigger,
    cluster_centroid,
)


# ============================================================
# Test Fixtures
# ============================================================

@pytest.fixture
def builder() -> ClusterBuilder:
    return ClusterBuilder(ClusteringConfig())


def to_points(plots) -> list[PlotPoint]:
    return [PlotPoint(plot=p, xy=p.centroid) for p in plots]


def cluster_ids(outcome) -> list[list[str]]:
    return [[p.plot_id for p in cluster] for cluster in outcome.clusters]


def parameters(**overrides) -> GroupingParameters:
    return GroupingParameters(coordinate_system=CoordinateSystem.PROJECTED, **overrides)


# ============================================================
# Agglomeration Tests
# ============================================================

class TestAgglomeration:
    """Tests for proximity-first merging."""

    def test_compact_plots_form_one_cluster(self, builder, compact_plots):
        outcome = builder.build(to_points(compact_plots), parameters())

        assert cluster_ids(outcome) == [["a1", "a2", "a3", "a4", "a5"]]
        assert outcome.residuals == []

    def test_plots_beyond_threshold_do_not_merge(self, builder, make_plot):
        plots = [
            make_plot("p1", 0, 0, area=2.0),
            make_plot("p2", 50, 0, area=2.0),
            make_plot("p3", 100, 0, area=2.0),
            make_plot("p4", 1000, 0, area=2.0),
        ]

        outcome = builder.build(to_points(plots), parameters())

        assert cluster_ids(outcome) == [["p1", "p2", "p3"]]
        assert [t.point.plot_id for t in outcome.residuals] == ["p4"]

    def test_threshold_is_inclusive(self, builder, make_plot):
        plots = [make_plot(f"p{i}", i * 100.0, 0, area=2.0) for i in range(3)]

        outcome = builder.build(to_points(plots), parameters())

        assert cluster_ids(outcome) == [["p0", "p1", "p2"]]

    def test_empty_bucket(self, builder):
        outcome = builder.build([], parameters())

        assert outcome.clusters == []
        assert outcome.residuals == []

    def test_input_order_does_not_matter(self, builder, grid_plots):
        forward = builder.build(to_points(grid_plots), parameters())
        backward = builder.build(to_points(list(reversed(grid_plots))), parameters())

        assert cluster_ids(forward) == cluster_ids(backward)


# ============================================================
# Compactness Tests
# ============================================================

class TestCompactness:
    """Tests for refusal of chain-like merges."""

    def test_short_span_is_always_coherent(self, builder):
        assert builder._is_coherent(200.0, 0.01, 100.0)

    def test_elongated_cluster_is_not_coherent(self, builder):
        # 540 / sqrt(42000) = 2.63 > 2.5
        assert not builder._is_coherent(540.0, 4.2, 100.0)

    def test_wide_but_dense_cluster_is_coherent(self, builder):
        # 450 / sqrt(36000) = 2.37 <= 2.5
        assert builder._is_coherent(450.0, 3.6, 100.0)

    def test_chain_is_cut_into_compact_groups(self, builder, chain_plots):
        outcome = builder.build(to_points(chain_plots(10)), parameters(min_group_area=2.0))

        assert cluster_ids(outcome) == [
            ["c01", "c02", "c03", "c04", "c05", "c06"],
            ["c07", "c08", "c09", "c10"],
        ]

    def test_refused_plot_is_traced(self, builder, chain_plots):
        outcome = builder.build(to_points(chain_plots(7)), parameters(min_group_area=2.0))

        assert len(outcome.clusters) == 1
        assert len(outcome.residuals) == 1
        trace = outcome.residuals[0]
        assert trace.point.plot_id == "c07"
        assert trace.compactness_blocked
        assert trace.merged_size == 1
        assert trace.nearest_neighbor_distance == pytest.approx(90.0)


# ============================================================
# Size Enforcement Tests
# ============================================================

class TestSizeEnforcement:
    """Tests for splitting and rejection."""

    def test_grid_is_split_in_two_halves(self, builder, grid_plots):
        outcome = builder.build(to_points(grid_plots), parameters())

        assert cluster_ids(outcome) == [
            ["p01", "p02", "p03", "p05", "p06", "p09"],
            ["p04", "p07", "p08", "p10", "p11", "p12"],
        ]
        assert outcome.residuals == []

    def test_split_by_area(self, builder, make_plot):
        plots = [make_plot(f"p{i}", (i % 3) * 20.0, (i // 3) * 20.0, area=3.0) for i in range(6)]

        outcome = builder.build(to_points(plots), parameters())

        assert len(outcome.clusters) == 2
        for cluster in outcome.clusters:
            assert sum(p.plot.area for p in cluster) <= 15.0

    def test_split_leftovers_carry_plot_count_trigger(self, builder, compact_plots):
        plots = [p.model_copy(update={"area": 2.0}) for p in compact_plots]

        outcome = builder.build(to_points(plots), parameters(max_plots_per_group=4))

        assert cluster_ids(outcome) == [["a1", "a2", "a5"]]
        assert sorted(t.point.plot_id for t in outcome.residuals) == ["a3", "a4"]
        for trace in outcome.residuals:
            assert trace.split_trigger == SplitTrigger.PLOT_COUNT
            assert trace.merged_size == 5
            assert trace.merged_area == pytest.approx(10.0)
            assert trace.piece_size == 2
            assert trace.piece_area == pytest.approx(4.0)

    def test_oversized_single_plot_is_residual(self, builder, make_plot):
        outcome = builder.build(to_points([make_plot("big", 0, 0, area=20.0)]), parameters())

        assert outcome.clusters == []
        assert outcome.residuals[0].split_trigger == SplitTrigger.AREA
        assert outcome.residuals[0].nearest_neighbor_distance is None

    def test_small_cluster_is_rejected(self, builder, make_plot):
        plots = [make_plot("p1", 0, 0, area=1.5), make_plot("p2", 20, 0, area=1.5)]

        outcome = builder.build(to_points(plots), parameters())

        assert outcome.clusters == []
        assert [t.merged_size for t in outcome.residuals] == [2, 2]
        assert outcome.residuals[0].merged_area == pytest.approx(3.0)
        assert outcome.residuals[0].piece_area is None

    def test_accepted_clusters_satisfy_bounds(self, builder, make_plot):
        plots = [
            make_plot(f"p{i:02d}", (i % 5) * 35.0, (i // 5) * 35.0, area=0.8 + (i % 4) * 0.5)
            for i in range(25)
        ]
        params = parameters()

        outcome = builder.build(to_points(plots), params)

        placed = [p.plot_id for c in outcome.clusters for p in c]
        placed += [t.point.plot_id for t in outcome.residuals]
        assert sorted(placed) == sorted(p.plot_id for p in plots)
        for cluster in outcome.clusters:
            area = sum(p.plot.area for p in cluster)
            assert params.min_plots_per_group <= len(cluster) <= params.max_plots_per_group
            assert params.min_group_area - 1e-9 <= area <= params.max_group_area + 1e-9


class TestClusterCentroid:
    def test_mean_of_members(self, compact_plots):
        assert cluster_centroid(to_points(compact_plots)) == (15.0, 15.0)
