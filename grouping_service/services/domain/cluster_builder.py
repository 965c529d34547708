"""
Domain service: agglomerative spatial clustering of compatible plots.

Within one compatibility bucket, plots are merged closest-first under the
proximity threshold, merges that would make a cluster chain-like are
refused, and the resulting clusters are split or rejected until every
surviving cluster satisfies the plot-count and area bounds.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional
import math
import logging

import numpy as np
from shapely.geometry import Polygon

from grouping_service.config import settings
from grouping_service.domain.models import GroupingParameters, PlotCandidate
from grouping_service.utils.spatial_helpers import (
    SpatialIndex,
    distance,
    mean_centroid,
    merged_diameter,
)

logger = logging.getLogger(__name__)

# Tolerance for comparing summed plot areas against bounds
AREA_EPSILON = 1e-9

# Distances are compared at micrometer precision so float noise cannot reorder ties
DISTANCE_DECIMALS = 6

SQUARE_METERS_PER_HECTARE = 10_000.0


@dataclass
class ClusteringConfig:
    """Implementation constants for the clustering engine."""

    compact_span_multiple: float = 2.0
    """Clusters whose diameter is within this multiple of the threshold are always compact"""

    max_elongation: float = 2.5
    """Maximum diameter / sqrt(area in m²) for wider clusters"""

    border_buffer_m: float = 10.0
    """Buffer around member plots when drawing group outlines"""

    suggestion_radius_m: float = 5000.0
    """Groups further than this are not suggested for manual assignment"""

    @classmethod
    def from_settings(cls) -> "ClusteringConfig":
        return cls(
            compact_span_multiple=settings.grouping_compact_span_multiple,
            max_elongation=settings.grouping_max_elongation,
            border_buffer_m=settings.grouping_border_buffer_m,
            suggestion_radius_m=settings.grouping_suggestion_radius_m,
        )


@dataclass
class PlotPoint:
    """A plot placed in the planar frame of a run."""
    plot: PlotCandidate
    xy: Optional[tuple[float, float]]
    polygon: Optional[Polygon] = None

    @property
    def plot_id(self) -> str:
        return self.plot.plot_id


class SplitTrigger(str, Enum):
    """Which maximum forced a cluster to be split."""
    PLOT_COUNT = "plot_count"
    AREA = "area"


@dataclass
class ResidualTrace:
    """What the builder knows about a plot it could not place."""
    point: PlotPoint
    merged_size: int = 1
    merged_area: float = 0.0
    split_trigger: Optional[SplitTrigger] = None
    piece_size: Optional[int] = None
    piece_area: Optional[float] = None
    compactness_blocked: bool = False
    nearest_neighbor_distance: Optional[float] = None


@dataclass
class BucketOutcome:
    """Accepted clusters and residual plots of one bucket."""
    clusters: list[list[PlotPoint]] = field(default_factory=list)
    residuals: list[ResidualTrace] = field(default_factory=list)


class ClusterBuilder:
    """
    Proximity-first agglomerative clustering with shape and size control.

    Steps:
    1. Single-linkage merging of plots within the proximity threshold,
       closest pair first, ties broken by plot id
    2. Compactness check before every merge (first fit, no backtracking)
    3. Furthest-point bisection of clusters over the maxima
    4. Rejection of clusters under the minima
    """

    def __init__(self, config: Optional[ClusteringConfig] = None):
        self.config = config or ClusteringConfig.from_settings()

    def build(
        self,
        points: list[PlotPoint],
        parameters: GroupingParameters,
    ) -> BucketOutcome:
        """
        Cluster one compatibility bucket.

        Args:
            points: Located plots of the bucket
            parameters: Grouping parameters

        Returns:
            BucketOutcome with accepted clusters and residual traces
        """
        outcome = BucketOutcome()
        if not points:
            return outcome

        points = sorted(points, key=lambda p: p.plot_id)
        index = SpatialIndex([p.xy for p in points])
        clusters, blocked = self._agglomerate(points, index, parameters)

        for members in clusters:
            merged_area = math.fsum(points[i].plot.area for i in members)
            trigger = self._split_trigger(len(members), merged_area, parameters)

            if trigger is not None:
                pieces = self._split(members, points, index, parameters)
                logger.debug(f"Split cluster of {len(members)} plots ({merged_area:.2f} ha, "
                             f"{trigger.value}) into {len(pieces)} pieces")
            else:
                pieces = [members]

            for piece in pieces:
                if self._satisfies_bounds(piece, points, parameters):
                    outcome.clusters.append([points[i] for i in piece])
                    continue

                # Pieces are only tracked for clusters that were split
                piece_size = piece_area = None
                if trigger is not None:
                    piece_size = len(piece)
                    piece_area = math.fsum(points[i].plot.area for i in piece)

                for i in piece:
                    nearest = index.nearest(points[i].xy, exclude=i)
                    outcome.residuals.append(ResidualTrace(
                        point=points[i],
                        merged_size=len(members),
                        merged_area=merged_area,
                        split_trigger=trigger,
                        piece_size=piece_size,
                        piece_area=piece_area,
                        compactness_blocked=i in blocked,
                        nearest_neighbor_distance=nearest[1] if nearest else None,
                    ))

        logger.info(f"Bucket of {len(points)} plots: {len(outcome.clusters)} clusters accepted, "
                    f"{len(outcome.residuals)} plots left over")
        return outcome

    def _agglomerate(
        self,
        points: list[PlotPoint],
        index: SpatialIndex,
        parameters: GroupingParameters,
    ) -> tuple[list[list[int]], set[int]]:
        """
        Merge clusters closest-first under the proximity threshold.

        Args:
            points: Plots sorted by plot id
            index: Spatial index over the plot locations
            parameters: Grouping parameters

        Returns:
            Tuple of:
                - Clusters as sorted index lists, ordered by first index
                - Indices of plots touched by a refused merge
        """
        n = len(points)
        coords = index.points
        parent = list(range(n))
        members = {i: [i] for i in range(n)}
        diameters = {i: 0.0 for i in range(n)}
        areas = {i: points[i].plot.area for i in range(n)}
        blocked: set[int] = set()
        refused: set[tuple[int, int, int, int]] = set()

        def find(i: int) -> int:
            while parent[i] != i:
                parent[i] = parent[parent[i]]
                i = parent[i]
            return i

        # Index order is plot id order, so (i, j) ties resolve lower plot id first
        candidates = index.pairs_within(parameters.proximity_threshold)
        candidates.sort(key=lambda c: (round(c[2], DISTANCE_DECIMALS), c[0], c[1]))

        merge_count = 0
        for i, j, _ in candidates:
            root_i, root_j = find(i), find(j)
            if root_i == root_j:
                continue

            keep, absorb = min(root_i, root_j), max(root_i, root_j)
            state = (keep, absorb, len(members[keep]), len(members[absorb]))
            if state in refused:
                continue

            diameter = merged_diameter(
                coords[members[keep]], diameters[keep],
                coords[members[absorb]], diameters[absorb],
            )
            area = areas[keep] + areas[absorb]

            if not self._is_coherent(diameter, area, parameters.proximity_threshold):
                refused.add(state)
                blocked.update(members[keep])
                blocked.update(members[absorb])
                continue

            parent[absorb] = keep
            members[keep] = sorted(members[keep] + members.pop(absorb))
            diameters[keep] = diameter
            areas[keep] = area
            del diameters[absorb], areas[absorb]
            merge_count += 1

        logger.debug(f"Agglomeration: {len(candidates)} candidate pairs, {merge_count} merges, "
                     f"{len(refused)} refused as non-compact")

        clusters = sorted(members.values(), key=lambda m: m[0])
        return clusters, blocked

    def _is_coherent(self, diameter: float, area_ha: float, threshold: float) -> bool:
        """
        Check that a cluster is compact rather than chain-like.

        A cluster spanning no more than compact_span_multiple thresholds is
        always compact. Wider clusters must not be elongated relative to
        their area.
        """
        if diameter <= self.config.compact_span_multiple * threshold:
            return True

        area_m2 = area_ha * SQUARE_METERS_PER_HECTARE
        if area_m2 <= 0:
            return True

        return diameter / math.sqrt(area_m2) <= self.config.max_elongation

    def _split_trigger(
        self,
        plot_count: int,
        area: float,
        parameters: GroupingParameters,
    ) -> Optional[SplitTrigger]:
        if plot_count > parameters.max_plots_per_group:
            return SplitTrigger.PLOT_COUNT
        if area > parameters.max_group_area + AREA_EPSILON:
            return SplitTrigger.AREA
        return None

    def _split(
        self,
        members: list[int],
        points: list[PlotPoint],
        index: SpatialIndex,
        parameters: GroupingParameters,
    ) -> list[list[int]]:
        """
        Furthest-point bisection until both maxima hold.

        The member farthest from the centroid seeds a new half, which grows
        by proximity to the seed until it holds half the plots or half the
        area. Both halves are split again as needed. A single plot that is
        still too large cannot be split further.

        Args:
            members: Sorted plot indices of the cluster
            points: Plots of the bucket
            index: Spatial index holding the planar coordinates
            parameters: Grouping parameters

        Returns:
            List of pieces as sorted index lists
        """
        area = math.fsum(points[i].plot.area for i in members)
        if len(members) == 1 or self._split_trigger(len(members), area, parameters) is None:
            return [members]

        coords = index.points
        centroid = mean_centroid(coords[members])

        # Farthest from centroid; ties go to the lower plot id
        seed = max(
            members,
            key=lambda i: (round(distance(coords[i], centroid), DISTANCE_DECIMALS), -i),
        )
        rest = sorted(
            (i for i in members if i != seed),
            key=lambda i: (round(distance(coords[i], coords[seed]), DISTANCE_DECIMALS), i),
        )

        half = [seed]
        half_area = points[seed].plot.area
        for i in rest:
            if len(half) * 2 >= len(members) or half_area * 2 >= area:
                break
            half.append(i)
            half_area += points[i].plot.area

        in_half = set(half)
        other = [i for i in members if i not in in_half]

        return (
            self._split(sorted(half), points, index, parameters)
            + self._split(other, points, index, parameters)
        )

    def _satisfies_bounds(
        self,
        piece: list[int],
        points: list[PlotPoint],
        parameters: GroupingParameters,
    ) -> bool:
        area = math.fsum(points[i].plot.area for i in piece)
        count_ok = parameters.min_plots_per_group <= len(piece) <= parameters.max_plots_per_group
        area_ok = (
            parameters.min_group_area - AREA_EPSILON
            <= area
            <= parameters.max_group_area + AREA_EPSILON
        )
        return count_ok and area_ok


def cluster_centroid(cluster: list[PlotPoint]) -> tuple[float, float]:
    """Planar mean location of a cluster."""
    return mean_centroid(np.array([p.xy for p in cluster], dtype=float))
