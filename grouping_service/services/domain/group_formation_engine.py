"""
Domain service: form production groups from eligible plots.

This module composes the grouping pipeline:
- Planar projection of plot locations
- Variety / planting-window partitioning
- Agglomerative spatial clustering per bucket
- Classification of plots that could not be placed
- Advisory supervisor assignment
"""
from collections import Counter
from typing import Optional
import logging
import math

from shapely.errors import GEOSException
from shapely.geometry import Polygon

from grouping_service.domain.models import (
    CoordinateSystem,
    GroupingParameters,
    GroupingResult,
    PlotCandidate,
    ProposedGroup,
    SupervisorCandidate,
)
from grouping_service.services.domain.cluster_builder import (
    ClusterBuilder,
    ClusteringConfig,
    PlotPoint,
    ResidualTrace,
    cluster_centroid,
)
from grouping_service.services.domain.compatibility_partitioner import partition_plots
from grouping_service.services.domain.rejection_classifier import (
    GroupAnchor,
    RejectionClassifier,
)
from grouping_service.services.domain.supervisor_load_balancer import SupervisorLoadBalancer
from grouping_service.utils.geo_projection import (
    PlanarFrame,
    build_planar_frame,
    is_valid_lonlat,
)
from grouping_service.utils.spatial_helpers import build_group_boundary

logger = logging.getLogger(__name__)


class GroupFormationEngine:
    """
    Pure, synchronous grouping of plots into production groups.

    Holds no state between calls. Every outcome, including invalid input,
    is returned as a GroupingResult.
    """

    def __init__(self, config: Optional[ClusteringConfig] = None):
        """
        Initialize the engine.

        Args:
            config: Clustering constants (defaults come from settings)
        """
        self.config = config or ClusteringConfig.from_settings()
        self.builder = ClusterBuilder(self.config)
        self.classifier = RejectionClassifier(self.config.suggestion_radius_m)
        self.balancer = SupervisorLoadBalancer()

        logger.info(f"Initialized GroupFormationEngine with config: "
                    f"span_multiple={self.config.compact_span_multiple}, "
                    f"max_elongation={self.config.max_elongation}")

    def form_groups(
        self,
        plots: list[PlotCandidate],
        parameters: Optional[GroupingParameters] = None,
        supervisors: Optional[list[SupervisorCandidate]] = None,
        cluster_id: Optional[str] = None,
    ) -> GroupingResult:
        """
        Partition plots into proposed groups and ungrouped plots.

        Args:
            plots: Eligible plots for one cluster and season
            parameters: Grouping constraints (defaults when omitted)
            supervisors: Supervisor roster; None skips assignment
            cluster_id: Restrict assignment to supervisors of this cluster

        Returns:
            GroupingResult; succeeded is False when the input is invalid
        """
        parameters = parameters or GroupingParameters()

        errors = self.validate(plots, parameters)
        if errors:
            logger.warning(f"Rejected grouping request: {'; '.join(errors)}")
            return GroupingResult.failure(errors)

        try:
            return self._run(plots, parameters, supervisors, cluster_id)
        except Exception as e:
            logger.exception(f"Unexpected error while forming groups: {str(e)}")
            return GroupingResult.failure([f"Unexpected grouping error: {str(e)}"])

    def validate(
        self,
        plots: list[PlotCandidate],
        parameters: GroupingParameters,
    ) -> list[str]:
        """
        Check the input contract before any clustering runs.

        Args:
            plots: Eligible plots
            parameters: Grouping constraints

        Returns:
            List of error messages (empty when the input is valid)
        """
        errors = []
        if not plots:
            errors.append("No eligible plots supplied for grouping")

        duplicates = sorted(pid for pid, n in Counter(p.plot_id for p in plots).items() if n > 1)
        if duplicates:
            errors.append(f"Duplicate plot ids: {', '.join(duplicates)}")

        errors.extend(parameters.validation_errors())
        return errors

    def _run(
        self,
        plots: list[PlotCandidate],
        parameters: GroupingParameters,
        supervisors: Optional[list[SupervisorCandidate]],
        cluster_id: Optional[str],
    ) -> GroupingResult:
        logger.info(f"Starting group formation for {len(plots)} plots")

        # Step 1: Resolve locations and project to a planar frame
        located = [(plot, self._locate(plot, parameters)) for plot in plots]
        frame = build_planar_frame(
            [loc for _, loc in located if loc is not None],
            parameters.coordinate_system,
        )
        points = {plot.plot_id: self._to_point(plot, loc, frame) for plot, loc in located}

        traces = [
            ResidualTrace(point=point)
            for point in points.values() if point.xy is None
        ]
        if traces:
            logger.warning(f"{len(traces)} plots have no usable location")

        # Step 2: Partition into compatible buckets
        buckets = partition_plots(
            [p.plot for p in points.values() if p.xy is not None],
            parameters,
        )
        logger.info(f"Formed {len(buckets)} compatibility buckets")

        # Step 3: Cluster each bucket
        clusters: list[tuple[str, list[PlotPoint]]] = []
        for bucket in buckets:
            outcome = self.builder.build(
                [points[plot.plot_id] for plot in bucket.plots],
                parameters,
            )
            clusters.extend((bucket.rice_variety_id, cluster) for cluster in outcome.clusters)
            traces.extend(outcome.residuals)

        # Step 4: Number accepted clusters and build groups
        groups, anchors = self._create_groups(clusters, frame)

        # Step 5: Explain leftovers
        traces.sort(key=lambda t: t.point.plot_id)
        ungrouped = self.classifier.classify(traces, anchors, parameters)

        # Step 6: Advise supervisors
        assignments = []
        warnings = []
        if supervisors is not None:
            assignments = self.balancer.assign(groups, supervisors, cluster_id)
            unassigned = [a.group_number for a in assignments if a.supervisor_id is None]
            if unassigned:
                warnings.append(
                    f"{len(unassigned)} groups have no supervisor - no supervisors available"
                )

        logger.info(f"Formed {len(groups)} groups covering "
                    f"{sum(g.plot_count for g in groups)} plots, {len(ungrouped)} ungrouped")

        return GroupingResult(
            groups=groups,
            ungrouped=ungrouped,
            assignments=assignments,
            warnings=warnings,
        )

    def _to_point(
        self,
        plot: PlotCandidate,
        location: Optional[tuple[float, float]],
        frame: PlanarFrame,
    ) -> PlotPoint:
        if location is None:
            return PlotPoint(plot=plot, xy=None)

        xy = frame.to_meters([location])[0]
        if not all(math.isfinite(v) for v in xy):
            logger.warning(f"Plot {plot.plot_id} cannot be projected from {location}")
            return PlotPoint(plot=plot, xy=None)

        return PlotPoint(plot=plot, xy=xy, polygon=self._project_boundary(plot, frame))

    def _locate(
        self,
        plot: PlotCandidate,
        parameters: GroupingParameters,
    ) -> Optional[tuple[float, float]]:
        location = plot.location()
        if (location is not None
                and parameters.coordinate_system == CoordinateSystem.GEOGRAPHIC
                and not is_valid_lonlat(*location)):
            logger.warning(f"Plot {plot.plot_id} has out-of-range coordinates {location}")
            return None
        return location

    def _project_boundary(self, plot: PlotCandidate, frame: PlanarFrame) -> Optional[Polygon]:
        """Planar outline of a plot, or None when its boundary is unusable."""
        ring = plot.boundary_ring()
        if ring is None:
            return None

        projected = frame.to_meters(ring)
        if not all(math.isfinite(v) for xy in projected for v in xy):
            return None

        try:
            polygon = Polygon(projected)
            if not polygon.is_valid:
                polygon = polygon.buffer(0)
        except (GEOSException, ValueError) as e:
            logger.warning(f"Ignoring boundary of plot {plot.plot_id}: {str(e)}")
            return None

        if polygon.is_empty or polygon.geom_type != "Polygon":
            return None
        return polygon

    def _create_groups(
        self,
        clusters: list[tuple[str, list[PlotPoint]]],
        frame: PlanarFrame,
    ) -> tuple[list[ProposedGroup], list[GroupAnchor]]:
        """
        Turn accepted clusters into numbered ProposedGroups.

        Groups are numbered by earliest planting date, then centroid
        longitude (x), then variety and first plot id.

        Args:
            clusters: (rice_variety_id, members) pairs
            frame: Planar frame of the run

        Returns:
            Tuple of (groups, anchors) in group-number order
        """
        prepared = []
        for variety_id, members in clusters:
            members = sorted(members, key=lambda p: (p.plot.planting_date, p.plot_id))
            centroid_m = cluster_centroid(members)
            centroid = frame.to_source([centroid_m])[0]
            window_start = members[0].plot.planting_date
            prepared.append((
                (window_start, centroid[0], variety_id, min(p.plot_id for p in members)),
                variety_id,
                members,
                centroid_m,
                centroid,
            ))

        prepared.sort(key=lambda item: item[0])

        groups = []
        anchors = []
        for number, (_, variety_id, members, centroid_m, centroid) in enumerate(prepared, start=1):
            dates = [p.plot.planting_date for p in members]
            boundary = build_group_boundary(
                [p.polygon for p in members],
                [p.xy for p in members],
                self.config.border_buffer_m,
            )
            ring = None
            if boundary is not None:
                ring = [list(c) for c in frame.to_source(list(boundary.exterior.coords))]

            groups.append(ProposedGroup(
                group_number=number,
                rice_variety_id=variety_id,
                planting_window_start=min(dates),
                planting_window_end=max(dates),
                median_planting_date=dates[len(dates) // 2],
                plots=[p.plot for p in members],
                total_area=sum(p.plot.area for p in members),
                centroid=centroid,
                boundary=ring,
            ))
            anchors.append(GroupAnchor(
                group_number=number,
                rice_variety_id=variety_id,
                centroid=centroid_m,
            ))

        return groups, anchors
