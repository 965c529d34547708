"""
Domain service: explain why plots were left out of every group.
"""
from dataclasses import dataclass
from typing import Optional
import logging

from grouping_service.domain.models import (
    GroupingParameters,
    UngroupReason,
    UngroupedPlotInfo,
)
from grouping_service.services.domain.cluster_builder import (
    AREA_EPSILON,
    ResidualTrace,
    SplitTrigger,
)
from grouping_service.utils.spatial_helpers import distance

logger = logging.getLogger(__name__)

MAX_SUGGESTIONS = 3


@dataclass
class GroupAnchor:
    """Where an accepted group sits in the planar frame."""
    group_number: int
    rice_variety_id: str
    centroid: tuple[float, float]


REASON_SUGGESTIONS: dict[UngroupReason, list[str]] = {
    UngroupReason.TOO_FEW_PLOTS: [
        "Reduce minimum plots per group parameter",
        "Consider adjusting proximity threshold parameter",
    ],
    UngroupReason.INSUFFICIENT_AREA: [
        "Reduce minimum area parameter",
        "Merge with nearby group manually",
    ],
    UngroupReason.TOO_MANY_PLOTS: [
        "Increase maximum plots per group parameter",
        "Create exception group for the remaining plots",
    ],
    UngroupReason.GROUP_TOO_LARGE: [
        "Increase maximum area parameter",
        "Create exception group for this plot",
    ],
    UngroupReason.NOT_SPATIALLY_COHERENT: [
        "Consider adjusting proximity threshold parameter",
        "Assign to nearby group manually",
    ],
    UngroupReason.ISOLATED_LOCATION: [
        "Create exception group if multiple isolated plots exist nearby",
        "Consider adjusting proximity threshold parameter",
    ],
    UngroupReason.CONSTRAINT_VIOLATION: [
        "Review plot data and assign to a group manually",
    ],
}


class RejectionClassifier:
    """
    Assign exactly one reason to each residual plot.

    Reasons are tested in priority order and the first match wins:
    missing location, too few plots, insufficient area (of the merged cluster,
    then of the piece left after a split), split-off from an
    oversized cluster, refused by the compactness check, isolated,
    catch-all constraint violation.
    """

    def __init__(self, suggestion_radius_m: float = 5000.0):
        self.suggestion_radius_m = suggestion_radius_m

    def classify(
        self,
        traces: list[ResidualTrace],
        anchors: list[GroupAnchor],
        parameters: GroupingParameters,
    ) -> list[UngroupedPlotInfo]:
        """
        Classify residual plots and attach nearest-group hints.

        Args:
            traces: Residual traces from the cluster builder
            anchors: Accepted groups with planar centroids
            parameters: Grouping parameters of the run

        Returns:
            One UngroupedPlotInfo per trace, in trace order
        """
        results = []
        for trace in traces:
            reason, description = self._reason(trace, parameters)
            nearest = self._nearest_group(trace, anchors)

            suggestions = []
            if nearest is not None and nearest[1] < self.suggestion_radius_m:
                suggestions.append(
                    f"Assign to Group {nearest[0]} manually ({nearest[1]:.0f}m away)"
                )
            for suggestion in REASON_SUGGESTIONS[reason]:
                if len(suggestions) >= MAX_SUGGESTIONS:
                    break
                suggestions.append(suggestion)

            results.append(UngroupedPlotInfo(
                plot=trace.point.plot,
                reason=reason,
                reason_description=description,
                nearest_group_number=nearest[0] if nearest else None,
                distance_to_nearest_group=nearest[1] if nearest else None,
                suggestions=suggestions,
            ))

        if results:
            counts: dict[str, int] = {}
            for info in results:
                counts[info.reason.value] = counts.get(info.reason.value, 0) + 1
            logger.info(f"Classified {len(results)} ungrouped plots: {counts}")

        return results

    def _reason(
        self,
        trace: ResidualTrace,
        parameters: GroupingParameters,
    ) -> tuple[UngroupReason, str]:
        if trace.point.xy is None:
            return (UngroupReason.CONSTRAINT_VIOLATION,
                    "Plot boundary/coordinate not assigned")

        if 2 <= trace.merged_size < parameters.min_plots_per_group:
            return (UngroupReason.TOO_FEW_PLOTS,
                    f"Only {trace.merged_size} plots in spatial cluster "
                    f"(minimum {parameters.min_plots_per_group} required)")

        if trace.merged_size >= 2 and trace.merged_area < parameters.min_group_area - AREA_EPSILON:
            return (UngroupReason.INSUFFICIENT_AREA,
                    f"Total area {trace.merged_area:.2f} ha below minimum "
                    f"{parameters.min_group_area} ha")

        if trace.piece_area is not None and trace.piece_area < parameters.min_group_area - AREA_EPSILON:
            return (UngroupReason.INSUFFICIENT_AREA,
                    f"Piece of {trace.piece_size} plots left after splitting covers "
                    f"{trace.piece_area:.2f} ha, below minimum {parameters.min_group_area} ha")

        if trace.split_trigger == SplitTrigger.PLOT_COUNT:
            return (UngroupReason.TOO_MANY_PLOTS,
                    f"Left over after splitting a cluster of {trace.merged_size} plots "
                    f"(maximum {parameters.max_plots_per_group} per group)")

        if trace.split_trigger == SplitTrigger.AREA:
            return (UngroupReason.GROUP_TOO_LARGE,
                    f"Left over after splitting a cluster of {trace.merged_area:.2f} ha "
                    f"(maximum {parameters.max_group_area} ha per group)")

        if trace.compactness_blocked:
            return (UngroupReason.NOT_SPATIALLY_COHERENT,
                    "Joining the nearby plots would form an elongated, non-compact group")

        if (trace.nearest_neighbor_distance is None
                or trace.nearest_neighbor_distance > parameters.proximity_threshold):
            if trace.nearest_neighbor_distance is None:
                detail = "no compatible plot with the same variety and planting window"
            else:
                detail = f"nearest compatible plot is {trace.nearest_neighbor_distance:.0f}m away"
            return (UngroupReason.ISOLATED_LOCATION,
                    f"No compatible plot within {parameters.proximity_threshold:.0f}m ({detail})")

        return (UngroupReason.CONSTRAINT_VIOLATION,
                "Plot could not satisfy the grouping constraints")

    def _nearest_group(
        self,
        trace: ResidualTrace,
        anchors: list[GroupAnchor],
    ) -> Optional[tuple[int, float]]:
        """Closest accepted group of the same variety, as (group_number, meters)."""
        if trace.point.xy is None:
            return None

        best = None
        for anchor in anchors:
            if anchor.rice_variety_id != trace.point.plot.rice_variety_id:
                continue
            d = distance(trace.point.xy, anchor.centroid)
            if best is None or (d, anchor.group_number) < (best[1], best[0]):
                best = (anchor.group_number, d)
        return best
