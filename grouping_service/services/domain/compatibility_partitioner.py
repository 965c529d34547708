"""
Domain service: split candidate plots into independent grouping problems.

Plots of different rice varieties, or with planting dates too far apart,
must never share a group, so each variety/date window is clustered on its own.
"""
from dataclasses import dataclass, field
from datetime import date, timedelta
from itertools import groupby
import logging

from grouping_service.domain.models import GroupingParameters, PlotCandidate

logger = logging.getLogger(__name__)


@dataclass
class CompatibilityBucket:
    """Plots sharing a rice variety and a contiguous planting window."""
    rice_variety_id: str
    window_start: date
    window_end: date
    plots: list[PlotCandidate] = field(default_factory=list)


def partition_plots(
    plots: list[PlotCandidate],
    parameters: GroupingParameters,
) -> list[CompatibilityBucket]:
    """
    Bucket plots by exact variety and greedy planting-date windows.

    Within a variety, plots are taken in planting-date order and a new
    window opens whenever the next date is later than the latest date in
    the current window plus the tolerance.

    Args:
        plots: Plots to partition
        parameters: Grouping parameters (planting_date_tolerance is used)

    Returns:
        Buckets ordered by variety id, then window start
    """
    tolerance = timedelta(days=parameters.planting_date_tolerance)
    ordered = sorted(plots, key=lambda p: (p.rice_variety_id, p.planting_date, p.plot_id))

    buckets: list[CompatibilityBucket] = []
    for variety_id, variety_plots in groupby(ordered, key=lambda p: p.rice_variety_id):
        current = None
        for plot in variety_plots:
            if current is None or plot.planting_date > current.window_end + tolerance:
                current = CompatibilityBucket(
                    rice_variety_id=variety_id,
                    window_start=plot.planting_date,
                    window_end=plot.planting_date,
                )
                buckets.append(current)
            current.plots.append(plot)
            current.window_end = max(current.window_end, plot.planting_date)

    logger.debug(f"Partitioned {len(plots)} plots into {len(buckets)} compatibility buckets")
    return buckets
