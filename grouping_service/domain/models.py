"""
Domain models for plot grouping.

These models represent the core domain entities and should be independent
of any infrastructure concerns (API clients, databases, etc.).
"""
import math
from datetime import date, datetime
from enum import Enum
from typing import Annotated, List, Optional, Tuple

from pydantic import BaseModel, Field, field_validator
from shapely.errors import GEOSException
from shapely.geometry import Polygon


# Sentinel used by upstream systems for "no planting date recorded"
UNSET_PLANTING_DATE = date.min


class CoordinateSystem(str, Enum):
    """Coordinate system of plot centroids and boundaries."""
    GEOGRAPHIC = "geographic"
    PROJECTED = "projected"


class UngroupReason(str, Enum):
    """Why a plot was left out of every proposed group."""
    ISOLATED_LOCATION = "IsolatedLocation"
    NOT_SPATIALLY_COHERENT = "NotSpatiallyCoherent"
    TOO_FEW_PLOTS = "TooFewPlots"
    INSUFFICIENT_AREA = "InsufficientArea"
    GROUP_TOO_LARGE = "GroupTooLarge"
    TOO_MANY_PLOTS = "TooManyPlots"
    CONSTRAINT_VIOLATION = "ConstraintViolation"


class PlotCandidate(BaseModel):
    """A plot eligible for grouping in one run."""
    plot_id: str
    farmer_id: str
    area: float = Field(gt=0, description="Plot area in hectares")
    centroid: Optional[Tuple[float, float]] = Field(
        default=None,
        description="Plot centroid as (x, y): (lon, lat) or projected meters"
    )
    rice_variety_id: str
    planting_date: date = Field(
        default_factory=date.today,
        description="Planting date; missing or sentinel values become today"
    )
    boundary: Optional[List[Annotated[List[float], Field(min_length=2, max_length=2)]]] = Field(
        default=None,
        description="Exterior ring as [x, y] pairs, used for display only"
    )

    class Config:
        frozen = True

    @field_validator("planting_date", mode="before")
    @classmethod
    def normalize_planting_date(cls, value):
        if value is None:
            return date.today()
        if isinstance(value, str):
            if value.startswith(UNSET_PLANTING_DATE.isoformat()):
                return date.today()
            value = value[:10]
        if isinstance(value, datetime):
            value = value.date()
        if isinstance(value, date) and value == UNSET_PLANTING_DATE:
            return date.today()
        return value

    def location(self) -> Optional[Tuple[float, float]]:
        """
        Resolve the point used for clustering.

        Falls back to the boundary centroid when no centroid was supplied.

        Returns:
            (x, y) tuple, or None if the plot cannot be located
        """
        if self.centroid is not None:
            x, y = self.centroid
            if math.isfinite(x) and math.isfinite(y):
                return (float(x), float(y))
            return None

        ring = self.boundary_ring()
        if ring is None:
            return None

        try:
            polygon = Polygon(ring)
            if polygon.is_empty or polygon.area == 0:
                return None
            point = polygon.centroid
        except (GEOSException, ValueError):
            return None
        if not (math.isfinite(point.x) and math.isfinite(point.y)):
            return None
        return (float(point.x), float(point.y))

    def boundary_ring(self) -> Optional[List[Tuple[float, float]]]:
        """Boundary as (x, y) tuples, or None when it cannot form a polygon."""
        if not self.boundary or len(self.boundary) < 3:
            return None
        ring = []
        for coords in self.boundary:
            if len(coords) < 2 or not (math.isfinite(coords[0]) and math.isfinite(coords[1])):
                return None
            ring.append((float(coords[0]), float(coords[1])))
        return ring


class GroupingParameters(BaseModel):
    """
    Constraints for one grouping run.

    Values are taken as supplied. Contract violations (inverted bounds,
    non-positive threshold) are reported by the engine, never corrected.
    """
    proximity_threshold: float = Field(default=100.0, description="Meters")
    planting_date_tolerance: int = Field(default=2, description="Days")
    min_group_area: float = Field(default=5.0, description="Hectares")
    max_group_area: float = Field(default=15.0, description="Hectares")
    min_plots_per_group: int = 3
    max_plots_per_group: int = 10
    coordinate_system: CoordinateSystem = CoordinateSystem.GEOGRAPHIC

    class Config:
        frozen = True

    def validation_errors(self) -> List[str]:
        """Return a description of every violated invariant."""
        errors = []
        if self.proximity_threshold <= 0:
            errors.append("proximity_threshold must be greater than 0")
        if self.planting_date_tolerance < 0:
            errors.append("planting_date_tolerance must not be negative")
        if self.min_group_area < 0:
            errors.append("min_group_area must not be negative")
        if self.min_plots_per_group < 1:
            errors.append("min_plots_per_group must be at least 1")
        if self.min_group_area > self.max_group_area:
            errors.append(
                f"min_group_area ({self.min_group_area}) exceeds "
                f"max_group_area ({self.max_group_area})"
            )
        if self.min_plots_per_group > self.max_plots_per_group:
            errors.append(
                f"min_plots_per_group ({self.min_plots_per_group}) exceeds "
                f"max_plots_per_group ({self.max_plots_per_group})"
            )
        return errors


class ProposedGroup(BaseModel):
    """A production group proposed by the engine."""
    group_number: int
    rice_variety_id: str
    planting_window_start: date
    planting_window_end: date
    median_planting_date: date
    plots: List[PlotCandidate]
    total_area: float = Field(description="Sum of member areas in hectares")
    centroid: Tuple[float, float] = Field(
        description="Mean member location in the input coordinate system"
    )
    boundary: Optional[List[List[float]]] = Field(
        default=None,
        description="Exterior ring of the group outline in the input coordinate system"
    )

    class Config:
        frozen = True

    @property
    def plot_ids(self) -> List[str]:
        return [plot.plot_id for plot in self.plots]

    @property
    def plot_count(self) -> int:
        return len(self.plots)


class UngroupedPlotInfo(BaseModel):
    """A plot that could not be placed, with the reason and remediation hints."""
    plot: PlotCandidate
    reason: UngroupReason
    reason_description: str = ""
    nearest_group_number: Optional[int] = None
    distance_to_nearest_group: Optional[float] = Field(
        default=None,
        description="Distance in meters to the nearest group centroid"
    )
    suggestions: List[str] = Field(default_factory=list)


class SupervisorCandidate(BaseModel):
    """A supervisor who may take on groups this season."""
    supervisor_id: str
    cluster_id: Optional[str] = None
    current_total_area: float = Field(
        default=0.0,
        description="Area in hectares already assigned this season"
    )
    max_area_capacity: Optional[float] = None

    @property
    def is_available(self) -> bool:
        if self.max_area_capacity is None:
            return True
        return self.current_total_area < self.max_area_capacity


class SupervisorAssignment(BaseModel):
    """Advisory pairing of a proposed group with a supervisor."""
    group_number: int
    supervisor_id: Optional[str] = None


class GroupingResult(BaseModel):
    """Outcome of one grouping run."""
    succeeded: bool = True
    errors: List[str] = Field(default_factory=list)
    groups: List[ProposedGroup] = Field(default_factory=list)
    ungrouped: List[UngroupedPlotInfo] = Field(default_factory=list)
    assignments: List[SupervisorAssignment] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)

    @classmethod
    def failure(cls, errors: List[str]) -> "GroupingResult":
        return cls(succeeded=False, errors=errors)
