"""
API request models using Pydantic.
"""
from typing import List, Optional
from pydantic import BaseModel, Field

from grouping_service.domain.models import (
    CoordinateSystem,
    GroupingParameters,
    PlotCandidate,
    SupervisorCandidate,
)


class GroupingParametersRequest(BaseModel):
    """
    Optional overrides for the grouping parameters.

    Omitted fields take the engine defaults. Supplied values are passed
    through unchanged and contract violations are reported as 400.
    """
    proximity_threshold: Optional[float] = Field(
        default=None,
        description="Maximum distance in meters between neighbouring plots",
        examples=[100.0]
    )
    planting_date_tolerance: Optional[int] = Field(
        default=None,
        description="Maximum planting date difference in days within a window",
        examples=[2]
    )
    min_group_area: Optional[float] = Field(
        default=None,
        description="Minimum total group area in hectares",
        examples=[5.0]
    )
    max_group_area: Optional[float] = Field(
        default=None,
        description="Maximum total group area in hectares",
        examples=[15.0]
    )
    min_plots_per_group: Optional[int] = Field(
        default=None,
        description="Minimum plots per group",
        examples=[3]
    )
    max_plots_per_group: Optional[int] = Field(
        default=None,
        description="Maximum plots per group",
        examples=[10]
    )
    coordinate_system: Optional[CoordinateSystem] = Field(
        default=None,
        description="'geographic' for lon/lat input, 'projected' for planar meters"
    )

    def to_parameters(self) -> GroupingParameters:
        """Merge the supplied overrides onto the default parameters."""
        return GroupingParameters(**self.model_dump(exclude_none=True))


class GroupPreviewRequest(BaseModel):
    """Request body for a preview on caller-supplied plots."""
    plots: List[PlotCandidate] = Field(
        description="Eligible plots of one cluster and season"
    )
    parameters: Optional[GroupingParametersRequest] = None
    supervisors: Optional[List[SupervisorCandidate]] = Field(
        default=None,
        description="Supervisor roster; omit to skip supervisor assignment"
    )
    cluster_id: Optional[str] = Field(
        default=None,
        description="Only assign supervisors of this cluster"
    )

    class Config:
        json_schema_extra = {
            "example": {
                "plots": [
                    {
                        "plot_id": "plot-1",
                        "farmer_id": "farmer-1",
                        "area": 1.6,
                        "centroid": [105.7700, 10.0300],
                        "rice_variety_id": "OM5451",
                        "planting_date": "2025-01-10",
                    },
                ],
                "parameters": {"proximity_threshold": 150},
            }
        }
