"""
API response models using Pydantic.
"""
from datetime import date
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field

from grouping_service.domain.models import (
    GroupingParameters,
    GroupingResult,
    ProposedGroup,
    UngroupedPlotInfo,
)


class PreviewSummary(BaseModel):
    """Totals of a grouping preview."""
    total_eligible_plots: int = Field(description="Plots supplied to the engine")
    plots_grouped: int = Field(description="Plots placed in a group")
    ungrouped_plots: int = Field(description="Plots left out of every group")
    groups_to_be_formed: int = Field(description="Number of proposed groups")
    estimated_total_area: float = Field(description="Total grouped area in hectares")


class PreviewGroupDto(BaseModel):
    """A proposed group."""
    group_number: int
    rice_variety_id: str
    planting_window_start: date
    planting_window_end: date
    median_planting_date: date
    plot_count: int
    total_area: float = Field(description="Hectares")
    centroid_lng: float = Field(description="Longitude (x for projected input)")
    centroid_lat: float = Field(description="Latitude (y for projected input)")
    boundary: Optional[Dict[str, Any]] = Field(
        default=None,
        description="Group outline as a GeoJSON Polygon"
    )
    plot_ids: List[str]
    supervisor_id: Optional[str] = Field(
        default=None,
        description="Advised supervisor, if one was assigned"
    )


class UngroupedPlotDto(BaseModel):
    """A plot that could not be grouped."""
    plot_id: str
    farmer_id: str
    rice_variety_id: str
    planting_date: date
    area: float = Field(description="Hectares")
    ungroup_reason: str
    reason_description: str
    nearest_group_number: Optional[int] = None
    distance_to_nearest_group: Optional[float] = Field(
        default=None,
        description="Meters to the nearest group centroid of the same variety"
    )
    suggestions: List[str] = Field(default_factory=list)


class PreviewGroupsResponse(BaseModel):
    """Response model for group preview endpoints."""
    cluster_id: Optional[str] = None
    season_id: Optional[str] = None
    parameters: GroupingParameters
    summary: PreviewSummary
    groups: List[PreviewGroupDto]
    ungrouped_plots: List[UngroupedPlotDto]
    warnings: List[str] = Field(default_factory=list)

    class Config:
        json_schema_extra = {
            "example": {
                "cluster_id": "cluster-1",
                "season_id": "winter-spring-2025",
                "parameters": {
                    "proximity_threshold": 100.0,
                    "planting_date_tolerance": 2,
                    "min_group_area": 5.0,
                    "max_group_area": 15.0,
                    "min_plots_per_group": 3,
                    "max_plots_per_group": 10,
                    "coordinate_system": "geographic",
                },
                "summary": {
                    "total_eligible_plots": 6,
                    "plots_grouped": 5,
                    "ungrouped_plots": 1,
                    "groups_to_be_formed": 1,
                    "estimated_total_area": 8.0,
                },
                "groups": [],
                "ungrouped_plots": [],
                "warnings": [],
            }
        }


def to_geojson_polygon(ring: Optional[List[List[float]]]) -> Optional[Dict[str, Any]]:
    """Wrap an exterior ring as a GeoJSON Polygon geometry."""
    if not ring:
        return None
    return {"type": "Polygon", "coordinates": [ring]}


def to_group_dto(group: ProposedGroup, supervisor_id: Optional[str] = None) -> PreviewGroupDto:
    return PreviewGroupDto(
        group_number=group.group_number,
        rice_variety_id=group.rice_variety_id,
        planting_window_start=group.planting_window_start,
        planting_window_end=group.planting_window_end,
        median_planting_date=group.median_planting_date,
        plot_count=group.plot_count,
        total_area=round(group.total_area, 4),
        centroid_lng=group.centroid[0],
        centroid_lat=group.centroid[1],
        boundary=to_geojson_polygon(group.boundary),
        plot_ids=group.plot_ids,
        supervisor_id=supervisor_id,
    )


def to_ungrouped_dto(info: UngroupedPlotInfo) -> UngroupedPlotDto:
    distance = info.distance_to_nearest_group
    return UngroupedPlotDto(
        plot_id=info.plot.plot_id,
        farmer_id=info.plot.farmer_id,
        rice_variety_id=info.plot.rice_variety_id,
        planting_date=info.plot.planting_date,
        area=info.plot.area,
        ungroup_reason=info.reason.value,
        reason_description=info.reason_description,
        nearest_group_number=info.nearest_group_number,
        distance_to_nearest_group=round(distance, 1) if distance is not None else None,
        suggestions=info.suggestions,
    )


def build_preview_response(
    result: GroupingResult,
    parameters: GroupingParameters,
    cluster_id: Optional[str] = None,
    season_id: Optional[str] = None,
) -> PreviewGroupsResponse:
    """
    Transform a successful GroupingResult into the preview response.

    Args:
        result: Engine result
        parameters: Parameters the engine ran with
        cluster_id: Cluster the preview belongs to, if known
        season_id: Season the preview belongs to, if known

    Returns:
        PreviewGroupsResponse
    """
    supervisors = {a.group_number: a.supervisor_id for a in result.assignments}
    plots_grouped = sum(g.plot_count for g in result.groups)

    return PreviewGroupsResponse(
        cluster_id=cluster_id,
        season_id=season_id,
        parameters=parameters,
        summary=PreviewSummary(
            total_eligible_plots=plots_grouped + len(result.ungrouped),
            plots_grouped=plots_grouped,
            ungrouped_plots=len(result.ungrouped),
            groups_to_be_formed=len(result.groups),
            estimated_total_area=round(sum(g.total_area for g in result.groups), 4),
        ),
        groups=[to_group_dto(g, supervisors.get(g.group_number)) for g in result.groups],
        ungrouped_plots=[to_ungrouped_dto(u) for u in result.ungrouped],
        warnings=result.warnings,
    )
