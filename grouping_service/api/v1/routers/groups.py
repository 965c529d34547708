"""
API router for group formation previews.
"""
from fastapi import APIRouter, HTTPException, Path, Query
from typing import Annotated, Optional

from grouping_service.api.dependencies import GroupingServiceDep
from grouping_service.api.v1.models.requests import (
    GroupingParametersRequest,
    GroupPreviewRequest,
)
from grouping_service.api.v1.models.responses import (
    PreviewGroupsResponse,
    build_preview_response,
)
from grouping_service.domain.models import CoordinateSystem
from grouping_service.infrastructure.farm_registry_client import FarmRegistryError


router = APIRouter(
    tags=["groups"],
)


PREVIEW_RESPONSES = {
    400: {
        "description": "Invalid plots or grouping parameters",
        "content": {
            "application/json": {
                "example": {
                    "detail": ["min_group_area (20.0) exceeds max_group_area (15.0)"]
                }
            }
        }
    },
    429: {
        "description": "Rate limit exceeded",
    },
    500: {
        "description": "Internal server error",
    },
}


@router.post(
    "/groups/preview",
    response_model=PreviewGroupsResponse,
    summary="Preview groups for supplied plots",
    description="""
    Propose production groups for a set of plots supplied in the request.

    Plots are grouped when they share a rice variety, were planted within the
    planting date tolerance and lie within the proximity threshold of each
    other. Groups respect the plot-count and area bounds; plots that cannot
    be placed are returned with a reason and remediation suggestions.

    Nothing is persisted. Supervisors are only advised when a roster is supplied.
    """,
    responses=PREVIEW_RESPONSES,
)
async def preview_groups(
    request: GroupPreviewRequest,
    grouping_service: GroupingServiceDep,
) -> PreviewGroupsResponse:
    """
    Preview groups for caller-supplied plots.

    Args:
        request: Plots, optional parameters and supervisor roster
        grouping_service: Grouping service (injected dependency)

    Returns:
        PreviewGroupsResponse

    Raises:
        HTTPException: 400 if the input violates the grouping contract
    """
    parameters = (request.parameters or GroupingParametersRequest()).to_parameters()

    result = grouping_service.preview(
        plots=request.plots,
        parameters=parameters,
        supervisors=request.supervisors,
        cluster_id=request.cluster_id,
    )

    if not result.succeeded:
        raise HTTPException(status_code=400, detail=result.errors)

    return build_preview_response(result, parameters, cluster_id=request.cluster_id)


@router.get(
    "/clusters/{cluster_id}/seasons/{season_id}/group-preview",
    response_model=PreviewGroupsResponse,
    summary="Preview groups for a cluster and season",
    description="""
    Propose production groups for every eligible plot of a cluster in a season.

    This endpoint:
    1. Fetches eligible plots and the supervisor roster from the farm registry
    2. Partitions plots by rice variety and planting window
    3. Clusters each partition by proximity with shape and size control
    4. Classifies plots that could not be grouped
    5. Advises a supervisor for each group, least loaded first
    """,
    responses={
        **PREVIEW_RESPONSES,
        404: {"description": "Cluster or season not found in the farm registry"},
        502: {"description": "Farm registry unavailable"},
    },
)
async def get_group_preview(
    cluster_id: Annotated[str, Path(description="Cluster identifier")],
    season_id: Annotated[str, Path(description="Season identifier")],
    grouping_service: GroupingServiceDep,
    proximity_threshold: Annotated[Optional[float], Query(description="Meters")] = None,
    planting_date_tolerance: Annotated[Optional[int], Query(description="Days")] = None,
    min_group_area: Annotated[Optional[float], Query(description="Hectares")] = None,
    max_group_area: Annotated[Optional[float], Query(description="Hectares")] = None,
    min_plots_per_group: Annotated[Optional[int], Query()] = None,
    max_plots_per_group: Annotated[Optional[int], Query()] = None,
    coordinate_system: Annotated[Optional[CoordinateSystem], Query()] = None,
) -> PreviewGroupsResponse:
    """
    Preview groups for a cluster and season using registry data.

    Args:
        cluster_id: Cluster identifier
        season_id: Season identifier
        grouping_service: Grouping service (injected dependency)
        proximity_threshold..coordinate_system: Optional parameter overrides

    Returns:
        PreviewGroupsResponse

    Raises:
        HTTPException: 400 on invalid parameters, 404 if the registry does not
            know the cluster or season, 502 on other registry failures
    """
    parameters = GroupingParametersRequest(
        proximity_threshold=proximity_threshold,
        planting_date_tolerance=planting_date_tolerance,
        min_group_area=min_group_area,
        max_group_area=max_group_area,
        min_plots_per_group=min_plots_per_group,
        max_plots_per_group=max_plots_per_group,
        coordinate_system=coordinate_system,
    ).to_parameters()

    try:
        # Delegate to service layer (no business logic here)
        result = await grouping_service.preview_groups(cluster_id, season_id, parameters)
    except FarmRegistryError as e:
        if e.status_code == 404:
            raise HTTPException(
                status_code=404,
                detail=f"Cluster '{cluster_id}' or season '{season_id}' not found"
            )
        raise HTTPException(
            status_code=502,
            detail=f"Failed to fetch registry data: {e.message}"
        )

    if not result.succeeded:
        raise HTTPException(status_code=400, detail=result.errors)

    return build_preview_response(result, parameters, cluster_id=cluster_id, season_id=season_id)
