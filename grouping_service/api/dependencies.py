"""
Dependency injection for FastAPI.
"""
from typing import Annotated
from fastapi import Depends

from grouping_service.infrastructure.farm_registry_client import (
    FarmRegistryClient,
    get_registry_client,
)
from grouping_service.services.domain.group_formation_engine import GroupFormationEngine
from grouping_service.services.application.grouping_service import GroupingService


def get_group_formation_engine() -> GroupFormationEngine:
    """
    Dependency factory for GroupFormationEngine.

    Returns:
        GroupFormationEngine instance configured from settings
    """
    return GroupFormationEngine()


def get_grouping_service(
    registry_client: Annotated[FarmRegistryClient, Depends(get_registry_client)],
    engine: Annotated[GroupFormationEngine, Depends(get_group_formation_engine)],
) -> GroupingService:
    """
    Dependency factory for GroupingService.

    Args:
        registry_client: Farm registry client (injected)
        engine: Group formation engine (injected)

    Returns:
        GroupingService instance
    """
    return GroupingService(registry_client=registry_client, engine=engine)


# Type aliases for cleaner route signatures
GroupingServiceDep = Annotated[GroupingService, Depends(get_grouping_service)]
