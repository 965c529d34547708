"""
Application service: Orchestration layer for group previews.
"""
from typing import List, Optional
import logging

from pydantic import ValidationError

from grouping_service.domain.models import (
    GroupingParameters,
    GroupingResult,
    PlotCandidate,
    SupervisorCandidate,
)
from grouping_service.infrastructure.farm_registry_client import FarmRegistryClient
from grouping_service.services.domain.group_formation_engine import GroupFormationEngine

logger = logging.getLogger(__name__)


class GroupingService:
    """
    Application service for group formation previews.

    Orchestrates registry reads and engine execution.
    No business logic here, only coordination between the infrastructure
    and domain layers. Nothing is written back to the registry.
    """

    def __init__(
        self,
        registry_client: FarmRegistryClient,
        engine: GroupFormationEngine,
    ):
        """
        Initialize the service with dependencies.

        Args:
            registry_client: Farm registry client for data fetching
            engine: Group formation engine
        """
        self.registry_client = registry_client
        self.engine = engine

    def preview(
        self,
        plots: List[PlotCandidate],
        parameters: Optional[GroupingParameters] = None,
        supervisors: Optional[List[SupervisorCandidate]] = None,
        cluster_id: Optional[str] = None,
    ) -> GroupingResult:
        """
        Run the engine on caller-supplied data.

        Args:
            plots: Eligible plots
            parameters: Grouping parameters (defaults when omitted)
            supervisors: Optional supervisor roster
            cluster_id: Optional cluster for supervisor filtering

        Returns:
            GroupingResult from the engine
        """
        return self.engine.form_groups(plots, parameters, supervisors, cluster_id)

    async def preview_groups(
        self,
        cluster_id: str,
        season_id: str,
        parameters: Optional[GroupingParameters] = None,
    ) -> GroupingResult:
        """
        Preview groups for a cluster and season using registry data.

        This method orchestrates:
        1. Fetching eligible plots for the cluster and season
        2. Fetching the cluster's supervisor roster
        3. Running group formation

        Args:
            cluster_id: Cluster identifier
            season_id: Season identifier
            parameters: Grouping parameters (defaults when omitted)

        Returns:
            GroupingResult, with a warning for every registry record skipped

        Raises:
            FarmRegistryError: If data fetching fails
        """
        records = await self.registry_client.get_eligible_plots(cluster_id, season_id)
        roster = await self.registry_client.get_supervisors(cluster_id)

        plots = []
        skipped = []
        for record in records:
            try:
                plots.append(self.registry_client.to_plot_candidate(record))
            except ValidationError as e:
                logger.warning(f"Skipping invalid registry plot {record.id}: {e.error_count()} errors")
                skipped.append(record.id)

        supervisors = [self.registry_client.to_supervisor_candidate(s) for s in roster]

        result = self.engine.form_groups(plots, parameters, supervisors, cluster_id)

        if skipped:
            result.warnings.append(
                f"{len(skipped)} registry plots skipped as invalid: {', '.join(skipped)}"
            )
        return result
