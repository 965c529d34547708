"""
Domain service: advise a supervisor for each proposed group.
"""
from typing import Optional
import logging

from grouping_service.domain.models import (
    ProposedGroup,
    SupervisorAssignment,
    SupervisorCandidate,
)

logger = logging.getLogger(__name__)


class SupervisorLoadBalancer:
    """
    Round-robin assignment over available supervisors, least loaded first.

    Supervisor workload is read-only input; the resulting assignment is
    advisory and is persisted by the caller.
    """

    def available_supervisors(
        self,
        supervisors: list[SupervisorCandidate],
        cluster_id: Optional[str] = None,
    ) -> list[SupervisorCandidate]:
        """
        Filter supervisors with spare capacity and order them by workload.

        Args:
            supervisors: Supervisor roster
            cluster_id: Only keep supervisors of this cluster when given

        Returns:
            Available supervisors, least assigned area first
        """
        available = [
            s for s in supervisors
            if s.is_available and (cluster_id is None or s.cluster_id == cluster_id)
        ]
        return sorted(available, key=lambda s: (s.current_total_area, s.supervisor_id))

    def assign(
        self,
        groups: list[ProposedGroup],
        supervisors: list[SupervisorCandidate],
        cluster_id: Optional[str] = None,
    ) -> list[SupervisorAssignment]:
        """
        Pair every group with a supervisor.

        Group i goes to supervisor i mod count. Without available
        supervisors every group is returned unassigned.

        Args:
            groups: Proposed groups in group-number order
            supervisors: Supervisor roster
            cluster_id: Optional cluster affiliation filter

        Returns:
            One SupervisorAssignment per group
        """
        available = self.available_supervisors(supervisors, cluster_id)
        ordered_groups = sorted(groups, key=lambda g: g.group_number)

        if not available:
            if ordered_groups:
                logger.warning(f"No supervisors available for {len(ordered_groups)} groups")
            return [SupervisorAssignment(group_number=g.group_number) for g in ordered_groups]

        assignments = [
            SupervisorAssignment(
                group_number=group.group_number,
                supervisor_id=available[i % len(available)].supervisor_id,
            )
            for i, group in enumerate(ordered_groups)
        ]
        logger.info(f"Assigned {len(assignments)} groups across {len(available)} supervisors")
        return assignments
