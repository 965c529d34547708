"""
Farm registry endpoint constants and configuration.

This module contains the registry endpoint paths and related constants.
Centralizing these values makes it easy to follow registry API changes.
"""


# Farm Registry Endpoints
class FarmRegistryEndpoints:
    """Farm registry endpoint paths."""

    # Base paths
    CLUSTERS_BASE = "/clusters"

    # Cluster endpoints
    ELIGIBLE_PLOTS = f"{CLUSTERS_BASE}/{{cluster_id}}/seasons/{{season_id}}/eligible-plots/"
    SUPERVISORS = f"{CLUSTERS_BASE}/{{cluster_id}}/supervisors/"

    @classmethod
    def get_eligible_plots(cls, cluster_id: str, season_id: str) -> str:
        """
        Get the eligible plots endpoint for a cluster and season.

        Args:
            cluster_id: Cluster ID
            season_id: Season ID

        Returns:
            Formatted endpoint path
        """
        return cls.ELIGIBLE_PLOTS.format(cluster_id=cluster_id, season_id=season_id)

    @classmethod
    def get_supervisors(cls, cluster_id: str) -> str:
        """
        Get the supervisor roster endpoint for a cluster.

        Args:
            cluster_id: Cluster ID

        Returns:
            Formatted endpoint path
        """
        return cls.SUPERVISORS.format(cluster_id=cluster_id)


# API Configuration Constants
class APIConstants:
    """General API configuration constants."""

    # HTTP Headers
    CONTENT_TYPE_JSON = "application/json"

    # Timeouts (in seconds)
    DEFAULT_TIMEOUT = 30.0

    # Pagination
    DEFAULT_PAGE_SIZE = 500
    MAX_PAGES = 100
