"""
Spatial analysis helper functions.

Provides utilities for:
- KD-Tree spatial indexing over plot centroids
- Cluster diameter and centroid calculations
- Group outline construction from member plots
"""
from typing import Optional, Sequence
import numpy as np
from scipy.spatial import KDTree
from scipy.spatial.distance import cdist, pdist
from shapely.errors import GEOSException
from shapely.geometry import MultiPolygon, Point, Polygon
from shapely.ops import unary_union
import logging

logger = logging.getLogger(__name__)

# Radius in meters drawn around plots that have no boundary
POINT_PLOT_RADIUS = 5.0


class SpatialIndex:
    """
    Proximity queries over 2-D planar points.

    Radius queries are inclusive (distance <= radius) and exact; duplicate
    points are allowed and report a distance of zero to each other.
    """

    def __init__(self, coordinates: Sequence[tuple[float, float]]):
        """
        Build the index.

        Args:
            coordinates: List of (x, y) coordinate tuples in meters
        """
        self.points = np.array(coordinates, dtype=float).reshape(-1, 2)
        self._kdtree = KDTree(self.points) if len(self.points) else None

    def __len__(self) -> int:
        return len(self.points)

    def within_radius(
        self,
        point: tuple[float, float],
        radius: float,
    ) -> list[int]:
        """
        Find all indexed points within a radius of a point.

        Args:
            point: (x, y) query location
            radius: Search radius in meters

        Returns:
            Sorted list of point indices
        """
        if self._kdtree is None:
            return []
        return sorted(int(i) for i in self._kdtree.query_ball_point(point, radius))

    def nearest(
        self,
        point: tuple[float, float],
        exclude: Optional[int] = None,
    ) -> Optional[tuple[int, float]]:
        """
        Find the nearest indexed point.

        Args:
            point: (x, y) query location
            exclude: Index to skip (typically the query point itself)

        Returns:
            (index, distance) tuple, or None if no other point exists
        """
        n = len(self.points)
        available = n - (1 if exclude is not None else 0)
        if self._kdtree is None or available <= 0:
            return None

        k = min(n, 2 if exclude is not None else 1)
        distances, indices = self._kdtree.query(point, k=k)
        distances = np.atleast_1d(distances)
        indices = np.atleast_1d(indices)

        for distance, index in zip(distances, indices):
            if exclude is not None and int(index) == exclude:
                continue
            return (int(index), float(distance))
        return None

    def pairs_within(self, radius: float) -> list[tuple[int, int, float]]:
        """
        Find all pairs of points no further apart than a radius.

        Args:
            radius: Maximum pair distance in meters

        Returns:
            List of (index1, index2, distance) tuples with index1 < index2
        """
        if self._kdtree is None or len(self.points) < 2:
            return []

        pairs = self._kdtree.query_pairs(r=radius, output_type='ndarray')
        if len(pairs) == 0:
            return []

        distances = np.linalg.norm(self.points[pairs[:, 0]] - self.points[pairs[:, 1]], axis=1)
        result = [
            (int(min(a, b)), int(max(a, b)), float(d))
            for (a, b), d in zip(pairs, distances)
        ]
        logger.debug(f"Found {len(result)} pairs within {radius:.1f}m among {len(self.points)} points")
        return result


def cluster_diameter(coordinates: Sequence[tuple[float, float]]) -> float:
    """
    Longest distance between any two points of a cluster.

    Args:
        coordinates: List of (x, y) coordinate tuples

    Returns:
        Diameter in meters (0 for fewer than two points)
    """
    if len(coordinates) < 2:
        return 0.0
    return float(pdist(np.array(coordinates, dtype=float)).max())


def merged_diameter(
    coordinates_a: Sequence[tuple[float, float]],
    diameter_a: float,
    coordinates_b: Sequence[tuple[float, float]],
    diameter_b: float,
) -> float:
    """
    Diameter of the union of two clusters with known diameters.

    Only the cross distances need computing.
    """
    cross = cdist(np.array(coordinates_a, dtype=float), np.array(coordinates_b, dtype=float))
    return float(max(diameter_a, diameter_b, cross.max()))


def mean_centroid(coordinates: Sequence[tuple[float, float]]) -> tuple[float, float]:
    """
    Calculate the mean point of a set of coordinates.

    Args:
        coordinates: List of (x, y) coordinate tuples

    Returns:
        Mean (x, y) coordinate tuple
    """
    points = np.array(coordinates, dtype=float)
    x, y = points.mean(axis=0)
    return (float(x), float(y))


def distance(point1: tuple[float, float], point2: tuple[float, float]) -> float:
    """Euclidean distance between two planar points."""
    return float(np.hypot(point1[0] - point2[0], point1[1] - point2[1]))


def build_group_boundary(
    polygons: Sequence[Optional[Polygon]],
    coordinates: Sequence[tuple[float, float]],
    buffer_distance: float,
) -> Optional[Polygon]:
    """
    Build a smooth outline around the plots of a group.

    Member polygons are unioned, buffered outward and partly shrunk back to
    close small gaps. Plots without a boundary contribute a small disc
    around their centroid. A group that stays in several pieces is
    represented by its convex hull.

    Args:
        polygons: Member boundaries in meters (None when unknown)
        coordinates: Member centroids in meters
        buffer_distance: Outward buffer in meters

    Returns:
        Polygon in meters, or None if no geometry is available
    """
    geometries = []
    for polygon, point in zip(polygons, coordinates):
        if polygon is not None and not polygon.is_empty:
            geometries.append(polygon if polygon.is_valid else polygon.buffer(0))
        else:
            geometries.append(Point(point).buffer(POINT_PLOT_RADIUS))

    geometries = [g for g in geometries if not g.is_empty]
    if not geometries:
        return None

    union = unary_union(geometries)
    try:
        smoothed = union.buffer(buffer_distance).buffer(-buffer_distance * 0.3)
    except GEOSException as e:
        logger.warning(f"Boundary smoothing failed, using convex hull: {e}")
        smoothed = union.convex_hull

    if isinstance(smoothed, Polygon) and not smoothed.is_empty:
        return smoothed
    if isinstance(smoothed, MultiPolygon):
        return smoothed.convex_hull

    hull = union.convex_hull
    return hull if isinstance(hull, Polygon) else None
