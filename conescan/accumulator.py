"""
Footprint Accumulator

A ScanSession owns the mutable state of one scan over one TargetRegion:

    Accumulated Footprint   running union of every folded-in footprint,
                            a shapely Polygon or MultiPolygon in
                            (longitude, latitude) degrees, None while EMPTY.
    Trajectory              bounded FIFO of footprint centroids.
    Last-Recorded-Centroid  one per cone, gating fold-ins.
    Last evaluation time    one per cone, enforcing non-decreasing time.

The union and trajectory are shared by every cone feeding the session; the
centroid throttle is tracked per cone so one cone's motion never suppresses
another's contribution.

Geometry failures (invalid rings, GEOS errors, empty results) never escape
record(): the accumulated state is left untouched and the failure is
reported as a warning in the outcome and through logging.
"""

import logging
from collections import deque
from dataclasses import dataclass

import numpy as np
import shapely
from shapely.errors import GEOSException
from shapely.geometry import MultiPolygon, Polygon

from .Config import ConeScanConfig
from .math_utils import _as_vector3, eps

logger = logging.getLogger(__name__)

EMPTY = "empty"
SEEDED = "seeded"


class GeometryOpError(ValueError):
    """Polygon construction, union or simplification gave no usable area."""


@dataclass
class TrajectoryPoint:
    """
    One centroid of the scan path.

    :param timestamp: Evaluation time [s].
    :param cone_id:   Cone that produced the footprint.
    :param longitude: Centroid longitude [deg].
    :param latitude:  Centroid latitude [deg].
    :param position:  Centroid on the ellipsoid surface [m].
    """
    timestamp: float
    cone_id: str
    longitude: float
    latitude: float
    position: np.ndarray


def _as_polygonal(geometry, operation):
    """Keep the polygonal content of a shapely result or raise GeometryOpError."""
    if geometry is None or geometry.is_empty:
        raise GeometryOpError(f"{operation} produced an empty geometry.")

    if geometry.geom_type == "GeometryCollection":
        # Degenerate overlaps can leave slivers as lines or points.
        polygons = []
        for part in geometry.geoms:
            if part.geom_type == "Polygon":
                polygons.append(part)
            elif part.geom_type == "MultiPolygon":
                polygons.extend(part.geoms)
        if not polygons:
            raise GeometryOpError(f"{operation} produced no polygonal area.")
        geometry = polygons[0] if len(polygons) == 1 else MultiPolygon(polygons)

    if geometry.geom_type not in ("Polygon", "MultiPolygon"):
        raise GeometryOpError(f"{operation} produced a {geometry.geom_type}.")
    if not geometry.is_valid:
        raise GeometryOpError(f"{operation} produced an invalid geometry: {shapely.is_valid_reason(geometry)}.")
    if geometry.area <= 0.0:
        raise GeometryOpError(f"{operation} produced zero area.")
    return geometry


def footprint_polygon(ring_lonlat):
    """
    Build a closed polygon from an ordered (longitude, latitude) ring [deg].

    The ring is closed by repeating its first vertex.

    :raises GeometryOpError: Fewer than 3 vertices, or the ring does not
                             bound a valid area (e.g. it self-intersects).
    """
    coordinates = [(float(lon), float(lat)) for lon, lat in ring_lonlat]
    if len(coordinates) < 3:
        raise GeometryOpError("a footprint polygon needs at least 3 vertices.")
    coordinates.append(coordinates[0])
    try:
        polygon = Polygon(coordinates)
    except (GEOSException, ValueError) as exc:
        raise GeometryOpError(f"polygon construction failed: {exc}") from exc
    return _as_polygonal(polygon, "polygon construction")


def union_polygons(accumulated, polygon):
    """Union of two (multi-)polygons."""
    try:
        merged = shapely.union(accumulated, polygon)
    except GEOSException as exc:
        raise GeometryOpError(f"union failed: {exc}") from exc
    return _as_polygonal(merged, "union")


def simplify_polygons(geometry, tolerance, preserve_topology=True):
    """Tolerance-based vertex reduction; tolerance is in degrees."""
    if tolerance <= 0.0:
        return geometry
    try:
        simplified = shapely.simplify(geometry, tolerance, preserve_topology=preserve_topology)
    except GEOSException as exc:
        raise GeometryOpError(f"simplification failed: {exc}") from exc
    return _as_polygonal(simplified, "simplification")


def polygon_parts(geometry):
    """Split a Polygon/MultiPolygon into its list of polygons."""
    if geometry is None or geometry.is_empty:
        return []
    if geometry.geom_type == "Polygon":
        return [geometry]
    return list(geometry.geoms)


class ScanSession:
    """
    Shared accumulation state for every cone scanning one TargetRegion.

    :param region:    TargetRegion being covered.
    :param ellipsoid: Reference Ellipsoid the footprints lie on.
    :param config:    ConeScanConfig or any object with the same attributes.
    """
    def __init__(self, region, ellipsoid, config=ConeScanConfig):
        self.region = region
        self.ellipsoid = ellipsoid

        self.min_displacement = float(getattr(config, "min_displacement", 100.0))         # [m]
        self.trajectory_capacity = int(getattr(config, "trajectory_capacity", 200))
        self.simplify_tolerance = float(getattr(config, "simplify_tolerance", 1e-4))     # [deg]
        self.simplify_preserve_topology = bool(getattr(config, "simplify_preserve_topology", True))
        if self.min_displacement < 0.0:
            raise ValueError("min_displacement must be >= 0.")
        if self.trajectory_capacity < 1:
            raise ValueError("trajectory_capacity must be >= 1.")
        if self.simplify_tolerance < 0.0:
            raise ValueError("simplify_tolerance must be >= 0.")

        self.reset()

    def reset(self):
        """Return to EMPTY: drop the union, trajectory and every per-cone record."""
        self.accumulated = None
        self._trajectory = deque(maxlen=self.trajectory_capacity)
        self.last_centroids = {}        # cone_id -> centroid position [m]
        self.last_times = {}            # cone_id -> last evaluation time [s]
        self.union_count = 0            # successful fold-ins after seeding
        self.failure_count = 0          # geometry failures caught

    @property
    def state(self):
        return EMPTY if self.accumulated is None else SEEDED

    def check_time(self, cone_id, t):
        """
        Accept t for cone_id if it does not go back in time.

        Returns False, without touching any state, for an out-of-order
        evaluation; otherwise records t and returns True.
        """
        t = float(t)
        last = self.last_times.get(cone_id)
        if last is not None and t + eps < last:
            return False
        self.last_times[cone_id] = t
        return True

    def displacement(self, cone_id, centroid_position):
        """Distance [m] from the cone's last recorded centroid, or None if it has none."""
        last = self.last_centroids.get(cone_id)
        if last is None:
            return None
        return float(np.linalg.norm(_as_vector3(centroid_position, "centroid_position") - last))

    def record(self, cone_id, footprint, timestamp=0.0):
        """
        Fold an Instantaneous Footprint into the session if it qualifies.

        A footprint qualifies when it has at least 3 accepted points and
        its centroid moved more than min_displacement from the cone's last
        recorded centroid (or the cone has none). On a qualifying tick the
        centroid is recorded and appended to the trajectory, then the
        polygon seeds (EMPTY) or is unioned into and simplified with
        (SEEDED) the accumulated footprint.

        :param cone_id:   Identifier of the cone that produced the footprint.
        :param footprint: Dict from FootprintSensor.project().
        :param timestamp: Evaluation time [s].
        :return: Outcome dict with qualifying, folded, state, reason, warnings.
        """
        cone_id = str(cone_id)
        outcome = {"qualifying": False, "folded": False, "state": self.state, "warnings": []}

        if int(footprint.get("num_accepted", 0)) < 3:
            outcome["reason"] = "empty_footprint"
            return outcome

        centroid_position = _as_vector3(footprint["centroid_position"], "centroid_position")
        moved = self.displacement(cone_id, centroid_position)
        outcome["displacement"] = moved
        if moved is not None and moved <= self.min_displacement:
            outcome["reason"] = "throttled"
            return outcome

        outcome["qualifying"] = True
        self.last_centroids[cone_id] = centroid_position
        centroid_lon, centroid_lat = footprint["centroid_degrees"]
        self._trajectory.append(
            TrajectoryPoint(
                timestamp=float(timestamp),
                cone_id=cone_id,
                longitude=float(centroid_lon),
                latitude=float(centroid_lat),
                position=centroid_position,
            )
        )

        try:
            polygon = footprint_polygon(footprint["ring_lonlat"])
            if self.accumulated is None:
                self.accumulated = polygon
            else:
                merged = union_polygons(self.accumulated, polygon)
                merged = simplify_polygons(merged, self.simplify_tolerance, self.simplify_preserve_topology)
                self.accumulated = merged
                self.union_count += 1
        except GeometryOpError as exc:
            self.failure_count += 1
            message = f"cone {cone_id} at t={float(timestamp):.3f}s: {exc}"
            logger.warning("Footprint not accumulated, %s", message)
            outcome["warnings"].append(message)
            outcome["reason"] = "geometry_error"
        else:
            outcome["folded"] = True
            logger.debug("Folded footprint of cone %s at t=%.3fs into %d part(s)",
                         cone_id, float(timestamp), len(polygon_parts(self.accumulated)))

        outcome["state"] = self.state
        return outcome

    def trajectory(self):
        """Ordered list of TrajectoryPoint, oldest first."""
        return list(self._trajectory)

    def accumulated_parts(self):
        """
        Every part of the accumulated footprint as plain coordinate lists.

        :return: List of {"exterior": [[lon, lat], ...], "holes": [[[lon, lat], ...], ...]}
                 in degrees; rings are closed. Empty while the session is EMPTY.
        """
        parts = []
        for polygon in polygon_parts(self.accumulated):
            parts.append({
                "exterior": [list(coord) for coord in polygon.exterior.coords],
                "holes": [[list(coord) for coord in ring.coords] for ring in polygon.interiors],
            })
        return parts

    def largest_part(self):
        """
        The single part with the largest area, or None while EMPTY.

        This is a lossy reduction for consumers that can only show one shape;
        the session itself keeps every part.
        """
        parts = polygon_parts(self.accumulated)
        if not parts:
            return None
        return max(parts, key=lambda polygon: polygon.area)

    def accumulated_area(self):
        """Planar area of the accumulated footprint [deg^2]."""
        return 0.0 if self.accumulated is None else float(self.accumulated.area)

    def snapshot(self):
        """Renderable view of the shared state after a tick."""
        return {
            "state": self.state,
            "parts": self.accumulated_parts(),
            "area": self.accumulated_area(),
            "trajectory": [[point.longitude, point.latitude] for point in self._trajectory],
        }
