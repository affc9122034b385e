"""
Cone Footprint Sensor Model

This module projects a sensor cone onto a reference ellipsoid and clips the
result to a target region. For every evaluation tick it casts a ring of N
rays at the cone's half-angle around its axis, intersects each ray with the
ellipsoid, keeps the hits that fall inside the TargetRegion, and returns the
accepted points in angular order as the Instantaneous Footprint together
with their longitude/latitude-mean centroid. The footprint is then handed
to a ScanSession for accumulation.

The primary entry points are:
    FootprintSensor.project()    Footprint of an already resolved ConeGeometry.
    FootprintSensor.evaluate()   Per-tick pull of a Cone's pose, projection and
                                 accumulation into a ScanSession. Never raises.
"""

import logging

import numpy as np

from .Config import ConeScanConfig
from .cone import cone_bottom_radius, resolve_cone
from .math_utils import _normalize

logger = logging.getLogger(__name__)


class FootprintSensor:
    """
    Configurable cone footprint projector.

    Built from a ConeScanConfig (or any object exposing the same attributes).
    Holds only the cached sample ring; all accumulation state lives in the
    ScanSession passed to evaluate().
    """
    def __init__(self, config=ConeScanConfig):
        """
        Initialize the sensor from a configuration object.

        :param config: Class or instance with ConeScanConfig-compatible attributes.
        """
        # ---------- cone envelope ----------
        self.cone_angle = float(getattr(config, "cone_angle", np.deg2rad(22.0)))   # [rad] full apex angle
        self.cone_length = float(getattr(config, "cone_length", 100000.0))         # [m] informational
        self.ring_samples = int(getattr(config, "ring_samples", 72))               # rays per ring
        if not (0.0 < self.cone_angle < np.pi):
            raise ValueError("cone_angle must be in the range (0, pi).")
        if self.cone_length <= 0.0:
            raise ValueError("cone_length must be > 0.")
        if self.ring_samples < 3:
            raise ValueError("ring_samples must be >= 3.")
        self.half_angle = 0.5 * self.cone_angle                   # [rad]
        self._tan_half_angle = float(np.tan(self.half_angle))
        self.bottom_radius = cone_bottom_radius(self.cone_angle, self.cone_length)  # [m]

        # ---------- frame construction ----------
        self.parallel_threshold = float(getattr(config, "parallel_threshold", 0.99))
        if not (0.0 < self.parallel_threshold < 1.0):
            raise ValueError("parallel_threshold must be in the range (0, 1).")
        self.target_orientation = bool(getattr(config, "target_orientation", True))

        # ---------- general flags ----------
        self.include_metadata = bool(getattr(config, "include_metadata", True))

        self._ring_cache = None  # lazily built sample ring

    def _sample_ring(self):
        """
        Build (and cache) the angular sample ring.

        Sample i sits at theta_i = i * 2*pi / N. Each entry is a tuple
            (sample_index, theta, cos(theta), sin(theta))

        :return: List of ring entries, in angular order.
        """
        if self._ring_cache is not None:
            return self._ring_cache

        step = 2.0 * np.pi / self.ring_samples
        ring = []
        for idx in range(self.ring_samples):
            theta = idx * step
            ring.append((idx, float(theta), float(np.cos(theta)), float(np.sin(theta))))

        self._ring_cache = ring
        return ring

    def ray_direction(self, geometry, cos_theta, sin_theta):
        """
        Ray direction for one ring sample.

            radial = cos(theta) * tangent + sin(theta) * bitangent
            dir    = normalize(axis + tan(half_angle) * radial)

        With an orthonormal (tangent, bitangent, axis) frame every direction
        makes exactly half_angle with the axis.
        """
        radial = cos_theta * geometry.tangent + sin_theta * geometry.bitangent
        return _normalize(geometry.axis + self._tan_half_angle * radial)

    def _build_empty(self, timestamp, cone_id, reason):
        """
        Construct a footprint dictionary carrying no points.

        :param timestamp: Evaluation time [s].
        :param cone_id:   Cone identifier.
        :param reason:    Cause string (e.g. "missing_pose", "out_of_order").
        :return: Dict with valid=False and an empty ring.
        """
        return {
            "valid": False,
            "type": "footprint",
            "timestamp": float(timestamp),
            "cone_id": str(cone_id),
            "reason": str(reason),
            "num_samples": 0,
            "num_accepted": 0,
            "ring": [],
            "ring_lonlat": [],
            "centroid": None,
            "centroid_degrees": None,
            "centroid_position": None,
            "warnings": [],
        }

    def cast_ring(self, ellipsoid, region, geometry):
        """
        Cast every ring sample against the ellipsoid and gate it by the region.

        :param ellipsoid: Surface with an intersect(origin, direction) method.
        :param region:    TargetRegion used for the chord distance gate.
        :param geometry:  ConeGeometry for this tick.
        :return: List of per-sample dicts in angular order. Accepted samples
                 carry valid=True and hit_point; rejected ones carry a reason
                 of "no_hit" or "out_of_region".
        """
        if not hasattr(ellipsoid, "intersect"):
            raise TypeError("ellipsoid must provide an intersect(origin, direction) method.")

        samples = []
        for idx, theta, cos_theta, sin_theta in self._sample_ring():
            direction = self.ray_direction(geometry, cos_theta, sin_theta)
            hit = ellipsoid.intersect(geometry.apex, direction)

            sample = {"sample_index": idx, "theta": theta}
            if hit is None:
                sample["valid"] = False
                sample["reason"] = "no_hit"
            else:
                region_distance = region.chord_distance(hit.point)
                sample["valid"] = region_distance <= region.radius
                if not sample["valid"]:
                    sample["reason"] = "out_of_region"
                sample["hit_point"] = np.asarray(hit.point, dtype=float)
                if self.include_metadata:
                    sample["distance"] = float(hit.distance)          # [m] along the ray
                    sample["region_distance"] = float(region_distance)  # [m] chord to region centre
            if self.include_metadata:
                sample["direction"] = direction.tolist()
            samples.append(sample)
        return samples

    def project(self, ellipsoid, region, geometry, timestamp=0.0, cone_id=""):
        """
        Build the Instantaneous Footprint for a resolved cone.

        The ring keeps the accepted hit points in sample order (not hull
        order), so consumers must tolerate degenerate or self-intersecting
        rings. The centroid is the arithmetic mean of the points' longitude
        and latitude in radians, placed on the surface at zero height.

        :param ellipsoid: Ellipsoid the rays are cast against.
        :param region:    TargetRegion gate.
        :param geometry:  ConeGeometry from resolve_cone().
        :param timestamp: Evaluation time [s].
        :param cone_id:   Cone identifier.
        :return: Footprint dict; valid is True when at least 3 points were accepted.
        """
        samples = self.cast_ring(ellipsoid, region, geometry)
        accepted = [sample["hit_point"] for sample in samples if sample["valid"]]

        ring_lonlat = []
        lon_rad = []
        lat_rad = []
        for point in accepted:
            longitude, latitude, _ = ellipsoid.cartographic_from_cartesian(point)
            lon_rad.append(longitude)
            lat_rad.append(latitude)
            ring_lonlat.append([float(np.rad2deg(longitude)), float(np.rad2deg(latitude))])

        footprint = {
            "valid": len(accepted) >= 3,
            "type": "footprint",
            "timestamp": float(timestamp),
            "cone_id": str(cone_id),
            "num_samples": len(samples),
            "num_accepted": len(accepted),
            "ring": [point.tolist() for point in accepted],
            "ring_lonlat": ring_lonlat,
            "centroid": None,
            "centroid_degrees": None,
            "centroid_position": None,
            "warnings": [],
        }
        if not footprint["valid"]:
            footprint["reason"] = "empty_footprint"

        if accepted:
            mean_lon = float(np.mean(lon_rad))
            mean_lat = float(np.mean(lat_rad))
            footprint["centroid"] = (mean_lon, mean_lat)
            footprint["centroid_degrees"] = (float(np.rad2deg(mean_lon)), float(np.rad2deg(mean_lat)))
            footprint["centroid_position"] = ellipsoid.cartesian_from_cartographic(mean_lon, mean_lat, 0.0)

        if self.include_metadata:
            footprint["returns"] = samples
            footprint["apex"] = geometry.apex.tolist()
            footprint["axis"] = geometry.axis.tolist()
            footprint["orientation"] = np.asarray(geometry.orientation, dtype=float).tolist()
            footprint["aim_mode"] = geometry.aim_mode
            footprint["fallback_used"] = bool(geometry.fallback_used)
            footprint["half_angle"] = self.half_angle
            footprint["bottom_radius"] = self.bottom_radius
            footprint["cone_center"] = geometry.center(self.cone_length).tolist()
        return footprint

    def evaluate(self, session, cone, current_time):
        """
        Primary per-tick interface.

        1. Reject evaluations that go back in time for this cone.
        2. Pull the apex position and resolve the aim (target or manual).
        3. Resolve the cone frame and project the footprint.
        4. Fold the footprint into the session (qualifying updates only).

        Missing poses, degenerate aims and geometry failures all degrade to
        a result without state change; nothing is raised to the caller.

        :param session:      ScanSession shared by every cone of the scan.
        :param cone:         Cone to evaluate.
        :param current_time: Simulation time [s].
        :return: Footprint dict with an "accumulation" outcome when it was recorded.
        """
        t = float(current_time)
        cone_id = getattr(cone, "cone_id", "")

        try:
            if not session.check_time(cone_id, t):
                logger.warning("Ignoring out-of-order evaluation of cone %s at t=%.3fs (last t=%.3fs)",
                               cone_id, t, session.last_times[cone_id])
                return self._build_empty(t, cone_id, "out_of_order")

            apex = cone.position_at(t)
            aim = cone.aim_at(t, self.target_orientation)
            if apex is None or aim is None:
                return self._build_empty(t, cone_id, "missing_pose")

            try:
                geometry = resolve_cone(apex, aim, self.parallel_threshold)
            except ValueError:
                return self._build_empty(t, cone_id, "degenerate_aim")

            footprint = self.project(session.ellipsoid, session.region, geometry, timestamp=t, cone_id=cone_id)
            outcome = session.record(cone_id, footprint, timestamp=t)
            footprint["accumulation"] = outcome
            footprint["warnings"].extend(outcome["warnings"])
            return footprint
        except (TypeError, ValueError, FloatingPointError) as exc:
            logger.warning("Evaluation of cone %s at t=%.3fs failed: %s", cone_id, t, exc)
            result = self._build_empty(t, cone_id, "invalid_input")
            result["warnings"].append(str(exc))
            return result
