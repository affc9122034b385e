"""
Reference Ellipsoid and Target Region Geometry

This module provides the surface model the cone footprint is projected on:

An Ellipsoid of revolution centred at the origin of an Earth-fixed Cartesian
frame, with closest-forward ray intersection and conversions between
Cartesian points and geodetic (longitude, latitude, height) coordinates.
A TargetRegion, the fixed circle on the surface whose coverage is measured,
using a straight-line (chord) distance gate.

Intersection queries return RayHit dataclasses carrying the distance along
the ray [m], the world-space point [m] and the outward surface normal
[unit]. These are consumed by FootprintSensor in footprint.py.
"""

from dataclasses import dataclass

import numpy as np

from .math_utils import _as_vector3, _normalize, _wrap_angle, eps


@dataclass
class RayHit:
    """
    Result of a successful ray-ellipsoid intersection query.

    :param distance:  Distance along the ray from origin to intersection point [m].
    :param point:     3D world-space coordinates of the hit point [m].
    :param normal:    Outward geodetic surface normal at the hit point [unit].
    :param object_id: Identifier of the intersected surface.
    """
    distance: float          # [m]  distance along ray from origin to intersection point
    point: np.ndarray        # [m]  3D world-space coordinates of the hit point
    normal: np.ndarray       # [unit] outward surface normal at the hit point
    object_id: str = ""      # identifier of the intersected surface


class Ellipsoid:
    """
    Oblate ellipsoid of revolution centred at the origin.

    Semi-axes are (a, a, b) along (x, y, z) with a = equatorial_radius and
    b = polar_radius. A sphere is the special case a == b.

    :param equatorial_radius: Semi-major axis a [m].
    :param polar_radius:      Semi-minor axis b [m], must not exceed a.
    :param object_id:         Identifier string reported in RayHit.
    """
    def __init__(self, equatorial_radius, polar_radius, object_id="ellipsoid"):
        self.equatorial_radius = float(equatorial_radius)  # [m] a
        self.polar_radius = float(polar_radius)            # [m] b
        if self.equatorial_radius <= eps or self.polar_radius <= eps:
            raise ValueError("Ellipsoid radii must be > 0.")
        if self.polar_radius > self.equatorial_radius:
            raise ValueError("polar_radius must be <= equatorial_radius.")
        self.object_id = str(object_id)

        a = self.equatorial_radius
        b = self.polar_radius
        self.radii = np.array([a, a, b], dtype=float)
        self._inv_radii = 1.0 / self.radii
        self._inv_radii_sq = self._inv_radii * self._inv_radii
        self.e2 = 1.0 - (b * b) / (a * a)           # first eccentricity squared
        self.ep2 = (a * a) / (b * b) - 1.0          # second eccentricity squared

    @classmethod
    def wgs84(cls):
        """WGS84 reference ellipsoid."""
        return cls(6378137.0, 6356752.3142451793, object_id="wgs84")

    @classmethod
    def sphere(cls, radius, object_id="sphere"):
        """Spherical body of the given radius [m]."""
        return cls(radius, radius, object_id=object_id)

    @classmethod
    def from_config(cls, config):
        """Build from any object exposing equatorial_radius / polar_radius."""
        return cls(
            getattr(config, "equatorial_radius", 6378137.0),
            getattr(config, "polar_radius", 6356752.3142451793),
        )

    def intersect(self, origin, direction, t_min=eps, t_max=float("inf")):
        """
        Ray-ellipsoid intersection.

        The problem is scaled into the unit sphere, where the ray
        o' = o / radii, d' = d / radii gives the quadratic
            a t^2 + 2 b t + c = 0
            a = dot(d', d'),  b = dot(o', d'),  c = dot(o', o') - 1
        with t measured in the original (unscaled) ray parameter. The
        closest root in [t_min, t_max] is returned, preferring the entry
        point and falling back to the exit point when the origin lies inside.

        :param origin:    Ray origin in world space [m].
        :param direction: Ray direction (will be normalized internally) [unit].
        :param t_min:     Minimum valid distance [m]; hits closer are ignored.
        :param t_max:     Maximum valid distance [m]; hits farther are ignored.

        :return: RayHit, or None when the ray misses.
        """
        origin = _as_vector3(origin, "origin")
        direction = _normalize(_as_vector3(direction, "direction"))

        o_scaled = origin * self._inv_radii
        d_scaled = direction * self._inv_radii
        qa = float(np.dot(d_scaled, d_scaled))
        qb = float(np.dot(o_scaled, d_scaled))
        qc = float(np.dot(o_scaled, o_scaled) - 1.0)
        disc = qb * qb - qa * qc
        if disc < 0.0:
            return None  # ray passes beside the body

        sqrt_disc = np.sqrt(disc)
        t_near = (-qb - sqrt_disc) / qa
        t_far = (-qb + sqrt_disc) / qa

        t_hit = None
        if t_min <= t_near <= t_max:
            t_hit = t_near
        elif t_min <= t_far <= t_max:
            t_hit = t_far
        if t_hit is None:
            return None  # body is behind the origin or out of range

        point = origin + t_hit * direction
        return RayHit(distance=float(t_hit), point=point, normal=self.surface_normal(point), object_id=self.object_id)

    def surface_normal(self, point):
        """Outward geodetic normal at (or radially through) a Cartesian point."""
        point = _as_vector3(point, "point")
        return _normalize(point * self._inv_radii_sq, fallback=(0.0, 0.0, 1.0))

    def cartographic_from_cartesian(self, point):
        """
        Convert an Earth-fixed Cartesian point to geodetic coordinates.

        Uses Bowring's closed-form latitude:
            theta = atan2(z * a, p * b)
            lat   = atan2(z + ep2 * b * sin^3(theta), p - e2 * a * cos^3(theta))
            h     = p * cos(lat) + z * sin(lat) - a * sqrt(1 - e2 * sin^2(lat))
        where p is the distance from the polar axis. The height expression
        stays finite at the poles.

        :param point: Cartesian point [m].
        :return: (longitude [rad], latitude [rad], height [m]).
        """
        x, y, z = _as_vector3(point, "point")
        a = self.equatorial_radius
        b = self.polar_radius
        p = float(np.hypot(x, y))

        longitude = float(np.arctan2(y, x))
        theta = np.arctan2(z * a, p * b)
        sin_t = np.sin(theta)
        cos_t = np.cos(theta)
        latitude = float(np.arctan2(z + self.ep2 * b * sin_t ** 3, p - self.e2 * a * cos_t ** 3))

        sin_lat = np.sin(latitude)
        height = float(p * np.cos(latitude) + z * sin_lat - a * np.sqrt(1.0 - self.e2 * sin_lat * sin_lat))
        return longitude, latitude, height

    def cartesian_from_cartographic(self, longitude, latitude, height=0.0):
        """
        Convert geodetic coordinates to an Earth-fixed Cartesian point.

        :param longitude: [rad], wrapped into [-pi, pi].
        :param latitude:  [rad].
        :param height:    Height above the ellipsoid [m].
        :return: numpy array of shape (3,) [m].
        """
        longitude = _wrap_angle(float(longitude))
        latitude = float(latitude)
        height = float(height)
        a = self.equatorial_radius

        sin_lat = np.sin(latitude)
        cos_lat = np.cos(latitude)
        prime_vertical = a / np.sqrt(1.0 - self.e2 * sin_lat * sin_lat)  # N(lat)
        return np.array(
            [
                (prime_vertical + height) * cos_lat * np.cos(longitude),
                (prime_vertical + height) * cos_lat * np.sin(longitude),
                (prime_vertical * (1.0 - self.e2) + height) * sin_lat,
            ],
            dtype=float,
        )

    def cartesian_from_degrees(self, longitude, latitude, height=0.0):
        """Degree-valued variant of cartesian_from_cartographic."""
        return self.cartesian_from_cartographic(np.deg2rad(longitude), np.deg2rad(latitude), height)

    def degrees_from_cartesian(self, point):
        """Return (longitude [deg], latitude [deg], height [m]) for a Cartesian point."""
        longitude, latitude, height = self.cartographic_from_cartesian(point)
        return float(np.rad2deg(longitude)), float(np.rad2deg(latitude)), height


class TargetRegion:
    """
    Fixed circular area on the reference surface.

    Membership uses the straight-line (chord) distance to the centre, which
    approximates the great-circle distance closely for regions much smaller
    than the body.

    :param center: Cartesian centre point on (or near) the surface [m].
    :param radius: Region radius [m], must be > 0.
    """
    def __init__(self, center, radius):
        self.center = _as_vector3(center, "center")  # [m]
        self.radius = float(radius)                   # [m]
        if not self.radius > 0.0:
            raise ValueError("TargetRegion radius must be > 0.")

    @classmethod
    def from_degrees(cls, longitude, latitude, radius, ellipsoid):
        """Region centred on the surface point at (longitude, latitude) [deg]."""
        return cls(ellipsoid.cartesian_from_degrees(longitude, latitude, 0.0), radius)

    @classmethod
    def from_config(cls, config, ellipsoid):
        return cls.from_degrees(
            getattr(config, "region_longitude", 116.4),
            getattr(config, "region_latitude", 39.9),
            getattr(config, "region_radius", 30000.0),
            ellipsoid,
        )

    def chord_distance(self, point):
        """Straight-line distance from the region centre [m]."""
        return float(np.linalg.norm(_as_vector3(point, "point") - self.center))

    def contains(self, point):
        return self.chord_distance(point) <= self.radius
