"""
Ellipsoid intersection and geodetic conversion tests.

Validates closest-forward ray intersection against spheres and the WGS84
ellipsoid, geodetic round trips (including the pole), and the target
region distance gate.
"""

import numpy as np
import pytest

from conescan.geometry import Ellipsoid, TargetRegion

from .helpers import CENTER_LAT, CENTER_LON

EARTH_RADIUS = 6371000.0  # [m] spherical test body


@pytest.mark.test_meta(
    description="Cast rays at a spherical body from outside (towards and away) and from its centre.",
    goal="The intersector returns the nearest forward hit, misses rays pointing away, and returns the exit point for an origin inside the body.",
    passing_criteria="Downward ray hits at distance H on the surface, the outward ray returns None, and the inside ray hits at distance R.",
)
def test_sphere_intersection_cases():
    sphere = Ellipsoid.sphere(EARTH_RADIUS)
    height = 20000.0
    origin = np.array([0.0, 0.0, EARTH_RADIUS + height])

    hit = sphere.intersect(origin, [0.0, 0.0, -1.0])
    assert hit is not None
    assert hit.distance == pytest.approx(height, abs=1e-6)
    np.testing.assert_allclose(hit.point, [0.0, 0.0, EARTH_RADIUS], atol=1e-6)
    np.testing.assert_allclose(hit.normal, [0.0, 0.0, 1.0], atol=1e-12)
    assert hit.object_id == "sphere"

    assert sphere.intersect(origin, [0.0, 0.0, 1.0]) is None
    assert sphere.intersect(origin, [1.0, 0.0, 0.0]) is None

    inside = sphere.intersect(np.zeros(3), [1.0, 0.0, 0.0])
    assert inside is not None
    assert inside.distance == pytest.approx(EARTH_RADIUS, abs=1e-6)
    np.testing.assert_allclose(inside.point, [EARTH_RADIUS, 0.0, 0.0], atol=1e-6)


def test_intersection_respects_range_limits():
    sphere = Ellipsoid.sphere(EARTH_RADIUS)
    origin = np.array([EARTH_RADIUS + 5000.0, 0.0, 0.0])
    assert sphere.intersect(origin, [-1.0, 0.0, 0.0], t_max=4000.0) is None
    # Skipping the entry point leaves the far side of the body.
    far = sphere.intersect(origin, [-1.0, 0.0, 0.0], t_min=6000.0)
    assert far.distance == pytest.approx(2.0 * EARTH_RADIUS + 5000.0, abs=1e-5)


def test_direction_is_normalized_internally():
    sphere = Ellipsoid.sphere(EARTH_RADIUS)
    origin = np.array([0.0, EARTH_RADIUS + 1000.0, 0.0])
    hit = sphere.intersect(origin, [0.0, -250.0, 0.0])
    assert hit.distance == pytest.approx(1000.0, abs=1e-6)


@pytest.mark.test_meta(
    description="Cast rays from random heights over the default region straight down the geodetic normal of the WGS84 ellipsoid.",
    goal="Oblate intersection agrees with the geodetic height of the ray origin.",
    passing_criteria="Distance equals the origin height within 1e-6 m and the hit point equals the zero-height point within 1e-6 m.",
)
def test_wgs84_nadir_distance_equals_height(ellipsoid, rng):
    for _ in range(25):
        lon = CENTER_LON + rng.uniform(-1.0, 1.0)
        lat = CENTER_LAT + rng.uniform(-1.0, 1.0)
        height = rng.uniform(500.0, 100000.0)
        apex = ellipsoid.cartesian_from_degrees(lon, lat, height)
        ground = ellipsoid.cartesian_from_degrees(lon, lat, 0.0)

        hit = ellipsoid.intersect(apex, ground - apex)
        assert hit is not None
        assert hit.distance == pytest.approx(height, abs=1e-6)
        np.testing.assert_allclose(hit.point, ground, atol=1e-6)
        assert hit.object_id == "wgs84"


def test_surface_normal_is_geodetic(ellipsoid):
    ground = ellipsoid.cartesian_from_degrees(CENTER_LON, CENTER_LAT, 0.0)
    apex = ellipsoid.cartesian_from_degrees(CENTER_LON, CENTER_LAT, 1000.0)
    np.testing.assert_allclose(ellipsoid.surface_normal(ground), (apex - ground) / 1000.0, atol=1e-9)


@pytest.mark.parametrize(
    "lon, lat, height",
    [
        (CENTER_LON, CENTER_LAT, 4000.0),
        (CENTER_LON, CENTER_LAT, 0.0),
        (-70.6, -33.4, 520.0),
        (0.0, 0.0, 20000.0),
        (179.9, 12.5, 100000.0),
    ],
)
def test_geodetic_round_trip(ellipsoid, lon, lat, height):
    point = ellipsoid.cartesian_from_degrees(lon, lat, height)
    lon_out, lat_out, height_out = ellipsoid.degrees_from_cartesian(point)

    assert lon_out == pytest.approx(lon, abs=1e-9)
    assert lat_out == pytest.approx(lat, abs=1e-8)
    assert height_out == pytest.approx(height, abs=1e-3)


def test_geodetic_round_trip_at_pole(ellipsoid):
    point = ellipsoid.cartesian_from_degrees(0.0, 90.0, 1000.0)
    np.testing.assert_allclose(point, [0.0, 0.0, ellipsoid.polar_radius + 1000.0], atol=1e-6)

    lon, lat, height = ellipsoid.degrees_from_cartesian(point)
    assert lat == pytest.approx(90.0, abs=1e-9)
    assert height == pytest.approx(1000.0, abs=1e-6)
    assert np.isfinite(lon)


def test_longitude_is_wrapped(ellipsoid):
    np.testing.assert_allclose(
        ellipsoid.cartesian_from_degrees(190.0, 10.0, 0.0),
        ellipsoid.cartesian_from_degrees(-170.0, 10.0, 0.0),
        atol=1e-6,
    )


def test_ellipsoid_rejects_bad_radii():
    with pytest.raises(ValueError):
        Ellipsoid(0.0, 0.0)
    with pytest.raises(ValueError):
        Ellipsoid(6356752.0, 6378137.0)


def test_target_region_gate(ellipsoid):
    region = TargetRegion.from_degrees(CENTER_LON, CENTER_LAT, 30000.0, ellipsoid)

    assert region.contains(region.center)
    # 0.3 deg of longitude at 39.9 N is ~25.6 km, 0.4 deg is ~34.2 km.
    assert region.contains(ellipsoid.cartesian_from_degrees(CENTER_LON + 0.3, CENTER_LAT, 0.0))
    assert not region.contains(ellipsoid.cartesian_from_degrees(CENTER_LON + 0.4, CENTER_LAT, 0.0))
    assert region.chord_distance(ellipsoid.cartesian_from_degrees(CENTER_LON, CENTER_LAT, 500.0)) == pytest.approx(
        500.0, abs=1e-6
    )

    with pytest.raises(ValueError):
        TargetRegion(region.center, 0.0)
    with pytest.raises(ValueError):
        TargetRegion([1.0, 2.0], 100.0)
