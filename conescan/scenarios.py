"""
Scan scenarios and playback.

Ready-made cone tracks over the default target region and a driver that
evaluates them tick by tick:

    diagonal_pass()      one cone crossing the region along a diagonal at 4 km
    five_cone_pattern()  five cones flying offset loops at 20 km
    run_scan()           evaluate every cone at every time, in time order

Waypoints are one second apart; every cone aims at the region centre.
"""

import numpy as np

from .Config import ConeScanConfig
from .accumulator import ScanSession
from .cone import Cone
from .geometry import Ellipsoid, TargetRegion
from .pose import ConstantSource, waypoints_from_degrees

IDENTITY_QUATERNION = (0.0, 0.0, 0.0, 1.0)


def build_session(config=ConeScanConfig):
    """ScanSession over the region described by config, on its ellipsoid."""
    ellipsoid = Ellipsoid.from_config(config)
    region = TargetRegion.from_config(config, ellipsoid)
    return ScanSession(region, ellipsoid, config=config)


def diagonal_pass(ellipsoid, center_lon=116.4, center_lat=39.9, height=4000.0, start_time=0.0):
    """
    Single cone sweeping south-west to north-east, then curling back.

    :return: List with one Cone, id "Cone".
    """
    offsets = [
        (-0.05, -0.05), (-0.03, -0.03), (-0.01, -0.01), (0.01, 0.01), (0.03, 0.03),
        (0.05, 0.05), (0.05, 0.02), (0.03, 0.0), (0.01, -0.02), (-0.02, -0.04),
    ]
    waypoints = [(center_lon + d_lon, center_lat + d_lat, height) for d_lon, d_lat in offsets]
    target = ellipsoid.cartesian_from_degrees(center_lon, center_lat, 0.0)
    return [
        Cone(
            "Cone",
            position=waypoints_from_degrees(ellipsoid, waypoints, start_time=start_time),
            target=target,
        )
    ]


def _loop_waypoints(lon, lat, height, index):
    """Ten-point loop whose direction depends on the cone index."""
    dir_x = 1 if index % 2 == 0 else -1
    dir_y = 1 if index % 3 == 0 else -1
    offsets = [
        (0.0, 0.0),
        (0.02 * dir_x, 0.02 * dir_y),
        (0.04 * dir_x, 0.04 * dir_y),
        (0.06 * dir_x, -0.02 * dir_y),
        (0.04 * dir_x, -0.04 * dir_y),
        (0.02 * dir_x, -0.06 * dir_y),
        (0.0, -0.04 * dir_y),
        (-0.02 * dir_x, -0.02 * dir_y),
        (-0.04 * dir_x, 0.0),
        (0.0, 0.0),
    ]
    return [(lon + d_lon, lat + d_lat, height) for d_lon, d_lat in offsets]


def five_cone_pattern(ellipsoid, center_lon=116.4, center_lat=39.9, height=20000.0, animate=True, start_time=0.0):
    """
    Five cones spread around the region centre.

    Cone i starts at longitude offset (i - 2) * 0.1 deg and latitude offset
    +/-0.05 * (i + 1) deg. With animate=False each cone hovers at its start
    point shifted by (-0.05, -0.05) deg.

    :return: List of Cones with ids "Cone1" .. "Cone5".
    """
    target = ellipsoid.cartesian_from_degrees(center_lon, center_lat, 0.0)
    cones = []
    for i in range(5):
        lon = center_lon + (i - 2) * 0.1
        lat = center_lat + (0.1 if i % 2 == 0 else -0.1) * (i + 1) * 0.5
        if animate:
            position = waypoints_from_degrees(ellipsoid, _loop_waypoints(lon, lat, height, i), start_time=start_time)
        else:
            position = ConstantSource(ellipsoid.cartesian_from_degrees(lon - 0.05, lat - 0.05, height))
        cones.append(
            Cone(
                f"Cone{i + 1}",
                position=position,
                orientation=ConstantSource(np.array(IDENTITY_QUATERNION)),
                target=target,
            )
        )
    return cones


def run_scan(sensor, session, cones, times):
    """
    Evaluate every cone at every time.

    Times are visited in non-decreasing order so the session's history is
    built the same way regardless of how the caller listed them.

    :param sensor:  FootprintSensor.
    :param session: ScanSession shared by the cones.
    :param cones:   Iterable of Cone.
    :param times:   Iterable of simulation times [s].
    :return: List of per-tick footprint dicts, time-major then cone order.
    """
    cones = list(cones)
    results = []
    for t in sorted(float(t) for t in times):
        for cone in cones:
            results.append(sensor.evaluate(session, cone, t))
    return results
