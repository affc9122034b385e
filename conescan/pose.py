"""
Time-sampled pose sources.

A cone pulls its apex position, and optionally an orientation or aim target,
from objects exposing ``value(t)``. Every source returns None when it cannot
resolve a value at t; the footprint evaluator treats that as a missing pose
rather than an error.
"""

import numpy as np
from scipy.spatial.transform import Rotation, Slerp

from .math_utils import _as_quaternion, _as_vector3, _interpolate_position, eps


class ConstantSource:
    """Source returning the same value at every time (None is allowed)."""
    def __init__(self, value):
        self._value = value

    def value(self, t):
        return self._value


def _sorted_samples(times, values, name):
    times = np.asarray(times, dtype=float).reshape(-1)
    if times.size < 1:
        raise ValueError(f"{name} needs at least one sample.")
    if times.size != len(values):
        raise ValueError(f"{name}: times and samples must have the same length.")
    if np.any(np.diff(times) <= 0.0):
        raise ValueError(f"{name}: sample times must be strictly increasing.")
    return times


class SampledPositionSource:
    """
    Piecewise-linear position track.

    Positions between two samples are linearly interpolated; queries outside
    [first_time, last_time] return None (no extrapolation).

    :param times:     Strictly increasing sample times [s].
    :param positions: Cartesian positions [m], one per time.
    """
    def __init__(self, times, positions):
        positions = [_as_vector3(p, "position") for p in positions]
        self.times = _sorted_samples(times, positions, "SampledPositionSource")
        self.positions = np.vstack(positions)

    @property
    def start_time(self):
        return float(self.times[0])

    @property
    def stop_time(self):
        return float(self.times[-1])

    def value(self, t):
        t = float(t)
        if t < self.times[0] - eps or t > self.times[-1] + eps:
            return None
        # Index of the sample at or after t.
        idx = int(np.searchsorted(self.times, t, side="left"))
        idx = min(max(idx, 0), self.times.size - 1)
        if idx == 0:
            return self.positions[0].copy()
        return _interpolate_position(
            self.times[idx - 1],
            self.positions[idx - 1],
            self.times[idx],
            self.positions[idx],
            t,
        )


class SampledOrientationSource:
    """
    Orientation track interpolated with spherical linear interpolation.

    :param times:        Strictly increasing sample times [s].
    :param quaternions:  Unit quaternions (x, y, z, w), one per time.
    """
    def __init__(self, times, quaternions):
        quaternions = [_as_quaternion(q, "quaternion") for q in quaternions]
        self.times = _sorted_samples(times, quaternions, "SampledOrientationSource")
        self.quaternions = np.vstack(quaternions)
        self._slerp = None
        if self.times.size > 1:
            self._slerp = Slerp(self.times, Rotation.from_quat(self.quaternions))

    def value(self, t):
        t = float(t)
        if t < self.times[0] - eps or t > self.times[-1] + eps:
            return None
        if self._slerp is None:
            return self.quaternions[0].copy()
        t = float(np.clip(t, self.times[0], self.times[-1]))
        return self._slerp([t]).as_quat()[0]


def waypoints_from_degrees(ellipsoid, waypoints, start_time=0.0, step=1.0):
    """
    Build a SampledPositionSource from (longitude, latitude, height) waypoints.

    Waypoints are placed ``step`` seconds apart starting at ``start_time``.

    :param ellipsoid: Ellipsoid used for the geodetic to Cartesian conversion.
    :param waypoints: Iterable of (lon [deg], lat [deg], height [m]).
    """
    waypoints = list(waypoints)
    times = [float(start_time) + i * float(step) for i in range(len(waypoints))]
    positions = [ellipsoid.cartesian_from_degrees(lon, lat, height) for lon, lat, height in waypoints]
    return SampledPositionSource(times, positions)


def as_source(value):
    """Wrap plain values in a ConstantSource; pass sources through."""
    if value is None or hasattr(value, "value"):
        return value
    return ConstantSource(value)
