"""
Math Utilities Module

This module provides the vector and frame helpers shared by the cone
footprint engine. It covers input coercion for 3D vectors and quaternions,
vector normalization with a safe fallback, angle wrapping, linear
interpolation of positions over time, and conversion between unit
quaternions and rotation matrices.

Quaternions are stored scalar-last as (x, y, z, w), the convention used by
scipy.spatial.transform.Rotation. A rotation matrix built from a quaternion
maps local (body) vectors into the Earth-fixed frame.
"""

import numpy as np
from scipy.spatial.transform import Rotation

# Small numerical tolerance to prevent division by zero and handle
# degenerate edge cases like near-zero vector norms or tiny time gaps.
eps = 1e-12  # [dimensionless]

# Canonical Earth-fixed basis, used for deterministic fallback axes.
WORLD_AXES = (
    np.array([1.0, 0.0, 0.0]),
    np.array([0.0, 1.0, 0.0]),
    np.array([0.0, 0.0, 1.0]),
)


def _as_vector3(value, name):
    """
    Validate and convert an input into a flat 3-element float vector.

    :param value: Array-like input to convert into a 3D vector.
    :param name:  Human-readable parameter name, shown in error messages.

    :return: numpy array of shape (3,) with dtype float64.
    :raises ValueError: If the input does not contain exactly 3 elements.
    """
    vec = np.asarray(value, dtype=float).reshape(-1)
    if vec.size != 3:
        raise ValueError(f"{name} must be a 3D vector.")
    return vec


def _as_quaternion(value, name):
    """
    Validate and convert an input into a unit quaternion (x, y, z, w).

    The input is normalized; a near-zero quaternion is rejected because it
    does not describe a rotation.

    :param value: Array-like input with 4 elements, scalar last.
    :param name:  Human-readable parameter name, shown in error messages.

    :return: numpy array of shape (4,) with unit norm.
    :raises ValueError: If the input does not have 4 elements or has zero norm.
    """
    quat = np.asarray(value, dtype=float).reshape(-1)
    if quat.size != 4:
        raise ValueError(f"{name} must be a quaternion (x, y, z, w).")
    norm = np.linalg.norm(quat)
    if norm < eps:
        raise ValueError(f"{name} must be a non-zero quaternion.")
    return quat / norm


def _normalize(vec, fallback=(1.0, 0.0, 0.0)):
    """
    Normalize a vector to unit length, with a safe fallback for zero-length vectors.

    :param vec:      Input vector (array-like, any dimension).
    :param fallback: Direction to return when the input has near-zero norm.

    :return: Unit-length numpy vector in the same direction as the input.
    :raises ValueError: If both the input and fallback vectors have near-zero norm.
    """
    vec = np.asarray(vec, dtype=float)
    norm = np.linalg.norm(vec)

    if norm < eps:
        fallback = np.asarray(fallback, dtype=float)
        fallback_norm = np.linalg.norm(fallback)
        if fallback_norm < eps:
            raise ValueError("Fallback vector must be non-zero.")
        return fallback / fallback_norm

    return vec / norm


def _least_aligned_axis(direction):
    """
    Pick the Earth-fixed basis axis most nearly perpendicular to a direction.

    Used as the substitute reference when the preferred "up" vector is
    parallel to the cone axis. Ties resolve to the lowest axis index, so the
    choice depends only on the direction.

    :param direction: Unit vector.
    :return: One of WORLD_AXES (a copy).
    """
    direction = np.asarray(direction, dtype=float)
    alignment = [abs(float(np.dot(direction, axis))) for axis in WORLD_AXES]
    return WORLD_AXES[int(np.argmin(alignment))].copy()


def _wrap_angle(angle):
    """
    Wrap an angle into the range [-pi, pi] radians.

    :param angle: Input angle in radians.
    :return: Equivalent angle wrapped to the [-pi, pi] interval, in radians.
    """
    return (angle + np.pi) % (2 * np.pi) - np.pi


def _interpolate_position(t_prev, pos_prev, t_curr, pos_curr, t_query):
    """
    Linearly interpolate a 3D position between two time-stamped samples.

    Computes the interpolated position at t_query using:
        pos(t_query) = pos_prev + alpha * (pos_curr - pos_prev)
    where alpha = clamp((t_query - t_prev) / (t_curr - t_prev), 0, 1).

    Edge cases handled:
        If t_prev or pos_prev is None (no prior sample), pos_curr is returned.
        If the time interval abs(dt) < eps, pos_curr is returned to avoid division by zero.
        If t_query lies outside [t_prev, t_curr], alpha is clamped to [0, 1].

    :param t_prev:   Previous timestamp in seconds (or None if unavailable).
    :param pos_prev: Previous 3D position in meters (or None if unavailable).
    :param t_curr:   Current timestamp in seconds.
    :param pos_curr: Current 3D position in meters.
    :param t_query:  Desired query time in seconds.

    :return: Interpolated 3D position at t_query, in meters.
    """
    pos_curr = np.asarray(pos_curr, dtype=float)

    if t_prev is None or pos_prev is None:
        return pos_curr

    t_prev = float(t_prev)
    t_curr = float(t_curr)
    t_query = float(t_query)

    dt = t_curr - t_prev
    if abs(dt) < eps:
        return pos_curr

    alpha = np.clip((t_query - t_prev) / dt, 0.0, 1.0)
    return np.asarray(pos_prev, dtype=float) + alpha * (pos_curr - pos_prev)


def _quaternion_to_matrix(quaternion):
    """
    Convert a unit quaternion (x, y, z, w) to a 3x3 rotation matrix.

    The columns of the result are the local x, y, z axes expressed in the
    Earth-fixed frame.
    """
    quat = _as_quaternion(quaternion, "quaternion")
    return Rotation.from_quat(quat).as_matrix()


def _matrix_to_quaternion(matrix):
    """
    Convert a 3x3 rotation matrix to a unit quaternion (x, y, z, w).

    :raises ValueError: If the input is not 3x3.
    """
    matrix = np.asarray(matrix, dtype=float)
    if matrix.shape != (3, 3):
        raise ValueError("matrix must be a 3x3 rotation matrix.")
    return Rotation.from_matrix(matrix).as_quat()


def _rotate(quaternion, local_vector):
    """Rotate a local-frame vector into the Earth-fixed frame."""
    return _quaternion_to_matrix(quaternion) @ _as_vector3(local_vector, "local_vector")
