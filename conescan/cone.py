"""
Cone Geometry Resolver

Turns a sensor pose into the geometry the ray caster needs: the apex, the
unit axis along which rays travel, and an orthonormal (tangent, bitangent)
pair spanning the plane perpendicular to the axis.

The aim of a cone is resolved every tick into one of two branches:

    ManualAim(orientation)  axis = orientation applied to local (0, 0, -1)
    TargetAim(target)       axis = normalize(target - apex)

In target mode the orientation quaternion is also rebuilt so that its local
+Z axis points from the target back to the apex, matching the manual
convention where the beam leaves along local -Z. The orientation describes
the body; the ray axis is always computed from apex towards the aim point.

Frame handedness: (tangent, bitangent, axis) is right-handed, with
    tangent   = normalize(axis x up)
    bitangent = normalize(axis x tangent)
where up is the radial direction from the ellipsoid centre to the apex.
"""

from dataclasses import dataclass

import numpy as np

from .math_utils import (
    _as_quaternion,
    _as_vector3,
    _least_aligned_axis,
    _matrix_to_quaternion,
    _normalize,
    _rotate,
    eps,
)
from .pose import as_source

# Beam direction in the cone's local frame.
LOCAL_FORWARD = np.array([0.0, 0.0, -1.0])


@dataclass(frozen=True)
class ManualAim:
    """Aim taken from an explicit orientation quaternion (x, y, z, w)."""
    orientation: np.ndarray


@dataclass(frozen=True)
class TargetAim:
    """Aim that follows a target point [m]."""
    target: np.ndarray


@dataclass
class ConeGeometry:
    """
    Resolved cone pose for one evaluation tick.

    :param apex:          Ray origin [m].
    :param axis:          Unit ray-casting axis, apex towards the aim.
    :param tangent:       Unit vector perpendicular to axis.
    :param bitangent:     Unit vector perpendicular to axis and tangent.
    :param orientation:   Body orientation quaternion (x, y, z, w).
    :param aim_mode:      "manual" or "target".
    :param fallback_used: True when up was parallel to the axis and a fixed
                          reference axis replaced it.
    """
    apex: np.ndarray
    axis: np.ndarray
    tangent: np.ndarray
    bitangent: np.ndarray
    orientation: np.ndarray
    aim_mode: str
    fallback_used: bool = False

    def center(self, length):
        """Geometric centre of a cone of the given length [m]."""
        return self.apex + 0.5 * float(length) * self.axis


def cone_bottom_radius(cone_angle, length):
    """Base radius [m] of a cone with full apex angle cone_angle [rad]."""
    return float(np.tan(0.5 * float(cone_angle)) * float(length))


def _reference_axis(direction, up, parallel_threshold):
    """Return (reference, fallback_used) for building a frame around direction."""
    if abs(float(np.dot(direction, up))) > parallel_threshold:
        return _least_aligned_axis(direction), True
    return up, False


def orientation_towards(apex, target, parallel_threshold=0.99):
    """
    Orientation quaternion whose local +Z points from target to apex.

    Local x = normalize(up x z), y = z x x, with up the radial direction at
    the apex. When up and z are nearly parallel the reference becomes the
    Earth-fixed axis least aligned with z and x = normalize(z x reference).

    :raises ValueError: If apex and target coincide.
    """
    apex = _as_vector3(apex, "apex")
    target = _as_vector3(target, "target")
    offset = apex - target
    if np.linalg.norm(offset) < eps:
        raise ValueError("apex and target coincide; aim is undefined.")

    z_axis = _normalize(offset)
    up = _normalize(apex, fallback=(0.0, 0.0, 1.0))
    reference, fallback_used = _reference_axis(z_axis, up, parallel_threshold)
    if fallback_used:
        x_axis = _normalize(np.cross(z_axis, reference))
    else:
        x_axis = _normalize(np.cross(reference, z_axis))
    y_axis = _normalize(np.cross(z_axis, x_axis))

    return _matrix_to_quaternion(np.column_stack([x_axis, y_axis, z_axis]))


def resolve_cone(apex, aim, parallel_threshold=0.99):
    """
    Resolve a cone's ray-casting axis and local sampling frame.

    :param apex:               Apex position [m].
    :param aim:                ManualAim or TargetAim.
    :param parallel_threshold: |dot(axis, up)| above which the fallback
                               reference axis is used.
    :return: ConeGeometry.
    :raises ValueError: If a target aim coincides with the apex.
    :raises TypeError:  If aim is neither ManualAim nor TargetAim.
    """
    apex = _as_vector3(apex, "apex")

    if isinstance(aim, TargetAim):
        target = _as_vector3(aim.target, "target")
        orientation = orientation_towards(apex, target, parallel_threshold)
        axis = _normalize(target - apex)
        aim_mode = "target"
    elif isinstance(aim, ManualAim):
        orientation = _as_quaternion(aim.orientation, "orientation")
        axis = _normalize(_rotate(orientation, LOCAL_FORWARD))
        aim_mode = "manual"
    else:
        raise TypeError("aim must be a ManualAim or TargetAim.")

    up = _normalize(apex, fallback=(0.0, 0.0, 1.0))
    reference, fallback_used = _reference_axis(axis, up, parallel_threshold)
    tangent = _normalize(np.cross(axis, reference))
    bitangent = _normalize(np.cross(axis, tangent))

    return ConeGeometry(
        apex=apex,
        axis=axis,
        tangent=tangent,
        bitangent=bitangent,
        orientation=orientation,
        aim_mode=aim_mode,
        fallback_used=fallback_used,
    )


class Cone:
    """
    A moving sensor cone: identifier plus pose sources.

    Each source may be a plain value (held constant) or an object with a
    ``value(t)`` method returning None when unresolved.

    :param cone_id:            Identifier used for per-cone throttling state.
    :param position:           Apex position source [m].
    :param orientation:        Optional orientation source (x, y, z, w).
    :param target:             Optional aim target source [m].
    :param target_orientation: Target-orientation mode; None defers to the
                               sensor configuration.
    """
    def __init__(self, cone_id, position, orientation=None, target=None, target_orientation=None):
        self.cone_id = str(cone_id)
        self.position = as_source(position)
        self.orientation = as_source(orientation)
        self.target = as_source(target)
        self.target_orientation = target_orientation
        if self.position is None:
            raise ValueError("Cone needs a position source.")

    def position_at(self, t):
        value = self.position.value(t)
        return None if value is None else _as_vector3(value, "position")

    def aim_at(self, t, target_orientation=True):
        """
        Pick the aim branch for time t.

        The target wins when target-orientation mode is on and the target
        resolves; otherwise the manual orientation is used. Returns None when
        neither resolves.
        """
        if self.target_orientation is not None:
            target_orientation = self.target_orientation

        if target_orientation and self.target is not None:
            target = self.target.value(t)
            if target is not None:
                return TargetAim(_as_vector3(target, "target"))

        if self.orientation is not None:
            orientation = self.orientation.value(t)
            if orientation is not None:
                return ManualAim(_as_quaternion(orientation, "orientation"))

        return None
