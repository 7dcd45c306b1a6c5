# Copyright (c) 2025.
# This file is part of IK-JIT, released under the MIT License.
"""
SO(3) / SE(3) operations and rotation-error metrics for IK-JIT.

This module implements the 3D rotation mathematics needed by forward
kinematics and by the pose-error cost:

    • hat / vee operators
    • Single-axis Rodrigues rotation
    • Homogeneous transform construction and inversion
    • Roll-pitch-yaw (intrinsic Z-Y-X) conversions, gimbal-lock safe
    • Rotation-error metrics that turn two orientations into a scalar

All functions are written in JAX and support:
    - JIT compilation
    - Forward- and reverse-mode automatic differentiation
    - Evaluation on concrete arrays and on traced (dual) values alike

Euler convention
----------------
``rpy`` vectors are ``[roll, pitch, yaw]`` with

    R = Rz(yaw) @ Ry(pitch) @ Rx(roll)

At gimbal lock (``cos(pitch) == 0``) only ``yaw - roll`` (pitch = +pi/2) or
``yaw + roll`` (pitch = -pi/2) is observable; ``rot_to_rpy`` then returns
``roll = 0`` and puts the whole rotation about z into ``yaw``. Every square
root and ``atan2`` on that path is guarded so derivatives stay finite.

Rotation-error metrics
----------------------
trace_rotation_error(R_current, R_desired)
    ``trace(I - R_desired @ R_current.T) = 2 (1 - cos theta)``.
    Zero iff the rotations coincide, non-negative, cheap. Grows
    monotonically with the angle theta but flattens out as theta -> pi
    (value 4, zero gradient), so it is only locally informative for large
    misalignments.

geodesic_rotation_error(R_current, R_desired)
    ``theta ** 2`` where theta is the angle of ``R_desired @ R_current.T``.
    Metric-exact; gradients are finite at the identity and at antipodal
    rotations, where the rotation axis itself is undefined.

rotation_angle(R_current, R_desired)
    The angle theta itself, in radians. Convergence is judged on it so that
    one tolerance means the same thing whichever metric drives the cost.
"""

from __future__ import annotations

from typing import Callable, Dict

import jax.numpy as jnp

RotationErrorFn = Callable[[jnp.ndarray, jnp.ndarray], jnp.ndarray]

# Below this |cos(pitch)| the RPY extraction switches to the gimbal-lock branch.
GIMBAL_LOCK_EPS = 1e-6


def hat(v: jnp.ndarray) -> jnp.ndarray:
    """so(3) hat operator: R^3 -> 3x3 skew-symmetric matrix."""
    x, y, z = v[0], v[1], v[2]
    zero = jnp.zeros_like(x)
    return jnp.stack(
        [
            jnp.stack([zero, -z, y]),
            jnp.stack([z, zero, -x]),
            jnp.stack([-y, x, zero]),
        ]
    )


def vee(R: jnp.ndarray) -> jnp.ndarray:
    """
    vee: so(3) -> R^3, inverse of hat.
    Assumes R is a 3x3 skew-symmetric-like matrix.
    """
    return jnp.array([
        R[2, 1] - R[1, 2],
        R[0, 2] - R[2, 0],
        R[1, 0] - R[0, 1],
    ]) / 2.0


def _safe_norm(v: jnp.ndarray) -> jnp.ndarray:
    # Euclidean norm with a zero (not NaN) derivative at v == 0.
    sq = jnp.sum(v * v)
    nonzero = sq > 0.0
    return jnp.where(nonzero, jnp.sqrt(jnp.where(nonzero, sq, 1.0)), 0.0)


def axis_angle_to_rot(axis: jnp.ndarray, angle: jnp.ndarray) -> jnp.ndarray:
    """
    Rotation by ``angle`` about a fixed unit ``axis`` (Rodrigues).

    The axis is a unit vector fixed by the joint, so there is no
    singularity at ``angle == 0`` and no branch on the angle.
    """
    K = hat(axis)
    I = jnp.eye(3, dtype=K.dtype)
    return I + jnp.sin(angle) * K + (1.0 - jnp.cos(angle)) * (K @ K)


def make_transform(R: jnp.ndarray, t: jnp.ndarray) -> jnp.ndarray:
    """Build a 4x4 homogeneous transform from a rotation and a translation."""
    R = jnp.asarray(R)
    t = jnp.asarray(t, dtype=R.dtype)
    top = jnp.concatenate([R, t.reshape(3, 1)], axis=1)
    bottom = jnp.array([[0.0, 0.0, 0.0, 1.0]], dtype=top.dtype)
    return jnp.concatenate([top, bottom], axis=0)


def transform_inverse(T: jnp.ndarray) -> jnp.ndarray:
    """Inverse of a rigid transform: [R^T, -R^T t]."""
    R = T[:3, :3]
    t = T[:3, 3]
    return make_transform(R.T, -R.T @ t)


def rot_x(a: jnp.ndarray) -> jnp.ndarray:
    c, s = jnp.cos(a), jnp.sin(a)
    one, zero = jnp.ones_like(a), jnp.zeros_like(a)
    return jnp.stack([
        jnp.stack([one, zero, zero]),
        jnp.stack([zero, c, -s]),
        jnp.stack([zero, s, c]),
    ])


def rot_y(a: jnp.ndarray) -> jnp.ndarray:
    c, s = jnp.cos(a), jnp.sin(a)
    one, zero = jnp.ones_like(a), jnp.zeros_like(a)
    return jnp.stack([
        jnp.stack([c, zero, s]),
        jnp.stack([zero, one, zero]),
        jnp.stack([-s, zero, c]),
    ])


def rot_z(a: jnp.ndarray) -> jnp.ndarray:
    c, s = jnp.cos(a), jnp.sin(a)
    one, zero = jnp.ones_like(a), jnp.zeros_like(a)
    return jnp.stack([
        jnp.stack([c, -s, zero]),
        jnp.stack([s, c, zero]),
        jnp.stack([zero, zero, one]),
    ])


def rpy_to_rot(rpy: jnp.ndarray) -> jnp.ndarray:
    """[roll, pitch, yaw] -> Rz(yaw) @ Ry(pitch) @ Rx(roll)."""
    rpy = jnp.asarray(rpy)
    return rot_z(rpy[2]) @ rot_y(rpy[1]) @ rot_x(rpy[0])


def rot_to_rpy(R: jnp.ndarray) -> jnp.ndarray:
    """
    Extract [roll, pitch, yaw] (intrinsic Z-Y-X) from a rotation matrix.

    Regular case:
        pitch = atan2(-R20, sqrt(R00^2 + R10^2))
        roll  = atan2(R21, R22)
        yaw   = atan2(R10, R00)

    Gimbal lock (sqrt(R00^2 + R10^2) < GIMBAL_LOCK_EPS):
        roll  = 0
        yaw   = atan2(-R01, R11)

    Each branch only sees well-conditioned ``atan2`` arguments, so the
    derivative never picks up a 0/0 from the branch that is not taken.
    """
    R = jnp.asarray(R)
    cp_sq = R[0, 0] ** 2 + R[1, 0] ** 2
    singular = cp_sq < GIMBAL_LOCK_EPS ** 2

    cp = jnp.where(singular, 0.0, jnp.sqrt(jnp.where(singular, 1.0, cp_sq)))
    pitch = jnp.arctan2(-R[2, 0], cp)

    roll_regular = jnp.arctan2(jnp.where(singular, 0.0, R[2, 1]), jnp.where(singular, 1.0, R[2, 2]))
    yaw_regular = jnp.arctan2(jnp.where(singular, 0.0, R[1, 0]), jnp.where(singular, 1.0, R[0, 0]))
    yaw_locked = jnp.arctan2(jnp.where(singular, -R[0, 1], 0.0), jnp.where(singular, R[1, 1], 1.0))

    roll = jnp.where(singular, 0.0, roll_regular)
    yaw = jnp.where(singular, yaw_locked, yaw_regular)
    return jnp.stack([roll, pitch, yaw])


def trace_rotation_error(R_current: jnp.ndarray, R_desired: jnp.ndarray) -> jnp.ndarray:
    """trace(I - R_desired @ R_current^T), i.e. 2 (1 - cos theta)."""
    R_err = R_desired @ R_current.T
    return jnp.trace(jnp.eye(3, dtype=R_err.dtype) - R_err)


def rotation_angle(R_current: jnp.ndarray, R_desired: jnp.ndarray) -> jnp.ndarray:
    """Angle in [0, pi] of R_desired @ R_current^T, via atan2(sin, cos)."""
    R_err = R_desired @ R_current.T
    cos_theta = (jnp.trace(R_err) - 1.0) / 2.0
    # ||vee(R - R^T)|| = 2 sin(theta) with the vee above
    sin_theta = 0.5 * _safe_norm(vee(R_err - R_err.T))
    return jnp.arctan2(sin_theta, cos_theta)


def geodesic_rotation_error(R_current: jnp.ndarray, R_desired: jnp.ndarray) -> jnp.ndarray:
    """Squared rotation angle between the two orientations."""
    theta = rotation_angle(R_current, R_desired)
    return theta * theta


ROTATION_ERROR_METRICS: Dict[str, RotationErrorFn] = {
    "trace": trace_rotation_error,
    "geodesic": geodesic_rotation_error,
}


def get_rotation_error_metric(name: str) -> RotationErrorFn:
    try:
        return ROTATION_ERROR_METRICS[name]
    except KeyError:
        raise ValueError(
            f"Unknown rotation error metric '{name}', "
            f"expected one of {sorted(ROTATION_ERROR_METRICS)}"
        ) from None
