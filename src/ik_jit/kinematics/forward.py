# Copyright (c) 2025.
# This file is part of IK-JIT, released under the MIT License.
"""
Forward kinematics for IK-JIT.

forward_kinematics(model, q, source, target)
    Pose of ``target`` expressed in the ``source`` link frame, as a 4x4
    homogeneous transform H_st. Both links may sit anywhere in the tree:
    the chain is walked from their deepest common ancestor, so only the
    joints between the two links are evaluated.

link_poses(model, q)
    Pose of every link in the root frame (used for visualization).

Both are pure JAX functions of ``q``; they are safe under ``jax.jit``,
``jax.jvp`` / ``jax.linearize`` and ``jax.grad``. The model is treated as a
static structure closed over by the caller.
"""

from __future__ import annotations

from typing import Dict, List

import jax.numpy as jnp

from ik_jit.core.math3d import axis_angle_to_rot, make_transform, transform_inverse
from ik_jit.kinematics.model import Link, RobotModel


def joint_transform(link: Link, q: jnp.ndarray) -> jnp.ndarray:
    """Parent-frame -> link-frame transform of one link at configuration q."""
    joint = link.joint
    origin = jnp.asarray(joint.origin, dtype=q.dtype)
    if not joint.is_movable:
        return origin

    axis = jnp.asarray(joint.axis, dtype=q.dtype)
    qi = q[joint.q_index]
    if joint.type == "revolute":
        motion = make_transform(axis_angle_to_rot(axis, qi), jnp.zeros(3, dtype=q.dtype))
    else:
        motion = make_transform(jnp.eye(3, dtype=q.dtype), axis * qi)
    return origin @ motion


def _as_float_config(q) -> jnp.ndarray:
    q = jnp.asarray(q)
    if not jnp.issubdtype(q.dtype, jnp.floating):
        q = q.astype(jnp.float64)
    return q


def _chain_transform(model: RobotModel, q: jnp.ndarray, names: List[str]) -> jnp.ndarray:
    T = jnp.eye(4, dtype=q.dtype)
    for name in names:
        T = T @ joint_transform(model.links[name], q)
    return T


def forward_kinematics(
    model: RobotModel,
    q: jnp.ndarray,
    source_link: str,
    target_link: str,
) -> jnp.ndarray:
    """H_st: pose of ``target_link`` in the frame of ``source_link``."""
    q = _as_float_config(q)
    path_s = model.path_from_root(source_link)
    path_t = model.path_from_root(target_link)

    # Strip the shared prefix; the last shared link is the common ancestor.
    k = 0
    while k < min(len(path_s), len(path_t)) and path_s[k] == path_t[k]:
        k += 1

    H_as = _chain_transform(model, q, path_s[k:])
    H_at = _chain_transform(model, q, path_t[k:])
    return transform_inverse(H_as) @ H_at


def link_poses(model: RobotModel, q: jnp.ndarray) -> Dict[str, jnp.ndarray]:
    """Root-frame pose of every link, parents before children."""
    q = _as_float_config(q)
    poses: Dict[str, jnp.ndarray] = {}
    for name, link in model.links.items():
        local = joint_transform(link, q)
        if link.parent is None:
            poses[name] = local
        else:
            poses[name] = poses[link.parent] @ local
    return poses
