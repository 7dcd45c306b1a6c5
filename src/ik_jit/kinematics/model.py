# Copyright (c) 2025.
# This file is part of IK-JIT, released under the MIT License.
"""
Articulated robot model for IK-JIT.

A `RobotModel` is a tree of named links. Every link except the root hangs
off its parent through a `Joint`:

    • "revolute"  : rotation about ``axis`` by q[i] radians
    • "prismatic" : translation along ``axis`` by q[i] metres
    • "fixed"     : no degree of freedom

The joint's ``origin`` is the 4x4 transform from the parent link frame to
the child link frame at q[i] = 0. Movable joints receive consecutive
configuration indices in insertion order, so ``model.n_q`` equals the
number of movable joints and ``q[joint.q_index]`` drives that joint.

Scalar types
------------
The model stores plain arrays; forward kinematics is pure JAX, so the same
model evaluates on float64 values and on JAX tracers (the dual numbers of
forward-mode AD) alike. `RobotModel.cast` returns an independently owned
copy with every parameter converted to a JAX array of the requested dtype.
The IK front end casts once per solve and never mutates the caller's model.

The model is built programmatically; description-file parsing is out of
scope.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np
import jax.numpy as jnp

from ik_jit.core.math3d import make_transform, rpy_to_rot

JOINT_TYPES = ("revolute", "prismatic", "fixed")


def origin_from_xyz_rpy(
    xyz: Sequence[float] = (0.0, 0.0, 0.0),
    rpy: Sequence[float] = (0.0, 0.0, 0.0),
) -> np.ndarray:
    """Parent-to-child offset in the familiar xyz + roll/pitch/yaw form."""
    R = rpy_to_rot(jnp.asarray(rpy, dtype=jnp.float64))
    return np.asarray(make_transform(R, jnp.asarray(xyz, dtype=jnp.float64)))


@dataclass
class Joint:
    type: str = "fixed"
    axis: np.ndarray = field(default_factory=lambda: np.array([0.0, 0.0, 1.0]))
    origin: np.ndarray = field(default_factory=lambda: np.eye(4))
    lower: float = -np.pi
    upper: float = np.pi
    q_index: int = -1  # -1 for fixed joints

    @property
    def is_movable(self) -> bool:
        return self.type != "fixed"


@dataclass
class Link:
    name: str
    parent: Optional[str]
    joint: Joint


class RobotModel:
    """Tree of links connected by single-DOF joints."""

    def __init__(self, name: str = "robot") -> None:
        self.name = name
        self.links: Dict[str, Link] = {}
        self.root: Optional[str] = None
        self._n_q = 0

    @property
    def n_q(self) -> int:
        """Number of configuration variables (movable joints)."""
        return self._n_q

    @property
    def link_names(self) -> List[str]:
        return list(self.links)

    def add_link(
        self,
        name: str,
        parent: Optional[str] = None,
        joint_type: str = "fixed",
        origin: Optional[np.ndarray] = None,
        axis: Sequence[float] = (0.0, 0.0, 1.0),
        limits: Tuple[float, float] = (-np.pi, np.pi),
    ) -> Link:
        """
        Add a link attached to ``parent`` through a joint of ``joint_type``.

        The first link added without a parent becomes the root; a second
        parentless link is rejected.
        """
        if name in self.links:
            raise ValueError(f"Link '{name}' already exists in model '{self.name}'")
        if joint_type not in JOINT_TYPES:
            raise ValueError(f"Unknown joint type '{joint_type}', expected one of {JOINT_TYPES}")

        if parent is None:
            if self.root is not None:
                raise ValueError(f"Model '{self.name}' already has root link '{self.root}'")
            if joint_type != "fixed":
                raise ValueError("The root link cannot have a movable joint")
        elif parent not in self.links:
            raise KeyError(f"Parent link '{parent}' not found in model '{self.name}'")

        axis_arr = np.asarray(axis, dtype=np.float64)
        norm = np.linalg.norm(axis_arr)
        if joint_type != "fixed" and norm == 0.0:
            raise ValueError(f"Joint axis of link '{name}' must be non-zero")
        if norm > 0.0:
            axis_arr = axis_arr / norm

        lower, upper = float(limits[0]), float(limits[1])
        if lower > upper:
            raise ValueError(f"Joint limits of link '{name}' are inverted: {lower} > {upper}")

        joint = Joint(
            type=joint_type,
            axis=axis_arr,
            origin=np.eye(4) if origin is None else np.asarray(origin, dtype=np.float64),
            lower=lower,
            upper=upper,
        )
        if joint.is_movable:
            joint.q_index = self._n_q
            self._n_q += 1

        link = Link(name=name, parent=parent, joint=joint)
        self.links[name] = link
        if parent is None:
            self.root = name
        return link

    def get_link(self, name: str) -> Link:
        try:
            return self.links[name]
        except KeyError:
            raise KeyError(f"Link '{name}' not found in model '{self.name}'") from None

    def path_from_root(self, name: str) -> List[str]:
        """Link names from the root down to ``name`` (inclusive)."""
        path = []
        link = self.get_link(name)
        while link is not None:
            path.append(link.name)
            link = self.links[link.parent] if link.parent is not None else None
        return path[::-1]

    def joint_limits(self) -> Tuple[np.ndarray, np.ndarray]:
        """(lower, upper) arrays of length n_q, in configuration order."""
        lower = np.empty(self._n_q)
        upper = np.empty(self._n_q)
        for link in self.links.values():
            if link.joint.is_movable:
                lower[link.joint.q_index] = link.joint.lower
                upper[link.joint.q_index] = link.joint.upper
        return lower, upper

    def cast(self, dtype=jnp.float64) -> "RobotModel":
        """
        Independent copy of the model with parameters as JAX arrays of
        ``dtype``. Mutating the copy never affects the original.
        """
        other = copy.deepcopy(self)
        for link in other.links.values():
            link.joint.axis = jnp.asarray(link.joint.axis, dtype=dtype)
            link.joint.origin = jnp.asarray(link.joint.origin, dtype=dtype)
        return other

    def __repr__(self) -> str:
        return f"RobotModel(name={self.name!r}, links={len(self.links)}, n_q={self.n_q})"
