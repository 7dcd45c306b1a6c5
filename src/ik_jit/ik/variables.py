# Copyright (c) 2025.
# This file is part of IK-JIT, released under the MIT License.
"""
Configuration variable set for the inverse-kinematics NLP.

`IKVariables` is the robot's configuration vector seen as a solver
unknown. Its name (``"configuration_vector"`` by default) is how costs and
constraints address it when reading values and filling Jacobian blocks.

Bound policies
--------------
``bounds`` may be
    • a ``(lower, upper)`` pair of scalars, applied to every joint
      (default ``(-pi, pi)``),
    • a ``(lower, upper)`` pair of length-``n_q`` arrays,
    • the string ``"model"`` to use the joint limits stored in the model.

Bounds are fixed at construction. ``set_variables`` does not validate
against them: interior-point and SQP methods may hand over slightly
out-of-range iterates, and enforcing bounds is the solver's job.
"""

from __future__ import annotations

from typing import List, Sequence, Tuple, Union

import numpy as np

from ik_jit.core.types import Bounds, DimensionMismatchError
from ik_jit.kinematics.model import RobotModel
from ik_jit.optimization.problem import VariableSet

BoundPolicy = Union[str, Tuple[float, float], Tuple[Sequence[float], Sequence[float]]]


def resolve_bounds(model: RobotModel, bounds: BoundPolicy) -> Tuple[np.ndarray, np.ndarray]:
    """Expand a bound policy into per-joint (lower, upper) arrays."""
    n = model.n_q
    if isinstance(bounds, str):
        if bounds != "model":
            raise ValueError(f"Unknown bound policy '{bounds}', expected 'model' or a (lower, upper) pair")
        return model.joint_limits()

    lower, upper = bounds
    lower = np.array(lower, dtype=np.float64)
    upper = np.array(upper, dtype=np.float64)
    if lower.ndim == 0:
        lower = np.full(n, float(lower))
    if upper.ndim == 0:
        upper = np.full(n, float(upper))
    if lower.shape != (n,) or upper.shape != (n,):
        raise DimensionMismatchError(
            f"Bounds have shapes {lower.shape} / {upper.shape}, expected ({n},) for model '{model.name}'"
        )
    if np.any(lower > upper):
        raise ValueError(f"Lower bounds exceed upper bounds at indices {np.flatnonzero(lower > upper).tolist()}")
    return lower, upper


class IKVariables(VariableSet):
    """The configuration vector q of one robot model."""

    def __init__(
        self,
        name: str,
        model: RobotModel,
        q0: Sequence[float],
        bounds: BoundPolicy = (-np.pi, np.pi),
    ) -> None:
        super().__init__(model.n_q, name)
        q0 = np.asarray(q0, dtype=np.float64).reshape(-1)
        if q0.shape[0] != model.n_q:
            raise DimensionMismatchError(
                f"Initial guess has {q0.shape[0]} entries but model '{model.name}' has {model.n_q} DOF"
            )
        self._q = q0.copy()
        self._lower, self._upper = resolve_bounds(model, bounds)

    def set_variables(self, q: np.ndarray) -> None:
        self._q = np.asarray(q, dtype=np.float64).copy()

    def get_values(self) -> np.ndarray:
        return self._q.copy()

    def get_bounds(self) -> List[Bounds]:
        return [Bounds(float(lo), float(hi)) for lo, hi in zip(self._lower, self._upper)]
