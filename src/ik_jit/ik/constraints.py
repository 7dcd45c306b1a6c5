# Copyright (c) 2025.
# This file is part of IK-JIT, released under the MIT License.
"""
Auxiliary constraint sets on the configuration vector.

The baseline IK solve registers no constraints. `IKConstraint` lets a
caller add rows ``lower <= g(q) <= upper`` where ``g`` is any pure JAX
function of the configuration; its Jacobian comes from automatic
differentiation, exactly like the cost gradient. Rows with
``lower == upper`` are equalities.

Example, couple two joints so that q[2] == 0.5 * q[1]:

    IKConstraint.joint_coupling("elbow_coupling", n_q=6, i=2, j=1, ratio=0.5)
"""

from __future__ import annotations

from typing import Callable, List, Sequence, Union

import numpy as np
import jax.numpy as jnp

from ik_jit.core.types import Bounds, DimensionMismatchError
from ik_jit.optimization.jit_wrappers import JittedFunction
from ik_jit.optimization.problem import ConstraintSet, Jacobian

ConstraintFn = Callable[[jnp.ndarray], jnp.ndarray]


class IKConstraint(ConstraintSet):
    """Rows ``lower <= fn(q) <= upper`` on one variable set."""

    def __init__(
        self,
        name: str,
        fn: ConstraintFn,
        lower: Union[float, Sequence[float]],
        upper: Union[float, Sequence[float]],
        variable_set: str = "configuration_vector",
        autodiff_mode: str = "forward",
    ) -> None:
        lower = np.atleast_1d(np.asarray(lower, dtype=np.float64))
        upper = np.atleast_1d(np.asarray(upper, dtype=np.float64))
        if lower.shape != upper.shape or lower.ndim != 1:
            raise DimensionMismatchError(
                f"Constraint '{name}' bounds have shapes {lower.shape} and {upper.shape}"
            )
        if np.any(lower > upper):
            raise ValueError(f"Constraint '{name}' has lower bounds above upper bounds")
        super().__init__(lower.shape[0], name)

        self.variable_set = variable_set
        self._lower = lower
        self._upper = upper
        self._fn = JittedFunction.from_function(lambda q: jnp.atleast_1d(fn(q)), mode=autodiff_mode)

    @classmethod
    def joint_coupling(
        cls,
        name: str,
        n_q: int,
        i: int,
        j: int,
        ratio: float = 1.0,
        offset: float = 0.0,
    ) -> "IKConstraint":
        """Equality q[i] - ratio * q[j] == offset."""
        if not (0 <= i < n_q and 0 <= j < n_q):
            raise DimensionMismatchError(f"Joint indices ({i}, {j}) out of range for {n_q} DOF")
        return cls(name, lambda q: q[i] - ratio * q[j], offset, offset)

    def _current_q(self) -> jnp.ndarray:
        q = self.get_variables().get_component(self.variable_set).get_values()
        return jnp.asarray(q, dtype=jnp.float64)

    def get_values(self) -> np.ndarray:
        values = np.asarray(self._fn.value(self._current_q()), dtype=np.float64)
        if values.shape != (self.get_rows(),):
            raise DimensionMismatchError(
                f"Constraint '{self.name}' returned shape {values.shape}, expected ({self.get_rows()},)"
            )
        return values

    def get_bounds(self) -> List[Bounds]:
        return [Bounds(float(lo), float(hi)) for lo, hi in zip(self._lower, self._upper)]

    def fill_jacobian_block(self, var_set: str, jac: Jacobian) -> None:
        if var_set != self.variable_set:
            return
        _, J = self._fn.value_and_derivative(self._current_q())
        J = np.asarray(J, dtype=np.float64).reshape(self.get_rows(), -1)
        jac.resize(*J.shape)
        jac[:, :] = J
