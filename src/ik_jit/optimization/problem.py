# Copyright (c) 2025.
# This file is part of IK-JIT, released under the MIT License.
"""
Solver-agnostic nonlinear program (NLP) container for IK-JIT.

An optimization problem is assembled from named components:

    • VariableSet   – a block of decision variables with bounds
    • ConstraintSet – one or more constraint rows g(x) with bounds
    • CostTerm      – a scalar objective term (a single-row constraint set
                      without bounds)

Components address each other by *name*. A constraint or cost reads the
current values of a variable set through ``get_variables().get_component(name)``
and writes its derivative with respect to that set into a `Jacobian` block
via ``fill_jacobian_block(var_set, jac)``. A block always starts at row 0 and
column 0, independent of where the component sits in the overall problem;
`Problem` places the blocks into the global gradient / Jacobian.

Contract for ``fill_jacobian_block``
------------------------------------
- Resize (and thereby zero) ``jac`` before writing; never accumulate into
  values left over from a previous call.
- If ``var_set`` is not a variable set the component depends on, do nothing.

`Problem` flattens all variable sets into one vector ``x`` (in insertion
order), sums the cost terms and stacks the constraint rows. This is the
only view a solver backend (see `optimization.solvers`) needs.
"""

from __future__ import annotations

import logging
from typing import Dict, List, Optional

import numpy as np

from ik_jit.core.types import NO_BOUND, Bounds, DimensionMismatchError

logger = logging.getLogger(__name__)


class Jacobian:
    """Dense Jacobian block of one component w.r.t. one variable set."""

    def __init__(self, rows: int = 0, cols: int = 0) -> None:
        self.data = np.zeros((rows, cols))

    @property
    def shape(self):
        return self.data.shape

    def resize(self, rows: int, cols: int) -> None:
        """Reallocate as a zero-filled ``rows x cols`` block."""
        self.data = np.zeros((rows, cols))

    def __getitem__(self, idx):
        return self.data[idx]

    def __setitem__(self, idx, value) -> None:
        self.data[idx] = value

    def toarray(self) -> np.ndarray:
        return self.data.copy()


class Component:
    """Named block of rows (variables, constraints or a cost)."""

    def __init__(self, n_rows: int, name: str) -> None:
        self.name = name
        self._n_rows = int(n_rows)

    def get_rows(self) -> int:
        return self._n_rows

    def get_values(self) -> np.ndarray:
        raise NotImplementedError

    def get_bounds(self) -> List[Bounds]:
        raise NotImplementedError


class VariableSet(Component):
    """Decision variables. The solver writes new iterates via ``set_variables``."""

    def set_variables(self, x: np.ndarray) -> None:
        raise NotImplementedError


class Variables:
    """Ordered collection of variable sets, flattened into one vector."""

    def __init__(self) -> None:
        self._sets: Dict[str, VariableSet] = {}

    def add(self, var_set: VariableSet) -> None:
        if var_set.name in self._sets:
            raise ValueError(f"Variable set '{var_set.name}' is already registered")
        self._sets[var_set.name] = var_set

    def get_component(self, name: str) -> VariableSet:
        try:
            return self._sets[name]
        except KeyError:
            raise KeyError(f"No variable set named '{name}'") from None

    def components(self) -> List[VariableSet]:
        return list(self._sets.values())

    def get_rows(self) -> int:
        return sum(v.get_rows() for v in self._sets.values())

    def offsets(self) -> Dict[str, int]:
        result, offset = {}, 0
        for name, var_set in self._sets.items():
            result[name] = offset
            offset += var_set.get_rows()
        return result

    def get_values(self) -> np.ndarray:
        if not self._sets:
            return np.zeros(0)
        return np.concatenate([np.asarray(v.get_values(), dtype=np.float64) for v in self._sets.values()])

    def set_variables(self, x: np.ndarray) -> None:
        x = np.asarray(x, dtype=np.float64)
        offset = 0
        for var_set in self._sets.values():
            n = var_set.get_rows()
            var_set.set_variables(x[offset:offset + n].copy())
            offset += n

    def get_bounds(self) -> List[Bounds]:
        bounds: List[Bounds] = []
        for var_set in self._sets.values():
            bounds.extend(var_set.get_bounds())
        return bounds


class ConstraintSet(Component):
    """Constraint rows g(x) with lower/upper bounds per row."""

    def __init__(self, n_rows: int, name: str) -> None:
        super().__init__(n_rows, name)
        self._variables: Optional[Variables] = None

    def link_with_variables(self, variables: Variables) -> None:
        self._variables = variables

    def get_variables(self) -> Variables:
        if self._variables is None:
            raise RuntimeError(f"Component '{self.name}' is not linked to any variables")
        return self._variables

    def fill_jacobian_block(self, var_set: str, jac: Jacobian) -> None:
        raise NotImplementedError

    def get_jacobian(self) -> np.ndarray:
        """Full ``rows x n_vars`` Jacobian assembled from per-set blocks."""
        variables = self.get_variables()
        offsets = variables.offsets()
        full = np.zeros((self.get_rows(), variables.get_rows()))
        for var_set in variables.components():
            n = var_set.get_rows()
            jac = Jacobian(self.get_rows(), n)
            self.fill_jacobian_block(var_set.name, jac)
            if jac.shape != (self.get_rows(), n):
                raise DimensionMismatchError(
                    f"Component '{self.name}' filled a {jac.shape} block for "
                    f"'{var_set.name}', expected {(self.get_rows(), n)}"
                )
            start = offsets[var_set.name]
            full[:, start:start + n] = jac.data
        return full


class CostTerm(ConstraintSet):
    """Scalar objective term; its single row is unbounded."""

    def __init__(self, name: str) -> None:
        super().__init__(1, name)

    def get_cost(self) -> float:
        raise NotImplementedError

    def get_values(self) -> np.ndarray:
        return np.array([self.get_cost()])

    def get_bounds(self) -> List[Bounds]:
        return [NO_BOUND]


class Problem:
    """
    An NLP assembled from variable, constraint and cost components.

    The solver interacts only through the flattened methods below; it calls
    ``set_variables`` with every new iterate and reads the result back with
    ``get_opt_variables``.
    """

    def __init__(self) -> None:
        self.variables = Variables()
        self.constraints: List[ConstraintSet] = []
        self.costs: List[CostTerm] = []

    # --- Assembly ---

    def add_variable_set(self, var_set: VariableSet) -> None:
        self.variables.add(var_set)
        logger.debug("Added variable set '%s' (%d rows)", var_set.name, var_set.get_rows())

    def add_constraint_set(self, constraint: ConstraintSet) -> None:
        self._check_unique(constraint.name)
        constraint.link_with_variables(self.variables)
        self.constraints.append(constraint)
        logger.debug("Added constraint set '%s' (%d rows)", constraint.name, constraint.get_rows())

    def add_cost_set(self, cost: CostTerm) -> None:
        self._check_unique(cost.name)
        cost.link_with_variables(self.variables)
        self.costs.append(cost)
        logger.debug("Added cost term '%s'", cost.name)

    def _check_unique(self, name: str) -> None:
        taken = {c.name for c in self.constraints} | {c.name for c in self.costs}
        if name in taken:
            raise ValueError(f"A constraint or cost named '{name}' is already registered")

    # --- Variables ---

    def get_number_of_optimization_variables(self) -> int:
        return self.variables.get_rows()

    def get_variable_values(self) -> np.ndarray:
        return self.variables.get_values()

    def set_variables(self, x: np.ndarray) -> None:
        self.variables.set_variables(x)

    def get_bounds_on_optimization_variables(self) -> List[Bounds]:
        return self.variables.get_bounds()

    def get_opt_variables(self) -> Variables:
        return self.variables

    # --- Cost ---

    def has_cost_terms(self) -> bool:
        return bool(self.costs)

    def evaluate_cost_function(self, x: np.ndarray) -> float:
        self.set_variables(x)
        return float(sum(cost.get_cost() for cost in self.costs))

    def evaluate_cost_function_gradient(self, x: np.ndarray) -> np.ndarray:
        self.set_variables(x)
        grad = np.zeros(self.get_number_of_optimization_variables())
        for cost in self.costs:
            grad += cost.get_jacobian()[0]
        return grad

    # --- Constraints ---

    def get_number_of_constraints(self) -> int:
        return sum(c.get_rows() for c in self.constraints)

    def evaluate_constraints(self, x: np.ndarray) -> np.ndarray:
        self.set_variables(x)
        if not self.constraints:
            return np.zeros(0)
        return np.concatenate([np.asarray(c.get_values(), dtype=np.float64) for c in self.constraints])

    def evaluate_constraint_jacobian(self, x: np.ndarray) -> np.ndarray:
        self.set_variables(x)
        if not self.constraints:
            return np.zeros((0, self.get_number_of_optimization_variables()))
        return np.vstack([c.get_jacobian() for c in self.constraints])

    def get_bounds_on_constraints(self) -> List[Bounds]:
        bounds: List[Bounds] = []
        for c in self.constraints:
            bounds.extend(c.get_bounds())
        return bounds

    # --- Diagnostics ---

    def summary(self) -> str:
        """Human-readable overview of the current problem state."""
        lines = [
            f"Problem: {self.get_number_of_optimization_variables()} variables, "
            f"{self.get_number_of_constraints()} constraints, {len(self.costs)} cost terms"
        ]
        for var_set in self.variables.components():
            lines.append(f"  variables  {var_set.name:<24} rows={var_set.get_rows()} "
                         f"values={np.round(np.asarray(var_set.get_values()), 4)}")
        for c in self.constraints:
            lines.append(f"  constraint {c.name:<24} rows={c.get_rows()} "
                         f"values={np.round(np.asarray(c.get_values()), 4)}")
        for cost in self.costs:
            lines.append(f"  cost       {cost.name:<24} value={cost.get_cost():.6g}")
        return "\n".join(lines)
