# Copyright (c) 2025.
# This file is part of IK-JIT, released under the MIT License.
"""
Nonlinear program solvers for IK-JIT.

The formulation components in `optimization.problem` and `ik` never talk to
a solver library directly. A solver backend receives a fully assembled
`Problem`, drives it through its flattened interface (``set_variables``,
``evaluate_cost_function``, ``evaluate_cost_function_gradient``,
``evaluate_constraints``, ...), and leaves the final iterate written back
into the problem's variable sets.

Key Concepts
------------
SolverOptions
    Dataclass holding the backend-independent configuration:
    - jacobian_mode: "exact" (analytic / autodiff) or "finite-difference"
    - max_iterations: iteration cap
    - convergence_tolerance: termination tolerance of the backend
    - linear_algebra_backend: factorization used for the backend's internal
      linear systems (None lets the backend choose)
    - method: "trust-constr" (interior point) or "SLSQP" (SQP)
    - verbose: forward progress output of the backend

NLPSolver
    Narrow interface: ``set_option(name, value)`` and
    ``solve(problem) -> SolveReport``. Any capable NLP library can be
    substituted by implementing it.

ScipySolver
    Backend on top of ``scipy.optimize.minimize``.

SolveReport
    What the backend observed: final point and cost, its own success flag
    and message, iteration count, and whether a numerical failure occurred.

Failure policy
--------------
The solver never raises for numerical trouble during the iterations. A
``LinAlgError`` or ``ValueError`` raised inside SciPy, or a non-finite
final cost / gradient, marks the report as degenerate and the best finite
iterate seen so far is reported instead. Invalid *options* raise
``ValueError`` immediately, and a component that returns values or
Jacobian blocks of the wrong shape raises ``DimensionMismatchError``
straight through to the caller.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, fields, replace
from typing import Any, Mapping, Optional

import numpy as np
from scipy.optimize import BFGS, Bounds as ScipyBounds, NonlinearConstraint, minimize

from ik_jit.core.types import DimensionMismatchError
from ik_jit.optimization.problem import Problem

logger = logging.getLogger(__name__)

JACOBIAN_MODES = ("exact", "finite-difference")
METHODS = ("trust-constr", "SLSQP")
# Factorizations understood by trust-constr's projection step.
LINEAR_ALGEBRA_BACKENDS = ("NormalEquation", "AugmentedSystem", "QRFactorization", "SVDFactorization")


@dataclass
class SolverOptions:
    jacobian_mode: str = "exact"
    max_iterations: int = 250
    convergence_tolerance: float = 1e-9
    linear_algebra_backend: Optional[str] = None
    method: str = "trust-constr"
    verbose: bool = False

    def __post_init__(self) -> None:
        if self.jacobian_mode not in JACOBIAN_MODES:
            raise ValueError(f"jacobian_mode must be one of {JACOBIAN_MODES}, got '{self.jacobian_mode}'")
        if self.method not in METHODS:
            raise ValueError(f"method must be one of {METHODS}, got '{self.method}'")
        if self.linear_algebra_backend is not None and self.linear_algebra_backend not in LINEAR_ALGEBRA_BACKENDS:
            raise ValueError(
                f"linear_algebra_backend must be None or one of {LINEAR_ALGEBRA_BACKENDS}, "
                f"got '{self.linear_algebra_backend}'"
            )
        if int(self.max_iterations) < 1:
            raise ValueError(f"max_iterations must be positive, got {self.max_iterations}")
        if not self.convergence_tolerance > 0.0:
            raise ValueError(f"convergence_tolerance must be positive, got {self.convergence_tolerance}")

    @classmethod
    def from_dict(cls, options: Mapping[str, Any]) -> "SolverOptions":
        known = {f.name for f in fields(cls)}
        unknown = set(options) - known
        if unknown:
            raise ValueError(f"Unknown solver options {sorted(unknown)}, expected a subset of {sorted(known)}")
        return cls(**dict(options))


@dataclass
class SolveReport:
    x: np.ndarray
    cost: float
    success: bool
    message: str
    iterations: int
    n_evaluations: int
    degenerate: bool
    elapsed: float


class NLPSolver:
    """Interface every solver backend implements."""

    def __init__(self, options: Optional[SolverOptions] = None) -> None:
        self.options = options if options is not None else SolverOptions()

    def set_option(self, name: str, value: Any) -> None:
        if name not in {f.name for f in fields(SolverOptions)}:
            raise ValueError(f"Unknown solver option '{name}'")
        self.options = replace(self.options, **{name: value})

    def solve(self, problem: Problem) -> SolveReport:
        raise NotImplementedError


class _BestIterate:
    """Lowest finite cost seen across all cost evaluations of one solve."""

    def __init__(self, x0: np.ndarray) -> None:
        self.x = np.array(x0, dtype=np.float64)
        self.cost = np.inf
        self.n_evaluations = 0
        self.n_nonfinite = 0

    def record(self, x: np.ndarray, cost: float) -> None:
        self.n_evaluations += 1
        if not np.isfinite(cost):
            self.n_nonfinite += 1
        elif cost < self.cost:
            self.cost = cost
            self.x = np.array(x, dtype=np.float64)


def _to_scipy_bounds(bounds) -> ScipyBounds:
    lower = np.array([b.lower for b in bounds], dtype=np.float64)
    upper = np.array([b.upper for b in bounds], dtype=np.float64)
    return ScipyBounds(lower, upper)


class ScipySolver(NLPSolver):
    """``scipy.optimize.minimize`` backend (trust-constr or SLSQP)."""

    def _method_options(self) -> dict:
        opts = self.options
        if opts.method == "trust-constr":
            result = {
                "maxiter": int(opts.max_iterations),
                "gtol": opts.convergence_tolerance,
                "xtol": opts.convergence_tolerance,
                "verbose": 2 if opts.verbose else 0,
            }
            if opts.linear_algebra_backend is not None:
                result["factorization_method"] = opts.linear_algebra_backend
            return result

        if opts.linear_algebra_backend is not None:
            logger.debug("linear_algebra_backend is ignored by %s", opts.method)
        return {
            "maxiter": int(opts.max_iterations),
            "ftol": opts.convergence_tolerance,
            "disp": bool(opts.verbose),
        }

    def solve(self, problem: Problem) -> SolveReport:
        opts = self.options
        exact = opts.jacobian_mode == "exact"
        trust_constr = opts.method == "trust-constr"

        var_bounds = _to_scipy_bounds(problem.get_bounds_on_optimization_variables())
        x0 = np.clip(problem.get_variable_values(), var_bounds.lb, var_bounds.ub)
        best = _BestIterate(x0)

        def fun(x: np.ndarray) -> float:
            cost = problem.evaluate_cost_function(x) if problem.has_cost_terms() else 0.0
            best.record(x, cost)
            return cost

        def grad(x: np.ndarray) -> np.ndarray:
            return problem.evaluate_cost_function_gradient(x)

        constraints = []
        if problem.get_number_of_constraints() > 0:
            c_bounds = _to_scipy_bounds(problem.get_bounds_on_constraints())
            constraints.append(
                NonlinearConstraint(
                    problem.evaluate_constraints,
                    c_bounds.lb,
                    c_bounds.ub,
                    jac=problem.evaluate_constraint_jacobian if exact else "2-point",
                )
            )

        kwargs = dict(
            method=opts.method,
            jac=grad if exact else "2-point",
            bounds=var_bounds,
            constraints=constraints,
            options=self._method_options(),
        )
        if trust_constr:
            kwargs["hess"] = BFGS()

        logger.debug(
            "Solving with %s: %d variables, %d constraints, options=%s",
            opts.method,
            problem.get_number_of_optimization_variables(),
            problem.get_number_of_constraints(),
            opts,
        )

        t0 = time.perf_counter()
        degenerate = False
        try:
            res = minimize(fun, x0, **kwargs)
            x_final = np.asarray(res.x, dtype=np.float64)
            success = bool(res.success)
            message = str(res.message)
            iterations = int(getattr(res, "nit", 0))
        except DimensionMismatchError:
            # A component broke its shape contract; not a numerical failure.
            raise
        except (np.linalg.LinAlgError, ValueError) as exc:
            logger.warning("Solver raised %s: %s", type(exc).__name__, exc)
            x_final = best.x
            success = False
            message = f"{type(exc).__name__}: {exc}"
            iterations = 0
            degenerate = True
        elapsed = time.perf_counter() - t0

        # trust-constr treats bounds as slack constraints and may end a hair outside
        x_final = np.clip(x_final, var_bounds.lb, var_bounds.ub)
        finite = bool(np.all(np.isfinite(x_final)))
        cost = fun(x_final) if finite else np.nan
        finite = finite and bool(np.isfinite(cost)) and bool(np.all(np.isfinite(grad(x_final))))
        if not finite:
            degenerate = True
            x_final = best.x
            cost = best.cost if np.isfinite(best.cost) else np.nan
        if best.n_nonfinite:
            logger.debug("%d of %d cost evaluations were non-finite", best.n_nonfinite, best.n_evaluations)

        problem.set_variables(x_final)
        logger.debug("Solver finished in %.3f ms after %d iterations: %s", elapsed * 1e3, iterations, message)

        return SolveReport(
            x=np.array(x_final),
            cost=float(cost),
            success=success and not degenerate,
            message=message,
            iterations=iterations,
            n_evaluations=best.n_evaluations,
            degenerate=degenerate,
            elapsed=elapsed,
        )
