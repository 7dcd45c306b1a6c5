# Copyright (c) 2025.
# This file is part of IK-JIT, released under the MIT License.
"""
Inverse kinematics as a nonlinear program.

`inverse_kinematics` is the entry point of IK-JIT. For one (source link,
target link, desired pose) triple it

    1. casts the robot model into an independent, AD-ready copy;
    2. builds an `IKVariables` set ("configuration_vector") seeded with the
       initial guess, an `IKCost` ("IK_cost") bound to the copy, and any
       caller-provided constraint sets;
    3. registers them in a fresh `Problem`;
    4. hands the problem to an `NLPSolver` configured for exact Jacobians,
       an iteration cap and a convergence tolerance;
    5. reads the optimized configuration back and classifies the outcome.

Nothing survives between calls, so concurrent solves on separate threads
are safe as long as the caller does not mutate the input model meanwhile.

Outcome classification
----------------------
The configuration is always returned. ``IKResult.status`` says how much to
trust it:

    CONVERGED      position error and rotation angle within tolerance and all
                   constraint rows satisfied
    NOT_CONVERGED  finite result that misses the tolerances (iteration cap,
                   unreachable pose, local minimum)
    DEGENERATE     non-finite cost / gradient or a numerical failure inside
                   the solver; the best finite iterate is returned

The orientation check uses the rotation angle, not the metric value. With
the default trace metric the orientation term of the cost grows with the
fourth power of the angle, so the regularization term settles the optimum
a few milliradians off the exact pose; ``orientation_tolerance`` (1e-2 rad)
is sized for that.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Optional, Sequence, Union

import numpy as np
import jax.numpy as jnp

from ik_jit.core.math3d import RotationErrorFn
from ik_jit.core.types import IKResult, IKStatus
from ik_jit.ik.cost import CostWeights, IKCost
from ik_jit.ik.variables import BoundPolicy, IKVariables
from ik_jit.kinematics.model import RobotModel
from ik_jit.optimization.problem import ConstraintSet, Problem
from ik_jit.optimization.solvers import NLPSolver, ScipySolver, SolverOptions

logger = logging.getLogger(__name__)

VARIABLE_SET_NAME = "configuration_vector"
COST_NAME = "IK_cost"


@dataclass
class IKConfig:
    weights: CostWeights = field(default_factory=CostWeights)
    metric: Union[str, RotationErrorFn] = "trace"
    bounds: BoundPolicy = (-np.pi, np.pi)
    autodiff_mode: str = "forward"
    position_tolerance: float = 1e-4
    orientation_tolerance: float = 1e-2  # radians, on the rotation angle
    constraint_tolerance: float = 1e-6
    solver: SolverOptions = field(default_factory=SolverOptions)


def build_ik_problem(
    model: RobotModel,
    source_link: str,
    target_link: str,
    desired_pose,
    q0: Sequence[float],
    config: Optional[IKConfig] = None,
    constraints: Sequence[ConstraintSet] = (),
) -> Problem:
    """Assemble the IK problem without solving it."""
    config = config if config is not None else IKConfig()

    # Fails fast on a wrong-length q0 before the model is copied.
    variables = IKVariables(VARIABLE_SET_NAME, model, q0, bounds=config.bounds)

    ad_model = model.cast(jnp.float64)
    cost = IKCost(
        COST_NAME,
        ad_model,
        source_link,
        target_link,
        desired_pose,
        weights=config.weights,
        metric=config.metric,
        variable_set=VARIABLE_SET_NAME,
        autodiff_mode=config.autodiff_mode,
    )

    nlp = Problem()
    nlp.add_variable_set(variables)
    for constraint in constraints:
        nlp.add_constraint_set(constraint)
    nlp.add_cost_set(cost)
    return nlp


def _constraints_satisfied(nlp: Problem, tol: float) -> bool:
    if nlp.get_number_of_constraints() == 0:
        return True
    g = nlp.evaluate_constraints(nlp.get_variable_values())
    bounds = nlp.get_bounds_on_constraints()
    lower = np.array([b.lower for b in bounds])
    upper = np.array([b.upper for b in bounds])
    return bool(np.all(g >= lower - tol) and np.all(g <= upper + tol))


def inverse_kinematics(
    model: RobotModel,
    source_link: str,
    target_link: str,
    desired_pose,
    q0: Sequence[float],
    config: Optional[IKConfig] = None,
    constraints: Sequence[ConstraintSet] = (),
    solver: Optional[NLPSolver] = None,
) -> IKResult:
    """
    Configuration that places ``target_link`` at ``desired_pose`` relative to
    ``source_link``, starting the search from ``q0``.

    :param model: Robot model; not modified.
    :param source_link: Link whose frame ``desired_pose`` is expressed in.
    :param target_link: Link to be placed.
    :param desired_pose: 4x4 homogeneous transform.
    :param q0: Initial guess, length ``model.n_q``.
    :param config: Cost weights, bounds, tolerances and solver options.
    :param constraints: Optional extra constraint sets on
        ``"configuration_vector"``.
    :param solver: Solver backend; defaults to ``ScipySolver(config.solver)``.
    :returns: An `IKResult`; inspect ``status`` before trusting ``q``.
    :raises DimensionMismatchError: if ``len(q0) != model.n_q``.
    :raises KeyError: if a link name is unknown.
    """
    config = config if config is not None else IKConfig()
    nlp = build_ik_problem(model, source_link, target_link, desired_pose, q0, config, constraints)
    solver = solver if solver is not None else ScipySolver(config.solver)

    if logger.isEnabledFor(logging.DEBUG):
        logger.debug("IK %s -> %s on '%s'\n%s", source_link, target_link, model.name, nlp.summary())
    report = solver.solve(nlp)

    q = nlp.get_opt_variables().get_component(VARIABLE_SET_NAME).get_values()
    cost = nlp.costs[0]
    errors = cost.pose_errors(q)

    if report.degenerate or not np.all(np.isfinite(q)) or not np.isfinite(report.cost):
        status = IKStatus.DEGENERATE
    elif (
        errors["position_error"] <= config.position_tolerance
        and errors["orientation_angle"] <= config.orientation_tolerance
        and _constraints_satisfied(nlp, config.constraint_tolerance)
    ):
        status = IKStatus.CONVERGED
    else:
        status = IKStatus.NOT_CONVERGED

    result = IKResult(
        q=q,
        status=status,
        cost=report.cost,
        position_error=errors["position_error"],
        orientation_error=errors["orientation_error"],
        orientation_angle=errors["orientation_angle"],
        rpy_error=errors["rpy_error"],
        iterations=report.iterations,
        solver_success=report.success,
        message=report.message,
    )

    if status is IKStatus.CONVERGED:
        logger.info(
            "IK converged in %d iterations (cost=%.3e, |dp|=%.2e, angle=%.2e)",
            result.iterations, result.cost, result.position_error, result.orientation_angle,
        )
    else:
        logger.warning(
            "IK %s after %d iterations (cost=%.3e, |dp|=%.2e, angle=%.2e): %s",
            status.value, result.iterations, result.cost,
            result.position_error, result.orientation_angle, result.message,
        )
    return result
