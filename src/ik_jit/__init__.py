# Copyright (c) 2025.
# This file is part of IK-JIT, released under the MIT License.
"""
IK-JIT: inverse kinematics as a nonlinear program with exact JAX gradients.

Typical use:

    from ik_jit import RobotModel, inverse_kinematics, forward_kinematics

    result = inverse_kinematics(model, "base", "tool", desired_pose, q0)
    if result.converged:
        ...

Importing the package enables 64-bit floats in JAX; solver tolerances around
1e-9 and finite-difference gradient checks are meaningless in float32.
"""

import jax

jax.config.update("jax_enable_x64", True)

from ik_jit.core.types import (  # noqa: E402
    Bounds,
    DimensionMismatchError,
    IKResult,
    IKStatus,
)
from ik_jit.kinematics.model import Joint, Link, RobotModel, origin_from_xyz_rpy  # noqa: E402
from ik_jit.kinematics.forward import forward_kinematics, link_poses  # noqa: E402
from ik_jit.optimization.solvers import NLPSolver, ScipySolver, SolverOptions  # noqa: E402
from ik_jit.ik.cost import CostWeights, IKCost, pose_cost  # noqa: E402
from ik_jit.ik.constraints import IKConstraint  # noqa: E402
from ik_jit.ik.variables import IKVariables  # noqa: E402
from ik_jit.ik.solve import IKConfig, build_ik_problem, inverse_kinematics  # noqa: E402

__all__ = [
    "Bounds",
    "CostWeights",
    "DimensionMismatchError",
    "IKConfig",
    "IKConstraint",
    "IKCost",
    "IKResult",
    "IKStatus",
    "IKVariables",
    "Joint",
    "Link",
    "NLPSolver",
    "RobotModel",
    "ScipySolver",
    "SolverOptions",
    "build_ik_problem",
    "forward_kinematics",
    "inverse_kinematics",
    "link_poses",
    "origin_from_xyz_rpy",
    "pose_cost",
]
