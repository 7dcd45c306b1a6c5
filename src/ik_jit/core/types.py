# Copyright (c) 2025.
# This file is part of IK-JIT, released under the MIT License.
"""
Core typed data structures for IK-JIT.

This module defines the lightweight containers shared by the optimization
layer and the inverse-kinematics front end. They carry structural
information and results only; all numerical work happens in JAX functions
elsewhere.

Classes
-------
Bounds
    Closed interval ``[lower, upper]`` for one decision-vector entry or one
    constraint row. Equality rows use ``lower == upper``.

IKStatus
    Outcome classification of a solve:
    - CONVERGED: the target pose was reached within tolerance
    - NOT_CONVERGED: a finite best-effort configuration was found but the
      tolerances were not met (iteration cap, unreachable pose, ...)
    - DEGENERATE: non-finite cost/gradient or a numerical failure inside
      the solver

IKResult
    The configuration returned by ``inverse_kinematics`` together with the
    final cost, pose-error diagnostics and the solver's own report.

DimensionMismatchError
    Raised at construction time when a vector's length does not match the
    robot model's degree-of-freedom count.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import NamedTuple

import numpy as np


class DimensionMismatchError(ValueError):
    """A vector's length does not match the expected dimension."""


class Bounds(NamedTuple):
    lower: float
    upper: float


NO_BOUND = Bounds(-np.inf, np.inf)


class IKStatus(enum.Enum):
    CONVERGED = "converged"
    NOT_CONVERGED = "not_converged"
    DEGENERATE = "degenerate"


@dataclass
class IKResult:
    """Result of one inverse-kinematics solve.

    ``q`` is always populated, even when the solve did not converge: it holds
    the best configuration the solver reached. Check ``status`` (or
    ``converged``) before treating it as exact.
    """
    q: np.ndarray
    status: IKStatus
    cost: float
    position_error: float      # ||t_current - t_desired||
    orientation_error: float   # value of the rotation-error metric
    orientation_angle: float   # rotation angle of R_desired @ R_current^T [rad]
    rpy_error: np.ndarray      # [roll, pitch, yaw] of R_desired @ R_current^T
    iterations: int
    solver_success: bool
    message: str = ""

    @property
    def converged(self) -> bool:
        return self.status is IKStatus.CONVERGED
