# Copyright (c) 2025.
# This file is part of IK-JIT, released under the MIT License.
"""
Pose-error cost for the inverse-kinematics NLP.

The objective over the configuration q is

    cost(q) = t_err^T K t_err  +  q^T (W eps) q  +  o_err * omega * o_err

with

    H      = forward_kinematics(model, q, source_link, target_link)
    t_err  = H[:3, 3] - desired[:3, 3]
    o_err  = metric(H[:3, :3], desired[:3, :3])     (trace metric by default)
    K      = position * I_3
    W eps  = regularization * I_n
    omega  = orientation

Every term is non-negative for the built-in metrics. The regularization
weight is kept tiny: it only breaks ties along null-space directions and
keeps the problem well conditioned, it must not pull the pose off target.
The orientation weight is large relative to the position weight so that
orientation converges first; both are tunables, not physics.

`IKCost` exposes the objective as a `CostTerm`:

    • ``get_cost()`` evaluates it at the current variable values;
    • ``fill_jacobian_block(var_set, jac)`` writes the exact gradient into
      row 0 of ``jac``, computed in one automatic-differentiation pass.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Dict, Optional, Tuple, Union

import numpy as np
import jax.numpy as jnp

from ik_jit.core.math3d import RotationErrorFn, get_rotation_error_metric, rot_to_rpy, rotation_angle
from ik_jit.kinematics.forward import forward_kinematics
from ik_jit.kinematics.model import RobotModel
from ik_jit.optimization.jit_wrappers import JittedFunction
from ik_jit.optimization.problem import CostTerm, Jacobian


@dataclass(frozen=True)
class CostWeights:
    position: float = 1.0
    regularization: float = 1e-6
    orientation: float = 50.0


def pose_cost(
    q: jnp.ndarray,
    model: RobotModel,
    source_link: str,
    target_link: str,
    desired_pose: jnp.ndarray,
    weights: CostWeights = CostWeights(),
    metric: RotationErrorFn = get_rotation_error_metric("trace"),
) -> jnp.ndarray:
    """Scalar pose-error cost at configuration ``q`` (pure JAX)."""
    H = forward_kinematics(model, q, source_link, target_link)
    desired_pose = jnp.asarray(desired_pose, dtype=H.dtype)

    o_err = metric(H[:3, :3], desired_pose[:3, :3])
    t_err = H[:3, 3] - desired_pose[:3, 3]

    K = weights.position * jnp.eye(3, dtype=H.dtype)
    W = weights.regularization * jnp.eye(q.shape[0], dtype=H.dtype)

    return t_err @ K @ t_err + q @ W @ q + o_err * weights.orientation * o_err


def pose_errors(
    q: jnp.ndarray,
    model: RobotModel,
    source_link: str,
    target_link: str,
    desired_pose: jnp.ndarray,
    metric: RotationErrorFn = get_rotation_error_metric("trace"),
) -> Dict[str, np.ndarray]:
    """
    Diagnostics of the pose reached at ``q``:

    - position_error: ||t_current - t_desired||
    - orientation_error: the rotation-error metric value
    - orientation_angle: rotation angle of R_desired @ R_current^T [rad]
    - rpy_error: [roll, pitch, yaw] of R_desired @ R_current^T
    """
    H = forward_kinematics(model, jnp.asarray(q, dtype=jnp.float64), source_link, target_link)
    desired_pose = jnp.asarray(desired_pose, dtype=H.dtype)
    R_cur, R_des = H[:3, :3], desired_pose[:3, :3]
    return {
        "position_error": float(jnp.linalg.norm(H[:3, 3] - desired_pose[:3, 3])),
        "orientation_error": float(metric(R_cur, R_des)),
        "orientation_angle": float(rotation_angle(R_cur, R_des)),
        "rpy_error": np.asarray(rot_to_rpy(R_des @ R_cur.T)),
    }


class IKCost(CostTerm):
    """
    Pose-error cost bound to one model, link pair and desired pose.

    ``model`` should be the AD-ready copy produced by ``RobotModel.cast``;
    the cost keeps a reference to it for the lifetime of one solve.
    """

    def __init__(
        self,
        name: str,
        model: RobotModel,
        source_link: str,
        target_link: str,
        desired_pose,
        weights: Optional[CostWeights] = None,
        metric: Union[str, RotationErrorFn] = "trace",
        variable_set: str = "configuration_vector",
        autodiff_mode: str = "forward",
    ) -> None:
        super().__init__(name)
        model.get_link(source_link)
        model.get_link(target_link)

        desired = jnp.asarray(desired_pose, dtype=jnp.float64)
        if desired.shape != (4, 4):
            raise ValueError(f"desired_pose must be a 4x4 transform, got shape {desired.shape}")

        self.model = model
        self.source_link = source_link
        self.target_link = target_link
        self.desired_pose = desired
        self.weights = weights if weights is not None else CostWeights()
        self.metric = get_rotation_error_metric(metric) if isinstance(metric, str) else metric
        self.variable_set = variable_set
        self._fn = JittedFunction.from_function(self.cost_function(), mode=autodiff_mode)

    def cost_function(self) -> Callable[[jnp.ndarray], jnp.ndarray]:
        """The objective as a function of q alone."""
        model, source, target = self.model, self.source_link, self.target_link
        desired, weights, metric = self.desired_pose, self.weights, self.metric

        def cost(q: jnp.ndarray) -> jnp.ndarray:
            return pose_cost(q, model, source, target, desired, weights, metric)

        return cost

    def _current_q(self) -> jnp.ndarray:
        q = self.get_variables().get_component(self.variable_set).get_values()
        return jnp.asarray(q, dtype=jnp.float64)

    def cost(self, q) -> float:
        return float(self._fn.value(jnp.asarray(q, dtype=jnp.float64)))

    def evaluate(self, q) -> Tuple[float, np.ndarray]:
        """Cost and exact gradient at ``q`` from a single AD pass."""
        value, grad = self._fn.value_and_derivative(jnp.asarray(q, dtype=jnp.float64))
        return float(value), np.asarray(grad, dtype=np.float64)

    def get_cost(self) -> float:
        return self.cost(self._current_q())

    def fill_jacobian_block(self, var_set: str, jac: Jacobian) -> None:
        if var_set != self.variable_set:
            return
        _, grad = self.evaluate(self._current_q())
        jac.resize(1, grad.shape[0])
        jac[0, :] = grad

    def pose_errors(self, q) -> Dict[str, np.ndarray]:
        return pose_errors(q, self.model, self.source_link, self.target_link, self.desired_pose, self.metric)
