# Copyright (c) 2025.
# This file is part of IK-JIT, released under the MIT License.
from __future__ import annotations

import logging

import numpy as np
import jax.numpy as jnp

from ik_jit.kinematics.model import RobotModel, origin_from_xyz_rpy
from ik_jit.kinematics.forward import forward_kinematics
from ik_jit.kinematics.visualization import plot_chain_3d
from ik_jit.ik.solve import IKConfig, inverse_kinematics
from ik_jit.optimization.solvers import SolverOptions


def build_three_link_arm() -> RobotModel:
    """
    Spatial 3-DOF arm:

        base --(yaw)--> shoulder --(pitch)--> upper_arm --(pitch)--> forearm --(fixed)--> tool

    Link lengths 0.3 / 0.3 / 0.2 m, shoulder 0.1 m above the base.
    """
    model = RobotModel("three_link_arm")
    model.add_link("base")
    model.add_link("shoulder", "base", "revolute", origin_from_xyz_rpy([0.0, 0.0, 0.1]), axis=[0, 0, 1])
    model.add_link("upper_arm", "shoulder", "revolute", axis=[0, 1, 0])
    model.add_link("forearm", "upper_arm", "revolute", origin_from_xyz_rpy([0.0, 0.0, 0.3]), axis=[0, 1, 0])
    model.add_link("tool", "forearm", "fixed", origin_from_xyz_rpy([0.0, 0.0, 0.5]))
    return model


def main():
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

    model = build_three_link_arm()
    print(model)

    # Ground-truth configuration; the IK only sees the pose it produces
    q_true = np.array([0.3, -0.4, 0.6])
    desired = np.asarray(forward_kinematics(model, jnp.asarray(q_true), "base", "tool"))

    # Noisy initial guess
    q0 = q_true + np.array([0.1, -0.1, 0.1])

    config = IKConfig(solver=SolverOptions(max_iterations=250, convergence_tolerance=1e-9))
    result = inverse_kinematics(model, "base", "tool", desired, q0, config=config)

    print("=== IK result ===")
    print(f"status:            {result.status.value}")
    print(f"iterations:        {result.iterations}")
    print(f"q (solved):        {result.q}")
    print(f"q (ground truth):  {q_true}")
    print(f"cost:              {result.cost:.3e}")
    print(f"position error:    {result.position_error:.3e} m")
    print(f"orientation error: {result.orientation_error:.3e} (angle {result.orientation_angle:.3e} rad)")
    print(f"rpy error:         {result.rpy_error}")

    # Unreachable target: 2 m away, the arm can only point at it
    far = np.eye(4)
    far[:3, 3] = [2.0, 0.0, 0.0]
    far_result = inverse_kinematics(model, "base", "tool", far, np.zeros(3))
    print(f"unreachable target -> {far_result.status.value}, |dp| = {far_result.position_error:.3f} m")

    plot_chain_3d(model, result.q, frames=["tool"], desired_pose=desired, triad_length=0.08)


if __name__ == "__main__":
    main()
