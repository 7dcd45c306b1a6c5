# Copyright (c) 2025.
# This file is part of IK-JIT, released under the MIT License.

import time

import numpy as np
import jax.numpy as jnp

from ik_jit.kinematics.model import RobotModel, origin_from_xyz_rpy
from ik_jit.kinematics.forward import forward_kinematics
from ik_jit.ik.solve import IKConfig, build_ik_problem, inverse_kinematics
from ik_jit.optimization.solvers import SolverOptions


def build_serial_arm(num_joints: int = 6, link_length: float = 0.15) -> RobotModel:
    """
    Serial arm alternating yaw / pitch joints:
        base -> j0 -> j1 -> ... -> j_{N-1} -> tool
    """
    model = RobotModel(f"serial_{num_joints}dof")
    model.add_link("base")
    parent = "base"
    for i in range(num_joints):
        axis = [0, 0, 1] if i % 2 == 0 else [0, 1, 0]
        name = f"link{i}"
        offset = 0.0 if i == 0 else link_length
        model.add_link(name, parent, "revolute", origin_from_xyz_rpy([0.0, 0.0, offset]), axis=axis)
        parent = name
    model.add_link("tool", parent, "fixed", origin_from_xyz_rpy([0.0, 0.0, link_length]))
    return model


def run_benchmark(num_joints: int = 6, num_targets: int = 20, autodiff_mode: str = "forward", method: str = "trust-constr"):
    print("=== IK Solve Benchmark ===")
    print(f"num_joints = {num_joints}, num_targets = {num_targets}, autodiff_mode = {autodiff_mode}, method = {method}")

    model = build_serial_arm(num_joints)
    rng = np.random.default_rng(0)
    config = IKConfig(autodiff_mode=autodiff_mode, solver=SolverOptions(method=method))

    q_targets = rng.uniform(-1.0, 1.0, size=(num_targets, model.n_q))
    targets = [np.asarray(forward_kinematics(model, jnp.asarray(q), "base", "tool")) for q in q_targets]

    # Warmup: first evaluation pays JAX backend start-up. Every solve still
    # traces its own cost, so the timings below include compilation.
    nlp = build_ik_problem(model, "base", "tool", targets[0], np.zeros(model.n_q), config)
    nlp.evaluate_cost_function_gradient(np.zeros(model.n_q))

    # Benchmark
    converged = 0
    iterations = []
    t0 = time.time()
    for q_true, desired in zip(q_targets, targets):
        q0 = q_true + rng.normal(scale=0.2, size=model.n_q)
        result = inverse_kinematics(model, "base", "tool", desired, q0, config=config)
        converged += int(result.converged)
        iterations.append(result.iterations)
    t1 = time.time()

    elapsed = t1 - t0
    print(f"Elapsed time: {elapsed * 1000:.3f} ms ({elapsed * 1000 / num_targets:.3f} ms / solve)")
    print(f"Converged: {converged}/{num_targets}, mean iterations: {np.mean(iterations):.1f}")


if __name__ == "__main__":
    run_benchmark(num_joints=6, num_targets=20, autodiff_mode="forward")
    run_benchmark(num_joints=6, num_targets=20, autodiff_mode="reverse")
