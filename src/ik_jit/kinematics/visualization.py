# Copyright (c) 2025.
# This file is part of IK-JIT, released under the MIT License.
"""
Visualization utilities for IK-JIT.

`plot_chain_3d()` draws a robot model at a given configuration: one marker
per link origin, a segment from each link to its parent, and optionally a
small RGB triad for the orientation of selected frames. A desired pose can
be overlaid to eyeball the residual error of an IK solution.

Example usage is provided in `experiments/exp01_three_link_ik.py`.
"""

from __future__ import annotations

from typing import Optional, Sequence

import numpy as np
import jax.numpy as jnp
import matplotlib.pyplot as plt

from ik_jit.kinematics.forward import link_poses
from ik_jit.kinematics.model import RobotModel


def _draw_triad(ax, T: np.ndarray, length: float, alpha: float = 1.0) -> None:
    origin = T[:3, 3]
    for k, color in enumerate(("r", "g", "b")):
        tip = origin + length * T[:3, k]
        ax.plot(
            [origin[0], tip[0]],
            [origin[1], tip[1]],
            [origin[2], tip[2]],
            color=color,
            linewidth=1.5,
            alpha=alpha,
        )


def plot_chain_3d(
    model: RobotModel,
    q: jnp.ndarray,
    frames: Sequence[str] = (),
    desired_pose: Optional[np.ndarray] = None,
    triad_length: float = 0.05,
    show_labels: bool = True,
    show: bool = True,
):
    """
    3D view of ``model`` at configuration ``q`` in the root frame.

    :param model: The robot model to draw.
    :param q: Configuration vector, length ``model.n_q``.
    :param frames: Link names whose orientation triads should be drawn.
    :param desired_pose: Optional 4x4 root-frame pose drawn as a faded triad.
    :param triad_length: Axis length of the orientation triads.
    :param show_labels: Whether to draw link names.
    :param show: Call ``plt.show()`` before returning.
    :returns: The ``(fig, ax)`` pair.
    """
    poses = {name: np.asarray(T) for name, T in link_poses(model, jnp.asarray(q, dtype=jnp.float64)).items()}

    fig = plt.figure()
    ax = fig.add_subplot(111, projection="3d")

    # Draw segments
    for name, link in model.links.items():
        if link.parent is None:
            continue
        a = poses[link.parent][:3, 3]
        b = poses[name][:3, 3]
        ax.plot([a[0], b[0]], [a[1], b[1]], [a[2], b[2]], color="gray", linewidth=2.0)

    # Draw link origins
    points = np.stack([T[:3, 3] for T in poses.values()])
    ax.scatter(points[:, 0], points[:, 1], points[:, 2], s=30, c="C0")
    if show_labels:
        for name, T in poses.items():
            x, y, z = T[:3, 3]
            ax.text(x, y, z, name, fontsize=6)

    for name in frames:
        _draw_triad(ax, poses[model.get_link(name).name], triad_length)
    if desired_pose is not None:
        desired_pose = np.asarray(desired_pose)
        _draw_triad(ax, desired_pose, triad_length, alpha=0.4)
        points = np.vstack([points, desired_pose[:3, 3]])

    ax.set_xlabel("x [m]")
    ax.set_ylabel("y [m]")
    ax.set_zlabel("z [m]")
    ax.set_title(f"{model.name} (3D)")

    # Make aspect ratio equal in 3D
    mins, maxs = points.min(axis=0), points.max(axis=0)
    max_range = float(np.max(maxs - mins)) / 2.0
    if max_range < 1e-3:
        max_range = 1.0
    mid = 0.5 * (maxs + mins)
    ax.set_xlim(mid[0] - max_range * 1.1, mid[0] + max_range * 1.1)
    ax.set_ylim(mid[1] - max_range * 1.1, mid[1] + max_range * 1.1)
    ax.set_zlim(mid[2] - max_range * 1.1, mid[2] + max_range * 1.1)

    fig.tight_layout()
    if show:
        plt.show()
    return fig, ax
