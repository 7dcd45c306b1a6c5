from __future__ import annotations

import numpy as np
import pytest

from ik_jit.kinematics.model import RobotModel, origin_from_xyz_rpy


def build_three_link_arm() -> RobotModel:
    """
    Spatial 3-DOF arm, all links stacked along +z at q = 0:

        base --(rev z)--> shoulder --(rev y)--> upper_arm --(rev y)--> forearm --(fixed)--> tool

    Reach from the shoulder is 0.3 + 0.3 + 0.2 = 0.8 m.
    """
    model = RobotModel("three_link_arm")
    model.add_link("base")
    model.add_link("shoulder", "base", "revolute", origin_from_xyz_rpy([0.0, 0.0, 0.1]), axis=[0, 0, 1])
    model.add_link("upper_arm", "shoulder", "revolute", origin_from_xyz_rpy([0.0, 0.0, 0.0]), axis=[0, 1, 0])
    model.add_link("forearm", "upper_arm", "revolute", origin_from_xyz_rpy([0.0, 0.0, 0.3]), axis=[0, 1, 0])
    model.add_link("wrist", "forearm", "fixed", origin_from_xyz_rpy([0.0, 0.0, 0.3]))
    model.add_link("tool", "wrist", "fixed", origin_from_xyz_rpy([0.0, 0.0, 0.2], [0.0, 0.0, 0.3]))
    return model


def build_branched_model() -> RobotModel:
    """
    Torso with two 2-DOF arms, plus a prismatic lift, to exercise FK between
    links on different branches:

        base --(prismatic z)--> torso
        torso --(rev z)--> l_shoulder --(rev x)--> l_hand
        torso --(rev z)--> r_shoulder --(rev x)--> r_hand
    """
    model = RobotModel("branched")
    model.add_link("base")
    model.add_link("torso", "base", "prismatic", origin_from_xyz_rpy([0.0, 0.0, 0.5]), axis=[0, 0, 1],
                   limits=(0.0, 0.3))
    model.add_link("l_shoulder", "torso", "revolute", origin_from_xyz_rpy([0.0, 0.2, 0.3]), axis=[0, 0, 1])
    model.add_link("l_hand", "l_shoulder", "revolute", origin_from_xyz_rpy([0.0, 0.25, 0.0]), axis=[1, 0, 0])
    model.add_link("r_shoulder", "torso", "revolute", origin_from_xyz_rpy([0.0, -0.2, 0.3]), axis=[0, 0, 1])
    model.add_link("r_hand", "r_shoulder", "revolute", origin_from_xyz_rpy([0.0, -0.25, 0.0]), axis=[1, 0, 0])
    return model


def build_six_dof_arm() -> RobotModel:
    """
    Serial 6-DOF arm, yaw / pitch / pitch / roll / pitch / roll:

        base -> j0 (z) -> j1 (y) -> j2 (y) -> j3 (z) -> j4 (y) -> j5 (z) -> tool
    """
    model = RobotModel("six_dof_arm")
    model.add_link("base")
    joints = [
        ("j0", [0, 0, 1], [0.0, 0.0, 0.1]),
        ("j1", [0, 1, 0], [0.0, 0.0, 0.1]),
        ("j2", [0, 1, 0], [0.0, 0.0, 0.3]),
        ("j3", [0, 0, 1], [0.0, 0.0, 0.25]),
        ("j4", [0, 1, 0], [0.0, 0.0, 0.05]),
        ("j5", [0, 0, 1], [0.0, 0.0, 0.05]),
    ]
    parent = "base"
    for name, axis, xyz in joints:
        model.add_link(name, parent, "revolute", origin_from_xyz_rpy(xyz), axis=axis)
        parent = name
    model.add_link("tool", parent, "fixed", origin_from_xyz_rpy([0.0, 0.0, 0.1]))
    return model


@pytest.fixture
def arm() -> RobotModel:
    return build_three_link_arm()


@pytest.fixture
def branched() -> RobotModel:
    return build_branched_model()


@pytest.fixture
def q_star() -> np.ndarray:
    return np.array([0.3, -0.4, 0.6])


@pytest.fixture
def rng() -> np.random.Generator:
    return np.random.default_rng(0)


@pytest.fixture
def six_dof_arm() -> RobotModel:
    return build_six_dof_arm()
