import jax.numpy as jnp
import numpy as np
import pytest

from ik_jit.kinematics.model import RobotModel, origin_from_xyz_rpy


def test_configuration_indices_follow_insertion_order(branched):
    assert branched.n_q == 5
    assert branched.root == "base"
    indices = [link.joint.q_index for link in branched.links.values() if link.joint.is_movable]
    assert indices == list(range(5))
    assert branched.get_link("base").joint.q_index == -1


def test_fixed_joints_do_not_add_dof(arm):
    assert arm.n_q == 3
    assert not arm.get_link("tool").joint.is_movable


def test_path_from_root(arm):
    assert arm.path_from_root("tool") == ["base", "shoulder", "upper_arm", "forearm", "wrist", "tool"]
    assert arm.path_from_root("base") == ["base"]


def test_joint_limits(branched):
    lower, upper = branched.joint_limits()
    assert lower.shape == (5,)
    assert lower[0] == 0.0 and upper[0] == 0.3
    np.testing.assert_allclose(upper[1:], np.pi)


def test_axis_is_normalized():
    model = RobotModel()
    model.add_link("base")
    link = model.add_link("a", "base", "revolute", axis=[0.0, 3.0, 4.0])
    np.testing.assert_allclose(link.joint.axis, [0.0, 0.6, 0.8])


def test_add_link_validation():
    model = RobotModel("m")
    with pytest.raises(ValueError):
        model.add_link("base", joint_type="revolute")
    model.add_link("base")
    with pytest.raises(ValueError):
        model.add_link("base", "base")
    with pytest.raises(ValueError):
        model.add_link("other_root")
    with pytest.raises(KeyError):
        model.add_link("a", "missing", "revolute")
    with pytest.raises(ValueError):
        model.add_link("a", "base", "spherical")
    with pytest.raises(ValueError):
        model.add_link("a", "base", "revolute", axis=[0.0, 0.0, 0.0])
    with pytest.raises(ValueError):
        model.add_link("a", "base", "revolute", limits=(1.0, -1.0))
    assert model.n_q == 0


def test_get_link_unknown_raises(arm):
    with pytest.raises(KeyError):
        arm.get_link("gripper")


def test_cast_is_independent_copy(arm):
    copy = arm.cast(jnp.float64)
    assert isinstance(copy.get_link("forearm").joint.origin, jnp.ndarray)

    original_origin = np.array(arm.get_link("forearm").joint.origin)
    copy.get_link("forearm").joint.origin = jnp.eye(4)
    copy.add_link("extra", "tool")

    np.testing.assert_allclose(arm.get_link("forearm").joint.origin, original_origin)
    assert "extra" not in arm.links


def test_origin_from_xyz_rpy():
    T = origin_from_xyz_rpy([1.0, 2.0, 3.0], [0.0, 0.0, np.pi / 2])
    assert isinstance(T, np.ndarray)
    np.testing.assert_allclose(T[:3, 3], [1.0, 2.0, 3.0])
    np.testing.assert_allclose(T[:3, 0], [0.0, 1.0, 0.0], atol=1e-12)
