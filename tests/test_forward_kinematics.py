import jax
import jax.numpy as jnp
import numpy as np

from ik_jit.core.math3d import rot_z, transform_inverse
from ik_jit.kinematics.forward import forward_kinematics, link_poses


def test_zero_configuration_stacks_links(arm):
    H = forward_kinematics(arm, jnp.zeros(3), "base", "tool")
    assert jnp.allclose(H[:3, 3], jnp.array([0.0, 0.0, 0.9]), atol=1e-12)
    assert jnp.allclose(H[:3, :3], rot_z(0.3), atol=1e-12)


def test_shoulder_yaw_rotates_about_z(arm):
    H = forward_kinematics(arm, jnp.array([np.pi / 2, np.pi / 2, 0.0]), "base", "tool")
    # Upper arm pitched forward along +x, then yawed onto +y.
    assert jnp.allclose(H[:3, 3], jnp.array([0.0, 0.8, 0.1]), atol=1e-12)


def test_same_link_gives_identity(branched):
    q = jnp.array([0.1, 0.2, -0.3, 0.4, 0.5])
    assert jnp.allclose(forward_kinematics(branched, q, "l_hand", "l_hand"), jnp.eye(4), atol=1e-12)


def test_cross_branch_matches_root_poses(branched):
    q = jnp.array([0.15, 0.7, -0.2, -1.1, 0.9])
    poses = link_poses(branched, q)
    expected = transform_inverse(poses["l_hand"]) @ poses["r_hand"]
    H = forward_kinematics(branched, q, "l_hand", "r_hand")
    assert jnp.allclose(H, expected, atol=1e-12)


def test_source_target_swap_is_inverse(branched):
    q = jnp.array([0.05, 0.3, 0.4, -0.6, 0.2])
    H_ab = forward_kinematics(branched, q, "base", "r_hand")
    H_ba = forward_kinematics(branched, q, "r_hand", "base")
    assert jnp.allclose(H_ab @ H_ba, jnp.eye(4), atol=1e-12)


def test_prismatic_joint_translates_along_axis(branched):
    q0 = jnp.zeros(5)
    q1 = q0.at[0].set(0.25)
    p0 = forward_kinematics(branched, q0, "base", "torso")[:3, 3]
    p1 = forward_kinematics(branched, q1, "base", "torso")[:3, 3]
    assert jnp.allclose(p1 - p0, jnp.array([0.0, 0.0, 0.25]), atol=1e-12)


def test_integer_configuration_is_accepted(arm):
    H = forward_kinematics(arm, np.array([0, 0, 0]), "base", "tool")
    assert H.dtype == jnp.float64


def test_jacobian_is_finite_under_jit(arm):
    def position(q):
        return forward_kinematics(arm, q, "base", "tool")[:3, 3]

    J = jax.jit(jax.jacfwd(position))(jnp.array([0.3, -0.4, 0.6]))
    assert J.shape == (3, 3)
    assert jnp.all(jnp.isfinite(J))
