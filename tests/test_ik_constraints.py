import jax.numpy as jnp
import numpy as np
import pytest

from ik_jit.core.types import DimensionMismatchError
from ik_jit.ik.constraints import IKConstraint
from ik_jit.ik.variables import IKVariables
from ik_jit.optimization.problem import Jacobian, Problem


def _linked(arm, constraint, q):
    nlp = Problem()
    nlp.add_variable_set(IKVariables("configuration_vector", arm, q))
    nlp.add_constraint_set(constraint)
    return nlp


def test_joint_coupling_values_and_jacobian(arm):
    c = IKConstraint.joint_coupling("coupling", n_q=3, i=2, j=1, ratio=0.5, offset=0.1)
    nlp = _linked(arm, c, np.array([0.0, 0.4, 0.7]))

    np.testing.assert_allclose(c.get_values(), [0.7 - 0.2])
    assert c.get_bounds()[0].lower == pytest.approx(0.1)
    assert c.get_bounds()[0].upper == pytest.approx(0.1)
    np.testing.assert_allclose(nlp.evaluate_constraint_jacobian(nlp.get_variable_values()), [[0.0, -0.5, 1.0]])


def test_joint_coupling_index_out_of_range():
    with pytest.raises(DimensionMismatchError):
        IKConstraint.joint_coupling("coupling", n_q=3, i=3, j=0)


def test_vector_constraint_reverse_mode(arm):
    c = IKConstraint(
        "box",
        lambda q: jnp.stack([q[0] ** 2, jnp.sin(q[1]) * q[2]]),
        lower=[-1.0, -np.inf],
        upper=[1.0, 0.5],
        autodiff_mode="reverse",
    )
    q = np.array([0.3, 0.2, -0.4])
    _linked(arm, c, q)

    jac = Jacobian()
    c.fill_jacobian_block("configuration_vector", jac)
    expected = np.array([
        [0.6, 0.0, 0.0],
        [0.0, np.cos(0.2) * -0.4, np.sin(0.2)],
    ])
    np.testing.assert_allclose(jac.toarray(), expected, atol=1e-12)
    assert c.get_bounds()[1].lower == -np.inf


def test_foreign_variable_set_is_ignored(arm):
    c = IKConstraint.joint_coupling("coupling", n_q=3, i=0, j=1)
    _linked(arm, c, np.zeros(3))
    jac = Jacobian(1, 2)
    c.fill_jacobian_block("another_robot", jac)
    np.testing.assert_array_equal(jac.toarray(), np.zeros((1, 2)))


def test_bound_validation():
    with pytest.raises(DimensionMismatchError):
        IKConstraint("c", lambda q: q[:2], lower=[0.0, 0.0], upper=[1.0])
    with pytest.raises(ValueError):
        IKConstraint("c", lambda q: q[0], lower=1.0, upper=0.0)


def test_wrong_output_shape_raises(arm):
    c = IKConstraint("c", lambda q: q[:2], lower=0.0, upper=1.0)
    _linked(arm, c, np.zeros(3))
    with pytest.raises(DimensionMismatchError):
        c.get_values()
