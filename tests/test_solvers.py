import numpy as np
import pytest

from ik_jit.core.types import Bounds, DimensionMismatchError
from ik_jit.optimization.problem import CostTerm, Problem, VariableSet
from ik_jit.optimization.solvers import NLPSolver, ScipySolver, SolverOptions


class _Vars(VariableSet):
    def __init__(self, x0, lower=-np.inf, upper=np.inf):
        super().__init__(len(x0), "x")
        self.x = np.asarray(x0, dtype=float)
        self.lower, self.upper = lower, upper

    def set_variables(self, x):
        self.x = np.asarray(x, dtype=float)

    def get_values(self):
        return self.x.copy()

    def get_bounds(self):
        return [Bounds(self.lower, self.upper)] * self.get_rows()


class _Quadratic(CostTerm):
    """(x - c)^T (x - c), optionally poisoned with NaN."""

    def __init__(self, c, poison=False):
        super().__init__("quadratic")
        self.c = np.asarray(c, dtype=float)
        self.poison = poison

    def _x(self):
        return self.get_variables().get_component("x").get_values()

    def get_cost(self):
        if self.poison:
            return float("nan")
        d = self._x() - self.c
        return float(d @ d)

    def fill_jacobian_block(self, var_set, jac):
        if var_set != "x":
            return
        jac.resize(1, self.c.shape[0])
        jac[0, :] = np.nan if self.poison else 2.0 * (self._x() - self.c)


def _problem(x0, c, **kwargs):
    poison = kwargs.pop("poison", False)
    nlp = Problem()
    nlp.add_variable_set(_Vars(x0, **kwargs))
    nlp.add_cost_set(_Quadratic(c, poison=poison))
    return nlp


def test_default_options():
    opts = SolverOptions()
    assert opts.jacobian_mode == "exact"
    assert opts.max_iterations == 250
    assert opts.convergence_tolerance == 1e-9
    assert opts.linear_algebra_backend is None


@pytest.mark.parametrize(
    "kwargs",
    [
        {"jacobian_mode": "symbolic"},
        {"method": "ipopt"},
        {"linear_algebra_backend": "MA27"},
        {"max_iterations": 0},
        {"convergence_tolerance": 0.0},
    ],
)
def test_invalid_options_raise(kwargs):
    with pytest.raises(ValueError):
        SolverOptions(**kwargs)


def test_from_dict_rejects_unknown_keys():
    opts = SolverOptions.from_dict({"max_iterations": 10, "linear_algebra_backend": "QRFactorization"})
    assert opts.max_iterations == 10
    with pytest.raises(ValueError):
        SolverOptions.from_dict({"tol": 1e-3})


def test_set_option_validates():
    solver = ScipySolver()
    solver.set_option("max_iterations", 17)
    assert solver.options.max_iterations == 17
    with pytest.raises(ValueError):
        solver.set_option("max_iterations", -1)
    with pytest.raises(ValueError):
        solver.set_option("hessian_approximation", "limited-memory")


def test_base_solver_is_abstract():
    with pytest.raises(NotImplementedError):
        NLPSolver().solve(_problem([0.0], [1.0]))


@pytest.mark.parametrize("method", ["trust-constr", "SLSQP"])
@pytest.mark.parametrize("jacobian_mode", ["exact", "finite-difference"])
def test_unconstrained_quadratic(method, jacobian_mode):
    nlp = _problem([0.0, 0.0], [0.5, -0.25])
    report = ScipySolver(SolverOptions(method=method, jacobian_mode=jacobian_mode)).solve(nlp)
    assert not report.degenerate
    np.testing.assert_allclose(report.x, [0.5, -0.25], atol=1e-4)
    np.testing.assert_allclose(nlp.get_variable_values(), report.x)


def test_bounds_are_respected():
    nlp = _problem([0.0, 0.0], [2.0, -2.0], lower=-1.0, upper=1.0)
    report = ScipySolver().solve(nlp)
    assert np.all(report.x <= 1.0) and np.all(report.x >= -1.0)
    np.testing.assert_allclose(report.x, [1.0, -1.0], atol=1e-4)


def test_nan_cost_is_degenerate():
    nlp = _problem([0.1, 0.2], [0.0, 0.0], poison=True)
    report = ScipySolver(SolverOptions(max_iterations=5)).solve(nlp)
    assert report.degenerate
    assert not report.success
    np.testing.assert_allclose(report.x, [0.1, 0.2])


def test_wrong_block_shape_propagates():
    class _WrongBlock(_Quadratic):
        def fill_jacobian_block(self, var_set, jac):
            jac.resize(1, self.c.shape[0] + 1)

    nlp = Problem()
    nlp.add_variable_set(_Vars([0.0, 0.0]))
    nlp.add_cost_set(_WrongBlock([1.0, 1.0]))
    with pytest.raises(DimensionMismatchError):
        ScipySolver().solve(nlp)
